"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with tags metadata and documents the
429 response (with its rate-limit headers) on rate-limited operations. This
keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Users",
        "description": "User records served through the cache. Rate limited per client.",
    },
    {
        "name": "Cache",
        "description": "Inspection and maintenance of the user cache.",
    },
    {
        "name": "Health",
        "description": "Liveness and readiness checks.",
    },
]

_RATE_LIMITED_RESPONSE = {
    "description": "Rate limit exceeded (burst or minute tier).",
    "headers": {
        "Retry-After": {
            "description": "Seconds until the rejecting window resets.",
            "schema": {"type": "integer"},
        }
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and 429 responses.

    - Adds tags metadata if not present
    - Adds a 429 response to every operation under ``/api/users``
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith("/api/users"):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {}).setdefault(
                        "429", _RATE_LIMITED_RESPONSE
                    )

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
