"""User store adapters.

The in-memory store is the only backend today; the abstract interface keeps
the request pipeline independent of where records live.
"""
