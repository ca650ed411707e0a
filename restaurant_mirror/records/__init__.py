"""
Local record mirror.

Responsibilities:
- Define the canonical Record schema shared by the network and the store.
- Persist the last-known-good restaurant collection keyed by id.
- Provide pluggable storage backends (in-memory for tests, SQLite on disk).
"""
