"""
Offline-capable restaurant directory backend.

Responsibilities:
- Mirror the remote restaurant dataset into a durable local store.
- Answer restaurant queries from the network when online, from the mirror when offline.
- Serve pre-cached static assets when the asset origin is unreachable.
"""
