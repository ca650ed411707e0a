"""
Fetch coordination layer.

Responsibilities:
- Decide per query whether to call the remote endpoint or read the local mirror.
- Refresh the mirror after every successful network fetch.
- Derive filtered views (by id, cuisine, neighborhood) from one full-dataset query.
- Deliver results through a single error-or-value result type.
"""
