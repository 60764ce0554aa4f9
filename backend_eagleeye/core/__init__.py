"""
Core utilities: domain exceptions and error descriptors.

Shared by the ledger client, fetcher, analytics, batch worker and API server.
"""
