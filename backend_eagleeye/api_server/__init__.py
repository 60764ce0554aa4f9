"""
API server package: HTTP/REST interface.

Exposes wallet analysis, batch jobs, transfer export and report storage.
Delegates to the analytics pipeline and the report store.
"""
