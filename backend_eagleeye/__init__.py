"""
Backend Eagle Eye: wallet transaction aggregation for ledger accounts.

Fetches account transaction and coin event history from a remote ledger REST
API, classifies inbound/outbound value movement, aggregates deposit and
withdrawal totals per wallet in exact minor units, and assembles analysis
reports. Modular architecture with clear separation between the ledger client,
fetcher, analytics, batch worker, reports, and API server.
"""

__version__ = "0.1.0"
