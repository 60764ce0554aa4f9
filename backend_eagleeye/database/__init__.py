"""
Database layer: report persistence.

SqlReportStore works on any SQLAlchemy URL (PostgreSQL via DATABASE_URL, SQLite otherwise).
"""

from backend_eagleeye.database.report_store import ReportStore, SqlReportStore, StoredReport

__all__ = ["ReportStore", "SqlReportStore", "StoredReport"]
