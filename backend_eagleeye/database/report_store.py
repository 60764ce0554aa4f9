"""
Report persistence: SQLAlchemy-backed store for assembled reports.

Uses DATABASE_URL when set; otherwise SQLite (REPORTS_DB_PATH or
eagleeye_reports.db). Reports are stored as JSON text with their request
parameters and owner; amounts inside are already strings, so no precision
is lost.
"""

from __future__ import annotations

import json
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Protocol

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend_eagleeye.eagleeye_logging import get_logger
from backend_eagleeye.reports.report_assembler import Report

logger = get_logger(__name__)

Base = declarative_base()

STATUS_COMPLETED = "COMPLETED"


class StoredReport(Base):
    """One generated report, owned by the identity that requested it."""

    __tablename__ = "reports"

    id = Column(String(32), primary_key=True)
    title = Column(String(256), nullable=False)
    description = Column(String(1024), nullable=True)
    wallet_data = Column(Text, nullable=False)  # Report.to_dict() as JSON
    parameters = Column(Text, nullable=True)  # request parameters as JSON
    status = Column(String(32), nullable=False, default=STATUS_COMPLETED)
    created_by = Column(String(128), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description or "",
            "walletData": json.loads(self.wallet_data),
            "parameters": json.loads(self.parameters) if self.parameters else None,
            "status": self.status,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class ReportStore(Protocol):
    """Persistence collaborator for reports."""

    def save(self, report: Report, parameters: dict[str, Any] | None = None) -> str: ...

    def get(self, report_id: str) -> dict[str, Any] | None: ...

    def list_for_owner(self, created_by: str, limit: int = 50) -> list[dict[str, Any]]: ...


class SqlReportStore:
    """ReportStore over any SQLAlchemy URL (PostgreSQL in production, SQLite locally and in tests)."""

    def __init__(self, database_url: str) -> None:
        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self._url = database_url
        self._engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)

    def init_db(self) -> None:
        """Create tables if missing. Safe to call on every startup."""
        try:
            Base.metadata.create_all(bind=self._engine)
            logger.info("report_store_init_db", url=self._url.split("?")[0].split("//")[-1])
        except Exception as e:
            logger.exception("report_store_init_db_failed", error=str(e))
            raise

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        """Single session; commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def save(
        self,
        report: Report,
        parameters: dict[str, Any] | None = None,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> str:
        """Persist report; returns its generated id."""
        now = datetime.now(timezone.utc)
        report_id = uuid.uuid4().hex
        count = report.summary.wallet_count
        with self._session_scope() as session:
            session.add(
                StoredReport(
                    id=report_id,
                    title=title or f"Wallet Analysis Report - {now.date().isoformat()}",
                    description=description or f"Analysis of {count} wallet(s)",
                    wallet_data=json.dumps(report.to_dict()),
                    parameters=json.dumps(parameters) if parameters is not None else None,
                    status=STATUS_COMPLETED,
                    created_by=report.created_by,
                    created_at=now,
                )
            )
        logger.info("report_saved", report_id=report_id, wallets=count, created_by=report.created_by)
        return report_id

    def get(self, report_id: str) -> dict[str, Any] | None:
        with self._session_scope() as session:
            row = session.get(StoredReport, report_id)
            return row.to_dict() if row is not None else None

    def list_for_owner(self, created_by: str, limit: int = 50) -> list[dict[str, Any]]:
        with self._session_scope() as session:
            rows = (
                session.query(StoredReport)
                .filter(StoredReport.created_by == created_by)
                .order_by(StoredReport.created_at.desc())
                .limit(limit)
                .all()
            )
            return [r.to_dict() for r in rows]
