"""Persistence layer for projected cashflows.

Projected rows are regenerated from scratch whenever an instrument's
transactions or terms change, so the store replaces all PROJECTED rows of an
instrument at once. Rows already marked PAID are kept. It defaults to SQLite
for local development, but accepts any SQLAlchemy-compatible URL (e.g.
PostgreSQL/MySQL).
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, Numeric, String, create_engine, delete, select, update
from sqlalchemy.orm import declarative_base, sessionmaker

from invest_ledger.data_models import CashflowRow, CashflowStatus

logger = logging.getLogger(__name__)

Base = declarative_base()


class CashflowModel(Base):
    __tablename__ = "cashflows"

    id = Column(String(64), primary_key=True)
    investment_id = Column(String(64), index=True, nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(28, 10), nullable=False)
    currency = Column(String(8), nullable=False)
    type = Column(String(16), nullable=False)
    status = Column(String(16), index=True, nullable=False)
    description = Column(String(255), nullable=False)
    capital_residual = Column(Numeric(28, 10), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CashflowStore:
    """Database-backed cashflow store."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def replace_projected(self, investment_id: str, rows: Iterable[CashflowRow]) -> int:
        """Swap the PROJECTED rows of an instrument for ``rows``.

        The delete and the inserts run in one transaction, so readers never
        see a mix of old and new rows. Returns the number of rows inserted.
        """
        models = [
            CashflowModel(
                id=uuid4().hex,
                investment_id=investment_id,
                date=row.date,
                amount=row.amount,
                currency=row.currency,
                type=row.type.value,
                status=CashflowStatus.PROJECTED.value,
                description=row.description,
                capital_residual=row.capital_residual,
            )
            for row in rows
        ]
        with self._session_factory.begin() as session:
            session.execute(
                delete(CashflowModel).where(
                    CashflowModel.investment_id == investment_id,
                    CashflowModel.status == CashflowStatus.PROJECTED.value,
                )
            )
            session.add_all(models)
        logger.info("Stored %d projected cashflows for %s", len(models), investment_id)
        return len(models)

    def list_cashflows(self, investment_id: str, status: Optional[CashflowStatus] = None) -> List[Dict[str, Any]]:
        if not investment_id:
            return []
        query = select(CashflowModel).where(CashflowModel.investment_id == investment_id)
        if status is not None:
            query = query.where(CashflowModel.status == status.value)
        with self._session_factory() as session:
            rows = session.execute(query.order_by(CashflowModel.date.asc(), CashflowModel.type.desc())).scalars()
            return [self._to_dict(row) for row in rows]

    def mark_paid(self, investment_id: str, on_or_before: date) -> int:
        """Mark PROJECTED rows dated on or before ``on_or_before`` as PAID."""
        with self._session_factory.begin() as session:
            result = session.execute(
                update(CashflowModel)
                .where(
                    CashflowModel.investment_id == investment_id,
                    CashflowModel.status == CashflowStatus.PROJECTED.value,
                    CashflowModel.date <= on_or_before,
                )
                .values(status=CashflowStatus.PAID.value)
            )
            return result.rowcount

    @staticmethod
    def _to_dict(row: CashflowModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "investment_id": row.investment_id,
            "date": row.date.isoformat(),
            "amount": float(row.amount),
            "currency": row.currency,
            "type": row.type,
            "status": row.status,
            "description": row.description,
            "capital_residual": float(row.capital_residual) if row.capital_residual is not None else None,
        }


def create_store_from_env(url: str | None) -> CashflowStore:
    return CashflowStore(url or "sqlite:///cashflows.sqlite3")
