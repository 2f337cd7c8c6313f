"""
Click ledger: the durable log of clicks and their one-time conversion.

Every write goes through the caller's session so that the caller owns the
transaction boundary (commit/rollback). Reads used for EPC aggregation are
plain SELECTs and may observe a slightly stale snapshot.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import case, func, update
from sqlalchemy.orm import Session

from survai.core.time import ensure_utc
from survai.models.models import ClickTrack


@dataclass(frozen=True)
class ClickRecord:
    """Detached, read-only view of one ledger row."""

    id: str
    click_id: str
    offer_id: str
    response_id: str | None
    session: dict[str, Any]
    status: str
    converted: bool
    converted_at: datetime | None
    revenue: Decimal | None
    clicked_at: datetime | None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: ClickTrack) -> "ClickRecord":
        return cls(
            id=str(row.id),
            click_id=str(row.click_id),
            offer_id=str(row.offer_id),
            response_id=(str(row.response_id) if row.response_id else None),
            session=dict(row.session_data or {}),
            status=str(row.status),
            converted=bool(row.converted),
            converted_at=ensure_utc(row.converted_at),
            revenue=(Decimal(str(row.revenue)) if row.revenue is not None else None),
            clicked_at=ensure_utc(row.clicked_at),
            metadata=dict(row.click_metadata or {}),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "clickId": self.click_id,
            "offerId": self.offer_id,
            "responseId": self.response_id,
            "session": self.session,
            "status": self.status,
            "converted": self.converted,
            "convertedAt": self.converted_at.isoformat() if self.converted_at else None,
            "revenue": float(self.revenue) if self.revenue is not None else 0.0,
            "clickedAt": self.clicked_at.isoformat() if self.clicked_at else None,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class LedgerTotals:
    total_clicks: int
    total_conversions: int
    total_revenue: Decimal


class ClickLedger:
    """Row-level access to the `click_tracks` table."""

    def append(
        self,
        db: Session,
        *,
        click_id: str,
        offer_id: str,
        response_id: str | None,
        session_data: dict[str, Any],
        metadata: dict[str, Any],
        clicked_at: datetime,
    ) -> ClickTrack:
        row = ClickTrack(
            click_id=click_id,
            offer_id=offer_id,
            response_id=response_id,
            session_data=session_data,
            status="VALID",
            converted=False,
            click_metadata=metadata,
            clicked_at=clicked_at,
        )
        db.add(row)
        db.flush()
        return row

    def find_by_click_id(self, db: Session, click_id: str, *, for_update: bool = False) -> ClickTrack | None:
        query = db.query(ClickTrack).filter(ClickTrack.click_id == click_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def mark_converted(
        self,
        db: Session,
        click_id: str,
        *,
        revenue: Decimal,
        converted_at: datetime,
    ) -> bool:
        """
        Flip `converted` for one click if and only if it is still unconverted.

        Returns False when another transaction converted the click first.
        """
        result = db.execute(
            update(ClickTrack)
            .where(ClickTrack.click_id == click_id, ClickTrack.converted.is_(False))
            .values(converted=True, converted_at=converted_at, revenue=revenue)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0) == 1

    def totals(
        self,
        db: Session,
        *,
        offer_ids: Iterable[str] | None = None,
        since: datetime | None = None,
    ) -> LedgerTotals:
        query = db.query(
            func.count(ClickTrack.id),
            func.coalesce(func.sum(case((ClickTrack.converted.is_(True), 1), else_=0)), 0),
            func.coalesce(
                func.sum(case((ClickTrack.converted.is_(True), ClickTrack.revenue), else_=0)),
                0,
            ),
        )
        if offer_ids is not None:
            ids = [str(offer_id) for offer_id in offer_ids]
            if not ids:
                return LedgerTotals(0, 0, Decimal("0"))
            query = query.filter(ClickTrack.offer_id.in_(ids))
        if since is not None:
            query = query.filter(ClickTrack.clicked_at >= since)

        clicks, conversions, revenue = query.one()
        return LedgerTotals(
            total_clicks=int(clicks or 0),
            total_conversions=int(conversions or 0),
            total_revenue=Decimal(str(revenue or 0)),
        )
