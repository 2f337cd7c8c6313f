"""Offer value object shared by tracking, URL generation and ranking."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from survai.models.models import Offer

ACTIVE_STATUS = "ACTIVE"


@dataclass(frozen=True)
class OfferView:
    id: str
    title: str
    status: str
    destination_url: str
    pixel_url: str | None = None
    description: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS

    @classmethod
    def from_row(cls, row: Offer) -> "OfferView":
        return cls(
            id=str(row.id),
            title=str(row.title),
            status=str(row.status),
            destination_url=str(row.destination_url),
            pixel_url=row.pixel_url or None,
            description=row.description or None,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "destinationUrl": self.destination_url,
            "pixelUrl": self.pixel_url,
        }


def load_offer(db: Session, offer_id: str) -> OfferView | None:
    row = db.get(Offer, offer_id)
    if row is None:
        return None
    return OfferView.from_row(row)


def load_active_offers(db: Session) -> list[OfferView]:
    """Active offers, oldest first; list position is their static order."""
    rows = (
        db.query(Offer)
        .filter(Offer.status == ACTIVE_STATUS)
        .order_by(Offer.created_at.asc(), Offer.id.asc())
        .all()
    )
    return [OfferView.from_row(row) for row in rows]
