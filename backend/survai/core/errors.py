"""
Error taxonomy for click tracking and EPC ranking.

Each class carries the HTTP status the API layer maps it to. Ranking
failures never leave the ranking engine; they are logged and turned into
the static-order fallback.
"""
from __future__ import annotations


class TrackingError(Exception):
    """Base class for tracking/ranking errors."""

    status_code = 500


class ValidationError(TrackingError):
    """Missing or malformed required input."""

    status_code = 400


class NotFoundError(TrackingError):
    """A referenced session, offer, question or click does not exist."""

    status_code = 404


class InactiveResourceError(TrackingError):
    """The resource exists but is not in an active state."""

    status_code = 409


class InvalidSessionError(NotFoundError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Invalid session: Session ID {session_id} not found")


class InvalidOfferError(TrackingError):
    """Marker for click requests that point at an unusable offer."""

    def __init__(self, offer_id: str, message: str) -> None:
        self.offer_id = offer_id
        super().__init__(message)


class OfferNotFoundError(InvalidOfferError, NotFoundError):
    def __init__(self, offer_id: str) -> None:
        super().__init__(offer_id, f"Invalid offer: Offer ID {offer_id} not found")


class InactiveOfferError(InvalidOfferError, InactiveResourceError):
    def __init__(self, offer_id: str, status: str) -> None:
        self.status = status
        super().__init__(
            offer_id,
            f"Invalid offer: Offer ID {offer_id} is not active (status: {status})",
        )


class ClickNotFoundError(NotFoundError):
    def __init__(self, click_id: str) -> None:
        self.click_id = click_id
        super().__init__(f"Click ID {click_id} not found")


class ClickTrackingFailedError(TrackingError):
    """Storage failure while appending a click to the ledger."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Failed to track click: {cause}")


class ConversionFailedError(TrackingError):
    """Storage failure while marking a conversion."""

    def __init__(self, click_id: str, cause: BaseException) -> None:
        self.click_id = click_id
        self.cause = cause
        super().__init__(f"Failed to mark conversion for {click_id}: {cause}")


class RankingDegradedError(TrackingError):
    """An EPC lookup failed during ranking. Internal only."""

    def __init__(self, subject_id: str, cause: BaseException) -> None:
        self.subject_id = subject_id
        self.cause = cause
        super().__init__(f"EPC unavailable for {subject_id}: {cause!r}")
