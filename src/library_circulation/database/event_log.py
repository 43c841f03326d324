"""
Circulation event log.

Every successful transition appends one event. Replaying an asset's events
from the start reproduces its lifecycle status, which is how stored status
is checked against history.
"""

from datetime import datetime

from sqlalchemy import select

from ..models.asset import AssetStatus
from ..models.circulation import CirculationEvent as EventModel
from ..models.circulation import CirculationEventType
from .repository import SessionRepository
from .schema import CirculationEvent as EventDB
from .session import safe_flush, safe_query

# Status each event type leaves the asset in; hold events do not move it
_STATUS_AFTER = {
    CirculationEventType.CHECKED_OUT: AssetStatus.CHECKED_OUT,
    CirculationEventType.CHECKED_IN: AssetStatus.AVAILABLE,
    CirculationEventType.MARKED_LOST: AssetStatus.LOST,
    CirculationEventType.MARKED_FOUND: AssetStatus.AVAILABLE,
}


class CirculationEventLog(SessionRepository):
    """Append-only audit trail bound to a caller-owned session."""

    def record(
        self,
        asset_id: int,
        event_type: CirculationEventType,
        at: datetime,
        library_card_id: int | None = None,
        hold_id: int | None = None,
    ) -> EventModel:
        row = EventDB(
            asset_id=asset_id,
            event_type=event_type,
            library_card_id=library_card_id,
            hold_id=hold_id,
            occurred_at=at,
        )
        self.session.add(row)
        safe_flush(self.session, "record circulation event")
        return EventModel.model_validate(row)

    def events(self, asset_id: int) -> list[EventModel]:
        """All events for the asset, oldest first."""
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(EventDB).where(EventDB.asset_id == asset_id).order_by(EventDB.id)
            )
            .scalars()
            .all(),
            "Failed to get circulation events",
        )
        return [EventModel.model_validate(row) for row in rows]

    def replay_status(self, asset_id: int) -> AssetStatus:
        """Status the asset should have given its history; new assets start available."""
        status = AssetStatus.AVAILABLE
        for event in self.events(asset_id):
            status = _STATUS_AFTER.get(event.event_type, status)
        return status
