"""Supabase repository for reading organizer events."""

from dataclasses import dataclass

from supabase import Client

from barqpix.domain.events import EventSummary
from barqpix.services.photos import EventRepository


@dataclass
class SupabaseEventRepository(EventRepository):
    """Read-only access to the events table."""

    client: Client

    def get_event(self, event_id: str) -> EventSummary | None:
        """Return the event id, title and organizer."""
        response = (
            self.client.table("events")
            .select("id, title, organizer_id")
            .eq("id", event_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return EventSummary(
            id=str(row["id"]),
            title=row["title"],
            organizer_id=row["organizer_id"],
        )
