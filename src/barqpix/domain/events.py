"""Event domain models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class EventSummary:
    """Read-only view of an organizer's event."""

    id: str
    title: str
    organizer_id: str
