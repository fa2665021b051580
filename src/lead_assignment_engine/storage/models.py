"""Data models for lead storage."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any


class LeadStatus(Enum):
    """Status of a lead in the pipeline."""

    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    WON = "won"
    LOST = "lost"
    ARCHIVED = "archived"


class LeadSource(Enum):
    """Channel a lead arrived through."""

    WEB_FORM = "web_form"
    MARKETPLACE = "marketplace"  # IndiaMART, TradeIndia feeds
    MESSAGING = "messaging"  # WhatsApp
    MANUAL = "manual"


@dataclass
class Lead:
    """An inbound sales inquiry scoped to one branch."""

    id: str
    branch_id: str
    source: LeadSource = LeadSource.MANUAL
    title: Optional[str] = None
    value: Optional[float] = None

    # Geography, normalized at ingestion
    region: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    industry: Optional[str] = None

    customer_id: Optional[str] = None
    status: LeadStatus = LeadStatus.NEW
    created_at: datetime = field(default_factory=datetime.now)

    # Written only by the assignment engine
    assigned_to: Optional[str] = None
    assignment_rule: Optional[str] = None
    assigned_at: Optional[datetime] = None

    raw_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        """Get best available name for display."""
        return self.title or f"Lead #{self.id}"

    @property
    def location(self) -> str:
        """Best available location string: state, falling back to city."""
        return self.state or self.city or ""

    @property
    def is_assigned(self) -> bool:
        return self.assigned_to is not None

    def age_hours(self, now: datetime) -> float:
        """Hours elapsed since the lead was created.

        Naive timestamps are local time; when only one side carries an
        offset, the aware side is converted to local time first.
        """
        created = self.created_at
        if (created.tzinfo is None) != (now.tzinfo is None):
            if created.tzinfo is not None:
                created = created.astimezone().replace(tzinfo=None)
            else:
                now = now.astimezone().replace(tzinfo=None)
        return (now - created).total_seconds() / 3600
