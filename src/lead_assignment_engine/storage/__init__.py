"""Storage layer for leads, rules and the assignment ledger."""

from .database import AssignmentDatabase
from .models import Lead, LeadStatus, LeadSource

__all__ = ["AssignmentDatabase", "Lead", "LeadStatus", "LeadSource"]
