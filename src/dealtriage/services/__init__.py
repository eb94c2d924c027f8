"""Service layer: lead operations, edit sessions and background polling."""

from .edits import CommitResult, LeadEditSession
from .lead_service import LeadService, MessageSender
from .polling import UnreadCountPoller

__all__ = [
    "CommitResult",
    "LeadEditSession",
    "LeadService",
    "MessageSender",
    "UnreadCountPoller",
]
