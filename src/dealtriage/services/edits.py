"""Two-phase lead edits: stage locally, commit against the read version.

A LeadEditSession keeps the lead as it was read plus a set of pending
changes. The pending view can be shown immediately; commit() writes the
changes only if nobody else changed the lead in between, and rolls the
pending state back on conflict.
"""

import logging
from typing import Any, Optional

from pydantic import BaseModel

from ..errors import ConflictError, ValidationError
from ..models.lead import Lead
from .lead_service import LeadService

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "notes",
    "tags",
    "status",
    "follow_up_date",
    "follow_up_reason",
    "archived",
    "seller_phone",
    "seller_email",
    "agent_name",
}


class CommitResult(BaseModel):
    committed: bool
    lead: Lead
    conflict: Optional[str] = None


class LeadEditSession:
    """Pending edits to one lead.

    Example:
        session = LeadEditSession(service, lead_id)
        session.stage(notes="Seller wants to close in March")
        result = session.commit()
        if not result.committed:
            show(result.conflict, result.lead)
    """

    def __init__(self, service: LeadService, lead_id: str):
        self.service = service
        self.lead_id = lead_id
        self.base: Lead = service.get_lead(lead_id)
        self.pending: dict[str, Any] = {}

    @property
    def has_pending(self) -> bool:
        return bool(self.pending)

    @property
    def view(self) -> Lead:
        """The lead as the user sees it: read state plus pending changes."""
        return self.base.model_copy(update=self.pending)

    def stage(self, **changes: Any) -> Lead:
        """Record changes locally without writing them.

        Raises:
            ValidationError: If a field is not editable
        """
        for name in changes:
            if name not in EDITABLE_FIELDS:
                raise ValidationError(name, "field cannot be edited")
        self.pending.update(changes)
        return self.view

    def discard(self) -> Lead:
        self.pending.clear()
        return self.base

    def refresh(self) -> Lead:
        self.base = self.service.get_lead(self.lead_id)
        return self.base

    def commit(self) -> CommitResult:
        """Write pending changes if the lead is still at the read version.

        On conflict the pending changes are dropped and the session reloads
        the current lead, so the caller can re-apply its edit deliberately.
        """
        if not self.pending:
            return CommitResult(committed=True, lead=self.base)
        try:
            stored = self.service.update_fields(
                self.lead_id, self.base.version, **self.pending
            )
        except ConflictError as e:
            logger.info(f"Edit of lead {self.lead_id} rolled back: {e}")
            self.pending.clear()
            return CommitResult(committed=False, lead=self.refresh(), conflict=str(e))
        self.base = stored
        self.pending.clear()
        return CommitResult(committed=True, lead=stored)
