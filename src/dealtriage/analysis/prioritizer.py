"""Lead queue classification and ordering.

This module decides which triage queues a lead belongs to, how urgent it
is, and the exact order leads and properties are shown in.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from ..models.lead import (
    Lead,
    LeadQueueItem,
    LeadStatus,
    Pagination,
    Priority,
    QueueCounts,
    QueuePage,
    QueueType,
)
from ..models.property import Property, PropertyStatus

logger = logging.getLogger(__name__)


PROPERTY_STATUS_ORDER = {status: i for i, status in enumerate(PropertyStatus)}
PRIORITY_ORDER = {priority: i for i, priority in enumerate(Priority)}

NEGOTIATING_STATUSES = {LeadStatus.RESPONDING, LeadStatus.NEGOTIATING}

ACTION_NOW_MIN_SCORE = 5
URGENT_MIN_SCORE = 8
HIGH_MIN_SCORE = 6
MEDIUM_MIN_SCORE = 5
URGENT_WINDOW = timedelta(hours=12)

# (maximum MAO spread %, lead score), best first
SPREAD_SCORE_TIERS = [
    (0, 10),
    (5, 9),
    (10, 8),
    (15, 7),
    (20, 6),
    (25, 5),
    (30, 4),
    (40, 3),
    (50, 2),
]

# (minimum listing / ARV-guess ratio, lead score), worst first
PRICE_RATIO_SCORE_TIERS = [
    (0.95, 1),
    (0.90, 2),
    (0.85, 3),
    (0.80, 4),
    (0.75, 5),
    (0.70, 6),
    (0.65, 7),
    (0.60, 8),
    (0.55, 9),
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Lead scores
# =============================================================================


def score_from_spread(spread_percent: float) -> int:
    """Lead score (1-10) from how far the asking price sits above MAO."""
    for ceiling, score in SPREAD_SCORE_TIERS:
        if spread_percent <= ceiling:
            return score
    return 1


def estimate_lead_score(
    listing_price: float,
    square_footage: Optional[int],
    price_per_sqft: float = 160,
) -> int:
    """Quick 1-10 score from asking price vs. an area-average ARV guess.

    Used before any evaluation has run. Returns 0 when there is no living
    area to guess an ARV from.
    """
    if not square_footage:
        return 0
    arv_guess = square_footage * price_per_sqft
    ratio = listing_price / arv_guess
    for threshold, score in PRICE_RATIO_SCORE_TIERS:
        if ratio >= threshold:
            return score
    return 10


# =============================================================================
# Ordering
# =============================================================================


def _default_sort_key(lead: Lead) -> tuple:
    contacted = lead.last_contact_date is not None
    if contacted:
        score_key = 0.0
        contact_key = -_as_utc(lead.last_contact_date).timestamp()
    else:
        score_key = -lead.lead_score if lead.lead_score is not None else math.inf
        contact_key = 0.0
    return (
        lead.archived,
        contacted,
        score_key,
        contact_key,
        -(lead.units or 0),
        lead.address,
    )


def sort_property_leads(leads: Iterable[Lead]) -> list[Lead]:
    """Order leads for the default "all leads" view.

    1. Non-archived before archived
    2. Never-contacted before contacted
    3. Never-contacted by lead score, highest first (no score is lowest)
    4. Contacted by last contact date, most recent first
    5. Units, most first
    6. Address, case-sensitive ascending

    Returns a new list; the input is left untouched.
    """
    return sorted(leads, key=_default_sort_key)


def sort_properties(properties: Iterable[Property]) -> list[Property]:
    """Order the property board by status stage, then address."""
    return sorted(
        properties,
        key=lambda p: (PROPERTY_STATUS_ORDER[p.status], p.address),
    )


class LeadPrioritizer:
    """Classify leads into triage queues and page through them.

    Example:
        prioritizer = LeadPrioritizer()

        page = prioritizer.build_queue(leads, QueueType.ACTION_NOW)
        for item in page.leads:
            print(f"[{item.priority.value}] {item.lead.address}")
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """Initialize prioritizer.

        Args:
            clock: Returns the current time. Defaults to UTC now.
        """
        self._clock = clock or _utcnow

    def now(self) -> datetime:
        return _as_utc(self._clock())

    # =========================================================================
    # Classification
    # =========================================================================

    def is_follow_up_due(self, lead: Lead, now: Optional[datetime] = None) -> bool:
        if lead.follow_up_date is None:
            return False
        now = now or self.now()
        return _as_utc(lead.follow_up_date) <= now

    def in_queue(
        self,
        lead: Lead,
        queue: QueueType,
        now: Optional[datetime] = None,
    ) -> bool:
        """Whether a lead belongs to a queue. Membership is never stored."""
        if queue == QueueType.ARCHIVED:
            return lead.archived
        if lead.archived:
            return False
        if queue == QueueType.ALL:
            return True
        if queue == QueueType.FOLLOW_UP:
            return self.is_follow_up_due(lead, now)
        if queue == QueueType.NEGOTIATING:
            return lead.status in NEGOTIATING_STATUSES
        if queue == QueueType.ACTION_NOW:
            snoozed = (
                lead.follow_up_date is not None
                and not self.is_follow_up_due(lead, now)
            )
            return (
                lead.status == LeadStatus.NEW
                and (lead.lead_score or 0) >= ACTION_NOW_MIN_SCORE
                and not snoozed
            )
        return False

    def queues_for(self, lead: Lead, now: Optional[datetime] = None) -> list[QueueType]:
        now = now or self.now()
        return [q for q in QueueType if self.in_queue(lead, q, now)]

    def priority(self, lead: Lead, now: Optional[datetime] = None) -> Priority:
        """Attention level of a lead.

        Fresh high-scoring new leads are urgent; active conversations and
        good new leads are high.
        """
        now = now or self.now()
        score = lead.lead_score or 0
        if lead.status == LeadStatus.NEW:
            age = now - _as_utc(lead.created_at)
            if score >= URGENT_MIN_SCORE and age < URGENT_WINDOW:
                return Priority.URGENT
            if score >= HIGH_MIN_SCORE:
                return Priority.HIGH
        if lead.status in NEGOTIATING_STATUSES:
            return Priority.HIGH
        if score >= MEDIUM_MIN_SCORE:
            return Priority.MEDIUM
        return Priority.NORMAL

    # =========================================================================
    # Queues
    # =========================================================================

    def sort_queue(
        self,
        leads: Iterable[Lead],
        queue: QueueType,
        now: Optional[datetime] = None,
    ) -> list[Lead]:
        """Order leads within a queue.

        The all and archived views use the default ordering; the triage
        queues put the most urgent leads first and break ties with it.
        """
        if queue in (QueueType.ALL, QueueType.ARCHIVED):
            return sort_property_leads(leads)
        now = now or self.now()
        return sorted(
            leads,
            key=lambda lead: (
                PRIORITY_ORDER[self.priority(lead, now)],
                _default_sort_key(lead),
            ),
        )

    def count_queues(self, leads: Iterable[Lead], now: Optional[datetime] = None) -> QueueCounts:
        now = now or self.now()
        counts = {q: 0 for q in QueueType}
        for lead in leads:
            for q in self.queues_for(lead, now):
                counts[q] += 1
        return QueueCounts(
            action_now=counts[QueueType.ACTION_NOW],
            follow_up=counts[QueueType.FOLLOW_UP],
            negotiating=counts[QueueType.NEGOTIATING],
            all=counts[QueueType.ALL],
            archived=counts[QueueType.ARCHIVED],
        )

    def build_queue(
        self,
        leads: list[Lead],
        queue: QueueType = QueueType.ALL,
        page: int = 1,
        page_size: int = 25,
    ) -> QueuePage:
        """Classify, order and paginate leads for one queue.

        Args:
            leads: Every candidate lead (all queues)
            queue: Queue to show
            page: 1-based page number
            page_size: Leads per page

        Returns:
            QueuePage with the page of leads, counts for every queue and
            pagination info
        """
        now = self.now()
        members = [lead for lead in leads if self.in_queue(lead, queue, now)]
        ordered = self.sort_queue(members, queue, now)

        total = len(ordered)
        total_pages = math.ceil(total / page_size) if total else 0
        start = (page - 1) * page_size
        page_leads = ordered[start:start + page_size]

        items = [
            LeadQueueItem(
                lead=lead,
                priority=self.priority(lead, now),
                queues=self.queues_for(lead, now),
            )
            for lead in page_leads
        ]
        logger.debug(f"Queue {queue.value}: {total} leads, page {page}/{total_pages}")
        return QueuePage(
            leads=items,
            queue_counts=self.count_queues(leads, now),
            pagination=Pagination(
                page=page,
                page_size=page_size,
                total_items=total,
                total_pages=total_pages,
            ),
        )
