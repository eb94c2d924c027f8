"""Merge re-ingested leads into existing records instead of duplicating them."""

import logging
from datetime import datetime, timezone
from typing import Optional

from ..config import Settings
from ..errors import ConflictError
from ..models.ingest import ConsolidationSummary, IngestLeadRequest
from ..models.lead import Lead
from ..models.metadata import ConsolidationMetadata, parse_metadata
from ..storage.lead_store import LeadStore
from .address import normalize_address

logger = logging.getLogger(__name__)

# Filled from the incoming candidate only when the lead has no value yet
FILL_IF_MISSING = (
    "city",
    "state",
    "zip_code",
    "seller_phone",
    "seller_email",
    "agent_name",
    "square_footage",
    "bedrooms",
    "bathrooms",
    "year_built",
    "units",
    "notes",
)


def price_change_percent(old_price: float, new_price: float) -> Optional[float]:
    if old_price <= 0:
        return None
    return (new_price - old_price) / old_price * 100


class DeduplicationConsolidator:
    """Detect duplicate lead candidates by normalized address and merge them.

    Archived leads are matched too. Whether a match on an archived lead
    revives it or is reported as a conflict is a configured policy.

    Example:
        consolidator = DeduplicationConsolidator(store)

        lead, summary = consolidator.ingest(request)
        if summary is not None and summary.is_material_change:
            schedule_reevaluation(lead)
    """

    def __init__(self, store: LeadStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or Settings()

    def build_lead(self, request: IngestLeadRequest, now: datetime) -> Lead:
        """Create a new lead from a candidate."""
        fields = request.model_dump(
            exclude={"metadata", "send_first_message", "units"}
        )
        return Lead(
            **fields,
            units=request.units or 1,
            normalized_address=normalize_address(request.address),
            original_listing_price=request.listing_price,
            metadata=[parse_metadata(raw) for raw in request.metadata],
            sources=[request.source],
            created_at=now,
            updated_at=now,
        )

    def merge(
        self,
        existing: Lead,
        request: IngestLeadRequest,
        now: datetime,
    ) -> tuple[Lead, ConsolidationSummary]:
        """Fold a duplicate candidate into an existing lead.

        Price is always taken from the candidate; other facts only fill gaps
        so user edits are never clobbered.

        Raises:
            ConflictError: If the existing lead is archived and re-ingestion
                is not allowed to revive it
        """
        was_revived = False
        if existing.archived:
            if not self.settings.revive_archived_on_ingest:
                raise ConflictError(
                    "Lead",
                    existing.id,
                    message=(
                        f"{request.address} matches archived lead {existing.id}; "
                        "unarchive it or enable revive-on-ingest"
                    ),
                )
            was_revived = True

        old_price = existing.listing_price
        new_price = request.listing_price
        change = price_change_percent(old_price, new_price)
        if change is None:
            is_material = new_price != old_price
        else:
            is_material = abs(change) >= self.settings.material_price_change_pct

        updates: dict = {}
        for name in FILL_IF_MISSING:
            incoming = getattr(request, name)
            if getattr(existing, name) is None and incoming is not None:
                updates[name] = incoming
        if request.verified_market_value is not None:
            updates["verified_market_value"] = request.verified_market_value

        tags = list(existing.tags)
        tags.extend(t for t in request.tags if t not in tags)
        sources = list(existing.sources)
        if request.source not in sources:
            sources.append(request.source)

        metadata = list(existing.metadata)
        metadata.extend(parse_metadata(raw) for raw in request.metadata)
        metadata.append(
            ConsolidationMetadata(
                source=request.source,
                previous_price=old_price,
                new_price=new_price,
                price_change_percent=change,
                consolidated_at=now,
            )
        )

        updates.update(
            listing_price=new_price,
            original_listing_price=existing.original_listing_price or old_price,
            archived=False,
            tags=tags,
            sources=sources,
            metadata=metadata,
            consolidation_count=existing.consolidation_count + 1,
            last_consolidated_at=now,
            last_consolidated_source=request.source,
        )
        merged = existing.model_copy(update=updates)

        summary = ConsolidationSummary(
            old_price=old_price,
            new_price=new_price,
            price_change_percent=change,
            is_price_dropped=new_price < old_price,
            is_material_change=is_material,
            was_revived=was_revived,
            old_score=existing.lead_score,
            new_score=existing.lead_score,
        )
        return merged, summary

    def ingest(
        self,
        request: IngestLeadRequest,
    ) -> tuple[Lead, Optional[ConsolidationSummary]]:
        """Create or consolidate a lead in one storage transaction.

        Returns:
            (stored lead, consolidation summary or None for a new lead)

        Raises:
            ConflictError: See merge()
        """
        now = datetime.now(timezone.utc)
        normalized = normalize_address(request.address)

        with self.store.transaction() as conn:
            existing = self.store.find_by_normalized_address(normalized, conn=conn)
            if existing is None:
                lead = self.store.insert_lead(self.build_lead(request, now), conn=conn)
                logger.info(f"New lead {lead.id} from {request.source}: {lead.address}")
                return lead, None

            merged, summary = self.merge(existing, request, now)
            lead = self.store.update_lead(merged, existing.version, conn=conn)

        logger.info(
            f"Consolidated {request.address} into lead {lead.id} "
            f"(price {summary.old_price:,.0f} -> {summary.new_price:,.0f}"
            f"{', revived' if summary.was_revived else ''})"
        )
        return lead, summary
