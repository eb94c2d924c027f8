"""Lead operations: queues, ingestion, evaluation updates and lifecycle.

LeadService is the single entry point used by the API and the CLI. It is
constructed once per process with its collaborators and passed around;
nothing here keeps module-level state.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..analysis.prioritizer import LeadPrioritizer
from ..config import Settings
from ..errors import ConflictError, ValidationError
from ..evaluation.runner import EvaluationRunner
from ..evaluation.scheduler import EvaluationScheduler
from ..ingestion.address import normalize_address
from ..ingestion.consolidator import DeduplicationConsolidator
from ..models.evaluation import (
    EvaluationHistoryPage,
    EvaluationOutcome,
    EvaluationSummary,
    EvaluationUpdate,
    EvaluationUpdateResult,
    LeadMetrics,
    TriggerSource,
)
from ..models.ingest import IngestLeadRequest, IngestResult
from ..models.lead import EvaluationTier, Lead, LeadStatus, QueuePage, QueueType
from ..models.valuation import ValuationKind
from ..storage.lead_store import LeadStore
from ..valuation.confidence import ValuationLedger

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

MAX_PAGE_SIZE = 100
SEARCH_FIELDS = ("address", "city", "seller_phone", "seller_email", "agent_name", "notes")
PROTECTED_FIELDS = {"id", "version", "created_at", "updated_at", "normalized_address"}


def validated(model: Type[M], data: Any) -> M:
    """Validate raw input into a model, raising DealTriage's ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise from_pydantic(e) from e


def from_pydantic(error: PydanticValidationError) -> ValidationError:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "input"
    return ValidationError(field, first["msg"])


class MessageSender(ABC):
    """Sends the first outbound message to a new lead's seller."""

    @abstractmethod
    async def send_first_message(self, lead: Lead) -> None:
        """Send the message.

        Raises:
            Exception: Any transport failure; the caller reports it
        """
        pass


class LeadService:
    """Queue, ingestion and lifecycle operations over stored leads.

    Example:
        service = LeadService(LeadStore(), runner=EvaluationRunner(providers))

        result = await service.ingest_lead({"address": "12 Elm St", "listing_price": 150000})
        page = service.get_queue(QueueType.ACTION_NOW)
    """

    def __init__(
        self,
        store: LeadStore,
        runner: Optional[EvaluationRunner] = None,
        scheduler: Optional[EvaluationScheduler] = None,
        prioritizer: Optional[LeadPrioritizer] = None,
        consolidator: Optional[DeduplicationConsolidator] = None,
        message_sender: Optional[MessageSender] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.store = store
        self.runner = runner or EvaluationRunner(settings=self.settings)
        self.scheduler = scheduler or EvaluationScheduler()
        self.prioritizer = prioritizer or LeadPrioritizer()
        self.consolidator = consolidator or DeduplicationConsolidator(store, self.settings)
        self.message_sender = message_sender

    # =========================================================================
    # Reads
    # =========================================================================

    def get_lead(self, lead_id: str) -> Lead:
        return self.store.get_lead(lead_id)

    def get_queue(
        self,
        queue: QueueType | str = QueueType.ALL,
        page: int = 1,
        page_size: int = 25,
        search: Optional[str] = None,
    ) -> QueuePage:
        """One page of a triage queue plus counts for every queue.

        Raises:
            ValidationError: If the queue type or paging is invalid
        """
        try:
            queue = QueueType(queue)
        except ValueError as e:
            raise ValidationError("type", f"unknown queue '{queue}'") from e
        if page < 1:
            raise ValidationError("page", "must be at least 1")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError("page_size", f"must be between 1 and {MAX_PAGE_SIZE}")

        leads = self.store.list_leads()
        if search:
            needle = search.lower()
            leads = [
                lead
                for lead in leads
                if any(needle in (getattr(lead, f) or "").lower() for f in SEARCH_FIELDS)
            ]
        return self.prioritizer.build_queue(leads, queue, page, page_size)

    def get_evaluation_history(
        self,
        lead_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> EvaluationHistoryPage:
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError("limit", f"must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValidationError("offset", "must be non-negative")
        self.store.get_lead(lead_id)
        items, total = self.store.list_history(lead_id, limit, offset)
        return EvaluationHistoryPage(items=items, total=total)

    # =========================================================================
    # Simple mutations
    # =========================================================================

    def update_fields(
        self,
        lead_id: str,
        expected_version: Optional[int] = None,
        **changes: Any,
    ) -> Lead:
        """Apply validated field changes with optimistic concurrency.

        Raises:
            NotFoundError: Unknown lead
            ConflictError: The lead changed since expected_version
            ValidationError: A change is invalid
        """
        for name in changes:
            if name in PROTECTED_FIELDS or name not in Lead.model_fields:
                raise ValidationError(name, "field cannot be edited")

        lead = self.store.get_lead(lead_id)
        if expected_version is not None and expected_version != lead.version:
            raise ConflictError(
                "Lead",
                lead_id,
                expected_version=expected_version,
                actual_version=lead.version,
            )
        updated = lead.model_copy(deep=True)
        try:
            for name, value in changes.items():
                setattr(updated, name, value)
        except PydanticValidationError as e:
            raise from_pydantic(e) from e

        if "address" in changes:
            # Keep the duplicate-detection key in step with the address
            normalized = normalize_address(updated.address)
            if not normalized:
                raise ValidationError("address", "address is empty after normalization")
            existing = self.store.find_by_normalized_address(normalized)
            if existing is not None and existing.id != lead_id:
                raise ConflictError(
                    "Lead",
                    existing.id,
                    message=f"address '{updated.address}' already belongs to lead {existing.id}",
                )
            updated.normalized_address = normalized
        return self.store.update_lead(updated, lead.version)

    def schedule_follow_up(
        self,
        lead_id: str,
        follow_up_date: datetime,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Lead:
        lead = self.update_fields(
            lead_id,
            expected_version,
            follow_up_date=follow_up_date,
            follow_up_reason=reason,
        )
        logger.info(f"Follow-up for {lead_id} scheduled at {follow_up_date.isoformat()}")
        return lead

    def cancel_follow_up(self, lead_id: str, expected_version: Optional[int] = None) -> Lead:
        return self.update_fields(
            lead_id, expected_version, follow_up_date=None, follow_up_reason=None
        )

    def update_status(
        self,
        lead_id: str,
        status: LeadStatus | str,
        expected_version: Optional[int] = None,
    ) -> Lead:
        """Move a lead to a new status, stamping contact dates on first use."""
        try:
            status = LeadStatus(status)
        except ValueError as e:
            raise ValidationError("status", f"unknown status '{status}'") from e

        lead = self.store.get_lead(lead_id)
        now = datetime.now(timezone.utc)
        changes: dict[str, Any] = {"status": status}
        if status == LeadStatus.CONTACTED and lead.last_contact_date is None:
            changes["last_contact_date"] = now
        if status == LeadStatus.RESPONDING and lead.responded_date is None:
            changes["responded_date"] = now
        return self.update_fields(lead_id, expected_version, **changes)

    def update_notes(
        self,
        lead_id: str,
        notes: Optional[str],
        expected_version: Optional[int] = None,
    ) -> Lead:
        return self.update_fields(lead_id, expected_version, notes=notes or None)

    def archive_lead(self, lead_id: str, expected_version: Optional[int] = None) -> Lead:
        lead = self.update_fields(lead_id, expected_version, archived=True)
        logger.info(f"Archived lead {lead_id}")
        return lead

    def unarchive_lead(self, lead_id: str, expected_version: Optional[int] = None) -> Lead:
        return self.update_fields(lead_id, expected_version, archived=False)

    def delete_lead_permanently(self, lead_id: str) -> None:
        """Irreversibly delete a lead with its estimates and history."""
        self.scheduler.forget(lead_id)
        self.store.delete_lead(lead_id)

    # =========================================================================
    # Evaluation
    # =========================================================================

    def _check_bounds(self, field: str, value: Optional[float], upper: float) -> None:
        if value is not None and value > upper:
            raise ValidationError(field, f"must not exceed {upper:,.0f}")

    def update_evaluation(
        self,
        lead_id: str,
        update: EvaluationUpdate | dict,
        expected_version: Optional[int] = None,
    ) -> EvaluationUpdateResult:
        """Record manual ARV/rehab/rent values and recompute MAO and spread.

        Each provided value becomes a new manual estimate; earlier estimates
        are kept.

        Raises:
            ValidationError: No value given, or a value out of bounds
            NotFoundError: Unknown lead
            ConflictError: The lead changed since expected_version
        """
        update = validated(EvaluationUpdate, update)
        overrides = [
            (ValuationKind.ARV, update.arv, update.arv_note),
            (ValuationKind.REHAB, update.rehab_estimate, update.rehab_note),
            (ValuationKind.RENT, update.rent_estimate, update.rent_note),
        ]
        overrides = [o for o in overrides if o[1] is not None]
        if not overrides:
            raise ValidationError("update", "provide at least one of arv, rehab_estimate, rent_estimate")
        self._check_bounds("arv", update.arv, self.settings.max_price)
        self._check_bounds("rehab_estimate", update.rehab_estimate, self.settings.max_price)
        self._check_bounds("rent_estimate", update.rent_estimate, self.settings.max_monthly_rent)

        lead = self.store.get_lead(lead_id)
        version = lead.version if expected_version is None else expected_version

        ledger = ValuationLedger(lead_id, self.store.list_estimates(lead_id))
        new_estimates = [ledger.override(kind, value, note) for kind, value, note in overrides]
        patched = self._with_evaluation(lead, ledger, lead.evaluation_tier or EvaluationTier.QUICK)

        with self.store.transaction() as conn:
            stored = self.store.update_lead(patched, version, conn=conn)
            for estimate in new_estimates:
                self.store.add_estimate(estimate, conn=conn)

        return EvaluationUpdateResult(
            id=stored.id,
            metrics=LeadMetrics(
                arv=stored.arv,
                rehab_estimate=stored.rehab_estimate,
                rent_estimate=stored.rent_estimate,
                mao=stored.mao,
                spread_percent=stored.spread_percent,
                lead_score=stored.lead_score,
                is_disqualified=stored.is_disqualified,
            ),
            updated_at=stored.updated_at,
            version=stored.version,
        )

    def _with_evaluation(
        self,
        lead: Lead,
        ledger: ValuationLedger,
        tier: EvaluationTier,
        summary: Optional[EvaluationSummary] = None,
    ) -> Lead:
        """Copy of a lead with its evaluation fields recomputed from a ledger."""
        arv = ledger.value(ValuationKind.ARV)
        rehab = ledger.value(ValuationKind.REHAB)
        summary = summary or self.runner.summarize(lead, arv, rehab, tier)
        return lead.model_copy(
            update={
                "arv": arv,
                "rehab_estimate": rehab,
                "rent_estimate": ledger.value(ValuationKind.RENT),
                "mao": summary.mao,
                "spread_percent": summary.mao_spread_percent,
                "lead_score": summary.score,
                "is_disqualified": summary.is_disqualified,
                "disqualify_reason": summary.disqualify_reason,
            }
        )

    def apply_evaluation(self, outcome: EvaluationOutcome) -> Lead:
        """Persist an evaluation run.

        Only evaluation fields are written. On a concurrent edit the lead is
        re-read and the evaluation merged onto the fresh copy, so user
        changes such as notes survive.

        Raises:
            ConflictError: If every merge attempt raced another writer
        """
        attempts = self.settings.evaluation_write_retries
        for attempt in range(1, attempts + 1):
            lead = self.store.get_lead(outcome.lead_id)
            ledger = ValuationLedger(lead.id, self.store.list_estimates(lead.id))
            for estimate in outcome.estimates:
                ledger.record(estimate)

            patched = self._with_evaluation(lead, ledger, outcome.tier)
            patched = patched.model_copy(
                update={
                    "last_evaluated_at": outcome.history.evaluated_at,
                    "evaluation_tier": outcome.tier,
                    "neighborhood_grade": outcome.neighborhood_grade or lead.neighborhood_grade,
                }
            )
            try:
                with self.store.transaction() as conn:
                    stored = self.store.update_lead(patched, lead.version, conn=conn)
                    for estimate in outcome.estimates:
                        self.store.add_estimate(estimate, conn=conn)
                    self.store.add_history(outcome.history, conn=conn)
                return stored
            except ConflictError:
                logger.info(
                    f"Lead {lead.id} changed during evaluation, merging "
                    f"(attempt {attempt}/{attempts})"
                )
        raise ConflictError(
            "Lead",
            outcome.lead_id,
            message=f"evaluation of lead {outcome.lead_id} lost {attempts} write races",
        )

    async def evaluate(
        self,
        lead_id: str,
        tier: EvaluationTier = EvaluationTier.QUICK,
        trigger: TriggerSource = TriggerSource.MANUAL,
    ) -> EvaluationOutcome:
        """Run an evaluation now and persist it."""
        lead = self.store.get_lead(lead_id)
        outcome = await self.runner.run(
            lead,
            tier,
            trigger,
            prior_estimates=self.store.list_estimates(lead_id),
        )
        self.apply_evaluation(outcome)
        return outcome

    def rerun_evaluation(
        self,
        lead_id: str,
        tier: EvaluationTier | str = EvaluationTier.QUICK,
    ) -> asyncio.Task:
        """Start a background re-evaluation. Must run inside an event loop."""
        tier = EvaluationTier(tier)
        self.store.get_lead(lead_id)
        return self.scheduler.schedule(
            lead_id, tier, lambda: self.evaluate(lead_id, tier, TriggerSource.MANUAL)
        )

    def cancel_evaluation(self, lead_id: str, tier: EvaluationTier | str) -> bool:
        return self.scheduler.cancel(lead_id, EvaluationTier(tier))

    def evaluation_status(self, lead_id: str, tier: EvaluationTier | str) -> dict:
        return self.scheduler.status(lead_id, EvaluationTier(tier))

    # =========================================================================
    # Ingestion
    # =========================================================================

    async def ingest_lead(self, request: IngestLeadRequest | dict) -> IngestResult:
        """Create a lead or consolidate it into an existing one.

        New leads get a first evaluation (the configured default tier) and,
        if asked, a first outbound message. Consolidated leads are
        re-evaluated only when their price changed materially.

        Raises:
            ValidationError: Malformed candidate
            ConflictError: Matches an archived lead that may not be revived
        """
        request = validated(IngestLeadRequest, request)
        self._check_bounds("listing_price", request.listing_price, self.settings.max_price)

        lead, consolidation = self.consolidator.ingest(request)

        if consolidation is not None:
            evaluation = None
            if consolidation.is_material_change:
                outcome = await self.evaluate(
                    lead.id, EvaluationTier.QUICK, TriggerSource.CONSOLIDATION
                )
                evaluation = outcome.summary
                consolidation = consolidation.model_copy(
                    update={"new_score": outcome.summary.score}
                )
            return IngestResult(
                lead=self.store.get_lead(lead.id),
                evaluation=evaluation,
                was_consolidated=True,
                consolidation=consolidation,
            )

        tier = EvaluationTier(self.settings.default_ingest_tier)
        outcome = await self.evaluate(lead.id, tier, TriggerSource.INGESTION)

        triggered, message_error = False, None
        if request.send_first_message:
            triggered, message_error = await self._send_first_message(lead.id)

        return IngestResult(
            lead=self.store.get_lead(lead.id),
            evaluation=outcome.summary,
            was_consolidated=False,
            auto_message_triggered=triggered,
            auto_message_error=message_error,
        )

    async def _send_first_message(self, lead_id: str) -> tuple[bool, Optional[str]]:
        """Send the first message; failures are reported, not raised."""
        if self.message_sender is None:
            return False, "No message sender configured"
        lead = self.store.get_lead(lead_id)
        try:
            await self.message_sender.send_first_message(lead)
        except Exception as e:
            logger.warning(f"First message to lead {lead_id} failed: {e}")
            return False, str(e)
        self.update_status(lead_id, LeadStatus.CONTACTED)
        return True, None
