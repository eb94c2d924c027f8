"""Tests for the lead service: ingestion, evaluation writes and lifecycle."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from dealtriage.errors import ConflictError, NotFoundError, ValidationError
from dealtriage.models import (
    EvaluationTier,
    LeadStatus,
    QueueType,
    TriggerSource,
    ValuationKind,
    ValuationSource,
)
from dealtriage.services import LeadService, MessageSender

LISTING = {"address": "100 Cedar Lane", "listing_price": 180000, "square_footage": 1400}


class RecordingSender(MessageSender):
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.sent: list[str] = []

    async def send_first_message(self, lead):
        if self.error:
            raise self.error
        self.sent.append(lead.id)


def ingest(service: LeadService, **overrides):
    return asyncio.run(service.ingest_lead({**LISTING, **overrides}))


@pytest.fixture
def lead(service):
    """A lead ingested and evaluated once (ARV 250k, rehab 20k)."""
    return ingest(service).lead


class TestIngestLead:
    """Tests for create-or-consolidate with evaluation."""

    def test_new_lead_is_evaluated(self, service, verified_provider):
        result = ingest(service)

        assert not result.was_consolidated
        assert result.evaluation.score == 6
        assert result.lead.mao == 150000
        assert result.lead.arv == 250000
        assert result.lead.evaluation_tier == EvaluationTier.QUICK
        assert verified_provider.calls == 0

        history = service.get_evaluation_history(result.lead.id)
        assert history.total == 1
        assert history.items[0].trigger_source == TriggerSource.INGESTION

    def test_price_drop_reevaluates(self, service, lead):
        result = ingest(service, address="100 cedar ln", listing_price=150000, source="redfin")

        assert result.was_consolidated
        assert result.lead.id == lead.id
        assert result.consolidation.is_material_change
        assert result.consolidation.old_score == 6
        # MAO 150k against a 150k ask
        assert result.consolidation.new_score == 10
        history = service.get_evaluation_history(lead.id)
        assert history.total == 2
        assert history.items[0].trigger_source == TriggerSource.CONSOLIDATION

    def test_same_price_skips_evaluation(self, service, lead):
        result = ingest(service, source="redfin")

        assert result.was_consolidated
        assert result.evaluation is None
        assert service.get_evaluation_history(lead.id).total == 1

    def test_archived_lead_revived(self, service, lead):
        service.archive_lead(lead.id)

        result = ingest(service, listing_price=170000)

        assert result.lead.id == lead.id
        assert not result.lead.archived
        assert result.consolidation.was_revived

    def test_first_message(self, store, runner, settings):
        sender = RecordingSender()
        service = LeadService(store, runner=runner, message_sender=sender, settings=settings)

        result = ingest(service, send_first_message=True)

        assert result.auto_message_triggered
        assert sender.sent == [result.lead.id]
        assert result.lead.status == LeadStatus.CONTACTED
        assert result.lead.last_contact_date is not None

    def test_first_message_failure_keeps_lead(self, store, runner, settings):
        sender = RecordingSender(error=ConnectionError("SMS gateway down"))
        service = LeadService(store, runner=runner, message_sender=sender, settings=settings)

        result = ingest(service, send_first_message=True)

        assert not result.auto_message_triggered
        assert result.auto_message_error == "SMS gateway down"
        assert service.get_lead(result.lead.id).status == LeadStatus.NEW

    def test_invalid_candidate(self, service):
        with pytest.raises(ValidationError) as exc_info:
            ingest(service, listing_price=-1)
        assert exc_info.value.field == "listing_price"

    def test_price_out_of_bounds(self, service):
        with pytest.raises(ValidationError):
            ingest(service, listing_price=60_000_000)


class TestUpdateEvaluation:
    """Tests for manual estimate overrides."""

    def test_override_recomputes(self, service, lead):
        result = service.update_evaluation(lead.id, {"arv": 300000, "arv_note": "Recent flip on the block"})

        # 300000 x 0.7 - 20000 - 5000
        assert result.metrics.mao == 185000
        assert result.metrics.arv == 300000
        assert result.metrics.lead_score == 10
        assert result.version == lead.version + 1

        arvs = service.store.list_estimates(lead.id, ValuationKind.ARV)
        assert [e.source for e in arvs] == [ValuationSource.AI, ValuationSource.MANUAL]
        assert arvs[1].note == "Recent flip on the block"

    def test_override_survives_reevaluation(self, service, lead):
        service.update_evaluation(lead.id, {"arv": 300000})

        asyncio.run(service.evaluate(lead.id))

        assert service.get_lead(lead.id).arv == 300000

    def test_requires_a_value(self, service, lead):
        with pytest.raises(ValidationError) as exc_info:
            service.update_evaluation(lead.id, {"arv_note": "just a note"})
        assert exc_info.value.field == "update"

    def test_negative_value(self, service, lead):
        with pytest.raises(ValidationError) as exc_info:
            service.update_evaluation(lead.id, {"rehab_estimate": -10})
        assert exc_info.value.field == "rehab_estimate"

    def test_rent_bound(self, service, lead):
        with pytest.raises(ValidationError):
            service.update_evaluation(lead.id, {"rent_estimate": 150_000})

    def test_stale_version(self, service, lead):
        service.update_notes(lead.id, "Called twice")

        with pytest.raises(ConflictError):
            service.update_evaluation(lead.id, {"arv": 300000}, expected_version=lead.version)

        assert len(service.store.list_estimates(lead.id, ValuationKind.ARV)) == 1

    def test_unknown_lead(self, service):
        with pytest.raises(NotFoundError):
            service.update_evaluation("missing", {"arv": 300000})


class TestApplyEvaluation:
    """Tests for automated evaluation writes racing user edits."""

    def test_notes_survive_evaluation(self, service, lead):
        outcome = asyncio.run(service.runner.run(service.get_lead(lead.id)))
        service.update_notes(lead.id, "Seller prefers email")

        stored = service.apply_evaluation(outcome)

        assert stored.notes == "Seller prefers email"
        assert stored.arv == 250000
        assert service.get_evaluation_history(lead.id).total == 2

    def test_retries_after_race(self, service, store, lead, monkeypatch):
        outcome = asyncio.run(service.runner.run(service.get_lead(lead.id)))
        original = store.update_lead
        races = []

        def racing_update(target, expected_version, conn=None):
            if not races:
                races.append(expected_version)
                raise ConflictError("Lead", target.id, expected_version=expected_version)
            return original(target, expected_version, conn=conn)

        monkeypatch.setattr(store, "update_lead", racing_update)

        service.apply_evaluation(outcome)

        assert races == [lead.version]
        assert service.get_evaluation_history(lead.id).total == 2

    def test_gives_up(self, service, store, lead, monkeypatch):
        outcome = asyncio.run(service.runner.run(service.get_lead(lead.id)))

        def always_conflict(target, expected_version, conn=None):
            raise ConflictError("Lead", target.id, expected_version=expected_version)

        monkeypatch.setattr(store, "update_lead", always_conflict)

        with pytest.raises(ConflictError):
            service.apply_evaluation(outcome)
        assert service.get_evaluation_history(lead.id).total == 1


class TestBackgroundEvaluation:
    """Tests for scheduled re-runs."""

    def test_full_rerun(self, service, lead, verified_provider):
        async def scenario():
            task = service.rerun_evaluation(lead.id, "full")
            await task
            await asyncio.sleep(0)
            return service.evaluation_status(lead.id, "full")

        status = asyncio.run(scenario())

        assert status["state"] == "completed"
        assert verified_provider.calls == 1
        assert service.get_lead(lead.id).evaluation_tier == EvaluationTier.FULL

    def test_delete_clears_run_status(self, service, lead):
        async def scenario():
            await service.rerun_evaluation(lead.id)
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert service.scheduler.tracked_count() == 1

        service.delete_lead_permanently(lead.id)

        assert service.scheduler.tracked_count() == 0
        assert service.evaluation_status(lead.id, "quick")["state"] == "idle"

    def test_rerun_unknown_lead(self, service):
        async def scenario():
            service.rerun_evaluation("missing")

        with pytest.raises(NotFoundError):
            asyncio.run(scenario())


class TestLifecycle:
    """Tests for status, follow-ups, notes and archiving."""

    def test_contacted_stamps_date(self, service, lead):
        updated = service.update_status(lead.id, "Contacted")

        assert updated.status == LeadStatus.CONTACTED
        assert updated.last_contact_date is not None

    def test_responding_stamps_date(self, service, lead):
        assert service.update_status(lead.id, LeadStatus.RESPONDING).responded_date is not None

    def test_unknown_status(self, service, lead):
        with pytest.raises(ValidationError):
            service.update_status(lead.id, "Ghosted")

    def test_follow_up_queue(self, service, lead):
        due = datetime.now(timezone.utc) - timedelta(hours=1)
        service.schedule_follow_up(lead.id, due, reason="Check on inspection")

        page = service.get_queue(QueueType.FOLLOW_UP)
        assert [item.lead.id for item in page.leads] == [lead.id]

        service.cancel_follow_up(lead.id)
        assert service.get_queue("follow_up").leads == []

    def test_future_follow_up_leaves_action_now(self, service, lead):
        assert service.get_queue("action_now").pagination.total_items == 1

        service.schedule_follow_up(lead.id, datetime.now(timezone.utc) + timedelta(days=3))

        assert service.get_queue("action_now").pagination.total_items == 0

    def test_notes_conflict(self, service, lead):
        service.update_notes(lead.id, "First")

        with pytest.raises(ConflictError):
            service.update_notes(lead.id, "Second", expected_version=lead.version)
        assert service.get_lead(lead.id).notes == "First"

    def test_protected_fields(self, service, lead):
        with pytest.raises(ValidationError):
            service.update_fields(lead.id, version=99)

    def test_address_edit_moves_duplicate_key(self, service, lead):
        updated = service.update_fields(lead.id, address="99 Oak Avenue")

        assert updated.normalized_address == "99 oak ave"

        result = ingest(service, address="99 Oak Ave", source="redfin")
        assert result.was_consolidated
        assert result.lead.id == lead.id

        result = ingest(service, address="100 Cedar Lane")
        assert not result.was_consolidated
        assert result.lead.id != lead.id

    def test_address_edit_onto_existing_lead(self, service, lead):
        other = ingest(service, address="99 Oak Ave").lead

        with pytest.raises(ConflictError):
            service.update_fields(other.id, address="100 cedar ln")
        assert service.get_lead(other.id).normalized_address == "99 oak ave"

    def test_archive_round_trip(self, service, lead):
        service.archive_lead(lead.id)
        assert service.get_queue("archived").pagination.total_items == 1
        assert service.get_queue("all").pagination.total_items == 0

        service.unarchive_lead(lead.id)
        assert service.get_queue("all").pagination.total_items == 1

    def test_delete_permanently(self, service, lead):
        service.delete_lead_permanently(lead.id)

        with pytest.raises(NotFoundError):
            service.get_lead(lead.id)
        with pytest.raises(NotFoundError):
            service.get_evaluation_history(lead.id)


class TestQueries:
    """Tests for queue and history parameters."""

    def test_unknown_queue(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.get_queue("hot")
        assert exc_info.value.field == "type"

    def test_page_size_limit(self, service):
        with pytest.raises(ValidationError):
            service.get_queue("all", page_size=101)

    def test_search(self, service, lead):
        assert service.get_queue("all", search="cedar").pagination.total_items == 1
        assert service.get_queue("all", search="birch").pagination.total_items == 0

    def test_history_limit(self, service, lead):
        with pytest.raises(ValidationError):
            service.get_evaluation_history(lead.id, limit=0)
