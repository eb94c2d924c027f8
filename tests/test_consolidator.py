"""Tests for address normalization and duplicate consolidation."""

import pytest

from dealtriage.config import Settings
from dealtriage.errors import ConflictError
from dealtriage.ingestion import DeduplicationConsolidator, normalize_address
from dealtriage.ingestion.consolidator import price_change_percent
from dealtriage.models import ConsolidationMetadata, IngestLeadRequest


@pytest.fixture
def consolidator(store, settings) -> DeduplicationConsolidator:
    return DeduplicationConsolidator(store, settings)


def request(**overrides) -> IngestLeadRequest:
    fields = {"address": "123 Main Street, Apt. 4", "listing_price": 150000, "source": "zillow"}
    fields.update(overrides)
    return IngestLeadRequest(**fields)


class TestNormalizeAddress:
    """Tests for duplicate-matching address keys."""

    @pytest.mark.parametrize(
        "first,second",
        [
            ("123 Main Street, Apt. 4", "123  main st apt 4"),
            ("12 N. Elm Ave #3", "12 North Elm Avenue Unit 3"),
            ("9 Oak Blvd Suite 200", "9 OAK BOULEVARD STE 200"),
        ],
    )
    def test_equivalent(self, first, second):
        assert normalize_address(first) == normalize_address(second)

    def test_different_numbers(self):
        assert normalize_address("12 Elm St") != normalize_address("14 Elm St")


class TestPriceChange:
    """Tests for price change percentages."""

    def test_percent(self):
        assert price_change_percent(150000, 135000) == pytest.approx(-10)

    def test_no_old_price(self):
        assert price_change_percent(0, 135000) is None


class TestIngest:
    """Tests for create-or-consolidate."""

    def test_new_lead(self, consolidator):
        lead, summary = consolidator.ingest(request(tags=["absentee"]))

        assert summary is None
        assert lead.normalized_address == "123 main st apt 4"
        assert lead.original_listing_price == 150000
        assert lead.sources == ["zillow"]
        assert lead.units == 1

    def test_duplicate_consolidates(self, consolidator, store):
        first, _ = consolidator.ingest(request(tags=["absentee"]))

        lead, summary = consolidator.ingest(
            request(address="123 main st apt 4", listing_price=135000, source="redfin", tags=["absentee", "vacant"])
        )

        assert lead.id == first.id
        assert len(store.list_leads()) == 1
        assert lead.listing_price == 135000
        assert lead.original_listing_price == 150000
        assert lead.consolidation_count == 1
        assert lead.sources == ["zillow", "redfin"]
        assert lead.tags == ["absentee", "vacant"]
        assert lead.version == 2
        assert summary.price_change_percent == pytest.approx(-10)
        assert summary.is_price_dropped
        assert summary.is_material_change
        assert isinstance(lead.metadata[-1], ConsolidationMetadata)
        assert lead.metadata[-1].source == "redfin"

    def test_same_price_is_not_material(self, consolidator):
        consolidator.ingest(request())

        _, summary = consolidator.ingest(request(listing_price=150500))

        assert not summary.is_material_change
        assert not summary.is_price_dropped

    def test_gaps_filled_edits_kept(self, consolidator):
        consolidator.ingest(request(notes="Motivated seller"))

        lead, _ = consolidator.ingest(
            request(notes="Scraped description", square_footage=1100, seller_phone="555-0100")
        )

        assert lead.notes == "Motivated seller"
        assert lead.square_footage == 1100
        assert lead.seller_phone == "555-0100"

    def test_archived_lead_is_revived(self, consolidator, store):
        """Re-ingesting an archived lead brings it back, not a duplicate."""
        first, _ = consolidator.ingest(request())
        first.archived = True
        store.update_lead(first, expected_version=first.version)

        lead, summary = consolidator.ingest(request(listing_price=140000))

        assert lead.id == first.id
        assert not lead.archived
        assert summary.was_revived
        assert len(store.list_leads()) == 1

    def test_archived_conflict_when_revival_disabled(self, store, tmp_path):
        consolidator = DeduplicationConsolidator(
            store, Settings(data_dir=tmp_path, revive_archived_on_ingest=False)
        )
        first, _ = consolidator.ingest(request())
        first.archived = True
        store.update_lead(first, expected_version=first.version)

        with pytest.raises(ConflictError):
            consolidator.ingest(request(listing_price=140000))

        leads = store.list_leads()
        assert len(leads) == 1
        assert leads[0].archived
        assert leads[0].listing_price == 150000
