"""Tests for settings loading."""

import pydantic
import pytest

from dealtriage.config import Settings


class TestSettings:
    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DEALTRIAGE_DEFAULT_INGEST_TIER", "full")
        monkeypatch.setenv("DEALTRIAGE_MATERIAL_PRICE_CHANGE_PCT", "2.5")

        settings = Settings(data_dir=tmp_path)

        assert settings.default_ingest_tier == "full"
        assert settings.material_price_change_pct == 2.5

    def test_unknown_ingest_tier_rejected(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DEALTRIAGE_DEFAULT_INGEST_TIER", "deep")

        with pytest.raises(pydantic.ValidationError):
            Settings(data_dir=tmp_path)
