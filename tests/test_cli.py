"""Tests for the command-line interface."""

import pytest

from dealtriage.cli import build_parser, main
from dealtriage.storage import LeadStore


@pytest.fixture
def db(tmp_path) -> str:
    return str(tmp_path / "cli.db")


class TestParser:
    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_queue_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["queue", "--type", "hot"])


class TestCommands:
    """Tests for CLI commands end to end."""

    def test_analyze(self, capsys):
        code = main(
            ["analyze", "--offer", "180000", "--rehab", "20000", "--rent", "2000", "--arv", "250000"]
        )

        assert code == 0
        output = capsys.readouterr().out
        assert "Flip score" in output
        assert "Hold score" in output

    def test_analyze_legacy(self, capsys):
        code = main(["analyze", "--offer", "180000", "--arv", "250000", "--legacy"])

        assert code == 0
        assert "Legacy score" in capsys.readouterr().out

    def test_ingest_queue_history(self, db, capsys):
        assert main(["--db", db, "ingest", "12 Elm St", "150000", "--sqft", "1200"]) == 0
        assert "Created lead" in capsys.readouterr().out

        assert main(["--db", db, "queue"]) == 0
        assert "12 Elm St" in capsys.readouterr().out

        lead = LeadStore(db_path=db).list_leads()[0]
        assert main(["--db", db, "history", lead.id]) == 0
        assert "1 of 1 runs" in capsys.readouterr().out

    def test_consolidated_ingest(self, db, capsys):
        main(["--db", db, "ingest", "12 Elm St", "150000"])
        capsys.readouterr()

        assert main(["--db", db, "ingest", "12 elm street", "140000", "--source", "redfin"]) == 0
        assert "Consolidated" in capsys.readouterr().out

    def test_unknown_lead(self, db, capsys):
        assert main(["--db", db, "history", "missing"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_invalid_input(self, db):
        assert main(["--db", db, "ingest", "12 Elm St", "-5"]) == 1
