"""
Minimal smoke tests for the liftlog CLI.

Tests basic functionality:
- App runs without errors
- Sets are buffered locally and saved as one session
- Quota commands deny once the daily limit is used up
- Legacy logs migrate into the session history
"""

import json

import pytest
from typer.testing import CliRunner

from liftlog.cli.main import app


runner = CliRunner()


@pytest.fixture
def data_dir(temp_dir, monkeypatch):
    """Isolated data directory; no user config or user override leaks in."""
    monkeypatch.setenv("LIFTLOG_HOME", str(temp_dir))
    monkeypatch.delenv("LIFTLOG_USER", raising=False)
    monkeypatch.delenv("LIFTLOG_APP_ID", raising=False)
    return temp_dir


def invoke(data_dir, *args):
    return runner.invoke(app, [*args, "--data-dir", str(data_dir)])


class TestCLISmoke:
    """Basic smoke tests for CLI commands."""

    def test_app_help(self):
        """Test that app runs and shows help."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "liftlog" in result.output or "workout" in result.output.lower()

    def test_log_set_buffers_locally(self, data_dir):
        """Test log-set keeps the entry pending without writing a session."""
        result = invoke(data_dir, "log-set", "Bench Press", "8x3@60", "--rpe", "8")
        assert result.exit_code == 0
        assert "Logged Bench Press" in result.output

        result = invoke(data_dir, "show-pending", "--json")
        assert result.exit_code == 0
        pending = json.loads(result.stdout)
        entry = pending["logs"]["Bench Press"][0]
        assert (entry["reps"], entry["sets"], entry["weight"], entry["rpe"]) == (8, 3, 60.0, 8.0)
        assert pending["startedAt"]

        assert not (data_dir / "store").exists()

    def test_assisted_set(self, data_dir):
        """Test log-set records assistance as a negative weight."""
        result = invoke(data_dir, "log-set", "Assisted Pull Up", "6x2@-20")
        assert result.exit_code == 0
        assert "-20.0" in result.output

        pending = json.loads(invoke(data_dir, "show-pending", "--json").stdout)
        assert pending["logs"]["Assisted Pull Up"][0]["weight"] == -20.0

    def test_invalid_set_spec(self, data_dir):
        """Test log-set rejects a malformed set description."""
        result = invoke(data_dir, "log-set", "Squat", "lots")
        assert result.exit_code == 1
        assert "Invalid set format" in result.output

    def test_finish_saves_one_session(self, data_dir):
        """Test finish writes the whole workout and clears the buffer."""
        invoke(data_dir, "log-set", "Bench Press", "8x3@60")
        invoke(data_dir, "log-set", "Squat", "5x5@100")

        result = invoke(data_dir, "finish", "--duration", "45:00", "--routine", "Full Body", "--rating", "4")
        assert result.exit_code == 0
        assert "Workout saved" in result.output

        result = invoke(data_dir, "history", "--json")
        assert result.exit_code == 0
        sessions = json.loads(result.stdout)
        assert len(sessions) == 1
        assert set(sessions[0]["logs"]) == {"Bench Press", "Squat"}
        assert sessions[0]["routineTitle"] == "Full Body"

        result = invoke(data_dir, "show-pending", "--json")
        assert json.loads(result.stdout) is None

    def test_finish_without_workout(self, data_dir):
        """Test finish with nothing pending is a no-op."""
        result = invoke(data_dir, "finish")
        assert result.exit_code == 0
        assert "No workout in progress" in result.output

    def test_remove_set(self, data_dir):
        """Test remove-set deletes the entry by its id."""
        invoke(data_dir, "log-set", "Row", "10x3@50")
        entry_id = json.loads(invoke(data_dir, "show-pending", "--json").stdout)["logs"]["Row"][0]["date"]

        result = invoke(data_dir, "remove-set", "Row", entry_id)
        assert result.exit_code == 0

        result = invoke(data_dir, "show-pending", "--json")
        assert json.loads(result.stdout) is None

    def test_remove_unknown_set(self, data_dir):
        """Test remove-set fails for an entry that is not pending."""
        result = invoke(data_dir, "remove-set", "Row", "2026-01-01T00:00:00.000Z")
        assert result.exit_code == 1

    def test_discard(self, data_dir):
        """Test discard --force drops the pending workout."""
        invoke(data_dir, "log-set", "Row", "10x3@50")

        result = invoke(data_dir, "discard", "--force")
        assert result.exit_code == 0
        assert "Workout discarded" in result.output
        assert json.loads(invoke(data_dir, "show-pending", "--json").stdout) is None

    def test_streak_after_workout(self, data_dir):
        """Test streak counts today's workout."""
        invoke(data_dir, "log-set", "Squat", "5x5@100")
        invoke(data_dir, "finish")

        result = invoke(data_dir, "streak")
        assert result.exit_code == 0
        assert "Day streak" in result.output
        assert "Week streak" in result.output


class TestQuotaCommands:
    """Quota smoke tests."""

    def test_quota_use_until_denied(self, data_dir):
        """Test the sixth use of a limit-5 action exits with code 2."""
        for left in (4, 3, 2, 1, 0):
            result = invoke(data_dir, "quota-use", "generate_routine")
            assert result.exit_code == 0
            assert f"{left} of 5 left today" in result.output

        result = invoke(data_dir, "quota-use", "generate_routine")
        assert result.exit_code == 2
        assert "limit of 5 uses per day" in result.output

        result = invoke(data_dir, "quota-status", "generate_routine")
        assert result.exit_code == 0
        assert "Remaining today: 0 of 5" in result.output

    def test_quota_release(self, data_dir):
        """Test quota-release gives a use back."""
        invoke(data_dir, "quota-use", "generate_routine")

        result = invoke(data_dir, "quota-release", "generate_routine")
        assert result.exit_code == 0
        assert "Remaining today: 5 of 5" in result.output

    def test_unknown_action(self, data_dir):
        """Test an action without a configured limit is an error."""
        result = invoke(data_dir, "quota-use", "teleport")
        assert result.exit_code == 1


class TestMigrateCommand:
    """Legacy migration smoke tests."""

    def test_migrate_legacy_logs(self, data_dir):
        """Test migrate turns a legacy document into sessions, once."""
        legacy = data_dir / "store" / "artifacts" / "fitmanual-default" / "users" / "local" / "app_data" / "logs.json"
        legacy.parent.mkdir(parents=True)
        legacy.write_text(json.dumps({
            "Deadlift": [
                {"date": "2025-11-02T09:00:00.000Z", "weight": 140, "reps": 3, "sets": 3},
                {"date": "2025-11-05T09:00:00.000Z", "weight": 145, "reps": 3, "sets": 3},
            ],
            "coachAdvice": "Brace harder.",
        }))

        result = invoke(data_dir, "migrate")
        assert result.exit_code == 0
        assert "Migrated 2 sessions" in result.output

        sessions = json.loads(invoke(data_dir, "history", "--json").stdout)
        assert [s["date"] for s in sessions] == ["2025-11-05T09:00:00.000Z", "2025-11-02T09:00:00.000Z"]

        result = invoke(data_dir, "migrate")
        assert result.exit_code == 0
        assert "already migrated" in result.output

        result = invoke(data_dir, "coach-advice")
        assert "Brace harder." in result.output

    def test_migrate_without_legacy_logs(self, data_dir):
        """Test migrate with nothing to do."""
        result = invoke(data_dir, "migrate")
        assert result.exit_code == 0
        assert "No legacy logs" in result.output
