"""Tests for exception hierarchy."""

import pytest

from creator.exceptions import (
    AuthError,
    ConfigError,
    CreatorError,
    DriverError,
    ResolutionError,
    SpawnError,
    StateTransitionError,
    StreamChunkError,
    TurnInProgressError,
    UnexpectedExitError,
)


class TestCreatorError:
    """Tests for base CreatorError."""

    def test_basic_error(self):
        """Test basic error creation."""
        err = CreatorError("Something went wrong")
        assert err.message == "Something went wrong"
        assert err.details == {}
        assert str(err) == "Something went wrong"

    def test_error_with_details(self):
        """Details are appended to the string form."""
        err = CreatorError("Error occurred", {"code": 500})
        assert err.details == {"code": 500}
        assert "500" in str(err)

    def test_config_error_is_creator_error(self):
        assert isinstance(ConfigError("bad"), CreatorError)


class TestDriverErrors:
    """Tests for driver errors and their hints."""

    @pytest.mark.parametrize(
        "error_class",
        [ResolutionError, AuthError, SpawnError, StreamChunkError, TurnInProgressError],
    )
    def test_inherits_from_driver_error(self, error_class):
        err = error_class("boom")
        assert isinstance(err, DriverError)
        assert isinstance(err, CreatorError)

    def test_resolution_error_records_candidates(self):
        """Tried candidates are kept for display."""
        err = ResolutionError("not found", tried=["python -m aider", "aider"])
        assert err.tried == ["python -m aider", "aider"]
        assert err.details["tried"] == ["python -m aider", "aider"]
        assert "aider-chat" in err.hint

    def test_spawn_error_fields(self):
        err = SpawnError("cannot start", errno=2, command="/bin/sh")
        assert err.errno == 2
        assert err.command == "/bin/sh"
        assert err.hint

    def test_unexpected_exit_fields(self):
        err = UnexpectedExitError("exited", returncode=1, stderr_tail="Traceback ...")
        assert err.returncode == 1
        assert err.stderr_tail == "Traceback ..."
        assert "Reset" in err.hint

    def test_auth_error_hint_mentions_login(self):
        assert "log in" in AuthError("no token").hint

    def test_state_transition_error(self):
        err = StateTransitionError("bad move", from_state="IDLE", to_state="RUNNING")
        assert err.from_state == "IDLE"
        assert err.to_state == "RUNNING"
        assert "IDLE" in str(err)
