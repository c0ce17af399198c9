"""
Test stderr logging helpers.
"""

import pytest

from webpilot.core.events import PlanComplete, StepAction, StepResult, StepStart
from webpilot.utils import logger
from webpilot.utils.logger import format_payload, log, log_event, set_verbose, truncate


@pytest.fixture
def verbose():
    previous = logger.is_verbose()
    set_verbose(True)
    yield
    set_verbose(previous)


@pytest.fixture
def quiet():
    previous = logger.is_verbose()
    set_verbose(False)
    yield
    set_verbose(previous)


class TestTruncate:
    """Test excerpt cutting."""

    def test_short_text_unchanged(self):
        assert truncate("abc", 5) == "abc"
        assert truncate("abcde", 5) == "abcde"

    def test_long_text_marked(self):
        assert truncate("abcdef", 3) == "abc..."

    def test_none(self):
        assert truncate(None, 3) is None


class TestLog:
    """Test verbose gating."""

    def test_quiet_suppresses(self, quiet, capsys):
        log("Executor", "hidden")
        assert capsys.readouterr().err == ""

    def test_force_prints_when_quiet(self, quiet, capsys):
        log("Executor", "shown", force=True)
        assert capsys.readouterr().err == "[Executor] shown\n"

    def test_bare_tag(self, verbose, capsys):
        log("")
        assert capsys.readouterr().err == "\n"


class TestLogEvent:
    """Test one-line event rendering."""

    def test_format_payload(self):
        assert format_payload(StepStart(step_number=2).to_dict()) == "STEP_START stepNumber=2"
        assert format_payload(PlanComplete(plan=("a", "b")).to_dict()) == "PLAN_COMPLETE plan=[2 items]"

    def test_long_values_truncated(self):
        line = format_payload(StepResult(success=True, data="x" * 200).to_dict(), limit=10)
        assert line == "STEP_RESULT success=True data='xxxxxxxxxx...'"

    def test_params_shown(self):
        line = format_payload(StepAction(action="click", params={"selector": "#go"}).to_dict())
        assert line == "STEP_ACTION action='click' params={'selector': '#go'}"

    def test_log_event_verbose(self, verbose, capsys):
        log_event("Executor", StepStart(step_number=1))
        assert capsys.readouterr().err == "[Executor] STEP_START stepNumber=1\n"

    def test_log_event_quiet(self, quiet, capsys):
        log_event("Executor", StepStart(step_number=1))
        assert capsys.readouterr().err == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
