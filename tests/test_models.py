"""Tests for statewarden data models."""

from statewarden.models import (
    CheckOutcome,
    CheckStatus,
    ComplianceResult,
    LogKind,
    StateLocation,
    SweepResult,
    TrackedState,
    ValidationLogEntry,
)


def test_log_kind_values():
    """Log kinds keep their stored string values."""
    assert LogKind.MANUAL_VALIDATION.value == "validation"
    assert LogKind.STATE_CHECK.value == "tfstate"


def test_result_counts():
    result = ComplianceResult(
        feature_passed={"a": True, "b": False, "c": False},
        fail_messages={"b": ["x"], "c": ["y", "z"]},
    )
    assert result.test_count == 3
    assert result.error_count == 2
    assert result.passed_count == 1
    assert not result.is_error


def test_result_equality_is_structural():
    first = ComplianceResult({"a": True}, {})
    second = ComplianceResult({"a": True}, {})
    assert first == second
    assert first != ComplianceResult({"a": False}, {"a": ["m"]})
    assert ComplianceResult.failed("x") != ComplianceResult.failed("y")


def test_failed_result():
    result = ComplianceResult.failed("failed: boom")
    assert result.is_error
    assert result.test_count == 0
    assert result.to_dict()["error"] == "failed: boom"
    assert ComplianceResult.from_dict(result.to_dict()) == result


def test_result_dict_omits_missing_error():
    data = ComplianceResult({"a": False}, {"a": ["m"]}).to_dict()
    assert data == {"feature_passed": {"a": False}, "fail_messages": {"a": ["m"]}}


def test_state_location_str():
    assert str(StateLocation("bucket", "env/prod.tfstate")) == "bucket:env/prod.tfstate"


def test_new_tracked_state():
    state = TrackedState.new("main", "bucket", "prod.tfstate")
    assert state.id
    assert state.tags == []
    assert state.never_checked
    assert state.last_compliance_result is None
    assert state.location == StateLocation("bucket", "prod.tfstate")
    assert TrackedState.new("main", "bucket", "prod.tfstate").id != state.id


def test_state_check_entry():
    previous = ComplianceResult({"a": True}, {})
    entry = ValidationLogEntry.state_check(
        '{"a": 2}', ComplianceResult({"a": False}, {"a": ["m"]}), '{"a": 1}', previous,
        StateLocation("bucket", "key"),
    )
    assert entry.kind == LogKind.STATE_CHECK
    assert entry.previous_result is previous
    assert entry.location_details == "bucket:key"


def test_sweep_failed_states():
    sweep = SweepResult(
        full_sweep=True,
        outcomes=[
            CheckOutcome("s1", CheckStatus.CHANGED),
            CheckOutcome("s2", CheckStatus.FETCH_FAILED),
            CheckOutcome("s3", CheckStatus.SKIPPED),
            CheckOutcome("s4", CheckStatus.TOOLING_FAILED),
            CheckOutcome("s5", CheckStatus.UNEXPECTED_ERROR),
        ],
    )
    assert sweep.failed_states == ["s2", "s4", "s5"]
