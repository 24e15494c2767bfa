"""Tests for manual payload validation."""

from unittest.mock import MagicMock

import pytest

from statewarden.errors import ConversionError, ParseError
from statewarden.models import ComplianceFeature, LogKind
from statewarden.tools import CheckRun
from statewarden.validation import validate_payload


@pytest.fixture
def tools(compliance_output):
    tools = MagicMock()
    tools.convert_to_json.return_value = '{"planned_values": {}}'
    tools.run_compliance_check.return_value = CheckRun(
        input_text='{"planned_values": {}}', output=compliance_output
    )
    return tools


@pytest.fixture
def db():
    db = MagicMock()
    db.load_all_features.return_value = [
        ComplianceFeature("credentials", "", ["prod"]),
        ComplianceFeature("other", "", ["dev"]),
        ComplianceFeature("old", "", ["prod"], disabled=True),
    ]
    return db


def test_records_manual_log_entry(db, tools):
    entry = validate_payload(db, tools, b"plan-bytes")

    assert entry.kind == LogKind.MANUAL_VALIDATION
    assert entry.current_state_json == '{"planned_values": {}}'
    assert entry.current_result.error_count == 1
    assert entry.previous_result is None
    db.save_log.assert_called_once_with(entry)
    tools.convert_to_json.assert_called_once_with(b"plan-bytes")


def test_without_tags_every_enabled_feature_applies(db, tools):
    validate_payload(db, tools, b"{}")

    features = tools.run_compliance_check.call_args[0][1]
    assert [f.name for f in features] == ["credentials", "other"]


def test_tags_select_features(db, tools):
    validate_payload(db, tools, b"{}", tags=["prod"])

    features = tools.run_compliance_check.call_args[0][1]
    assert [f.name for f in features] == ["credentials"]


def test_tooling_failure_propagates_without_log(db, tools):
    tools.convert_to_json.side_effect = ConversionError("terraform exited with code 1")

    with pytest.raises(ConversionError):
        validate_payload(db, tools, b"garbage")
    db.save_log.assert_not_called()


def test_empty_output_is_rejected_by_default(db, tools):
    tools.run_compliance_check.return_value = CheckRun(input_text="{}", output="nothing here")

    with pytest.raises(ParseError, match="No tests parsed"):
        validate_payload(db, tools, b"{}")

    entry = validate_payload(db, tools, b"{}", fail_on_empty_result=False)
    assert entry.current_result.test_count == 0
