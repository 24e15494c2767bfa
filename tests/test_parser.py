"""Tests for the compliance output parser."""

import pytest

from statewarden.errors import ParseError
from statewarden.models import ComplianceResult
from statewarden.parser import feature_name_from_path, parse_compliance_output
from statewarden.tools import strip_ansi


def test_parse_compliance_output(compliance_output):
    result = parse_compliance_output(compliance_output)

    assert result.feature_passed == {
        "credentials": True,
        "data.example": True,
        "other": False,
    }
    assert result.fail_messages == {
        "credentials": [],
        "data.example": [],
        "other": [
            "aws_instance.example (aws_instance) does not have tags property.",
            "aws_instance.example2 (resource that supports tags) does not have Name property.",
            "aws_instance.example2 (resource that supports tags) does not have environment property.",
        ],
    }
    assert result.error_count == 1
    assert result.passed_count == 2
    assert result.test_count == 3
    assert not result.is_error


def test_parse_is_idempotent(compliance_output):
    assert parse_compliance_output(compliance_output) == parse_compliance_output(compliance_output)


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/a/b/credentials.feature", "credentials"),
        ("  /a/b/credentials.feature  ", "credentials"),
        ("myfile", "myfile"),
        ("/path/to/data.example.feature", "data.example"),
    ],
)
def test_feature_name_from_path(path, expected):
    assert feature_name_from_path(path) == expected


def test_feature_header_key_extraction():
    result = parse_compliance_output("Feature: Some Desc  # /a/b/credentials.feature")
    assert result.feature_passed == {"credentials": True}
    assert result.fail_messages == {"credentials": []}


@pytest.mark.parametrize(
    "line",
    [
        "Feature: no path at all",
        "Feature: two # hashes # /a/b/c.feature",
    ],
)
def test_malformed_feature_header_raises(line):
    with pytest.raises(ParseError, match="malformed feature header"):
        parse_compliance_output(f"preamble\n{line}\n")


def test_empty_output_is_not_a_parse_error():
    result = parse_compliance_output("")
    assert result == ComplianceResult()
    assert result.test_count == 0


def test_failures_before_first_feature_are_ignored():
    output = "Failure: stray failure\nFeature: A  # /x/a.feature\n"
    result = parse_compliance_output(output)
    assert result.feature_passed == {"a": True}
    assert result.fail_messages == {"a": []}


def test_failure_with_extra_colon_is_ignored():
    output = "Feature: A  # /x/a.feature\n  Failure: resource: has a colon\n"
    result = parse_compliance_output(output)
    assert result.feature_passed == {"a": True}


def test_failures_attach_to_current_feature():
    output = (
        "Feature: A  # /x/a.feature\n"
        "    Failure: first\n"
        "Feature: B  # /x/b.feature\n"
        "    Failure: second\n"
        "    Failure: third\n"
    )
    result = parse_compliance_output(output)
    assert result.feature_passed == {"a": False, "b": False}
    assert result.fail_messages == {"a": ["first"], "b": ["second", "third"]}


def test_progress_line_rewritten_with_carriage_return_is_not_a_header():
    output = strip_ansi("progress 10%\r\x1b[1mFeature: Tags  # /f/tags.feature\x1b[0m\n")
    assert parse_compliance_output(output).test_count == 0
