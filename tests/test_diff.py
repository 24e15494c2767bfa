"""Tests for state diffs and bounded diff summaries."""

import json

import pytest

from statewarden.diff import diff_lines, indent_unit, indentation_level, summarize_diff


def test_diff_lines():
    added, removed = diff_lines("\n\they\n\tmilan", "\n\they\n\tjoe")
    assert added == ["\tjoe"]
    assert removed == ["\tmilan"]


def test_diff_lines_is_membership_not_position():
    added, removed = diff_lines("a\nb\nc", "c\nb\na\na")
    assert added == []
    assert removed == []


def test_diff_lines_identical():
    assert diff_lines('{\n\t"a": 1\n}', '{\n\t"a": 1\n}') == ([], [])


@pytest.mark.parametrize(
    "a,b",
    [
        ("x\ny\nz", "y\nw"),
        ("", "one\ntwo"),
        ('{\n\t"a": 1\n}', '{\n\t"a": 2\n}'),
    ],
)
def test_diff_symmetry(a, b):
    forward_added, forward_removed = diff_lines(a, b)
    backward_added, backward_removed = diff_lines(b, a)
    assert forward_added == backward_removed
    assert forward_removed == backward_added


def test_indentation_level():
    assert indentation_level("no tabs") == 0
    assert indentation_level("\t\tvalue\t") == 2
    assert indentation_level("    spaces") == 0
    assert indentation_level("    spaces", "  ") == 2


def test_indent_unit():
    assert indent_unit(["{", "\t\"a\": 1", "}"]) == "\t"
    assert indent_unit(["{", "    \"a\": {", "      \"b\": 1", "}"]) == "  "
    assert indent_unit(["a", "b"]) == "\t"
    assert indent_unit([]) == "\t"


def test_summarize_diff_of_space_indented_state():
    state = {
        "resources": [
            {"instances": [{"attributes": {f"key_{i}": i for i in range(50)}}]},
        ]
    }
    added, _ = diff_lines("", json.dumps(state, indent=2))
    assert len(added) > 50

    summary = summarize_diff(added, 10)

    assert len(summary) <= 10
    assert summary[0] == "{"
    assert summary[-1] == "}"
    markers = [line for line in summary if "lines omitted" in line]
    assert markers
    assert all(line.startswith("  ") and "\t" not in line for line in markers)


def test_summarize_diff_within_limit_is_untouched():
    lines = ["{", "\t\"a\": 1", "}"]
    assert summarize_diff(lines, 10) == lines


def test_summarize_diff_collapses_deepest_level_first():
    lines = [
        "{",
        "\t\"a\": {",
        "\t\t\"x\": 1,",
        "\t\t\"y\": 2,",
        "\t\t\"z\": 3",
        "\t},",
        "\t\"b\": 2",
        "}",
    ]
    assert summarize_diff(lines, 6) == [
        "{",
        "\t\"a\": {",
        "\t\t... 3 lines omitted",
        "\t},",
        "\t\"b\": 2",
        "}",
    ]


def test_summarize_diff_collapses_further_until_budget_met():
    lines = ["{"] + ["\t\"k\": {"] + [f"\t\t\"v{i}\": {{" for i in range(3)] + [
        "\t\t\t\"deep\": 1"
    ] + ["\t\t}"] + ["\t}"] + ["}"]
    result = summarize_diff(lines, 4)
    assert result == ["{", "\t\"k\": {", "\t\t... 5 lines omitted", "\t}", "}"]
    assert len(result) == 5


def test_summarize_diff_stops_at_top_level():
    lines = [f"line {i}" for i in range(10)]
    assert summarize_diff(lines, 3) == lines


def test_summarize_diff_keeps_trailing_omitted_count():
    lines = ["a", "\tb", "\t\tc", "\t\td"]
    assert summarize_diff(lines, 3) == ["a", "\tb", "\t\t... 2 lines omitted"]


def test_summarize_diff_empty():
    assert summarize_diff([], 5) == []
