"""Line-level diffs between state JSON blobs, and bounded summaries of them."""

import math

OMITTED_MARKER = "... {count} lines omitted"


def diff_lines(old: str, new: str) -> tuple[list[str], list[str]]:
    """Return the lines added in ``new`` and removed from ``old``.

    Membership is by set, not position or count: a line is added when it
    appears nowhere in ``old``. Order follows the side the line comes from.
    """
    old_lines = old.split("\n")
    new_lines = new.split("\n")
    old_set = set(old_lines)
    new_set = set(new_lines)

    added = [line for line in new_lines if line not in old_set]
    removed = [line for line in old_lines if line not in new_set]
    return added, removed



def indent_unit(lines: list[str]) -> str:
    """Guess the indentation unit of ``lines``.

    A tab when any line is tab-indented, otherwise the largest run of spaces
    every space indentation is a multiple of. Defaults to a tab.
    """
    widths = []
    for line in lines:
        if line.startswith("\t"):
            return "\t"
        width = len(line) - len(line.lstrip(" "))
        if width:
            widths.append(width)
    return " " * math.gcd(*widths) if widths else "\t"


def indentation_level(line: str, unit: str = "\t") -> int:
    """Number of leading ``unit`` indents."""
    return (len(line) - len(line.lstrip(unit[0]))) // len(unit)


def summarize_diff(lines: list[str], limit: int) -> list[str]:
    """Compact ``lines`` to at most ``limit`` lines where possible.

    The deepest indentation levels are collapsed first into
    ``"... N lines omitted"`` markers, one level per round, until the
    budget is met or only top-level lines remain. Markers are indented
    with the same unit as the lines they replace.
    """
    unit = indent_unit(lines)
    max_depth = max((indentation_level(line, unit) for line in lines), default=0)
    result = lines

    while len(result) > limit:
        max_depth -= 1
        if max_depth <= 0:
            break

        marker_indent = unit * (max_depth + 1)
        compacted: list[str] = []
        omitted = 0
        for line in result:
            if indentation_level(line, unit) > max_depth:
                omitted += 1
                continue
            if omitted:
                compacted.append(marker_indent + OMITTED_MARKER.format(count=omitted))
                omitted = 0
            compacted.append(line)
        if omitted:
            compacted.append(marker_indent + OMITTED_MARKER.format(count=omitted))
        result = compacted

    return result
