"""Output formatters for tracked states, validation logs and foreign resources."""

import json

from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from statewarden.diff import diff_lines, summarize_diff
from statewarden.models import (
    ComplianceResult,
    ForeignResource,
    LogKind,
    TrackedState,
    ValidationLogEntry,
)

PASSED = "PASSED"
FAILED = "FAILED"
NEVER = "never"


def _escape_md_cell(value: str) -> str:
    """Escape characters that break markdown table cells."""
    return value.replace("|", "\\|").replace("\n", " ")


def result_summary(result: ComplianceResult | None) -> str:
    if result is None:
        return "not checked yet"
    if result.is_error:
        return f"check failed: {result.error.splitlines()[0] if result.error else ''}"
    if result.error_count > 0:
        return f"not compliant ({result.error_count} of {result.test_count} failing)"
    return f"compliant ({result.test_count} features passing)"


def result_badge(result: ComplianceResult) -> str:
    if result.error_count > 0:
        return f"{FAILED} {result.error_count}/{result.test_count}"
    return f"{PASSED} {result.test_count}/{result.test_count}"


def state_row(state: TrackedState) -> dict:
    result = state.last_compliance_result
    return {
        "id": state.id,
        "account": state.account,
        "location": str(state.location),
        "tags": list(state.tags),
        "last_checked": state.last_checked_at.isoformat() if state.last_checked_at else NEVER,
        "force_recheck": state.force_recheck,
        "status": result_summary(result),
        "compliant": None if result is None or result.is_error else result.error_count == 0,
    }


def foreign_resource_row(resource: ForeignResource) -> dict:
    return {
        "id": resource.id,
        "discovered_at": resource.discovered_at.isoformat(),
        "resource_type": resource.resource_type,
        "resource_id": resource.resource_id,
        "is_exception": resource.is_exception,
    }


def log_row(entry: ValidationLogEntry) -> dict:
    row = {
        "id": entry.id,
        "kind": entry.kind.value,
        "date_time": entry.created_at.isoformat(),
        "details": entry.location_details,
        "compliance_errors": entry.current_result.error_count,
        "compliance_tests": entry.current_result.test_count,
        "compliance_errors_prev": 0,
        "compliance_tests_prev": 0,
        "result": result_badge(entry.current_result),
    }
    if entry.kind == LogKind.STATE_CHECK:
        added, removed = diff_lines(entry.previous_state_json, entry.current_state_json)
        row["lines_added"] = len(added)
        row["lines_removed"] = len(removed)
        if entry.previous_result is not None:
            row["compliance_errors_prev"] = entry.previous_result.error_count
            row["compliance_tests_prev"] = entry.previous_result.test_count
            row["result"] = f"{result_badge(entry.previous_result)} -> {row['result']}"
    return row


def format_json(rows: list[dict]) -> str:
    """Format rows as a JSON document."""
    return json.dumps({"count": len(rows), "items": rows}, indent=2)


def format_markdown(title: str, rows: list[dict]) -> str:
    """Format rows as a Markdown table."""
    if not rows:
        return f"## {title}\n\nNothing to show."

    columns = list(rows[0])
    lines = [
        f"## {title} — {len(rows)}",
        "",
        "| " + " | ".join(columns) + " |",
        "|" + "|".join("---" for _ in columns) + "|",
    ]
    for row in rows:
        cells = [_escape_md_cell(_cell(row.get(c))) for c in columns]
        lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines)


def _cell(value) -> str:
    if value is None:
        return "—"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


def format_table(title: str, rows: list[dict], label_key: str = "id") -> str:
    """Format rows as a Rich tree view, returned as a string."""
    if not rows:
        return "Nothing to show."

    console = Console(record=True, width=120)
    tree = Tree(f"[bold]{title}[/bold]")
    for row in rows:
        style = _row_style(row)
        branch = tree.add(Text(f"#{row[label_key]}", style=style))
        for key, value in row.items():
            if key == label_key:
                continue
            branch.add(Text(f"{key}: {_cell(value)}"))

    console.print(tree)
    return console.export_text()


def _row_style(row: dict) -> str:
    if row.get("compliant") is False or row.get("compliance_errors"):
        return "red"
    if row.get("is_exception"):
        return "dim"
    if row.get("compliant") is None and "compliant" in row:
        return "yellow"
    return "green"


def render(title: str, rows: list[dict], output_format: str) -> str:
    if output_format == "json":
        return format_json(rows)
    if output_format == "markdown":
        return format_markdown(title, rows)
    return format_table(title, rows)


def format_log_details(entry: ValidationLogEntry, diff_limit: int = 40) -> str:
    """Human-readable view of one log entry with a bounded state diff."""
    header = entry.location_details if entry.kind == LogKind.STATE_CHECK else entry.kind.value
    lines = [f"{header} (at {entry.created_at.isoformat()})", ""]

    if entry.kind == LogKind.STATE_CHECK:
        added, removed = diff_lines(entry.previous_state_json, entry.current_state_json)
        lines.append(f"Differences: +{len(added)}, -{len(removed)} lines")
        lines.extend(f"+ {line}" for line in summarize_diff(added, diff_limit))
        lines.extend(f"- {line}" for line in summarize_diff(removed, diff_limit))
        lines.append("")

    lines.extend(format_result(entry.current_result))
    return "\n".join(lines)


def format_result(result: ComplianceResult) -> list[str]:
    if result.is_error:
        return [f"Check failed: {result.error}"]

    lines = [f"Features ({result.passed_count}/{result.test_count} passing):"]
    for name in sorted(result.feature_passed):
        passed = result.feature_passed[name]
        lines.append(f"  {name}: {PASSED if passed else FAILED}")
        lines.extend(f"    - {msg}" for msg in result.fail_messages.get(name, []))
    return lines
