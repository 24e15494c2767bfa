"""Manual validation of an arbitrary plan or state payload."""

import logging

from statewarden.aws.database import Database
from statewarden.models import ValidationLogEntry
from statewarden.monitor import result_from_output
from statewarden.tools import ToolRunner, select_features

logger = logging.getLogger(__name__)


def validate_payload(
    database: Database,
    tools: ToolRunner,
    content: bytes,
    tags: list[str] | None = None,
    fail_on_empty_result: bool = True,
) -> ValidationLogEntry:
    """Check ``content`` against enabled features and record a validation log entry.

    Without ``tags`` every enabled feature applies.

    Raises:
        ToolingError: conversion or the checker failed.
        ParseError: the checker output could not be parsed.
        PersistenceError: features could not be loaded or the entry saved.
    """
    features = database.load_all_features()
    if tags:
        features = select_features(features, tags)
    else:
        features = [f for f in features if not f.disabled]

    state_json = tools.convert_to_json(content)
    run = tools.run_compliance_check(state_json.encode("utf-8"), features)
    result = result_from_output(run.output, fail_on_empty_result)

    entry = ValidationLogEntry.manual(run.input_text, result)
    database.save_log(entry)
    logger.info(
        "Validation result: %d features passed, %d failed (log %s)",
        result.passed_count,
        result.error_count,
        entry.id,
    )
    return entry
