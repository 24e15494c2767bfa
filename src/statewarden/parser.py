"""Parse compliance checker output into a structured ComplianceResult."""

import os

from statewarden.errors import ParseError
from statewarden.models import ComplianceResult

FEATURE_PREFIX = "Feature:"
FAILURE_PREFIX = "Failure:"
FEATURE_SUFFIX = ".feature"


def feature_name_from_path(path: str) -> str:
    """Return the file name of a feature path without directory or ``.feature`` suffix.

    ``"/a/b/credentials.feature"`` gives ``"credentials"``.
    """
    return os.path.basename(path.strip()).removesuffix(FEATURE_SUFFIX)


def parse_compliance_output(output: str) -> ComplianceResult:
    """Extract which features passed and which failed from raw checker output.

    Lines before the first feature header and lines matching neither a
    header nor a failure are ignored. Zero parsed features is not an error
    here; callers decide whether an empty run is acceptable.

    Raises:
        ParseError: a feature header does not split into exactly two
            ``#``-delimited fields.
    """
    feature_passed: dict[str, bool] = {}
    fail_messages: dict[str, list[str]] = {}
    current: str | None = None

    for lineno, line in enumerate(output.split("\n"), start=1):
        if line.startswith(FEATURE_PREFIX):
            fields = line.split("#")
            if len(fields) != 2:
                raise ParseError(f"malformed feature header at line {lineno}: {line!r}")
            current = feature_name_from_path(fields[1])
            feature_passed[current] = True
            fail_messages[current] = []
            continue

        if current is None:
            continue

        trimmed = line.strip()
        if trimmed.startswith(FAILURE_PREFIX) and trimmed.count(":") == 1:
            feature_passed[current] = False
            fail_messages[current].append(trimmed.split(":")[1].strip())

    return ComplianceResult(feature_passed=feature_passed, fail_messages=fail_messages)
