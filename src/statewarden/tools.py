"""Invoke the external state converter and compliance checker."""

import json
import logging
import re
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from statewarden.errors import CheckerError, ConversionError
from statewarden.models import ComplianceFeature

logger = logging.getLogger(__name__)

FEATURE_SUFFIX = ".feature"

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")


@dataclass(frozen=True)
class CheckRun:
    """Input handed to the checker and its ANSI-stripped combined output."""

    input_text: str
    output: str


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from tool output, leaving every other character."""
    return ANSI_ESCAPE.sub("", text)


def looks_like_json(content: bytes) -> bool:
    return content[:1] == b"{"


def select_features(features: list[ComplianceFeature], tags: list[str]) -> list[ComplianceFeature]:
    """Return enabled features sharing at least one tag with ``tags``."""
    wanted = set(tags)
    return [f for f in features if not f.disabled and wanted.intersection(f.tags)]


class ToolRunner:
    """Runs the converter and checker binaries with a bounded timeout.

    Every temporary artifact lives in a private directory that is removed
    on every exit path.
    """

    def __init__(
        self,
        converter_bin: str = "terraform",
        checker_bin: str = "terraform-compliance",
        timeout: float = 300.0,
    ):
        self._converter_bin = converter_bin
        self._checker_bin = checker_bin
        self._timeout = timeout

    def _run(self, args: list[str], error_cls: type[ConversionError] | type[CheckerError]):
        try:
            return subprocess.run(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            output = e.output.decode("utf-8", errors="replace") if e.output else ""
            raise error_cls(f"{args[0]} timed out after {self._timeout}s", strip_ansi(output)) from e
        except OSError as e:
            raise error_cls(f"can't exec {args[0]}: {e}") from e

    def convert_to_json(self, content: bytes) -> str:
        """Return ``content`` as pretty-printed JSON text.

        Content that already starts with ``{`` is passed through unchanged.

        Raises:
            ConversionError: the converter exited non-zero, produced no
                output, or produced output that is not JSON; or JSON content is
                not valid UTF-8.
        """
        if looks_like_json(content):
            try:
                return content.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ConversionError(f"state is not valid UTF-8: {e}") from e

        with tempfile.TemporaryDirectory(prefix="statewarden-convert-") as tmp:
            path = Path(tmp) / "state.bin"
            path.write_bytes(content)
            proc = self._run([self._converter_bin, "show", "-json", str(path)], ConversionError)

        output = proc.stdout.decode("utf-8", errors="replace")
        if proc.returncode != 0 or not output.strip():
            raise ConversionError(
                f"{self._converter_bin} exited with code {proc.returncode}", strip_ansi(output)
            )

        try:
            parsed = json.loads(output)
        except json.JSONDecodeError as e:
            raise ConversionError(f"can't prettify the json: {e}", strip_ansi(output)) from e
        return json.dumps(parsed, indent="\t", ensure_ascii=False)

    def run_compliance_check(
        self, json_content: bytes, features: list[ComplianceFeature]
    ) -> CheckRun:
        """Run the checker against ``json_content`` with one file per feature.

        The checker exits non-zero whenever a check fails, so the exit code
        is ignored; only a failure to run, a timeout, or empty output is an
        error.

        Raises:
            CheckerError: the checker could not run or produced no output.
        """
        if not json_content:
            raise CheckerError("empty file content")

        with tempfile.TemporaryDirectory(prefix="statewarden-check-") as tmp:
            base = Path(tmp)
            input_path = base / "compliance_input.json"
            features_path = base / "features"
            input_path.write_bytes(json_content)
            features_path.mkdir()
            for feature in features:
                (features_path / f"{feature.name}{FEATURE_SUFFIX}").write_text(feature.source)

            proc = self._run(
                [self._checker_bin, "-p", str(input_path), "-f", str(features_path)],
                CheckerError,
            )

        output = strip_ansi(proc.stdout.decode("utf-8", errors="replace"))
        if not output.strip():
            raise CheckerError(f"{self._checker_bin} produced no output (exit {proc.returncode})")
        if proc.returncode != 0:
            logger.debug("%s exited with code %s", self._checker_bin, proc.returncode)

        return CheckRun(input_text=json_content.decode("utf-8"), output=output)
