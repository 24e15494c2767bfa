"""Tracked-state reconciliation: fetch if changed, convert, check, compare, commit.

A tick either sweeps every tracked state or, between sweeps, only the
states flagged for immediate recheck. States are checked independently;
a failure on one never stops the others.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from typing import Callable

from statewarden.aws.database import Database
from statewarden.errors import (
    ParseError,
    PersistenceError,
    ToolingError,
    TransientFetchError,
)
from statewarden.fetcher import ObjectStore, fetch_if_changed
from statewarden.models import (
    CheckOutcome,
    CheckStatus,
    ComplianceResult,
    SweepResult,
    TrackedState,
    ValidationLogEntry,
    utcnow,
)
from statewarden.parser import parse_compliance_output
from statewarden.tools import ToolRunner, select_features

logger = logging.getLogger(__name__)

NO_TESTS_PARSED = "No tests parsed.\nOutput:\n"


@dataclass
class SweepContext:
    """Scheduler state carried between ticks of the state loop."""

    last_full_sweep_at: float | None = None

    def full_sweep_due(self, now: float, interval: float) -> bool:
        return self.last_full_sweep_at is None or now - self.last_full_sweep_at >= interval


def result_from_output(output: str, fail_on_empty: bool) -> ComplianceResult:
    """Parse checker output, applying the zero-feature policy.

    Raises:
        ParseError: the output is malformed, or it has no features and
            ``fail_on_empty`` is set.
    """
    result = parse_compliance_output(output)
    if fail_on_empty and result.test_count == 0:
        raise ParseError(NO_TESTS_PARSED + output)
    return result


class StateMonitor:
    """Reconciles tracked states against their remote blobs and the checker."""

    def __init__(
        self,
        database: Database,
        store: ObjectStore,
        tools: ToolRunner,
        full_sweep_interval: float = 300.0,
        max_concurrent: int = 1,
        fail_on_empty_result: bool = True,
        on_log_entry: Callable[[TrackedState, ValidationLogEntry], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._db = database
        self._store = store
        self._tools = tools
        self._full_sweep_interval = full_sweep_interval
        self._max_concurrent = max_concurrent
        self._fail_on_empty_result = fail_on_empty_result
        self._on_log_entry = on_log_entry
        self._clock = clock
        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()

    def tick(self, context: SweepContext) -> SweepResult:
        """Run one tick: a full sweep when due, otherwise forced states only."""
        now = self._clock()
        full_sweep = context.full_sweep_due(now, self._full_sweep_interval)
        try:
            if full_sweep:
                context.last_full_sweep_at = now
                states = self._db.load_all_states()
            else:
                states = self._db.load_forced_states()
        except PersistenceError as e:
            logger.error("can't pull tfstates: %s", e)
            return SweepResult(full_sweep=full_sweep, outcomes=[])

        return SweepResult(full_sweep=full_sweep, outcomes=self.check_states(states))

    def check_states(self, states: list[TrackedState]) -> list[CheckOutcome]:
        if not states:
            return []

        outcomes: list[CheckOutcome] = []
        with ThreadPoolExecutor(max_workers=self._max_concurrent) as executor:
            futures = {executor.submit(self._check_exclusive, s): s for s in states}
            for future in as_completed(futures):
                state = futures[future]
                try:
                    outcomes.append(future.result())
                except Exception as e:
                    logger.exception(
                        "can't check TFState %s (%s): unexpected error", state.id, state.location
                    )
                    outcomes.append(
                        CheckOutcome(
                            state_id=state.id, status=CheckStatus.UNEXPECTED_ERROR, error=str(e)
                        )
                    )
        return outcomes

    def _check_exclusive(self, state: TrackedState) -> CheckOutcome:
        with self._in_flight_lock:
            if state.id in self._in_flight:
                logger.debug("State %s already being checked, skipping", state.id)
                return CheckOutcome(state_id=state.id, status=CheckStatus.SKIPPED)
            self._in_flight.add(state.id)
        try:
            return self.check_state(state)
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(state.id)

    def check_state(self, state: TrackedState) -> CheckOutcome:
        """Reconcile one tracked state and persist whatever changed."""
        previous_token = "" if state.force_recheck else state.last_modification_token
        try:
            fetched = fetch_if_changed(self._store, state.location, previous_token)
        except TransientFetchError as e:
            logger.warning("can't get tfstate %s from s3: %s", state.location, e)
            return CheckOutcome(state_id=state.id, status=CheckStatus.FETCH_FAILED, error=str(e))

        if not fetched.changed:
            return CheckOutcome(state_id=state.id, status=CheckStatus.SKIPPED)

        try:
            features = select_features(self._db.load_all_features(), state.tags)
        except PersistenceError as e:
            logger.error("can't get features from db: %s", e)
            return CheckOutcome(state_id=state.id, status=CheckStatus.PERSIST_FAILED, error=str(e))

        try:
            state_json = self._tools.convert_to_json(fetched.content)
            run = self._tools.run_compliance_check(state_json.encode("utf-8"), features)
            result = result_from_output(run.output, self._fail_on_empty_result)
        except (ToolingError, ParseError) as e:
            return self._record_failure(state, e)

        changed = (
            state_json != state.last_known_content_json or result != state.last_compliance_result
        )
        entry = ValidationLogEntry.state_check(
            state_json,
            result,
            state.last_known_content_json,
            state.last_compliance_result,
            state.location,
        )
        updated = replace(
            state,
            last_known_content_json=state_json,
            last_compliance_result=result,
            last_modification_token=fetched.token,
            last_checked_at=utcnow(),
            force_recheck=False,
        )
        try:
            self._db.save_log(entry)
            self._db.save_state(updated)
        except PersistenceError as e:
            logger.error("can't commit check of %s: %s", state.location, e)
            return CheckOutcome(state_id=state.id, status=CheckStatus.PERSIST_FAILED, error=str(e))

        if changed:
            logger.info("Bucket %s changed state. Registered in log %s", state.location, entry.id)
        if self._on_log_entry is not None:
            self._on_log_entry(updated, entry)

        return CheckOutcome(
            state_id=state.id,
            status=CheckStatus.CHANGED if changed else CheckStatus.UNCHANGED,
            log_entry=entry,
        )

    def _record_failure(self, state: TrackedState, error: Exception) -> CheckOutcome:
        logger.warning(
            "Can't check tfstate %s. Will update error status and move on: %s", state.location, error
        )
        failed = replace(
            state,
            last_compliance_result=ComplianceResult.failed(f"failed: {error}"),
            force_recheck=False,
        )
        try:
            self._db.save_state(failed)
        except PersistenceError as e:
            logger.error("can't save error status of %s: %s", state.location, e)
            return CheckOutcome(state_id=state.id, status=CheckStatus.PERSIST_FAILED, error=str(e))
        return CheckOutcome(state_id=state.id, status=CheckStatus.TOOLING_FAILED, error=str(error))
