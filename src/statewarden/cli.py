"""CLI entrypoint for statewarden."""

import logging
import sys
import threading
from pathlib import Path

import boto3
import click

from statewarden.aws.database import Database
from statewarden.aws.listers import ResourceRegistry, default_listers
from statewarden.aws.storage import S3ObjectStore
from statewarden.config import Config
from statewarden.drift import DriftReconciler
from statewarden.errors import StatewardenError
from statewarden.formatter import (
    foreign_resource_row,
    format_log_details,
    format_result,
    log_row,
    render,
    state_row,
)
from statewarden.integrations.slack import FailedValidationNotifier
from statewarden.models import CheckStatus, ComplianceFeature, TrackedState
from statewarden.monitor import StateMonitor, SweepContext
from statewarden.scheduler import PeriodicJobs
from statewarden.tools import ToolRunner
from statewarden.validation import validate_payload

logger = logging.getLogger(__name__)

FORMAT_OPTION = click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "markdown"]),
    default="table",
    help="Output format.",
)

INVALID_FEATURE_NAME_CHARS = "./* "


def setup_logging(log_level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _database(config: Config) -> Database:
    return Database(config.table_prefix, region=config.region)


def _tools(config: Config) -> ToolRunner:
    return ToolRunner(
        converter_bin=config.converter_bin,
        checker_bin=config.checker_bin,
        timeout=config.tool_timeout,
    )


def _monitor(config: Config, database: Database) -> StateMonitor:
    notifier = None
    if config.slack_webhook_url:
        notifier = FailedValidationNotifier(config.slack_webhook_url, config.panel_url)
    return StateMonitor(
        database,
        S3ObjectStore(region=config.region),
        _tools(config),
        full_sweep_interval=config.full_sweep_interval,
        max_concurrent=config.max_concurrent,
        fail_on_empty_result=config.fail_on_empty_result,
        on_log_entry=notifier,
    )


def _reconciler(config: Config, database: Database) -> DriftReconciler:
    session = boto3.Session(**({"region_name": config.region} if config.region else {}))
    return DriftReconciler(database, ResourceRegistry(default_listers(), session))


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(2)


def _wait_for_shutdown() -> None:
    threading.Event().wait()


@click.group()
@click.option("--table-prefix", envvar="STATEWARDEN_TABLE_PREFIX", default="statewarden",
              show_default=True, help="DynamoDB table name prefix.")
@click.option("--region", envvar="STATEWARDEN_REGION", default=None, help="AWS region.")
@click.option("--full-sweep-interval", envvar="STATEWARDEN_FULL_SWEEP_INTERVAL", type=float,
              default=300.0, show_default=True, help="Seconds between full sweeps of all states.")
@click.option("--tick-interval", envvar="STATEWARDEN_TICK_INTERVAL", type=float, default=1.0,
              show_default=True, help="Seconds between checks for forced rechecks.")
@click.option("--drift-interval", envvar="STATEWARDEN_DRIFT_INTERVAL", type=float,
              default=300.0, show_default=True, help="Seconds between foreign-resource passes.")
@click.option("--tool-timeout", envvar="STATEWARDEN_TOOL_TIMEOUT", type=float, default=300.0,
              show_default=True, help="Timeout for each external tool run.")
@click.option("--converter-bin", envvar="STATEWARDEN_CONVERTER_BIN", default="terraform",
              show_default=True, help="State converter executable.")
@click.option("--checker-bin", envvar="STATEWARDEN_CHECKER_BIN", default="terraform-compliance",
              show_default=True, help="Compliance checker executable.")
@click.option("--max-concurrent", envvar="STATEWARDEN_MAX_CONCURRENT", type=int, default=1,
              show_default=True, help="Max states checked concurrently.")
@click.option("--allow-empty-result", is_flag=True, envvar="STATEWARDEN_ALLOW_EMPTY_RESULT",
              help="Accept checker runs where no feature was parsed.")
@click.option("--slack-webhook", envvar="STATEWARDEN_SLACK_WEBHOOK", default=None,
              help="Slack webhook for failed validations.")
@click.option("--panel-url", envvar="STATEWARDEN_PANEL_URL", default="",
              help="Base URL linked from Slack messages.")
@click.option("--log-level", envvar="STATEWARDEN_LOG_LEVEL", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.pass_context
def main(
    ctx,
    table_prefix,
    region,
    full_sweep_interval,
    tick_interval,
    drift_interval,
    tool_timeout,
    converter_bin,
    checker_bin,
    max_concurrent,
    allow_empty_result,
    slack_webhook,
    panel_url,
    log_level,
):
    """Keep Terraform states compliant and find resources outside them."""
    try:
        config = Config(
            table_prefix=table_prefix,
            region=region,
            full_sweep_interval=full_sweep_interval,
            tick_interval=tick_interval,
            drift_interval=drift_interval,
            tool_timeout=tool_timeout,
            converter_bin=converter_bin,
            checker_bin=checker_bin,
            max_concurrent=max_concurrent,
            fail_on_empty_result=not allow_empty_result,
            slack_webhook_url=slack_webhook,
            panel_url=panel_url,
            log_level=log_level,
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    setup_logging(config.log_level)
    ctx.obj = config


@main.command()
@click.pass_obj
def serve(config: Config):
    """Run the state-check and foreign-resource loops until interrupted."""
    database = _database(config)
    database.init_tables()
    monitor = _monitor(config, database)
    reconciler = _reconciler(config, database)

    context = SweepContext()
    jobs = PeriodicJobs()
    jobs.add("state-monitor", config.tick_interval, lambda: monitor.tick(context))
    jobs.add("drift-reconciler", config.drift_interval, reconciler.reconcile)
    jobs.start()
    try:
        _wait_for_shutdown()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        jobs.stop()


@main.command()
@FORMAT_OPTION
@click.pass_obj
def check(config: Config, output_format):
    """Run one full sweep over every tracked state."""
    database = _database(config)
    monitor = _monitor(config, database)
    sweep = monitor.tick(SweepContext())

    rows = [
        {
            "id": o.state_id,
            "status": o.status.value,
            "log_id": o.log_entry.id if o.log_entry else None,
            "error": o.error,
        }
        for o in sweep.outcomes
    ]
    click.echo(render("State checks", rows, output_format))

    if sweep.failed_states:
        click.echo(f"Error: checks failed for: {', '.join(sweep.failed_states)}", err=True)
        sys.exit(2)
    non_compliant = any(
        o.log_entry is not None and o.log_entry.current_result.error_count > 0
        for o in sweep.outcomes
        if o.status in (CheckStatus.CHANGED, CheckStatus.UNCHANGED)
    )
    sys.exit(1 if non_compliant else 0)


@main.command()
@click.pass_obj
def reconcile(config: Config):
    """Run one foreign-resource reconciliation pass."""
    database = _database(config)
    try:
        report = _reconciler(config, database).reconcile()
    except StatewardenError as e:
        _fail(str(e))

    for fr in report.created:
        click.echo(f"new foreign resource: {fr.resource_type} {fr.resource_id} (#{fr.id})")
    for adopted in report.adopted:
        click.echo(
            f"adopted: {adopted.foreign_resource.resource_id} "
            f"found in {adopted.state.location}"
        )
    click.echo(f"{len(report.created)} created, {len(report.adopted)} adopted")
    if report.failed:
        _fail(f"could not update: {', '.join(report.failed)}")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--tag", "tags", multiple=True, help="Only apply features with this tag.")
@click.pass_obj
def validate(config: Config, path: Path, tags):
    """Validate a plan or state file and record a log entry."""
    database = _database(config)
    try:
        entry = validate_payload(
            database,
            _tools(config),
            path.read_bytes(),
            tags=list(tags),
            fail_on_empty_result=config.fail_on_empty_result,
        )
    except StatewardenError as e:
        _fail(str(e))

    click.echo(f"Log entry: {entry.id}")
    click.echo("\n".join(format_result(entry.current_result)))
    sys.exit(1 if entry.current_result.error_count > 0 else 0)


@main.group()
def states():
    """Manage tracked states."""


@states.command("add")
@click.option("--account", required=True)
@click.option("--bucket", required=True)
@click.option("--path", "key", required=True, help="Object key of the state.")
@click.option("--tag", "tags", multiple=True)
@click.pass_obj
def states_add(config: Config, account, bucket, key, tags):
    state = TrackedState.new(account, bucket, key, list(tags))
    _database(config).save_state(state)
    click.echo(state.id)


@states.command("list")
@FORMAT_OPTION
@click.pass_obj
def states_list(config: Config, output_format):
    rows = [state_row(s) for s in _database(config).load_all_states()]
    click.echo(render("Tracked states", rows, output_format))


@states.command("remove")
@click.argument("state_id")
@click.pass_obj
def states_remove(config: Config, state_id):
    _database(config).remove_state(state_id)


@states.command("force")
@click.argument("state_id")
@click.pass_obj
def states_force(config: Config, state_id):
    """Request an immediate recheck of a state."""
    database = _database(config)
    state = database.load_state(state_id)
    if state is None:
        _fail(f"no tracked state {state_id}")
    state.force_recheck = True
    database.save_state(state)


@main.group()
def features():
    """Manage compliance features."""


@features.command("add")
@click.argument("name")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--tag", "tags", multiple=True)
@click.option("--disabled", is_flag=True)
@click.pass_obj
def features_add(config: Config, name, source: Path, tags, disabled):
    if not name or any(c in name for c in INVALID_FEATURE_NAME_CHARS):
        _fail(f"invalid feature name {name!r}")
    feature = ComplianceFeature(
        name=name, source=source.read_text(), tags=list(tags), disabled=disabled
    )
    _database(config).save_feature(feature)


@features.command("list")
@FORMAT_OPTION
@click.pass_obj
def features_list(config: Config, output_format):
    rows = [
        {"id": f.name, "tags": list(f.tags), "disabled": f.disabled}
        for f in _database(config).load_all_features()
    ]
    click.echo(render("Features", rows, output_format))


@features.command("remove")
@click.argument("name")
@click.pass_obj
def features_remove(config: Config, name):
    _database(config).remove_feature(name)


@main.group()
def foreign():
    """Inspect resources outside every tracked state."""


@foreign.command("list")
@FORMAT_OPTION
@click.pass_obj
def foreign_list(config: Config, output_format):
    rows = [foreign_resource_row(r) for r in _database(config).load_all_foreign_resources()]
    click.echo(render("Foreign resources", rows, output_format))


@foreign.command("except")
@click.argument("entry_id")
@click.option("--unset", is_flag=True, help="Clear the exception mark.")
@click.pass_obj
def foreign_except(config: Config, entry_id, unset):
    """Mark a foreign resource as a known, accepted exception."""
    database = _database(config)
    resource = database.load_foreign_resource(entry_id)
    if resource is None:
        _fail(f"no foreign resource {entry_id}")
    resource.is_exception = not unset
    database.save_foreign_resource(resource)


@main.group()
def logs():
    """Inspect validation logs."""


@logs.command("list")
@FORMAT_OPTION
@click.pass_obj
def logs_list(config: Config, output_format):
    entries = sorted(_database(config).load_all_logs(), key=lambda e: e.created_at)
    click.echo(render("Validation logs", [log_row(e) for e in entries], output_format))


@logs.command("show")
@click.argument("log_id")
@click.option("--diff-limit", type=int, default=40, show_default=True)
@click.pass_obj
def logs_show(config: Config, log_id, diff_limit):
    entry = _database(config).load_log(log_id)
    if entry is None:
        _fail(f"no log entry {log_id}")
    click.echo(format_log_details(entry, diff_limit=diff_limit))
