"""CLI entry point: command definitions using Click.

Commands:
    init          Generate a template config file
    submit        Classify and store one report
    submit-batch  Classify and store a JSON list of reports
    clusters      Cross-team clusters of non-duplicate reports
    leaderboard   Teams ranked by distinct URLs reported
    match-teams   Teams that hit the same issue as one report
    list          Stored reports, optionally for one team
"""

import json
import logging
import sys
from typing import Any

import click

from bug_triage import __version__


# ---------------------------------------------------------------------------
# Helpers shared by all data commands
# ---------------------------------------------------------------------------

def _make_store(ctx: click.Context):
    """Load config and return it with a ready HttpStore. Exits on error."""
    from bug_triage.config import ConfigError, load
    from bug_triage.store import HttpStore

    obj = ctx.obj
    try:
        config = load(obj["config_path"])
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    if obj["verbose"]:
        click.echo(f"[verbose] Connecting to {config.store_url}", err=True)

    store = HttpStore(url=config.store_url, token=config.store_token,
                      timeout=config.store_timeout)
    return config, store


def _make_ingestor(ctx: click.Context):
    from bug_triage.ingest import DuplicateClassifier, Ingestor

    config, store = _make_store(ctx)
    classifier = DuplicateClassifier(store, threshold=config.duplicate_threshold,
                                     scope=config.duplicate_scope)
    return Ingestor(store, classifier, serialize=config.serialize_ingestion)


def _emit_json(data: Any, ctx: click.Context) -> None:
    """Write JSON to stdout or to the file specified by --output."""
    obj = ctx.obj
    indent = 2 if obj["pretty"] else None
    text = json.dumps(data, indent=indent, ensure_ascii=False)

    output_path: str | None = obj["output_path"]
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
        click.echo(f"Report written to '{output_path}'", err=True)
    else:
        click.echo(text)


def _handle_store_errors(func):
    """Decorator that catches store and input exceptions and exits cleanly."""
    import functools

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from bug_triage.attachments import AttachmentError
        from bug_triage.ingest import ReportValidationError
        from bug_triage.store import (
            StoreAuthenticationError,
            StoreConnectionError,
            StoreError,
            StoreNotFoundError,
        )

        try:
            return func(*args, **kwargs)
        except (ReportValidationError, AttachmentError) as exc:
            click.echo(f"Invalid report: {exc}", err=True)
            sys.exit(1)
        except StoreAuthenticationError as exc:
            click.echo(f"Authentication error: {exc}", err=True)
            sys.exit(1)
        except StoreNotFoundError as exc:
            click.echo(f"Not found: {exc}", err=True)
            sys.exit(1)
        except StoreConnectionError as exc:
            click.echo(f"Network error: {exc}", err=True)
            sys.exit(1)
        except StoreError as exc:
            click.echo(f"Store error: {exc}", err=True)
            sys.exit(1)

    return wrapper


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default="bug-triage.yaml", show_default=True,
              help="Path to the configuration file.")
@click.option("--output", "output_path", default=None,
              help="Write JSON output to a file instead of stdout.")
@click.option("--pretty", is_flag=True, default=False,
              help="Pretty-print the JSON output.")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable verbose logging.")
@click.version_option(__version__, prog_name="bug-triage")
@click.pass_context
def cli(ctx: click.Context, config_path: str, output_path: str | None,
        pretty: bool, verbose: bool) -> None:
    """Bug report triage: flag duplicates, cluster issues across teams."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)-8s | %(name)s - %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["output_path"] = output_path
    ctx.obj["pretty"] = pretty
    ctx.obj["verbose"] = verbose


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default="bug-triage.yaml", show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template bug-triage.yaml file."""
    from bug_triage.config import ConfigError, generate_template
    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your report store URL and matching thresholds.")
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# submit / submit-batch
# ---------------------------------------------------------------------------

@cli.command("submit")
@click.option("--team", default="", help="Team name (falls back to --email).")
@click.option("--email", required=True, help="Contact email.")
@click.option("--url", required=True, help="Target URL of the bug.")
@click.option("--description", required=True, help="What is broken.")
@click.option("--steps", "test_steps", default="", help="Steps to reproduce.")
@click.pass_context
@_handle_store_errors
def submit_command(ctx: click.Context, team: str, email: str, url: str,
                   description: str, test_steps: str) -> None:
    """Classify one report and store it."""
    from bug_triage.ingest import new_report

    report = new_report(team=team, email=email, url=url,
                        description=description, test_steps=test_steps)
    saved = _make_ingestor(ctx).submit(report)
    _emit_json(saved.to_dict(), ctx)


@cli.command("submit-batch")
@click.argument("reports_file", type=click.File("r", encoding="utf-8"))
@click.pass_context
@_handle_store_errors
def submit_batch_command(ctx: click.Context, reports_file) -> None:
    """Store every report in REPORTS_FILE (a JSON list), skipping bad ones.

    Exits with status 2 when at least one report was rejected.
    """
    try:
        raw = json.load(reports_file)
    except json.JSONDecodeError as exc:
        click.echo(f"Invalid JSON in '{reports_file.name}': {exc}", err=True)
        sys.exit(1)
    if isinstance(raw, dict):
        raw = raw.get("bugs", [raw])

    result = _make_ingestor(ctx).submit_batch(raw)
    _emit_json(result.to_dict(), ctx)
    if not result.ok:
        sys.exit(2)


# ---------------------------------------------------------------------------
# clusters / leaderboard / match-teams / list
# ---------------------------------------------------------------------------

@cli.command("clusters")
@click.pass_context
@_handle_store_errors
def clusters_command(ctx: click.Context) -> None:
    """Unique issues across teams, with the teams that hit each."""
    from bug_triage.reports.clusters import get_clusters

    config, store = _make_store(ctx)
    _emit_json(get_clusters(store, config.cluster_threshold), ctx)


@cli.command("leaderboard")
@click.pass_context
@_handle_store_errors
def leaderboard_command(ctx: click.Context) -> None:
    """Teams ranked by distinct URLs, duplicates excluded."""
    from bug_triage.reports.leaderboard import get_leaderboard

    _, store = _make_store(ctx)
    _emit_json(get_leaderboard(store), ctx)


@cli.command("match-teams")
@click.argument("report_id")
@click.pass_context
@_handle_store_errors
def match_teams_command(ctx: click.Context, report_id: str) -> None:
    """Teams that reported the same issue as REPORT_ID."""
    from bug_triage.reports.clusters import get_team_matches

    config, store = _make_store(ctx)
    _emit_json(get_team_matches(store, report_id, config.cluster_threshold), ctx)


@cli.command("list")
@click.option("--team", default=None, help="Only list reports from this team.")
@click.pass_context
@_handle_store_errors
def list_command(ctx: click.Context, team: str | None) -> None:
    """Stored reports, newest first, duplicates included."""
    from bug_triage.reports.listing import get_reports

    _, store = _make_store(ctx)
    if ctx.obj["verbose"]:
        click.echo(f"[verbose] Listing reports for {team or 'every team'}", err=True)
    _emit_json(get_reports(store, team), ctx)

