import asyncio
import logging
import sys
from datetime import datetime

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from focus_drift.config.logging_config import setup_logging
from focus_drift.config.settings import settings
from focus_drift.models.tags import DEFAULT_DURATION_MINUTES, DEFAULT_TAGS, DURATION_OPTIONS
from focus_drift.services.database import DatabaseManager
from focus_drift.services.deviation import DeviationConfig, detect_deviation, grade_severity
from focus_drift.services.display import TerminalDisplay
from focus_drift.services.errors import ConfigError, ServiceError

# Set up logging
logger = logging.getLogger(__name__)

# Initialize console
console = Console()

def _open_db(ctx: click.Context) -> DatabaseManager:
    return DatabaseManager(ctx.obj.get("db_path"))

def _fail(message: str, error: Exception):
    """Report an interactive failure and exit non-zero"""
    logger.error(f"{message}: {error}")
    console.print(f"[red]{message}: {escape(str(error))}[/red]")
    sys.exit(1)

@click.group()
@click.option('--db-path', type=click.Path(dir_okay=False), default=None,
              help='SQLite database file (defaults to the configured path)')
@click.option('--debug', is_flag=True, help='Enable debug output')
@click.pass_context
def cli(ctx, db_path, debug):
    """Focus Drift: track activity and catch drift from your declared focus"""
    # Set up logging before anything else
    setup_logging(debug=debug or None)
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db_path

@cli.command()
@click.option('--tag', default=DEFAULT_TAGS[0], show_default=True,
              help=f"Focus tag, e.g. one of: {', '.join(DEFAULT_TAGS)}")
@click.option('--custom-tag', default=None, help='Custom tag; overrides --tag when not blank')
@click.option('--duration', type=click.IntRange(min=1), default=DEFAULT_DURATION_MINUTES,
              show_default=True,
              help=f"Target duration in minutes (common: {', '.join(map(str, DURATION_OPTIONS))})")
@click.pass_context
def start(ctx, tag, custom_tag, duration):
    """Start a focus session"""
    from focus_drift.services.sessions import SessionManager
    try:
        with _open_db(ctx) as db:
            session = SessionManager(db).start_session(tag, duration, custom_tag=custom_tag)
        console.print(
            f"[green]Focus Session Started: {escape(session.tag_declared)} - {duration} min[/green]"
        )
    except ServiceError as e:
        _fail("Could not start session", e)

@cli.command()
@click.pass_context
def stop(ctx):
    """Stop the active focus session"""
    from focus_drift.services.sessions import SessionManager
    try:
        with _open_db(ctx) as db:
            session = SessionManager(db).stop_session()
        minutes = session.elapsed_ms() // 60000
        console.print(
            f"[green]Focus session stopped: {escape(session.tag_declared)} ({minutes} min)[/green]"
        )
    except ServiceError as e:
        _fail("Could not stop session", e)

@cli.command()
@click.pass_context
def current(ctx):
    """Show the current focus session"""
    from focus_drift.services.sessions import SessionManager
    try:
        with _open_db(ctx) as db:
            TerminalDisplay(console).show_current_session(SessionManager(db).current_session())
    except ServiceError as e:
        _fail("Failed to load current session", e)

@cli.command()
@click.pass_context
def sample(ctx):
    """Sample the current activity once"""
    from focus_drift.services.sampler import ActivitySampler
    try:
        with _open_db(ctx) as db:
            outcome = asyncio.run(ActivitySampler(db).sample_once())
    except ServiceError as e:
        _fail("Sampling failed", e)
        return

    # App names, titles and URLs are plain text, never markup
    message = Text(f"📸 {outcome.sample.app}")
    if outcome.sample.window_title:
        message.append(f" - {outcome.sample.window_title}")
    if outcome.sample.url:
        message.append(f" ({outcome.sample.url})")
    action = "new interval" if outcome.created else "extended interval"
    message.append(f"\n{action}, tagged ", style="dim")
    message.append(outcome.interval.tag_final or "unclassified", style="cyan")
    console.print(message)

@cli.command()
@click.option('--interval', 'interval_seconds', type=click.IntRange(min=5), default=None,
              help='Seconds between samples')
@click.pass_context
def run(ctx, interval_seconds):
    """Sample activity in the background until interrupted"""
    from focus_drift.services.runner import ServiceRunner
    try:
        console.print("[yellow]Starting background sampling...[/yellow]")
        with _open_db(ctx) as db:
            runner = ServiceRunner(db=db, interval_seconds=interval_seconds)
            asyncio.run(runner.run())
    except ServiceError as e:
        _fail("Background sampling stopped", e)

@cli.command()
@click.pass_context
def deviation(ctx):
    """Check whether the active session is drifting from its tag"""
    from focus_drift.services.sessions import SessionManager
    try:
        with _open_db(ctx) as db:
            session = SessionManager(db).current_session()
            intervals = db.get_all_intervals() if session else []
        if session is None:
            console.print("[yellow]No active session. Start a focus session to track deviation.[/yellow]")
            return

        config = DeviationConfig.from_settings()
        result = detect_deviation(session, intervals, config)
        TerminalDisplay(console).show_deviation_report(session, result, config)
        logger.info(
            f"Deviation check for {session.tag_declared}: "
            f"{grade_severity(result).value} ({result.deviation_percent:.0f}% off-track)"
        )
    except ServiceError as e:
        _fail("Failed to check deviation", e)

@cli.command()
@click.pass_context
def sessions(ctx):
    """List focus sessions"""
    try:
        with _open_db(ctx) as db:
            all_sessions = db.get_all_sessions()
        TerminalDisplay(console).show_sessions(all_sessions)
    except ServiceError as e:
        _fail("Failed to load sessions", e)

@cli.command()
@click.option('--tag', default=None, help='Only show events with this final tag')
@click.option('--session', 'session_id', default=None, help='Only show events of this session id')
@click.option('--limit', type=click.IntRange(min=1), default=50, show_default=True)
@click.pass_context
def events(ctx, tag, session_id, limit):
    """List recorded activity events"""
    try:
        with _open_db(ctx) as db:
            intervals = db.get_all_intervals()
            session_map = {s.id: s for s in db.get_all_sessions()}
        if tag:
            intervals = [i for i in intervals if i.tag_final == tag]
        if session_id:
            intervals = [i for i in intervals if i.session_id == session_id]
        TerminalDisplay(console).show_events(intervals[:limit], session_map)
    except ServiceError as e:
        _fail("Failed to load events", e)

@cli.command()
@click.option('--id', 'interval_id', default=None, help='Classify a single event')
@click.pass_context
def classify(ctx, interval_id):
    """Classify events without an AI tag using Gemini"""
    from focus_drift.services.ai_classifier import GeminiClassifier, reclassify_intervals
    try:
        if not settings.GEMINI_API_KEY:
            raise ConfigError("GEMINI_API_KEY is not set")
        with _open_db(ctx) as db:
            if interval_id:
                interval = db.get_interval(interval_id)
                if interval is None:
                    raise ServiceError(f"Event not found: {interval_id}")
                targets = [interval]
            else:
                targets = db.get_unclassified_intervals()

            if not targets:
                console.print("[green]No events to classify[/green]")
                return

            console.print(f"[yellow]Classifying {len(targets)} events with AI...[/yellow]")
            updated = asyncio.run(reclassify_intervals(
                db,
                GeminiClassifier(),
                intervals=targets,
                on_progress=lambda current, total: console.print(f"[dim]{current} / {total}[/dim]"),
            ))
        console.print(f"[green]Classification complete: {len(updated)} events classified[/green]")
    except ServiceError as e:
        _fail("Classification failed", e)

@cli.command()
@click.argument('interval_id')
@click.argument('tag')
@click.pass_context
def retag(ctx, interval_id, tag):
    """Override the final tag of an event"""
    from focus_drift.services.sampler import retag_interval
    try:
        with _open_db(ctx) as db:
            interval = retag_interval(db, interval_id, tag)
        console.print(f"[green]Tagged {interval.id[:8]} as {escape(interval.tag_final)}[/green]")
    except (ServiceError, ValueError) as e:
        _fail("Retag failed", e)

@cli.command('delete-session')
@click.argument('session_id')
@click.pass_context
def delete_session(ctx, session_id):
    """Delete a focus session"""
    try:
        with _open_db(ctx) as db:
            if not db.delete_session(session_id):
                raise ServiceError(f"Session not found: {session_id}")
        console.print("[green]Session deleted[/green]")
    except ServiceError as e:
        _fail("Delete failed", e)

@cli.command('delete-event')
@click.argument('interval_id')
@click.pass_context
def delete_event(ctx, interval_id):
    """Delete an activity event"""
    try:
        with _open_db(ctx) as db:
            if not db.delete_interval(interval_id):
                raise ServiceError(f"Event not found: {interval_id}")
        console.print("[green]Event deleted[/green]")
    except ServiceError as e:
        _fail("Delete failed", e)

@cli.group()
def db():
    """Database management commands"""
    pass

@db.command()
@click.confirmation_option(prompt='Delete all sessions and events?')
@click.pass_context
def clear(ctx):
    """Clear all data from the database"""
    try:
        with _open_db(ctx) as database:
            sessions_deleted = database.clear_sessions()
            events_deleted = database.clear_intervals()
        click.echo(f"Database cleared: {sessions_deleted} sessions, {events_deleted} events")
    except ServiceError as e:
        _fail("Error clearing database", e)

@db.command()
@click.pass_context
def stats(ctx):
    """Show database statistics"""
    try:
        with _open_db(ctx) as database:
            stats = database.get_database_stats()

        table = Table(title="Database Tables")
        table.add_column("Table", style="cyan")
        table.add_column("Rows", justify="right", style="green")
        for table_name, info in stats['tables'].items():
            table.add_row(table_name, str(info['row_count']))
        console.print(table)

        time_range = stats['time_range']
        if time_range['total_records']:
            oldest = datetime.fromtimestamp(time_range['oldest'] / 1000)
            newest = datetime.fromtimestamp(time_range['newest'] / 1000)
            console.print(Panel(
                f"[green]Oldest Event:[/green] {oldest.strftime('%Y-%m-%d %H:%M')}\n"
                f"[green]Newest Event:[/green] {newest.strftime('%Y-%m-%d %H:%M')}\n"
                f"[yellow]Total Events:[/yellow] {time_range['total_records']:,}",
                title="Data Overview"
            ))
        console.print(f"\nDatabase Size: {stats['database_size_mb']:.1f}MB")
    except ServiceError as e:
        _fail("Failed to get database stats", e)

@db.command()
@click.pass_context
def verify(ctx):
    """Verify database integrity"""
    try:
        with _open_db(ctx) as database:
            ok = database.verify_database_integrity()
        if ok:
            console.print("[green]Database integrity check passed[/green]")
        else:
            console.print("[red]Database integrity check failed![/red]")
            sys.exit(1)
    except ServiceError as e:
        _fail("Integrity check failed", e)

if __name__ == '__main__':
    cli()
