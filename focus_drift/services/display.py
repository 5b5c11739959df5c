from datetime import datetime
from typing import Dict, Iterable, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from focus_drift.models.activity import EventInterval, now_ms
from focus_drift.models.focus_session import FocusSession, SOURCE_MANUAL
from focus_drift.services.deviation import (
    DeviationConfig,
    DeviationResult,
    Severity,
    format_tag_breakdown,
    grade_severity,
)

TAG_STYLES = {
    "Development": "blue",
    "Research & Learning": "magenta",
    "Communication": "green",
    "Meeting": "dark_orange",
    "Break & Entertainment": "yellow",
    "Documentation": "bright_magenta",
    "Review": "red",
}

SEVERITY_LABELS = {
    Severity.NONE: ("🟢", "Good", "green"),
    Severity.WARNING: ("🟡", "Warning", "yellow"),
    Severity.CRITICAL: ("🔴", "Critical", "red"),
}

def format_timestamp(timestamp_ms: int, fmt: str = "%b %d %H:%M:%S") -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime(fmt)

def format_minutes(duration_ms: int) -> str:
    """Hours and minutes, e.g. ``1h 5m`` or ``42m``"""
    minutes = max(0, duration_ms) // 60000
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}m" if hours > 0 else f"{mins}m"

def format_seconds(duration_ms: int) -> str:
    """Minutes and seconds, e.g. ``3m 12s`` or ``40s``"""
    seconds = max(0, duration_ms) // 1000
    if seconds < 60:
        return f"{seconds}s"
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes}m {remaining}s"

class TerminalDisplay:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def show_current_session(self, session: Optional[FocusSession], now: Optional[int] = None):
        """Show the active session with elapsed and remaining time"""
        if session is None:
            self.console.print("[yellow]No active focus session. Start one to track your work![/yellow]")
            return

        now = now_ms() if now is None else now
        progress = session.progress_percent(now)
        remaining = session.remaining_ms(now)

        text = Text()
        text.append(f"🎯 {session.tag_declared}\n\n", style="bold cyan")
        text.append(f"Elapsed:   {format_minutes(session.elapsed_ms(now))}\n")
        text.append(f"Remaining: {format_minutes(remaining) if remaining > 0 else 'Time is up!'}\n")
        text.append(f"Progress:  {progress:.0f}%\n\n")
        text.append(f"Started:   {format_timestamp(session.started_at, '%a %b %d %H:%M')}\n", style="dim")
        text.append(f"Duration:  {session.duration_minutes} minutes\n", style="dim")
        text.append(
            f"Source:    {'Manual' if session.source == SOURCE_MANUAL else 'Calendar'}\n",
            style="dim"
        )
        if progress >= 100:
            text.append("\n✅ Session complete! Don't forget to stop the session.", style="bold green")
        self.console.print(Panel(text, title="Current Focus", expand=False))

    def show_deviation_report(
        self,
        session: FocusSession,
        result: DeviationResult,
        config: Optional[DeviationConfig] = None,
    ):
        """Render a deviation report for a session"""
        config = config or DeviationConfig()
        if not result.tag_breakdown:
            self.console.print(Panel(
                "No activity recorded yet.\nSample your activity to see deviation analysis.",
                title=f"🎯 {escape(session.tag_declared)}",
                expand=False
            ))
            return

        severity = grade_severity(result)
        emoji, label, style = SEVERITY_LABELS[severity]

        header = Text()
        header.append(f"{emoji} Deviation Report: {session.tag_declared}\n", style="bold")
        header.append(f"Overall Status: {label}\n", style=f"bold {style}")
        if result.is_deviating:
            header.append("⚠️  Deviation detected in this session", style=style)
        else:
            header.append("✅ You're staying on track!", style="green")
        self.console.print(Panel(header, expand=False))

        self.console.print("\n[bold]Activity Breakdown[/bold]")
        for line in format_tag_breakdown(result.tag_breakdown, session.tag_declared):
            self.console.print(Text(f"  {line}"))

        self.console.print("\n[bold]Deviation Details[/bold]")
        self.console.print(f"  Session Duration: {result.session_duration_minutes} minutes")
        self.console.print(f"  Off-Track Percentage: {result.deviation_percent:.1f}%")
        if result.continuous_deviation:
            seconds = result.continuous_duration_seconds
            self.console.print(
                f"  [yellow]Continuous Deviation: {seconds} seconds "
                f"({seconds // 60}m {seconds % 60}s)[/yellow]"
            )
        if result.percentage_deviation:
            self.console.print(
                f"  [yellow]Threshold Exceeded: at least {config.threshold_percent:g}% off-track[/yellow]"
            )
        self.console.print(
            f"\n[dim]Thresholds: continuous {config.continuous_seconds}s, "
            f"percentage {config.threshold_percent:g}%[/dim]"
        )

    def show_sessions(self, sessions: Iterable[FocusSession], now: Optional[int] = None):
        sessions = list(sessions)
        if not sessions:
            self.console.print("[yellow]No focus sessions recorded[/yellow]")
            return

        table = Table(title="Focus Sessions")
        table.add_column("ID", style="dim")
        table.add_column("Tag", style="cyan")
        table.add_column("Started", justify="left")
        table.add_column("Duration", justify="right", style="green")
        table.add_column("Target", justify="right")
        table.add_column("Status", justify="left")

        for session in sessions:
            table.add_row(
                session.id[:8],
                Text(session.tag_declared),
                format_timestamp(session.started_at, "%b %d %H:%M"),
                format_minutes(session.elapsed_ms(now)),
                f"{session.duration_minutes}m",
                "[bold green]active[/bold green]" if session.is_active else "ended",
            )
        self.console.print(table)

    def show_events(
        self,
        intervals: Iterable[EventInterval],
        sessions: Optional[Dict[str, FocusSession]] = None,
    ):
        intervals = list(intervals)
        sessions = sessions or {}
        if not intervals:
            self.console.print("[yellow]No events found[/yellow]")
            return

        table = Table(title="Activity Events")
        table.add_column("ID", style="dim")
        table.add_column("Start", justify="left")
        table.add_column("Duration", justify="right", style="green")
        table.add_column("Activity", justify="left")
        table.add_column("Tag", justify="left")
        table.add_column("Conf.", justify="right")
        table.add_column("Session", justify="left", style="dim")

        for interval in intervals:
            activity = interval.app
            if interval.window_title:
                activity += f" - {interval.window_title}"
            if interval.url:
                url = interval.url if len(interval.url) <= 40 else interval.url[:40] + "..."
                activity += f" ({url})"

            confidence = interval.confidence_ai if interval.tag_ai else interval.confidence_rule
            session = sessions.get(interval.session_id) if interval.session_id else None
            tag = interval.tag_final or "-"

            table.add_row(
                interval.id[:8],
                format_timestamp(interval.ts_start),
                format_seconds(interval.duration_ms),
                Text(activity),
                Text(tag, style=TAG_STYLES.get(tag, "white")),
                f"{round(confidence * 100)}%" if confidence is not None else "",
                Text(session.tag_declared if session else (interval.session_id or "")[:8]),
            )
        self.console.print(table)
