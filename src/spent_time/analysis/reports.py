"""Terminal rendering of aggregation results."""

from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

from rich.console import Console  # type: ignore[import-not-found]
from rich.table import Table  # type: ignore[import-not-found]
from rich.text import Text  # type: ignore[import-not-found]

from spent_time.analysis.aggregation import PeriodComparison, percentage
from spent_time.core.models import PieSlice, Sphere, TimeEntry

WEEKDAY_NAMES = {1: "Sun", 2: "Mon", 3: "Tue", 4: "Wed", 5: "Thu", 6: "Fri", 7: "Sat"}


def format_minutes(minutes: int, time_format: str = "human") -> str:
    """Format a minute count for display.

    Args:
        minutes: Duration in minutes
        time_format: 'human' (1h 30m) or 'decimal' (1.50h)

    Returns:
        Formatted duration string
    """
    if time_format == "decimal":
        return f"{minutes / 60:.2f}h"

    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


class ReportGenerator:
    """Render sphere statistics with rich tables."""

    def __init__(
        self,
        console: Optional[Console] = None,
        time_format: str = "human",
        date_format: str = "%Y-%m-%d",
    ):
        """Initialize report generator.

        Args:
            console: Rich console for output. Creates default if None.
            time_format: Duration format passed to format_minutes
            date_format: strftime format for dates in titles and messages
        """
        self.console = console or Console()
        self.time_format = time_format
        self.date_format = date_format

    def _format(self, minutes: int) -> str:
        return format_minutes(minutes, self.time_format)

    def _sphere_label(self, spheres: dict[UUID, Sphere], sphere_id: UUID) -> Text:
        sphere = spheres.get(sphere_id)
        if sphere is None:
            return Text("Unknown", style="dim")
        label = Text("● ", style=sphere.color)
        label.append(sphere.name)
        if sphere.is_favorite:
            label.append(" ★", style="yellow")
        return label

    def pie_report(
        self,
        slices: Sequence[PieSlice],
        spheres: Sequence[Sphere],
        period_label: str,
    ) -> None:
        """Display per-sphere totals and their share of the period.

        Args:
            slices: Slices from pie_data
            spheres: Current spheres, for names and colors
            period_label: Label for the report period
        """
        if not slices:
            self.console.print(f"[yellow]No entries found for {period_label}[/yellow]")
            return

        by_id = {s.id: s for s in spheres}
        total = sum(s.total_minutes for s in slices)

        table = Table(title=f"Time by Sphere - {period_label}")
        table.add_column("Sphere", style="bold")
        table.add_column("Duration", style="magenta", justify="right")
        table.add_column("% Total", style="green", justify="right")
        table.add_column("Bar", style="blue")

        for slice_ in sorted(slices, key=lambda s: s.total_minutes, reverse=True):
            pct = percentage(slice_, slices)
            table.add_row(
                self._sphere_label(by_id, slice_.sphere_id),
                self._format(slice_.total_minutes),
                f"{pct:.1f}%",
                self._create_bar(pct),
            )

        self.console.print(table)
        self.console.print(f"[dim]Total:[/dim] [bold]{self._format(total)}[/bold]")

    def week_report(self, histogram: dict[int, int], week_label: str) -> None:
        """Display minutes per weekday, in the order the histogram lists them."""
        peak = max(histogram.values(), default=0)

        table = Table(title=f"Week of {week_label}")
        table.add_column("Day", style="cyan")
        table.add_column("Duration", style="magenta", justify="right")
        table.add_column("Bar", style="blue")

        for ordinal, minutes in histogram.items():
            pct = (minutes / peak) * 100 if peak > 0 else 0
            table.add_row(WEEKDAY_NAMES[ordinal], self._format(minutes), self._create_bar(pct))

        self.console.print(table)

    def entries_report(
        self,
        entries: Sequence[TimeEntry],
        spheres: Sequence[Sphere],
        day: datetime,
    ) -> None:
        """Display the entries of one day."""
        if not entries:
            self.console.print(f"[yellow]No entries found for {day.strftime(self.date_format)}[/yellow]")
            return

        by_id = {s.id: s for s in spheres}

        table = Table(title=f"Entries for {day.strftime(self.date_format)}")
        table.add_column("ID", style="dim")
        table.add_column("Sphere")
        table.add_column("Time of Day", style="cyan")
        table.add_column("Duration", style="magenta", justify="right")

        for entry in entries:
            table.add_row(
                str(entry.id)[:8],
                self._sphere_label(by_id, entry.sphere_id),
                f"{entry.time_of_day.symbol} {entry.time_of_day.value}",
                self._format(entry.minutes),
            )

        self.console.print(table)
        total = sum(e.minutes for e in entries)
        self.console.print(f"[dim]Total:[/dim] [bold]{self._format(total)}[/bold]")

    def calendar_report(
        self,
        dominant: Sequence[tuple[datetime, Optional[Sphere]]],
        month_label: str,
    ) -> None:
        """Display the dominant sphere of every day in a month."""
        table = Table(title=f"Calendar - {month_label}")
        table.add_column("Date", style="cyan")
        table.add_column("Dominant Sphere")

        for day, sphere in dominant:
            label = self._sphere_label({sphere.id: sphere}, sphere.id) if sphere else Text("-", style="dim")
            table.add_row(f"{day:%a %d}", label)

        self.console.print(table)

    def comparison_report(
        self,
        rows: Sequence[PeriodComparison],
        spheres: Sequence[Sphere],
        first_label: str,
        second_label: str,
    ) -> None:
        """Display per-sphere totals of two periods side by side."""
        if not rows:
            self.console.print("[yellow]No entries found in either period[/yellow]")
            return

        by_id = {s.id: s for s in spheres}

        table = Table(title="Period Comparison")
        table.add_column("Sphere", style="bold")
        table.add_column(first_label, style="magenta", justify="right")
        table.add_column(second_label, style="magenta", justify="right")
        table.add_column("Change", justify="right")

        for row in rows:
            diff = row.difference
            style = "green" if diff > 0 else "red" if diff < 0 else "dim"
            sign = "+" if diff > 0 else "-" if diff < 0 else ""
            table.add_row(
                self._sphere_label(by_id, row.sphere_id),
                self._format(row.first_minutes),
                self._format(row.second_minutes),
                Text(f"{sign}{self._format(abs(diff))}", style=style),
            )

        self.console.print(table)

    def _create_bar(self, percentage: float, width: int = 25) -> Text:
        """Create a visual bar for percentage display."""
        filled = int((percentage / 100) * width)
        empty = width - filled

        bar = Text()
        bar.append("█" * filled, style="blue")
        bar.append("░" * empty, style="dim")

        return bar
