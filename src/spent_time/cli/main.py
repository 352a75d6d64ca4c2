"""Main CLI application."""

import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.table import Table

from spent_time import __version__
from spent_time.analysis.aggregation import (
    compare_periods,
    dominant_sphere,
    period_bounds,
)
from spent_time.analysis.reports import ReportGenerator, format_minutes
from spent_time.cli.config_commands import config, load_config
from spent_time.core.dates import days, end_of_month, start_of_day, start_of_month, start_of_week
from spent_time.core.models import AggregationRange, Sphere, TimeEntry, TimeOfDay, normalize_hex
from spent_time.core.storage import FileStorage
from spent_time.core.store import DataStore

DEFAULT_DATE_FORMAT = "%Y-%m-%d"

console = Console()
error_console = Console(stderr=True)

_log_handler: Optional[logging.Handler] = None


def setup_logging(level_name: str) -> None:
    """Send log records to stderr at the given level."""
    global _log_handler

    level = getattr(logging, level_name.upper(), logging.WARNING)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if _log_handler is not None:
        root_logger.removeHandler(_log_handler)

    _log_handler = logging.StreamHandler()
    _log_handler.setLevel(level)
    _log_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(_log_handler)


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    error_console.print(f"[red]Error:[/red] {message}")
    sys.exit(1)


def get_store(ctx: click.Context) -> DataStore:
    """Open the DataStore configured for this invocation."""
    config_mgr = load_config(ctx)
    setup_logging("DEBUG" if ctx.obj.get("verbose") else config_mgr.get("advanced.log_level", "WARNING"))

    data_dir = ctx.obj.get("data_dir")
    storage = FileStorage(Path(data_dir) if data_dir else config_mgr.data_dir)
    if config_mgr.get("advanced.backup_on_start", False) and storage.bundle_file.exists():
        storage.backup()

    ctx.obj["date_format"] = config_mgr.get("general.date_format", DEFAULT_DATE_FORMAT)
    ctx.obj["report"] = ReportGenerator(
        console,
        config_mgr.get("display.time_format", "human"),
        ctx.obj["date_format"],
    )
    return DataStore(storage, week_start=config_mgr.get("general.week_start", "monday"))


def parse_day(value: Optional[str], date_format: str = DEFAULT_DATE_FORMAT) -> datetime:
    """Parse 'today', 'yesterday' or a date in ``date_format`` into a day (default today)."""
    today = start_of_day(datetime.now())
    if value is None or value == "today":
        return today
    if value == "yesterday":
        return today - timedelta(days=1)
    try:
        return datetime.strptime(value, date_format)
    except ValueError:
        raise click.BadParameter(f"Invalid date: {value}. Use {date_format}, 'today' or 'yesterday'")


def find_sphere(store: DataStore, name_or_id: str) -> Sphere:
    """Look up a sphere by case-insensitive name or ID prefix."""
    key = name_or_id.strip().casefold()
    spheres = store.spheres
    for sphere in spheres:
        if sphere.name.casefold() == key:
            return sphere
    matches = [s for s in spheres if str(s.id).startswith(key)]
    if len(matches) == 1:
        return matches[0]
    fail(f"Sphere not found: {name_or_id}")


def find_entry(store: DataStore, entry_id: str) -> TimeEntry:
    """Look up an entry by ID prefix."""
    matches = [e for e in store.time_entries if str(e.id).startswith(entry_id.lower())]
    if len(matches) != 1:
        fail(f"Entry not found: {entry_id}" if not matches else f"Ambiguous entry ID: {entry_id}")
    return matches[0]


@click.group()
@click.version_option(version=__version__)
@click.option("--data-dir", help="Custom data directory", type=click.Path())
@click.option("--config", "config_path", envvar="SPENT_TIME_CONFIG", help="Config file path", type=click.Path())
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.pass_context
def cli(
    ctx: click.Context,
    data_dir: Optional[str],
    config_path: Optional[str],
    verbose: bool,
    no_color: bool,
) -> None:
    """Spent Time - see where your time goes across life spheres.

    Log time against spheres like Work, Sleep or Family and review how
    each day, week or month was spent.
    """
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    if no_color:
        console.no_color = True


cli.add_command(config)


# Spheres


@cli.group()
def spheres() -> None:
    """Manage life spheres."""
    pass


@spheres.command("list")
@click.option("--favorites", is_flag=True, help="Only show favorite spheres")
@click.pass_context
def spheres_list(ctx: click.Context, favorites: bool) -> None:
    """List spheres in creation order.

    Example:
        spent-time spheres list
    """
    store = get_store(ctx)
    items = store.favorite_spheres() if favorites else store.spheres

    if not items:
        console.print("[yellow]No spheres yet. Run 'spent-time spheres seed' to add presets.[/yellow]")
        return

    table = Table(title="Spheres")
    table.add_column("Name", style="bold")
    table.add_column("Color")
    table.add_column("Favorite", justify="center")
    table.add_column("ID", style="dim")

    for sphere in items:
        table.add_row(
            sphere.name,
            f"[{sphere.color}]●[/] {sphere.color}",
            "★" if sphere.is_favorite else "",
            str(sphere.id)[:8],
        )

    console.print(table)


@spheres.command("add")
@click.argument("name")
@click.option("--color", help="Hex color (defaults to the next unused palette color)")
@click.option("--favorite", is_flag=True, help="Mark as favorite")
@click.pass_context
def spheres_add(ctx: click.Context, name: str, color: Optional[str], favorite: bool) -> None:
    """Create a sphere with a unique name.

    Example:
        spent-time spheres add Gym --color "#2155FF"
    """
    store = get_store(ctx)

    try:
        resolved = normalize_hex(color) if color else store.next_palette_color()
    except ValueError as e:
        fail(str(e))

    sphere = store.create_unique_sphere(name, resolved, favorite)

    console.print(f"[green]✓[/green] Added sphere: {sphere.name}")
    console.print(f"  Color: {sphere.color}")


@spheres.command("edit")
@click.argument("sphere_name")
@click.option("--name", "new_name", help="New display name")
@click.option("--color", help="New hex color")
@click.option("--favorite/--no-favorite", default=None, help="Set or clear favorite flag")
@click.pass_context
def spheres_edit(
    ctx: click.Context,
    sphere_name: str,
    new_name: Optional[str],
    color: Optional[str],
    favorite: Optional[bool],
) -> None:
    """Rename, recolor or (un)favorite a sphere.

    Example:
        spent-time spheres edit Work --name Job --favorite
    """
    store = get_store(ctx)
    sphere = find_sphere(store, sphere_name)

    if new_name is not None and new_name.strip():
        sphere.name = new_name.strip()
    if color is not None:
        try:
            sphere.color = normalize_hex(color)
        except ValueError as e:
            fail(str(e))
    if favorite is not None:
        sphere.is_favorite = favorite

    store.update_sphere(sphere)

    console.print(f"[green]✓[/green] Updated sphere: {sphere.name}")


@spheres.command("delete")
@click.argument("sphere_name")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def spheres_delete(ctx: click.Context, sphere_name: str, yes: bool) -> None:
    """Delete a sphere together with all of its entries.

    Example:
        spent-time spheres delete Commute -y
    """
    store = get_store(ctx)
    sphere = find_sphere(store, sphere_name)
    owned = sum(1 for e in store.time_entries if e.sphere_id == sphere.id)

    if not yes:
        click.confirm(f"Delete '{sphere.name}' and its {owned} entries?", abort=True)

    store.delete_sphere(sphere.id)
    console.print(f"[green]✓[/green] Deleted sphere: {sphere.name} ({owned} entries removed)")


@spheres.command("seed")
@click.pass_context
def spheres_seed(ctx: click.Context) -> None:
    """Add the preset spheres if no spheres exist yet."""
    store = get_store(ctx)
    before = len(store.spheres)
    store.ensure_preset_spheres()

    if before:
        console.print("[yellow]Spheres already exist, nothing seeded[/yellow]")
    else:
        console.print(f"[green]✓[/green] Added {len(store.spheres)} preset spheres")


@spheres.command("palette")
@click.option("--all", "show_all", is_flag=True, help="Include colors already in use")
@click.pass_context
def spheres_palette(ctx: click.Context, show_all: bool) -> None:
    """Show palette colors available for new spheres."""
    store = get_store(ctx)
    colors = store.available_palette_colors(exclude_used=not show_all)

    if not colors:
        console.print(f"[yellow]All palette colors are in use; next: {store.next_palette_color()}[/yellow]")
        return

    for color in colors:
        used = " (in use)" if show_all and store.is_color_used(color) else ""
        console.print(f"[{color}]●[/] {color}{used}")


# Entries


@cli.command()
@click.argument("sphere_name")
@click.argument("minutes", type=click.IntRange(max=1440))
@click.option("-d", "--date", "day", help="Day (YYYY-MM-DD, today, yesterday)")
@click.option(
    "-t",
    "--time-of-day",
    type=click.Choice([t.value for t in TimeOfDay], case_sensitive=False),
    default=TimeOfDay.ANY.value,
    help="Time of day",
)
@click.pass_context
def log(
    ctx: click.Context,
    sphere_name: str,
    minutes: int,
    day: Optional[str],
    time_of_day: str,
) -> None:
    """Log MINUTES spent on a sphere.

    Example:
        spent-time log Gym 90 --date 2024-03-01 -t morning
    """
    store = get_store(ctx)
    sphere = find_sphere(store, sphere_name)
    date_format = ctx.obj["date_format"]
    entry = store.add_time_entry(parse_day(day, date_format), minutes, sphere.id, TimeOfDay.parse(time_of_day))

    report: ReportGenerator = ctx.obj["report"]
    console.print(f"[green]✓[/green] Logged {format_minutes(entry.minutes, report.time_format)} to {sphere.name}")
    console.print(f"  Date: {entry.date.strftime(date_format)} ({entry.time_of_day.value})")


@cli.command()
@click.option("-d", "--date", "day", help="Day (YYYY-MM-DD, today, yesterday)")
@click.pass_context
def entries(ctx: click.Context, day: Optional[str]) -> None:
    """List the entries of a day.

    Example:
        spent-time entries --date yesterday
    """
    store = get_store(ctx)
    target = parse_day(day, ctx.obj["date_format"])
    ctx.obj["report"].entries_report(store.entries_on(target), store.spheres, target)


@cli.command("edit-entry")
@click.argument("entry_id")
@click.option("-m", "--minutes", type=click.IntRange(max=1440), help="New duration in minutes")
@click.option("-d", "--date", "day", help="New day (YYYY-MM-DD, today, yesterday)")
@click.option("-s", "--sphere", "sphere_name", help="New sphere")
@click.option(
    "-t",
    "--time-of-day",
    type=click.Choice([t.value for t in TimeOfDay], case_sensitive=False),
    help="New time of day",
)
@click.pass_context
def edit_entry(
    ctx: click.Context,
    entry_id: str,
    minutes: Optional[int],
    day: Optional[str],
    sphere_name: Optional[str],
    time_of_day: Optional[str],
) -> None:
    """Replace fields of an entry (ID prefix accepted).

    Example:
        spent-time edit-entry 3f2a --minutes 45
    """
    store = get_store(ctx)
    entry = find_entry(store, entry_id)

    if minutes is not None:
        entry.minutes = minutes
    if day is not None:
        entry.date = parse_day(day, ctx.obj["date_format"])
    if sphere_name is not None:
        entry.sphere_id = find_sphere(store, sphere_name).id
    if time_of_day is not None:
        entry.time_of_day = TimeOfDay.parse(time_of_day)

    store.update_time_entry(entry)
    console.print(f"[green]✓[/green] Updated entry {str(entry.id)[:8]}")


@cli.command("delete-entry")
@click.argument("entry_id")
@click.pass_context
def delete_entry(ctx: click.Context, entry_id: str) -> None:
    """Delete an entry (ID prefix accepted)."""
    store = get_store(ctx)
    entry = find_entry(store, entry_id)
    store.delete_time_entry(entry.id)
    console.print(f"[green]✓[/green] Deleted entry {str(entry.id)[:8]}")


# Reports


@cli.command()
@click.option(
    "-r",
    "--range",
    "range_name",
    type=click.Choice([r.value.lower() for r in AggregationRange]),
    default="day",
    help="Aggregation period",
)
@click.option("-d", "--date", "day", help="Reference day (YYYY-MM-DD, today, yesterday)")
@click.pass_context
def stats(ctx: click.Context, range_name: str, day: Optional[str]) -> None:
    """Show time per sphere for the day, week, month or year of a date.

    Example:
        spent-time stats --range week
        spent-time stats --range month --date 2024-03-15
    """
    store = get_store(ctx)
    range_ = AggregationRange(range_name.capitalize())
    ref = parse_day(day, ctx.obj["date_format"])
    start, end = period_bounds(range_, ref, store.week_start)
    fmt = ctx.obj["date_format"]
    label = start.strftime(fmt) if start == end else f"{start.strftime(fmt)} to {end.strftime(fmt)}"

    ctx.obj["report"].pie_report(store.pie_data(range_, ref), store.spheres, label)


@cli.command()
@click.option("-d", "--date", "day", help="Any day of the week (YYYY-MM-DD, today, yesterday)")
@click.pass_context
def week(ctx: click.Context, day: Optional[str]) -> None:
    """Show minutes per weekday.

    Example:
        spent-time week --date 2024-03-01
    """
    store = get_store(ctx)
    ref = parse_day(day, ctx.obj["date_format"])
    start = start_of_week(ref, store.week_start)
    ctx.obj["report"].week_report(store.weekday_histogram(ref), start.strftime(ctx.obj["date_format"]))


@cli.command()
@click.option("-d", "--date", "day", help="Any day of the month (YYYY-MM-DD, today, yesterday)")
@click.pass_context
def calendar(ctx: click.Context, day: Optional[str]) -> None:
    """Show the dominant sphere of each day in a month."""
    store = get_store(ctx)
    ref = parse_day(day, ctx.obj["date_format"])
    snapshot = store.snapshot
    rows = [(d, dominant_sphere(snapshot, d)) for d in days(start_of_month(ref), end_of_month(ref))]
    ctx.obj["report"].calendar_report(rows, f"{ref:%B %Y}")


@cli.command()
@click.option("--from1", required=True, help="First period start (YYYY-MM-DD)")
@click.option("--to1", required=True, help="First period end (YYYY-MM-DD)")
@click.option("--from2", required=True, help="Second period start (YYYY-MM-DD)")
@click.option("--to2", required=True, help="Second period end (YYYY-MM-DD)")
@click.pass_context
def compare(ctx: click.Context, from1: str, to1: str, from2: str, to2: str) -> None:
    """Compare time per sphere between two periods.

    Example:
        spent-time compare --from1 2024-03-01 --to1 2024-03-07 --from2 2024-03-08 --to2 2024-03-14
    """
    store = get_store(ctx)
    periods = [parse_day(v, ctx.obj["date_format"]) for v in (from1, to1, from2, to2)]
    if periods[1] < periods[0] or periods[3] < periods[2]:
        fail("Period end must not be before its start")

    rows = compare_periods(store.snapshot, *periods)
    ctx.obj["report"].comparison_report(
        rows,
        store.spheres,
        f"{from1} - {to1}",
        f"{from2} - {to2}",
    )


if __name__ == "__main__":
    cli(obj={})
