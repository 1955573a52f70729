"""Board CLI commands.

- contacts: one page of a project's contacts, with filters
- kpi: members of one channel KPI tile
- metrics: the KPI metric catalogue with legacy aliases
- summary: backend KPI rollup and header stats
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import typer
from typer import Context

from outreachboard.cli.app import app, fail, fail_source, open_board
from outreachboard.connectors.base import SourceError
from outreachboard.dates import DateFilter, DatePreset, local_day
from outreachboard.indexer import ActivityIndex, activity_date
from outreachboard.kpi import METRICS, KpiFilter, UnknownMetricError, list_metrics, resolve_metric
from outreachboard.models import Channel, Contact
from outreachboard.predicates import ContactFilters, InvalidFilterError, SortOrder

CUSTOM = "custom"
DATE_FORMATS = ["%Y-%m-%d"]


def _date_filter(
    value: Optional[str],
    date_from: Optional[datetime],
    date_to: Optional[datetime],
) -> Optional[DateFilter]:
    if value is None:
        return None
    if value == CUSTOM:
        return DateFilter(
            date_from=date_from.date() if date_from else None,
            date_to=date_to.date() if date_to else None,
        )
    return DateFilter(preset=DatePreset(value))


def _format_row(contact: Contact, index: ActivityIndex) -> str:
    last = index.last_activity_for(contact)
    upcoming = index.next_action_for(contact)
    last_day = local_day(activity_date(last)) if last else None
    next_day = local_day(upcoming.next_action_date) if upcoming else None
    return (
        f"{(contact.name or '-')[:28]:<28} "
        f"{(contact.company or '-')[:22]:<22} "
        f"{index.displayed_status(contact)[:20]:<20} "
        f"{str(last_day or '-'):<10} "
        f"{str(next_day or '-'):<10}"
    )


def _echo_rows(contacts: List[Contact], index: ActivityIndex) -> None:
    typer.echo(f"{'Name':<28} {'Company':<22} {'Status':<20} {'Last':<10} {'Next':<10}")
    for contact in contacts:
        typer.echo(_format_row(contact, index))


@app.command(name="contacts")
def contacts(
    ctx: Context,
    project_id: str = typer.Argument(..., help="Project ID"),
    status: Optional[str] = typer.Option(None, "--status", help="Displayed status to match"),
    next_action: Optional[str] = typer.Option(
        None, "--next-action", help="today, tomorrow, this-week, this-month or custom"
    ),
    last_interaction: Optional[str] = typer.Option(
        None,
        "--last-interaction",
        help="today, yesterday, tomorrow, this-week, this-month or custom",
    ),
    imported: Optional[str] = typer.Option(None, "--imported", help="today, yesterday or custom"),
    date_from: Optional[datetime] = typer.Option(
        None, "--from", formats=DATE_FORMATS, help="Start day of a custom range"
    ),
    date_to: Optional[datetime] = typer.Option(
        None, "--to", formats=DATE_FORMATS, help="End day of a custom range"
    ),
    no_activity: bool = typer.Option(False, "--no-activity", help="Only contacts with no activity"),
    kpi: Optional[str] = typer.Option(None, "--kpi", help="KPI drill-down as channel:metric"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Free-text search"),
    sort: Optional[SortOrder] = typer.Option(None, "--sort", help="Sort by name"),
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page number"),
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1, help="Rows per page"),
):
    """List one page of a project's contacts.

    Examples:
        outreach contacts 65a1... --next-action today
        outreach contacts 65a1... --last-interaction custom --from 2024-01-01 --to 2024-01-31
        outreach contacts 65a1... --kpi call:callsConnected --sort asc
    """
    date_options = [next_action, last_interaction, imported]
    custom_count = sum(1 for v in date_options if v == CUSTOM)
    if custom_count > 1:
        fail("Only one date filter can use a custom range")
    if (date_from or date_to) and custom_count == 0:
        fail("--from/--to need a date filter set to 'custom'")

    try:
        filters = ContactFilters(
            status=status,
            next_action=_date_filter(next_action, date_from, date_to),
            last_interaction=_date_filter(last_interaction, date_from, date_to),
            import_date=_date_filter(imported, date_from, date_to),
            no_activity=no_activity,
            kpi=KpiFilter.parse(kpi) if kpi else None,
            search=search,
            sort=sort,
        )
    except (InvalidFilterError, ValueError) as e:
        fail(f"Invalid filter: {e}")

    board = open_board(ctx, project_id, page_size=page_size)
    try:
        result = board.list_contacts(filters, page=page)
    except SourceError as e:
        fail_source(e)

    index = board.index()
    _echo_rows(result.items, index)
    typer.echo("")
    typer.echo(result.showing())
    if result.total_pages > 1:
        buttons = " ".join(f"[{n}]" if n == result.page else str(n) for n in result.window())
        typer.echo(f"Pages: {buttons} (of {result.total_pages})")


@app.command(name="kpi")
def kpi(
    ctx: Context,
    project_id: str = typer.Argument(..., help="Project ID"),
    channel: Channel = typer.Argument(..., help="call, email or linkedin"),
    metric: str = typer.Argument(..., help="Metric name (modern or legacy)"),
):
    """List the contacts counted in one KPI tile.

    Examples:
        outreach kpi 65a1... call callsConnected
        outreach kpi 65a1... linkedin connectionRequestsSent
    """
    try:
        modern = resolve_metric(channel, metric, strict=True)
    except UnknownMetricError as e:
        fail(f"{e.args[0]} (see 'outreach metrics {channel.value}')")

    board = open_board(ctx, project_id)
    try:
        members = board.kpi_members(channel, modern)
    except SourceError as e:
        fail_source(e)

    label = METRICS[channel][modern].label
    alias = f" (alias of {modern})" if modern != metric else ""
    typer.echo(f"📊 {channel.value} / {label}{alias}: {len(members)} contact(s)")
    if members:
        _echo_rows(members, board.index())


@app.command(name="metrics")
def metrics(
    channel: Optional[Channel] = typer.Argument(None, help="Only this channel"),
):
    """Show the KPI metric catalogue with legacy aliases."""
    channels = [channel] if channel else list(Channel)
    for ch in channels:
        typer.echo(f"{ch.value}:")
        for info in list_metrics(ch):
            suffix = f"  (aliases: {', '.join(info.aliases)})" if info.aliases else ""
            stage = " [stage]" if info.uses_stage else ""
            typer.echo(f"  {info.name:<22} {info.label}{stage}{suffix}")


@app.command(name="summary")
def summary(
    ctx: Context,
    project_id: str = typer.Argument(..., help="Project ID"),
):
    """Show the backend KPI rollup and the header stats for a project."""
    board = open_board(ctx, project_id)

    project_outcome = board.refresh_project()
    name = board.project.name if board.project else project_id
    typer.echo(f"📁 {name}")
    if not project_outcome.ok:
        typer.echo(f"⚠️  Project header unavailable: {project_outcome.message}", err=True)

    contacts_outcome = board.refresh_contacts()
    if not contacts_outcome.ok:
        fail(f"Could not load contacts: {contacts_outcome.message}")

    stats = board.stats()
    typer.echo(
        f"Contacts: {stats.total}  Active: {stats.active}  "
        f"Overdue: {stats.overdue}  Due this week: {stats.due_this_week}"
    )

    kpi_outcome = board.refresh_kpi_summary()
    if not kpi_outcome.ok:
        typer.echo(f"⚠️  KPI summary unavailable: {kpi_outcome.message}", err=True)
        return

    rollup = board.kpi_summary.value
    for ch in Channel:
        counts = rollup.for_channel(ch) if rollup else {}
        if not counts:
            continue
        line = ", ".join(f"{key}={value}" for key, value in counts.items())
        typer.echo(f"{ch.value}: {line}")
