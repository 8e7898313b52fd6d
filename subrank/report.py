import json
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from subrank.core.disk import human_size
from subrank.core.model import Report, ResultRecord
from subrank.core.ranking import SORT_LABELS, format_last_updated

SEVERITY_STYLES = {
    "info": "dim",
    "low": "cyan",
    "moderate": "yellow",
    "high": "red",
    "critical": "bold red",
}


def render_json(report: Report) -> str:
    return json.dumps(report.to_dict(), indent=2)


def _types_label(record: ResultRecord) -> str:
    order = ["prod", "dev", "optional", "peer"]
    return ",".join(t for t in order if t in record.types)


def _outdated_cell(record: ResultRecord) -> str:
    count = record.stats.outdated_subdeps
    if count is None:
        return "[dim]?[/]"
    if count == 0:
        return "[green]0[/]"
    return f"[yellow]{count}[/]"


def _audit_cell(record: ResultRecord) -> str:
    count = record.stats.audit_subdeps
    if count is None:
        return "[dim]?[/]"
    if count == 0:
        return "[green]0[/]"
    severity = record.stats.audit_severity or ""
    style = SEVERITY_STYLES.get(severity, "red")
    return f"[{style}]{count} ({severity})[/]"


def build_table(report: Report) -> Table:
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("#", justify="right")
    table.add_column("name")
    table.add_column("wanted(range)")
    table.add_column("installed")
    table.add_column("type")
    table.add_column("subdeps", justify="right")
    table.add_column("approx size", justify="right")
    table.add_column("outdated", justify="right")
    table.add_column("audit", justify="right")
    table.add_column("updated")

    for idx, record in enumerate(report.results, start=1):
        installed = escape(record.installed_label)
        if not record.is_installed:
            installed = f"[red]{installed}[/]"
        table.add_row(
            str(idx),
            escape(record.name),
            escape(record.wanted),
            installed,
            _types_label(record),
            str(record.subdeps),
            human_size(record.approx_bytes),
            _outdated_cell(record),
            _audit_cell(record),
            escape(format_last_updated(record.last_updated)),
        )
    return table


def render_table(report: Report, console: Optional[Console] = None) -> None:
    console = console or Console()
    console.print(build_table(report))

    top = report.results[:report.top]
    console.print()
    console.print(f"[b]Top {report.top} by {SORT_LABELS.get(report.sort, report.sort)}:[/b]")
    width = max([len(r.name) for r in top] + [4])
    for idx, record in enumerate(top, start=1):
        suffix = " [dim]\\[dev][/]" if record.types == {"dev"} else ""
        console.print(
            f"{idx:>2}. {escape(record.name.ljust(width))}  →  {record.subdeps} subdeps, "
            f"{human_size(record.approx_bytes)}  ({escape(record.installed_label)}){suffix}"
        )

    console.print()
    console.print(f"[b]Aggregate approx size:[/b] {human_size(report.aggregate_approx_bytes)} "
                  f"[dim](shared packages counted once)[/]")
    if not report.outdated_available:
        console.print("[yellow]npm outdated was unavailable; outdated counts are shown as ?[/]")
