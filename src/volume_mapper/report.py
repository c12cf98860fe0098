"""Rich console tables and JSON export for mapping results."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import HostResult

logger = logging.getLogger(__name__)
console = Console()


def _gb(num_bytes: int | None) -> str:
    if num_bytes is None:
        return "—"
    return f"{num_bytes / (1024 ** 3):,.1f}"


def _or_dash(value: object) -> str:
    return "—" if value is None or value == "" else str(value)


# ---------------------------------------------------------------------------
# Summary banner
# ---------------------------------------------------------------------------

def print_summary(results: list[HostResult]) -> None:
    """Print a high-level summary of the batch."""
    ok = [r for r in results if r.ok]
    records = [rec for r in ok for rec in r.records]
    matched = sum(1 for rec in records if rec.has_partition)
    linked = sum(1 for rec in records if rec.has_virtual_disk)
    duplicates = sum(r.duplicate_partitions for r in results)

    summary = (
        f"[bold]Hosts:[/] {len(results)} ({len(ok)} mapped, {len(results) - len(ok)} failed)\n"
        f"[bold]Volumes:[/] {sum(r.volume_count for r in ok)}    "
        f"[bold]Extents:[/] {len(records)}\n"
        f"[bold]Matched to partitions:[/] {matched}    "
        f"[bold]Linked to virtual disks:[/] {linked}"
    )
    if duplicates:
        summary += f"\n[yellow]Duplicate partition keys:[/] {duplicates}"
    console.print(Panel(summary, title="[bold green]Volume Mapping Summary", border_style="green"))


# ---------------------------------------------------------------------------
# Per-host tables
# ---------------------------------------------------------------------------

def print_host_table(result: HostResult) -> None:
    """Print one row per extent for a mapped host."""
    title = result.host if not result.vm_name else f"{result.host} (VM: {result.vm_name})"
    table = Table(title=title, show_lines=False)
    table.add_column("Mount", style="bold", max_width=20)
    table.add_column("Disk", justify="right")
    table.add_column("Offset", justify="right")
    table.add_column("Size (GB)", justify="right")
    table.add_column("SCSI", justify="center")
    table.add_column("Serial", max_width=34)
    table.add_column("Virtual disk", max_width=16)
    table.add_column("File", max_width=50)

    for rec in result.records:
        scsi = "—"
        if rec.scsi_controller is not None:
            scsi = f"{rec.scsi_controller}:{rec.scsi_unit}"
        table.add_row(
            rec.mount_point or rec.volume_id,
            str(rec.disk_id),
            str(rec.extent_offset),
            _gb(rec.extent_size),
            scsi,
            _or_dash(rec.disk_serial_number),
            _or_dash(rec.vdisk_name),
            _or_dash(rec.vdisk_filename),
        )

    console.print(table)


def print_errors(results: list[HostResult]) -> None:
    failed = [r for r in results if not r.ok]
    if not failed:
        return
    table = Table(title="Failed Hosts", show_lines=True)
    table.add_column("Host", style="bold red")
    table.add_column("Error")
    for r in failed:
        table.add_row(r.host, r.error)
    console.print(table)


def print_results(results: list[HostResult]) -> None:
    for r in results:
        if r.ok:
            print_host_table(r)
            console.print()
    print_errors(results)
    print_summary(results)


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------

def build_report(results: list[HostResult]) -> dict:
    return {
        "summary": {
            "hosts": len(results),
            "mapped": sum(1 for r in results if r.ok),
            "failed": sum(1 for r in results if not r.ok),
            "records": sum(len(r.records) for r in results),
        },
        "hosts": [asdict(r) for r in results],
    }


def export_report_json(results: list[HostResult], output_path: Path) -> None:
    """Export every host result to a JSON file."""
    output_path.write_text(json.dumps(build_report(results), indent=2, default=str), encoding="utf-8")
    logger.info("Report exported to %s", output_path)
    console.print(f"\n[bold]Report exported to:[/] {output_path}")
