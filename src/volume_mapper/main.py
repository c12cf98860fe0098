"""Command-line entry point — maps guest volumes to disks and virtual disks."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.logging import RichHandler
from rich.panel import Panel

from .config import load_config
from .guest import WinRMGuest
from .mapper import map_hosts
from .models import HostTarget
from .report import console, export_report_json, print_results
from .vcenter import VCenterSession

logger = logging.getLogger("volume_mapper")


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
    )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="volume-mapper",
        description="Map Windows guest volumes to their disks, partitions and VMware virtual disks.",
    )
    parser.add_argument(
        "hosts",
        nargs="*",
        help="Guest host names or addresses (NAME or NAME=ADDRESS).",
    )
    parser.add_argument(
        "--hosts-file",
        type=Path,
        help="File with one host per line (same NAME[=ADDRESS] form; '#' starts a comment).",
    )
    parser.add_argument(
        "--no-vcenter",
        action="store_true",
        help="Skip the vCenter virtual disk lookup even if vCenter is configured.",
    )
    parser.add_argument(
        "--export",
        type=str,
        default="",
        help="Path to export the JSON report.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=0,
        help="Parallel hosts (default: MAPPER_MAX_WORKERS or 5).",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose/debug logging.",
    )
    return parser.parse_args(argv)


def parse_target(spec: str) -> HostTarget:
    name, _, address = spec.strip().partition("=")
    return HostTarget(name=name.strip(), address=address.strip())


def load_targets(hosts: list[str], hosts_file: Path | None = None) -> list[HostTarget]:
    specs = list(hosts)
    if hosts_file is not None:
        for line in hosts_file.read_text(encoding="utf-8").splitlines():
            line = line.split("#", 1)[0].strip()
            if line:
                specs.append(line)
    targets: list[HostTarget] = []
    seen: set[str] = set()
    for spec in specs:
        target = parse_target(spec)
        if not target.name or target.name.lower() in seen:
            continue
        seen.add(target.name.lower())
        targets.append(target)
    return targets


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    _setup_logging(args.verbose)

    console.print(Panel(
        "[bold blue]Volume Mapper[/]\n"
        "Correlate guest volumes with disk partitions and vCenter virtual disks",
        border_style="blue",
    ))

    # ── Load configuration ──────────────────────────────────────────────
    cfg = load_config()
    try:
        targets = load_targets(args.hosts, args.hosts_file)
    except OSError as e:
        console.print(f"[bold red]Error:[/] cannot read hosts file: {e}")
        return 1
    if not targets:
        console.print("[bold red]Error:[/] no hosts given.")
        return 1
    if not cfg.guest.username:
        console.print("[bold red]Error:[/] guest credentials not configured. Set GUEST_USER / GUEST_PASSWORD.")
        return 1

    use_vcenter = cfg.vcenter.enabled and not args.no_vcenter
    if not use_vcenter:
        console.print("[dim]vCenter lookup disabled; virtual disk columns will be empty.[/]")

    # ── Connect to vCenter (shared, read-only) ──────────────────────────
    vcenter = None
    if use_vcenter:
        vcenter = VCenterSession(cfg.vcenter)
        try:
            vcenter.connect()
        except Exception as e:
            console.print(f"[bold red]vCenter connection failed:[/] {e}")
            logger.exception("vCenter error")
            return 1

    # ── Map hosts ───────────────────────────────────────────────────────
    try:
        results = map_hosts(
            targets,
            lambda host: WinRMGuest(host, cfg.guest),
            vcenter=vcenter,
            staging_dir=cfg.mapper.staging_dir,
            max_workers=args.workers or cfg.mapper.max_workers,
        )
    finally:
        if vcenter is not None:
            vcenter.close()

    # ── Report ──────────────────────────────────────────────────────────
    console.print()
    print_results(results)
    if args.export:
        export_report_json(results, Path(args.export))

    if all(not r.ok for r in results):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
