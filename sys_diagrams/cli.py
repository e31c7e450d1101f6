"""Entry points for the memory-diagram and drive-health command line tools."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Optional

from rich.console import Console, RenderableType

from . import __version__
from .diagnostics import assess_memory_pressure, tally_drives, tally_pools
from .drive_report import render_storage_report
from .memory_report import render_memory_report
from .memory_state import MemoryReport, gather_memory_report
from .storage_state import StorageReport, gather_storage_report

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("sys_diagrams")


def memory_main(argv: Optional[List[str]] = None) -> None:
    parser = _base_parser("ASCII diagram of system memory: topology, usage, swap and NUMA layout.")
    parser.add_argument("--top", type=int, default=10, help="number of top memory consumers to list")
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    report = gather_memory_report(top_n=args.top)
    if args.json:
        print(memory_json(report))
        return
    _print(render_memory_report(report))


def drives_main(argv: Optional[List[str]] = None) -> None:
    parser = _base_parser("At-a-glance drive SMART and ZFS pool health assessment.")
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    report = gather_storage_report()
    if args.json:
        print(storage_json(report))
        return
    _print(render_storage_report(report))


def memory_json(report: MemoryReport) -> str:
    payload: Dict[str, Any] = asdict(report)
    payload["generated"] = report.generated.isoformat()
    snapshot = report.snapshot
    payload["derived"] = {
        "used": snapshot.used,
        "ram_used": snapshot.ram_used,
        "ram_percent": snapshot.ram_percent,
        "swap_used": snapshot.swap_used,
        "swap_percent": snapshot.swap_percent,
        "pressure": assess_memory_pressure(snapshot.ram_percent).level,
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def storage_json(report: StorageReport) -> str:
    payload: Dict[str, Any] = asdict(report)
    payload["generated"] = report.generated.isoformat()
    for drive, record in zip(payload["drives"], report.drives):
        drive["smart"]["total_errors"] = record.smart.total_errors
    payload["summary"] = {
        "drives": asdict(tally_drives(report.drives)),
        "pools": asdict(tally_pools(report.pools)),
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def _base_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("--json", action="store_true", help="print the collected data as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="log collection details to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)
    logger.debug("sys-diagrams %s", __version__)


def _print(renderables: Iterable[RenderableType]) -> None:
    console = Console()
    for renderable in renderables:
        console.print(renderable)
    console.print()
