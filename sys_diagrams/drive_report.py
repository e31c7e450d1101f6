"""Rich renderables for the drive and ZFS health report."""

from __future__ import annotations

from typing import List, Sequence, Tuple, Union

from rich import box
from rich.console import RenderableType
from rich.padding import Padding
from rich.table import Table
from rich.text import Text

from .diagnostics import tally_drives, tally_pools
from .formatting import (
    CYAN,
    GRAY,
    GREEN,
    MAGENTA,
    RED,
    YELLOW,
    banner,
    capacity_style,
    dim,
    error_style,
    format_hours,
    fragmentation_style,
    human_size,
    na_text,
    pool_health_style,
    section,
    smart_health_style,
    status_text,
    subheader,
    temperature_style,
    truncate,
    vdev_state_style,
    warning,
    wear_style,
)
from .storage_state import (
    HDD,
    NVME,
    SSD,
    UNKNOWN,
    DatasetRecord,
    DriveRecord,
    PoolRecord,
    StorageReport,
)

MODEL_WIDTH = 12
DATASET_NAME_WIDTH = 30
MOUNTPOINT_WIDTH = 12

_DRIVE_ICONS = {NVME: "⚡", SSD: "◆", HDD: "◎"}

TextPart = Union[str, Tuple[str, str]]


def render_storage_report(report: StorageReport) -> List[RenderableType]:
    renderables: List[RenderableType] = [banner("🔍 Drive & ZFS Health Assessment Tool 🔍")]
    renderables.extend(drive_section(report))
    renderables.extend(pool_section(report))
    renderables.extend(dataset_section(report))
    renderables.extend(summary_section(report))
    return renderables


def drive_section(report: StorageReport) -> List[RenderableType]:
    items: List[RenderableType] = [section("💾 Physical Drive Health")]
    if not report.smartctl_available:
        items.append(warning("smartctl not found. Install smartmontools for SMART data."))
        items.append(dim("  Ubuntu/Debian: sudo apt install smartmontools"))
        items.append(dim("  RHEL/CentOS:   sudo yum install smartmontools"))
        return items
    if not report.is_root:
        items.append(warning("Not running as root. Some SMART data may be unavailable."))
        items.append(dim("  Run with: sudo drive-health"))
    if not report.drives:
        items.append(Text("No physical drives detected", style=GRAY))
        return items
    items.append(drive_table(report.drives))
    return items


def drive_table(drives: Sequence[DriveRecord]) -> Table:
    table = Table(box=box.SIMPLE_HEAD, header_style="bold white")
    for column in ("TYPE", "DEVICE", "SIZE", "MODEL", "SMART", "HOURS", "TEMP", "ERRORS", "CYCLES", "WEAR"):
        table.add_column(column)
    for drive in drives:
        smart = drive.smart
        health_label = "N/A" if smart.health == UNKNOWN else smart.health
        total_errors = smart.total_errors
        table.add_row(
            Text.assemble((_DRIVE_ICONS.get(drive.drive_type, "○"), CYAN), " ", drive.drive_type),
            Text(drive.name),
            human_size(drive.size_bytes),
            Text(drive.model[:MODEL_WIDTH]),
            status_text(health_label, smart_health_style(smart.health)),
            format_hours(smart.power_on_hours),
            na_text(smart.temperature, temperature_style(smart.temperature), "°C"),
            na_text(total_errors, error_style(total_errors)),
            na_text(smart.power_cycles, ""),
            na_text(smart.wear, wear_style(smart.wear, smart.wear_is_remaining), "%"),
        )
    return table


def pool_section(report: StorageReport) -> List[RenderableType]:
    items: List[RenderableType] = [section("🗄️  ZFS Pool Health")]
    if not report.zpool_available:
        items.append(Text("ZFS not installed or not in PATH", style=GRAY))
        return items
    if not report.pools:
        items.append(Text("No ZFS pools found", style=GRAY))
        return items

    items.append(pool_table(report.pools))
    items.append(subheader("Pool Device Status"))
    for pool in report.pools:
        items.extend(pool_detail(pool))
    return items


def pool_table(pools: Sequence[PoolRecord]) -> Table:
    table = Table(box=box.SIMPLE_HEAD, header_style="bold white")
    for column in ("POOL", "SIZE", "USED", "FREE", "CAP", "HEALTH", "FRAGMENTATION", "ERRORS"):
        table.add_column(column)
    for pool in pools:
        table.add_row(
            Text(pool.name),
            Text(pool.size),
            Text(pool.allocated),
            Text(pool.free),
            na_text(pool.capacity, capacity_style(pool.capacity), "%"),
            status_text(pool.health, pool_health_style(pool.health)),
            na_text(pool.fragmentation, fragmentation_style(pool.fragmentation), "%"),
            Text(str(pool.total_errors), style=error_style(pool.total_errors)),
        )
    return table


def pool_detail(pool: PoolRecord) -> List[RenderableType]:
    """The vdev tree of one pool, followed by its error and scrub state."""
    items: List[RenderableType] = [Text(""), Text(pool.name, style=f"bold {MAGENTA}")]

    tree = Table(box=box.SIMPLE_HEAD, header_style=GRAY)
    for column in ("DEVICE", "STATE", "READ", "WRITE", "CKSUM", "NOTE"):
        tree.add_column(column)
    for root in pool.vdevs:
        for vdev in root.walk():
            tree.add_row(
                Text("  " * vdev.depth + vdev.name),
                Text(vdev.state, style=vdev_state_style(vdev.state)),
                _counter(vdev.read_errors),
                _counter(vdev.write_errors),
                _counter(vdev.cksum_errors),
                Text(vdev.note, style=GRAY),
            )
    items.append(Padding(tree, (0, 0, 0, 2)))

    if pool.errors:
        items.append(Text(f"  ⚠ {pool.errors}", style=RED))
    if pool.scrub.state == "in_progress":
        items.append(Text("  🔄 Scrub in progress", style=CYAN))
        if pool.scrub.progress:
            items.append(Text(f"  {pool.scrub.progress}"))
    elif pool.scrub.state == "completed":
        items.append(dim(f"  Last scrub: {pool.scrub.last_run or 'unknown'}"))
    return items


def dataset_section(report: StorageReport) -> List[RenderableType]:
    if not report.zfs_available or not report.datasets:
        return []
    return [subheader(f"ZFS Datasets (Top {len(report.datasets)})"), dataset_table(report.datasets)]


def dataset_table(datasets: Sequence[DatasetRecord]) -> Table:
    table = Table(box=box.SIMPLE_HEAD, header_style="bold white")
    for column in ("DATASET", "USED", "AVAIL", "REFER", "RATIO", "MOUNTPOINT"):
        table.add_column(column)
    for dataset in datasets:
        table.add_row(
            Text(truncate(dataset.name, DATASET_NAME_WIDTH)),
            Text(dataset.used),
            Text(dataset.available),
            Text(dataset.referenced),
            Text(dataset.compress_ratio),
            Text(truncate(dataset.mountpoint, MOUNTPOINT_WIDTH)),
        )
    return table


def summary_section(report: StorageReport) -> List[RenderableType]:
    drives = tally_drives(report.drives)
    parts: List[TextPart] = ["  ", ("Physical Drives:", "bold"), " ", (f"{drives.healthy} healthy", GREEN)]
    if drives.unknown > 0:
        parts += [", ", (f"{drives.unknown} unknown", YELLOW)]
    if drives.failed > 0:
        parts += [", ", (f"{drives.failed} failed", RED)]
    parts.append(f" (of {drives.total} total)")
    items: List[RenderableType] = [section("📊 Summary"), Text.assemble(*parts)]

    pools = tally_pools(report.pools)
    if pools.total > 0:
        parts = ["  ", ("ZFS Pools:", "bold"), "        ", (f"{pools.healthy} healthy", GREEN)]
        if pools.degraded > 0:
            parts += [", ", (f"{pools.degraded} degraded", YELLOW)]
        if pools.faulted > 0:
            parts += [", ", (f"{pools.faulted} faulted", RED)]
        parts.append(f" (of {pools.total} total)")
        items.append(Text.assemble(*parts))

    items.append(Text(""))
    items.append(dim(f"  Report generated: {report.generated:%Y-%m-%d %H:%M:%S}"))
    items.append(dim("  Run with sudo for complete SMART data"))
    return items


def _counter(count: int) -> Text:
    return Text(str(count), style=RED if count > 0 else "")
