"""Rich renderables for the memory diagram."""

from __future__ import annotations

from typing import List, Sequence, Tuple

from rich import box
from rich.console import Group, RenderableType
from rich.padding import Padding
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .diagnostics import assess_memory_pressure
from .formatting import (
    BLUE,
    CYAN,
    GRAY,
    GREEN,
    MAGENTA,
    RED,
    REPORT_WIDTH,
    YELLOW,
    banner,
    dim,
    human_kb,
    section,
    truncate,
    usage_bar,
    warning,
)
from .memory_state import MemoryReport, MemorySnapshot, NumaNode, ProcessMemory, SwapDevice, percent_of

BAR_WIDTH = 50
NUMA_BAR_WIDTH = 35
COMMAND_WIDTH = 40

MapRow = Tuple[str, int, str]


def render_memory_report(report: MemoryReport) -> List[RenderableType]:
    renderables: List[RenderableType] = [banner("🧠 System Memory Diagram Tool 🧠")]
    renderables.extend(dimm_section(report))
    renderables.extend(usage_section(report.snapshot))
    renderables.extend(swap_section(report))
    renderables.extend(numa_section(report.numa_nodes))
    renderables.extend(process_section(report.top_processes))
    renderables.extend(summary_section(report))
    return renderables


def dimm_section(report: MemoryReport) -> List[RenderableType]:
    items: List[RenderableType] = [section("Physical Memory Topology")]
    inventory = report.dimms
    if inventory is None:
        if report.is_root:
            items.append(warning("dmidecode is unavailable or returned no data"))
        else:
            items.append(warning("Run as root to see DIMM slot details (requires dmidecode)"))
        ram = Panel(
            Text(f"System RAM: {human_kb(report.snapshot.total)}", style="bold white", justify="center"),
            box=box.SQUARE,
            border_style=GREEN,
            padding=(1, 4),
        )
        items.append(_indent(Panel(ram, box=box.SQUARE, border_style=GRAY, width=REPORT_WIDTH - 4)))
        return items

    items.append(dim(f"  Max Capacity: {inventory.max_capacity} | Slots: {inventory.slot_count}"))
    table = Table(box=box.ROUNDED, border_style=GRAY, width=REPORT_WIDTH - 4)
    table.add_column("Module")
    table.add_column("Slot")
    table.add_column("Type")
    table.add_column("Speed")
    table.add_column("Manufacturer")
    for slot in inventory.slots:
        if slot.installed:
            table.add_row(
                Text(slot.size, style=f"bold {GREEN}"),
                Text(slot.locator),
                Text(slot.module_type, style=CYAN),
                Text(slot.speed, style=MAGENTA),
                Text(slot.manufacturer, style="dim"),
            )
        else:
            table.add_row(Text("EMPTY", style="dim"), Text(slot.locator, style="dim"), "", "", "")
    items.append(_indent(table))
    items.append(dim(f"  Installed: {inventory.installed_count} module(s)"))
    return items


def usage_section(snapshot: MemorySnapshot) -> List[RenderableType]:
    total = snapshot.total
    items: List[RenderableType] = [
        section("Memory Usage Breakdown"),
        Text.assemble("  ", ("Total RAM:", "bold"), f"     {human_kb(total)}"),
        _indent(usage_bar(snapshot.ram_used, total, BAR_WIDTH)),
    ]

    groups = [
        _map_group(
            "User/Apps",
            RED,
            [
                ("Anonymous Pages:", snapshot.anon_pages, f"({percent_of(snapshot.anon_pages, total)}%)"),
                ("Mapped Files:", snapshot.mapped, ""),
                ("Shared Memory:", snapshot.shared, ""),
            ],
        ),
        _map_group(
            "Cache/Buffers",
            YELLOW,
            [
                ("Page Cache:", snapshot.cached, f"({percent_of(snapshot.cache_total, total)}%)"),
                ("Buffers:", snapshot.buffers, ""),
                ("Dirty:", snapshot.dirty, ""),
                ("Writeback:", snapshot.writeback, ""),
            ],
        ),
        _map_group(
            "Kernel",
            MAGENTA,
            [
                ("Slab (reclaimable):", snapshot.slab_reclaimable, ""),
                ("Slab (unreclaim):", snapshot.slab_unreclaimable, ""),
                ("Kernel Stack:", snapshot.kernel_stack, ""),
                ("Page Tables:", snapshot.page_tables, ""),
            ],
        ),
        _map_group(
            "Free",
            GREEN,
            [
                ("Free Memory:", snapshot.free, f"({percent_of(snapshot.free, total)}%)"),
                ("Available:", snapshot.available, ""),
            ],
        ),
    ]
    items.append(
        _indent(
            Panel(
                Group(*groups),
                title="[bold]Memory Map[/bold]",
                title_align="left",
                box=box.SQUARE,
                border_style=GRAY,
                width=REPORT_WIDTH - 4,
            )
        )
    )

    if snapshot.hugepages_total > 0:
        items.append(Text.assemble("  ", ("Huge Pages:", "bold")))
        items.append(
            Text(
                f"    Total: {snapshot.hugepages_total} × {human_kb(snapshot.hugepage_size)}"
                f" = {human_kb(snapshot.hugepages_size_total)}"
            )
        )
        items.append(Text(f"    Used:  {snapshot.hugepages_used}  Free: {snapshot.hugepages_free}"))
    return items


def swap_section(report: MemoryReport) -> List[RenderableType]:
    snapshot = report.snapshot
    items: List[RenderableType] = [section("Swap Configuration")]
    if snapshot.swap_total == 0:
        items.append(dim("  No swap configured"))
        return items

    items.append(Text.assemble("  ", ("Total Swap:", "bold"), f"    {human_kb(snapshot.swap_total)}"))
    items.append(_indent(usage_bar(snapshot.swap_used, snapshot.swap_total, BAR_WIDTH)))

    lines: List[RenderableType] = []
    for device in report.swap_devices:
        lines.extend(_swap_device_lines(device))
    lines.append(Text(""))
    lines.append(dim(f"Swap Cached: {human_kb(snapshot.swap_cached)}"))
    items.append(
        _indent(
            Panel(
                Group(*lines),
                title="[bold]Swap Devices[/bold]",
                title_align="left",
                box=box.SQUARE,
                border_style=GRAY,
                width=REPORT_WIDTH - 4,
            )
        )
    )
    if report.swappiness is not None:
        items.append(dim(f"  vm.swappiness = {report.swappiness}"))
    return items


def numa_section(nodes: Sequence[NumaNode]) -> List[RenderableType]:
    """NUMA panels; a single node is not a NUMA layout and renders nothing."""
    if len(nodes) < 2:
        return []
    panels = [
        Panel(
            Group(
                Text(f"Memory: {human_kb(node.used):<10} / {human_kb(node.total):<10}"),
                Text(f"CPUs:   {node.cpulist}"),
                usage_bar(node.used, node.total, NUMA_BAR_WIDTH),
            ),
            title=f"Node {node.node_id}",
            title_align="left",
            box=box.SQUARE,
            border_style=BLUE,
            width=REPORT_WIDTH - 14,
        )
        for node in nodes
    ]
    return [
        section("NUMA Topology"),
        _indent(Panel(Group(*panels), box=box.SQUARE, border_style=GRAY, width=REPORT_WIDTH - 4)),
    ]


def process_section(processes: Sequence[ProcessMemory]) -> List[RenderableType]:
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("PID", justify="right")
    table.add_column("USER")
    table.add_column("RSS", justify="right")
    table.add_column("%MEM", justify="right")
    table.add_column("COMMAND")

    if not processes:
        table.add_row("-", "-", "-", "-", Text("No process data"))
    for proc in processes:
        table.add_row(
            str(proc.pid),
            Text(proc.user[:10]),
            human_kb(proc.rss),
            f"{proc.mem_percent:.1f}%",
            Text(truncate(proc.command, COMMAND_WIDTH)),
        )
    return [section("Top Memory Consumers"), _indent(table)]


def summary_section(report: MemoryReport) -> List[RenderableType]:
    snapshot = report.snapshot
    assessment = assess_memory_pressure(snapshot.ram_percent)
    items: List[RenderableType] = [
        section("Summary"),
        Text.assemble(
            "  ",
            ("RAM:", "bold"),
            f"  {human_kb(snapshot.ram_used)} used / {human_kb(snapshot.total)} total ({snapshot.ram_percent}%)",
        ),
    ]
    if snapshot.swap_total > 0:
        items.append(
            Text.assemble(
                "  ",
                ("Swap:", "bold"),
                f" {human_kb(snapshot.swap_used)} used / {human_kb(snapshot.swap_total)} total"
                f" ({snapshot.swap_percent}%)",
            )
        )
    else:
        items.append(Text.assemble("  ", ("Swap:", "bold"), " ", ("Not configured", "dim")))
    items.append(Text(""))
    items.append(Text(f"  {assessment.line}", style=assessment.style))
    items.append(Text(""))
    items.append(dim(f"  Generated: {report.generated:%Y-%m-%d %H:%M:%S}"))
    return items


def _map_group(title: str, style: str, rows: Sequence[MapRow]) -> Panel:
    grid = Table.grid(padding=(0, 1))
    grid.add_column(min_width=20)
    grid.add_column(justify="right", min_width=12)
    grid.add_column(min_width=6)
    for label, value, share in rows:
        grid.add_row(label, human_kb(value), share)
    return Panel(grid, title=f"─ {title} ", title_align="left", box=box.SQUARE, border_style=style, width=REPORT_WIDTH - 20)


def _swap_device_lines(device: SwapDevice) -> List[RenderableType]:
    icon = "📄"
    if device.type == "partition":
        icon = "💾"
    if "zram" in device.filename:
        icon = "⚡"
    return [
        Text(""),
        Text(f" {icon} {device.filename}"),
        Text(f"    Type: {device.type:<12}  Priority: {device.priority}"),
        Text(f"    Size: {human_kb(device.size):<12}  Used: {human_kb(device.used):<12} ({device.percent}%)"),
    ]


def _indent(renderable: RenderableType) -> Padding:
    return Padding(renderable, (0, 0, 0, 2))
