"""Collect memory layout and usage for a Linux host."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import glob
import logging
import os
import re
from typing import Dict, List, Optional

import jc
from jc.exceptions import ParseError
import psutil

from .commands import has_command, is_root, read_text, run_command
from .parsers import parse_int

logger = logging.getLogger(__name__)

MEMINFO_PATH = "/proc/meminfo"
SWAPS_PATH = "/proc/swaps"
SWAPPINESS_PATH = "/proc/sys/vm/swappiness"
NODE_ROOT = "/sys/devices/system/node"

_NODE_PREFIX = re.compile(r"^Node\s+\d+\s+")
_EMPTY_DIMM_SIZES = {"", "No Module Installed", "Unknown"}


@dataclass
class MemorySnapshot:
    """Values from ``/proc/meminfo``, all in KiB except the huge page count."""

    total: int = 0
    free: int = 0
    available: int = 0
    buffers: int = 0
    cached: int = 0
    shared: int = 0
    slab: int = 0
    slab_reclaimable: int = 0
    slab_unreclaimable: int = 0
    kernel_stack: int = 0
    page_tables: int = 0
    anon_pages: int = 0
    mapped: int = 0
    dirty: int = 0
    writeback: int = 0
    swap_total: int = 0
    swap_free: int = 0
    swap_cached: int = 0
    hugepages_total: int = 0
    hugepages_free: int = 0
    hugepage_size: int = 0

    @property
    def used(self) -> int:
        return max(self.total - self.free - self.buffers - self.cached, 0)

    @property
    def cache_total(self) -> int:
        return self.buffers + self.cached

    @property
    def kernel(self) -> int:
        return self.slab + self.kernel_stack + self.page_tables

    @property
    def ram_used(self) -> int:
        return max(self.total - self.available, 0)

    @property
    def ram_percent(self) -> int:
        return percent_of(self.ram_used, self.total)

    @property
    def swap_used(self) -> int:
        return max(self.swap_total - self.swap_free, 0)

    @property
    def swap_percent(self) -> int:
        return percent_of(self.swap_used, self.swap_total)

    @property
    def hugepages_used(self) -> int:
        return max(self.hugepages_total - self.hugepages_free, 0)

    @property
    def hugepages_size_total(self) -> int:
        return self.hugepages_total * self.hugepage_size


@dataclass
class SwapDevice:
    filename: str
    type: str
    size: int
    used: int
    priority: str

    @property
    def percent(self) -> int:
        return percent_of(self.used, self.size)


@dataclass
class DimmSlot:
    locator: str
    size: str = ""
    module_type: str = "Unknown"
    speed: str = "Unknown"
    manufacturer: str = "Unknown"

    @property
    def installed(self) -> bool:
        return self.size not in _EMPTY_DIMM_SIZES


@dataclass
class DimmInventory:
    max_capacity: str = "Unknown"
    slot_count: str = "Unknown"
    slots: List[DimmSlot] = field(default_factory=list)

    @property
    def installed_count(self) -> int:
        return sum(1 for slot in self.slots if slot.installed)


@dataclass
class NumaNode:
    node_id: int
    total: int
    free: int
    cpulist: str

    @property
    def used(self) -> int:
        return max(self.total - self.free, 0)


@dataclass
class ProcessMemory:
    pid: int
    user: str
    rss: int
    mem_percent: float
    command: str


@dataclass
class MemoryReport:
    generated: datetime
    snapshot: MemorySnapshot
    is_root: bool
    swap_devices: List[SwapDevice] = field(default_factory=list)
    swappiness: Optional[int] = None
    dimms: Optional[DimmInventory] = None
    numa_nodes: List[NumaNode] = field(default_factory=list)
    top_processes: List[ProcessMemory] = field(default_factory=list)


def percent_of(part: int, total: int) -> int:
    """Integer percentage of ``part`` in ``total``; 0 when ``total`` is 0."""
    if total <= 0:
        return 0
    return part * 100 // total


def parse_meminfo(text: str) -> Dict[str, int]:
    """Map ``/proc/meminfo`` field names to their integer values (KiB or page counts)."""
    try:
        return jc.parse("proc_meminfo", text, quiet=True)
    except (ParseError, ValueError) as exc:
        logger.warning("Could not parse meminfo: %s", exc)
        return {}


def snapshot_from_meminfo(values: Dict[str, int]) -> MemorySnapshot:
    return MemorySnapshot(
        total=values.get("MemTotal", 0),
        free=values.get("MemFree", 0),
        available=values.get("MemAvailable", 0),
        buffers=values.get("Buffers", 0),
        cached=values.get("Cached", 0),
        shared=values.get("Shmem", 0),
        slab=values.get("Slab", 0),
        slab_reclaimable=values.get("SReclaimable", 0),
        slab_unreclaimable=values.get("SUnreclaim", 0),
        kernel_stack=values.get("KernelStack", 0),
        page_tables=values.get("PageTables", 0),
        anon_pages=values.get("AnonPages", 0),
        mapped=values.get("Mapped", 0),
        dirty=values.get("Dirty", 0),
        writeback=values.get("Writeback", 0),
        swap_total=values.get("SwapTotal", 0),
        swap_free=values.get("SwapFree", 0),
        swap_cached=values.get("SwapCached", 0),
        hugepages_total=values.get("HugePages_Total", 0),
        hugepages_free=values.get("HugePages_Free", 0),
        hugepage_size=values.get("Hugepagesize", 0),
    )


def parse_swaps(text: str) -> List[SwapDevice]:
    devices: List[SwapDevice] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 5 or parts[0] == "Filename":
            continue
        devices.append(
            SwapDevice(
                filename=parts[0],
                type=parts[1],
                size=parse_int(parts[2]) or 0,
                used=parse_int(parts[3]) or 0,
                priority=parts[4],
            )
        )
    return devices


def parse_dmidecode_memory(text: str) -> DimmInventory:
    """Build the DIMM inventory from ``dmidecode -t memory`` records."""
    inventory = DimmInventory()
    try:
        records = jc.parse("dmidecode", text, quiet=True)
    except (ParseError, ValueError, IndexError) as exc:
        logger.warning("Could not parse dmidecode output: %s", exc)
        return inventory

    array_seen = False
    for record in records:
        values = record.get("values") or {}
        description = record.get("description")
        if description == "Physical Memory Array" and not array_seen:
            array_seen = True
            inventory.max_capacity = _dmi_value(values, "maximum_capacity") or "Unknown"
            inventory.slot_count = _dmi_value(values, "number_of_devices") or "Unknown"
        elif description == "Memory Device":
            locator = _dmi_value(values, "locator")
            if not locator:
                continue
            manufacturer = _dmi_value(values, "manufacturer")
            if manufacturer in ("", "Not Specified", "Unknown"):
                manufacturer = "Unknown"
            inventory.slots.append(
                DimmSlot(
                    locator=locator,
                    size=_dmi_value(values, "size"),
                    module_type=_dmi_value(values, "type") or "Unknown",
                    speed=_dmi_value(values, "speed") or "Unknown",
                    manufacturer=manufacturer,
                )
            )
    return inventory


def parse_node_meminfo(text: str) -> Dict[str, int]:
    """Parse ``nodeN/meminfo`` lines such as ``Node 0 MemTotal: 16384 kB``."""
    return parse_meminfo("\n".join(_NODE_PREFIX.sub("", line) for line in text.splitlines()))


def gather_numa_nodes(node_root: str = NODE_ROOT) -> List[NumaNode]:
    nodes: List[NumaNode] = []
    for node_dir in sorted(glob.glob(os.path.join(node_root, "node[0-9]*")), key=_node_number):
        values = parse_node_meminfo(read_text(os.path.join(node_dir, "meminfo")) or "")
        cpulist = (read_text(os.path.join(node_dir, "cpulist")) or "").strip()
        nodes.append(
            NumaNode(
                node_id=_node_number(node_dir),
                total=values.get("MemTotal", 0),
                free=values.get("MemFree", 0),
                cpulist=cpulist,
            )
        )
    return nodes


def gather_dimms(root: bool) -> Optional[DimmInventory]:
    """Read the DIMM inventory; ``None`` without root or dmidecode."""
    if not root or not has_command("dmidecode"):
        return None
    output = run_command(["dmidecode", "-t", "memory"])
    if not output or not output.strip():
        return None
    return parse_dmidecode_memory(output)


def gather_top_processes(limit: int = 10) -> List[ProcessMemory]:
    usage: List[ProcessMemory] = []
    for proc in psutil.process_iter():
        try:
            with proc.oneshot():
                cmdline = " ".join(proc.cmdline()) or f"[{proc.name()}]"
                usage.append(
                    ProcessMemory(
                        pid=proc.pid,
                        user=proc.username(),
                        rss=proc.memory_info().rss // 1024,
                        mem_percent=proc.memory_percent(),
                        command=cmdline,
                    )
                )
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
    return sorted(usage, key=lambda p: p.rss, reverse=True)[:limit]


def gather_memory_report(
    top_n: int = 10,
    meminfo_path: str = MEMINFO_PATH,
    swaps_path: str = SWAPS_PATH,
    swappiness_path: str = SWAPPINESS_PATH,
    node_root: str = NODE_ROOT,
) -> MemoryReport:
    """Collect everything the memory diagram shows."""
    meminfo = read_text(meminfo_path)
    if meminfo is None:
        logger.warning("%s is not readable; memory values will be zero", meminfo_path)
    root = is_root()
    swappiness = read_text(swappiness_path)
    return MemoryReport(
        generated=datetime.now(),
        snapshot=snapshot_from_meminfo(parse_meminfo(meminfo or "")),
        is_root=root,
        swap_devices=parse_swaps(read_text(swaps_path) or ""),
        swappiness=parse_int(swappiness) if swappiness else None,
        dimms=gather_dimms(root),
        numa_nodes=gather_numa_nodes(node_root),
        top_processes=gather_top_processes(top_n),
    )


def _node_number(path: str) -> int:
    return parse_int(os.path.basename(path)[len("node"):]) or 0


def _dmi_value(values: Dict[str, object], key: str) -> str:
    # list-valued entries (e.g. "Flags") are not shown
    value = values.get(key)
    return value.strip() if isinstance(value, str) else ""
