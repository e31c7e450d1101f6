"""Collect SMART drive health and ZFS pool/dataset state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import json
import logging
import os
import re
import stat
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from .commands import has_command, is_root, read_text, run_command
from .parsers import parse_count, parse_int, parse_tabbed_rows

logger = logging.getLogger(__name__)

DEV_ROOT = "/dev"
SYS_BLOCK = "/sys/block"
SECTOR_SIZE = 512
DATASET_LIMIT = 20

# Ordered: SCSI/SATA first, then NVMe namespaces, then legacy IDE.
DEVICE_PATTERNS = (
    re.compile(r"^sd[a-z][a-z]?$"),
    re.compile(r"^nvme\d+n\d+$"),
    re.compile(r"^hd[a-z]$"),
)

NVME = "NVMe"
SSD = "SSD"
HDD = "HDD"
UNKNOWN_TYPE = "???"

PASSED = "PASSED"
FAILED = "FAILED"
UNKNOWN = "UNKNOWN"

POOL_COLUMNS = ("name", "size", "alloc", "free", "cap", "health", "frag")
DATASET_COLUMNS = ("name", "used", "avail", "refer", "compressratio", "mountpoint")

# ATA attribute ids
REALLOCATED_ID = 5
POWER_ON_HOURS_ID = 9
POWER_CYCLES_ID = 12
TEMPERATURE_IDS = (194, 190)
PENDING_ID = 197
UNCORRECTABLE_ID = 198
WEAR_ATTRIBUTES = ("Wear_Leveling_Count", "Percent_Lifetime_Remain", "Media_Wearout_Indicator", "SSD_Life_Left")

_MODEL_KEYS = ("model_name", "scsi_model_name", "product")
_SCRUB_DATE = re.compile(r"[A-Z][a-z]{2} [A-Z][a-z]{2} +\d+ [\d:]+")
_STATUS_SECTION = re.compile(r"^\s*[a-z]+:")


@dataclass
class SmartData:
    """Normalized SMART fields; ``None`` means the drive did not report it."""

    health: str = UNKNOWN
    power_on_hours: Optional[int] = None
    temperature: Optional[int] = None
    reallocated: Optional[int] = None
    pending: Optional[int] = None
    uncorrectable: Optional[int] = None
    media_errors: Optional[int] = None
    error_log_entries: Optional[int] = None
    power_cycles: Optional[int] = None
    wear: Optional[int] = None
    wear_is_remaining: bool = False

    @property
    def total_errors(self) -> Optional[int]:
        counters = [
            value
            for value in (
                self.reallocated,
                self.pending,
                self.uncorrectable,
                self.media_errors,
                self.error_log_entries,
            )
            if value is not None
        ]
        return sum(counters) if counters else None


@dataclass
class DriveRecord:
    device: str
    name: str
    drive_type: str
    size_bytes: Optional[int]
    model: str
    smart: SmartData = field(default_factory=SmartData)


@dataclass
class VdevRecord:
    name: str
    state: str
    read_errors: int = 0
    write_errors: int = 0
    cksum_errors: int = 0
    depth: int = 0
    note: str = ""
    children: List["VdevRecord"] = field(default_factory=list)

    def walk(self) -> Iterator["VdevRecord"]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class ScrubStatus:
    state: Optional[str] = None
    last_run: Optional[str] = None
    progress: Optional[str] = None


@dataclass
class PoolStatus:
    vdevs: List[VdevRecord] = field(default_factory=list)
    errors: Optional[str] = None
    scrub: ScrubStatus = field(default_factory=ScrubStatus)


@dataclass
class PoolRecord:
    name: str
    size: str = ""
    allocated: str = ""
    free: str = ""
    capacity: Optional[int] = None
    health: str = UNKNOWN
    fragmentation: Optional[int] = None
    read_errors: int = 0
    write_errors: int = 0
    cksum_errors: int = 0
    vdevs: List[VdevRecord] = field(default_factory=list)
    errors: Optional[str] = None
    scrub: ScrubStatus = field(default_factory=ScrubStatus)

    @property
    def total_errors(self) -> int:
        return self.read_errors + self.write_errors + self.cksum_errors


@dataclass
class DatasetRecord:
    name: str
    used: str
    available: str
    referenced: str
    compress_ratio: str
    mountpoint: str


@dataclass
class StorageReport:
    generated: datetime
    is_root: bool
    smartctl_available: bool
    zpool_available: bool
    zfs_available: bool
    drives: List[DriveRecord] = field(default_factory=list)
    pools: List[PoolRecord] = field(default_factory=list)
    datasets: List[DatasetRecord] = field(default_factory=list)


def smart_health(data: Mapping[str, Any]) -> str:
    status = data.get("smart_status")
    passed = status.get("passed") if isinstance(status, dict) else None
    if passed is True:
        return PASSED
    if passed is False:
        return FAILED
    return UNKNOWN


def has_smart_fields(data: Mapping[str, Any]) -> bool:
    return any(key in data for key in ("ata_smart_attributes", "nvme_smart_health_information_log", "smart_status"))


def parse_smart_ata(data: Mapping[str, Any]) -> SmartData:
    """Read SMART data for SATA/SAS drives from ``smartctl -a -j`` output."""
    table = _mapping(data.get("ata_smart_attributes")).get("table")
    by_id: Dict[Any, Mapping[str, Any]] = {}
    by_name: Dict[Any, Mapping[str, Any]] = {}
    for attribute in table if isinstance(table, list) else []:
        if isinstance(attribute, dict):
            by_id.setdefault(attribute.get("id"), attribute)
            by_name.setdefault(attribute.get("name"), attribute)

    hours = _as_int(_mapping(data.get("power_on_time")).get("hours"))
    if hours is None:
        hours = _raw_value(by_id.get(POWER_ON_HOURS_ID))

    temperature = _as_int(_mapping(data.get("temperature")).get("current"))
    for attr_id in TEMPERATURE_IDS:
        if temperature is None:
            temperature = _raw_value(by_id.get(attr_id))

    power_cycles = _as_int(data.get("power_cycle_count"))
    if power_cycles is None:
        power_cycles = _raw_value(by_id.get(POWER_CYCLES_ID))

    wear = None
    for name in WEAR_ATTRIBUTES:
        if name in by_name:
            wear = _as_int(by_name[name].get("value"))
            break

    # counters the drive omits are zero once smartctl answered at all
    default = 0 if has_smart_fields(data) else None
    return SmartData(
        health=smart_health(data),
        power_on_hours=hours,
        temperature=temperature,
        reallocated=_counter(by_id.get(REALLOCATED_ID), default),
        pending=_counter(by_id.get(PENDING_ID), default),
        uncorrectable=_counter(by_id.get(UNCORRECTABLE_ID), default),
        power_cycles=power_cycles,
        wear=wear,
        wear_is_remaining=True,
    )


def parse_smart_nvme(data: Mapping[str, Any]) -> SmartData:
    """Read the NVMe SMART/Health Information log from ``smartctl -a -j`` output."""
    log = _mapping(data.get("nvme_smart_health_information_log"))
    default = 0 if log else None

    temperature = _as_int(_mapping(data.get("temperature")).get("current"))
    if temperature is None:
        temperature = _as_int(log.get("temperature"))
    hours = _as_int(log.get("power_on_hours"))
    if hours is None:
        hours = _as_int(_mapping(data.get("power_on_time")).get("hours"))

    media_errors = _as_int(log.get("media_errors"))
    error_log_entries = _as_int(log.get("num_err_log_entries"))
    return SmartData(
        health=smart_health(data),
        power_on_hours=hours,
        temperature=temperature,
        media_errors=default if media_errors is None else media_errors,
        error_log_entries=default if error_log_entries is None else error_log_entries,
        power_cycles=_as_int(log.get("power_cycles")),
        wear=_as_int(log.get("percentage_used")),
        wear_is_remaining=False,
    )


def classify_drive(name: str, rotation_rate: Optional[int], rotational: Optional[str]) -> str:
    if name.startswith("nvme"):
        return NVME
    rate = _as_int(rotation_rate)
    if rate is not None:
        return SSD if rate == 0 else HDD
    if rotational == "0":
        return SSD
    if rotational == "1":
        return HDD
    return UNKNOWN_TYPE


def enumerate_drives(dev_root: str = DEV_ROOT) -> List[str]:
    try:
        names = os.listdir(dev_root)
    except OSError as exc:
        logger.warning("Cannot list %s: %s", dev_root, exc)
        return []
    found: List[str] = []
    for pattern in DEVICE_PATTERNS:
        matching = sorted((name for name in names if pattern.match(name)), key=lambda n: (len(n), n))
        found.extend(name for name in matching if _is_block_device(os.path.join(dev_root, name)))
    return found


def smartctl_json(device: str) -> Dict[str, Any]:
    """Run ``smartctl -a -j``; any unusable answer becomes an empty dict."""
    output = run_command(["smartctl", "-a", "-j", device])
    if not output or not output.strip():
        return {}
    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        logger.warning("smartctl returned non-JSON output for %s", device)
        return {}
    return data if isinstance(data, dict) else {}


def gather_drive(
    name: str,
    smartctl_available: bool,
    dev_root: str = DEV_ROOT,
    sys_block: str = SYS_BLOCK,
) -> DriveRecord:
    device = os.path.join(dev_root, name)
    data = smartctl_json(device) if smartctl_available else {}

    rotational = read_text(os.path.join(sys_block, name, "queue", "rotational"))
    drive_type = classify_drive(name, data.get("rotation_rate"), rotational.strip() if rotational else None)

    model = next((str(data[key]).strip() for key in _MODEL_KEYS if data.get(key)), "")
    if not model:
        model = (read_text(os.path.join(sys_block, name, "device", "model")) or "").strip()
    sectors = parse_int(read_text(os.path.join(sys_block, name, "size")))

    return DriveRecord(
        device=device,
        name=name,
        drive_type=drive_type,
        size_bytes=sectors * SECTOR_SIZE if sectors else None,
        model=model or "Unknown",
        smart=parse_smart_nvme(data) if drive_type == NVME else parse_smart_ata(data),
    )


def gather_drives(
    smartctl_available: bool,
    dev_root: str = DEV_ROOT,
    sys_block: str = SYS_BLOCK,
) -> List[DriveRecord]:
    drives: List[DriveRecord] = []
    for name in enumerate_drives(dev_root):
        try:
            drives.append(gather_drive(name, smartctl_available, dev_root, sys_block))
        except (OSError, ValueError) as exc:
            logger.warning("Could not inspect %s: %s", name, exc)
            drives.append(
                DriveRecord(
                    device=os.path.join(dev_root, name),
                    name=name,
                    drive_type=UNKNOWN_TYPE,
                    size_bytes=None,
                    model="Unknown",
                )
            )
    return drives


def parse_zpool_status(text: str) -> PoolStatus:
    """Parse ``zpool status <pool>`` into a vdev tree plus errors and scrub state."""
    status = PoolStatus()
    lines = text.splitlines()
    status.vdevs = _parse_vdev_tree(_section(lines, "config"))

    # the headline only; permanent-error file lists follow it
    errors = [line.strip() for line in _section(lines, "errors", inline=True) if line.strip()]
    if errors and "No known data errors" not in errors[0]:
        status.errors = errors[0]

    scan = [line.strip() for line in _section(lines, "scan", inline=True) if line.strip()]
    if scan:
        headline = scan[0]
        if "in progress" in headline:
            status.scrub.state = "in_progress"
            status.scrub.progress = next((line for line in scan[1:] if "done" in line or "to go" in line), None)
        elif "scrub repaired" in headline:
            status.scrub.state = "completed"
            match = _SCRUB_DATE.search(headline)
            status.scrub.last_run = match.group(0) if match else None
    return status


def pool_from_rows(name: str, list_output: str, status_output: str) -> PoolRecord:
    rows = parse_tabbed_rows(list_output, POOL_COLUMNS)
    row = rows[0] if rows else {column: "" for column in POOL_COLUMNS}
    status = parse_zpool_status(status_output)
    pool = PoolRecord(
        name=row["name"] or name,
        size=row["size"],
        allocated=row["alloc"],
        free=row["free"],
        capacity=parse_int(row["cap"]),
        health=row["health"] or UNKNOWN,
        fragmentation=parse_int(row["frag"]),
        vdevs=status.vdevs,
        errors=status.errors,
        scrub=status.scrub,
    )
    root = next((vdev for vdev in status.vdevs if vdev.name == pool.name), None)
    if root is not None:
        pool.read_errors = root.read_errors
        pool.write_errors = root.write_errors
        pool.cksum_errors = root.cksum_errors
    return pool


def gather_pools() -> List[PoolRecord]:
    names = [line.strip() for line in (run_command(["zpool", "list", "-H", "-o", "name"]) or "").splitlines()]
    pools: List[PoolRecord] = []
    for name in filter(None, names):
        try:
            list_output = run_command(["zpool", "list", "-H", "-o", ",".join(POOL_COLUMNS), name]) or ""
            status_output = run_command(["zpool", "status", name]) or ""
            pools.append(pool_from_rows(name, list_output, status_output))
        except (OSError, ValueError) as exc:
            logger.warning("Could not inspect pool %s: %s", name, exc)
            pools.append(PoolRecord(name=name))
    return pools


def parse_datasets(text: str, limit: int = DATASET_LIMIT) -> List[DatasetRecord]:
    return [
        DatasetRecord(
            name=row["name"],
            used=row["used"],
            available=row["avail"],
            referenced=row["refer"],
            compress_ratio=row["compressratio"],
            mountpoint=row["mountpoint"],
        )
        for row in parse_tabbed_rows(text, DATASET_COLUMNS)[:limit]
    ]


def gather_datasets(limit: int = DATASET_LIMIT) -> List[DatasetRecord]:
    output = run_command(["zfs", "list", "-H", "-o", ",".join(DATASET_COLUMNS)])
    return parse_datasets(output or "", limit)


def gather_storage_report(dev_root: str = DEV_ROOT, sys_block: str = SYS_BLOCK) -> StorageReport:
    """Collect everything the drive health report shows."""
    smartctl_available = has_command("smartctl")
    zpool_available = has_command("zpool")
    zfs_available = has_command("zfs")
    return StorageReport(
        generated=datetime.now(),
        is_root=is_root(),
        smartctl_available=smartctl_available,
        zpool_available=zpool_available,
        zfs_available=zfs_available,
        drives=gather_drives(smartctl_available, dev_root, sys_block),
        pools=gather_pools() if zpool_available else [],
        datasets=gather_datasets() if zfs_available else [],
    )


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _raw_value(attribute: Optional[Mapping[str, Any]]) -> Optional[int]:
    """The leading integer of an attribute's raw string (temperatures pack min/max after it)."""
    if attribute is None:
        return None
    raw = _mapping(attribute.get("raw"))
    value = parse_int(raw.get("string")) if isinstance(raw.get("string"), str) else None
    return value if value is not None else _as_int(raw.get("value"))


def _counter(attribute: Optional[Mapping[str, Any]], default: Optional[int]) -> Optional[int]:
    value = _raw_value(attribute)
    return default if value is None else value


def _is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def _section(lines: Sequence[str], name: str, inline: bool = False) -> List[str]:
    """Return the lines belonging to a ``name:`` section of ``zpool status``.

    With ``inline`` the text after the colon on the header line is included.
    """
    collected: List[str] = []
    inside = False
    for line in lines:
        if _STATUS_SECTION.match(line) and not line.startswith("\t"):
            key, _, rest = line.strip().partition(":")
            if inside:
                break
            if key == name:
                inside = True
                if inline:
                    collected.append(rest)
                continue
        elif inside:
            collected.append(line)
    return collected


def _parse_vdev_tree(config: Sequence[str]) -> List[VdevRecord]:
    roots: List[VdevRecord] = []
    stack: List[VdevRecord] = []
    base: Optional[int] = None
    for line in config:
        parts = line.split()
        if not parts:
            continue
        indent = len(line.expandtabs(8)) - len(line.expandtabs(8).lstrip())
        if parts[0] == "NAME":
            base = indent
            continue
        if len(parts) < 5:
            continue
        if base is None:
            base = indent
        record = VdevRecord(
            name=parts[0],
            state=parts[1],
            read_errors=parse_count(parts[2]),
            write_errors=parse_count(parts[3]),
            cksum_errors=parse_count(parts[4]),
            depth=max((indent - base) // 2, 0),
            note=" ".join(parts[5:]),
        )
        while stack and stack[-1].depth >= record.depth:
            stack.pop()
        if stack:
            stack[-1].children.append(record)
        else:
            roots.append(record)
        stack.append(record)
    return roots