"""Console-friendly formatting shared by the memory and drive reports."""

from __future__ import annotations

from typing import Optional

from rich import box
from rich.panel import Panel
from rich.text import Text

GREEN = "green"
YELLOW = "yellow"
RED = "red"
GRAY = "bright_black"
BLUE = "blue"
CYAN = "cyan"
MAGENTA = "magenta"

REPORT_WIDTH = 80

USAGE_WARN = 70
USAGE_CRIT = 90

OK_MARK = "●"
UNKNOWN_MARK = "○"

_IEC_PREFIXES = ("Ki", "Mi", "Gi", "Ti", "Pi", "Ei")


def human_kb(kb: Optional[int]) -> str:
    if not kb:
        return "0"
    if kb >= 1024**3:
        return f"{kb / 1024**3:.1f} TiB"
    if kb >= 1024**2:
        return f"{kb / 1024**2:.1f} GiB"
    if kb >= 1024:
        return f"{kb / 1024:.1f} MiB"
    return f"{kb} KiB"


def human_size(num_bytes: Optional[int]) -> str:
    """IEC size in the compact style of ``numfmt --to=iec-i --suffix=B``.

    Values are rounded away from zero: one decimal below 10, whole numbers above.
    """
    if not num_bytes:
        return "N/A"
    size = int(num_bytes)
    if size < 1024:
        return f"{size}B"
    for power, prefix in enumerate(_IEC_PREFIXES, start=1):
        divisor = 1024**power
        tenths = -(-size * 10 // divisor)
        if tenths < 100:
            return f"{tenths // 10}.{tenths % 10}{prefix}B"
        whole = -(-size // divisor)
        if whole < 1024 or power == len(_IEC_PREFIXES):
            return f"{whole}{prefix}B"
    return f"{size}B"


def format_hours(hours: Optional[int]) -> str:
    if hours is None:
        return "N/A"
    days, remainder = divmod(hours, 24)
    if days > 0:
        return f"{days}d {remainder}h"
    return f"{hours}h"


def truncate(value: str, width: int) -> str:
    if len(value) <= width:
        return value
    return value[: width - 3] + "..."


def usage_style(percent: int) -> str:
    if percent >= USAGE_CRIT:
        return RED
    if percent >= USAGE_WARN:
        return YELLOW
    return GREEN


def temperature_style(celsius: Optional[int]) -> str:
    if celsius is None:
        return GRAY
    if celsius >= 60:
        return RED
    if celsius >= 45:
        return YELLOW
    return GREEN


def error_style(count: Optional[int]) -> str:
    if count is None:
        return GRAY
    if count == 0:
        return GREEN
    if count < 10:
        return YELLOW
    return RED


def capacity_style(percent: Optional[int]) -> str:
    if percent is None:
        return GRAY
    if percent >= 90:
        return RED
    if percent >= 80:
        return YELLOW
    return GREEN


def fragmentation_style(percent: Optional[int]) -> str:
    if percent is None:
        return GRAY
    if percent >= 50:
        return RED
    if percent >= 30:
        return YELLOW
    return GREEN


def wear_style(wear: Optional[int], remaining: bool) -> str:
    """Color SSD endurance.

    NVMe drives report the share of rated life consumed (low is healthy); SATA
    SSDs report the share remaining (high is healthy).
    """
    if wear is None:
        return GRAY
    if remaining:
        if wear >= 90:
            return GREEN
        if wear >= 50:
            return YELLOW
        return RED
    if wear <= 10:
        return GREEN
    if wear <= 50:
        return YELLOW
    return RED


def smart_health_style(health: str) -> str:
    if health == "PASSED":
        return GREEN
    if health == "FAILED":
        return RED
    if health == "UNKNOWN":
        return GRAY
    return YELLOW


def pool_health_style(health: str) -> str:
    if health == "ONLINE":
        return GREEN
    if health == "DEGRADED":
        return YELLOW
    if health in ("FAULTED", "OFFLINE"):
        return RED
    return GRAY


def vdev_state_style(state: str) -> str:
    if state == "ONLINE":
        return GREEN
    if state == "DEGRADED":
        return YELLOW
    if state in ("FAULTED", "OFFLINE", "UNAVAIL"):
        return RED
    return ""


def status_text(label: str, style: str) -> Text:
    """A status marker followed by ``label``, both in ``style``."""
    mark = UNKNOWN_MARK if style == GRAY else OK_MARK
    return Text.assemble((mark, style), " ", (label, style))


def na_text(value: Optional[object], style: str, suffix: str = "") -> Text:
    if value is None:
        return Text("N/A", style=GRAY)
    return Text(f"{value}{suffix}", style=style)


def bar_fill(used: int, total: int, width: int) -> int:
    if total <= 0:
        return 0
    return min(max(used * width // total, 0), width)


def usage_bar(used: int, total: int, width: int = 40) -> Text:
    if total <= 0:
        return Text(f"[{'-' * width}]")
    percent = used * 100 // total
    filled = bar_fill(used, total, width)
    return Text.assemble(
        "[",
        ("█" * filled, usage_style(percent)),
        "░" * (width - filled),
        f"] {percent:3d}%",
    )


def banner(title: str) -> Panel:
    return Panel(Text(title, justify="center", style="bold white"), box=box.DOUBLE, width=REPORT_WIDTH - 14)


def section(title: str) -> Panel:
    return Panel(Text(title, style="bold white"), box=box.SQUARE, border_style=f"bold {CYAN}", width=REPORT_WIDTH)


def subheader(title: str) -> Text:
    return Text(f"── {title} ──", style=f"bold {BLUE}")


def warning(message: str) -> Text:
    return Text(f"⚠ {message}", style=YELLOW)


def dim(message: str) -> Text:
    return Text(message, style="dim")
