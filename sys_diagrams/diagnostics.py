"""Summaries drawn from the collected memory and storage records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .formatting import GREEN, RED, USAGE_CRIT, USAGE_WARN, YELLOW
from .storage_state import FAILED, PASSED, DriveRecord, PoolRecord


@dataclass
class PressureAssessment:
    level: str
    symbol: str
    message: str
    style: str

    @property
    def line(self) -> str:
        return f"{self.symbol} Memory pressure: {self.level} - {self.message}"


@dataclass
class DriveTally:
    healthy: int = 0
    unknown: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.healthy + self.unknown + self.failed


@dataclass
class PoolTally:
    healthy: int = 0
    degraded: int = 0
    faulted: int = 0

    @property
    def total(self) -> int:
        return self.healthy + self.degraded + self.faulted


def assess_memory_pressure(percent: int) -> PressureAssessment:
    """Grade RAM usage with the same thresholds the usage bars are colored by."""
    if percent >= USAGE_CRIT:
        return PressureAssessment("HIGH", "⚠", "System may be swapping heavily", RED)
    if percent >= USAGE_WARN:
        return PressureAssessment("MODERATE", "◆", "Monitor usage", YELLOW)
    return PressureAssessment("LOW", "●", "System healthy", GREEN)


def tally_drives(drives: Sequence[DriveRecord]) -> DriveTally:
    tally = DriveTally()
    for drive in drives:
        if drive.smart.health == PASSED:
            tally.healthy += 1
        elif drive.smart.health == FAILED:
            tally.failed += 1
        else:
            tally.unknown += 1
    return tally


def tally_pools(pools: Sequence[PoolRecord]) -> PoolTally:
    tally = PoolTally()
    for pool in pools:
        if pool.health == "ONLINE":
            tally.healthy += 1
        elif pool.health == "DEGRADED":
            tally.degraded += 1
        else:
            tally.faulted += 1
    return tally
