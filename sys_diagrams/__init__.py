"""
Terminal diagrams of Linux memory layout, drive SMART health and ZFS pools.
"""

__all__ = ["memory_state", "storage_state", "diagnostics", "cli"]
__version__ = "0.1.0"
