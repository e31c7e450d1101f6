from sys_diagrams import memory_state
from sys_diagrams.memory_state import (
    MemorySnapshot,
    gather_memory_report,
    gather_numa_nodes,
    parse_dmidecode_memory,
    parse_meminfo,
    parse_node_meminfo,
    parse_swaps,
    snapshot_from_meminfo,
)

MEMINFO = """\
MemTotal:       32768000 kB
MemFree:         4096000 kB
MemAvailable:   16384000 kB
Buffers:          512000 kB
Cached:          8192000 kB
SwapCached:        10240 kB
AnonPages:      12000000 kB
Mapped:           900000 kB
Shmem:            300000 kB
Slab:            1200000 kB
SReclaimable:     800000 kB
SUnreclaim:       400000 kB
KernelStack:       20000 kB
PageTables:        80000 kB
SwapTotal:       8388608 kB
SwapFree:        6291456 kB
Dirty:              1024 kB
Writeback:             0 kB
HugePages_Total:       4
HugePages_Free:        1
Hugepagesize:       2048 kB
"""

DMIDECODE = """\
# dmidecode 3.3
Getting SMBIOS data from sysfs.
SMBIOS 3.2.0 present.

Handle 0x0011, DMI type 16, 23 bytes
Physical Memory Array
\tLocation: System Board Or Motherboard
\tMaximum Capacity: 128 GB
\tNumber Of Devices: 4

Handle 0x0013, DMI type 17, 84 bytes
Memory Device
\tSize: 16 GB
\tLocator: DIMM_A1
\tType: DDR4
\tType Detail: Synchronous Unbuffered (Unregistered)
\tSpeed: 3200 MT/s
\tManufacturer: Samsung
\tConfigured Memory Speed: 2933 MT/s

Handle 0x0014, DMI type 17, 84 bytes
Memory Device
\tSize: No Module Installed
\tLocator: DIMM_A2
\tType: Unknown
\tSpeed: Unknown
\tManufacturer: Not Specified

Handle 0x0015, DMI type 17, 84 bytes
Memory Device
\tSize: 16 GB
\tLocator: DIMM_B1

Handle 0x0016, DMI type 17, 84 bytes
Memory Device
\tSize: 8 GB
"""


def make_node(root, number, total_kb, free_kb, cpulist):
    node_dir = root / f"node{number}"
    node_dir.mkdir()
    (node_dir / "meminfo").write_text(
        f"Node {number} MemTotal:       {total_kb} kB\n"
        f"Node {number} MemFree:        {free_kb} kB\n"
        f"Node {number} MemUsed:        {total_kb - free_kb} kB\n"
    )
    (node_dir / "cpulist").write_text(f"{cpulist}\n")


def test_parse_meminfo_reads_numeric_fields():
    values = parse_meminfo(MEMINFO)
    assert values["MemTotal"] == 32768000
    assert values["HugePages_Total"] == 4
    assert values["Hugepagesize"] == 2048


def test_snapshot_derived_values():
    snapshot = snapshot_from_meminfo(parse_meminfo(MEMINFO))
    assert snapshot.used == 32768000 - 4096000 - 512000 - 8192000
    assert snapshot.cache_total == 8704000
    assert snapshot.kernel == 1200000 + 20000 + 80000
    assert snapshot.ram_used == 16384000
    assert snapshot.ram_percent == 50
    assert snapshot.swap_used == 2097152
    assert snapshot.swap_percent == 25
    assert snapshot.hugepages_used == 3
    assert snapshot.hugepages_size_total == 8192


def test_used_is_clamped_when_proc_data_is_inconsistent():
    snapshot = MemorySnapshot(total=1000, free=600, buffers=300, cached=400)
    assert snapshot.used == 0


def test_missing_fields_default_to_zero():
    snapshot = snapshot_from_meminfo(parse_meminfo("MemTotal: 1024 kB\n"))
    assert snapshot.available == 0
    assert snapshot.swap_total == 0
    assert snapshot.swap_percent == 0
    assert MemorySnapshot().ram_percent == 0


def test_parse_swaps():
    devices = parse_swaps(
        "Filename\t\t\t\tType\t\tSize\t\tUsed\t\tPriority\n"
        "/swap.img                               file\t\t2097148\t\t524288\t\t-2\n"
        "/dev/zram0                              partition\t4194300\t\t0\t\t100\n"
    )
    assert [device.filename for device in devices] == ["/swap.img", "/dev/zram0"]
    assert devices[0].percent == 25
    assert devices[1].priority == "100"


def test_parse_dmidecode_memory_degrades_missing_fields():
    inventory = parse_dmidecode_memory(DMIDECODE)
    assert inventory.max_capacity == "128 GB"
    assert inventory.slot_count == "4"
    assert [slot.locator for slot in inventory.slots] == ["DIMM_A1", "DIMM_A2", "DIMM_B1"]

    first, empty, partial = inventory.slots
    assert first.installed
    assert first.speed == "3200 MT/s"
    assert first.module_type == "DDR4"
    assert not empty.installed
    assert empty.manufacturer == "Unknown"
    assert partial.module_type == "Unknown"
    assert partial.manufacturer == "Unknown"
    assert inventory.installed_count == 2


def test_parse_node_meminfo_strips_node_prefix():
    values = parse_node_meminfo("Node 1 MemTotal:  2048 kB\nNode 1 MemFree:   1024 kB\n")
    assert values == {"MemTotal": 2048, "MemFree": 1024}


def test_gather_numa_nodes(tmp_path):
    make_node(tmp_path, 1, 4096, 1024, "8-15")
    make_node(tmp_path, 0, 8192, 2048, "0-7")
    (tmp_path / "possible").write_text("0-1\n")

    nodes = gather_numa_nodes(str(tmp_path))
    assert [node.node_id for node in nodes] == [0, 1]
    assert nodes[0].used == 6144
    assert nodes[1].cpulist == "8-15"


def test_gather_numa_nodes_without_sysfs(tmp_path):
    assert gather_numa_nodes(str(tmp_path / "missing")) == []


def test_gather_memory_report_from_files(tmp_path, monkeypatch):
    meminfo = tmp_path / "meminfo"
    meminfo.write_text(MEMINFO)
    swaps = tmp_path / "swaps"
    swaps.write_text("Filename Type Size Used Priority\n/dev/sda2 partition 8388604 2097152 -2\n")
    swappiness = tmp_path / "swappiness"
    swappiness.write_text("60\n")
    node_root = tmp_path / "node"
    node_root.mkdir()
    make_node(node_root, 0, 32768000, 4096000, "0-15")

    monkeypatch.setattr(memory_state, "is_root", lambda: False)
    monkeypatch.setattr(memory_state, "gather_top_processes", lambda limit: [])

    report = gather_memory_report(
        meminfo_path=str(meminfo),
        swaps_path=str(swaps),
        swappiness_path=str(swappiness),
        node_root=str(node_root),
    )
    assert report.snapshot.total == 32768000
    assert report.swappiness == 60
    assert report.swap_devices[0].type == "partition"
    assert report.dimms is None
    assert len(report.numa_nodes) == 1
    assert not report.is_root


def test_gather_memory_report_tolerates_missing_files(tmp_path, monkeypatch):
    monkeypatch.setattr(memory_state, "is_root", lambda: False)
    monkeypatch.setattr(memory_state, "gather_top_processes", lambda limit: [])

    report = gather_memory_report(
        meminfo_path=str(tmp_path / "nope"),
        swaps_path=str(tmp_path / "nope"),
        swappiness_path=str(tmp_path / "nope"),
        node_root=str(tmp_path / "nope"),
    )
    assert report.snapshot.total == 0
    assert report.swap_devices == []
    assert report.swappiness is None


def test_gather_dimms_needs_root(monkeypatch):
    def fail(command):
        raise AssertionError("dmidecode must not run without root")

    monkeypatch.setattr(memory_state, "run_command", fail)
    assert memory_state.gather_dimms(False) is None


def test_gather_dimms_parses_dmidecode(monkeypatch):
    monkeypatch.setattr(memory_state, "has_command", lambda name: True)
    monkeypatch.setattr(memory_state, "run_command", lambda command: DMIDECODE)
    inventory = memory_state.gather_dimms(True)
    assert inventory is not None
    assert inventory.installed_count == 2


def test_gather_top_processes_sorts_by_rss():
    processes = memory_state.gather_top_processes(limit=3)
    assert len(processes) <= 3
    assert [p.rss for p in processes] == sorted((p.rss for p in processes), reverse=True)
