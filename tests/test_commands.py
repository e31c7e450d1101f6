import os

from sys_diagrams import memory_state, storage_state
from sys_diagrams.commands import read_text, run_command

DMIDECODE_BYTES = (
    b"# dmidecode 3.3\n"
    b"Getting SMBIOS data from sysfs.\n"
    b"\n"
    b"Handle 0x0013, DMI type 17, 84 bytes\n"
    b"Memory Device\n"
    b"\tSize: 16 GB\n"
    b"\tLocator: DIMM_A1\n"
    b"\tType: DDR4\n"
    b"\tManufacturer: \xff\xfeVendor\n"
    b"\n"
)


def make_tool(directory, name, output: bytes, exit_code: int = 0):
    data = directory / f"{name}.out"
    data.write_bytes(output)
    tool = directory / name
    tool.write_text(f"#!/bin/sh\ncat '{data}'\nexit {exit_code}\n")
    tool.chmod(0o755)


def put_on_path(monkeypatch, directory):
    monkeypatch.setenv("PATH", str(directory) + os.pathsep + os.environ.get("PATH", ""))


def test_run_command_replaces_undecodable_bytes(tmp_path, monkeypatch):
    make_tool(tmp_path, "fake-zfs", b"tank/caf\xe9\t1G\n")
    put_on_path(monkeypatch, tmp_path)
    assert run_command(["fake-zfs", "list"]) == "tank/caf�\t1G\n"


def test_run_command_keeps_output_of_failing_tool(tmp_path, monkeypatch):
    make_tool(tmp_path, "fake-smartctl", b"{}\n", exit_code=4)
    put_on_path(monkeypatch, tmp_path)
    assert run_command(["fake-smartctl", "-a"]) == "{}\n"


def test_run_command_missing_tool():
    assert run_command(["sys-diagrams-no-such-tool"]) is None


def test_read_text_missing_file(tmp_path):
    assert read_text(str(tmp_path / "absent")) is None


def test_dimms_survive_undecodable_dmi_strings(tmp_path, monkeypatch):
    make_tool(tmp_path, "dmidecode", DMIDECODE_BYTES)
    put_on_path(monkeypatch, tmp_path)
    inventory = memory_state.gather_dimms(True)
    (slot,) = inventory.slots
    assert slot.locator == "DIMM_A1"
    assert slot.manufacturer.endswith("Vendor")


def test_datasets_survive_undecodable_names(tmp_path, monkeypatch):
    make_tool(tmp_path, "zfs", b"tank/caf\xe9\t1G\t2G\t1G\t1.00x\t/tank/caf\xe9\n")
    put_on_path(monkeypatch, tmp_path)
    (dataset,) = storage_state.gather_datasets()
    assert dataset.name == "tank/caf�"
    assert dataset.used == "1G"
