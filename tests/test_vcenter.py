"""
Tests for virtual disk extraction and VM matching. pyVmomi data objects are
built locally; nothing connects to vCenter.
"""

from types import SimpleNamespace

import pytest
from pyVmomi import vim

from volume_mapper.config import VCenterConfig
from volume_mapper.vcenter import VCenterSession, find_vm, virtual_disks, vm_identity


def _disk(label, backing):
    return vim.vm.device.VirtualDisk(
        key=2000,
        deviceInfo=vim.Description(label=label, summary=""),
        backing=backing,
    )


@pytest.fixture
def devices():
    return [
        vim.vm.device.VirtualLsiLogicSASController(key=1000, busNumber=0),
        _disk("Hard disk 1", vim.vm.device.VirtualDisk.FlatVer2BackingInfo(
            fileName="[ds01] web01/web01.vmdk", diskMode="persistent",
            thinProvisioned=True, uuid="6000C29a-1b2c-3d4e-5f60-718293a4b5c6",
        )),
        _disk("Hard disk 2", vim.vm.device.VirtualDisk.FlatVer2BackingInfo(
            fileName="[ds02] web01/web01_1.vmdk", diskMode="persistent",
            thinProvisioned=False, eagerlyScrub=True, uuid="6000C295-1f3c-7a8e-9d0b-1c2d3e4f5a6b",
        )),
        _disk("Hard disk 3", vim.vm.device.VirtualDisk.RawDiskMappingVer1BackingInfo(
            fileName="[ds02] web01/web01_2.vmdk", compatibilityMode="physicalMode",
            lunUuid="02000000006006016012345678", deviceName="vml.0200",
        )),
    ]


def test_virtual_disks(devices):
    disks = virtual_disks(devices)
    assert [d.name for d in disks] == ["Hard disk 1", "Hard disk 2", "Hard disk 3"]

    thin, thick, rdm = disks
    assert thin.filename == "[ds01] web01/web01.vmdk"
    assert thin.disk_type == "flat"
    assert thin.storage_format == "thin"
    assert thin.normalized_key == "6000c29a1b2c3d4e5f60718293a4b5c6"
    assert thick.storage_format == "eagerZeroedThick"
    assert rdm.disk_type == "rdm"
    assert rdm.storage_format == "physicalMode"
    assert rdm.uuid == "02000000006006016012345678"


def test_virtual_disks_empty():
    assert virtual_disks(None) == []


def _vm(name, hostname="", ips=()):
    nets = [SimpleNamespace(ipConfig=None, ipAddress=list(ips))] if ips else []
    return {
        "_obj": SimpleNamespace(_moId=f"vm-{name}"),
        "name": name,
        "config.instanceUuid": f"5003-{name}",
        "guest.hostName": hostname,
        "guest.net": nets,
    }


@pytest.fixture
def vm_props():
    return [
        _vm("SQL-PROD-01", hostname="sql01.corp.example.com", ips=["10.0.0.30"]),
        _vm("WEB-01", hostname="web01.corp.example.com", ips=["10.0.0.21"]),
        _vm("legacy-app"),
    ]


def test_find_vm_by_short_guest_hostname(vm_props):
    assert find_vm(vm_props, "WEB01")["name"] == "WEB-01"
    assert find_vm(vm_props, "sql01.corp.example.com")["name"] == "SQL-PROD-01"


def test_find_vm_by_ip(vm_props):
    assert find_vm(vm_props, "10.0.0.30")["name"] == "SQL-PROD-01"


def test_find_vm_by_vm_name(vm_props):
    assert find_vm(vm_props, "Legacy-App")["name"] == "legacy-app"


def test_find_vm_miss(vm_props):
    assert find_vm(vm_props, "unknown") is None


def test_vm_identity(vm_props):
    vm = vm_identity(vm_props[1])
    assert vm.name == "WEB-01"
    assert vm.vcenter_id == "vm-WEB-01"
    assert vm.instance_uuid == "5003-WEB-01"


@pytest.fixture
def session(monkeypatch, vm_props, devices):
    vm_props[1]["config.hardware.device"] = devices
    template = _vm("WEB-01-template", hostname="web01")
    template["config.template"] = True
    fetched = []

    def fake_fetch():
        fetched.append(1)
        return [template] + vm_props

    s = VCenterSession(VCenterConfig(host="vc01", username="reader"))
    s._si = object()
    monkeypatch.setattr(s, "_bulk_fetch_vm_properties", fake_fetch)
    s.fetched = fetched
    return s


def test_vm_properties_fetched_once_without_templates(session):
    names = [p["name"] for p in session.vm_properties()]
    session.vm_properties()
    assert names == ["SQL-PROD-01", "WEB-01", "legacy-app"]
    assert len(session.fetched) == 1


def test_vm_properties_requires_connection():
    with pytest.raises(RuntimeError):
        VCenterSession(VCenterConfig(host="vc01")).vm_properties()


def test_lookup_hit(session):
    disk_set = session.lookup("web01")
    assert disk_set.vm.name == "WEB-01"
    assert disk_set.vm.vcenter_id == "vm-WEB-01"
    assert len(disk_set.index) == 3
    assert disk_set.match("6000C29A1B2C3D4E5F60718293A4B5C6").name == "Hard disk 1"


def test_lookup_miss(session):
    assert session.lookup("unknown") is None
    assert len(session.fetched) == 1
