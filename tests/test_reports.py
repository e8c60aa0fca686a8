import json
import os

import pytest

from lvmlocal.reports import (
    LogicalVolume,
    PhysicalVolume,
    ReportError,
    VolumeGroup,
    decode_lvs_json,
    decode_pvs_json,
    decode_vgs_json,
    lv_device_name,
    parse_logical_volume,
    parse_physical_volume,
    parse_volume_group,
)

FAKE_UUID = "AAAAAA-BBBB-CCCC-DDDD-EEEE-FFFF-GGGGGG"

FAKE_LOGICAL_VOLUME = LogicalVolume(
    name="pvc-213ca1e6-e271-4ec8-875c-c7def3a4908d",
    full_name="linuxlvmvg/pvc-213ca1e6-e271-4ec8-875c-c7def3a4908d",
    uuid=FAKE_UUID,
    size=3221225472,
    path="/dev/linuxlvmvg/pvc-213ca1e6-e271-4ec8-875c-c7def3a4908d",
    seg_type="thin",
    permission=1,
    behaviour_when_full=-1,
    health_status=0,
    raid_sync_action=-1,
    active_status="active",
    used_size_percent=0,
    metadata_size=0,
    metadata_used_percent=0,
    snapshot_used_percent=0,
    host="node1",
    pool_name="thin_pool",
    dm_path="/dev/mapper/linuxlvmvg-pvc--213ca1e6--e271--4ec8--875c--c7def3a4908d",
    vg_name="linuxlvmvg",
)

LV_FIELDS = {
    "lv_uuid": FAKE_UUID,
    "lv_name": "pvc-213ca1e6-e271-4ec8-875c-c7def3a4908d",
    "lv_full_name": "linuxlvmvg/pvc-213ca1e6-e271-4ec8-875c-c7def3a4908d",
    "segtype": "thin",
    "lv_permissions": "writeable",
    "lv_when_full": "",
    "lv_health_status": "",
    "lv_raid_sync_action": "",
    "lv_active": "active",
    "lv_host": "node1",
    "pool_lv": "thin_pool",
    "data_percent": "0.00",
    "lv_metadata_size": "",
    "metadata_percent": "",
    "snap_percent": "",
    "lv_path": "/dev/linuxlvmvg/pvc-213ca1e6-e271-4ec8-875c-c7def3a4908d",
    "lv_dm_path": "/dev/mapper/linuxlvmvg-pvc--213ca1e6--e271--4ec8--875c--c7def3a4908d",
    "lv_size": "3221225472",
    "vg_name": "linuxlvmvg",
}

VG_FIELDS = {
    "vg_name": "lvmvg",
    "vg_uuid": FAKE_UUID,
    "pv_count": "1",
    "lv_count": "2",
    "max_lv": "0",
    "max_pv": "0",
    "snap_count": "1",
    "vg_missing_pv_count": "0",
    "vg_mda_count": "1",
    "vg_mda_used_count": "1",
    "vg_size": "21470642176B",
    "vg_free": "12884901888B",
    "vg_mda_size": "1044480B",
    "vg_mda_free": "518656B",
    "vg_permissions": "writeable",
    "vg_allocation_policy": "normal",
}

PV_FIELDS = {
    "pv_name": "/dev/sdc",
    "pv_uuid": FAKE_UUID,
    "pv_size": "21441282048B",
    "pv_used": "8657043456B",
    "pv_free": "12784238592B",
    "pv_mda_size": "1044480B",
    "pv_mda_free": "518656B",
    "dev_size": "21474836480B",
    "pv_allocatable": "allocatable",
    "pv_in_use": "used",
    "pv_missing": "",
    "vg_name": "vg_thin",
}


def _report(section, items):
    return json.dumps({"report": [{section: items}]})


def test_parse_logical_volume_success():
    assert parse_logical_volume(LV_FIELDS) == FAKE_LOGICAL_VOLUME


def test_parse_logical_volume_failure():
    fields = {
        "lv_uuid": "fake-uuid",
        "lv_name": "fake-name",
        "lv_full_name": "fake-full_name",
        "lv_path": "fakse_path",
        "lv_size": "invalid-format",
        "vg_name": "fake-vg",
    }
    with pytest.raises(ReportError, match="lv_size=invalid-format"):
        parse_logical_volume(fields)


def test_parse_logical_volume_thin_pool_metadata_size():
    fields = dict(LV_FIELDS, segtype="thin-pool", lv_metadata_size="4194304B")
    lv = parse_logical_volume(fields)
    assert lv.metadata_size == 4194304
    assert lv.seg_type == "thin-pool"


def test_parse_logical_volume_thin_pool_bad_metadata_size():
    fields = dict(LV_FIELDS, segtype="thin-pool", lv_metadata_size="")
    with pytest.raises(ReportError):
        parse_logical_volume(fields)


def test_parse_logical_volume_percentages():
    fields = dict(LV_FIELDS, data_percent="12.50", metadata_percent="3.25", snap_percent="1")
    lv = parse_logical_volume(fields)
    assert lv.used_size_percent == 12.5
    assert lv.metadata_used_percent == 3.25
    assert lv.snapshot_used_percent == 1.0


def test_parse_logical_volume_bad_percentage():
    with pytest.raises(ReportError, match="snap_percent"):
        parse_logical_volume(dict(LV_FIELDS, snap_percent="abc"))


def test_parse_logical_volume_enum_fields():
    fields = dict(
        LV_FIELDS,
        lv_when_full="queue",
        lv_health_status="partial",
        raid_sync_action="check",
        lv_permissions="read-only",
    )
    lv = parse_logical_volume(fields)
    assert (lv.behaviour_when_full, lv.health_status, lv.raid_sync_action, lv.permission) == (
        1,
        1,
        4,
        2,
    )


def test_parse_volume_group():
    vg = parse_volume_group(VG_FIELDS)
    assert vg == VolumeGroup(
        name="lvmvg",
        uuid=FAKE_UUID,
        pv_count=1,
        lv_count=2,
        max_lv=0,
        max_pv=0,
        snap_count=1,
        missing_pv_count=0,
        metadata_count=1,
        metadata_used_count=1,
        size=21470642176,
        free=12884901888,
        metadata_size=1044480,
        metadata_free=518656,
        permission=0,
        allocation_policy=0,
    )


def test_parse_volume_group_invalid_count():
    with pytest.raises(ReportError, match="lv_count=many"):
        parse_volume_group(dict(VG_FIELDS, lv_count="many"))


def test_parse_volume_group_invalid_size():
    with pytest.raises(ReportError, match="vg_free"):
        parse_volume_group(dict(VG_FIELDS, vg_free="12GiB"))


def test_parse_volume_group_unknown_policy():
    vg = parse_volume_group(dict(VG_FIELDS, vg_allocation_policy="bogus"))
    assert vg.allocation_policy == -1


def test_parse_physical_volume():
    assert parse_physical_volume(PV_FIELDS) == PhysicalVolume(
        name="/dev/sdc",
        uuid=FAKE_UUID,
        size=21441282048,
        used=8657043456,
        free=12784238592,
        metadata_size=1044480,
        metadata_free=518656,
        device_size=21474836480,
        allocatable="allocatable",
        in_use="used",
        missing="",
        vg_name="vg_thin",
    )


def test_parse_physical_volume_invalid_size():
    with pytest.raises(ReportError, match="for pv /dev/sdc"):
        parse_physical_volume(dict(PV_FIELDS, pv_used="x"))


def test_decode_vgs_json():
    vgs = decode_vgs_json(_report("vg", [VG_FIELDS, dict(VG_FIELDS, vg_name="other")]))
    assert [vg.name for vg in vgs] == ["lvmvg", "other"]
    assert vgs[0].size == 21470642176


def test_decode_vgs_json_bytes_input():
    vgs = decode_vgs_json(_report("vg", [VG_FIELDS]).encode())
    assert vgs[0].free == 12884901888


def test_decode_vgs_json_requires_single_report():
    raw = json.dumps({"report": [{"vg": []}, {"vg": []}]})
    with pytest.raises(ReportError, match="exactly one lvm report"):
        decode_vgs_json(raw)


def test_decode_vgs_json_missing_report():
    with pytest.raises(ReportError, match="exactly one lvm report"):
        decode_vgs_json("{}")


def test_decode_vgs_json_invalid_json():
    with pytest.raises(ReportError):
        decode_vgs_json("not json")


def test_decode_vgs_json_empty_section():
    assert decode_vgs_json(json.dumps({"report": [{}]})) == []


def test_decode_lvs_json_uses_resolver():
    seen = []

    def resolve(path):
        seen.append(path)
        return "dm-5"

    lvs = decode_lvs_json(_report("lv", [LV_FIELDS]), resolve)
    assert seen == [LV_FIELDS["lv_path"]]
    assert lvs[0].device == "dm-5"
    assert lvs[0].name == FAKE_LOGICAL_VOLUME.name


def test_decode_lvs_json_propagates_parse_error():
    with pytest.raises(ReportError):
        decode_lvs_json(_report("lv", [dict(LV_FIELDS, lv_size="bad")]), lambda p: "dm-0")


def test_decode_lvs_json_unresolvable_device(tmp_path):
    missing = str(tmp_path / "nope")
    with pytest.raises(ReportError):
        decode_lvs_json(_report("lv", [dict(LV_FIELDS, lv_path=missing)]))


def test_decode_pvs_json():
    pvs = decode_pvs_json(_report("pv", [PV_FIELDS]))
    assert len(pvs) == 1
    assert pvs[0].device_size == 21474836480


def test_decode_pvs_json_non_string_field():
    with pytest.raises(ReportError):
        decode_pvs_json(_report("pv", [dict(PV_FIELDS, pv_size=5)]))


def test_lv_device_name_follows_symlink(tmp_path):
    target = tmp_path / "dm-3"
    target.write_text("")
    link = tmp_path / "vol"
    os.symlink(target, link)
    assert lv_device_name(str(link)) == "dm-3"


def test_lv_device_name_missing_path(tmp_path):
    with pytest.raises(ReportError):
        lv_device_name(str(tmp_path / "absent"))