"""Parsing of the JSON reports produced by ``vgs``, ``lvs`` and ``pvs``."""

from __future__ import annotations

import json
import os
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from lvmlocal import constants as c

_INT = re.compile(r"[+-]?[0-9]+")
_FLOAT_FORBIDDEN = re.compile(r"[\s_]")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_LV_THIN_POOL = "thin-pool"


class ReportError(ValueError):
    """Raised when an LVM report cannot be decoded or holds an invalid field."""


@dataclass
class VolumeGroup:
    """Attributes of an LVM volume group; sizes are in bytes."""

    name: str = ""
    uuid: str = ""
    pv_count: int = 0
    lv_count: int = 0
    max_lv: int = 0
    max_pv: int = 0
    snap_count: int = 0
    missing_pv_count: int = 0
    metadata_count: int = 0
    metadata_used_count: int = 0
    size: int = 0
    free: int = 0
    metadata_size: int = 0
    metadata_free: int = 0
    permission: int = c.UNDEFINED
    allocation_policy: int = c.UNDEFINED


@dataclass
class LogicalVolume:
    """Attributes of an LVM logical volume; sizes are in bytes."""

    name: str = ""
    full_name: str = ""
    uuid: str = ""
    size: int = 0
    path: str = ""
    dm_path: str = ""
    device: str = ""
    vg_name: str = ""
    seg_type: str = ""
    permission: int = 0
    behaviour_when_full: int = 0
    health_status: int = 0
    raid_sync_action: int = 0
    active_status: str = ""
    host: str = ""
    pool_name: str = ""
    used_size_percent: float = 0.0
    metadata_size: int = 0
    metadata_used_percent: float = 0.0
    snapshot_used_percent: float = 0.0


@dataclass
class PhysicalVolume:
    """Attributes of an LVM physical volume; sizes are in bytes."""

    name: str = ""
    uuid: str = ""
    size: int = 0
    device_size: int = 0
    metadata_size: int = 0
    metadata_free: int = 0
    free: int = 0
    used: int = 0
    allocatable: str = ""
    missing: str = ""
    in_use: str = ""
    vg_name: str = ""


def _parse_int64(text: str) -> int:
    if not _INT.fullmatch(text):
        raise ValueError(f"invalid syntax: {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"value out of range: {text!r}")
    return value


def _to_int32(value: int) -> int:
    return ((value + 2**31) % 2**32) - 2**31


def _parse_float(text: str) -> float:
    if _FLOAT_FORBIDDEN.search(text):
        raise ValueError(f"invalid syntax: {text!r}")
    return float(text)


def _parse_bytes(text: str) -> int:
    lowered = text.lower()
    if lowered.endswith("b"):
        lowered = lowered[:-1]
    return _parse_int64(lowered)


def _invalid(key: str, fields: Mapping[str, str], kind: str, name: str, exc: Exception) -> ReportError:
    return ReportError(
        f"invalid format of {key}={fields.get(key, '')} for {kind} {name}: {exc}"
    )


def parse_volume_group(fields: Mapping[str, str]) -> VolumeGroup:
    """Build a VolumeGroup from one entry of a ``vgs`` report."""
    vg = VolumeGroup(name=fields.get(c.VG_NAME, ""), uuid=fields.get(c.VG_UUID, ""))

    counts = {
        c.VG_PV_COUNT: "pv_count",
        c.VG_LV_COUNT: "lv_count",
        c.VG_MAX_LV: "max_lv",
        c.VG_MAX_PV: "max_pv",
        c.VG_SNAP_COUNT: "snap_count",
        c.VG_MISSING_PV_COUNT: "missing_pv_count",
        c.VG_METADATA_COUNT: "metadata_count",
        c.VG_METADATA_USED_COUNT: "metadata_used_count",
    }
    for key, attr in counts.items():
        try:
            value = _parse_int64(fields.get(key, ""))
        except ValueError as exc:
            raise _invalid(key, fields, "vg", vg.name, exc) from exc
        setattr(vg, attr, _to_int32(value))

    sizes = {
        c.VG_SIZE: "size",
        c.VG_FREE_SIZE: "free",
        c.VG_METADATA_SIZE: "metadata_size",
        c.VG_METADATA_FREE_SIZE: "metadata_free",
    }
    for key, attr in sizes.items():
        try:
            setattr(vg, attr, _parse_bytes(fields.get(key, "")))
        except ValueError as exc:
            raise _invalid(key, fields, "vg", vg.name, exc) from exc

    vg.permission = c.field_enum_value(c.VG_PERMISSIONS, fields.get(c.VG_PERMISSIONS, ""))
    vg.allocation_policy = c.field_enum_value(
        c.VG_ALLOCATION_POLICY, fields.get(c.VG_ALLOCATION_POLICY, "")
    )
    return vg


def parse_logical_volume(fields: Mapping[str, str]) -> LogicalVolume:
    """Build a LogicalVolume from one entry of an ``lvs`` report.

    The device name is left empty; it is resolved by :func:`decode_lvs_json`.
    """
    lv = LogicalVolume(
        name=fields.get(c.LV_NAME, ""),
        full_name=fields.get(c.LV_FULL_NAME, ""),
        uuid=fields.get(c.LV_UUID, ""),
        path=fields.get(c.LV_PATH, ""),
        dm_path=fields.get(c.LV_DM_PATH, ""),
        vg_name=fields.get(c.VG_NAME, ""),
        active_status=fields.get(c.LV_ACTIVE, ""),
    )
    seg_type = fields.get(c.LV_SEGTYPE, "")

    try:
        lv.size = _parse_bytes(fields.get(c.LV_SIZE, ""))
    except ValueError as exc:
        raise _invalid(c.LV_SIZE, fields, "vg", lv.name, exc) from exc

    # Metadata size is only reported for thin pools.
    if seg_type == _LV_THIN_POOL:
        try:
            lv.metadata_size = _parse_bytes(fields.get(c.LV_METADATA_SIZE, ""))
        except ValueError as exc:
            raise _invalid(c.LV_METADATA_SIZE, fields, "vg", lv.name, exc) from exc

    lv.seg_type = seg_type
    lv.host = fields.get(c.LV_HOST, "")
    lv.pool_name = fields.get(c.LV_POOL, "")
    lv.permission = c.field_enum_value(c.LV_PERMISSIONS, fields.get(c.LV_PERMISSIONS, ""))
    lv.behaviour_when_full = c.field_enum_value(c.LV_WHEN_FULL, fields.get(c.LV_WHEN_FULL, ""))
    lv.health_status = c.field_enum_value(c.LV_HEALTH_STATUS, fields.get(c.LV_HEALTH_STATUS, ""))
    lv.raid_sync_action = c.field_enum_value(c.RAID_SYNC_ACTION, fields.get(c.RAID_SYNC_ACTION, ""))

    percents = {
        c.LV_DATA_PERCENT: "used_size_percent",
        c.LV_METADATA_PERCENT: "metadata_used_percent",
        c.LV_SNAP_PERCENT: "snapshot_used_percent",
    }
    for key, attr in percents.items():
        text = fields.get(key, "")
        if not text:
            setattr(lv, attr, 0.0)
            continue
        try:
            setattr(lv, attr, _parse_float(text))
        except ValueError as exc:
            raise _invalid(key, fields, "lv", lv.name, exc) from exc
    return lv


def parse_physical_volume(fields: Mapping[str, str]) -> PhysicalVolume:
    """Build a PhysicalVolume from one entry of a ``pvs`` report."""
    pv = PhysicalVolume(
        name=fields.get(c.PV_NAME, ""),
        uuid=fields.get(c.PV_UUID, ""),
        in_use=fields.get(c.PV_IN_USE, ""),
        allocatable=fields.get(c.PV_ALLOCATABLE, ""),
        missing=fields.get(c.PV_MISSING, ""),
        vg_name=fields.get(c.VG_NAME, ""),
    )
    sizes = {
        c.PV_SIZE: "size",
        c.PV_FREE_SIZE: "free",
        c.PV_USED_SIZE: "used",
        c.PV_METADATA_SIZE: "metadata_size",
        c.PV_METADATA_FREE_SIZE: "metadata_free",
        c.PV_DEVICE_SIZE: "device_size",
    }
    for key, attr in sizes.items():
        try:
            setattr(pv, attr, _parse_bytes(fields.get(key, "")))
        except ValueError as exc:
            raise _invalid(key, fields, "pv", pv.name, exc) from exc
    return pv


def _report_items(raw: str | bytes, section: str) -> list[dict[str, str]]:
    try:
        document: Any = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ReportError(f"invalid lvm report: {exc}") from exc
    if not isinstance(document, dict):
        raise ReportError("invalid lvm report: expected a JSON object")

    reports = document.get("report")
    if reports is None:
        reports = []
    if not isinstance(reports, list):
        raise ReportError("invalid lvm report: 'report' is not a list")
    if len(reports) != 1:
        raise ReportError("expected exactly one lvm report")

    report = reports[0]
    if report is None:
        report = {}
    if not isinstance(report, dict):
        raise ReportError("invalid lvm report: report entry is not an object")
    items = report.get(section)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ReportError(f"invalid lvm report: {section!r} is not a list")

    entries: list[dict[str, str]] = []
    for item in items:
        if item is None:
            item = {}
        if not isinstance(item, dict):
            raise ReportError(f"invalid lvm report: {section!r} entry is not an object")
        entry: dict[str, str] = {}
        for key, value in item.items():
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ReportError(f"invalid lvm report: field {key!r} is not a string")
            entry[key] = value
        entries.append(entry)
    return entries


def decode_vgs_json(raw: str | bytes) -> list[VolumeGroup]:
    """Decode the JSON output of ``vgs --reportformat json``."""
    return [parse_volume_group(item) for item in _report_items(raw, "vg")]


def lv_device_name(path: str) -> str:
    """Resolve a logical volume path to its device-mapper name, e.g. ``dm-0``."""
    try:
        resolved = os.path.realpath(path, strict=True)
    except OSError as exc:
        raise ReportError(f"failed to resolve device mapper from lv path {path}: {exc}") from exc
    return resolved.split("/")[-1]


def decode_lvs_json(
    raw: str | bytes,
    resolve_device: Callable[[str], str] = lv_device_name,
) -> list[LogicalVolume]:
    """Decode the JSON output of ``lvs --reportformat json``.

    Each volume's device name is filled in with ``resolve_device(lv.path)``.
    """
    volumes = []
    for item in _report_items(raw, "lv"):
        lv = parse_logical_volume(item)
        lv.device = resolve_device(lv.path)
        volumes.append(lv)
    return volumes


def decode_pvs_json(raw: str | bytes) -> list[PhysicalVolume]:
    """Decode the JSON output of ``pvs --reportformat json``."""
    return [parse_physical_volume(item) for item in _report_items(raw, "pv")]