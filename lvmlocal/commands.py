"""Running the LVM command line tools to manage volumes and snapshots."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field

from lvmlocal.constants import LVM_VOL_KEY
from lvmlocal.reports import (
    LogicalVolume,
    PhysicalVolume,
    VolumeGroup,
    decode_lvs_json,
    decode_pvs_json,
    decode_vgs_json,
)

logger = logging.getLogger(__name__)

DEV_PATH = "/dev/"
DEV_MAPPER_PATH = "/dev/mapper/"
# Minimum size (256Mi) by which a volume group's free size is rounded off
# when it is too small to hold a requested thin pool.
MIN_EXTENT_ROUND_OFF_SIZE = 268435456
BLOCK_CLEANER_COMMAND = "wipefs"

VG_CREATE = "vgcreate"
VG_LIST = "vgs"
LV_CREATE = "lvcreate"
LV_REMOVE = "lvremove"
LV_EXTEND = "lvextend"
LV_LIST = "lvs"
PV_LIST = "pvs"
PV_SCAN = "pvscan"

YES = "yes"
LV_THIN_POOL = "thin-pool"
SNAPSHOT_PREFIX = "snapshot-"

_INT64 = re.compile(r"[+-]?[0-9]+")
_UINT = re.compile(r"[0-9]+")
_UINT64_MAX = 2**64 - 1

Runner = Callable[..., str]


class ExecError(Exception):
    """A command failed; holds its combined output and the underlying error."""

    def __init__(self, output: str, err: object) -> None:
        super().__init__(output, err)
        self.output = output
        self.err = err

    def __str__(self) -> str:
        return f"{self.output} - {self.err}"


@dataclass
class LVMVolume:
    """The parts of a volume resource needed to manage its logical volume."""

    name: str
    vol_group: str = ""
    capacity: str = ""
    thin_provision: str = ""
    owner_node_id: str = ""
    shared: str = ""
    finalizers: list[str] | None = None
    state: str = ""

    @property
    def is_thin(self) -> bool:
        return self.thin_provision.strip() == YES

    @property
    def full_name(self) -> str:
        return f"{self.vol_group}/{self.name}"


@dataclass
class LVMSnapshot:
    """The parts of a snapshot resource needed to manage its logical volume."""

    name: str
    vol_group: str = ""
    snap_size: str = ""
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.vol_group}/{lvm_snap_name(self.name)}"


def _parse_int64(text: str) -> int:
    if not _INT64.fullmatch(text):
        raise ValueError(f"invalid syntax: {text!r}")
    value = int(text)
    if not -(2**63) <= value < 2**63:
        raise ValueError(f"value out of range: {text!r}")
    return value


def _parse_uint64(text: str) -> int:
    if not _UINT.fullmatch(text):
        raise ValueError(f"invalid syntax: {text!r}")
    value = int(text)
    if value > _UINT64_MAX:
        raise ValueError(f"value out of range: {text!r}")
    return value


def volume_dev_path(volume: LVMVolume) -> str:
    """Return the device-mapper path of a volume.

    LVM doubles hyphens inside names and joins group and volume with one.
    """
    vg = volume.vol_group.replace("-", "--")
    lv = volume.name.replace("-", "--")
    return f"{DEV_MAPPER_PATH}{vg}-{lv}"


def lvm_snap_name(snap_name: str) -> str:
    """Strip the ``snapshot-`` prefix, since LVM reserves names starting with it."""
    return snap_name.removeprefix(SNAPSHOT_PREFIX)


def thin_pool_size(vg_free: str, vol_size: str) -> str:
    """Return the thin pool size to request, given the group's free bytes.

    If the group has less free space than the volume size, the free space less
    256Mi is used. Returns an empty string if either size cannot be parsed.
    """
    try:
        free = _parse_int64(vg_free.strip())
    except ValueError as exc:
        logger.error("failed to convert vg_size to int, got size %r: %s", vg_free, exc)
        return ""
    try:
        size = _parse_int64(vol_size.strip())
    except ValueError as exc:
        logger.error("failed to convert volsize to int, got size %r: %s", vol_size, exc)
        return ""
    if free < size:
        return f"{free - MIN_EXTENT_ROUND_OFF_SIZE}b"
    return f"{vol_size}b"


def build_lvm_create_args(
    volume: LVMVolume, thin_pool_exists: bool = False, pool_size: str = ""
) -> list[str]:
    """Return the ``lvcreate`` arguments for a volume.

    For a thin volume whose pool does not exist yet, ``pool_size`` is the
    size the new pool is created with.
    """
    args: list[str] = []
    size = f"{volume.capacity}b"
    pool = f"{volume.vol_group}_thinpool"

    if volume.capacity:
        if not volume.is_thin:
            args += ["-L", size]
        elif not thin_pool_exists:
            args += ["-L", pool_size]

    if volume.is_thin:
        args += ["-T", f"{volume.vol_group}/{pool}", "-V", size]

    if volume.vol_group:
        args += ["-n", volume.name]

    if not volume.is_thin:
        args.append(volume.vol_group)

    # -y wipes existing signatures before creating the volume
    args.append("-y")
    return args


def build_lvm_destroy_args(volume: LVMVolume) -> list[str]:
    """Return the ``lvremove`` arguments for a volume."""
    return ["-y", f"{DEV_PATH}{volume.vol_group}/{volume.name}"]


def build_volume_resize_args(volume: LVMVolume, resizefs: bool) -> list[str]:
    """Return the ``lvextend`` arguments for a volume, resizing its filesystem too if asked."""
    args = [f"{DEV_PATH}{volume.vol_group}/{volume.name}", "-L", f"{volume.capacity}b"]
    if resizefs:
        args.append("-r")
    return args


def build_snapshot_create_args(snapshot: LVMSnapshot) -> list[str]:
    """Return the ``lvcreate`` arguments for a read-only snapshot.

    A size is passed only when one is set; without it a thin snapshot is made.
    """
    source = snapshot.labels.get(LVM_VOL_KEY, "")
    args = [
        "--snapshot",
        "--name",
        lvm_snap_name(snapshot.name),
        "--permission",
        "r",
        f"{DEV_PATH}{snapshot.vol_group}/{source}",
    ]
    if snapshot.snap_size:
        args += ["--size", f"{snapshot.snap_size}b"]
    return args


def build_snapshot_destroy_args(snapshot: LVMSnapshot) -> list[str]:
    """Return the ``lvremove`` arguments for a snapshot."""
    return ["-y", f"{DEV_PATH}{snapshot.vol_group}/{lvm_snap_name(snapshot.name)}"]


def run_command(command: str, *args: str) -> str:
    """Run a command and return its combined stdout and stderr.

    Raises ExecError if the command cannot be started or exits non-zero.
    """
    try:
        completed = subprocess.run(
            [command, *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=False,
        )
    except OSError as exc:
        raise ExecError("", exc) from exc
    output = completed.stdout.decode(errors="replace")
    if completed.returncode != 0:
        raise ExecError(output, f"exit status {completed.returncode}")
    return output


class LVM:
    """Manages logical volumes and snapshots through the LVM tools."""

    def __init__(self, runner: Runner = run_command) -> None:
        self._run = runner

    def volume_exists(self, volume: LVMVolume) -> bool:
        """Return whether the volume's device-mapper node exists."""
        try:
            os.stat(volume_dev_path(volume))
        except FileNotFoundError:
            return False
        return True

    def create_volume(self, volume: LVMVolume) -> None:
        """Create the logical volume unless it already exists."""
        if self.volume_exists(volume):
            logger.info("lvm: volume (%s) already exists, skipping its creation", volume.full_name)
            return

        thin_exists = False
        pool_size = ""
        if volume.capacity and volume.is_thin:
            pool = f"{volume.vol_group}_thinpool"
            thin_exists = self.thin_exists(volume.vol_group, pool)
            if not thin_exists:
                pool_size = self.thin_pool_size(volume.vol_group, volume.capacity)

        args = build_lvm_create_args(volume, thin_exists, pool_size)
        try:
            self._run(LV_CREATE, *args)
        except ExecError as exc:
            logger.error(
                "lvm: could not create volume %s cmd %s error: %s",
                volume.full_name, args, exc.output,
            )
            raise
        logger.info("lvm: created volume %s", volume.full_name)

    def destroy_volume(self, volume: LVMVolume) -> None:
        """Wipe and remove the logical volume if it exists."""
        if not volume.vol_group:
            logger.info("volGroup not set for lvm volume %s, skipping its deletion", volume.name)
            return
        if not self.volume_exists(volume):
            logger.info("lvm: volume (%s) doesn't exists, skipping its deletion", volume.full_name)
            return

        self.remove_volume_filesystem(volume)

        args = build_lvm_destroy_args(volume)
        try:
            self._run(LV_REMOVE, *args)
        except ExecError as exc:
            logger.error(
                "lvm: could not destroy volume %s cmd %s error: %s",
                volume.full_name, args, exc.output,
            )
            raise
        logger.info("lvm: destroyed volume %s", volume.full_name)

    def resize_volume(self, volume: LVMVolume, resizefs: bool) -> None:
        """Extend the volume to its capacity, and its filesystem if ``resizefs``.

        Without ``resizefs`` nothing is done when the volume is already at
        least that large, since extending twice to one size fails.
        """
        if not resizefs:
            desired = _parse_uint64(volume.capacity)
            if desired <= self.lv_size(volume):
                return

        args = build_volume_resize_args(volume, resizefs)
        try:
            self._run(LV_EXTEND, *args)
        except ExecError as exc:
            logger.error(
                "lvm: could not resize the volume %s cmd %s error: %s",
                volume.full_name, args, exc.output,
            )
            raise

    def lv_size(self, volume: LVMVolume) -> int:
        """Return the current size of the logical volume in bytes."""
        try:
            raw = self._run(
                LV_LIST, volume.full_name,
                "--noheadings", "-o", "lv_size", "--units", "b", "--nosuffix",
            )
        except ExecError as exc:
            raise ExecError(
                exc.output,
                f"could not get size of volume {volume.full_name}: {exc.err}",
            ) from exc
        return _parse_uint64(raw.strip())

    def create_snapshot(self, snapshot: LVMSnapshot) -> None:
        """Create a read-only snapshot of the volume named in the snapshot's labels."""
        args = build_snapshot_create_args(snapshot)
        try:
            self._run(LV_CREATE, *args)
        except ExecError as exc:
            logger.error(
                "lvm: could not create snapshot %s cmd %s error: %s",
                snapshot.full_name, args, exc.output,
            )
            raise
        logger.info(
            "created snapshot %s from %s",
            snapshot.full_name, snapshot.labels.get(LVM_VOL_KEY, ""),
        )

    def destroy_snapshot(self, snapshot: LVMSnapshot) -> None:
        """Remove the snapshot; skipped if it cannot be found."""
        try:
            exists = self.snapshot_exists(snapshot.vol_group, lvm_snap_name(snapshot.name))
        except ExecError:
            exists = False
        if not exists:
            logger.info("lvm: snapshot %s does not exist, skipping deletion", snapshot.full_name)
            return

        args = build_snapshot_destroy_args(snapshot)
        try:
            self._run(LV_REMOVE, *args)
        except ExecError as exc:
            logger.error(
                "lvm: could not remove snapshot %s cmd %s error: %s",
                snapshot.full_name, args, exc.output,
            )
            raise
        logger.info("removed snapshot %s", snapshot.full_name)

    def reload_metadata_cache(self) -> None:
        """Refresh the LVM metadata cache used by the reporting tools."""
        try:
            self._run(PV_SCAN, "--cache")
        except ExecError as exc:
            logger.error("lvm: reload lvm metadata cache: %s", exc)
            raise

    def list_volume_groups(self, reload_cache: bool) -> list[VolumeGroup]:
        """List the volume groups on the node, refreshing the cache first if asked."""
        if reload_cache:
            self.reload_metadata_cache()
        args = ["--options", "vg_all", "--reportformat", "json", "--units", "b"]
        try:
            output = self._run(VG_LIST, *args)
        except ExecError as exc:
            logger.error("lvm: list volume group cmd %s: %s", args, exc)
            raise
        return decode_vgs_json(output)

    def list_logical_volumes(self) -> list[LogicalVolume]:
        """List the logical volumes on the node."""
        args = ["--options", "lv_all,vg_name,segtype", "--reportformat", "json", "--units", "b"]
        try:
            output = self._run(LV_LIST, *args)
        except ExecError as exc:
            logger.error("lvm: error while running command %s %s: %s", LV_LIST, args, exc)
            raise
        return decode_lvs_json(output)

    def list_physical_volumes(self) -> list[PhysicalVolume]:
        """List the physical volumes on the node, after refreshing the cache."""
        self.reload_metadata_cache()
        args = ["--options", "pv_all,vg_name", "--reportformat", "json", "--units", "b"]
        try:
            output = self._run(PV_LIST, *args)
        except ExecError as exc:
            logger.error("lvm: error while running command %s %s: %s", PV_LIST, args, exc)
            raise
        return decode_pvs_json(output)

    def thin_exists(self, vg: str, name: str) -> bool:
        """Return whether a thin pool or volume exists; False if listing fails."""
        try:
            out = self._run(LV_LIST, f"{vg}/{name}", "--noheadings", "-o", "lv_name")
        except ExecError as exc:
            logger.error("failed to list existing volumes: %s", exc)
            return False
        return out.strip() == name

    def snapshot_exists(self, vg: str, snap_volume_name: str) -> bool:
        """Return whether a snapshot volume exists; raises ExecError if listing fails."""
        out = self._run(LV_LIST, f"{vg}/{snap_volume_name}", "--noheadings", "-o", "lv_name")
        return out.strip() == snap_volume_name

    def vg_free_size(self, vg_name: str) -> str:
        """Return the free bytes of a volume group as text, or '' if listing fails."""
        try:
            out = self._run(
                VG_LIST, vg_name, "--noheadings", "-o", "vg_free", "--units", "b", "--nosuffix",
            )
        except ExecError as exc:
            logger.error("failed to list existing volumegroup: %s, %s", vg_name, exc)
            return ""
        return out.strip()

    def thin_pool_size(self, vg_name: str, vol_size: str) -> str:
        """Return the size to create a thin pool with in the given volume group."""
        return thin_pool_size(self.vg_free_size(vg_name), vol_size)

    def remove_volume_filesystem(self, volume: LVMVolume) -> None:
        """Erase all filesystem signatures from the volume's device."""
        device_path = os.path.join(DEV_PATH, volume.vol_group, volume.name)
        try:
            self._run(BLOCK_CLEANER_COMMAND, "-af", device_path)
        except ExecError as exc:
            raise ExecError(
                exc.output,
                f"failed to wipe filesystem on device path: {device_path}: {exc.err}",
            ) from exc
        logger.debug("Successfully wiped filesystem on device path: %s", device_path)