"""Checks and computations that precede mounting a logical volume."""

from __future__ import annotations

import enum
import logging
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from lvmlocal.commands import LVMVolume
from lvmlocal.iolimiter import IOLimiter

logger = logging.getLogger(__name__)

_GIB = 1024 * 1024 * 1024
_UINT64_MOD = 2**64
_DIGITS = re.compile(r"[0-9]+")


class Code(enum.Enum):
    """Status codes reported with a failed mount request."""

    INVALID_ARGUMENT = "InvalidArgument"
    INTERNAL = "Internal"


class MountError(Exception):
    """A mount request was rejected; ``code`` tells why."""

    def __init__(self, code: Code, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


@dataclass
class MountInfo:
    """How and where a volume is to be mounted."""

    fs_type: str = ""
    access_modes: list[str] = field(default_factory=list)
    mount_path: str = ""
    mount_options: list[str] = field(default_factory=list)


@dataclass
class PodLVInfo:
    """The pod a volume is mounted for and the volume group it lives in."""

    uid: str = ""
    lv_group: str = ""


@dataclass(frozen=True)
class IOMax:
    """Absolute IO limits for one device."""

    riops: int = 0
    wiops: int = 0
    rbps: int = 0
    wbps: int = 0


def _parse_capacity(capacity: str) -> int:
    if not _DIGITS.fullmatch(capacity):
        raise ValueError(f"invalid capacity: {capacity!r}")
    value = int(capacity)
    if value >= _UINT64_MOD:
        raise ValueError(f"capacity out of range: {capacity!r}")
    return value


def compute_io_limits(capacity: str, lv_group: str, limiter: IOLimiter) -> IOMax:
    """Scale the per-GB rates of ``lv_group`` by the capacity, rounded up to whole GiB.

    Raises ValueError if the capacity is not an unsigned decimal byte count.
    """
    capacity_bytes = _parse_capacity(capacity)
    capacity_gb = -(-capacity_bytes // _GIB)
    logger.info("Capacity of device in GB: %d", capacity_gb)
    return IOMax(
        riops=(limiter.read_iops_per_gb(lv_group) * capacity_gb) % _UINT64_MOD,
        wiops=(limiter.write_iops_per_gb(lv_group) * capacity_gb) % _UINT64_MOD,
        rbps=(limiter.read_bps_per_gb(lv_group) * capacity_gb) % _UINT64_MOD,
        wbps=(limiter.write_bps_per_gb(lv_group) * capacity_gb) % _UINT64_MOD,
    )


def make_file(pathname: str | os.PathLike[str]) -> None:
    """Create an empty file to bind-mount a block device on; an existing one is kept."""
    try:
        fd = os.open(pathname, os.O_CREAT | os.O_RDONLY, 0o644)
    except FileExistsError:
        return
    os.close(fd)


def check_mount_request(
    volume: LVMVolume,
    mount_path: str,
    node_id: str,
    finalized: bool | None = None,
    shared: bool | None = None,
    current_mounts: Iterable[str] = (),
) -> bool:
    """Validate a mount request against where the device is mounted now.

    Returns True if the device is already mounted at ``mount_path`` and
    False if it still has to be mounted. ``finalized`` and ``shared`` default
    to what the volume itself records. Raises MountError if the request must
    be refused.
    """
    if not mount_path:
        raise MountError(Code.INVALID_ARGUMENT, "verifyMount: mount path missing in request")
    if volume.owner_node_id and volume.owner_node_id != node_id:
        raise MountError(Code.INTERNAL, "verifyMount: volume is owned by different node")
    if finalized is None:
        finalized = volume.finalizers is not None
    if not finalized:
        raise MountError(Code.INTERNAL, "verifyMount: volume is not ready to be mounted")
    if shared is None:
        shared = volume.shared == "yes"

    mounts = list(current_mounts)
    if mount_path in mounts:
        return True
    if mounts and not shared:
        logger.error(
            "can not mount, volume:%s already mounted mounts: %s", volume.name, mounts
        )
        raise MountError(Code.INTERNAL, f"verifyMount: device already mounted at {mounts}")
    return False