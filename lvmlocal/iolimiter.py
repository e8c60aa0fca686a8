"""Per-volume-group IO rate limits, expressed per GB of capacity."""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

_UINT64_MAX = 2**64 - 1
_DIGITS = re.compile(r"[0-9]+")


def _parse_uint64(text: str) -> int:
    if not _DIGITS.fullmatch(text):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    value = int(text)
    if value > _UINT64_MAX:
        raise ValueError(f"value out of range: {text!r}")
    return value


def extract_rate_values(rate_vals: Iterable[str] | None) -> dict[str, int]:
    """Parse ``"prefix:rate"`` entries into a mapping of prefix to rate.

    Raises ValueError for an entry without a rate or with a rate that is not
    an unsigned 64-bit decimal integer.
    """
    rates: dict[str, int] = {}
    if rate_vals is None:
        return rates
    for entry in rate_vals:
        parts = entry.split(":")
        if len(parts) < 2:
            raise ValueError(f"missing rate in {entry!r}")
        rates[parts[0]] = _parse_uint64(parts[1])
    return rates


def _rates_or_empty(values: Iterable[str] | None, description: str) -> dict[str, int]:
    try:
        return extract_rate_values(values)
    except ValueError as exc:
        logger.warning("%s limit rates could not be extracted from config: %s", description, exc)
        return {}


class IOLimiter:
    """Holds IO limit rates keyed by volume group name or name prefix.

    Only the first call to :meth:`configure` takes effect.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._configured = False
        self.enabled = False
        self._container_runtime = ""
        self._riops: dict[str, int] = {}
        self._wiops: dict[str, int] = {}
        self._rbps: dict[str, int] = {}
        self._wbps: dict[str, int] = {}

    @property
    def configured(self) -> bool:
        with self._lock:
            return self._configured

    @property
    def container_runtime(self) -> str:
        with self._lock:
            return self._container_runtime

    def configure(
        self,
        container_runtime: str,
        riops_per_gb: Iterable[str] | None = None,
        wiops_per_gb: Iterable[str] | None = None,
        rbps_per_gb: Iterable[str] | None = None,
        wbps_per_gb: Iterable[str] | None = None,
    ) -> None:
        """Enable IO limits with the given rates; later calls are ignored."""
        with self._lock:
            if self._configured:
                return
            self.enabled = True
            self._container_runtime = container_runtime
            self._riops = _rates_or_empty(riops_per_gb, "Read IOPS")
            self._wiops = _rates_or_empty(wiops_per_gb, "Write IOPS")
            self._rbps = _rates_or_empty(rbps_per_gb, "Read BPS")
            self._wbps = _rates_or_empty(wbps_per_gb, "Write BPS")
            self._configured = True

    def _rate(self, vg_name: str, rates: Mapping[str, int]) -> int:
        with self._lock:
            if vg_name in rates:
                return rates[vg_name]
            return next(
                (rate for prefix, rate in rates.items() if vg_name.startswith(prefix)),
                0,
            )

    def read_iops_per_gb(self, vg_name: str) -> int:
        return self._rate(vg_name, self._riops)

    def write_iops_per_gb(self, vg_name: str) -> int:
        return self._rate(vg_name, self._wiops)

    def read_bps_per_gb(self, vg_name: str) -> int:
        return self._rate(vg_name, self._rbps)

    def write_bps_per_gb(self, vg_name: str) -> int:
        return self._rate(vg_name, self._wbps)