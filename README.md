# lvmlocal

A library for managing node-local LVM storage. It can create, extend and
remove logical volumes and snapshots, parse the JSON reports of `vgs`, `lvs`
and `pvs`, validate a mount request against the places a device is mounted
now, and work out absolute IO limits from per-GB rates.

The `LVM` class runs the standard LVM command-line tools (`lvcreate`,
`lvremove`, `lvextend`, `lvs`, `vgs`, `pvs`, `pvscan`) and `wipefs`. These
must be installed, and the caller needs the privileges they require.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `lvmlocal.constants`: report field names (such as `LV_SIZE` and
  `VG_FREE_SIZE`), the `ENUMS` table of enumerated field values, status
  values and label keys. `field_enum_value(field_name, field_value)` returns
  the integer code of an enumerated value, for example `1` for
  `lv_permissions` = `"writeable"`, and `-1` when the value is unknown.
- `lvmlocal.iolimiter`: `extract_rate_values` turns `"prefix:rate"` entries
  into a dictionary, raising `ValueError` for a missing or invalid rate.
  `IOLimiter.configure(...)` stores read/write IOPS and BPS rates; only the
  first call takes effect, and entries that fail to parse leave that rate
  table empty. `read_iops_per_gb`, `write_iops_per_gb`, `read_bps_per_gb`
  and `write_bps_per_gb` look a volume group up by exact name first, then by
  prefix, and return `0` when nothing matches.
- `lvmlocal.reports`: the `VolumeGroup`, `LogicalVolume` and
  `PhysicalVolume` dataclasses (sizes in bytes), the `parse_*` functions for
  one report entry, and `decode_vgs_json`, `decode_lvs_json` and
  `decode_pvs_json` for `--reportformat json` output. `decode_lvs_json`
  fills in each volume's device name through `resolve_device`, which
  defaults to `lv_device_name` (the final component of the resolved path,
  such as `dm-0`). Malformed input raises `ReportError`.
- `lvmlocal.commands`: the `LVMVolume` and `LVMSnapshot` dataclasses,
  `volume_dev_path`, `lvm_snap_name`, `thin_pool_size` and the argument
  builders (`build_lvm_create_args`, `build_lvm_destroy_args`,
  `build_volume_resize_args`, `build_snapshot_create_args`,
  `build_snapshot_destroy_args`). `run_command` runs a program and returns
  its combined output. The `LVM` class provides `create_volume`,
  `destroy_volume`, `resize_volume`, `lv_size`, `create_snapshot`,
  `destroy_snapshot`, `reload_metadata_cache`, `list_volume_groups`,
  `list_logical_volumes`, `list_physical_volumes` and related helpers. A
  failed command raises `ExecError`, whose `output` holds what the command
  printed.
- `lvmlocal.mount`: the `MountInfo`, `PodLVInfo` and `IOMax` dataclasses,
  `check_mount_request`, `compute_io_limits` and `make_file`. A refused
  mount request raises `MountError`, whose `code` is a `Code` member
  (`INVALID_ARGUMENT` or `INTERNAL`).

## Example

```python
from lvmlocal.commands import LVM, LVMVolume

lvm = LVM()
volume = LVMVolume(name="pvc-1234", vol_group="lvmvg", capacity="1073741824")

lvm.create_volume(volume)  # skipped if the volume already exists

for group in lvm.list_volume_groups(reload_cache=True):
    print(group.name, group.free)
```

`LVM` takes a `runner` callable with the signature of `run_command`
(`runner(command, *args) -> str`, raising `ExecError` on failure). Passing
your own lets you log or record commands instead of executing them.

Checking a mount request and computing IO limits:

```python
from lvmlocal.commands import LVMVolume
from lvmlocal.iolimiter import IOLimiter
from lvmlocal.mount import check_mount_request, compute_io_limits

volume = LVMVolume(name="pvc-1234", vol_group="lvmvg",
                   capacity="2147483648", finalizers=[])
already = check_mount_request(volume, "/mnt/data", node_id="node1",
                              current_mounts=[])

limiter = IOLimiter()
limiter.configure("containerd", riops_per_gb=["lvmvg:50"])
limits = compute_io_limits(volume.capacity, "lvmvg", limiter)  # limits.riops == 100
```

## What this package does not do

- It does not format or mount filesystems, bind-mount block devices or
  unmount them; `check_mount_request` and `make_file` only prepare for that.
- It does not apply IO limits to a device or a container; `compute_io_limits`
  only returns the values.
- It does not talk to a cluster API: there is no creating, updating or
  waiting on volume or snapshot resources, and no driver or command-line
  program.