"""Field names of LVM reports, enumerated field values and resource keys."""

# Volume group report fields
VG_NAME = "vg_name"
VG_UUID = "vg_uuid"
VG_PV_COUNT = "pv_count"
VG_LV_COUNT = "lv_count"
VG_MAX_LV = "max_lv"
VG_MAX_PV = "max_pv"
VG_SNAP_COUNT = "snap_count"
VG_MISSING_PV_COUNT = "vg_missing_pv_count"
VG_METADATA_COUNT = "vg_mda_count"
VG_METADATA_USED_COUNT = "vg_mda_used_count"
VG_SIZE = "vg_size"
VG_FREE_SIZE = "vg_free"
VG_METADATA_SIZE = "vg_mda_size"
VG_METADATA_FREE_SIZE = "vg_mda_free"
VG_PERMISSIONS = "vg_permissions"
VG_ALLOCATION_POLICY = "vg_allocation_policy"

# Logical volume report fields
LV_NAME = "lv_name"
LV_FULL_NAME = "lv_full_name"
LV_UUID = "lv_uuid"
LV_PATH = "lv_path"
LV_DM_PATH = "lv_dm_path"
LV_ACTIVE = "lv_active"
LV_SIZE = "lv_size"
LV_METADATA_SIZE = "lv_metadata_size"
LV_SEGTYPE = "segtype"
LV_HOST = "lv_host"
LV_POOL = "pool_lv"
LV_PERMISSIONS = "lv_permissions"
LV_WHEN_FULL = "lv_when_full"
LV_HEALTH_STATUS = "lv_health_status"
RAID_SYNC_ACTION = "raid_sync_action"
LV_DATA_PERCENT = "data_percent"
LV_METADATA_PERCENT = "metadata_percent"
LV_SNAP_PERCENT = "snap_percent"

# Physical volume report fields
PV_NAME = "pv_name"
PV_UUID = "pv_uuid"
PV_IN_USE = "pv_in_use"
PV_ALLOCATABLE = "pv_allocatable"
PV_MISSING = "pv_missing"
PV_SIZE = "pv_size"
PV_FREE_SIZE = "pv_free"
PV_USED_SIZE = "pv_used"
PV_METADATA_SIZE = "pv_mda_size"
PV_METADATA_FREE_SIZE = "pv_mda_free"
PV_DEVICE_SIZE = "dev_size"

# Ordered values of enumerated report fields; a value's index is its code.
ENUMS: dict[str, tuple[str, ...]] = {
    LV_PERMISSIONS: ("unknown", "writeable", "read-only", "read-only-override"),
    LV_WHEN_FULL: ("error", "queue"),
    RAID_SYNC_ACTION: ("idle", "frozen", "resync", "recover", "check", "repair"),
    LV_HEALTH_STATUS: ("", "partial", "refresh needed", "mismatches exist"),
    VG_ALLOCATION_POLICY: ("normal", "contiguous", "cling", "anywhere", "inherited"),
    VG_PERMISSIONS: ("writeable", "read-only"),
}

# Environment variables and resource keys
LVM_NAMESPACE_KEY = "LVM_NAMESPACE"
GOOGLE_ANALYTICS_KEY = "OPENEBS_IO_ENABLE_ANALYTICS"
NODE_ID_KEY = "OPENEBS_NODE_ID"
NODE_DRIVER_KEY = "OPENEBS_NODE_DRIVER"
LVM_FINALIZER = "lvm.openebs.io/finalizer"
VOL_GROUP_KEY = "openebs.io/volgroup"
LVM_VOL_KEY = "openebs.io/persistent-volume"
LVM_NODE_KEY = "kubernetes.io/nodename"
LVM_TOPOLOGY_KEY = "openebs.io/nodename"
LVM_STATUS_PENDING = "Pending"
LVM_STATUS_FAILED = "Failed"
LVM_STATUS_READY = "Ready"
OPENEBS_CAS_TYPE_KEY = "openebs.io/cas-type"
LVM_CAS_TYPE_NAME = "localpv-lvm"

UNDEFINED = -1


def field_enum_value(field_name: str, field_value: str) -> int:
    """Return the integer code of an enumerated field value, or -1 if unknown."""
    try:
        return ENUMS.get(field_name, ()).index(field_value)
    except ValueError:
        return UNDEFINED