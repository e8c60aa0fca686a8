"""Node-local LVM volumes and snapshots, report parsing, mount checks and IO limits."""

__version__ = "0.1.0"
__all__ = ["commands", "constants", "iolimiter", "mount", "reports"]