"""HRMS configuration: allocation settings and their YAML loader."""

from hrms_config.loader import compute_checksum, load_settings, parse_settings
from hrms_config.schema import AllocationSettings

__all__ = [
    "AllocationSettings",
    "load_settings",
    "parse_settings",
    "compute_checksum",
]
