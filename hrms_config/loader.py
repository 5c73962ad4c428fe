"""
Settings loader (``hrms_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into an
``hrms_config.schema.AllocationSettings`` frozen dataclass.

Invariants enforced
-------------------
* Unknown keys are rejected with ``ValueError``; a typo never silently
  falls back to a default.
* Decimal fields are parsed from their string form, never through float.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or unparsable value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from hrms_config.schema import AllocationSettings

_DECIMAL_FIELDS = frozenset(
    f.name for f in fields(AllocationSettings) if f.type in ("Decimal", Decimal)
)
_INT_FIELDS = frozenset(
    f.name for f in fields(AllocationSettings) if f.type in ("int", int)
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected a decimal, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name}: cannot parse decimal from {value!r}") from exc


def parse_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"{name}: expected an integer, got {value!r}")
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name}: cannot parse integer from {value!r}") from exc


def parse_settings(data: dict[str, Any]) -> AllocationSettings:
    """
    Parse ``AllocationSettings`` from a dict.

    The dict may hold the keys at top level or under an ``allocation`` key.

    Raises:
        ValueError: on unknown keys or unparsable values.
    """
    if "allocation" in data and isinstance(data["allocation"], dict):
        data = data["allocation"]

    unknown = sorted(set(data) - _DECIMAL_FIELDS - _INT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown settings keys: {unknown}")

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key in _DECIMAL_FIELDS:
            kwargs[key] = parse_decimal(key, value)
        else:
            kwargs[key] = parse_int(key, value)
    return AllocationSettings(**kwargs)


def load_settings(path: Path | str | None = None) -> AllocationSettings:
    """Load settings from a YAML file; defaults when ``path`` is None."""
    if path is None:
        return AllocationSettings()
    return parse_settings(load_yaml_file(Path(path)))


def compute_checksum(settings: AllocationSettings) -> str:
    """Deterministic SHA-256 of a settings snapshot, for log correlation."""
    payload = {f.name: str(getattr(settings, f.name)) for f in fields(settings)}
    canonical = json.dumps(payload, sort_keys=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
