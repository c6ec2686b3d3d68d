"""
Configuration Loader (``hr_config.loader``).

Responsibility
--------------
Loads payroll YAML files and parses them into ``PayrollConfig`` and
``TaxSlabSchedule`` instances.  A file holds a ``payroll`` section and/or a
``tax`` section::

    payroll:
      eobi_amount: "370"
      attendance_policy:
        basis: gross
        working_days_method: fixed
    tax:
      annualize: true
      slabs:
        - {name: Exempt, min_amount: 0, max_amount: 600000, rate: 0}
        - {name: Slab 2, min_amount: 600000, rate: 5}

Invariants enforced
-------------------
* Monetary values are converted with ``Decimal(str(value))`` so YAML floats
  never leak binary rounding into amounts.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing section or required keys  -> ``KeyError``.
* Invalid values  -> ``ValueError`` from the dataclass validation.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from hr_engines.tax import TaxSlabSchedule
from hr_kernel.logging_config import get_logger
from hr_modules.payroll.config import PayrollConfig

logger = get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "payroll.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_payroll_config(data: dict[str, Any]) -> PayrollConfig:
    """Parse the ``payroll`` section."""
    return PayrollConfig.from_dict(data or {})


def parse_tax_schedule(data: dict[str, Any]) -> TaxSlabSchedule:
    """Parse the ``tax`` section; ``slabs`` is required."""
    return TaxSlabSchedule.from_rows(
        data["slabs"], annualize=bool(data.get("annualize", False)),
    )


def load_payroll_config(path: Path) -> PayrollConfig:
    data = load_yaml_file(path)
    config = parse_payroll_config(data.get("payroll", {}))
    logger.info(
        "payroll_config_loaded",
        extra={"path": str(path), "checksum": compute_checksum(data.get("payroll", {}))},
    )
    return config


def load_tax_schedule(path: Path) -> TaxSlabSchedule:
    data = load_yaml_file(path)
    if "tax" not in data:
        raise KeyError(f"No 'tax' section in {path}")
    schedule = parse_tax_schedule(data["tax"])
    logger.info(
        "tax_schedule_loaded",
        extra={
            "path": str(path),
            "slab_count": len(schedule.slabs),
            "annualize": schedule.annualize,
            "checksum": compute_checksum(data["tax"]),
        },
    )
    return schedule


def load_default_config() -> tuple[PayrollConfig, TaxSlabSchedule]:
    """The shipped defaults: ``(PayrollConfig, TaxSlabSchedule)``."""
    return load_payroll_config(DEFAULT_CONFIG_PATH), load_tax_schedule(DEFAULT_CONFIG_PATH)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums regardless of
    key order.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
