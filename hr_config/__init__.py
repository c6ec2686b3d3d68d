"""
hr_config -- YAML configuration for payroll generation.

Responsibility:
    Turns version-controlled YAML into the typed objects the payroll
    service is constructed with: a ``PayrollConfig`` and a
    ``TaxSlabSchedule``.  ``load_default_config()`` returns the pair shipped
    in ``hr_config/defaults/payroll.yaml``.

Architecture position:
    Configuration -- sits above ``hr_engines`` and ``hr_modules`` and only
    builds their value objects.  Neither the kernel, the engines nor the
    modules import from ``hr_config``.
"""

from hr_config.loader import (
    DEFAULT_CONFIG_PATH,
    compute_checksum,
    load_default_config,
    load_payroll_config,
    load_tax_schedule,
    load_yaml_file,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "compute_checksum",
    "load_default_config",
    "load_payroll_config",
    "load_tax_schedule",
    "load_yaml_file",
]
