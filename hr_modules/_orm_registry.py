"""
Module ORM Registry (``hr_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before
``hr_kernel.db.engine.create_tables()`` runs ``create_all()``.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by the kernel's
``create_tables`` so the kernel never imports modules at load time.
"""

from hr_kernel.logging_config import get_logger

logger = get_logger("modules.orm_registry")


def import_all_orm_models() -> None:
    """Import every ``hr_modules.*.orm`` module.  Idempotent."""
    import hr_modules.payroll.orm  # noqa: F401

    logger.debug("orm_models_imported", extra={"modules": ["payroll"]})
