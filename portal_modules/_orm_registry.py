"""
Module ORM Registry (``portal_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created by ``portal_kernel.db.engine.create_tables()``.

Architecture position
---------------------
**Modules layer** -- utility.  MUST NOT be imported at module level by
``portal_kernel``; the kernel imports it lazily inside ``create_tables()``.
"""


def import_all_orm_models() -> None:
    """Import every ``portal_modules.*.orm`` module to register ORM models.

    This function is idempotent -- repeated calls are harmless.
    """
    import portal_modules.payments.orm  # noqa: F401
