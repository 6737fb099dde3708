"""
Module ORM Registry (``lease_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  ``lease_kernel.db.engine.create_tables()`` calls
``import_all_orm_models()`` before ``create_all()``.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``lease_modules``
packages only.
"""


def import_all_orm_models() -> None:
    """Import every ``lease_modules.*.orm`` module to register ORM models.

    Masterdata first: document tables reference contracts and customers.
    This function is idempotent -- repeated calls are harmless.
    """
    import lease_modules.masterdata.orm  # noqa: F401
    import lease_modules.invoice.orm  # noqa: F401
    import lease_modules.receipt.orm  # noqa: F401
    import lease_modules.termination.orm  # noqa: F401
