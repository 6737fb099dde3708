"""
lease_services -- Package init and public API.

Responsibility:
    Stateful infrastructure behind the lease core's ports: the SQLAlchemy
    persistence gateway, the reference data gateway over the masterdata
    tables, and the template-driven notification gateway.  This is the
    layer that holds database sessions on behalf of the module services.

Architecture position:
    Services -- infrastructure over ``lease_kernel``.

    Dependency direction:
        lease_modules/  -> lease_services/ (allowed)
        lease_services/ -> lease_kernel/   (allowed)
        lease_engines/  -> lease_services/ (FORBIDDEN)
        lease_kernel/   -> lease_services/ (FORBIDDEN)

Failure modes:
    - ImportError at startup if a gateway's dependency graph is broken.
"""

from lease_services.notifications import TemplateNotificationGateway, render_template
from lease_services.persistence import SqlAlchemyGateway
from lease_services.reference_data import SqlAlchemyReferenceDataGateway

__all__ = [
    "SqlAlchemyGateway",
    "SqlAlchemyReferenceDataGateway",
    "TemplateNotificationGateway",
    "render_template",
]
