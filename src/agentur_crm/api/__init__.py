"""API routers."""

from agentur_crm.api import appointments, auth, customers, dashboards, finance, health, office, team

__all__ = [
    "appointments",
    "auth",
    "customers",
    "dashboards",
    "finance",
    "health",
    "office",
    "team",
]
