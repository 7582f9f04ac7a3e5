"""Business services for Agentur CRM.

Contains the domain logic on top of the repositories:
- permissions: role to capability mapping and checks
- session: SessionContext, SessionStorage and the login flow
- audit_trail: audit entries for every tracked mutation
- stores: per-entity record lists with audited writes
- pipeline: the appointment stage board
- reporting: sums, windows, tax reserve and performance figures
- dashboards: role dashboards
- factory: wiring of all of the above for one database session
"""

from agentur_crm.services.audit_trail import AuditEntryView, AuditTrail
from agentur_crm.services.factory import ServiceFactory
from agentur_crm.services.permissions import Capability
from agentur_crm.services.pipeline import MoveResult, PipelineBoard, PipelineColumn, parse_stage
from agentur_crm.services.session import (
    AuthService,
    CurrentUser,
    SessionContext,
    SessionStorage,
)
from agentur_crm.services.stores import (
    AppointmentStore,
    CustomerStore,
    ExpenseStore,
    HotLeadStore,
    LeadPromotion,
    RecordStore,
    RevenueStore,
    SettingsStore,
    TeamMemberStore,
    TodoStore,
    clear_financial_data,
)

__all__ = [
    # Permissions and session
    "Capability",
    "AuthService",
    "CurrentUser",
    "SessionContext",
    "SessionStorage",
    # Audit
    "AuditTrail",
    "AuditEntryView",
    # Stores
    "RecordStore",
    "CustomerStore",
    "AppointmentStore",
    "RevenueStore",
    "ExpenseStore",
    "TeamMemberStore",
    "TodoStore",
    "HotLeadStore",
    "LeadPromotion",
    "SettingsStore",
    "clear_financial_data",
    # Pipeline
    "PipelineBoard",
    "PipelineColumn",
    "MoveResult",
    "parse_stage",
    # Wiring
    "ServiceFactory",
]
