"""ORM models for Agentur CRM.

Importing this package registers every table with ``Base.metadata``.
"""

from agentur_crm.db.models.compliance import AuditLogModel
from agentur_crm.db.models.core import AppointmentHistoryModel, AppointmentModel
from agentur_crm.db.models.crm import CustomerModel, HotLeadModel
from agentur_crm.db.models.finance import ExpenseModel, RevenueModel
from agentur_crm.db.models.office import SettingModel, TodoModel
from agentur_crm.db.models.team import (
    TeamMemberEarningModel,
    TeamMemberExpenseModel,
    TeamMemberModel,
)

__all__ = [
    # CRM
    "CustomerModel",
    "HotLeadModel",
    # Appointments
    "AppointmentModel",
    "AppointmentHistoryModel",
    # Team
    "TeamMemberModel",
    "TeamMemberEarningModel",
    "TeamMemberExpenseModel",
    # Bookkeeping
    "RevenueModel",
    "ExpenseModel",
    # Office
    "TodoModel",
    "SettingModel",
    # Audit
    "AuditLogModel",
]
