"""Repository Layer for Agentur CRM.

Exports all repositories for data access:

Base:
- BaseRepository: Generic CRUD operations

Specialized:
- CustomerRepository, HotLeadRepository: CRM records
- AppointmentRepository, AppointmentHistoryRepository: pipeline data
- TeamMemberRepository: accounts, login and per-member bookkeeping
- RevenueRepository, ExpenseRepository: bookkeeping
- TodoRepository, SettingRepository: office data
- AuditLogRepository: audit trail
"""

from agentur_crm.db.repositories.base import BaseRepository, OrderBy, as_uuid
from agentur_crm.db.repositories.appointments import (
    AppointmentHistoryRepository,
    AppointmentRepository,
)
from agentur_crm.db.repositories.compliance import AuditLogRepository
from agentur_crm.db.repositories.customers import CustomerRepository, HotLeadRepository
from agentur_crm.db.repositories.finance import ExpenseRepository, RevenueRepository
from agentur_crm.db.repositories.office import SettingRepository, TodoRepository
from agentur_crm.db.repositories.team import TeamMemberRepository

__all__ = [
    "BaseRepository",
    "OrderBy",
    "as_uuid",
    "CustomerRepository",
    "HotLeadRepository",
    "AppointmentRepository",
    "AppointmentHistoryRepository",
    "TeamMemberRepository",
    "RevenueRepository",
    "ExpenseRepository",
    "TodoRepository",
    "SettingRepository",
    "AuditLogRepository",
]
