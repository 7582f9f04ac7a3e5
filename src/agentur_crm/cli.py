#!/usr/bin/env python3
"""Command line tools for Agentur CRM.

Usage:
    agentur-crm init-db                        # Create tables
    agentur-crm create-admin --email a@b.de    # Bootstrap the first admin
    agentur-crm login --email a@b.de           # Sign in (kept in data/session.json)
    agentur-crm whoami                         # Show the signed-in user
    agentur-crm pipeline                       # Print the kanban board
    agentur-crm move <id> <stage>              # Move a card
    agentur-crm finance                        # Financial overview
    agentur-crm audit --limit 20               # Recent audit entries
    agentur-crm clear-audit                    # Delete the audit log
    agentur-crm clear-financial-data           # Delete all revenues and expenses
    agentur-crm logout                         # Sign out
    agentur-crm serve                          # Run the HTTP API
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import sys
from datetime import date
from typing import Awaitable, Callable

from agentur_crm.config import get_settings
from agentur_crm.core.exceptions import CrmError
from agentur_crm.core.log_setup import get_logger, setup_logging
from agentur_crm.core.security import hash_password
from agentur_crm.db import close_db, get_db_context, init_db
from agentur_crm.domain import Role
from agentur_crm.services.factory import ServiceFactory
from agentur_crm.services.reporting import financial_summary
from agentur_crm.services.session import SessionContext, SessionStorage
from agentur_crm.services.stores import clear_financial_data

log = get_logger(__name__)


def _storage() -> SessionStorage:
    settings = get_settings()
    return SessionStorage(settings.session.storage_path, settings.session.storage_key)


def _run(action: Callable[[ServiceFactory], Awaitable[int]]) -> int:
    """Run ``action`` with a factory bound to the stored session."""

    async def runner() -> int:
        await init_db()
        try:
            async with get_db_context() as db:
                ctx = SessionContext(_storage().load())
                return await action(ServiceFactory(db, ctx))
        finally:
            await close_db()

    try:
        return asyncio.run(runner())
    except CrmError as e:
        print(f"[FEHLER] {e.message}", file=sys.stderr)
        return 1


# =============================================================================
# Setup
# =============================================================================


def init_database(args: argparse.Namespace) -> int:
    """Create all tables."""

    async def action(services: ServiceFactory) -> int:
        print(f"Datenbank bereit: {services.settings.database.url}")
        return 0

    return _run(action)


def create_admin(args: argparse.Namespace) -> int:
    """Create the first admin account; refused once an admin exists."""
    password = args.password or getpass.getpass("Passwort: ")

    async def action(services: ServiceFactory) -> int:
        repo = services.team_repo
        if await repo.count_admins() > 0:
            print("Es gibt bereits einen Administrator. Neue Accounts legt ein Admin an.")
            return 1
        member = await repo.create_from({
            "name": args.name,
            "email": args.email.strip().lower(),
            "role": "Geschäftsführung",
            "user_role": Role.ADMIN.value,
            "password_hash": hash_password(password),
            "is_active": True,
        })
        await repo.commit()
        log.info("Admin account created", member_id=str(member.id))
        print(f"Administrator angelegt: {member.email}")
        return 0

    return _run(action)


# =============================================================================
# Session
# =============================================================================


def login(args: argparse.Namespace) -> int:
    """Sign in and remember the user."""
    password = args.password or getpass.getpass("Passwort: ")

    async def action(services: ServiceFactory) -> int:
        user = await services.auth(_storage()).login(services.ctx, args.email, password)
        print(f"Angemeldet als {user.name} ({user.user_role.value})")
        return 0

    return _run(action)


def logout(args: argparse.Namespace) -> int:
    """Sign out and forget the stored user."""

    async def action(services: ServiceFactory) -> int:
        await services.auth(_storage()).logout(services.ctx)
        print("Abgemeldet.")
        return 0

    return _run(action)


def whoami(args: argparse.Namespace) -> int:
    user = _storage().load()
    if user is None:
        print("Nicht angemeldet.")
        return 1
    print(f"{user.name} <{user.email}> ({user.user_role.value})")
    return 0


# =============================================================================
# Pipeline
# =============================================================================


def show_pipeline(args: argparse.Namespace) -> int:
    """Print every column with its cards."""

    async def action(services: ServiceFactory) -> int:
        board = services.board(customer_id=args.customer)
        for column in await board.load():
            print(f"\n== {column.label} ({column.count}) ==")
            for card in column.appointments:
                print(f"  {card.id}  {card.date}  {card.type}")
        return 0

    return _run(action)


def move_card(args: argparse.Namespace) -> int:
    """Move one card to another column."""

    async def action(services: ServiceFactory) -> int:
        board = services.board()
        await board.load()
        result = await board.move(args.appointment_id, args.stage)
        if not result.moved:
            print("Termin ist bereits in dieser Spalte.")
        else:
            print(f"Verschoben: {result.source.label} -> {result.destination.label}")
        return 0

    return _run(action)


# =============================================================================
# Finance
# =============================================================================


def show_finance(args: argparse.Namespace) -> int:
    """Print the financial overview."""

    async def action(services: ServiceFactory) -> int:
        revenues = await services.revenues().fetch_all()
        expenses = await services.expenses().fetch_all()
        tax_rate = await services.settings_store().tax_rate()
        summary = financial_summary(revenues, expenses, tax_rate, date.today())
        figures = summary.to_display()

        if args.json:
            print(json.dumps(figures, indent=2, ensure_ascii=False))
            return 0

        currency = services.settings.finance.currency
        print(f"Einnahmen:       {figures['total_revenue']} {currency}")
        print(f"Ausgaben:        {figures['total_expenses']} {currency}")
        print(f"Gewinn:          {figures['net_profit']} {currency}")
        print(f"Steuerrücklage:  {figures['tax_reserve']} {currency} ({figures['tax_rate']}%)")
        if figures["notice"]:
            print(figures["notice"])
        return 0

    return _run(action)


def clear_finance(args: argparse.Namespace) -> int:
    """Delete every revenue and expense."""
    if not args.yes and input("Alle Finanzdaten löschen? [j/N] ").strip().lower() != "j":
        print("Abgebrochen.")
        return 1

    async def action(services: ServiceFactory) -> int:
        counts = await clear_financial_data(
            services.ctx,
            services.revenue_repo,
            services.expense_repo,
            services.audit,
        )
        print(f"Gelöscht: {counts['revenues']} Einnahmen, {counts['expenses']} Ausgaben")
        return 0

    return _run(action)


# =============================================================================
# Audit Log
# =============================================================================


def show_audit(args: argparse.Namespace) -> int:
    """Print recent audit entries."""

    async def action(services: ServiceFactory) -> int:
        entries = await services.audit.recent(services.ctx, args.limit)
        for entry in entries:
            stamp = entry.timestamp.strftime("%d.%m.%Y %H:%M")
            print(f"{stamp}  {entry.action:<10} {entry.table_name:<22} {entry.actor_label}")
        if not entries:
            print("Keine Einträge.")
        return 0

    return _run(action)


def clear_audit(args: argparse.Namespace) -> int:
    """Delete the audit log, keeping a record of the clearing."""
    if not args.yes and input("Audit-Log löschen? [j/N] ").strip().lower() != "j":
        print("Abgebrochen.")
        return 1

    async def action(services: ServiceFactory) -> int:
        deleted = await services.audit.clear_all(services.ctx)
        print(f"{deleted} Einträge gelöscht.")
        return 0

    return _run(action)


# =============================================================================
# Server
# =============================================================================


def serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    from agentur_crm.main import run

    run()
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Agentur CRM CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("init-db", help="Create database tables")

    admin_parser = subparsers.add_parser("create-admin", help="Create the first admin account")
    admin_parser.add_argument("--email", required=True)
    admin_parser.add_argument("--name", default="Administrator")
    admin_parser.add_argument("--password", help="Prompted when omitted")

    login_parser = subparsers.add_parser("login", help="Sign in")
    login_parser.add_argument("--email", required=True)
    login_parser.add_argument("--password", help="Prompted when omitted")

    subparsers.add_parser("logout", help="Sign out")
    subparsers.add_parser("whoami", help="Show the signed-in user")

    pipeline_parser = subparsers.add_parser("pipeline", help="Show the pipeline board")
    pipeline_parser.add_argument("--customer", default=None, help="Only this customer's cards")

    move_parser = subparsers.add_parser("move", help="Move an appointment to another stage")
    move_parser.add_argument("appointment_id")
    move_parser.add_argument("stage", help="e.g. termin_abgeschlossen")

    finance_parser = subparsers.add_parser("finance", help="Show the financial overview")
    finance_parser.add_argument("--json", action="store_true", help="Output as JSON")

    clear_fin_parser = subparsers.add_parser("clear-financial-data", help="Delete all revenues and expenses")
    clear_fin_parser.add_argument("--yes", action="store_true", help="Skip confirmation")

    audit_parser = subparsers.add_parser("audit", help="Show recent audit entries")
    audit_parser.add_argument("--limit", type=int, default=None)

    clear_audit_parser = subparsers.add_parser("clear-audit", help="Delete the audit log")
    clear_audit_parser.add_argument("--yes", action="store_true", help="Skip confirmation")

    subparsers.add_parser("serve", help="Run the HTTP API")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    settings = get_settings()
    setup_logging(level=settings.log_level, json_output=settings.log_json)

    commands = {
        "init-db": init_database,
        "create-admin": create_admin,
        "login": login,
        "logout": logout,
        "whoami": whoami,
        "pipeline": show_pipeline,
        "move": move_card,
        "finance": show_finance,
        "clear-financial-data": clear_finance,
        "audit": show_audit,
        "clear-audit": clear_audit,
        "serve": serve,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
