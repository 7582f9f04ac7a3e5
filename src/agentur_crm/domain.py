"""Closed vocabularies shared by models, services and the API.

Every value column with a fixed set of allowed strings is backed by
one of these enums; nothing writes a raw literal outside them.
"""

from __future__ import annotations

from enum import Enum


class PipelineStage(str, Enum):
    """Appointment lifecycle stage; drives kanban column placement.

    Declaration order is the column order on the board.
    """

    TERMIN_AUSSTEHEND = "termin_ausstehend"
    TERMIN_ERSCHIENEN = "termin_erschienen"
    TERMIN_ABGESCHLOSSEN = "termin_abgeschlossen"
    FOLLOW_UP = "follow_up"
    TERMIN_ABGESAGT = "termin_abgesagt"
    TERMIN_VERSCHOBEN = "termin_verschoben"

    @property
    def label(self) -> str:
        return STAGE_LABELS[self]


STAGE_LABELS: dict[PipelineStage, str] = {
    PipelineStage.TERMIN_AUSSTEHEND: "Ausstehend",
    PipelineStage.TERMIN_ERSCHIENEN: "Erschienen",
    PipelineStage.TERMIN_ABGESCHLOSSEN: "Abgeschlossen",
    PipelineStage.FOLLOW_UP: "Follow Up",
    PipelineStage.TERMIN_ABGESAGT: "Abgesagt",
    PipelineStage.TERMIN_VERSCHOBEN: "Verschoben",
}

DEFAULT_STAGE = PipelineStage.TERMIN_AUSSTEHEND

# Stages counted as a successful appointment for performance statistics
SUCCESS_STAGES = frozenset({
    PipelineStage.TERMIN_ABGESCHLOSSEN,
    PipelineStage.TERMIN_ERSCHIENEN,
})


class Role(str, Enum):
    """User role of a team member account."""

    ADMIN = "admin"
    MEMBER = "member"
    KUNDE = "kunde"


class Priority(str, Enum):
    """Customer and lead priority."""

    HOCH = "Hoch"
    MITTEL = "Mittel"
    NIEDRIG = "Niedrig"


class PaymentStatus(str, Enum):
    """Customer payment status."""

    BEZAHLT = "Bezahlt"
    AUSSTEHEND = "Ausstehend"
    UEBERFAELLIG = "Überfällig"
    RATEN = "Raten"


class ActionStep(str, Enum):
    """Where a customer currently stands in the account lifecycle."""

    IN_VORBEREITUNG = "in_vorbereitung"
    TESTPHASE_AKTIV = "testphase_aktiv"
    UPSELL_BEVORSTEHEND = "upsell_bevorstehend"
    BESTANDSKUNDE = "bestandskunde"
    PAUSIERT = "pausiert"
    ABGESCHLOSSEN = "abgeschlossen"


# Action steps that count a customer as active on the admin dashboard
ACTIVE_ACTION_STEPS = frozenset({
    ActionStep.TESTPHASE_AKTIV,
    ActionStep.UPSELL_BEVORSTEHEND,
    ActionStep.BESTANDSKUNDE,
})


class TodoPriority(str, Enum):
    """To-do priority."""

    HOCH = "hoch"
    MITTEL = "mittel"
    NIEDRIG = "niedrig"


class AuditAction(str, Enum):
    """Verb recorded on an audit entry."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    CLEAR_LOGS = "CLEAR_LOGS"


class DeletionPolicy(str, Enum):
    """How deleting a row treats rows that reference it.

    DETACHED: only the row itself is removed; referencing rows stay and
        keep pointing at the removed id.
    CASCADE: referencing rows are removed first, in a fixed order.
    """

    DETACHED = "detached"
    CASCADE = "cascade"
