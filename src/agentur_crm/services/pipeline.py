"""Pipeline board: appointments grouped into stage columns.

There is no transition graph. Any stage may follow any other; a move is
a single overwrite of the appointment's ``result`` field.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Protocol
from uuid import UUID

from agentur_crm.core.exceptions import RecordNotFoundError, StoreError, ValidationError
from agentur_crm.core.log_setup import get_logger
from agentur_crm.domain import STAGE_LABELS, PipelineStage

if TYPE_CHECKING:
    from agentur_crm.db.models.core import AppointmentModel
    from agentur_crm.services.stores import AppointmentStore

log = get_logger(__name__)

MOVE_FAILED_MESSAGE = "Status konnte nicht aktualisiert werden."


class HasStage(Protocol):
    result: str


def parse_stage(value: PipelineStage | str) -> PipelineStage:
    """Coerce a raw stage value into a ``PipelineStage``.

    Raises:
        ValidationError: The value is not one of the six stages
    """
    if isinstance(value, PipelineStage):
        return value
    try:
        return PipelineStage(str(value).strip())
    except ValueError as e:
        raise ValidationError(
            f"Unbekannter Pipeline-Status: {value}",
            details={"stage": str(value)},
        ) from e


def group_by_stage(appointments: Iterable[HasStage]) -> dict[PipelineStage, list[Any]]:
    """Bucket appointments by stage.

    Every stage is present in board order, empty or not. Input order is
    kept inside each bucket.
    """
    grouped: dict[PipelineStage, list[Any]] = {stage: [] for stage in PipelineStage}
    for appointment in appointments:
        grouped[parse_stage(appointment.result)].append(appointment)
    return grouped


@dataclass
class PipelineColumn:
    """One board column."""

    stage: PipelineStage
    label: str
    appointments: list[Any] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.appointments)


@dataclass(frozen=True)
class MoveResult:
    """Outcome of a card move."""

    appointment_id: UUID
    source: PipelineStage
    destination: PipelineStage
    moved: bool
    appointment: Any = None


class PipelineBoard:
    """Kanban view over an ``AppointmentStore``.

    The board never patches cards itself. It reads the store's list,
    which changes only after a confirmed write.

    Usage:
        board = PipelineBoard(store)
        await board.load()
        result = await board.move(appointment_id, "termin_abgeschlossen")
    """

    def __init__(self, store: AppointmentStore) -> None:
        self._store = store

    @property
    def store(self) -> AppointmentStore:
        return self._store

    async def load(self) -> list[PipelineColumn]:
        await self._store.fetch_all()
        return self.columns()

    def columns(self) -> list[PipelineColumn]:
        """Current columns in board order."""
        return [
            PipelineColumn(stage=stage, label=STAGE_LABELS[stage], appointments=cards)
            for stage, cards in group_by_stage(self._store.records).items()
        ]

    def column_of(self, appointment_id: UUID | str) -> PipelineStage | None:
        """Stage column currently holding a card (None when not on the board)."""
        card = self._store.get(appointment_id)
        return parse_stage(card.result) if card is not None else None

    async def move(
        self,
        appointment_id: UUID | str,
        destination: PipelineStage | str,
    ) -> MoveResult:
        """Move a card to ``destination``.

        A move onto the card's own column is a no-op and issues no write.
        Otherwise exactly one update of ``result`` is sent.

        Raises:
            ValidationError: Unknown destination stage
            RecordNotFoundError: Card is not on this board
            PermissionDeniedError: Caller may not move this card
            StoreError: The write failed; the card stays in its column
        """
        target = parse_stage(destination)
        card: AppointmentModel | None = self._store.get(appointment_id)
        if card is None:
            raise RecordNotFoundError(
                "Termin wurde nicht gefunden.",
                details={"appointment_id": str(appointment_id)},
            )

        source = parse_stage(card.result)
        if source is target:
            return MoveResult(card.id, source, target, moved=False, appointment=card)

        try:
            updated = await self._store.update(card.id, {"result": target.value})
        except StoreError as e:
            log.warning(
                "Pipeline move failed",
                appointment_id=str(card.id),
                source=source.value,
                destination=target.value,
            )
            raise StoreError(MOVE_FAILED_MESSAGE, cause=e.cause or e) from e

        log.info(
            "Pipeline card moved",
            appointment_id=str(card.id),
            source=source.value,
            destination=target.value,
        )
        return MoveResult(card.id, source, target, moved=True, appointment=updated)
