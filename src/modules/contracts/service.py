"""
Human Contract Service
======================

Purpose
-------
The human recruitment pipeline: defeat a human enough times, draft a
contract (optionally paying a parchment), then accept it to add the
human to the army.

Domain
------
- Defeats required by rarity: Common 2, Rare 3, Epic 5, Legendary 7,
  Unique 9, Mythical 12, Fabled 15
- At most one open (non-consumed) draft per user and unit
- With parchment gating on: Rare needs a Forest Contract Parchment,
  Epic and above a Frontier Contract Parchment, Common nothing
- An accepted human joins the party while it has room

LES 2025 Compliance
-------------------
✓ Transaction-safe - advisory lock, parchment consumed atomically with the draft
✓ Cached reads - contract status cached 20 s
✓ Event-driven - draft/accept events after commit
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Protocol

from sqlalchemy import and_, exists, select
from sqlalchemy.exc import IntegrityError

from src.core.cache import contract_status_cache, invalidate_user_caches
from src.core.config.config import Config
from src.core.database.service import DatabaseService
from src.core.event.types import SagaEvents
from src.core.logging.logger import get_logger
from src.database.models import DraftedHumanContract, HumanEncounter, Inventory, PlayerUnit, Unit
from src.database.models.enums import UnitKind, UnitRarity
from src.domain.models.items import ItemId, properties
from src.domain.models.rarity import DEFEATS_REQUIRED, RarityLike, rarity_at_least, to_rarity
from src.modules.contracts.repository import DraftedContractRepository, HumanEncounterRepository
from src.modules.economy.repository import InventoryRepository
from src.modules.shared import constants
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ConflictError, NotFoundError, ValidationError
from src.modules.units.repository import PlayerUnitRepository

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


class DefeatedUnit(Protocol):
    """Anything naming a unit master and its kind (Unit rows, enemy templates)."""

    unit_id: int
    kind: UnitKind


def defeats_required_for(rarity: RarityLike) -> int:
    return DEFEATS_REQUIRED[to_rarity(rarity)]


def parchment_for(rarity: RarityLike) -> Optional[ItemId]:
    """Parchment needed to draft a human of this rarity, if any."""
    value = to_rarity(rarity)
    if value == UnitRarity.RARE:
        return ItemId.FOREST_CONTRACT_PARCHMENT
    if rarity_at_least(value, UnitRarity.EPIC):
        return ItemId.FRONTIER_CONTRACT_PARCHMENT
    return None


@dataclass(frozen=True)
class ContractStatus:
    unit_id: int
    name: str
    rarity: UnitRarity
    defeats: int
    required: int
    drafted_active: bool
    recruited: bool
    last_defeat_at: Optional[datetime]

    @property
    def can_draft(self) -> bool:
        return self.defeats >= self.required and not self.drafted_active

    @property
    def progress_label(self) -> str:
        return f"{min(self.defeats, self.required)}/{self.required}"


@dataclass(frozen=True)
class DraftedContract:
    contract_id: int
    unit_id: int
    drafted_at: datetime


class HumanContractService(BaseService):
    """
    Human encounters and contracts.

    Public Methods
    --------------
    - record_human_defeat() -> +1 defeat for humans
    - draft_contract() / accept_drafted_contract()
    - list_contract_status() -> cached per-human progress
    - list_drafted_contracts() -> open drafts, newest first
    """

    def __init__(self, config_manager: ConfigManager, event_bus: EventBus, logger: Logger) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._encounters = HumanEncounterRepository(HumanEncounter, get_logger(f"{__name__}.HumanEncounterRepository"))
        self._drafts = DraftedContractRepository(
            DraftedHumanContract, get_logger(f"{__name__}.DraftedContractRepository")
        )
        self._inventory = InventoryRepository(Inventory, get_logger(f"{__name__}.InventoryRepository"))
        self._player_units = PlayerUnitRepository(PlayerUnit, get_logger(f"{__name__}.PlayerUnitRepository"))

    @staticmethod
    def defeats_required_for(rarity: RarityLike) -> int:
        return defeats_required_for(rarity)

    # ========================================================================
    # ENCOUNTERS
    # ========================================================================

    async def record_human_defeat(self, user_id: int, unit: DefeatedUnit) -> Optional[int]:
        """Count one defeat of a human; pets are ignored (returns None)."""
        if unit.kind != UnitKind.HUMAN:
            return None
        async with self.persistence_guard("record_human_defeat", user_id=user_id, unit_id=unit.unit_id):
            async with DatabaseService.get_transaction() as session:
                defeats = await self._encounters.record_defeat(session, user_id, unit.unit_id)
        contract_status_cache.invalidate(user_id)
        self.log.debug(
            "Human defeat recorded",
            extra={"user_id": user_id, "unit_id": unit.unit_id, "defeats": defeats},
        )
        return defeats

    # ========================================================================
    # CONTRACTS
    # ========================================================================

    async def draft_contract(self, user_id: int, unit_id: int) -> str:
        """
        Draft a contract for a sufficiently defeated human; returns its name.

        Raises:
            NotFoundError: Unknown unit
            ValidationError: Not a human, not enough defeats
            ConflictError: Open draft already exists
            InsufficientResourcesError: Required parchment missing
        """
        async with self.persistence_guard("draft_contract", user_id=user_id, unit_id=unit_id):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)

                unit = await session.get(Unit, unit_id)
                if unit is None:
                    raise NotFoundError("Unit not found", resource_type="Unit", identifier=unit_id)
                if unit.kind != UnitKind.HUMAN:
                    raise ValidationError("That unit is not a human.", field="unit_id")

                defeats = await self._encounters.get_defeats(session, user_id, unit_id)
                required = defeats_required_for(unit.rarity)
                if defeats < required:
                    raise ValidationError(f"Need {required} defeats, you have {defeats}.", field="defeats")

                if await self._drafts.get_open(session, user_id, unit_id) is not None:
                    raise ConflictError("Contract already drafted.", details={"unit_id": unit_id})

                parchment = parchment_for(unit.rarity) if Config.ENABLE_PARCHMENT_GATING else None
                if parchment is not None:
                    await self._inventory.consume(
                        session,
                        user_id,
                        parchment,
                        1,
                        message=f"You need a {properties(parchment).display_name} to draft this contract.",
                    )

                session.add(DraftedHumanContract(user_id=user_id, unit_id=unit_id, consumed=False))
                try:
                    await session.flush()
                except IntegrityError as exc:
                    raise ConflictError("Contract already drafted.", details={"unit_id": unit_id}) from exc
                unit_name = unit.name

        contract_status_cache.invalidate(user_id)
        self.log_operation(
            "draft_contract",
            user_id=user_id,
            unit_id=unit_id,
            parchment=int(parchment) if parchment is not None else None,
        )
        await self.emit_event(SagaEvents.CONTRACT_DRAFTED, {"user_id": user_id, "unit_id": unit_id})
        return unit_name

    async def accept_drafted_contract(self, user_id: int, unit_id: int) -> str:
        """
        Turn an open draft into an owned unit; returns its name.

        Raises:
            NotFoundError: No open draft, unknown unit
            ValidationError: Not a human, army full
        """
        async with self.persistence_guard("accept_drafted_contract", user_id=user_id, unit_id=unit_id):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)

                draft = await self._drafts.get_open(session, user_id, unit_id, for_update=True)
                if draft is None:
                    raise NotFoundError("No drafted contract.", resource_type="DraftedHumanContract", identifier=unit_id)

                unit = await session.get(Unit, unit_id)
                if unit is None:
                    raise NotFoundError("Unit not found", resource_type="Unit", identifier=unit_id)
                if unit.kind != UnitKind.HUMAN:
                    raise ValidationError("Not a human.", field="unit_id")

                army_size = await self._player_units.count_army(session, user_id)
                if army_size >= constants.MAX_ARMY_SIZE:
                    raise ValidationError(
                        f"Your army is full ({army_size}/{constants.MAX_ARMY_SIZE})", field="army"
                    )

                in_party = await self._player_units.count_party(session, user_id) < constants.MAX_PARTY_SIZE
                await self._player_units.create_from_master(session, user_id, unit, in_party=in_party)
                draft.consumed = True
                unit_name = unit.name

        invalidate_user_caches(user_id)
        self.log_operation("accept_drafted_contract", user_id=user_id, unit_id=unit_id, in_party=in_party)
        await self.emit_event(SagaEvents.CONTRACT_ACCEPTED, {"user_id": user_id, "unit_id": unit_id})
        await self.emit_event(
            SagaEvents.UNIT_RECRUITED,
            {"user_id": user_id, "unit_id": unit_id, "source": "contract"},
        )
        return unit_name

    # ========================================================================
    # LISTINGS
    # ========================================================================

    async def list_contract_status(self, user_id: int) -> List[ContractStatus]:
        """Progress for every human master, cached 20 s."""
        cached = contract_status_cache.get(user_id)
        if cached is not None:
            return cached

        drafted = exists().where(
            and_(
                DraftedHumanContract.user_id == user_id,
                DraftedHumanContract.unit_id == Unit.unit_id,
                DraftedHumanContract.consumed.is_(False),
            )
        )
        recruited = exists().where(and_(PlayerUnit.user_id == user_id, PlayerUnit.unit_id == Unit.unit_id))

        async with self.persistence_guard("list_contract_status", user_id=user_id):
            async with DatabaseService.get_session() as session:
                result = await session.execute(
                    select(
                        Unit.unit_id,
                        Unit.name,
                        Unit.rarity,
                        HumanEncounter.defeats,
                        HumanEncounter.last_defeated_at,
                        drafted.label("drafted_active"),
                        recruited.label("recruited"),
                    )
                    .outerjoin(
                        HumanEncounter,
                        and_(HumanEncounter.user_id == user_id, HumanEncounter.unit_id == Unit.unit_id),
                    )
                    .where(Unit.kind == UnitKind.HUMAN)
                    .order_by(Unit.unit_id)
                )
                rows = result.all()

        statuses = [
            ContractStatus(
                unit_id=r.unit_id,
                name=r.name,
                rarity=r.rarity,
                defeats=int(r.defeats or 0),
                required=defeats_required_for(r.rarity),
                drafted_active=bool(r.drafted_active),
                recruited=bool(r.recruited),
                last_defeat_at=r.last_defeated_at,
            )
            for r in rows
        ]
        contract_status_cache.insert(user_id, statuses)
        return statuses

    async def list_drafted_contracts(self, user_id: int) -> List[DraftedContract]:
        async with self.persistence_guard("list_drafted_contracts", user_id=user_id):
            async with DatabaseService.get_session() as session:
                drafts = await self._drafts.list_open(session, user_id)
        return [DraftedContract(contract_id=d.contract_id, unit_id=d.unit_id, drafted_at=d.drafted_at) for d in drafts]
