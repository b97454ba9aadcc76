"""
View Models
===========

Purpose
-------
Frozen, render-ready snapshots handed to the presentation layer. Nothing
here talks to the database; builders take service results and copy out
exactly what a screen needs.

Domain
------
- Saga overview: AP/TP gauges, story progress, map lock state
- Party and army roster
- Tavern recruits and reroll meta
- Battle state with the action ids valid for the current phase
- Contracts, tasks and the quest board

LES 2025 Compliance
-------------------
✓ Immutable - frozen dataclasses with tuple collections
✓ Framework-free - plain strings and ints, no chat-platform types
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from src.database.models.enums import UnitKind, UnitRarity
from src.domain.models.battle import BattlePhase, BattleUnit
from src.domain.models.items import ItemId
from src.modules.battle.registry import BattleGame
from src.modules.contracts.service import ContractStatus, DraftedContract
from src.modules.progression.quest_service import QuestEntry
from src.modules.progression.task_service import PlayerTaskView
from src.modules.saga.service import SagaSnapshot
from src.modules.shared import constants
from src.modules.tavern.service import TavernState
from src.modules.units.repository import OwnedUnit

# Log lines shown under the battle board.
BATTLE_LOG_TAIL = 5


@dataclass(frozen=True)
class Notice:
    """A one-line message for the player; errors render differently."""

    text: str
    is_error: bool = False


# ============================================================================
# SAGA & PARTY
# ============================================================================


@dataclass(frozen=True)
class SagaOverviewView:
    user_id: int
    current_ap: int
    max_ap: int
    current_tp: int
    max_tp: int
    story_progress: int
    party_size: int
    army_size: int

    @property
    def map_locked(self) -> bool:
        return self.party_size == 0

    @property
    def ap_label(self) -> str:
        return f"{self.current_ap}/{self.max_ap}"

    @property
    def tp_label(self) -> str:
        return f"{self.current_tp}/{self.max_tp}"

    @classmethod
    def build(cls, snapshot: SagaSnapshot, units: Sequence[OwnedUnit]) -> "SagaOverviewView":
        return cls(
            user_id=snapshot.user_id,
            current_ap=snapshot.current_ap,
            max_ap=snapshot.max_ap,
            current_tp=snapshot.current_tp,
            max_tp=snapshot.max_tp,
            story_progress=snapshot.story_progress,
            party_size=sum(1 for u in units if u.is_in_party),
            army_size=len(units),
        )


@dataclass(frozen=True)
class UnitRow:
    player_unit_id: int
    name: str
    kind: UnitKind
    rarity: UnitRarity
    level: int
    xp: int
    attack: int
    defense: int
    health: int
    is_in_party: bool
    is_training: bool

    @classmethod
    def from_owned(cls, unit: OwnedUnit) -> "UnitRow":
        return cls(
            player_unit_id=unit.player_unit_id,
            name=unit.display_name,
            kind=unit.kind,
            rarity=unit.rarity,
            level=unit.current_level,
            xp=unit.current_xp,
            attack=unit.current_attack,
            defense=unit.current_defense,
            health=unit.current_health,
            is_in_party=unit.is_in_party,
            is_training=unit.is_training,
        )


@dataclass(frozen=True)
class PartyView:
    party: Tuple[UnitRow, ...]
    reserves: Tuple[UnitRow, ...]
    max_party: int = constants.MAX_PARTY_SIZE
    max_army: int = constants.MAX_ARMY_SIZE

    @property
    def army_size(self) -> int:
        return len(self.party) + len(self.reserves)

    @classmethod
    def build(cls, units: Sequence[OwnedUnit]) -> "PartyView":
        rows = [UnitRow.from_owned(u) for u in units]
        return cls(
            party=tuple(r for r in rows if r.is_in_party),
            reserves=tuple(r for r in rows if not r.is_in_party),
        )


# ============================================================================
# TAVERN
# ============================================================================


@dataclass(frozen=True)
class RecruitRow:
    unit_id: int
    name: str
    rarity: UnitRarity
    cost: int
    affordable: bool

    @property
    def hire_id(self) -> str:
        return f"saga_hire_{self.unit_id}"


@dataclass(frozen=True)
class TavernView:
    recruits: Tuple[RecruitRow, ...]
    balance: int
    fame: int
    fame_tier: int
    fame_to_next_tier: Optional[int]
    rerolls_left: int
    reroll_cost: int
    can_reroll: bool
    resets_in_seconds: int

    @classmethod
    def build(cls, state: TavernState) -> "TavernView":
        meta = state.meta
        return cls(
            recruits=tuple(
                RecruitRow(
                    unit_id=r.unit_id,
                    name=r.name,
                    rarity=r.rarity,
                    cost=r.cost,
                    affordable=r.cost <= meta.balance,
                )
                for r in state.recruits
            ),
            balance=meta.balance,
            fame=meta.fame,
            fame_tier=meta.fame_tier,
            fame_to_next_tier=meta.fame_to_next_tier,
            rerolls_left=meta.rerolls_left,
            reroll_cost=meta.reroll_cost,
            can_reroll=meta.can_reroll,
            resets_in_seconds=meta.resets_in_seconds,
        )


# ============================================================================
# BATTLE
# ============================================================================


@dataclass(frozen=True)
class CombatantRow:
    name: str
    current_hp: int
    max_hp: int
    attack: int
    defense: int
    is_human: bool

    @property
    def hp_label(self) -> str:
        return f"{self.current_hp}/{self.max_hp}"

    @classmethod
    def from_unit(cls, unit: BattleUnit) -> "CombatantRow":
        return cls(
            name=unit.name,
            current_hp=unit.current_hp,
            max_hp=unit.max_hp,
            attack=unit.attack,
            defense=unit.defense,
            is_human=unit.is_human,
        )


def battle_actions(game: BattleGame) -> Tuple[str, ...]:
    """Component ids valid for the battle's current phase."""
    if game.is_finished:
        return ()
    phase = game.session.phase
    if phase == BattlePhase.VICTORY:
        return ("battle_close",) if game.claimed else ("battle_claim_rewards",)
    if phase == BattlePhase.DEFEAT:
        return ("battle_close",)
    if phase == BattlePhase.PLAYER_SELECTING_ITEM:
        return (
            f"battle_item_use_{int(ItemId.HEALTH_POTION)}",
            f"battle_item_use_{int(ItemId.GREATER_HEALTH_POTION)}",
            "battle_item_back",
        )
    actions = ["battle_attack", "battle_item"]
    if game.can_afford_recruit:
        actions.append("battle_tame")
    if not game.is_quest_battle and game.session.first_living_human_enemy() is not None:
        actions.append("battle_contract")
    actions.append("battle_flee")
    return tuple(actions)


@dataclass(frozen=True)
class BattleView:
    game_id: str
    node_name: str
    phase: BattlePhase
    players: Tuple[CombatantRow, ...]
    enemies: Tuple[CombatantRow, ...]
    log: Tuple[str, ...]
    actions: Tuple[str, ...]
    is_quest_battle: bool
    claimed: bool
    result_lines: Tuple[str, ...] = ()
    ended_message: Optional[str] = None

    @classmethod
    def build(cls, game: BattleGame) -> "BattleView":
        session = game.session
        return cls(
            game_id=game.game_id,
            node_name=game.node_name,
            phase=session.phase,
            players=tuple(CombatantRow.from_unit(u) for u in session.player_party),
            enemies=tuple(CombatantRow.from_unit(u) for u in session.enemy_party),
            log=tuple(session.log[-BATTLE_LOG_TAIL:]),
            actions=battle_actions(game),
            is_quest_battle=game.is_quest_battle,
            claimed=game.claimed,
            result_lines=tuple(game.victory_lines or ()),
            ended_message=game.ended_message,
        )


# ============================================================================
# CONTRACTS, TASKS, QUESTS
# ============================================================================


@dataclass(frozen=True)
class ContractRow:
    unit_id: int
    name: str
    rarity: UnitRarity
    progress: str
    can_draft: bool
    drafted: bool
    recruited: bool

    @property
    def action_id(self) -> Optional[str]:
        if self.drafted:
            return f"contract_accept_{self.unit_id}"
        if self.can_draft:
            return f"contract_draft_{self.unit_id}"
        return None


@dataclass(frozen=True)
class ContractsView:
    rows: Tuple[ContractRow, ...]

    @property
    def drafted_count(self) -> int:
        return sum(1 for r in self.rows if r.drafted)

    @classmethod
    def build(cls, statuses: Sequence[ContractStatus], drafted: Sequence[DraftedContract]) -> "ContractsView":
        drafted_ids = {d.unit_id for d in drafted}
        return cls(
            rows=tuple(
                ContractRow(
                    unit_id=s.unit_id,
                    name=s.name,
                    rarity=s.rarity,
                    progress=s.progress_label,
                    can_draft=s.can_draft,
                    drafted=s.drafted_active or s.unit_id in drafted_ids,
                    recruited=s.recruited,
                )
                for s in statuses
            )
        )


@dataclass(frozen=True)
class TasksView:
    tasks: Tuple[PlayerTaskView, ...]

    @property
    def claimable_ids(self) -> Tuple[str, ...]:
        return tuple(f"task_claim_{t.player_task_id}" for t in self.tasks if t.is_completed)


@dataclass(frozen=True)
class QuestBoardView:
    offered: Tuple[QuestEntry, ...]
    accepted: Tuple[QuestEntry, ...]

    @property
    def accept_ids(self) -> Tuple[str, ...]:
        return tuple(f"quest_accept_{q.player_quest_id}" for q in self.offered)

