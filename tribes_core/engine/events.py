"""Game event types - emitted during state transitions.

Events describe what happened during a game action, enabling:
- Incremental presentation updates (only render what changed)
- Animations (know exactly what transitioned)
- Action replay / audit logging
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field

from tribes_core.schemas.game_state import HexCoord, ProductionType, UnitRarity


class GameEvent(BaseModel):
    """Base class for all game events."""

    event_type: str
    seq: int = 0  # Sequence number assigned during processing


# Turn flow


class TurnEnded(GameEvent):
    event_type: Literal["turn_ended"] = "turn_ended"
    tribe_id: str
    turn: int
    next_tribe_id: str


class TurnStarted(GameEvent):
    event_type: Literal["turn_started"] = "turn_started"
    tribe_id: str
    turn: int


class GameEnded(GameEvent):
    """Game finished; winner is the highest scoring surviving tribe."""

    event_type: Literal["game_ended"] = "game_ended"
    winner: str | None
    turn: int
    scores: dict[str, int]


class PlayerEliminated(GameEvent):
    event_type: Literal["player_eliminated"] = "player_eliminated"
    tribe_id: str
    eliminated_by: str | None = None


# Units and combat


class UnitCreated(GameEvent):
    event_type: Literal["unit_created"] = "unit_created"
    unit_id: str
    tribe_id: str
    unit_type: str
    position: HexCoord
    rarity: UnitRarity = UnitRarity.COMMON


class UnitMoved(GameEvent):
    event_type: Literal["unit_moved"] = "unit_moved"
    unit_id: str
    tribe_id: str
    from_position: HexCoord
    to_position: HexCoord
    movement_remaining: int


class UnitDestroyed(GameEvent):
    event_type: Literal["unit_destroyed"] = "unit_destroyed"
    unit_id: str
    tribe_id: str
    unit_type: str


class CombatResolved(GameEvent):
    event_type: Literal["combat_resolved"] = "combat_resolved"
    attacker_id: str
    defender_id: str
    attacker_damage: int = Field(..., description="Damage taken by the attacker")
    defender_damage: int = Field(..., description="Damage taken by the defender")
    attacker_destroyed: bool
    defender_destroyed: bool


class PromotionSelected(GameEvent):
    event_type: Literal["promotion_selected"] = "promotion_selected"
    unit_id: str
    promotion_id: str
    level: int


class GreatPersonUsed(GameEvent):
    event_type: Literal["great_person_used"] = "great_person_used"
    unit_id: str
    tribe_id: str
    kind: str
    effect: str
    amount: int


class GreatPersonEarned(GameEvent):
    event_type: Literal["great_person_earned"] = "great_person_earned"
    unit_id: str
    tribe_id: str
    great_person_id: str
    kind: str


class ImprovementBuilt(GameEvent):
    event_type: Literal["improvement_built"] = "improvement_built"
    tribe_id: str
    builder_id: str
    position: HexCoord
    improvement: str
    charges_remaining: int


# Settlements


class SettlementFounded(GameEvent):
    event_type: Literal["settlement_founded"] = "settlement_founded"
    settlement_id: str
    tribe_id: str
    name: str
    position: HexCoord
    is_capital: bool


class SettlementAttacked(GameEvent):
    event_type: Literal["settlement_attacked"] = "settlement_attacked"
    attacker_id: str
    settlement_id: str
    damage: int
    health_remaining: int
    conquered: bool


class SettlementCaptured(GameEvent):
    event_type: Literal["settlement_captured"] = "settlement_captured"
    settlement_id: str
    new_owner: str
    previous_owner: str


class SettlementRazed(GameEvent):
    event_type: Literal["settlement_razed"] = "settlement_razed"
    settlement_id: str
    tribe_id: str
    previous_owner: str


class SettlementGrew(GameEvent):
    event_type: Literal["settlement_grew"] = "settlement_grew"
    settlement_id: str
    population: int
    level: int


class MilestoneReached(GameEvent):
    """Settlement reached a new level; a reward choice is now pending."""

    event_type: Literal["milestone_reached"] = "milestone_reached"
    settlement_id: str
    level: int


class MilestoneSelected(GameEvent):
    event_type: Literal["milestone_selected"] = "milestone_selected"
    settlement_id: str
    level: int
    choice: str
    effect: str


class BordersExpanded(GameEvent):
    event_type: Literal["borders_expanded"] = "borders_expanded"
    settlement_id: str
    tiles_claimed: int


# Production


class ProductionQueued(GameEvent):
    event_type: Literal["production_queued"] = "production_queued"
    settlement_id: str
    item_type: ProductionType
    item_id: str
    queue_position: int


class ProductionCancelled(GameEvent):
    event_type: Literal["production_cancelled"] = "production_cancelled"
    settlement_id: str
    item_type: ProductionType
    item_id: str


class ProductionCompleted(GameEvent):
    event_type: Literal["production_completed"] = "production_completed"
    settlement_id: str
    item_type: ProductionType
    item_id: str


class ItemPurchased(GameEvent):
    event_type: Literal["item_purchased"] = "item_purchased"
    settlement_id: str
    item_type: ProductionType
    item_id: str
    gold_spent: int


# Economy and progression


class TreasuryUpdated(GameEvent):
    event_type: Literal["treasury_updated"] = "treasury_updated"
    tribe_id: str
    gross: int
    maintenance: int
    net: int
    treasury: int


class ResearchStarted(GameEvent):
    event_type: Literal["research_started"] = "research_started"
    tribe_id: str
    tech_id: str


class TechResearched(GameEvent):
    event_type: Literal["tech_researched"] = "tech_researched"
    tribe_id: str
    tech_id: str


class CultureStarted(GameEvent):
    event_type: Literal["culture_started"] = "culture_started"
    tribe_id: str
    culture_id: str


class CultureReady(GameEvent):
    """Culture progress reached its cost; a policy choice is now pending."""

    event_type: Literal["culture_ready"] = "culture_ready"
    tribe_id: str
    culture_id: str


class PolicySelected(GameEvent):
    event_type: Literal["policy_selected"] = "policy_selected"
    tribe_id: str
    culture_id: str
    policy_id: str


class PoliciesSwapped(GameEvent):
    event_type: Literal["policies_swapped"] = "policies_swapped"
    tribe_id: str
    active: list[str]


class GoldenAgeStarted(GameEvent):
    event_type: Literal["golden_age_started"] = "golden_age_started"
    tribe_id: str
    trigger: str
    effect: str
    turns: int


class GoldenAgeEnded(GameEvent):
    event_type: Literal["golden_age_ended"] = "golden_age_ended"
    tribe_id: str


# Trade


class TradeRouteCreated(GameEvent):
    event_type: Literal["trade_route_created"] = "trade_route_created"
    route_id: str
    tribe_id: str
    origin: str
    destination: str
    target_tribe: str
    gold_per_turn: int


class TradeRouteActivated(GameEvent):
    event_type: Literal["trade_route_activated"] = "trade_route_activated"
    route_id: str
    tribe_id: str
    gold_per_turn: int


class TradeRouteBroken(GameEvent):
    event_type: Literal["trade_route_broken"] = "trade_route_broken"
    route_id: str
    tribe_id: str
    reason: str = Field(
        ..., description="Why the route broke: 'cancelled', 'war', 'pillaged', 'endpoint_lost'"
    )


class TradeRoutesPillaged(GameEvent):
    event_type: Literal["trade_routes_pillaged"] = "trade_routes_pillaged"
    settlement_id: str
    pillager: str
    routes_broken: int
    gold_gained: int


# Diplomacy


class WarDeclared(GameEvent):
    event_type: Literal["war_declared"] = "war_declared"
    aggressor: str
    target: str


class PeaceProposed(GameEvent):
    event_type: Literal["peace_proposed"] = "peace_proposed"
    proposer: str
    target: str


class PeaceMade(GameEvent):
    event_type: Literal["peace_made"] = "peace_made"
    tribe_a: str
    tribe_b: str


class PeaceRejected(GameEvent):
    event_type: Literal["peace_rejected"] = "peace_rejected"
    proposer: str
    target: str


class AllianceFormed(GameEvent):
    event_type: Literal["alliance_formed"] = "alliance_formed"
    tribe_a: str
    tribe_b: str


# Union type for all events
AnyGameEvent = Annotated[
    TurnEnded
    | TurnStarted
    | GameEnded
    | PlayerEliminated
    | UnitCreated
    | UnitMoved
    | UnitDestroyed
    | CombatResolved
    | PromotionSelected
    | GreatPersonUsed
    | GreatPersonEarned
    | ImprovementBuilt
    | SettlementFounded
    | SettlementAttacked
    | SettlementCaptured
    | SettlementRazed
    | SettlementGrew
    | MilestoneReached
    | MilestoneSelected
    | BordersExpanded
    | ProductionQueued
    | ProductionCancelled
    | ProductionCompleted
    | ItemPurchased
    | TreasuryUpdated
    | ResearchStarted
    | TechResearched
    | CultureStarted
    | CultureReady
    | PolicySelected
    | PoliciesSwapped
    | GoldenAgeStarted
    | GoldenAgeEnded
    | TradeRouteCreated
    | TradeRouteActivated
    | TradeRouteBroken
    | TradeRoutesPillaged
    | WarDeclared
    | PeaceProposed
    | PeaceMade
    | PeaceRejected
    | AllianceFormed,
    Field(discriminator="event_type"),
]
