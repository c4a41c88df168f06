"""Per-player gold income, maintenance and treasury updates."""

import logging
import math
from dataclasses import dataclass, field

from tribes_core.schemas.game_state import GameState

from .lookups import get_player, get_tribe_settlements, update_player
from .rules import BUILDING_DEFINITIONS, UNIT_DEFINITIONS, golden_age_yield_bonus
from .settlements import calculate_building_yields, calculate_settlement_yields
from .trade import calculate_trade_route_income

logger = logging.getLogger(__name__)


@dataclass
class GoldBreakdown:
    settlements: int = 0
    trade_routes: int = 0
    golden_age: int = 0
    building_maintenance: int = 0
    unit_maintenance: int = 0


@dataclass
class GoldIncome:
    gross: int
    maintenance: int
    net: int
    breakdown: GoldBreakdown = field(default_factory=GoldBreakdown)


def calculate_unit_maintenance(state: GameState, tribe_id: str) -> int:
    """Flat per-type upkeep over the tribe's units; civilians cost nothing."""
    total = 0
    for unit in state.units.values():
        if unit.owner != tribe_id:
            continue
        definition = UNIT_DEFINITIONS.get(unit.type)
        if definition is not None and not definition.is_civilian:
            total += definition.maintenance
    return total


def calculate_building_maintenance(state: GameState, tribe_id: str) -> int:
    return sum(
        BUILDING_DEFINITIONS[building_id].maintenance
        for settlement in get_tribe_settlements(state, tribe_id)
        for building_id in settlement.buildings
        if building_id in BUILDING_DEFINITIONS
    )


def calculate_gold_income(state: GameState, tribe_id: str) -> GoldIncome:
    """Gold a tribe earns and spends per turn.

    Gross is settlement gold plus building gold plus trade income, with any
    golden-age gold bonus applied once to the total and floored.
    """
    breakdown = GoldBreakdown()
    for settlement in get_tribe_settlements(state, tribe_id):
        breakdown.settlements += (
            calculate_settlement_yields(state, settlement).gold
            + calculate_building_yields(state, settlement).gold
        )
    breakdown.trade_routes = calculate_trade_route_income(state, tribe_id)
    gross = breakdown.settlements + breakdown.trade_routes

    player = get_player(state, tribe_id)
    if player is not None:
        bonus = golden_age_yield_bonus(player.golden_age, "gold")
        if bonus > 0:
            boosted = math.floor(gross * (1 + bonus))
            breakdown.golden_age = boosted - gross
            gross = boosted

    breakdown.building_maintenance = calculate_building_maintenance(state, tribe_id)
    breakdown.unit_maintenance = calculate_unit_maintenance(state, tribe_id)
    maintenance = breakdown.building_maintenance + breakdown.unit_maintenance

    logger.debug(
        "Gold income: tribe=%s, gross=%d, maintenance=%d", tribe_id, gross, maintenance
    )
    return GoldIncome(
        gross=gross,
        maintenance=maintenance,
        net=gross - maintenance,
        breakdown=breakdown,
    )


def process_player_economy(state: GameState, tribe_id: str) -> GameState:
    """Apply one turn of net income; the treasury never drops below zero.

    Gross income also feeds the great-people gold counter.
    """
    player = get_player(state, tribe_id)
    if player is None:
        return state

    income = calculate_gold_income(state, tribe_id)
    treasury = max(0, player.treasury + income.net)
    great_people = player.great_people.model_copy(
        update={"gold": player.great_people.gold + income.gross}
    )
    if player.treasury + income.net < 0:
        logger.debug(
            "Treasury floored at zero: tribe=%s, shortfall=%d",
            tribe_id,
            -(player.treasury + income.net),
        )
    return update_player(
        state, player.model_copy(update={"treasury": treasury, "great_people": great_people})
    )


def can_afford(state: GameState, tribe_id: str, cost: int) -> bool:
    player = get_player(state, tribe_id)
    return player is not None and player.treasury >= cost


def deduct_gold(state: GameState, tribe_id: str, amount: int) -> GameState | None:
    """Spend gold, or return None when the treasury cannot cover it."""
    if not can_afford(state, tribe_id, amount):
        return None
    player = get_player(state, tribe_id)
    return update_player(state, player.model_copy(update={"treasury": player.treasury - amount}))


def add_gold(state: GameState, tribe_id: str, amount: int) -> GameState:
    player = get_player(state, tribe_id)
    if player is None:
        return state
    return update_player(state, player.model_copy(update={"treasury": player.treasury + amount}))
