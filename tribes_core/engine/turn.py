"""End-of-turn pipeline, player rotation and game-over scoring."""

import logging

from tribes_core.schemas.game_state import GamePhase, GameState, UnitRarity

from .diplomacy import update_diplomacy_timers
from .economy import calculate_gold_income, process_player_economy
from .events import (
    AnyGameEvent,
    BordersExpanded,
    GameEnded,
    MilestoneReached,
    SettlementGrew,
    TradeRouteActivated,
    TradeRouteBroken,
    TreasuryUpdated,
    TurnEnded,
    TurnStarted,
)
from .lookups import get_player, update_settlement
from .production import complete_production_item, process_production
from .progression import (
    apply_culture_progress,
    apply_research_progress,
    process_golden_age_triggers,
    process_golden_age_turn,
)
from .rules import WONDER_DEFINITIONS
from .settlements import (
    calculate_total_settlement_yields,
    expand_settlement_borders,
    process_settlement_growth,
    process_settlement_regeneration,
)
from .trade import diff_trade_routes, process_trade_route_formation
from .units import process_unit_healing, reset_player_units, spawn_great_people
from .validation import ProcessResult

logger = logging.getLogger(__name__)

CONQUEST_GRACE_TURNS = 5

RARITY_SCORE_BONUS = {
    UnitRarity.RARE: 2,
    UnitRarity.EPIC: 5,
    UnitRarity.LEGENDARY: 10,
}


# =============================================================================
# Pipeline stages
# =============================================================================


def _owned_settlement_ids(state: GameState, tribe_id: str) -> list[str]:
    return [sid for sid, s in state.settlements.items() if s.owner == tribe_id]


def run_production(state: GameState, tribe_id: str) -> tuple[GameState, list[AnyGameEvent]]:
    events: list[AnyGameEvent] = []
    for settlement_id in _owned_settlement_ids(state, tribe_id):
        result = process_production(state, settlement_id)
        state = update_settlement(state, result.settlement)
        for item in result.completed:
            state, item_events = complete_production_item(state, settlement_id, item)
            events.extend(item_events)
    return state, events


def run_growth(state: GameState, tribe_id: str) -> tuple[GameState, list[AnyGameEvent]]:
    events: list[AnyGameEvent] = []
    for settlement_id in _owned_settlement_ids(state, tribe_id):
        settlement = state.settlements[settlement_id]
        growth = calculate_total_settlement_yields(state, settlement).growth
        result = process_settlement_growth(settlement, growth)
        state = update_settlement(state, result.settlement)
        if result.grew:
            events.append(
                SettlementGrew(
                    settlement_id=settlement_id,
                    population=result.settlement.population,
                    level=result.settlement.level,
                )
            )
        if result.reached_milestone:
            events.append(MilestoneReached(settlement_id=settlement_id, level=result.settlement.level))
    return state, events


def run_economy(state: GameState, tribe_id: str) -> tuple[GameState, list[AnyGameEvent]]:
    income = calculate_gold_income(state, tribe_id)
    state = process_player_economy(state, tribe_id)
    player = get_player(state, tribe_id)
    return state, [
        TreasuryUpdated(
            tribe_id=tribe_id,
            gross=income.gross,
            maintenance=income.maintenance,
            net=income.net,
            treasury=player.treasury,
        )
    ]


def run_trade_formation(state: GameState, tribe_id: str) -> tuple[GameState, list[AnyGameEvent]]:
    before = state.trade_routes
    state = process_trade_route_formation(state, tribe_id)
    activated, broken = diff_trade_routes(before, state.trade_routes)
    events: list[AnyGameEvent] = [
        TradeRouteActivated(route_id=r.id, tribe_id=r.owner_tribe, gold_per_turn=r.gold_per_turn)
        for r in activated
    ]
    events.extend(
        TradeRouteBroken(route_id=r.id, tribe_id=r.owner_tribe, reason="endpoint_lost") for r in broken
    )
    return state, events


def run_border_expansion(state: GameState, tribe_id: str) -> tuple[GameState, list[AnyGameEvent]]:
    """Bank each settlement's culture and claim land within its border radius."""
    events: list[AnyGameEvent] = []
    for settlement_id in _owned_settlement_ids(state, tribe_id):
        settlement = state.settlements[settlement_id]
        culture = calculate_total_settlement_yields(state, settlement).culture
        state = update_settlement(
            state,
            settlement.model_copy(
                update={"culture_accumulated": settlement.culture_accumulated + culture}
            ),
        )
        owned_before = _count_owned_tiles(state, tribe_id)
        state = expand_settlement_borders(state, settlement_id)
        claimed = _count_owned_tiles(state, tribe_id) - owned_before
        if claimed:
            events.append(BordersExpanded(settlement_id=settlement_id, tiles_claimed=claimed))
    return state, events


def _count_owned_tiles(state: GameState, tribe_id: str) -> int:
    return sum(1 for tile in state.map.tiles.values() if tile.owner == tribe_id)


def run_regeneration(state: GameState, tribe_id: str) -> GameState:
    for settlement_id in _owned_settlement_ids(state, tribe_id):
        settlement = state.settlements[settlement_id]
        regenerated = process_settlement_regeneration(settlement)
        if regenerated is not settlement:
            state = update_settlement(state, regenerated)
    return state


# =============================================================================
# Rotation and game over
# =============================================================================


def get_next_player(state: GameState) -> str:
    """Next non-eliminated tribe after the current one, in seating order."""
    players = state.players
    current_index = next(
        (i for i, p in enumerate(players) if p.tribe_id == state.current_player), 0
    )
    for offset in range(1, len(players) + 1):
        candidate = players[(current_index + offset) % len(players)]
        if not candidate.eliminated:
            return candidate.tribe_id
    return players[(current_index + 1) % len(players)].tribe_id


def calculate_score(state: GameState, tribe_id: str) -> int:
    """Score used to pick a winner when no tribe has conquered the rest.

    Settlements 10 each plus 5 per level, tiles 1 each, techs and cultures 5
    each, 1 per 10 gold, 3 per kill, units 2 each plus a rarity bonus, and the
    bonus of every wonder built.
    """
    score = 0
    for settlement in state.settlements.values():
        if settlement.owner == tribe_id:
            score += 10 + settlement.level * 5

    score += _count_owned_tiles(state, tribe_id)

    player = get_player(state, tribe_id)
    if player is not None:
        score += len(player.researched_techs) * 5
        score += len(player.unlocked_cultures) * 5
        score += player.treasury // 10
        score += player.kill_count * 3

    for unit in state.units.values():
        if unit.owner == tribe_id:
            score += 2 + RARITY_SCORE_BONUS.get(unit.rarity, 0)

    for wonder in state.wonders:
        if wonder.owner == tribe_id and wonder.id in WONDER_DEFINITIONS:
            score += WONDER_DEFINITIONS[wonder.id].score_bonus

    return score


def _tribes_with_settlements(state: GameState) -> set[str]:
    return {s.owner for s in state.settlements.values()}


def is_game_over(state: GameState) -> bool:
    if state.turn > state.max_turns:
        return True
    if state.turn > CONQUEST_GRACE_TURNS and state.settlements:
        return len(_tribes_with_settlements(state)) <= 1
    return False


def determine_winner(state: GameState, scores: dict[str, int]) -> str | None:
    """Last tribe holding settlements, otherwise the highest score.

    Ties go to the tribe seated first.
    """
    survivors = _tribes_with_settlements(state)
    if len(survivors) == 1:
        return next(iter(survivors))

    winner = None
    best = -1
    for player in state.players:
        score = scores.get(player.tribe_id, 0)
        if score > best:
            best = score
            winner = player.tribe_id
    return winner


def check_game_over(state: GameState) -> tuple[GameState, list[AnyGameEvent]]:
    if state.phase == GamePhase.FINISHED or not is_game_over(state):
        return state, []

    scores = {p.tribe_id: calculate_score(state, p.tribe_id) for p in state.players if not p.eliminated}
    winner = determine_winner(state, scores)
    logger.info("Game over: turn=%d, winner=%s, scores=%s", state.turn, winner, scores)
    new_state = state.model_copy(update={"phase": GamePhase.FINISHED, "winner": winner})
    return new_state, [GameEnded(winner=winner, turn=state.turn, scores=scores)]


# =============================================================================
# End turn
# =============================================================================


def process_end_turn(state: GameState, tribe_id: str) -> ProcessResult:
    """Run the end-of-turn pipeline for the acting tribe and pass the turn.

    Stages run in order: production, growth, economy, trade-route formation,
    research, culture, border expansion, settlement regeneration, golden age
    countdown and triggers, diplomacy timers, great people, unit healing and
    reset. The turn number advances when rotation wraps, and the game-over
    check runs last.
    """
    ended_turn = state.turn
    logger.info("Ending turn: tribe=%s, turn=%d", tribe_id, ended_turn)
    events: list[AnyGameEvent] = []

    for stage in (
        run_production,
        run_growth,
        run_economy,
        run_trade_formation,
        apply_research_progress,
        apply_culture_progress,
        run_border_expansion,
    ):
        state, stage_events = stage(state, tribe_id)
        events.extend(stage_events)

    state = run_regeneration(state, tribe_id)
    for stage in (process_golden_age_turn, process_golden_age_triggers):
        state, stage_events = stage(state, tribe_id)
        events.extend(stage_events)
    state = update_diplomacy_timers(state)
    state, great_people_events = spawn_great_people(state, tribe_id)
    events.extend(great_people_events)
    state = process_unit_healing(state, tribe_id)
    state = reset_player_units(state, tribe_id)

    next_player = get_next_player(state)
    current_index = next(i for i, p in enumerate(state.players) if p.tribe_id == tribe_id)
    next_index = next(i for i, p in enumerate(state.players) if p.tribe_id == next_player)
    turn = state.turn + 1 if next_index <= current_index else state.turn
    state = state.model_copy(update={"current_player": next_player, "turn": turn})

    events.append(TurnEnded(tribe_id=tribe_id, turn=ended_turn, next_tribe_id=next_player))

    state, game_over_events = check_game_over(state)
    if game_over_events:
        events.extend(game_over_events)
    else:
        events.append(TurnStarted(tribe_id=next_player, turn=turn))

    logger.debug("Turn passed: next=%s, turn=%d, events=%d", next_player, turn, len(events))
    return ProcessResult.ok(state, events)
