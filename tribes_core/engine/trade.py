"""Trade route subsystem.

Route lifecycle:
    FORMING (active=False, turns_until_active > 0)
      -> ACTIVE (active=True, turns_until_active == 0)
      -> BROKEN (active=False, turns_until_active == 0), terminal

Routes are never removed from GameState.trade_routes; breaking a route only
marks it inactive so the list keeps the full history in creation order.
"""

import logging
import math
from dataclasses import dataclass

from tribes_core.schemas.game_state import (
    DiplomaticStance,
    GameState,
    Player,
    ResourceCategory,
    Settlement,
    TradeRoute,
    TradeRouteStatus,
)

from .diplomacy import are_allied, get_stance
from .events import AnyGameEvent, TradeRouteBroken, TradeRouteCreated
from .lookups import get_player, update_player
from .rules import get_tribe_bonuses
from .sequences import allocate_trade_route_id
from .settlements import calculate_building_yields, calculate_settlement_yields
from .validation import ProcessResult, ValidationResult

logger = logging.getLogger(__name__)

FORMATION_TURNS = 2
TRADE_UNLOCK_TECH = "smart_contracts"
CAPACITY_TECHS = ("smart_contracts", "currency", "lending")
BASE_TRADE_RATE = 0.20
ALLIED_TRADE_RATE = 0.25


@dataclass
class TradeRouteCreation:
    state: GameState
    route: TradeRoute


@dataclass
class PillageResult:
    state: GameState
    routes_broken: int = 0
    gold_gained: int = 0


@dataclass
class TradeRouteSummary:
    capacity: int
    active: int
    forming: int
    income: int
    unlocked: bool


# =============================================================================
# Capacity and queries
# =============================================================================


def has_trade_unlocked(player: Player) -> bool:
    return TRADE_UNLOCK_TECH in player.researched_techs


def get_trade_route_capacity(state: GameState, tribe_id: str) -> int:
    """Routes a tribe may have forming or active at once (global per tribe)."""
    player = get_player(state, tribe_id)
    if player is None:
        return 0
    capacity = sum(1 for tech in CAPACITY_TECHS if tech in player.researched_techs)
    return capacity + get_tribe_bonuses(player.tribe_name).extra_trade_route_capacity


def count_tribe_trade_routes(state: GameState, tribe_id: str) -> int:
    """Forming plus active routes owned by a tribe."""
    return sum(
        1
        for route in state.trade_routes
        if route.owner_tribe == tribe_id and route.status != TradeRouteStatus.BROKEN
    )


def get_active_trade_routes(state: GameState, tribe_id: str) -> list[TradeRoute]:
    return [r for r in state.trade_routes if r.owner_tribe == tribe_id and r.active]


def calculate_trade_route_income(state: GameState, tribe_id: str) -> int:
    return sum(route.gold_per_turn for route in get_active_trade_routes(state, tribe_id))


def get_trade_routes_for_settlement(state: GameState, settlement_id: str) -> list[TradeRoute]:
    """Active routes with the settlement at either endpoint."""
    return [
        r
        for r in state.trade_routes
        if r.active and (r.origin == settlement_id or r.destination == settlement_id)
    ]


def get_trade_route_summary(state: GameState, tribe_id: str) -> TradeRouteSummary:
    player = get_player(state, tribe_id)
    owned = [r for r in state.trade_routes if r.owner_tribe == tribe_id]
    return TradeRouteSummary(
        capacity=get_trade_route_capacity(state, tribe_id),
        active=sum(1 for r in owned if r.status == TradeRouteStatus.ACTIVE),
        forming=sum(1 for r in owned if r.status == TradeRouteStatus.FORMING),
        income=calculate_trade_route_income(state, tribe_id),
        unlocked=player is not None and has_trade_unlocked(player),
    )


def get_available_trade_destinations(state: GameState, origin_id: str) -> list[Settlement]:
    """Settlements a route from origin_id could currently be created to."""
    return [
        settlement
        for settlement in state.settlements.values()
        if settlement.id != origin_id and check_trade_route(state, origin_id, settlement.id).is_valid
    ]


# =============================================================================
# Gold
# =============================================================================


def get_settlement_gold_yield(state: GameState, settlement: Settlement) -> int:
    return (
        calculate_settlement_yields(state, settlement).gold
        + calculate_building_yields(state, settlement).gold
    )


def count_luxury_tiles(state: GameState, tribe_id: str) -> int:
    """Improved luxury resource tiles owned by a tribe."""
    return sum(
        1
        for tile in state.map.tiles.values()
        if tile.owner == tribe_id
        and tile.resource is not None
        and tile.resource.category == ResourceCategory.LUXURY
        and tile.resource.improved
    )


def calculate_trade_route_gold(
    state: GameState,
    origin: Settlement,
    destination: Settlement,
) -> int:
    """Gold per turn for a route between two settlements; never below 1."""
    is_internal = origin.owner == destination.owner
    combined = get_settlement_gold_yield(state, origin) + get_settlement_gold_yield(
        state, destination
    )

    rate = BASE_TRADE_RATE
    if not is_internal and are_allied(state, origin.owner, destination.owner):
        rate = ALLIED_TRADE_RATE

    gold = math.floor(combined * rate)
    if not is_internal:
        gold += count_luxury_tiles(state, destination.owner)

    logger.debug(
        "Trade gold: origin=%s, destination=%s, combined=%d, rate=%.2f, gold=%d",
        origin.id,
        destination.id,
        combined,
        rate,
        gold,
    )
    return max(1, gold)


# =============================================================================
# Creation
# =============================================================================


def check_trade_route(state: GameState, origin_id: str, destination_id: str) -> ValidationResult:
    """Check every creation rule and report the first one that fails."""
    origin = state.settlements.get(origin_id)
    if origin is None:
        return ValidationResult.error("ORIGIN_NOT_FOUND", "Origin settlement not found")

    destination = state.settlements.get(destination_id)
    if destination is None:
        return ValidationResult.error("DESTINATION_NOT_FOUND", "Destination settlement not found")

    if origin_id == destination_id:
        return ValidationResult.error("SAME_SETTLEMENT", "A route needs two different settlements")

    owner = get_player(state, origin.owner)
    if owner is None or not has_trade_unlocked(owner):
        return ValidationResult.error(
            "TRADE_NOT_UNLOCKED", "Trade not unlocked (requires Smart Contracts tech)"
        )

    used = count_tribe_trade_routes(state, origin.owner)
    capacity = get_trade_route_capacity(state, origin.owner)
    if used >= capacity:
        return ValidationResult.error(
            "TRADE_CAPACITY_FULL", f"Trade route capacity full ({used}/{capacity})"
        )

    if origin.owner != destination.owner:
        stance = get_stance(state, origin.owner, destination.owner)
        if stance == DiplomaticStance.WAR:
            return ValidationResult.error("TARGET_AT_WAR", "Cannot trade with enemies")
        if stance == DiplomaticStance.HOSTILE:
            return ValidationResult.error("TARGET_HOSTILE", "Cannot initiate trade while hostile")

        if destination.position.key not in state.fog.get(origin.owner, set()):
            return ValidationResult.error("DESTINATION_NOT_VISIBLE", "Destination not visible")

        if any(
            r.active and r.owner_tribe == origin.owner and r.destination == destination_id
            for r in state.trade_routes
        ):
            return ValidationResult.error(
                "DUPLICATE_DESTINATION", "Already have a route to this settlement"
            )

    return ValidationResult.ok()


def create_trade_route(
    state: GameState,
    origin_id: str,
    destination_id: str,
) -> TradeRouteCreation | None:
    """Create a forming route, or return None when any creation rule fails.

    Use check_trade_route to learn which rule failed.
    """
    check = check_trade_route(state, origin_id, destination_id)
    if not check.is_valid:
        logger.debug(
            "Trade route rejected: origin=%s, destination=%s, code=%s",
            origin_id,
            destination_id,
            check.error_code,
        )
        return None
    return _open_trade_route(state, origin_id, destination_id)


def _open_trade_route(state: GameState, origin_id: str, destination_id: str) -> TradeRouteCreation:
    origin = state.settlements[origin_id]
    destination = state.settlements[destination_id]

    route_id, sequences = allocate_trade_route_id(state.sequences)
    route = TradeRoute(
        id=route_id,
        origin=origin_id,
        destination=destination_id,
        owner_tribe=origin.owner,
        target_tribe=destination.owner,
        gold_per_turn=calculate_trade_route_gold(state, origin, destination),
        active=False,
        turns_until_active=FORMATION_TURNS,
    )

    new_state = state.model_copy(
        update={"trade_routes": [*state.trade_routes, route], "sequences": sequences}
    )
    new_state = update_trade_route_count(new_state, origin.owner)

    logger.info(
        "Trade route created: id=%s, owner=%s, %s -> %s, gold_per_turn=%d",
        route_id,
        origin.owner,
        origin_id,
        destination_id,
        route.gold_per_turn,
    )
    return TradeRouteCreation(state=new_state, route=route)


# =============================================================================
# Per-turn processing and termination
# =============================================================================


def _break_route(route: TradeRoute) -> TradeRoute:
    return route.model_copy(update={"active": False, "turns_until_active": 0})


def process_trade_route_formation(state: GameState, tribe_id: str) -> GameState:
    """Advance every forming route owned by tribe_id by one turn.

    A route reaching zero activates with freshly computed gold, unless one of
    its endpoints no longer exists, in which case it is broken instead.
    """
    routes = []
    changed = False
    for route in state.trade_routes:
        if route.owner_tribe != tribe_id or route.status != TradeRouteStatus.FORMING:
            routes.append(route)
            continue

        changed = True
        turns_left = route.turns_until_active - 1
        if turns_left > 0:
            routes.append(route.model_copy(update={"turns_until_active": turns_left}))
            continue

        origin = state.settlements.get(route.origin)
        destination = state.settlements.get(route.destination)
        if origin is None or destination is None:
            logger.warning(
                "Trade route endpoint missing at activation, breaking: id=%s", route.id
            )
            routes.append(_break_route(route))
            continue

        gold = calculate_trade_route_gold(state, origin, destination)
        routes.append(
            route.model_copy(
                update={"active": True, "turns_until_active": 0, "gold_per_turn": gold}
            )
        )
        logger.info("Trade route activated: id=%s, gold_per_turn=%d", route.id, gold)

    if not changed:
        return state
    new_state = state.model_copy(update={"trade_routes": routes})
    return update_trade_route_count(new_state, tribe_id)


def cancel_trade_route(state: GameState, route_id: str) -> GameState:
    """Break a forming or active route. Broken or unknown routes are left as is."""
    routes = []
    cancelled = None
    for route in state.trade_routes:
        if route.id == route_id and route.status != TradeRouteStatus.BROKEN:
            cancelled = route
            route = _break_route(route)
        routes.append(route)

    if cancelled is None:
        return state
    logger.info("Trade route cancelled: id=%s", route_id)
    new_state = state.model_copy(update={"trade_routes": routes})
    return update_trade_route_count(new_state, cancelled.owner_tribe)


def cancel_trade_routes_due_to_war(state: GameState, tribe_a: str, tribe_b: str) -> GameState:
    """Break every forming or active route between two tribes, in either direction."""
    pair = {(tribe_a, tribe_b), (tribe_b, tribe_a)}
    routes = []
    owners = set()
    for route in state.trade_routes:
        if (
            route.status != TradeRouteStatus.BROKEN
            and (route.owner_tribe, route.target_tribe) in pair
        ):
            owners.add(route.owner_tribe)
            route = _break_route(route)
        routes.append(route)

    if not owners:
        return state
    new_state = state.model_copy(update={"trade_routes": routes})
    for owner in owners:
        new_state = update_trade_route_count(new_state, owner)
    logger.info("Trade routes cancelled by war: %s <-> %s", tribe_a, tribe_b)
    return new_state


def pillage_settlement_trade_routes(
    state: GameState,
    settlement_id: str,
    pillager_tribe_id: str,
) -> PillageResult:
    """Break every active route touching a settlement and pay the pillager.

    The pillager receives the sum of gold_per_turn over all broken routes as
    one deposit.
    """
    if settlement_id not in state.settlements:
        return PillageResult(state=state)

    routes = []
    owners = set()
    broken = 0
    gold = 0
    for route in state.trade_routes:
        if route.active and settlement_id in (route.origin, route.destination):
            broken += 1
            gold += route.gold_per_turn
            owners.add(route.owner_tribe)
            route = _break_route(route)
        routes.append(route)

    if broken == 0:
        return PillageResult(state=state)

    new_state = state.model_copy(update={"trade_routes": routes})
    pillager = get_player(new_state, pillager_tribe_id)
    if pillager is not None:
        new_state = update_player(
            new_state, pillager.model_copy(update={"treasury": pillager.treasury + gold})
        )
    for owner in owners:
        new_state = update_trade_route_count(new_state, owner)

    logger.info(
        "Trade routes pillaged: settlement=%s, pillager=%s, routes=%d, gold=%d",
        settlement_id,
        pillager_tribe_id,
        broken,
        gold,
    )
    return PillageResult(state=new_state, routes_broken=broken, gold_gained=gold)


def update_trade_route_count(state: GameState, tribe_id: str) -> GameState:
    """Write the tribe's active route count into its great-people accumulator."""
    player = get_player(state, tribe_id)
    if player is None:
        return state
    count = len(get_active_trade_routes(state, tribe_id))
    if player.great_people.trade_routes == count:
        return state
    great_people = player.great_people.model_copy(update={"trade_routes": count})
    return update_player(state, player.model_copy(update={"great_people": great_people}))


def diff_trade_routes(
    before: list[TradeRoute],
    after: list[TradeRoute],
) -> tuple[list[TradeRoute], list[TradeRoute]]:
    """Routes that became active and routes that broke between two snapshots."""
    activated = []
    broken = []
    for old, new in zip(before, after):
        if old.status == new.status:
            continue
        if new.status == TradeRouteStatus.ACTIVE:
            activated.append(new)
        elif new.status == TradeRouteStatus.BROKEN:
            broken.append(new)
    return activated, broken


# =============================================================================
# Action handlers
# =============================================================================


def process_create_trade_route(
    state: GameState,
    tribe_id: str,
    origin_id: str,
    destination_id: str,
) -> ProcessResult:
    origin = state.settlements.get(origin_id)
    if origin is not None and origin.owner != tribe_id:
        return ProcessResult.failure(
            "NOT_OWNER", "Origin settlement not owned by current player"
        )

    check = check_trade_route(state, origin_id, destination_id)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    creation = _open_trade_route(state, origin_id, destination_id)
    route = creation.route
    events: list[AnyGameEvent] = [
        TradeRouteCreated(
            route_id=route.id,
            tribe_id=tribe_id,
            origin=route.origin,
            destination=route.destination,
            target_tribe=route.target_tribe,
            gold_per_turn=route.gold_per_turn,
        )
    ]
    return ProcessResult.ok(creation.state, events)


def process_cancel_trade_route(state: GameState, tribe_id: str, route_id: str) -> ProcessResult:
    route = next((r for r in state.trade_routes if r.id == route_id), None)
    if route is None:
        return ProcessResult.failure("TRADE_ROUTE_NOT_FOUND", "Trade route not found")
    if route.owner_tribe != tribe_id:
        return ProcessResult.failure("NOT_OWNER", "Trade route not owned by current player")
    if route.status == TradeRouteStatus.BROKEN:
        return ProcessResult.failure(
            "TRADE_ROUTE_ALREADY_CANCELLED", "Trade route already cancelled"
        )

    new_state = cancel_trade_route(state, route_id)
    return ProcessResult.ok(
        new_state,
        [TradeRouteBroken(route_id=route_id, tribe_id=tribe_id, reason="cancelled")],
    )


def break_settlement_trade_routes(
    state: GameState,
    settlement_id: str,
) -> tuple[GameState, list[TradeRoute]]:
    """Break every forming or active route touching a razed, captured or vanished settlement."""
    routes = []
    broken = []
    for route in state.trade_routes:
        if route.status != TradeRouteStatus.BROKEN and settlement_id in (
            route.origin,
            route.destination,
        ):
            route = _break_route(route)
            broken.append(route)
        routes.append(route)

    if not broken:
        return state, []
    new_state = state.model_copy(update={"trade_routes": routes})
    for owner in {route.owner_tribe for route in broken}:
        new_state = update_trade_route_count(new_state, owner)
    logger.warning(
        "Trade routes lost their endpoint: settlement=%s, routes=%d", settlement_id, len(broken)
    )
    return new_state, broken
