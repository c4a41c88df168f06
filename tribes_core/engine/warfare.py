"""Combat, conquest and war declaration.

Combat is deterministic: damage depends only on the strength ratio of the
two sides. Settlements reduced to zero health stay with their owner until a
unit captures or razes them.
"""

import logging
import math
from dataclasses import dataclass

from tribes_core.schemas.game_state import DiplomaticStance, GameState, Settlement, Unit

from .diplomacy import are_at_war, check_declare_war, set_stance
from .events import (
    AnyGameEvent,
    CombatResolved,
    PlayerEliminated,
    SettlementAttacked,
    SettlementCaptured,
    SettlementRazed,
    TradeRouteBroken,
    TradeRoutesPillaged,
    UnitDestroyed,
    WarDeclared,
)
from .hexgrid import hex_distance, hex_key, hex_range
from .lookups import get_player, remove_unit, update_player, update_settlement, update_unit
from .rules import UNIT_DEFINITIONS
from .settlements import damage_settlement, max_health_for_level
from .trade import (
    break_settlement_trade_routes,
    cancel_trade_routes_due_to_war,
    diff_trade_routes,
    pillage_settlement_trade_routes,
)
from .units import check_unit_control, is_ranged
from .validation import ProcessResult, ValidationResult

logger = logging.getLogger(__name__)

BASE_COMBAT_DAMAGE = 30
XP_PER_COMBAT = 5
XP_PER_KILL = 10
SETTLEMENT_DEFENSE = 20
RANGED_ATTACK_RANGE = 2
CAPTURE_TERRITORY_RADIUS = 3


@dataclass
class CombatOutcome:
    attacker_damage: int
    defender_damage: int


def attack_strength(unit: Unit) -> int:
    return unit.ranged_strength if is_ranged(unit) else unit.combat_strength


def resolve_combat(attacker: Unit, defender: Unit) -> CombatOutcome:
    """Damage dealt to each side. Ranged attackers take no retaliation."""
    ratio = attack_strength(attacker) / max(1, defender.combat_strength)
    defender_damage = math.floor(BASE_COMBAT_DAMAGE * ratio)
    attacker_damage = 0 if is_ranged(attacker) else math.floor(BASE_COMBAT_DAMAGE / (ratio + 0.5))
    return CombatOutcome(attacker_damage=attacker_damage, defender_damage=defender_damage)


def calculate_settlement_damage(attacker: Unit) -> int:
    return math.floor(BASE_COMBAT_DAMAGE * attacker.settlement_strength / SETTLEMENT_DEFENSE)


def _check_can_attack(attacker: Unit) -> ValidationResult:
    definition = UNIT_DEFINITIONS.get(attacker.type)
    if definition is None or not definition.can_attack:
        return ValidationResult.error("UNIT_CANNOT_ATTACK", "This unit cannot attack")
    if attacker.has_acted:
        return ValidationResult.error("UNIT_ALREADY_ACTED", "Unit has already acted this turn")
    return ValidationResult.ok()


def _check_range(attacker: Unit, target_position) -> ValidationResult:
    distance = hex_distance(attacker.position, target_position)
    if is_ranged(attacker):
        if distance > RANGED_ATTACK_RANGE:
            return ValidationResult.error("OUT_OF_RANGE", "Target out of range")
    elif distance != 1:
        return ValidationResult.error("NOT_ADJACENT", "Must be adjacent to attack")
    return ValidationResult.ok()


def _add_combat_xp(state: GameState, tribe_id: str, amount: int) -> GameState:
    player = get_player(state, tribe_id)
    if player is None:
        return state
    great_people = player.great_people.model_copy(
        update={"combat_xp": player.great_people.combat_xp + amount}
    )
    return update_player(state, player.model_copy(update={"great_people": great_people}))


# =============================================================================
# Unit combat
# =============================================================================


def process_attack(state: GameState, tribe_id: str, attacker_id: str, target_id: str) -> ProcessResult:
    control = check_unit_control(state, attacker_id, tribe_id)
    if not control.is_valid:
        return ProcessResult.failure(control.error_code, control.error_message)

    attacker = state.units[attacker_id]
    check = _check_can_attack(attacker)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    defender = state.units.get(target_id)
    if defender is None:
        return ProcessResult.failure("TARGET_NOT_FOUND", "Target unit not found")
    if defender.owner == tribe_id:
        return ProcessResult.failure("FRIENDLY_TARGET", "Cannot attack friendly units")
    if not are_at_war(state, tribe_id, defender.owner):
        return ProcessResult.failure("NOT_AT_WAR", "Must be at war to attack")

    in_range = _check_range(attacker, defender.position)
    if not in_range.is_valid:
        return ProcessResult.failure(in_range.error_code, in_range.error_message)

    outcome = resolve_combat(attacker, defender)
    defender_health = max(0, defender.health - outcome.defender_damage)
    attacker_health = max(0, attacker.health - outcome.attacker_damage)
    defender_destroyed = defender_health == 0
    attacker_destroyed = attacker_health == 0

    attacker_xp = XP_PER_COMBAT + (XP_PER_KILL if defender_destroyed else 0)
    defender_xp = XP_PER_COMBAT + (XP_PER_KILL if attacker_destroyed else 0)

    new_state = state
    events: list[AnyGameEvent] = [
        CombatResolved(
            attacker_id=attacker_id,
            defender_id=target_id,
            attacker_damage=outcome.attacker_damage,
            defender_damage=outcome.defender_damage,
            attacker_destroyed=attacker_destroyed,
            defender_destroyed=defender_destroyed,
        )
    ]

    if defender_destroyed:
        new_state = remove_unit(new_state, target_id)
        events.append(UnitDestroyed(unit_id=target_id, tribe_id=defender.owner, unit_type=defender.type))
        player = get_player(new_state, tribe_id)
        new_state = update_player(new_state, player.model_copy(update={"kill_count": player.kill_count + 1}))
    else:
        new_state = update_unit(
            new_state,
            defender.model_copy(
                update={"health": defender_health, "experience": defender.experience + defender_xp}
            ),
        )

    if attacker_destroyed:
        new_state = remove_unit(new_state, attacker_id)
        events.append(UnitDestroyed(unit_id=attacker_id, tribe_id=tribe_id, unit_type=attacker.type))
    else:
        new_state = update_unit(
            new_state,
            attacker.model_copy(
                update={
                    "health": attacker_health,
                    "experience": attacker.experience + attacker_xp,
                    "has_acted": True,
                    "movement_remaining": 0,
                }
            ),
        )
    new_state = _add_combat_xp(new_state, tribe_id, attacker_xp)

    logger.info(
        "Combat resolved: attacker=%s, defender=%s, damage_dealt=%d, damage_taken=%d",
        attacker_id,
        target_id,
        outcome.defender_damage,
        outcome.attacker_damage,
    )
    return ProcessResult.ok(new_state, events)


# =============================================================================
# Settlement combat and conquest
# =============================================================================


def process_attack_settlement(
    state: GameState,
    tribe_id: str,
    attacker_id: str,
    settlement_id: str,
) -> ProcessResult:
    """Damage an enemy settlement; any damage pillages its active trade routes."""
    control = check_unit_control(state, attacker_id, tribe_id)
    if not control.is_valid:
        return ProcessResult.failure(control.error_code, control.error_message)

    attacker = state.units[attacker_id]
    check = _check_can_attack(attacker)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    settlement = state.settlements.get(settlement_id)
    if settlement is None:
        return ProcessResult.failure("SETTLEMENT_NOT_FOUND", "Settlement not found")
    if settlement.owner == tribe_id:
        return ProcessResult.failure("FRIENDLY_TARGET", "Cannot attack your own settlement")
    if not are_at_war(state, tribe_id, settlement.owner):
        return ProcessResult.failure("NOT_AT_WAR", "Must be at war to attack")
    if settlement.health <= 0:
        return ProcessResult.failure("SETTLEMENT_ALREADY_CONQUERED", "Settlement is already conquered")

    position_key = hex_key(settlement.position)
    if any(u.owner == settlement.owner and hex_key(u.position) == position_key for u in state.units.values()):
        return ProcessResult.failure("SETTLEMENT_DEFENDED", "Must defeat defending units first")

    in_range = _check_range(attacker, settlement.position)
    if not in_range.is_valid:
        return ProcessResult.failure(in_range.error_code, in_range.error_message)

    damage = calculate_settlement_damage(attacker)
    result = damage_settlement(settlement, damage)
    xp = XP_PER_COMBAT + (XP_PER_KILL if result.conquered else 0)

    new_state = update_settlement(state, result.settlement)
    new_state = update_unit(
        new_state,
        attacker.model_copy(
            update={"experience": attacker.experience + xp, "has_acted": True, "movement_remaining": 0}
        ),
    )
    new_state = _add_combat_xp(new_state, tribe_id, xp)

    events: list[AnyGameEvent] = [
        SettlementAttacked(
            attacker_id=attacker_id,
            settlement_id=settlement_id,
            damage=damage,
            health_remaining=result.settlement.health,
            conquered=result.conquered,
        )
    ]

    if damage > 0:
        before = new_state.trade_routes
        pillage = pillage_settlement_trade_routes(new_state, settlement_id, tribe_id)
        new_state = pillage.state
        if pillage.routes_broken:
            _, broken = diff_trade_routes(before, new_state.trade_routes)
            events.extend(
                TradeRouteBroken(route_id=r.id, tribe_id=r.owner_tribe, reason="pillaged") for r in broken
            )
            events.append(
                TradeRoutesPillaged(
                    settlement_id=settlement_id,
                    pillager=tribe_id,
                    routes_broken=pillage.routes_broken,
                    gold_gained=pillage.gold_gained,
                )
            )

    logger.info(
        "Settlement attacked: settlement=%s, attacker=%s, damage=%d, conquered=%s",
        settlement_id,
        attacker_id,
        damage,
        result.conquered,
    )
    return ProcessResult.ok(new_state, events)


def check_conquest(
    state: GameState,
    tribe_id: str,
    unit_id: str,
    settlement_id: str,
) -> ValidationResult:
    """Shared legality of capture and raze."""
    settlement = state.settlements.get(settlement_id)
    if settlement is None:
        return ValidationResult.error("SETTLEMENT_NOT_FOUND", "Settlement not found")

    control = check_unit_control(state, unit_id, tribe_id)
    if not control.is_valid:
        return control

    if settlement.owner == tribe_id:
        return ValidationResult.error("ALREADY_OWNED", "You already own this settlement")
    if settlement.health > 0:
        return ValidationResult.error("SETTLEMENT_NOT_CONQUERED", "Settlement is not conquered")

    unit = state.units[unit_id]
    definition = UNIT_DEFINITIONS.get(unit.type)
    if definition is None or definition.is_civilian:
        return ValidationResult.error("UNIT_CANNOT_ATTACK", "Civilian units cannot take settlements")
    if hex_distance(unit.position, settlement.position) > 1:
        return ValidationResult.error("NOT_ADJACENT", "Unit must be adjacent to the settlement")
    return ValidationResult.ok()


def check_tribe_elimination(
    state: GameState,
    tribe_id: str,
    eliminated_by: str | None = None,
) -> tuple[GameState, list[AnyGameEvent]]:
    """Eliminate a tribe left without settlements: clear its land and units."""
    player = get_player(state, tribe_id)
    if player is None or player.eliminated:
        return state, []
    if any(s.owner == tribe_id for s in state.settlements.values()):
        return state, []

    tiles = {
        key: tile.model_copy(update={"owner": None}) if tile.owner == tribe_id else tile
        for key, tile in state.map.tiles.items()
    }
    units = {uid: u for uid, u in state.units.items() if u.owner != tribe_id}
    new_state = state.model_copy(
        update={"map": state.map.model_copy(update={"tiles": tiles}), "units": units}
    )
    new_state = update_player(new_state, player.model_copy(update={"eliminated": True}))

    logger.info("Tribe eliminated: tribe=%s, by=%s", tribe_id, eliminated_by)
    return new_state, [PlayerEliminated(tribe_id=tribe_id, eliminated_by=eliminated_by)]


def _capture(settlement: Settlement, new_owner: str) -> Settlement:
    max_health = max_health_for_level(settlement.level)
    return settlement.model_copy(
        update={
            "owner": new_owner,
            "health": max_health // 2,
            "max_health": max_health,
            "production_queue": [],
            "current_production": 0,
            "is_capital": False,
        }
    )


def process_capture_settlement(
    state: GameState,
    tribe_id: str,
    unit_id: str,
    settlement_id: str,
) -> ProcessResult:
    """Take a conquered settlement, along with its former owner's nearby tiles.

    Routes touching the settlement break.
    """
    check = check_conquest(state, tribe_id, unit_id, settlement_id)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    settlement = state.settlements[settlement_id]
    previous_owner = settlement.owner
    new_state = update_settlement(state, _capture(settlement, tribe_id))

    tiles = dict(new_state.map.tiles)
    for coord in hex_range(settlement.position, CAPTURE_TERRITORY_RADIUS):
        key = hex_key(coord)
        tile = tiles.get(key)
        if tile is not None and (tile.owner == previous_owner or key == hex_key(settlement.position)):
            tiles[key] = tile.model_copy(update={"owner": tribe_id})
    new_state = new_state.model_copy(update={"map": new_state.map.model_copy(update={"tiles": tiles})})

    new_state, broken = break_settlement_trade_routes(new_state, settlement_id)
    events: list[AnyGameEvent] = [
        SettlementCaptured(settlement_id=settlement_id, new_owner=tribe_id, previous_owner=previous_owner)
    ]
    events.extend(
        TradeRouteBroken(route_id=r.id, tribe_id=r.owner_tribe, reason="endpoint_lost") for r in broken
    )
    new_state, elimination_events = check_tribe_elimination(new_state, previous_owner, tribe_id)
    events.extend(elimination_events)

    logger.info(
        "Settlement captured: settlement=%s, new_owner=%s, previous_owner=%s",
        settlement_id,
        tribe_id,
        previous_owner,
    )
    return ProcessResult.ok(new_state, events)


def process_raze_settlement(
    state: GameState,
    tribe_id: str,
    unit_id: str,
    settlement_id: str,
) -> ProcessResult:
    """Destroy a conquered settlement; routes touching it break."""
    check = check_conquest(state, tribe_id, unit_id, settlement_id)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    settlement = state.settlements[settlement_id]
    previous_owner = settlement.owner

    settlements = {sid: s for sid, s in state.settlements.items() if sid != settlement_id}
    key = hex_key(settlement.position)
    tiles = dict(state.map.tiles)
    if key in tiles:
        tiles[key] = tiles[key].model_copy(update={"owner": None})
    new_state = state.model_copy(
        update={"settlements": settlements, "map": state.map.model_copy(update={"tiles": tiles})}
    )

    new_state, broken = break_settlement_trade_routes(new_state, settlement_id)
    events: list[AnyGameEvent] = [
        SettlementRazed(settlement_id=settlement_id, tribe_id=tribe_id, previous_owner=previous_owner)
    ]
    events.extend(
        TradeRouteBroken(route_id=r.id, tribe_id=r.owner_tribe, reason="endpoint_lost") for r in broken
    )
    new_state, elimination_events = check_tribe_elimination(new_state, previous_owner, tribe_id)
    events.extend(elimination_events)

    logger.info("Settlement razed: settlement=%s, by=%s", settlement_id, tribe_id)
    return ProcessResult.ok(new_state, events)


# =============================================================================
# War
# =============================================================================


def declare_war(state: GameState, aggressor: str, target: str) -> GameState:
    """Set the pair to war and break every trade route between them."""
    new_state = set_stance(state, aggressor, target, DiplomaticStance.WAR)
    proposals = [
        p
        for p in new_state.diplomacy.peace_proposals
        if {p.proposer, p.target} != {aggressor, target}
    ]
    new_state = new_state.model_copy(
        update={"diplomacy": new_state.diplomacy.model_copy(update={"peace_proposals": proposals})}
    )
    return cancel_trade_routes_due_to_war(new_state, aggressor, target)


def process_declare_war(state: GameState, tribe_id: str, target: str) -> ProcessResult:
    check = check_declare_war(state, tribe_id, target)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    new_state = declare_war(state, tribe_id, target)
    _, broken = diff_trade_routes(state.trade_routes, new_state.trade_routes)

    events: list[AnyGameEvent] = [WarDeclared(aggressor=tribe_id, target=target)]
    events.extend(TradeRouteBroken(route_id=r.id, tribe_id=r.owner_tribe, reason="war") for r in broken)
    logger.info("War declared: %s -> %s, routes_broken=%d", tribe_id, target, len(broken))
    return ProcessResult.ok(new_state, events)
