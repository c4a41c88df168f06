"""Unit creation, movement, builders, promotions, great people and healing.

Unit stats are fixed at creation: rarity bonuses and promotions are folded
into combat_strength and max_movement when they are granted.
"""

import logging
import random
from collections import deque

from tribes_core.schemas.game_state import (
    GameState,
    HexCoord,
    Sequences,
    Unit,
    UnitRarity,
)

from .events import (
    AnyGameEvent,
    GreatPersonEarned,
    GreatPersonUsed,
    ImprovementBuilt,
    PromotionSelected,
    UnitMoved,
)
from .hexgrid import hex_distance, hex_key, hex_neighbors, hex_range
from .lookups import get_player, remove_unit, reveal_hexes, update_player, update_unit
from .rules import (
    GREAT_PERSON_DEFINITIONS,
    GREAT_PERSON_EFFECTS,
    GREAT_PERSON_SPAWN_CHANCE,
    IMPASSABLE_TERRAIN,
    IMPROVEMENT_DEFINITIONS,
    PROMOTION_DEFINITIONS,
    RARITY_BONUSES,
    RARITY_WEIGHTS,
    UNIT_DEFINITIONS,
)
from .sequences import allocate_entity_id, derive_rng
from .validation import ProcessResult, ValidationResult

logger = logging.getLogger(__name__)

UNIT_VISION_RADIUS = 2
XP_TO_LEVEL = 10  # Per current level

HEAL_PER_TURN = 10
HEAL_IN_TERRITORY = 15
HEAL_IN_SETTLEMENT = 20


# =============================================================================
# Creation
# =============================================================================


def roll_rarity(rng: random.Random) -> UnitRarity:
    rarities = list(RARITY_WEIGHTS)
    return rng.choices(rarities, weights=[RARITY_WEIGHTS[r] for r in rarities])[0]


def create_unit(
    sequences: Sequences,
    unit_type: str,
    owner: str,
    position: HexCoord,
    rarity: UnitRarity = UnitRarity.COMMON,
    great_person_kind: str | None = None,
) -> tuple[Unit, Sequences]:
    """Create a unit from its definition with rarity bonuses applied.

    Raises:
        KeyError: If unit_type is not a known unit.
    """
    definition = UNIT_DEFINITIONS[unit_type]
    unit_id, sequences = allocate_entity_id(sequences, "unit")

    combat_bonus, movement_bonus = RARITY_BONUSES[rarity]
    if definition.is_civilian:
        combat_bonus, movement_bonus = 0, 0

    movement = definition.movement + movement_bonus
    unit = Unit(
        id=unit_id,
        type=unit_type,
        owner=owner,
        position=position,
        health=definition.health,
        max_health=definition.health,
        movement_remaining=movement,
        max_movement=movement,
        combat_strength=definition.combat_strength + combat_bonus if definition.combat_strength else 0,
        ranged_strength=definition.ranged_strength + combat_bonus if definition.ranged_strength else 0,
        settlement_strength=definition.settlement_strength,
        rarity=rarity,
        build_charges=definition.build_charges,
        great_person_kind=great_person_kind,
    )
    return unit, sequences


def spawn_unit(
    state: GameState,
    unit_type: str,
    owner: str,
    position: HexCoord,
    rng: random.Random | None = None,
) -> tuple[GameState, Unit]:
    """Create a unit, add it to the state and reveal the hexes it can see.

    Military units roll a rarity when rng is given; civilians are always common.
    """
    rarity = UnitRarity.COMMON
    if rng is not None and not UNIT_DEFINITIONS[unit_type].is_civilian:
        rarity = roll_rarity(rng)

    unit, sequences = create_unit(state.sequences, unit_type, owner, position, rarity)
    new_state = update_unit(state.model_copy(update={"sequences": sequences}), unit)
    new_state = reveal_around(new_state, owner, position)
    logger.info(
        "Unit spawned: id=%s, type=%s, owner=%s, rarity=%s",
        unit.id,
        unit_type,
        owner,
        rarity.value,
    )
    return new_state, unit


def reveal_around(state: GameState, tribe_id: str, position: HexCoord) -> GameState:
    keys = {hex_key(coord) for coord in hex_range(position, UNIT_VISION_RADIUS)}
    return reveal_hexes(state, tribe_id, keys)


def is_ranged(unit: Unit) -> bool:
    return unit.ranged_strength > 0


# =============================================================================
# Movement
# =============================================================================


def check_unit_control(state: GameState, unit_id: str, tribe_id: str) -> ValidationResult:
    unit = state.units.get(unit_id)
    if unit is None:
        return ValidationResult.error("UNIT_NOT_FOUND", "Unit not found")
    if unit.owner != tribe_id:
        return ValidationResult.error("NOT_OWNER", "Unit not owned by current player")
    return ValidationResult.ok()


def find_path_cost(state: GameState, unit: Unit, to: HexCoord) -> int | None:
    """Breadth-first search for the cheapest route within the unit's movement.

    Every step costs one movement point. Tiles off the map, impassable tiles
    and tiles holding another tribe's unit cannot be entered. Returns None
    when the destination cannot be reached this turn.
    """
    blocked = {hex_key(u.position) for u in state.units.values() if u.owner != unit.owner}
    target = hex_key(to)
    start = hex_key(unit.position)
    costs = {start: 0}
    frontier = deque([unit.position])

    while frontier:
        current = frontier.popleft()
        cost = costs[hex_key(current)] + 1
        if cost > unit.movement_remaining:
            continue
        for neighbor in hex_neighbors(current):
            key = hex_key(neighbor)
            if key in costs or key in blocked:
                continue
            tile = state.map.tiles.get(key)
            if tile is None or tile.terrain in IMPASSABLE_TERRAIN:
                continue
            if key == target:
                return cost
            costs[key] = cost
            frontier.append(neighbor)

    return None


def check_move(state: GameState, unit: Unit, to: HexCoord) -> ValidationResult:
    if unit.movement_remaining <= 0:
        return ValidationResult.error("NO_MOVEMENT", "Unit has no movement remaining")

    tile = state.map.tiles.get(hex_key(to))
    if tile is None:
        return ValidationResult.error("TILE_NOT_FOUND", "No tile at this location")
    if tile.terrain in IMPASSABLE_TERRAIN:
        return ValidationResult.error("IMPASSABLE_TERRAIN", f"Cannot enter {tile.terrain.value}")

    distance = hex_distance(unit.position, to)
    if distance == 0:
        return ValidationResult.error("ALREADY_THERE", "Unit is already on that tile")
    if distance > unit.movement_remaining:
        return ValidationResult.error("INSUFFICIENT_MOVEMENT", "Not enough movement points")

    destination = hex_key(to)
    if any(u.owner != unit.owner and hex_key(u.position) == destination for u in state.units.values()):
        return ValidationResult.error("TILE_OCCUPIED", "Tile is occupied by another tribe's unit")

    if find_path_cost(state, unit, to) is None:
        return ValidationResult.error("NO_PATH", "No open path within the unit's movement")

    return ValidationResult.ok()


def process_move_unit(state: GameState, tribe_id: str, unit_id: str, to: HexCoord) -> ProcessResult:
    control = check_unit_control(state, unit_id, tribe_id)
    if not control.is_valid:
        return ProcessResult.failure(control.error_code, control.error_message)

    unit = state.units[unit_id]
    check = check_move(state, unit, to)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    cost = find_path_cost(state, unit, to)
    moved = unit.model_copy(
        update={
            "position": to,
            "movement_remaining": max(0, unit.movement_remaining - cost),
            "has_acted": True,
        }
    )
    new_state = reveal_around(update_unit(state, moved), tribe_id, to)

    logger.debug("Unit moved: id=%s, to=%s, cost=%d", unit_id, hex_key(to), cost)
    events: list[AnyGameEvent] = [
        UnitMoved(
            unit_id=unit_id,
            tribe_id=tribe_id,
            from_position=unit.position,
            to_position=to,
            movement_remaining=moved.movement_remaining,
        )
    ]
    return ProcessResult.ok(new_state, events)


# =============================================================================
# Builders
# =============================================================================


def check_build_improvement(
    state: GameState,
    unit: Unit,
    improvement: str,
) -> ValidationResult:
    if unit.type != "builder":
        return ValidationResult.error("NOT_A_BUILDER", "Only builders can build improvements")
    if unit.has_acted:
        return ValidationResult.error("UNIT_ALREADY_ACTED", "Builder has already acted this turn")
    if unit.build_charges <= 0:
        return ValidationResult.error("NO_BUILD_CHARGES", "Builder has no charges left")

    definition = IMPROVEMENT_DEFINITIONS.get(improvement)
    if definition is None:
        return ValidationResult.error("IMPROVEMENT_NOT_FOUND", f"Unknown improvement '{improvement}'")

    tile = state.map.tiles.get(hex_key(unit.position))
    if tile is None:
        return ValidationResult.error("TILE_NOT_FOUND", "No tile at this location")
    if tile.improvement is not None:
        return ValidationResult.error("TILE_ALREADY_IMPROVED", "Tile already improved")
    if tile.owner != unit.owner:
        return ValidationResult.error("TILE_NOT_OWNED", "Tile not owned by your tribe")
    if tile.terrain not in definition.valid_terrain and not (
        tile.resource is not None and tile.resource.type in definition.valid_resources
    ):
        return ValidationResult.error(
            "INVALID_IMPROVEMENT_TERRAIN",
            f"{definition.name} cannot be built on {tile.terrain.value}",
        )

    if definition.prerequisite_tech is not None:
        player = get_player(state, unit.owner)
        if player is None or definition.prerequisite_tech not in player.researched_techs:
            return ValidationResult.error(
                "TECH_REQUIRED", f"Requires {definition.prerequisite_tech}"
            )

    return ValidationResult.ok()


def process_build_improvement(
    state: GameState,
    tribe_id: str,
    builder_id: str,
    improvement: str,
) -> ProcessResult:
    """Improve the builder's tile; a matching resource becomes improved too.

    The builder spends one charge and is removed when none remain.
    """
    control = check_unit_control(state, builder_id, tribe_id)
    if not control.is_valid:
        return ProcessResult.failure(control.error_code, control.error_message)

    builder = state.units[builder_id]
    check = check_build_improvement(state, builder, improvement)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    key = hex_key(builder.position)
    tile = state.map.tiles[key]
    update: dict = {"improvement": improvement}
    resource = tile.resource
    if resource is not None and resource.type in IMPROVEMENT_DEFINITIONS[improvement].valid_resources:
        update["resource"] = resource.model_copy(update={"improved": True})

    new_map = state.map.model_copy(
        update={"tiles": {**state.map.tiles, key: tile.model_copy(update=update)}}
    )
    new_state = state.model_copy(update={"map": new_map})

    charges = builder.build_charges - 1
    if charges <= 0:
        new_state = remove_unit(new_state, builder_id)
    else:
        new_state = update_unit(
            new_state,
            builder.model_copy(
                update={"build_charges": charges, "has_acted": True, "movement_remaining": 0}
            ),
        )

    logger.info(
        "Improvement built: tile=%s, improvement=%s, charges_left=%d",
        key,
        improvement,
        max(0, charges),
    )
    return ProcessResult.ok(
        new_state,
        [
            ImprovementBuilt(
                tribe_id=tribe_id,
                builder_id=builder_id,
                position=builder.position,
                improvement=improvement,
                charges_remaining=max(0, charges),
            )
        ],
    )


# =============================================================================
# Experience and promotions
# =============================================================================


def get_xp_for_next_level(unit: Unit) -> int:
    return unit.level * XP_TO_LEVEL


def can_level_up(unit: Unit) -> bool:
    return unit.experience >= get_xp_for_next_level(unit)


def get_available_promotions(unit: Unit) -> list[str]:
    return [
        promotion.id
        for promotion in PROMOTION_DEFINITIONS.values()
        if promotion.id not in unit.promotions
        and (promotion.prerequisite is None or promotion.prerequisite in unit.promotions)
    ]


def process_select_promotion(
    state: GameState,
    tribe_id: str,
    unit_id: str,
    promotion_id: str,
) -> ProcessResult:
    control = check_unit_control(state, unit_id, tribe_id)
    if not control.is_valid:
        return ProcessResult.failure(control.error_code, control.error_message)

    unit = state.units[unit_id]
    promotion = PROMOTION_DEFINITIONS.get(promotion_id)
    if promotion is None:
        return ProcessResult.failure("PROMOTION_NOT_FOUND", f"Unknown promotion '{promotion_id}'")
    if not can_level_up(unit):
        return ProcessResult.failure(
            "INSUFFICIENT_XP",
            f"Unit needs {get_xp_for_next_level(unit)} XP to level up",
        )
    if promotion_id in unit.promotions:
        return ProcessResult.failure("PROMOTION_ALREADY_TAKEN", "Unit already has this promotion")
    if promotion.prerequisite is not None and promotion.prerequisite not in unit.promotions:
        return ProcessResult.failure(
            "PROMOTION_PREREQUISITE_MISSING", f"Requires promotion {promotion.prerequisite}"
        )

    update = {
        "level": unit.level + 1,
        "experience": unit.experience - get_xp_for_next_level(unit),
        "promotions": [*unit.promotions, promotion_id],
        "max_movement": unit.max_movement + promotion.movement_bonus,
    }
    if unit.combat_strength:
        update["combat_strength"] = unit.combat_strength + promotion.combat_bonus
    if unit.ranged_strength:
        update["ranged_strength"] = unit.ranged_strength + promotion.combat_bonus
    promoted = unit.model_copy(update=update)

    logger.info("Unit promoted: id=%s, promotion=%s, level=%d", unit_id, promotion_id, promoted.level)
    return ProcessResult.ok(
        update_unit(state, promoted),
        [PromotionSelected(unit_id=unit_id, promotion_id=promotion_id, level=promoted.level)],
    )


# =============================================================================
# Great people
# =============================================================================


def process_use_great_person(state: GameState, tribe_id: str, unit_id: str) -> ProcessResult:
    """Consume a great person for its one-off effect.

    Gold goes to the treasury, research and culture to the current project,
    production to the capital's current production carry.
    """
    control = check_unit_control(state, unit_id, tribe_id)
    if not control.is_valid:
        return ProcessResult.failure(control.error_code, control.error_message)

    unit = state.units[unit_id]
    if unit.type != "great_person" or unit.great_person_kind not in GREAT_PERSON_EFFECTS:
        return ProcessResult.failure("NOT_A_GREAT_PERSON", "Unit is not a great person")

    effect, amount = GREAT_PERSON_EFFECTS[unit.great_person_kind]
    player = get_player(state, tribe_id)
    new_state = remove_unit(state, unit_id)

    if effect == "gold":
        new_state = update_player(new_state, player.model_copy(update={"treasury": player.treasury + amount}))
    elif effect == "research":
        new_state = update_player(
            new_state, player.model_copy(update={"research_progress": player.research_progress + amount})
        )
    elif effect == "culture":
        new_state = update_player(
            new_state, player.model_copy(update={"culture_progress": player.culture_progress + amount})
        )
    elif effect == "production":
        capital = next(
            (s for s in new_state.settlements.values() if s.owner == tribe_id and s.is_capital),
            None,
        )
        if capital is None:
            return ProcessResult.failure("NO_CAPITAL", "A capital is needed to use this great person")
        settlements = {
            **new_state.settlements,
            capital.id: capital.model_copy(
                update={"current_production": capital.current_production + amount}
            ),
        }
        new_state = new_state.model_copy(update={"settlements": settlements})

    logger.info(
        "Great person used: id=%s, kind=%s, effect=%s, amount=%d",
        unit_id,
        unit.great_person_kind,
        effect,
        amount,
    )
    return ProcessResult.ok(
        new_state,
        [
            GreatPersonUsed(
                unit_id=unit_id,
                tribe_id=tribe_id,
                kind=unit.great_person_kind,
                effect=effect,
                amount=amount,
            )
        ],
    )



def spawn_great_people(state: GameState, tribe_id: str) -> tuple[GameState, list[AnyGameEvent]]:
    """Roll for the first great person whose threshold the tribe has reached.

    Each great person can be earned by one tribe per game, and at most one
    spawns per turn, at the capital or else the oldest settlement.
    """
    player = get_player(state, tribe_id)
    settlements = [s for s in state.settlements.values() if s.owner == tribe_id]
    if player is None or not settlements:
        return state, []
    home = next((s for s in settlements if s.is_capital), settlements[0])

    earned = {gp for p in state.players for gp in p.great_people_earned}
    rng = derive_rng(state.seed, state.turn, f"{tribe_id}:great_people")
    for definition in GREAT_PERSON_DEFINITIONS.values():
        if definition.id in earned:
            continue
        if getattr(player.great_people, definition.stat) < definition.amount:
            continue
        if rng.random() > GREAT_PERSON_SPAWN_CHANCE:
            continue

        new_state, unit = spawn_unit(state, "great_person", tribe_id, home.position)
        unit = unit.model_copy(update={"great_person_kind": definition.kind})
        new_state = update_unit(new_state, unit)
        new_state = update_player(
            new_state,
            player.model_copy(update={"great_people_earned": [*player.great_people_earned, definition.id]}),
        )
        logger.info(
            "Great person earned: tribe=%s, great_person=%s, unit=%s",
            tribe_id,
            definition.id,
            unit.id,
        )
        return new_state, [
            GreatPersonEarned(
                unit_id=unit.id,
                tribe_id=tribe_id,
                great_person_id=definition.id,
                kind=definition.kind,
            )
        ]
    return state, []


# =============================================================================
# End of turn
# =============================================================================


def calculate_healing(state: GameState, unit: Unit) -> int:
    """Healing a unit receives at the end of its owner's turn; zero if it acted."""
    if unit.has_acted or unit.health >= unit.max_health:
        return 0

    key = hex_key(unit.position)
    heal = HEAL_PER_TURN
    if any(s.owner == unit.owner and hex_key(s.position) == key for s in state.settlements.values()):
        heal = HEAL_IN_SETTLEMENT
    else:
        tile = state.map.tiles.get(key)
        if tile is not None and tile.owner == unit.owner:
            heal = HEAL_IN_TERRITORY

    for promotion_id in unit.promotions:
        promotion = PROMOTION_DEFINITIONS.get(promotion_id)
        if promotion is not None:
            heal += promotion.heal_bonus
    return heal


def process_unit_healing(state: GameState, tribe_id: str) -> GameState:
    units = dict(state.units)
    for unit_id, unit in state.units.items():
        if unit.owner != tribe_id:
            continue
        heal = calculate_healing(state, unit)
        if heal > 0:
            units[unit_id] = unit.model_copy(
                update={"health": min(unit.max_health, unit.health + heal)}
            )
    return state.model_copy(update={"units": units})


def reset_player_units(state: GameState, tribe_id: str) -> GameState:
    units = {
        unit_id: (
            unit.model_copy(update={"movement_remaining": unit.max_movement, "has_acted": False})
            if unit.owner == tribe_id
            else unit
        )
        for unit_id, unit in state.units.items()
    }
    return state.model_copy(update={"units": units})
