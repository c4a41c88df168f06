"""Settlement lifecycle: founding, yields, growth, health, borders and milestones."""

import logging
import math
from dataclasses import dataclass

from tribes_core.schemas.game_state import (
    GameState,
    HexCoord,
    MilestoneChoice,
    Sequences,
    Settlement,
    Tile,
    TribeName,
    Yields,
)

from .events import AnyGameEvent, MilestoneSelected, SettlementFounded, UnitCreated
from .hexgrid import hex_distance, hex_key, hex_range
from .lookups import get_player, get_tribe_settlements, remove_unit, update_player, update_settlement
from .rules import (
    BUILDING_DEFINITIONS,
    FEATURE_YIELDS,
    IMPASSABLE_TERRAIN,
    IMPROVEMENT_DEFINITIONS,
    MILESTONE_REWARDS,
    POLICY_DEFINITIONS,
    RESOURCE_YIELDS,
    TERRAIN_YIELDS,
    TRIBE_DEFINITIONS,
    WONDER_DEFINITIONS,
    MilestoneOption,
    get_tribe_bonuses,
)
from .sequences import allocate_entity_id, allocate_settlement_name, derive_rng
from .units import check_unit_control, reveal_around, spawn_unit
from .validation import ProcessResult, ValidationResult
from .yields import ZERO_YIELDS, add_yields

logger = logging.getLogger(__name__)

BASE_SETTLEMENT_HEALTH = 30
HEALTH_PER_LEVEL = 5
REGENERATION_PER_TURN = 5

LEVEL_THRESHOLDS = [0, 15, 30, 50, 75]  # Population needed for levels 1..5
BORDER_THRESHOLDS = [0, 10, 30, 60, 100]  # Culture needed for border radius 1..5
MAX_BORDER_RADIUS = 5

MIN_SETTLEMENT_SPACING = 2  # No founding within this many hexes of any settlement
FOUNDING_CLAIM_RADIUS = 1
WORKED_TILE_RADIUS = 2

SETTLEMENT_CENTER_YIELDS = Yields(gold=2, production=2)


@dataclass
class GrowthResult:
    """Outcome of one turn of settlement growth."""

    settlement: Settlement
    grew: bool = False
    reached_milestone: bool = False


@dataclass
class DamageResult:
    settlement: Settlement
    conquered: bool = False


# =============================================================================
# Creation and founding
# =============================================================================


def population_threshold(population: int) -> int:
    """Growth needed to reach the next population (linear)."""
    return 10 + population * 3


def settlement_level(population: int) -> int:
    for index in range(len(LEVEL_THRESHOLDS) - 1, -1, -1):
        if population >= LEVEL_THRESHOLDS[index]:
            return index + 1
    return 1


def max_health_for_level(level: int) -> int:
    return BASE_SETTLEMENT_HEALTH + (level - 1) * HEALTH_PER_LEVEL


def create_settlement(
    sequences: Sequences,
    owner: str,
    position: HexCoord,
    tribe_name: TribeName | None = None,
    is_capital: bool = False,
    name: str | None = None,
    turn: int = 0,
) -> tuple[Settlement, Sequences]:
    """Create a population-1 settlement and advance the id/name sequences.

    Args:
        sequences: The game's current allocators.
        owner: Tribe id of the founder.
        position: Hex the settlement occupies.
        tribe_name: Tribe template used to pick a name; fallback names otherwise.
        is_capital: Whether this is the owner's capital.
        name: Explicit name; skips the name allocator when given.
        turn: Turn the settlement was founded on.

    Returns:
        The new settlement and the advanced sequences.
    """
    settlement_id, sequences = allocate_entity_id(sequences, "settlement")
    if name is None:
        name, sequences = allocate_settlement_name(sequences, owner, tribe_name)

    health = max_health_for_level(1)
    settlement = Settlement(
        id=settlement_id,
        name=name,
        owner=owner,
        position=position,
        population=1,
        level=1,
        population_progress=0,
        population_threshold=population_threshold(1),
        health=health,
        max_health=health,
        is_capital=is_capital,
        founded_turn=turn,
    )
    logger.debug("Created settlement: id=%s, name=%s, owner=%s", settlement_id, name, owner)
    return settlement, sequences


def check_founding_location(state: GameState, position: HexCoord) -> ValidationResult:
    """Check whether a settlement may be founded on a hex."""
    tile = state.map.tiles.get(hex_key(position))
    if tile is None:
        return ValidationResult.error("TILE_NOT_FOUND", "No tile at this location")

    if tile.terrain in IMPASSABLE_TERRAIN:
        return ValidationResult.error(
            "INVALID_TERRAIN", f"Cannot found a settlement on {tile.terrain.value}"
        )

    for settlement in state.settlements.values():
        if hex_distance(settlement.position, position) <= MIN_SETTLEMENT_SPACING:
            return ValidationResult.error(
                "TOO_CLOSE_TO_SETTLEMENT",
                f"Too close to {settlement.name}",
            )

    return ValidationResult.ok()


def can_found_settlement(state: GameState, position: HexCoord) -> bool:
    return check_founding_location(state, position).is_valid


def _claim_tiles(
    state: GameState,
    owner: str,
    coords: list[HexCoord],
    skip_impassable: bool,
) -> tuple[GameState, int]:
    """Claim every unowned tile in coords; owned tiles are never taken."""
    tiles = state.map.tiles
    claimed: dict[str, Tile] = {}
    for coord in coords:
        key = hex_key(coord)
        tile = tiles.get(key)
        if tile is None or tile.owner is not None:
            continue
        if skip_impassable and tile.terrain in IMPASSABLE_TERRAIN:
            continue
        claimed[key] = tile.model_copy(update={"owner": owner})

    if not claimed:
        return state, 0

    new_map = state.map.model_copy(update={"tiles": {**tiles, **claimed}})
    return state.model_copy(update={"map": new_map}), len(claimed)


def add_settlement(state: GameState, settlement: Settlement) -> GameState:
    """Store a settlement and claim the unowned tiles around it."""
    state = update_settlement(state, settlement)
    state, claimed = _claim_tiles(
        state,
        settlement.owner,
        hex_range(settlement.position, FOUNDING_CLAIM_RADIUS),
        skip_impassable=False,
    )
    logger.debug("Settlement added: id=%s, tiles_claimed=%d", settlement.id, claimed)
    return state


# =============================================================================
# Yields
# =============================================================================


def calculate_tile_yields(tile: Tile) -> Yields:
    yields = TERRAIN_YIELDS.get(tile.terrain, ZERO_YIELDS)

    if tile.feature is not None:
        yields = add_yields(yields, FEATURE_YIELDS[tile.feature])

    if tile.improvement is not None and tile.improvement in IMPROVEMENT_DEFINITIONS:
        yields = add_yields(yields, IMPROVEMENT_DEFINITIONS[tile.improvement].yields)

    resource = tile.resource
    if resource is not None and resource.revealed and resource.improved:
        yields = add_yields(yields, RESOURCE_YIELDS.get(resource.type, ZERO_YIELDS))

    return yields


def get_settlement_tiles(state: GameState, settlement: Settlement) -> list[Tile]:
    """Tiles worked by a settlement (every tile within the worked radius)."""
    tiles = []
    for coord in hex_range(settlement.position, WORKED_TILE_RADIUS):
        tile = state.map.tiles.get(hex_key(coord))
        if tile is not None:
            tiles.append(tile)
    return tiles


def calculate_settlement_yields(state: GameState, settlement: Settlement) -> Yields:
    """Base yields: the settlement center plus all worked tiles."""
    yields = SETTLEMENT_CENTER_YIELDS
    for tile in get_settlement_tiles(state, settlement):
        yields = add_yields(yields, calculate_tile_yields(tile))
    return yields


def calculate_building_yields(state: GameState, settlement: Settlement) -> Yields:
    """Yields from buildings and wonders in a settlement, with tribe building bonuses."""
    player = get_player(state, settlement.owner)
    bonuses = get_tribe_bonuses(player.tribe_name) if player is not None else None

    yields = ZERO_YIELDS
    for building_id in settlement.buildings:
        building = BUILDING_DEFINITIONS.get(building_id)
        if building is None:
            continue
        building_yields = building.yields
        if bonuses is not None:
            if building.category == "economy" and bonuses.gold_building_percent:
                building_yields = building_yields.model_copy(
                    update={"gold": math.floor(building_yields.gold * (1 + bonuses.gold_building_percent))}
                )
            elif building.category == "culture" and bonuses.culture_building_percent:
                building_yields = building_yields.model_copy(
                    update={
                        "culture": math.floor(
                            building_yields.culture * (1 + bonuses.culture_building_percent)
                        )
                    }
                )
            elif building.category == "production" and bonuses.production_building_percent:
                building_yields = building_yields.model_copy(
                    update={
                        "production": math.floor(
                            building_yields.production * (1 + bonuses.production_building_percent)
                        )
                    }
                )
        yields = add_yields(yields, building_yields)

    for wonder in state.wonders:
        if wonder.settlement_id == settlement.id and wonder.id in WONDER_DEFINITIONS:
            yields = add_yields(yields, WONDER_DEFINITIONS[wonder.id].yields)

    return yields


def calculate_total_settlement_yields(state: GameState, settlement: Settlement) -> Yields:
    return add_yields(
        calculate_settlement_yields(state, settlement),
        calculate_building_yields(state, settlement),
    )


def calculate_player_yields(state: GameState, tribe_id: str) -> Yields:
    """Per-turn yields of a tribe: settlements, buildings, slotted policies, tribe bonuses."""
    yields = ZERO_YIELDS
    for settlement in state.settlements.values():
        if settlement.owner == tribe_id:
            yields = add_yields(yields, calculate_total_settlement_yields(state, settlement))

    player = get_player(state, tribe_id)
    if player is None:
        return yields

    for policy_id in player.policies.active:
        policy = POLICY_DEFINITIONS.get(policy_id)
        if policy is not None:
            yields = add_yields(yields, policy.yields)

    bonuses = get_tribe_bonuses(player.tribe_name)
    return yields.model_copy(
        update={
            "research": math.floor(yields.research * (1 + bonuses.research_percent)),
            "culture": math.floor(yields.culture * (1 + bonuses.culture_percent)),
        }
    )


# =============================================================================
# Growth, health and borders
# =============================================================================


def process_settlement_growth(settlement: Settlement, growth: int) -> GrowthResult:
    """Accumulate growth; on reaching the threshold add one population.

    Progress wraps to the remainder. A level increase raises max health by
    HEALTH_PER_LEVEL per level, heals by the same amount and flags a milestone.
    """
    progress = settlement.population_progress + growth
    if progress < settlement.population_threshold:
        return GrowthResult(
            settlement=settlement.model_copy(update={"population_progress": max(0, progress)})
        )

    population = settlement.population + 1
    level = settlement_level(population)
    levels_gained = level - settlement.level
    update = {
        "population": population,
        "level": level,
        "population_progress": progress - settlement.population_threshold,
        "population_threshold": population_threshold(population),
    }
    if levels_gained > 0:
        health_gain = levels_gained * HEALTH_PER_LEVEL
        max_health = settlement.max_health + health_gain
        update["max_health"] = max_health
        update["health"] = min(max_health, settlement.health + health_gain)

    logger.debug(
        "Settlement grew: id=%s, population=%d, level=%d",
        settlement.id,
        population,
        level,
    )
    return GrowthResult(
        settlement=settlement.model_copy(update=update),
        grew=True,
        reached_milestone=levels_gained > 0,
    )


def damage_settlement(settlement: Settlement, damage: int) -> DamageResult:
    """Apply damage, clamping health at zero; zero health means conquered."""
    health = max(0, settlement.health - max(0, damage))
    return DamageResult(
        settlement=settlement.model_copy(update={"health": health}),
        conquered=health == 0,
    )


def process_settlement_regeneration(settlement: Settlement) -> Settlement:
    if settlement.health >= settlement.max_health:
        return settlement
    health = min(settlement.max_health, settlement.health + REGENERATION_PER_TURN)
    return settlement.model_copy(update={"health": health})


def get_border_radius(culture_accumulated: int) -> int:
    radius = 1
    for index in range(1, len(BORDER_THRESHOLDS)):
        if culture_accumulated >= BORDER_THRESHOLDS[index]:
            radius = index + 1
        else:
            break
    return min(radius, MAX_BORDER_RADIUS)


def expand_settlement_borders(state: GameState, settlement_id: str) -> GameState:
    """Claim unowned land tiles within the settlement's current border radius."""
    settlement = state.settlements.get(settlement_id)
    if settlement is None:
        return state

    radius = get_border_radius(settlement.culture_accumulated)
    state, claimed = _claim_tiles(
        state,
        settlement.owner,
        hex_range(settlement.position, radius),
        skip_impassable=True,
    )
    if claimed:
        logger.info(
            "Borders expanded: settlement=%s, radius=%d, tiles_claimed=%d",
            settlement_id,
            radius,
            claimed,
        )
    return state


# =============================================================================
# Milestones
# =============================================================================


def get_pending_milestones(settlement: Settlement) -> list[int]:
    """Levels reached by the settlement whose reward has not been chosen yet."""
    chosen = {m.level for m in settlement.milestones_chosen}
    return [
        level
        for level in range(2, settlement.level + 1)
        if level in MILESTONE_REWARDS and level not in chosen
    ]


def check_milestone_selection(settlement: Settlement, level: int) -> ValidationResult:
    if level not in MILESTONE_REWARDS:
        return ValidationResult.error("INVALID_MILESTONE", f"Level {level} has no milestone")
    if level > settlement.level:
        return ValidationResult.error(
            "MILESTONE_NOT_REACHED", f"Settlement has not reached level {level}"
        )
    if any(m.level == level for m in settlement.milestones_chosen):
        return ValidationResult.error(
            "MILESTONE_ALREADY_CHOSEN", f"Milestone for level {level} already chosen"
        )
    return ValidationResult.ok()


def select_milestone(
    state: GameState,
    settlement_id: str,
    level: int,
    choice: str,
) -> tuple[GameState, MilestoneOption]:
    """Record a milestone choice and apply its reward.

    The caller validates with check_milestone_selection first. Free units are
    spawned by the caller, since unit creation needs the game's rng.
    """
    settlement = state.settlements[settlement_id]
    reward = MILESTONE_REWARDS[level]
    option = reward.option_a if choice == "a" else reward.option_b

    settlement = settlement.model_copy(
        update={
            "milestones_chosen": [
                *settlement.milestones_chosen,
                MilestoneChoice(level=level, choice=choice),
            ]
        }
    )

    if option.effect == "culture_boost":
        settlement = settlement.model_copy(
            update={"culture_accumulated": settlement.culture_accumulated + option.amount}
        )
        state = expand_settlement_borders(update_settlement(state, settlement), settlement_id)
    elif option.effect == "growth_boost":
        settlement = process_settlement_growth(settlement, option.amount).settlement
        state = update_settlement(state, settlement)
    else:
        state = update_settlement(state, settlement)

    if option.effect == "instant_gold":
        player = get_player(state, settlement.owner)
        if player is not None:
            state = update_player(
                state, player.model_copy(update={"treasury": player.treasury + option.amount})
            )

    logger.info(
        "Milestone selected: settlement=%s, level=%d, choice=%s, effect=%s",
        settlement_id,
        level,
        choice,
        option.effect,
    )
    return state, option


def process_select_milestone(
    state: GameState,
    tribe_id: str,
    settlement_id: str,
    level: int,
    choice: str,
) -> ProcessResult:
    settlement = state.settlements.get(settlement_id)
    if settlement is None:
        return ProcessResult.failure("SETTLEMENT_NOT_FOUND", "Settlement not found")
    if settlement.owner != tribe_id:
        return ProcessResult.failure("NOT_OWNER", "Settlement not owned by current player")

    check = check_milestone_selection(settlement, level)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    new_state, option = select_milestone(state, settlement_id, level, choice)
    events: list[AnyGameEvent] = [
        MilestoneSelected(
            settlement_id=settlement_id,
            level=level,
            choice=choice,
            effect=option.effect,
        )
    ]

    if option.effect == "free_unit":
        unit_type = option.unit_type
        if unit_type is None:
            player = get_player(new_state, tribe_id)
            unit_type = TRIBE_DEFINITIONS[player.tribe_name].unique_unit
        rng = derive_rng(state.seed, state.turn, f"{tribe_id}:{settlement_id}:milestone:{level}")
        new_state, unit = spawn_unit(new_state, unit_type, tribe_id, settlement.position, rng)
        events.append(
            UnitCreated(
                unit_id=unit.id,
                tribe_id=tribe_id,
                unit_type=unit.type,
                position=unit.position,
                rarity=unit.rarity,
            )
        )

    return ProcessResult.ok(new_state, events)


# =============================================================================
# Founding
# =============================================================================


def process_found_settlement(state: GameState, tribe_id: str, settler_id: str) -> ProcessResult:
    """Consume a settler to found a settlement on its hex.

    A tribe's first settlement becomes its capital.
    """
    control = check_unit_control(state, settler_id, tribe_id)
    if not control.is_valid:
        return ProcessResult.failure(control.error_code, control.error_message)

    settler = state.units[settler_id]
    if settler.type != "settler":
        return ProcessResult.failure("NOT_A_SETTLER", "Only settlers can found settlements")

    location = check_founding_location(state, settler.position)
    if not location.is_valid:
        return ProcessResult.failure(location.error_code, location.error_message)

    player = get_player(state, tribe_id)
    is_capital = not get_tribe_settlements(state, tribe_id)
    settlement, sequences = create_settlement(
        state.sequences,
        tribe_id,
        settler.position,
        tribe_name=player.tribe_name,
        is_capital=is_capital,
        turn=state.turn,
    )

    new_state = remove_unit(state.model_copy(update={"sequences": sequences}), settler_id)
    new_state = add_settlement(new_state, settlement)
    new_state = reveal_around(new_state, tribe_id, settlement.position)

    logger.info(
        "Settlement founded: id=%s, name=%s, owner=%s, capital=%s",
        settlement.id,
        settlement.name,
        tribe_id,
        is_capital,
    )
    events: list[AnyGameEvent] = [
        SettlementFounded(
            settlement_id=settlement.id,
            tribe_id=tribe_id,
            name=settlement.name,
            position=settlement.position,
            is_capital=is_capital,
        )
    ]
    return ProcessResult.ok(new_state, events)
