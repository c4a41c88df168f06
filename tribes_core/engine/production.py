"""Settlement production queue.

Each settlement owns a FIFO queue of ProductionItems. At the end of its
owner's turn the settlement's production, plus the carry left over from the
previous turn, is poured into the queue head-to-tail; whatever is not
consumed becomes next turn's carry (Settlement.current_production).
"""

import logging
import math
from dataclasses import dataclass, field

from tribes_core.schemas.game_state import (
    BuiltWonder,
    GameState,
    ProductionItem,
    ProductionType,
    Settlement,
)

from .economy import can_afford, deduct_gold
from .events import (
    AnyGameEvent,
    ItemPurchased,
    ProductionCancelled,
    ProductionCompleted,
    ProductionQueued,
    UnitCreated,
)
from .lookups import get_player, update_player, update_settlement
from .rules import (
    BUILDING_DEFINITIONS,
    UNIT_DEFINITIONS,
    WONDER_DEFINITIONS,
    golden_age_yield_bonus,
    get_tribe_bonuses,
    get_unit_production_bonus,
)
from .sequences import derive_rng
from .settlements import calculate_building_yields, calculate_settlement_yields
from .units import spawn_unit
from .validation import ProcessResult, ValidationResult

logger = logging.getLogger(__name__)

PURCHASE_GOLD_MULTIPLIER = 4


@dataclass
class ProductionResult:
    settlement: Settlement
    completed: list[ProductionItem] = field(default_factory=list)


@dataclass
class AvailableProductionItem:
    type: ProductionType
    id: str
    cost: int
    turns_remaining: int | None


# =============================================================================
# Queue processing
# =============================================================================


def calculate_settlement_production(state: GameState, settlement: Settlement) -> int:
    """Production a settlement generates this turn, golden age included."""
    total = (
        calculate_settlement_yields(state, settlement).production
        + calculate_building_yields(state, settlement).production
    )
    player = get_player(state, settlement.owner)
    if player is not None:
        bonus = golden_age_yield_bonus(player.golden_age, "production")
        if bonus > 0:
            total = math.floor(total * (1 + bonus))
    return total


def _unit_bonus(state: GameState, settlement: Settlement, item: ProductionItem) -> float:
    if item.type != ProductionType.UNIT:
        return 0.0
    player = get_player(state, settlement.owner)
    if player is None:
        return 0.0
    return get_unit_production_bonus(item.id, get_tribe_bonuses(player.tribe_name))


def process_production(state: GameState, settlement_id: str) -> ProductionResult:
    """Run one turn of production for a settlement.

    The head item receives the whole pool. Units that benefit from a tribe
    speed bonus see the pool scaled by (1 + bonus); when such an item
    completes, only ceil(remaining / (1 + bonus)) of the unscaled pool is
    spent. An item that does not complete absorbs the rest of the pool and the
    walk stops.

    Returns:
        The updated settlement (not yet stored in state) and the items that
        completed, in completion order.
    """
    settlement = state.settlements[settlement_id]
    if not settlement.production_queue:
        return ProductionResult(settlement=settlement)

    overflow = settlement.current_production + calculate_settlement_production(state, settlement)
    completed: list[ProductionItem] = []
    queue: list[ProductionItem] = []
    index = 0
    items = settlement.production_queue

    while overflow > 0 and index < len(items):
        item = items[index]
        remaining = item.cost - item.progress
        bonus = _unit_bonus(state, settlement, item)
        effective = math.floor(overflow * (1 + bonus)) if bonus > 0 else overflow

        if effective >= remaining:
            completed.append(item)
            used = math.ceil(remaining / (1 + bonus)) if bonus > 0 else remaining
            overflow -= min(used, overflow)
        else:
            queue.append(item.model_copy(update={"progress": item.progress + effective}))
            overflow = 0
        index += 1

    queue.extend(items[index:])

    logger.debug(
        "Production processed: settlement=%s, completed=%d, carry=%d",
        settlement_id,
        len(completed),
        overflow,
    )
    return ProductionResult(
        settlement=settlement.model_copy(
            update={"production_queue": queue, "current_production": overflow}
        ),
        completed=completed,
    )


def complete_production_item(
    state: GameState,
    settlement_id: str,
    item: ProductionItem,
) -> tuple[GameState, list[AnyGameEvent]]:
    """Apply a finished item: spawn the unit, add the building or record the wonder."""
    settlement = state.settlements.get(settlement_id)
    if settlement is None:
        logger.warning("Completed item for missing settlement dropped: %s", settlement_id)
        return state, []

    events: list[AnyGameEvent] = [
        ProductionCompleted(settlement_id=settlement_id, item_type=item.type, item_id=item.id)
    ]

    if item.type == ProductionType.UNIT:
        rng = derive_rng(state.seed, state.turn, f"{settlement.owner}:{settlement_id}:{item.id}")
        state, unit = spawn_unit(state, item.id, settlement.owner, settlement.position, rng)
        events.append(
            UnitCreated(
                unit_id=unit.id,
                tribe_id=unit.owner,
                unit_type=unit.type,
                position=unit.position,
                rarity=unit.rarity,
            )
        )
    elif item.type == ProductionType.BUILDING:
        if item.id not in settlement.buildings:
            state = update_settlement(
                state, settlement.model_copy(update={"buildings": [*settlement.buildings, item.id]})
            )
            state = _increment_counter(state, settlement.owner, "buildings_built")
    else:
        if any(w.id == item.id for w in state.wonders):
            logger.warning("Wonder already built elsewhere, dropping: %s", item.id)
            return state, []
        wonder = BuiltWonder(
            id=item.id, owner=settlement.owner, settlement_id=settlement_id, turn=state.turn
        )
        state = state.model_copy(update={"wonders": [*state.wonders, wonder]})
        state = _increment_counter(state, settlement.owner, "wonders_built")

    logger.info(
        "Production completed: settlement=%s, type=%s, id=%s",
        settlement_id,
        item.type.value,
        item.id,
    )
    return state, events


def _increment_counter(state: GameState, tribe_id: str, counter: str) -> GameState:
    player = get_player(state, tribe_id)
    if player is None:
        return state
    great_people = player.great_people.model_copy(
        update={counter: getattr(player.great_people, counter) + 1}
    )
    return update_player(state, player.model_copy(update={"great_people": great_people}))


# =============================================================================
# Queue helpers
# =============================================================================


def add_to_production_queue(
    settlement: Settlement,
    item_type: ProductionType,
    item_id: str,
    cost: int,
) -> Settlement:
    item = ProductionItem(type=item_type, id=item_id, cost=cost, progress=0)
    return settlement.model_copy(update={"production_queue": [*settlement.production_queue, item]})


def remove_from_production_queue(settlement: Settlement, index: int) -> Settlement:
    queue = list(settlement.production_queue)
    if 0 <= index < len(queue):
        del queue[index]
    return settlement.model_copy(update={"production_queue": queue})


def move_up_in_queue(settlement: Settlement, index: int) -> Settlement:
    if index <= 0 or index >= len(settlement.production_queue):
        return settlement
    queue = list(settlement.production_queue)
    queue[index - 1], queue[index] = queue[index], queue[index - 1]
    return settlement.model_copy(update={"production_queue": queue})


def purchase_cost(production_cost: int) -> int:
    return production_cost * PURCHASE_GOLD_MULTIPLIER


# =============================================================================
# Queries
# =============================================================================


def get_item_cost(item_type: ProductionType, item_id: str) -> int | None:
    if item_type == ProductionType.UNIT:
        definition = UNIT_DEFINITIONS.get(item_id)
    elif item_type == ProductionType.BUILDING:
        definition = BUILDING_DEFINITIONS.get(item_id)
    else:
        definition = WONDER_DEFINITIONS.get(item_id)
    return definition.production_cost if definition is not None else None


def can_build_item(
    state: GameState,
    settlement: Settlement,
    item_type: ProductionType,
    item_id: str,
) -> ValidationResult:
    player = get_player(state, settlement.owner)
    researched = player.researched_techs if player is not None else set()

    if item_type == ProductionType.UNIT:
        definition = UNIT_DEFINITIONS.get(item_id)
        if definition is None:
            return ValidationResult.error("UNIT_NOT_FOUND", "Unit type does not exist")
        if definition.production_cost <= 0:
            return ValidationResult.error(
                "NOT_PRODUCIBLE", "This unit cannot be produced directly"
            )
        if definition.tribe is not None and (player is None or player.tribe_name != definition.tribe):
            return ValidationResult.error("WRONG_TRIBE", "Unique unit of another tribe")
        if definition.prerequisite_tech and definition.prerequisite_tech not in researched:
            return ValidationResult.error("TECH_REQUIRED", f"Requires {definition.prerequisite_tech}")
        return ValidationResult.ok()

    if item_type == ProductionType.BUILDING:
        building = BUILDING_DEFINITIONS.get(item_id)
        if building is None:
            return ValidationResult.error("BUILDING_NOT_FOUND", "Building does not exist")
        if item_id in settlement.buildings:
            return ValidationResult.error(
                "BUILDING_EXISTS", "Building already exists in settlement"
            )
        if any(i.type == ProductionType.BUILDING and i.id == item_id for i in settlement.production_queue):
            return ValidationResult.error("ALREADY_QUEUED", "Building is already in the queue")
        if building.prerequisite_tech and building.prerequisite_tech not in researched:
            return ValidationResult.error("TECH_REQUIRED", f"Requires {building.prerequisite_tech}")
        return ValidationResult.ok()

    wonder = WONDER_DEFINITIONS.get(item_id)
    if wonder is None:
        return ValidationResult.error("WONDER_NOT_FOUND", "Wonder not found")
    if any(w.id == item_id for w in state.wonders):
        return ValidationResult.error("WONDER_ALREADY_BUILT", "Wonder already built by another tribe")
    if wonder.prerequisite_tech and wonder.prerequisite_tech not in researched:
        return ValidationResult.error("TECH_REQUIRED", f"Requires {wonder.prerequisite_tech}")
    for other in state.settlements.values():
        if other.owner != settlement.owner:
            continue
        if any(i.type == ProductionType.WONDER and i.id == item_id for i in other.production_queue):
            return ValidationResult.error(
                "WONDER_IN_PROGRESS", "Wonder is already being built by your tribe"
            )
    return ValidationResult.ok()


def calculate_turns_remaining(
    state: GameState,
    settlement: Settlement,
    cost: int,
    progress: int = 0,
) -> int | None:
    """Turns to finish an item of the given cost; None when production is zero."""
    production = calculate_settlement_production(state, settlement)
    if production <= 0:
        return None
    remaining = cost - progress - settlement.current_production
    return max(1, math.ceil(remaining / production))


def get_production_turns_remaining(state: GameState, settlement_id: str) -> int | None:
    """Turns until the head of the queue completes, tribe unit bonus included."""
    settlement = state.settlements.get(settlement_id)
    if settlement is None or not settlement.production_queue:
        return None

    item = settlement.production_queue[0]
    production = calculate_settlement_production(state, settlement)
    bonus = _unit_bonus(state, settlement, item)
    if bonus > 0:
        production = math.floor(production * (1 + bonus))
    if production <= 0:
        return None

    remaining = item.cost - item.progress - settlement.current_production
    return max(1, math.ceil(remaining / production))


def get_available_production(state: GameState, settlement_id: str) -> list[AvailableProductionItem]:
    settlement = state.settlements.get(settlement_id)
    if settlement is None:
        return []

    candidates = (
        [(ProductionType.UNIT, unit_type) for unit_type in UNIT_DEFINITIONS]
        + [(ProductionType.BUILDING, building_id) for building_id in BUILDING_DEFINITIONS]
        + [(ProductionType.WONDER, wonder_id) for wonder_id in WONDER_DEFINITIONS]
    )
    available = []
    for item_type, item_id in candidates:
        if not can_build_item(state, settlement, item_type, item_id).is_valid:
            continue
        cost = get_item_cost(item_type, item_id)
        available.append(
            AvailableProductionItem(
                type=item_type,
                id=item_id,
                cost=cost,
                turns_remaining=calculate_turns_remaining(state, settlement, cost),
            )
        )
    return available


# =============================================================================
# Action handlers
# =============================================================================


def _check_settlement(state: GameState, tribe_id: str, settlement_id: str) -> ValidationResult:
    settlement = state.settlements.get(settlement_id)
    if settlement is None:
        return ValidationResult.error("SETTLEMENT_NOT_FOUND", "Settlement not found")
    if settlement.owner != tribe_id:
        return ValidationResult.error("NOT_OWNER", "Settlement not owned by current player")
    return ValidationResult.ok()


def process_start_production(
    state: GameState,
    tribe_id: str,
    settlement_id: str,
    item_type: ProductionType,
    item_id: str,
) -> ProcessResult:
    check = _check_settlement(state, tribe_id, settlement_id)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    settlement = state.settlements[settlement_id]
    buildable = can_build_item(state, settlement, item_type, item_id)
    if not buildable.is_valid:
        return ProcessResult.failure(buildable.error_code, buildable.error_message)

    updated = add_to_production_queue(settlement, item_type, item_id, get_item_cost(item_type, item_id))
    logger.info(
        "Production queued: settlement=%s, type=%s, id=%s", settlement_id, item_type.value, item_id
    )
    return ProcessResult.ok(
        update_settlement(state, updated),
        [
            ProductionQueued(
                settlement_id=settlement_id,
                item_type=item_type,
                item_id=item_id,
                queue_position=len(updated.production_queue) - 1,
            )
        ],
    )


def process_cancel_production(
    state: GameState,
    tribe_id: str,
    settlement_id: str,
    queue_index: int,
) -> ProcessResult:
    check = _check_settlement(state, tribe_id, settlement_id)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    settlement = state.settlements[settlement_id]
    if queue_index >= len(settlement.production_queue):
        return ProcessResult.failure("INVALID_QUEUE_INDEX", "Invalid queue index")

    item = settlement.production_queue[queue_index]
    updated = remove_from_production_queue(settlement, queue_index)
    return ProcessResult.ok(
        update_settlement(state, updated),
        [ProductionCancelled(settlement_id=settlement_id, item_type=item.type, item_id=item.id)],
    )


def process_purchase(
    state: GameState,
    tribe_id: str,
    settlement_id: str,
    item_type: ProductionType,
    item_id: str,
) -> ProcessResult:
    """Buy a unit or building instantly for purchase_cost(production cost) gold."""
    check = _check_settlement(state, tribe_id, settlement_id)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    if item_type == ProductionType.WONDER:
        return ProcessResult.failure("CANNOT_PURCHASE_WONDER", "Wonders cannot be purchased")

    settlement = state.settlements[settlement_id]
    buildable = can_build_item(state, settlement, item_type, item_id)
    if not buildable.is_valid:
        return ProcessResult.failure(buildable.error_code, buildable.error_message)

    gold_cost = purchase_cost(get_item_cost(item_type, item_id))
    if not can_afford(state, tribe_id, gold_cost):
        treasury = get_player(state, tribe_id).treasury
        return ProcessResult.failure(
            "INSUFFICIENT_GOLD", f"Not enough gold (need {gold_cost}, have {treasury})"
        )

    new_state = deduct_gold(state, tribe_id, gold_cost)
    events: list[AnyGameEvent] = [
        ItemPurchased(
            settlement_id=settlement_id, item_type=item_type, item_id=item_id, gold_spent=gold_cost
        )
    ]

    if item_type == ProductionType.UNIT:
        rng = derive_rng(state.seed, state.turn, f"{tribe_id}:{settlement_id}:purchase:{item_id}")
        new_state, unit = spawn_unit(new_state, item_id, tribe_id, settlement.position, rng)
        events.append(
            UnitCreated(
                unit_id=unit.id,
                tribe_id=tribe_id,
                unit_type=unit.type,
                position=unit.position,
                rarity=unit.rarity,
            )
        )
    else:
        new_state = update_settlement(
            new_state, settlement.model_copy(update={"buildings": [*settlement.buildings, item_id]})
        )
        new_state = _increment_counter(new_state, tribe_id, "buildings_built")

    logger.info(
        "Item purchased: settlement=%s, type=%s, id=%s, gold=%d",
        settlement_id,
        item_type.value,
        item_id,
        gold_cost,
    )
    return ProcessResult.ok(new_state, events)
