"""Per-game id and name allocation plus deterministic randomness.

Allocators read a Sequences value and return the allocated value together
with the advanced Sequences; the caller stores the new one on GameState.
"""

import logging
import random

from tribes_core.schemas.game_state import Sequences, TribeName

from .rules import FALLBACK_SETTLEMENT_NAMES, TRIBE_DEFINITIONS

logger = logging.getLogger(__name__)


def allocate_entity_id(sequences: Sequences, prefix: str) -> tuple[str, Sequences]:
    """Allocate the next entity id, e.g. ``unit_7`` or ``settlement_8``."""
    entity_id = f"{prefix}_{sequences.next_entity_id}"
    return entity_id, sequences.model_copy(
        update={"next_entity_id": sequences.next_entity_id + 1}
    )


def allocate_trade_route_id(sequences: Sequences) -> tuple[str, Sequences]:
    route_id = f"trade_{sequences.next_trade_route_id}"
    return route_id, sequences.model_copy(
        update={"next_trade_route_id": sequences.next_trade_route_id + 1}
    )


def allocate_settlement_name(
    sequences: Sequences,
    owner: str,
    tribe_name: TribeName | None,
) -> tuple[str, Sequences]:
    """Draw the owner's next settlement name.

    Names come from the tribe's list in order; once exhausted (or when the
    tribe is unknown) the generic pool is cycled by the same index.
    """
    index = sequences.settlement_names.get(owner, 0)

    name = None
    if tribe_name is not None:
        tribe_names = TRIBE_DEFINITIONS[tribe_name].settlement_names
        if index < len(tribe_names):
            name = tribe_names[index]
    if name is None:
        name = FALLBACK_SETTLEMENT_NAMES[index % len(FALLBACK_SETTLEMENT_NAMES)]

    logger.debug("Allocated settlement name: owner=%s, index=%d, name=%s", owner, index, name)
    return name, sequences.model_copy(
        update={"settlement_names": {**sequences.settlement_names, owner: index + 1}}
    )


def derive_rng(seed: int, turn: int, actor: str) -> random.Random:
    """Build the random source for one actor on one turn.

    The same (seed, turn, actor) always yields the same sequence.
    """
    return random.Random(f"{seed}:{turn}:{actor}")
