"""Diplomatic stance storage, queries and peace/alliance handling.

Relations are stored once per unordered tribe pair; a missing relation is
neutral. War declaration lives in warfare.py since it also tears down trade.
"""

import logging

from tribes_core.schemas.game_state import (
    DiplomacyState,
    DiplomaticRelation,
    DiplomaticStance,
    GameState,
    PeaceProposal,
)

from .events import AllianceFormed, AnyGameEvent, PeaceMade, PeaceProposed, PeaceRejected
from .lookups import get_player
from .validation import ProcessResult, ValidationResult

logger = logging.getLogger(__name__)

MIN_WAR_TURNS_BEFORE_PEACE = 5
PEACE_REJECTION_COOLDOWN = 3


def relation_key(tribe_a: str, tribe_b: str) -> str:
    first, second = sorted((tribe_a, tribe_b))
    return f"{first}|{second}"


def get_relation(state: GameState, tribe_a: str, tribe_b: str) -> DiplomaticRelation:
    return state.diplomacy.relations.get(relation_key(tribe_a, tribe_b), DiplomaticRelation())


def get_stance(state: GameState, tribe_a: str, tribe_b: str) -> DiplomaticStance:
    if tribe_a == tribe_b:
        return DiplomaticStance.ALLIED
    return get_relation(state, tribe_a, tribe_b).stance


def are_at_war(state: GameState, tribe_a: str, tribe_b: str) -> bool:
    return tribe_a != tribe_b and get_stance(state, tribe_a, tribe_b) == DiplomaticStance.WAR


def are_allied(state: GameState, tribe_a: str, tribe_b: str) -> bool:
    return tribe_a != tribe_b and get_stance(state, tribe_a, tribe_b) == DiplomaticStance.ALLIED


def set_stance(
    state: GameState,
    tribe_a: str,
    tribe_b: str,
    stance: DiplomaticStance,
) -> GameState:
    """Set the stance for a pair and reset its stance timer."""
    relations = {
        **state.diplomacy.relations,
        relation_key(tribe_a, tribe_b): DiplomaticRelation(stance=stance, turns_at_current_stance=0),
    }
    logger.info("Stance changed: %s <-> %s = %s", tribe_a, tribe_b, stance.value)
    return state.model_copy(
        update={"diplomacy": state.diplomacy.model_copy(update={"relations": relations})}
    )


def create_initial_diplomacy(tribe_ids: list[str]) -> DiplomacyState:
    relations = {}
    for index, tribe_a in enumerate(tribe_ids):
        for tribe_b in tribe_ids[index + 1 :]:
            relations[relation_key(tribe_a, tribe_b)] = DiplomaticRelation()
    return DiplomacyState(relations=relations)


def update_diplomacy_timers(state: GameState) -> GameState:
    relations = {
        key: relation.model_copy(
            update={"turns_at_current_stance": relation.turns_at_current_stance + 1}
        )
        for key, relation in state.diplomacy.relations.items()
    }
    return state.model_copy(
        update={"diplomacy": state.diplomacy.model_copy(update={"relations": relations})}
    )


# =============================================================================
# Legality checks
# =============================================================================


def _check_target(state: GameState, tribe_id: str, target: str) -> ValidationResult:
    if tribe_id == target:
        return ValidationResult.error("INVALID_TARGET", "Cannot target your own tribe")
    player = get_player(state, target)
    if player is None:
        return ValidationResult.error("TRIBE_NOT_FOUND", f"Tribe '{target}' not found")
    if player.eliminated:
        return ValidationResult.error("TRIBE_ELIMINATED", f"Tribe '{target}' has been eliminated")
    return ValidationResult.ok()


def check_declare_war(state: GameState, tribe_id: str, target: str) -> ValidationResult:
    result = _check_target(state, tribe_id, target)
    if not result.is_valid:
        return result
    if are_at_war(state, tribe_id, target):
        return ValidationResult.error("ALREADY_AT_WAR", "Already at war")
    return ValidationResult.ok()


def check_propose_peace(state: GameState, tribe_id: str, target: str) -> ValidationResult:
    result = _check_target(state, tribe_id, target)
    if not result.is_valid:
        return result

    relation = get_relation(state, tribe_id, target)
    if relation.stance != DiplomaticStance.WAR:
        return ValidationResult.error("NOT_AT_WAR", "Not at war")
    if relation.turns_at_current_stance < MIN_WAR_TURNS_BEFORE_PEACE:
        return ValidationResult.error(
            "WAR_TOO_RECENT",
            f"War too recent (minimum {MIN_WAR_TURNS_BEFORE_PEACE} turns)",
        )

    rejected_turn = state.diplomacy.peace_rejections.get(f"{tribe_id}|{target}")
    if rejected_turn is not None and state.turn - rejected_turn < PEACE_REJECTION_COOLDOWN:
        return ValidationResult.error(
            "PEACE_RECENTLY_REJECTED",
            f"Peace was rejected recently (wait {PEACE_REJECTION_COOLDOWN} turns)",
        )

    if any(p.proposer == tribe_id and p.target == target for p in state.diplomacy.peace_proposals):
        return ValidationResult.error("PEACE_ALREADY_PROPOSED", "Peace already proposed")

    return ValidationResult.ok()


def check_propose_alliance(state: GameState, tribe_id: str, target: str) -> ValidationResult:
    result = _check_target(state, tribe_id, target)
    if not result.is_valid:
        return result
    stance = get_stance(state, tribe_id, target)
    if stance == DiplomaticStance.ALLIED:
        return ValidationResult.error("ALREADY_ALLIED", "Already allied")
    if stance != DiplomaticStance.FRIENDLY:
        return ValidationResult.error("NOT_FRIENDLY", "Must be friendly to propose alliance")
    return ValidationResult.ok()


# =============================================================================
# Action handlers
# =============================================================================


def process_propose_peace(state: GameState, tribe_id: str, target: str) -> ProcessResult:
    check = check_propose_peace(state, tribe_id, target)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    proposals = [
        *state.diplomacy.peace_proposals,
        PeaceProposal(proposer=tribe_id, target=target, turn=state.turn),
    ]
    new_state = state.model_copy(
        update={"diplomacy": state.diplomacy.model_copy(update={"peace_proposals": proposals})}
    )
    logger.info("Peace proposed: %s -> %s", tribe_id, target)
    return ProcessResult.ok(new_state, [PeaceProposed(proposer=tribe_id, target=target)])


def process_respond_peace(
    state: GameState,
    tribe_id: str,
    proposer: str,
    accept: bool,
) -> ProcessResult:
    """Accept or reject a pending peace proposal addressed to tribe_id.

    Acceptance moves the pair from war to hostile. Rejection starts the
    proposer's cooldown.
    """
    pending = [
        p for p in state.diplomacy.peace_proposals if p.proposer == proposer and p.target == tribe_id
    ]
    if not pending:
        return ProcessResult.failure(
            "NO_PEACE_PROPOSAL", f"No pending peace proposal from '{proposer}'"
        )

    remaining = [p for p in state.diplomacy.peace_proposals if p not in pending]
    events: list[AnyGameEvent] = []

    if accept:
        state = set_stance(state, tribe_id, proposer, DiplomaticStance.HOSTILE)
        diplomacy = state.diplomacy.model_copy(update={"peace_proposals": remaining})
        events.append(PeaceMade(tribe_a=proposer, tribe_b=tribe_id))
    else:
        rejections = {**state.diplomacy.peace_rejections, f"{proposer}|{tribe_id}": state.turn}
        diplomacy = state.diplomacy.model_copy(
            update={"peace_proposals": remaining, "peace_rejections": rejections}
        )
        events.append(PeaceRejected(proposer=proposer, target=tribe_id))

    logger.info("Peace response: %s -> %s, accepted=%s", tribe_id, proposer, accept)
    return ProcessResult.ok(state.model_copy(update={"diplomacy": diplomacy}), events)


def process_propose_alliance(state: GameState, tribe_id: str, target: str) -> ProcessResult:
    """Form an alliance with a friendly tribe (proposals are accepted immediately)."""
    check = check_propose_alliance(state, tribe_id, target)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    new_state = set_stance(state, tribe_id, target, DiplomaticStance.ALLIED)
    return ProcessResult.ok(new_state, [AllianceFormed(tribe_a=tribe_id, tribe_b=target)])
