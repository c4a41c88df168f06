"""Research, culture, policies and golden ages."""

import logging
import math
import random

from tribes_core.schemas.game_state import GameState, Player

from .events import (
    AnyGameEvent,
    CultureReady,
    CultureStarted,
    GoldenAgeEnded,
    GoldenAgeStarted,
    PoliciesSwapped,
    PolicySelected,
    ResearchStarted,
    TechResearched,
)
from .lookups import get_player, update_player
from .rules import (
    CULTURE_DEFINITIONS,
    ERA_TECH_COST_THRESHOLDS,
    GOLDEN_AGE_EFFECTS_BY_ERA,
    GOLDEN_AGE_TRIGGERS,
    POLICY_DEFINITIONS,
    TECH_DEFINITIONS,
    golden_age_yield_bonus,
)
from .sequences import derive_rng
from .settlements import calculate_player_yields
from .validation import ProcessResult, ValidationResult

logger = logging.getLogger(__name__)

RECENT_TECH_WINDOW = 5


def _boosted(player: Player, channel: str, amount: int) -> int:
    bonus = golden_age_yield_bonus(player.golden_age, channel)
    return math.floor(amount * (1 + bonus)) if bonus else amount


def _recent_tech_turns(player: Player, turn: int) -> list[int]:
    return [t for t in player.golden_age.recent_tech_turns if t > turn - RECENT_TECH_WINDOW]


# =============================================================================
# Research
# =============================================================================


def check_start_research(player: Player, tech_id: str) -> ValidationResult:
    tech = TECH_DEFINITIONS.get(tech_id)
    if tech is None:
        return ValidationResult.error("TECH_NOT_FOUND", "Tech not found")
    if tech_id in player.researched_techs:
        return ValidationResult.error("TECH_ALREADY_RESEARCHED", "Already researched")
    for prerequisite in tech.prerequisites:
        if prerequisite not in player.researched_techs:
            return ValidationResult.error("TECH_PREREQUISITE_MISSING", f"Requires tech: {prerequisite}")
    return ValidationResult.ok()


def process_start_research(state: GameState, tribe_id: str, tech_id: str) -> ProcessResult:
    """Switch research to a tech; progress toward the previous one is lost."""
    player = get_player(state, tribe_id)
    check = check_start_research(player, tech_id)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    new_state = update_player(
        state, player.model_copy(update={"current_research": tech_id, "research_progress": 0})
    )
    logger.info("Research started: tribe=%s, tech=%s", tribe_id, tech_id)
    return ProcessResult.ok(new_state, [ResearchStarted(tribe_id=tribe_id, tech_id=tech_id)])


def complete_research(state: GameState, tribe_id: str, tech_id: str) -> GameState:
    """Mark a tech researched and reveal the resources it unlocks."""
    player = get_player(state, tribe_id)
    tech = TECH_DEFINITIONS[tech_id]
    new_state = update_player(
        state,
        player.model_copy(
            update={
                "researched_techs": player.researched_techs | {tech_id},
                "current_research": None,
                "research_progress": 0,
                "golden_age": player.golden_age.model_copy(
                    update={"recent_tech_turns": _recent_tech_turns(player, state.turn) + [state.turn]}
                ),
            }
        ),
    )

    if tech.reveals_resources:
        tiles = {
            key: tile.model_copy(
                update={"resource": tile.resource.model_copy(update={"revealed": True})}
            )
            if tile.resource is not None and tile.resource.type in tech.reveals_resources
            else tile
            for key, tile in new_state.map.tiles.items()
        }
        new_state = new_state.model_copy(
            update={"map": new_state.map.model_copy(update={"tiles": tiles})}
        )

    logger.info("Tech researched: tribe=%s, tech=%s", tribe_id, tech_id)
    return new_state


def apply_research_progress(state: GameState, tribe_id: str) -> tuple[GameState, list[AnyGameEvent]]:
    player = get_player(state, tribe_id)
    if player is None:
        return state, []

    research = _boosted(player, "research", calculate_player_yields(state, tribe_id).research)
    great_people = player.great_people.model_copy(
        update={"research": player.great_people.research + research}
    )
    player = player.model_copy(update={"great_people": great_people})

    tech = TECH_DEFINITIONS.get(player.current_research) if player.current_research else None
    if tech is None:
        return update_player(state, player), []

    progress = player.research_progress + research
    if progress >= tech.cost:
        new_state = complete_research(update_player(state, player), tribe_id, tech.id)
        return new_state, [TechResearched(tribe_id=tribe_id, tech_id=tech.id)]

    return update_player(state, player.model_copy(update={"research_progress": progress})), []


# =============================================================================
# Culture and policies
# =============================================================================


def check_start_culture(player: Player, culture_id: str) -> ValidationResult:
    culture = CULTURE_DEFINITIONS.get(culture_id)
    if culture is None:
        return ValidationResult.error("CULTURE_NOT_FOUND", "Culture not found")
    if culture_id in player.unlocked_cultures:
        return ValidationResult.error("CULTURE_ALREADY_UNLOCKED", "Already unlocked")
    for prerequisite in culture.prerequisites:
        if prerequisite not in player.unlocked_cultures:
            return ValidationResult.error(
                "CULTURE_PREREQUISITE_MISSING", f"Requires culture: {prerequisite}"
            )
    return ValidationResult.ok()


def process_start_culture(state: GameState, tribe_id: str, culture_id: str) -> ProcessResult:
    player = get_player(state, tribe_id)
    check = check_start_culture(player, culture_id)
    if not check.is_valid:
        return ProcessResult.failure(check.error_code, check.error_message)

    new_state = update_player(
        state, player.model_copy(update={"current_culture": culture_id, "culture_progress": 0})
    )
    logger.info("Culture started: tribe=%s, culture=%s", tribe_id, culture_id)
    return ProcessResult.ok(new_state, [CultureStarted(tribe_id=tribe_id, culture_id=culture_id)])


def is_culture_ready(player: Player) -> bool:
    culture = CULTURE_DEFINITIONS.get(player.current_culture) if player.current_culture else None
    return culture is not None and player.culture_progress >= culture.cost


def apply_culture_progress(state: GameState, tribe_id: str) -> tuple[GameState, list[AnyGameEvent]]:
    """Accumulate culture; completion waits for a policy choice."""
    player = get_player(state, tribe_id)
    if player is None:
        return state, []

    culture = _boosted(player, "culture", calculate_player_yields(state, tribe_id).culture)
    great_people = player.great_people.model_copy(
        update={"culture": player.great_people.culture + culture}
    )
    update: dict = {"great_people": great_people}

    was_ready = is_culture_ready(player)
    if player.current_culture in CULTURE_DEFINITIONS:
        update["culture_progress"] = player.culture_progress + culture
    player = player.model_copy(update=update)

    events: list[AnyGameEvent] = []
    if not was_ready and is_culture_ready(player):
        events.append(CultureReady(tribe_id=tribe_id, culture_id=player.current_culture))
    return update_player(state, player), events


def process_select_policy(
    state: GameState,
    tribe_id: str,
    culture_id: str,
    choice: str,
) -> ProcessResult:
    """Complete the current culture by choosing one of its two policies.

    The policy joins the pool and is slotted when a slot is free.
    """
    player = get_player(state, tribe_id)
    if player.current_culture != culture_id:
        return ProcessResult.failure("NOT_CURRENT_CULTURE", "Culture is not being developed")
    if not is_culture_ready(player):
        return ProcessResult.failure("CULTURE_NOT_READY", "Culture progress is incomplete")

    culture = CULTURE_DEFINITIONS[culture_id]
    policy = culture.policy_a if choice == "a" else culture.policy_b
    policies = player.policies
    active = policies.active
    if len(active) < policies.slots:
        active = [*active, policy.id]

    player = player.model_copy(
        update={
            "unlocked_cultures": player.unlocked_cultures | {culture_id},
            "current_culture": None,
            "culture_progress": 0,
            "policies": policies.model_copy(
                update={"pool": [*policies.pool, policy.id], "active": active}
            ),
        }
    )
    logger.info("Policy selected: tribe=%s, culture=%s, policy=%s", tribe_id, culture_id, policy.id)
    return ProcessResult.ok(
        update_player(state, player),
        [PolicySelected(tribe_id=tribe_id, culture_id=culture_id, policy_id=policy.id)],
    )


def process_swap_policies(
    state: GameState,
    tribe_id: str,
    to_slot: list[str],
    to_unslot: list[str],
) -> ProcessResult:
    """Unslot then slot policies from the pool, within slot capacity."""
    player = get_player(state, tribe_id)
    policies = player.policies

    active = list(policies.active)
    for policy_id in to_unslot:
        if policy_id not in active:
            return ProcessResult.failure("POLICY_NOT_ACTIVE", f"Policy {policy_id} is not slotted")
        active.remove(policy_id)

    for policy_id in to_slot:
        if policy_id not in POLICY_DEFINITIONS:
            return ProcessResult.failure("POLICY_NOT_FOUND", "Policy not found")
        if policy_id not in policies.pool:
            return ProcessResult.failure("POLICY_NOT_UNLOCKED", "Policy not unlocked")
        if policy_id in active:
            return ProcessResult.failure("POLICY_ALREADY_ACTIVE", "Policy already active")
        if len(active) >= policies.slots:
            return ProcessResult.failure("NO_POLICY_SLOTS", "No policy slots available")
        active.append(policy_id)

    new_state = update_player(
        state, player.model_copy(update={"policies": policies.model_copy(update={"active": active})})
    )
    logger.info("Policies swapped: tribe=%s, active=%s", tribe_id, active)
    return ProcessResult.ok(new_state, [PoliciesSwapped(tribe_id=tribe_id, active=active)])


# =============================================================================
# Golden ages
# =============================================================================


def process_golden_age_turn(state: GameState, tribe_id: str) -> tuple[GameState, list[AnyGameEvent]]:
    """Count down an active golden age, clearing its effect when it ends."""
    player = get_player(state, tribe_id)
    if player is None or not player.golden_age.active:
        return state, []

    turns_remaining = player.golden_age.turns_remaining - 1
    still_active = turns_remaining > 0
    golden_age = player.golden_age.model_copy(
        update={
            "active": still_active,
            "turns_remaining": max(0, turns_remaining),
            "effect": player.golden_age.effect if still_active else None,
            "trigger": player.golden_age.trigger if still_active else None,
        }
    )
    new_state = update_player(state, player.model_copy(update={"golden_age": golden_age}))
    if still_active:
        return new_state, []

    logger.info("Golden age ended: tribe=%s", tribe_id)
    return new_state, [GoldenAgeEnded(tribe_id=tribe_id)]


def get_player_era(player: Player) -> int:
    era = 1
    for tech_id in player.researched_techs:
        tech = TECH_DEFINITIONS.get(tech_id)
        if tech is None:
            continue
        for candidate, cost in ERA_TECH_COST_THRESHOLDS.items():
            if tech.cost >= cost:
                era = max(era, candidate)
    return era


def _claimed_by_other(state: GameState, tribe_id: str, trigger_id: str) -> bool:
    return any(
        trigger_id in p.golden_age.triggers_used for p in state.players if p.tribe_id != tribe_id
    )


def is_golden_age_trigger_met(state: GameState, tribe_id: str, trigger_id: str) -> bool:
    player = get_player(state, tribe_id)
    trigger = GOLDEN_AGE_TRIGGERS.get(trigger_id)
    if player is None or trigger is None:
        return False
    if player.golden_age.active or trigger_id in player.golden_age.triggers_used:
        return False
    if trigger.tribe is not None and trigger.tribe != player.tribe_name:
        return False

    settlements = [s for s in state.settlements.values() if s.owner == tribe_id]
    if trigger_id == "research_3_techs_in_5_turns":
        return len(_recent_tech_turns(player, state.turn)) >= 3
    if trigger_id == "found_4th_settlement":
        return len(settlements) >= 4
    if trigger_id == "reach_10_settlement_levels":
        return sum(s.level for s in settlements) >= 10
    if trigger_id == "build_2_wonders":
        return player.great_people.wonders_built >= 2
    if trigger_id == "earn_3_great_people":
        return len(player.great_people_earned) >= 3
    if trigger_id == "reach_6_trade_routes_first":
        active = sum(1 for r in state.trade_routes if r.owner_tribe == tribe_id and r.active)
        return active >= 6 and not _claimed_by_other(state, tribe_id, trigger_id)
    if trigger_id == "monkes_500_gold":
        return player.treasury >= 500
    if trigger_id == "geckos_era3_tech_first":
        return get_player_era(player) >= 3 and not _claimed_by_other(state, tribe_id, trigger_id)
    if trigger_id == "degods_10_kills":
        return player.kill_count >= 10
    return False


def check_golden_age_triggers(state: GameState, tribe_id: str) -> list[str]:
    """Triggers currently met by a tribe, in priority order."""
    return [t for t in GOLDEN_AGE_TRIGGERS if is_golden_age_trigger_met(state, tribe_id, t)]


def activate_golden_age(
    state: GameState, tribe_id: str, trigger_id: str, rng: random.Random
) -> tuple[GameState, list[AnyGameEvent]]:
    """Start a golden age with an effect drawn from the tribe's era."""
    player = get_player(state, tribe_id)
    trigger = GOLDEN_AGE_TRIGGERS[trigger_id]
    effect = rng.choice(GOLDEN_AGE_EFFECTS_BY_ERA[get_player_era(player)])
    golden_age = player.golden_age.model_copy(
        update={
            "active": True,
            "turns_remaining": trigger.duration,
            "effect": effect,
            "trigger": trigger_id,
            "triggers_used": [*player.golden_age.triggers_used, trigger_id],
        }
    )
    new_state = update_player(state, player.model_copy(update={"golden_age": golden_age}))

    logger.info(
        "Golden age started: tribe=%s, trigger=%s, effect=%s, turns=%d",
        tribe_id,
        trigger_id,
        effect,
        trigger.duration,
    )
    return new_state, [
        GoldenAgeStarted(tribe_id=tribe_id, trigger=trigger_id, effect=effect, turns=trigger.duration)
    ]


def process_golden_age_triggers(state: GameState, tribe_id: str) -> tuple[GameState, list[AnyGameEvent]]:
    """Start a golden age from the first trigger met, if any."""
    met = check_golden_age_triggers(state, tribe_id)
    if not met:
        return state, []
    rng = derive_rng(state.seed, state.turn, f"{tribe_id}:golden_age")
    return activate_golden_age(state, tribe_id, met[0], rng)
