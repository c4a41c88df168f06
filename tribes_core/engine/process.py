"""Main entry point for game action processing.

This module provides the primary interface for processing game actions:
- apply_action(): Validates and processes any game action
- Dispatches to specialized handlers through a table keyed by action class
- Returns ProcessResult with new state and events
"""

import logging
from collections.abc import Callable
from typing import Any

from tribes_core.schemas.game_state import GameState

from .actions import (
    AttackAction,
    AttackSettlementAction,
    BuildImprovementAction,
    CancelProductionAction,
    CancelTradeRouteAction,
    CaptureSettlementAction,
    CreateTradeRouteAction,
    DeclareWarAction,
    EndTurnAction,
    FoundSettlementAction,
    GameAction,
    MoveUnitAction,
    ProposeAllianceAction,
    ProposePeaceAction,
    PurchaseAction,
    RazeSettlementAction,
    RespondPeaceAction,
    SelectMilestoneAction,
    SelectPolicyAction,
    SelectPromotionAction,
    StartCultureAction,
    StartProductionAction,
    StartResearchAction,
    SwapPoliciesAction,
    UseGreatPersonAction,
)
from .diplomacy import process_propose_alliance, process_propose_peace, process_respond_peace
from .production import process_cancel_production, process_purchase, process_start_production
from .progression import (
    process_select_policy,
    process_start_culture,
    process_start_research,
    process_swap_policies,
)
from .settlements import process_found_settlement, process_select_milestone
from .trade import process_cancel_trade_route, process_create_trade_route
from .turn import process_end_turn
from .units import (
    process_build_improvement,
    process_move_unit,
    process_select_promotion,
    process_use_great_person,
)
from .validation import ProcessResult, validate_action
from .warfare import (
    process_attack,
    process_attack_settlement,
    process_capture_settlement,
    process_declare_war,
    process_raze_settlement,
)

logger = logging.getLogger(__name__)

Handler = Callable[[GameState, Any, str], ProcessResult]

ACTION_HANDLERS: dict[type, Handler] = {
    EndTurnAction: lambda s, a, t: process_end_turn(s, t),
    MoveUnitAction: lambda s, a, t: process_move_unit(s, t, a.unit_id, a.to),
    AttackAction: lambda s, a, t: process_attack(s, t, a.attacker_id, a.target_id),
    AttackSettlementAction: lambda s, a, t: process_attack_settlement(
        s, t, a.attacker_id, a.settlement_id
    ),
    CaptureSettlementAction: lambda s, a, t: process_capture_settlement(
        s, t, a.unit_id, a.settlement_id
    ),
    RazeSettlementAction: lambda s, a, t: process_raze_settlement(s, t, a.unit_id, a.settlement_id),
    FoundSettlementAction: lambda s, a, t: process_found_settlement(s, t, a.settler_id),
    BuildImprovementAction: lambda s, a, t: process_build_improvement(
        s, t, a.builder_id, a.improvement
    ),
    StartProductionAction: lambda s, a, t: process_start_production(
        s, t, a.settlement_id, a.item_type, a.item_id
    ),
    CancelProductionAction: lambda s, a, t: process_cancel_production(
        s, t, a.settlement_id, a.queue_index
    ),
    PurchaseAction: lambda s, a, t: process_purchase(s, t, a.settlement_id, a.item_type, a.item_id),
    StartResearchAction: lambda s, a, t: process_start_research(s, t, a.tech_id),
    StartCultureAction: lambda s, a, t: process_start_culture(s, t, a.culture_id),
    SelectPolicyAction: lambda s, a, t: process_select_policy(s, t, a.culture_id, a.choice),
    SwapPoliciesAction: lambda s, a, t: process_swap_policies(s, t, a.to_slot, a.to_unslot),
    SelectPromotionAction: lambda s, a, t: process_select_promotion(s, t, a.unit_id, a.promotion_id),
    SelectMilestoneAction: lambda s, a, t: process_select_milestone(
        s, t, a.settlement_id, a.level, a.choice
    ),
    CreateTradeRouteAction: lambda s, a, t: process_create_trade_route(
        s, t, a.origin_id, a.destination_id
    ),
    CancelTradeRouteAction: lambda s, a, t: process_cancel_trade_route(s, t, a.route_id),
    UseGreatPersonAction: lambda s, a, t: process_use_great_person(s, t, a.unit_id),
    DeclareWarAction: lambda s, a, t: process_declare_war(s, t, a.target),
    ProposePeaceAction: lambda s, a, t: process_propose_peace(s, t, a.target),
    RespondPeaceAction: lambda s, a, t: process_respond_peace(s, t, a.proposer, a.accept),
    ProposeAllianceAction: lambda s, a, t: process_propose_alliance(s, t, a.target),
}


def apply_action(
    state: GameState,
    action: GameAction,
    tribe_id: str | None = None,
) -> ProcessResult:
    """Process a game action and return the result.

    This is the main entry point for all game actions. It:
    1. Rejects objects that are not registered actions
    2. Validates the acting tribe may act now
    3. Dispatches to the handler for the action class
    4. Assigns sequence numbers to events

    Args:
        state: Current game state. Never modified.
        action: The action to process.
        tribe_id: The acting tribe; defaults to the current player.

    Returns:
        ProcessResult containing:
        - success: Whether the action was processed successfully
        - state: The new game state (if successful)
        - events: List of events that occurred (with seq numbers)
        - error_code/error_message: Error details (if failed)

    Example:
        >>> result = apply_action(state, EndTurnAction())
        >>> if result.success:
        ...     state = result.state
        ... else:
        ...     show_error(result.error_code, result.error_message)
    """
    action_type = type(action).__name__
    actor = tribe_id if tribe_id is not None else state.current_player

    handler = ACTION_HANDLERS.get(type(action))
    if handler is None:
        logger.error("Unknown action type received: %s", action_type)
        return ProcessResult.failure("UNKNOWN_ACTION", f"Unknown action type: {action_type}")

    logger.info(
        "Processing action: type=%s, tribe=%s, turn=%d",
        action_type,
        actor,
        state.turn,
    )
    logger.debug("Action details: %s", action)

    validation = validate_action(state, action, actor)
    if not validation.is_valid:
        return ProcessResult.failure(
            validation.error_code or "VALIDATION_ERROR",
            validation.error_message or "Invalid action",
        )

    result = handler(state, action, actor)

    if result.success and result.state is not None:
        result = _assign_event_sequences(result)
        logger.info(
            "Action processed successfully: type=%s, tribe=%s, events_generated=%d",
            action_type,
            actor,
            len(result.events),
        )
        logger.debug("Generated events: %s", [type(e).__name__ for e in result.events])
    else:
        logger.warning(
            "Action rejected: type=%s, tribe=%s, code=%s, message=%s",
            action_type,
            actor,
            result.error_code,
            result.error_message,
        )

    return result


def _assign_event_sequences(result: ProcessResult) -> ProcessResult:
    """Assign monotonically increasing sequence numbers to events.

    Events are freshly built by the handler, so their seq is set in place;
    the counter is carried forward on a new state copy.
    """
    if result.state is None or not result.events:
        return result

    current_seq = result.state.event_seq
    for event in result.events:
        event.seq = current_seq
        current_seq += 1

    new_state = result.state.model_copy(update={"event_seq": current_seq})
    return ProcessResult.ok(new_state, result.events)
