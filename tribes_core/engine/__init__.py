"""Game engine module - pure functional game rules.

This module provides the core game engine with:
- Action types for explicit player and AI inputs
- Event types describing every state transition
- ProcessResult pattern for error handling
- Modular subsystems (settlements, production, trade, economy, warfare)

Usage:
    from tribes_core.engine import (
        apply_action,
        EndTurnAction,
        CreateTradeRouteAction,
        ProcessResult,
    )

    result = apply_action(state, CreateTradeRouteAction(origin_id="settlement_1",
                                                        destination_id="settlement_4"))

    if result.success:
        state = result.state
        events = result.events  # Hand these to the presentation layer
    else:
        print(f"Error: {result.error_code} - {result.error_message}")
"""

# Actions - explicit player inputs
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
    build_action_from_payload,
)

# Economy
from .economy import GoldIncome, calculate_gold_income, process_player_economy

# Events
from .events import AnyGameEvent, GameEvent

# Main processing
from .process import ACTION_HANDLERS, apply_action

# Production
from .production import ProductionResult, process_production

# Settlements
from .settlements import (
    add_settlement,
    can_found_settlement,
    create_settlement,
    process_settlement_growth,
)

# Trade
from .trade import (
    calculate_trade_route_gold,
    cancel_trade_route,
    cancel_trade_routes_due_to_war,
    create_trade_route,
    pillage_settlement_trade_routes,
    process_trade_route_formation,
)

# Turn flow
from .turn import calculate_score, check_game_over, process_end_turn

# Result types
from .validation import ProcessResult, ValidationResult, validate_action

# Yields
from .yields import add_yields

__all__ = [
    # Actions
    "GameAction",
    "EndTurnAction",
    "MoveUnitAction",
    "AttackAction",
    "AttackSettlementAction",
    "CaptureSettlementAction",
    "RazeSettlementAction",
    "FoundSettlementAction",
    "BuildImprovementAction",
    "StartProductionAction",
    "CancelProductionAction",
    "PurchaseAction",
    "StartResearchAction",
    "StartCultureAction",
    "SelectPolicyAction",
    "SwapPoliciesAction",
    "SelectPromotionAction",
    "SelectMilestoneAction",
    "CreateTradeRouteAction",
    "CancelTradeRouteAction",
    "UseGreatPersonAction",
    "DeclareWarAction",
    "ProposePeaceAction",
    "RespondPeaceAction",
    "ProposeAllianceAction",
    "build_action_from_payload",
    # Events
    "GameEvent",
    "AnyGameEvent",
    # Processing
    "apply_action",
    "ACTION_HANDLERS",
    "process_end_turn",
    "check_game_over",
    "calculate_score",
    # Validation
    "ProcessResult",
    "ValidationResult",
    "validate_action",
    # Subsystems
    "add_yields",
    "create_settlement",
    "add_settlement",
    "can_found_settlement",
    "process_settlement_growth",
    "create_trade_route",
    "calculate_trade_route_gold",
    "process_trade_route_formation",
    "cancel_trade_route",
    "cancel_trade_routes_due_to_war",
    "pillage_settlement_trade_routes",
    "process_production",
    "ProductionResult",
    "calculate_gold_income",
    "process_player_economy",
    "GoldIncome",
]
