"""Game action types - explicit player and AI inputs separated from game state."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field

from tribes_core.schemas.game_state import HexCoord, ProductionType


class EndTurnAction(BaseModel):
    """Current player ends their turn; runs the end-of-turn pipeline."""

    action_type: Literal["end_turn"] = "end_turn"


class MoveUnitAction(BaseModel):
    action_type: Literal["move_unit"] = "move_unit"
    unit_id: str
    to: HexCoord


class AttackAction(BaseModel):
    """Unit attacks another unit."""

    action_type: Literal["attack"] = "attack"
    attacker_id: str
    target_id: str


class AttackSettlementAction(BaseModel):
    action_type: Literal["attack_settlement"] = "attack_settlement"
    attacker_id: str
    settlement_id: str


class CaptureSettlementAction(BaseModel):
    """Take over a settlement whose health has been reduced to zero."""

    action_type: Literal["capture_settlement"] = "capture_settlement"
    unit_id: str
    settlement_id: str


class RazeSettlementAction(BaseModel):
    """Destroy a settlement whose health has been reduced to zero."""

    action_type: Literal["raze_settlement"] = "raze_settlement"
    unit_id: str
    settlement_id: str


class FoundSettlementAction(BaseModel):
    """Settler founds a settlement on its current hex and is consumed."""

    action_type: Literal["found_settlement"] = "found_settlement"
    settler_id: str


class BuildImprovementAction(BaseModel):
    """Builder improves the tile it stands on, spending one charge."""

    action_type: Literal["build_improvement"] = "build_improvement"
    builder_id: str
    improvement: str


class StartProductionAction(BaseModel):
    """Append an item to a settlement's production queue."""

    action_type: Literal["start_production"] = "start_production"
    settlement_id: str
    item_type: ProductionType
    item_id: str


class CancelProductionAction(BaseModel):
    action_type: Literal["cancel_production"] = "cancel_production"
    settlement_id: str
    queue_index: int = Field(..., ge=0)


class PurchaseAction(BaseModel):
    """Buy a unit or building outright with gold."""

    action_type: Literal["purchase"] = "purchase"
    settlement_id: str
    item_type: ProductionType
    item_id: str


class StartResearchAction(BaseModel):
    action_type: Literal["start_research"] = "start_research"
    tech_id: str


class StartCultureAction(BaseModel):
    action_type: Literal["start_culture"] = "start_culture"
    culture_id: str


class SelectPolicyAction(BaseModel):
    """Complete the current culture by picking one of its two policies."""

    action_type: Literal["select_policy"] = "select_policy"
    culture_id: str
    choice: Literal["a", "b"]


class SwapPoliciesAction(BaseModel):
    """Rearrange slotted policies; unslotting happens before slotting."""

    action_type: Literal["swap_policies"] = "swap_policies"
    to_slot: list[str] = []
    to_unslot: list[str] = []


class SelectPromotionAction(BaseModel):
    action_type: Literal["select_promotion"] = "select_promotion"
    unit_id: str
    promotion_id: str


class SelectMilestoneAction(BaseModel):
    action_type: Literal["select_milestone"] = "select_milestone"
    settlement_id: str
    level: int
    choice: Literal["a", "b"]


class CreateTradeRouteAction(BaseModel):
    action_type: Literal["create_trade_route"] = "create_trade_route"
    origin_id: str
    destination_id: str


class CancelTradeRouteAction(BaseModel):
    action_type: Literal["cancel_trade_route"] = "cancel_trade_route"
    route_id: str


class UseGreatPersonAction(BaseModel):
    action_type: Literal["use_great_person"] = "use_great_person"
    unit_id: str


class DeclareWarAction(BaseModel):
    action_type: Literal["declare_war"] = "declare_war"
    target: str


class ProposePeaceAction(BaseModel):
    action_type: Literal["propose_peace"] = "propose_peace"
    target: str


class RespondPeaceAction(BaseModel):
    """Target of a peace proposal accepts or rejects it."""

    action_type: Literal["respond_peace"] = "respond_peace"
    proposer: str
    accept: bool


class ProposeAllianceAction(BaseModel):
    action_type: Literal["propose_alliance"] = "propose_alliance"
    target: str


ACTION_CLASSES = (
    EndTurnAction,
    MoveUnitAction,
    AttackAction,
    AttackSettlementAction,
    CaptureSettlementAction,
    RazeSettlementAction,
    FoundSettlementAction,
    BuildImprovementAction,
    StartProductionAction,
    CancelProductionAction,
    PurchaseAction,
    StartResearchAction,
    StartCultureAction,
    SelectPolicyAction,
    SwapPoliciesAction,
    SelectPromotionAction,
    SelectMilestoneAction,
    CreateTradeRouteAction,
    CancelTradeRouteAction,
    UseGreatPersonAction,
    DeclareWarAction,
    ProposePeaceAction,
    RespondPeaceAction,
    ProposeAllianceAction,
)

# Union type for all game actions
GameAction = Annotated[
    EndTurnAction
    | MoveUnitAction
    | AttackAction
    | AttackSettlementAction
    | CaptureSettlementAction
    | RazeSettlementAction
    | FoundSettlementAction
    | BuildImprovementAction
    | StartProductionAction
    | CancelProductionAction
    | PurchaseAction
    | StartResearchAction
    | StartCultureAction
    | SelectPolicyAction
    | SwapPoliciesAction
    | SelectPromotionAction
    | SelectMilestoneAction
    | CreateTradeRouteAction
    | CancelTradeRouteAction
    | UseGreatPersonAction
    | DeclareWarAction
    | ProposePeaceAction
    | RespondPeaceAction
    | ProposeAllianceAction,
    Field(discriminator="action_type"),
]

_ACTIONS_BY_TAG: dict[str, type[BaseModel]] = {
    cls.model_fields["action_type"].default: cls for cls in ACTION_CLASSES
}


def build_action_from_payload(payload: dict) -> GameAction:
    """Build a typed action from a raw payload dict.

    Args:
        payload: Dict with 'action_type' key and action-specific fields.

    Returns:
        The appropriate GameAction subtype.

    Raises:
        ValueError: If action_type is missing or unknown, or the fields
            do not validate (pydantic's ValidationError is a ValueError).
    """
    action_type = payload.get("action_type")
    action_cls = _ACTIONS_BY_TAG.get(action_type)
    if action_cls is None:
        raise ValueError(f"Unknown action type: {action_type}")
    return action_cls.model_validate(payload)
