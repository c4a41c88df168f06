"""Validation layer for game actions and ProcessResult pattern.

Separates validation from processing logic:
- validate_action() checks whether the acting tribe may act at all
- ProcessResult replaces exceptions for control flow
- ValidationResult reports the first failed legality rule of a check_* helper
"""

import logging
from dataclasses import dataclass, field

from tribes_core.schemas.game_state import GamePhase, GameState

from .actions import GameAction
from .events import AnyGameEvent

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Result of processing a game action.

    Replaces exceptions for control flow, providing explicit success/failure
    with error codes suitable for client localization. A failure carries no
    state: the caller keeps the snapshot it already holds.
    """

    state: GameState | None = None
    events: list[AnyGameEvent] = field(default_factory=list)
    success: bool = True
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def ok(
        cls,
        state: GameState,
        events: list[AnyGameEvent] | None = None,
    ) -> "ProcessResult":
        """Create a successful result with new state and events."""
        return cls(
            state=state,
            events=events or [],
            success=True,
        )

    @classmethod
    def failure(cls, code: str, message: str) -> "ProcessResult":
        """Create a failure result with error details."""
        return cls(
            state=None,
            events=[],
            success=False,
            error_code=code,
            error_message=message,
        )


@dataclass
class ValidationResult:
    """Result of a legality check."""

    is_valid: bool = True
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def error(cls, code: str, message: str) -> "ValidationResult":
        return cls(
            is_valid=False,
            error_code=code,
            error_message=message,
        )


def validate_action(
    state: GameState,
    action: GameAction,
    tribe_id: str,
) -> ValidationResult:
    """Validate that a tribe may submit an action right now.

    Checks:
    - The game has not finished
    - The tribe exists and has not been eliminated
    - It is the tribe's turn

    Action-specific legality (ownership, resources, stance) is checked by the
    handler for that action.
    """
    action_type = type(action).__name__
    logger.debug(
        "Validating action: type=%s, tribe=%s, turn=%d",
        action_type,
        tribe_id,
        state.turn,
    )

    if state.phase == GamePhase.FINISHED:
        logger.warning("Validation failed: GAME_FINISHED")
        return ValidationResult.error("GAME_FINISHED", "Game has already finished")

    player = next((p for p in state.players if p.tribe_id == tribe_id), None)
    if player is None:
        logger.warning("Validation failed: PLAYER_NOT_FOUND, tribe=%s", tribe_id)
        return ValidationResult.error("PLAYER_NOT_FOUND", f"Tribe '{tribe_id}' is not in this game")

    if player.eliminated:
        logger.warning("Validation failed: PLAYER_ELIMINATED, tribe=%s", tribe_id)
        return ValidationResult.error("PLAYER_ELIMINATED", "Tribe has been eliminated")

    if state.current_player != tribe_id:
        logger.warning(
            "Validation failed: NOT_YOUR_TURN, current=%s, attempted=%s",
            state.current_player,
            tribe_id,
        )
        return ValidationResult.error("NOT_YOUR_TURN", "It's not your turn")

    logger.debug("Action validated successfully: type=%s", action_type)
    return ValidationResult.ok()
