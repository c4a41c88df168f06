import logging

from tribes_core.config import get_settings
from tribes_core.engine.diplomacy import create_initial_diplomacy
from tribes_core.engine.hexgrid import hex_key
from tribes_core.engine.rules import IMPASSABLE_TERRAIN
from tribes_core.engine.units import spawn_unit
from tribes_core.schemas.game_state import (
    GamePhase,
    GameSettings,
    GameState,
    HexMap,
    Player,
    Sequences,
)

logger = logging.getLogger(__name__)


def validate_game_settings(game_settings: GameSettings, game_map: HexMap | None = None) -> None:
    """Validate game settings before initializing a game."""
    settings = get_settings()
    num_players = len(game_settings.players)
    if num_players < settings.MIN_PLAYERS:
        raise ValueError(f"A minimum of {settings.MIN_PLAYERS} players is required to start the game.")
    if num_players > settings.MAX_PLAYERS:
        raise ValueError(f"At most {settings.MAX_PLAYERS} players can join a game.")
    if game_settings.max_turns is not None and game_settings.max_turns <= 0:
        raise ValueError("max_turns must be positive.")
    if game_settings.starting_treasury is not None and game_settings.starting_treasury < 0:
        raise ValueError("starting_treasury cannot be negative.")

    # Ensure each player has a unique id and tribe
    tribe_ids: set[str] = set()
    tribe_names: set[str] = set()
    for player in game_settings.players:
        if player.tribe_id in tribe_ids:
            raise ValueError(f"Duplicate tribe ID found: {player.tribe_id}")
        if player.tribe_name.value in tribe_names:
            raise ValueError(f"Duplicate tribe found: {player.tribe_name.value}")
        tribe_ids.add(player.tribe_id)
        tribe_names.add(player.tribe_name.value)

        if game_map is not None:
            tile = game_map.tiles.get(hex_key(player.start_position))
            if tile is None:
                raise ValueError(f"Start position of {player.tribe_id} is off the map.")
            if tile.terrain in IMPASSABLE_TERRAIN:
                raise ValueError(f"Start position of {player.tribe_id} is impassable.")


def _initialize_players(game_settings: GameSettings, treasury: int) -> list[Player]:
    """Create players in seating order; that order is the turn rotation."""
    return [
        Player(
            tribe_id=setup.tribe_id,
            tribe_name=setup.tribe_name,
            is_human=setup.is_human,
            treasury=treasury,
        )
        for setup in game_settings.players
    ]


def initialize_game(game_settings: GameSettings, game_map: HexMap) -> GameState:
    """
    Validate game settings and return an initialized GameState.

    Args:
        game_settings: Seed, players and optional overrides of the configured
                       turn limit and starting treasury.
        game_map: The generated map the game is played on.

    Returns:
        A GameState on turn 1 with the first player to act, starting units
        placed and their surroundings revealed.

    Raises:
        ValueError: If game settings are invalid.
    """
    validate_game_settings(game_settings, game_map)
    settings = get_settings()

    max_turns = game_settings.max_turns or settings.DEFAULT_MAX_TURNS
    treasury = (
        game_settings.starting_treasury
        if game_settings.starting_treasury is not None
        else settings.STARTING_TREASURY
    )
    players = _initialize_players(game_settings, treasury)

    state = GameState(
        seed=game_settings.seed,
        turn=1,
        max_turns=max_turns,
        phase=GamePhase.IN_PROGRESS,
        current_player=players[0].tribe_id,
        players=players,
        map=game_map,
        fog={p.tribe_id: set() for p in players},
        diplomacy=create_initial_diplomacy([p.tribe_id for p in players]),
        sequences=Sequences(),
    )

    for setup in game_settings.players:
        for unit_type in settings.STARTING_UNITS:
            state, _ = spawn_unit(state, unit_type, setup.tribe_id, setup.start_position)

    logger.info(
        "Game initialized: seed=%d, players=%d, max_turns=%d",
        game_settings.seed,
        len(players),
        max_turns,
    )
    return state
