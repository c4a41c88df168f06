"""Shared fixtures for game engine tests."""

import pytest

from tribes_core.engine.rules import UNIT_DEFINITIONS
from tribes_core.engine.settlements import max_health_for_level, population_threshold
from tribes_core.schemas.game_state import (
    DiplomacyState,
    DiplomaticRelation,
    DiplomaticStance,
    GameState,
    HexCoord,
    HexMap,
    Player,
    Settlement,
    TerrainType,
    Tile,
    TradeRoute,
    TribeName,
    Unit,
)

# Fixed tribe ids for deterministic testing. Tribes A and B carry no tribe bonuses.
TRIBE_A = "tribe_a"
TRIBE_B = "tribe_b"
TRIBE_C = "tribe_c"

TRIBE_NAMES = {
    TRIBE_A: TribeName.GREGS,
    TRIBE_B: TribeName.DRAGONZ,
    TRIBE_C: TribeName.MONKES,
}


def create_grid_map(
    width: int = 10,
    height: int = 10,
    terrain: TerrainType = TerrainType.DESERT,
    overrides: dict[tuple[int, int], TerrainType] | None = None,
) -> HexMap:
    """Rectangular axial map. Desert everywhere by default, so tiles yield nothing."""
    overrides = overrides or {}
    tiles = {}
    for q in range(width):
        for r in range(height):
            tiles[f"{q},{r}"] = Tile(coord=HexCoord(q=q, r=r), terrain=overrides.get((q, r), terrain))
    return HexMap(width=width, height=height, tiles=tiles)


def create_player(tribe_id: str, **overrides) -> Player:
    """Helper to create a player with the tribe template mapped to its id."""
    return Player(tribe_id=tribe_id, tribe_name=TRIBE_NAMES[tribe_id], **overrides)


def create_unit(unit_id: str, unit_type: str, owner: str, q: int, r: int, **overrides) -> Unit:
    """Helper to create a common-rarity unit from its definition."""
    definition = UNIT_DEFINITIONS[unit_type]
    fields = {
        "id": unit_id,
        "type": unit_type,
        "owner": owner,
        "position": HexCoord(q=q, r=r),
        "health": definition.health,
        "max_health": definition.health,
        "movement_remaining": definition.movement,
        "max_movement": definition.movement,
        "combat_strength": definition.combat_strength,
        "ranged_strength": definition.ranged_strength,
        "settlement_strength": definition.settlement_strength,
        "build_charges": definition.build_charges,
    }
    fields.update(overrides)
    return Unit(**fields)


def create_settlement(settlement_id: str, owner: str, q: int, r: int, **overrides) -> Settlement:
    """Helper to create a population-1 settlement at full health."""
    level = overrides.get("level", 1)
    fields = {
        "id": settlement_id,
        "name": settlement_id.title(),
        "owner": owner,
        "position": HexCoord(q=q, r=r),
        "population_threshold": population_threshold(overrides.get("population", 1)),
        "health": max_health_for_level(level),
        "max_health": max_health_for_level(level),
    }
    fields.update(overrides)
    return Settlement(**fields)


def create_route(
    route_id: str,
    origin: str,
    destination: str,
    owner: str,
    target: str,
    gold: int = 2,
    active: bool = True,
    turns_until_active: int = 0,
) -> TradeRoute:
    return TradeRoute(
        id=route_id,
        origin=origin,
        destination=destination,
        owner_tribe=owner,
        target_tribe=target,
        gold_per_turn=gold,
        active=active,
        turns_until_active=turns_until_active,
    )


def create_game_state(
    players: list[Player] | None = None,
    settlements: list[Settlement] | None = None,
    units: list[Unit] | None = None,
    game_map: HexMap | None = None,
    stances: dict[tuple[str, str], DiplomaticStance] | None = None,
    **overrides,
) -> GameState:
    """Helper to assemble a game on turn 1 with tribe A to act."""
    if players is None:
        players = [create_player(TRIBE_A), create_player(TRIBE_B)]
    relations = {}
    for (tribe_a, tribe_b), stance in (stances or {}).items():
        relations["|".join(sorted((tribe_a, tribe_b)))] = DiplomaticRelation(stance=stance)

    fields = {
        "seed": 42,
        "turn": 1,
        "max_turns": 50,
        "current_player": players[0].tribe_id,
        "players": players,
        "map": game_map or create_grid_map(),
        "settlements": {s.id: s for s in settlements or []},
        "units": {u.id: u for u in units or []},
        "fog": {p.tribe_id: set() for p in players},
        "diplomacy": DiplomacyState(relations=relations),
    }
    fields.update(overrides)
    return GameState(**fields)


def get_player(state: GameState, tribe_id: str) -> Player:
    return next(p for p in state.players if p.tribe_id == tribe_id)


def reveal(state: GameState, tribe_id: str, *coords: tuple[int, int]) -> GameState:
    """Return a copy of state with the given hexes revealed to a tribe."""
    keys = {f"{q},{r}" for q, r in coords}
    return state.model_copy(update={"fog": {**state.fog, tribe_id: state.fog.get(tribe_id, set()) | keys}})


@pytest.fixture
def empty_game() -> GameState:
    """Two tribes, no settlements or units, on a desert map."""
    return create_game_state()


@pytest.fixture
def trading_game() -> GameState:
    """Tribe A owns two settlements and has unlocked trade; tribe B owns one.

    All settlements sit on desert, so each yields 2 gold from its center.
    """
    return create_game_state(
        players=[
            create_player(TRIBE_A, researched_techs={"coding", "smart_contracts"}),
            create_player(TRIBE_B),
        ],
        settlements=[
            create_settlement("settlement_1", TRIBE_A, 1, 1, is_capital=True),
            create_settlement("settlement_2", TRIBE_A, 6, 1),
            create_settlement("settlement_3", TRIBE_B, 1, 6, is_capital=True),
        ],
    )
