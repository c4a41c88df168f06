"""Snapshot lookup and replacement helpers shared by the engine modules."""

from tribes_core.schemas.game_state import GameState, Player, Settlement, Unit


def get_player(state: GameState, tribe_id: str) -> Player | None:
    return next((p for p in state.players if p.tribe_id == tribe_id), None)


def update_player(state: GameState, player: Player) -> GameState:
    """Return a new state with the player of the same tribe replaced."""
    players = [player if p.tribe_id == player.tribe_id else p for p in state.players]
    return state.model_copy(update={"players": players})


def update_settlement(state: GameState, settlement: Settlement) -> GameState:
    settlements = {**state.settlements, settlement.id: settlement}
    return state.model_copy(update={"settlements": settlements})


def update_unit(state: GameState, unit: Unit) -> GameState:
    units = {**state.units, unit.id: unit}
    return state.model_copy(update={"units": units})


def remove_unit(state: GameState, unit_id: str) -> GameState:
    units = {uid: u for uid, u in state.units.items() if uid != unit_id}
    return state.model_copy(update={"units": units})


def get_tribe_settlements(state: GameState, tribe_id: str) -> list[Settlement]:
    return [s for s in state.settlements.values() if s.owner == tribe_id]


def get_tribe_units(state: GameState, tribe_id: str) -> list[Unit]:
    return [u for u in state.units.values() if u.owner == tribe_id]


def reveal_hexes(state: GameState, tribe_id: str, keys: set[str]) -> GameState:
    """Add hex keys to a tribe's revealed fog set."""
    current = state.fog.get(tribe_id, set())
    if keys <= current:
        return state
    fog = {**state.fog, tribe_id: current | keys}
    return state.model_copy(update={"fog": fog})
