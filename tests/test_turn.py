"""Tests for the end-of-turn pipeline, rotation and game over.

Critical scenarios tested:
- Rotation follows seating order, skips eliminated tribes, wraps the turn
- Each pipeline stage runs for the acting tribe only
- Trade routes activate after two of their owner's turns
- Golden age triggers and great person spawns run at end of turn
- Game ends on the turn limit or when one tribe holds every settlement
- Scoring and winner selection
"""

from tribes_core.engine.turn import (
    calculate_score,
    check_game_over,
    determine_winner,
    get_next_player,
    process_end_turn,
)
from tribes_core.schemas.game_state import (
    BuiltWonder,
    DiplomaticStance,
    GamePhase,
    GameState,
    GreatPeopleAccumulator,
    ProductionItem,
    ProductionType,
    TerrainType,
    UnitRarity,
)

from .conftest import (
    TRIBE_A,
    TRIBE_B,
    TRIBE_C,
    create_game_state,
    create_grid_map,
    create_player,
    create_route,
    create_settlement,
    create_unit,
    get_player,
)


def _end_round(state: GameState) -> GameState:
    """End the turn for every tribe in seating order."""
    for _ in state.players:
        state = process_end_turn(state, state.current_player).state
    return state


class TestRotation:
    """Test turn order."""

    def test_next_player_in_seating_order(self, empty_game: GameState):
        result = process_end_turn(empty_game, TRIBE_A)

        assert result.state.current_player == TRIBE_B
        assert result.state.turn == 1

    def test_turn_advances_on_wrap(self, empty_game: GameState):
        state = process_end_turn(empty_game, TRIBE_A).state

        result = process_end_turn(state, TRIBE_B)

        assert result.state.current_player == TRIBE_A
        assert result.state.turn == 2
        assert [e.event_type for e in result.events][-2:] == ["turn_ended", "turn_started"]
        assert result.events[-2].turn == 1
        assert result.events[-1].turn == 2

    def test_eliminated_tribes_are_skipped(self):
        state = create_game_state(
            players=[create_player(TRIBE_A), create_player(TRIBE_B, eliminated=True), create_player(TRIBE_C)]
        )

        assert get_next_player(state) == TRIBE_C
        state = state.model_copy(update={"current_player": TRIBE_C})
        assert get_next_player(state) == TRIBE_A

    def test_input_state_is_not_modified(self, empty_game: GameState):
        process_end_turn(empty_game, TRIBE_A)

        assert empty_game.current_player == TRIBE_A
        assert empty_game.turn == 1


class TestPipeline:
    """Test the end-of-turn stages."""

    def test_production_runs_for_acting_tribe_only(self):
        queue = [ProductionItem(type=ProductionType.BUILDING, id="monument", cost=30)]
        state = create_game_state(
            settlements=[
                create_settlement("settlement_1", TRIBE_A, 1, 1, production_queue=queue),
                create_settlement("settlement_2", TRIBE_B, 7, 7, production_queue=queue),
            ]
        )

        state = process_end_turn(state, TRIBE_A).state

        assert state.settlements["settlement_1"].production_queue[0].progress == 2
        assert state.settlements["settlement_2"].production_queue[0].progress == 0

    def test_completed_production_emits_events(self):
        queue = [ProductionItem(type=ProductionType.UNIT, id="warrior", cost=40, progress=39)]
        state = create_game_state(settlements=[create_settlement("settlement_1", TRIBE_A, 1, 1, production_queue=queue)])

        result = process_end_turn(state, TRIBE_A)

        types = [e.event_type for e in result.events]
        assert types[:2] == ["production_completed", "unit_created"]
        assert len(result.state.units) == 1

    def test_growth_and_milestone_events(self):
        state = create_game_state(
            settlements=[create_settlement("settlement_1", TRIBE_A, 4, 4, population=14, population_progress=40)],
            game_map=create_grid_map(terrain=TerrainType.GRASSLAND),
        )

        result = process_end_turn(state, TRIBE_A)

        types = [e.event_type for e in result.events]
        assert "settlement_grew" in types
        assert "milestone_reached" in types
        assert result.state.settlements["settlement_1"].level == 2

    def test_economy_updates_treasury(self):
        state = create_game_state(settlements=[create_settlement("settlement_1", TRIBE_A, 1, 1)])

        result = process_end_turn(state, TRIBE_A)

        assert get_player(result.state, TRIBE_A).treasury == 2
        treasury_event = next(e for e in result.events if e.event_type == "treasury_updated")
        assert (treasury_event.net, treasury_event.treasury) == (2, 2)

    def test_trade_route_activates_after_two_owner_turns(self, trading_game: GameState):
        state = trading_game.model_copy(
            update={
                "trade_routes": [
                    create_route(
                        "trade_1", "settlement_1", "settlement_2", TRIBE_A, TRIBE_A,
                        gold=1, active=False, turns_until_active=2,
                    )
                ]
            }
        )

        state = _end_round(state)
        assert state.trade_routes[0].active is False

        result = process_end_turn(state, TRIBE_A)
        assert result.state.trade_routes[0].active is True
        assert "trade_route_activated" in [e.event_type for e in result.events]

    def test_border_expansion_banks_culture(self):
        state = create_game_state(
            settlements=[
                create_settlement("settlement_1", TRIBE_A, 4, 4, buildings=["monument"], culture_accumulated=8)
            ]
        )

        result = process_end_turn(state, TRIBE_A)

        assert result.state.settlements["settlement_1"].culture_accumulated == 10
        expanded = next(e for e in result.events if e.event_type == "borders_expanded")
        assert expanded.tiles_claimed == 19

    def test_units_heal_and_reset(self):
        state = create_game_state(
            units=[
                create_unit("unit_1", "warrior", TRIBE_A, 1, 1, health=50, movement_remaining=0),
                create_unit("unit_2", "warrior", TRIBE_A, 2, 2, health=50, has_acted=True),
            ]
        )

        state = process_end_turn(state, TRIBE_A).state

        assert (state.units["unit_1"].health, state.units["unit_1"].movement_remaining) == (60, 2)
        assert (state.units["unit_2"].health, state.units["unit_2"].has_acted) == (50, False)

    def test_settlements_regenerate(self):
        state = create_game_state(settlements=[create_settlement("settlement_1", TRIBE_A, 1, 1, health=12)])

        state = process_end_turn(state, TRIBE_A).state

        assert state.settlements["settlement_1"].health == 17

    def test_diplomacy_timers_tick(self):
        state = create_game_state(stances={(TRIBE_A, TRIBE_B): DiplomaticStance.WAR})

        state = process_end_turn(state, TRIBE_A).state

        assert state.diplomacy.relations["tribe_a|tribe_b"].turns_at_current_stance == 1

    def test_fourth_settlement_starts_golden_age(self):
        state = create_game_state(
            settlements=[create_settlement(f"settlement_{i}", TRIBE_A, i * 2, 2) for i in range(1, 5)]
        )

        result = process_end_turn(state, TRIBE_A)

        started = next(e for e in result.events if e.event_type == "golden_age_started")
        assert started.trigger == "found_4th_settlement"
        assert get_player(result.state, TRIBE_A).golden_age.turns_remaining == 3

    def test_great_person_spawns_at_threshold(self, monkeypatch):
        monkeypatch.setattr("tribes_core.engine.units.GREAT_PERSON_SPAWN_CHANCE", 1.0)
        state = create_game_state(
            players=[
                create_player(TRIBE_A, great_people=GreatPeopleAccumulator(gold=200)),
                create_player(TRIBE_B),
            ],
            settlements=[create_settlement("settlement_1", TRIBE_A, 1, 1, is_capital=True)],
        )

        result = process_end_turn(state, TRIBE_A)

        earned = next(e for e in result.events if e.event_type == "great_person_earned")
        assert (earned.great_person_id, earned.kind) == ("big_brain", "merchant")
        assert result.state.units[earned.unit_id].great_person_kind == "merchant"


class TestGameOver:
    """Test game end conditions, scoring and winners."""

    def test_turn_limit_ends_game(self):
        state = create_game_state(
            turn=50,
            current_player=TRIBE_B,
            settlements=[
                create_settlement("settlement_1", TRIBE_A, 1, 1),
                create_settlement("settlement_2", TRIBE_B, 7, 7, level=2),
            ],
        )

        result = process_end_turn(state, TRIBE_B)

        assert result.state.phase == GamePhase.FINISHED
        assert result.state.winner == TRIBE_B
        assert result.events[-1].event_type == "game_ended"
        assert "turn_started" not in [e.event_type for e in result.events]

    def test_last_tribe_with_settlements_wins_after_grace(self):
        state = create_game_state(turn=6, settlements=[create_settlement("settlement_1", TRIBE_B, 1, 1)])

        state, events = check_game_over(state)

        assert state.winner == TRIBE_B
        assert events[0].scores.keys() == {TRIBE_A, TRIBE_B}

    def test_no_conquest_victory_during_grace(self):
        state = create_game_state(turn=5, settlements=[create_settlement("settlement_1", TRIBE_B, 1, 1)])

        assert check_game_over(state) == (state, [])

    def test_finished_game_is_not_re_ended(self):
        state = create_game_state(turn=99, phase=GamePhase.FINISHED)

        assert check_game_over(state) == (state, [])

    def test_score(self):
        state = create_game_state(
            players=[
                create_player(
                    TRIBE_A,
                    researched_techs={"coding", "mining"},
                    unlocked_cultures={"community"},
                    treasury=57,
                    kill_count=2,
                ),
                create_player(TRIBE_B),
            ],
            settlements=[create_settlement("settlement_1", TRIBE_A, 1, 1, level=2)],
            units=[
                create_unit("unit_1", "warrior", TRIBE_A, 1, 1),
                create_unit("unit_2", "warrior", TRIBE_A, 1, 2, rarity=UnitRarity.EPIC),
            ],
            wonders=[BuiltWonder(id="candy_machine", owner=TRIBE_A, settlement_id="settlement_1", turn=3)],
        )
        tiles = dict(state.map.tiles)
        for key in ("1,1", "1,2", "2,1"):
            tiles[key] = tiles[key].model_copy(update={"owner": TRIBE_A})
        state = state.model_copy(update={"map": state.map.model_copy(update={"tiles": tiles})})

        # settlement 20, tiles 3, techs 10, cultures 5, gold 5, kills 6, units 9, wonder 75
        assert calculate_score(state, TRIBE_A) == 133
        assert calculate_score(state, TRIBE_B) == 0

    def test_score_tie_goes_to_first_seat(self, empty_game: GameState):
        assert determine_winner(empty_game, {TRIBE_A: 10, TRIBE_B: 10}) == TRIBE_A
        assert determine_winner(empty_game, {TRIBE_A: 9, TRIBE_B: 10}) == TRIBE_B
