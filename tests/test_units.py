"""Tests for units: creation, movement, builders, promotions, great people, healing.

Critical scenarios tested:
- Rarity bonuses apply to military units only; rolls are deterministic
- Movement follows the shortest open path; water and enemy units block it
- Builders improve owned tiles, spend charges and vanish when empty
- Promotions need experience and prerequisites
- Great people spawn once per game at thresholds; effects by kind
- Healing amounts by location
"""

import random

from tribes_core.engine.sequences import derive_rng
from tribes_core.engine.units import (
    calculate_healing,
    create_unit as build_unit,
    get_available_promotions,
    process_build_improvement,
    process_move_unit,
    process_select_promotion,
    process_unit_healing,
    process_use_great_person,
    reset_player_units,
    roll_rarity,
    spawn_great_people,
    spawn_unit,
)
from tribes_core.schemas.game_state import (
    GameState,
    GreatPeopleAccumulator,
    HexCoord,
    Resource,
    ResourceCategory,
    Sequences,
    TerrainType,
    UnitRarity,
)

from .conftest import (
    TRIBE_A,
    TRIBE_B,
    create_game_state,
    create_grid_map,
    create_player,
    create_settlement,
    create_unit,
    get_player,
)


def _own_tiles(state: GameState, tribe_id: str, *keys: str) -> GameState:
    tiles = dict(state.map.tiles)
    for key in keys:
        tiles[key] = tiles[key].model_copy(update={"owner": tribe_id})
    return state.model_copy(update={"map": state.map.model_copy(update={"tiles": tiles})})


class TestCreation:
    """Test unit creation and rarity."""

    def test_rarity_bonus_for_military_units(self):
        unit, sequences = build_unit(Sequences(), "warrior", TRIBE_A, HexCoord(q=0, r=0), UnitRarity.EPIC)

        assert unit.id == "unit_1"
        assert unit.combat_strength == 30
        assert unit.max_movement == unit.movement_remaining == 3
        assert sequences.next_entity_id == 2

    def test_civilians_ignore_rarity(self):
        unit, _ = build_unit(Sequences(), "settler", TRIBE_A, HexCoord(q=0, r=0), UnitRarity.LEGENDARY)

        assert unit.combat_strength == 0
        assert unit.max_movement == 2

    def test_ranged_strength_gets_bonus(self):
        unit, _ = build_unit(Sequences(), "archer", TRIBE_A, HexCoord(q=0, r=0), UnitRarity.RARE)

        assert (unit.combat_strength, unit.ranged_strength) == (15, 30)

    def test_rarity_rolls_are_deterministic(self):
        first = [roll_rarity(derive_rng(7, 3, "tribe_a")) for _ in range(5)]
        second = [roll_rarity(derive_rng(7, 3, "tribe_a")) for _ in range(5)]

        assert first == second

    def test_rarity_distribution_covers_common(self):
        rng = random.Random(1)
        rolls = {roll_rarity(rng) for _ in range(200)}

        assert UnitRarity.COMMON in rolls

    def test_spawn_reveals_vision_radius(self, empty_game: GameState):
        state, unit = spawn_unit(empty_game, "scout", TRIBE_A, HexCoord(q=5, r=5))

        assert state.units[unit.id].rarity == UnitRarity.COMMON
        assert len(state.fog[TRIBE_A]) == 19
        assert state.fog[TRIBE_B] == set()


class TestMovement:
    """Test the move handler."""

    def test_move_costs_distance_and_marks_acted(self):
        state = create_game_state(units=[create_unit("unit_1", "scout", TRIBE_A, 2, 2)])

        result = process_move_unit(state, TRIBE_A, "unit_1", HexCoord(q=4, r=2))

        unit = result.state.units["unit_1"]
        assert unit.position == HexCoord(q=4, r=2)
        assert unit.movement_remaining == 2
        assert unit.has_acted
        assert "6,2" in result.state.fog[TRIBE_A]
        assert result.events[0].movement_remaining == 2

    def test_move_errors(self):
        game_map = create_grid_map(overrides={(3, 2): TerrainType.WATER})
        state = create_game_state(
            units=[
                create_unit("unit_1", "warrior", TRIBE_A, 2, 2),
                create_unit("unit_2", "warrior", TRIBE_B, 2, 3),
                create_unit("unit_3", "warrior", TRIBE_A, 5, 5, movement_remaining=0),
            ],
            game_map=game_map,
        )

        def move(unit_id, q, r, tribe=TRIBE_A):
            return process_move_unit(state, tribe, unit_id, HexCoord(q=q, r=r)).error_code

        assert move("unit_1", 3, 2) == "IMPASSABLE_TERRAIN"
        assert move("unit_1", 2, 3) == "TILE_OCCUPIED"
        assert move("unit_1", 2, 2) == "ALREADY_THERE"
        assert move("unit_1", 5, 2) == "INSUFFICIENT_MOVEMENT"
        assert move("unit_1", 40, 2) == "TILE_NOT_FOUND"
        assert move("unit_3", 5, 4) == "NO_MOVEMENT"
        assert move("unit_1", 1, 2, tribe=TRIBE_B) == "NOT_OWNER"

    def test_water_wall_leaves_no_path(self):
        water = {(1, 0): TerrainType.WATER, (0, 1): TerrainType.WATER, (1, 1): TerrainType.WATER}
        state = create_game_state(
            units=[create_unit("unit_1", "warrior", TRIBE_A, 0, 0)],
            game_map=create_grid_map(overrides=water),
        )

        result = process_move_unit(state, TRIBE_A, "unit_1", HexCoord(q=2, r=0))

        assert result.error_code == "NO_PATH"

    def test_enemy_units_block_passage(self):
        state = create_game_state(
            units=[
                create_unit("unit_1", "warrior", TRIBE_A, 0, 0),
                create_unit("unit_2", "warrior", TRIBE_B, 1, 0),
            ]
        )

        result = process_move_unit(state, TRIBE_A, "unit_1", HexCoord(q=2, r=0))

        assert result.error_code == "NO_PATH"

    def test_detour_costs_extra_movement(self):
        state = create_game_state(
            units=[create_unit("unit_1", "scout", TRIBE_A, 2, 2)],
            game_map=create_grid_map(overrides={(3, 2): TerrainType.WATER}),
        )

        result = process_move_unit(state, TRIBE_A, "unit_1", HexCoord(q=4, r=2))

        assert result.success
        assert result.state.units["unit_1"].movement_remaining == 1

    def test_friendly_units_may_stack(self):
        state = create_game_state(
            units=[create_unit("unit_1", "warrior", TRIBE_A, 2, 2), create_unit("unit_2", "builder", TRIBE_A, 3, 2)]
        )

        assert process_move_unit(state, TRIBE_A, "unit_1", HexCoord(q=3, r=2)).success

    def test_reset_restores_movement(self):
        state = create_game_state(
            units=[
                create_unit("unit_1", "warrior", TRIBE_A, 2, 2, movement_remaining=0, has_acted=True),
                create_unit("unit_2", "warrior", TRIBE_B, 6, 6, movement_remaining=0, has_acted=True),
            ]
        )

        state = reset_player_units(state, TRIBE_A)

        assert (state.units["unit_1"].movement_remaining, state.units["unit_1"].has_acted) == (2, False)
        assert state.units["unit_2"].has_acted


class TestBuilders:
    """Test the build improvement handler."""

    def test_build_farm_spends_charge(self):
        state = _own_tiles(
            create_game_state(units=[create_unit("unit_1", "builder", TRIBE_A, 2, 2)]), TRIBE_A, "2,2"
        )

        result = process_build_improvement(state, TRIBE_A, "unit_1", "farm")

        assert result.success
        assert result.state.map.tiles["2,2"].improvement == "farm"
        builder = result.state.units["unit_1"]
        assert builder.build_charges == 2
        assert builder.has_acted
        assert result.events[0].charges_remaining == 2

    def test_last_charge_removes_builder(self):
        state = _own_tiles(
            create_game_state(units=[create_unit("unit_1", "builder", TRIBE_A, 2, 2, build_charges=1)]),
            TRIBE_A,
            "2,2",
        )

        result = process_build_improvement(state, TRIBE_A, "unit_1", "farm")

        assert "unit_1" not in result.state.units
        assert result.events[0].charges_remaining == 0

    def test_matching_resource_becomes_improved(self):
        game_map = create_grid_map(overrides={(2, 2): TerrainType.HILLS})
        tiles = dict(game_map.tiles)
        tiles["2,2"] = tiles["2,2"].model_copy(
            update={
                "owner": TRIBE_A,
                "resource": Resource(type="iron", category=ResourceCategory.STRATEGIC, revealed=True),
            }
        )
        state = create_game_state(
            players=[create_player(TRIBE_A, researched_techs={"mining"}), create_player(TRIBE_B)],
            units=[create_unit("unit_1", "builder", TRIBE_A, 2, 2)],
            game_map=game_map.model_copy(update={"tiles": tiles}),
        )

        result = process_build_improvement(state, TRIBE_A, "unit_1", "mine")

        assert result.state.map.tiles["2,2"].resource.improved

    def test_build_errors(self):
        state = create_game_state(
            units=[
                create_unit("unit_1", "builder", TRIBE_A, 2, 2),
                create_unit("unit_2", "warrior", TRIBE_A, 3, 3),
                create_unit("unit_3", "builder", TRIBE_A, 4, 4),
            ]
        )
        owned = _own_tiles(state, TRIBE_A, "2,2")

        assert process_build_improvement(state, TRIBE_A, "unit_1", "farm").error_code == "TILE_NOT_OWNED"
        assert process_build_improvement(owned, TRIBE_A, "unit_2", "farm").error_code == "NOT_A_BUILDER"
        assert process_build_improvement(owned, TRIBE_A, "unit_1", "castle").error_code == "IMPROVEMENT_NOT_FOUND"
        assert process_build_improvement(owned, TRIBE_A, "unit_1", "mine").error_code == "INVALID_IMPROVEMENT_TERRAIN"
        assert process_build_improvement(owned, TRIBE_A, "unit_1", "mint").error_code == "TECH_REQUIRED"

        improved = process_build_improvement(owned, TRIBE_A, "unit_1", "farm").state
        again = improved.model_copy(
            update={
                "units": {
                    **improved.units,
                    "unit_3": improved.units["unit_3"].model_copy(update={"position": HexCoord(q=2, r=2)}),
                }
            }
        )
        assert process_build_improvement(improved, TRIBE_A, "unit_1", "farm").error_code == "UNIT_ALREADY_ACTED"
        assert process_build_improvement(again, TRIBE_A, "unit_3", "farm").error_code == "TILE_ALREADY_IMPROVED"


class TestPromotions:
    """Test promotions."""

    def test_promotion_consumes_xp_and_boosts_unit(self):
        state = create_game_state(units=[create_unit("unit_1", "warrior", TRIBE_A, 2, 2, experience=12)])

        result = process_select_promotion(state, TRIBE_A, "unit_1", "drill")

        unit = result.state.units["unit_1"]
        assert (unit.level, unit.experience, unit.combat_strength) == (2, 2, 25)
        assert unit.promotions == ["drill"]

    def test_promotion_errors(self):
        state = create_game_state(
            units=[
                create_unit("unit_1", "warrior", TRIBE_A, 2, 2, experience=9),
                create_unit("unit_2", "warrior", TRIBE_A, 3, 3, experience=40, level=2, promotions=["drill"]),
                create_unit("unit_3", "warrior", TRIBE_A, 4, 4, experience=10),
            ]
        )

        assert process_select_promotion(state, TRIBE_A, "unit_1", "drill").error_code == "INSUFFICIENT_XP"
        assert process_select_promotion(state, TRIBE_A, "unit_2", "drill").error_code == "PROMOTION_ALREADY_TAKEN"
        assert process_select_promotion(state, TRIBE_A, "unit_3", "shock").error_code == "PROMOTION_PREREQUISITE_MISSING"
        assert process_select_promotion(state, TRIBE_A, "unit_3", "zap").error_code == "PROMOTION_NOT_FOUND"

    def test_available_promotions(self):
        unit = create_unit("unit_1", "warrior", TRIBE_A, 0, 0, promotions=["drill"])

        assert get_available_promotions(unit) == ["shock", "swift", "medic"]

    def test_swift_adds_movement(self):
        state = create_game_state(units=[create_unit("unit_1", "scout", TRIBE_A, 2, 2, experience=10)])

        result = process_select_promotion(state, TRIBE_A, "unit_1", "swift")

        assert result.state.units["unit_1"].max_movement == 5


class TestGreatPeople:
    """Test great person effects."""

    def _with_great_person(self, kind: str, capital: bool = True) -> GameState:
        unit = create_unit("unit_1", "great_person", TRIBE_A, 2, 2, great_person_kind=kind)
        settlements = [create_settlement("settlement_1", TRIBE_A, 2, 2, is_capital=capital)]
        return create_game_state(units=[unit], settlements=settlements)

    def test_merchant_adds_gold(self):
        result = process_use_great_person(self._with_great_person("merchant"), TRIBE_A, "unit_1")

        assert get_player(result.state, TRIBE_A).treasury == 100
        assert "unit_1" not in result.state.units

    def test_scientist_and_artist(self):
        scientist = process_use_great_person(self._with_great_person("scientist"), TRIBE_A, "unit_1")
        artist = process_use_great_person(self._with_great_person("artist"), TRIBE_A, "unit_1")

        assert get_player(scientist.state, TRIBE_A).research_progress == 40
        assert get_player(artist.state, TRIBE_A).culture_progress == 40

    def test_engineer_needs_capital(self):
        result = process_use_great_person(self._with_great_person("engineer"), TRIBE_A, "unit_1")
        assert result.state.settlements["settlement_1"].current_production == 60

        failed = process_use_great_person(self._with_great_person("engineer", capital=False), TRIBE_A, "unit_1")
        assert failed.error_code == "NO_CAPITAL"

    def test_regular_unit_is_not_a_great_person(self):
        state = create_game_state(units=[create_unit("unit_1", "warrior", TRIBE_A, 2, 2)])

        assert process_use_great_person(state, TRIBE_A, "unit_1").error_code == "NOT_A_GREAT_PERSON"


class TestGreatPersonSpawns:
    """Test threshold-based great person spawns."""

    def _scholar_game(self, research: int, earned_by_rival: list[str] | None = None) -> GameState:
        return create_game_state(
            players=[
                create_player(TRIBE_A, great_people=GreatPeopleAccumulator(research=research)),
                create_player(TRIBE_B, great_people_earned=earned_by_rival or []),
            ],
            settlements=[
                create_settlement("settlement_1", TRIBE_A, 6, 6),
                create_settlement("settlement_2", TRIBE_A, 2, 2, is_capital=True),
            ],
        )

    def test_threshold_spawns_at_capital(self, monkeypatch):
        monkeypatch.setattr("tribes_core.engine.units.GREAT_PERSON_SPAWN_CHANCE", 1.0)

        state, events = spawn_great_people(self._scholar_game(research=100), TRIBE_A)

        unit = state.units["unit_1"]
        assert (unit.type, unit.great_person_kind) == ("great_person", "scientist")
        assert unit.position == HexCoord(q=2, r=2)
        assert get_player(state, TRIBE_A).great_people_earned == ["mert"]
        assert [(e.event_type, e.great_person_id) for e in events] == [("great_person_earned", "mert")]

    def test_one_spawn_per_turn(self, monkeypatch):
        monkeypatch.setattr("tribes_core.engine.units.GREAT_PERSON_SPAWN_CHANCE", 1.0)

        state, events = spawn_great_people(self._scholar_game(research=250), TRIBE_A)

        assert len(state.units) == 1
        assert [e.great_person_id for e in events] == ["mert"]

        state, events = spawn_great_people(state, TRIBE_A)
        assert [e.great_person_id for e in events] == ["toly"]

    def test_each_great_person_is_earned_once(self, monkeypatch):
        monkeypatch.setattr("tribes_core.engine.units.GREAT_PERSON_SPAWN_CHANCE", 1.0)
        state = self._scholar_game(research=150, earned_by_rival=["mert"])

        assert spawn_great_people(state, TRIBE_A) == (state, [])

    def test_below_threshold_or_failed_roll(self, monkeypatch):
        monkeypatch.setattr("tribes_core.engine.units.GREAT_PERSON_SPAWN_CHANCE", 1.0)
        below = self._scholar_game(research=99)
        assert spawn_great_people(below, TRIBE_A) == (below, [])

        monkeypatch.setattr("tribes_core.engine.units.GREAT_PERSON_SPAWN_CHANCE", 0.0)
        unlucky = self._scholar_game(research=100)
        assert spawn_great_people(unlucky, TRIBE_A) == (unlucky, [])

    def test_no_settlement_no_spawn(self, monkeypatch):
        monkeypatch.setattr("tribes_core.engine.units.GREAT_PERSON_SPAWN_CHANCE", 1.0)
        state = create_game_state(
            players=[create_player(TRIBE_A, great_people=GreatPeopleAccumulator(research=500)), create_player(TRIBE_B)]
        )

        assert spawn_great_people(state, TRIBE_A) == (state, [])


class TestHealing:
    """Test end-of-turn healing."""

    def test_healing_by_location(self):
        state = create_game_state(
            settlements=[create_settlement("settlement_1", TRIBE_A, 2, 2)],
            units=[
                create_unit("unit_1", "warrior", TRIBE_A, 2, 2, health=50),
                create_unit("unit_2", "warrior", TRIBE_A, 2, 3, health=50),
                create_unit("unit_3", "warrior", TRIBE_A, 7, 7, health=50),
                create_unit("unit_4", "warrior", TRIBE_A, 7, 8, health=50, promotions=["medic"]),
                create_unit("unit_5", "warrior", TRIBE_A, 8, 8, health=50, has_acted=True),
            ],
        )
        state = _own_tiles(state, TRIBE_A, "2,3")

        healed = {uid: calculate_healing(state, unit) for uid, unit in state.units.items()}

        assert healed == {"unit_1": 20, "unit_2": 15, "unit_3": 10, "unit_4": 20, "unit_5": 0}

    def test_healing_caps_at_max(self):
        state = create_game_state(units=[create_unit("unit_1", "warrior", TRIBE_A, 2, 2, health=95)])

        state = process_unit_healing(state, TRIBE_A)

        assert state.units["unit_1"].health == 100
