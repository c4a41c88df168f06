"""Tests for diplomacy: stances, war, peace and alliances.

Critical scenarios tested:
- Stance storage is symmetric and defaults to neutral
- War declaration breaks trade in both directions and drops peace proposals
- Peace needs a minimum war length, respects rejection cooldown
- Alliances need friendly stance
"""

from tribes_core.engine.diplomacy import (
    are_allied,
    are_at_war,
    create_initial_diplomacy,
    get_relation,
    get_stance,
    process_propose_alliance,
    process_propose_peace,
    process_respond_peace,
    relation_key,
    set_stance,
    update_diplomacy_timers,
)
from tribes_core.engine.warfare import declare_war, process_declare_war
from tribes_core.schemas.game_state import (
    DiplomaticStance,
    GameState,
    PeaceProposal,
    TradeRouteStatus,
)

from .conftest import (
    TRIBE_A,
    TRIBE_B,
    TRIBE_C,
    create_game_state,
    create_player,
    create_route,
    create_settlement,
)


def _at_war_for(turns: int, **overrides) -> GameState:
    state = create_game_state(stances={(TRIBE_A, TRIBE_B): DiplomaticStance.WAR}, **overrides)
    for _ in range(turns):
        state = update_diplomacy_timers(state)
    return state


class TestStances:
    """Test stance storage and queries."""

    def test_relation_key_is_order_independent(self):
        assert relation_key(TRIBE_B, TRIBE_A) == relation_key(TRIBE_A, TRIBE_B) == "tribe_a|tribe_b"

    def test_missing_relation_is_neutral(self, empty_game: GameState):
        assert get_stance(empty_game, TRIBE_A, TRIBE_B) == DiplomaticStance.NEUTRAL
        assert not are_at_war(empty_game, TRIBE_A, TRIBE_B)

    def test_own_tribe_counts_as_allied_but_not_an_alliance(self, empty_game: GameState):
        assert get_stance(empty_game, TRIBE_A, TRIBE_A) == DiplomaticStance.ALLIED
        assert not are_allied(empty_game, TRIBE_A, TRIBE_A)
        assert not are_at_war(empty_game, TRIBE_A, TRIBE_A)

    def test_set_stance_is_symmetric_and_resets_timer(self, empty_game: GameState):
        state = update_diplomacy_timers(set_stance(empty_game, TRIBE_A, TRIBE_B, DiplomaticStance.FRIENDLY))
        assert get_relation(state, TRIBE_B, TRIBE_A).turns_at_current_stance == 1

        state = set_stance(state, TRIBE_B, TRIBE_A, DiplomaticStance.ALLIED)

        assert are_allied(state, TRIBE_A, TRIBE_B)
        assert get_relation(state, TRIBE_A, TRIBE_B).turns_at_current_stance == 0

    def test_initial_diplomacy_covers_every_pair(self):
        diplomacy = create_initial_diplomacy([TRIBE_A, TRIBE_B, TRIBE_C])

        assert set(diplomacy.relations) == {"tribe_a|tribe_b", "tribe_a|tribe_c", "tribe_b|tribe_c"}
        assert all(r.stance == DiplomaticStance.NEUTRAL for r in diplomacy.relations.values())


class TestWar:
    """Test war declaration."""

    def test_declare_war_breaks_trade_both_ways(self):
        state = create_game_state(
            settlements=[
                create_settlement("settlement_1", TRIBE_A, 1, 1),
                create_settlement("settlement_2", TRIBE_B, 6, 6),
            ]
        )
        state = state.model_copy(
            update={
                "trade_routes": [
                    create_route("trade_1", "settlement_1", "settlement_2", TRIBE_A, TRIBE_B),
                    create_route("trade_2", "settlement_2", "settlement_1", TRIBE_B, TRIBE_A),
                ]
            }
        )

        result = process_declare_war(state, TRIBE_A, TRIBE_B)

        assert result.success
        assert are_at_war(result.state, TRIBE_B, TRIBE_A)
        assert all(r.status == TradeRouteStatus.BROKEN for r in result.state.trade_routes)
        assert [e.event_type for e in result.events] == ["war_declared", "trade_route_broken", "trade_route_broken"]
        assert {e.reason for e in result.events[1:]} == {"war"}

    def test_declare_war_drops_pending_peace_proposals(self):
        state = _at_war_for(6, players=[create_player(TRIBE_A), create_player(TRIBE_B), create_player(TRIBE_C)])
        proposals = [
            PeaceProposal(proposer=TRIBE_A, target=TRIBE_B, turn=1),
            PeaceProposal(proposer=TRIBE_C, target=TRIBE_B, turn=1),
        ]
        state = state.model_copy(
            update={"diplomacy": state.diplomacy.model_copy(update={"peace_proposals": proposals})}
        )
        state = set_stance(state, TRIBE_A, TRIBE_B, DiplomaticStance.HOSTILE)

        state = declare_war(state, TRIBE_B, TRIBE_A)

        assert [p.proposer for p in state.diplomacy.peace_proposals] == [TRIBE_C]

    def test_declare_war_errors(self, empty_game: GameState):
        at_war = _at_war_for(0)

        assert process_declare_war(at_war, TRIBE_A, TRIBE_B).error_code == "ALREADY_AT_WAR"
        assert process_declare_war(empty_game, TRIBE_A, TRIBE_A).error_code == "INVALID_TARGET"
        assert process_declare_war(empty_game, TRIBE_A, "tribe_x").error_code == "TRIBE_NOT_FOUND"

    def test_cannot_declare_war_on_eliminated_tribe(self):
        state = create_game_state(players=[create_player(TRIBE_A), create_player(TRIBE_B, eliminated=True)])

        assert process_declare_war(state, TRIBE_A, TRIBE_B).error_code == "TRIBE_ELIMINATED"


class TestPeace:
    """Test peace proposals and responses."""

    def test_peace_needs_war(self, empty_game: GameState):
        assert process_propose_peace(empty_game, TRIBE_A, TRIBE_B).error_code == "NOT_AT_WAR"

    def test_war_too_recent(self):
        assert process_propose_peace(_at_war_for(4), TRIBE_A, TRIBE_B).error_code == "WAR_TOO_RECENT"

    def test_propose_and_accept(self):
        proposed = process_propose_peace(_at_war_for(5), TRIBE_A, TRIBE_B)
        assert proposed.success
        assert process_propose_peace(proposed.state, TRIBE_A, TRIBE_B).error_code == "PEACE_ALREADY_PROPOSED"

        accepted = process_respond_peace(proposed.state, TRIBE_B, TRIBE_A, True)

        assert accepted.success
        assert get_stance(accepted.state, TRIBE_A, TRIBE_B) == DiplomaticStance.HOSTILE
        assert accepted.state.diplomacy.peace_proposals == []
        assert [e.event_type for e in accepted.events] == ["peace_made"]

    def test_rejection_cooldown(self):
        proposed = process_propose_peace(_at_war_for(5, turn=10), TRIBE_A, TRIBE_B)
        rejected = process_respond_peace(proposed.state, TRIBE_B, TRIBE_A, False)
        assert get_stance(rejected.state, TRIBE_A, TRIBE_B) == DiplomaticStance.WAR

        soon = rejected.state.model_copy(update={"turn": 12})
        later = rejected.state.model_copy(update={"turn": 13})

        assert process_propose_peace(soon, TRIBE_A, TRIBE_B).error_code == "PEACE_RECENTLY_REJECTED"
        assert process_propose_peace(later, TRIBE_A, TRIBE_B).success
        assert process_propose_peace(soon, TRIBE_B, TRIBE_A).success

    def test_respond_without_proposal(self):
        result = process_respond_peace(_at_war_for(5), TRIBE_B, TRIBE_A, True)

        assert result.error_code == "NO_PEACE_PROPOSAL"


class TestAlliance:
    """Test alliances."""

    def test_alliance_needs_friendly_stance(self, empty_game: GameState):
        assert process_propose_alliance(empty_game, TRIBE_A, TRIBE_B).error_code == "NOT_FRIENDLY"

    def test_friendly_tribes_ally(self):
        state = create_game_state(stances={(TRIBE_A, TRIBE_B): DiplomaticStance.FRIENDLY})

        result = process_propose_alliance(state, TRIBE_A, TRIBE_B)

        assert are_allied(result.state, TRIBE_A, TRIBE_B)
        assert process_propose_alliance(result.state, TRIBE_B, TRIBE_A).error_code == "ALREADY_ALLIED"
