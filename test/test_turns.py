"""Turn phases, hand limits and action points."""

from tianxia.engine import actions as act
from tianxia.engine.events import ACTION_REJECTED, TURN_STARTED, PHASE_CHANGED
from tianxia.engine.reducer import apply_action, replay_from_actions
from tianxia.engine.queries import get_available_action_types
from tianxia.engine.state import CardInstance
from tianxia.engine.utils import initialize_game_state


def test_draw_phase_blocks_everything_else(catalog):
    state = initialize_game_state(["A", "B"], catalog, seed=4)
    for action in (act.end_turn("player-0"), act.advance_phase("player-0")):
        new_state, events = apply_action(state, action, catalog)
        assert events[0].type == ACTION_REJECTED
        assert events[0].payload["reason"] == "Draw cards first"
        assert new_state.log[-1].rejected
        assert new_state.turn_phase == "draw"


def test_rejection_leaves_input_untouched(catalog):
    state = initialize_game_state(["A", "B"], catalog, seed=4)
    snapshot = state.to_dict()
    apply_action(state, act.end_turn("player-1"), catalog)
    assert state.to_dict() == snapshot


def test_unknown_player_is_a_noop(catalog):
    state = initialize_game_state(["A", "B"], catalog, seed=4)
    new_state, events = apply_action(state, act.draw_cards("player-9"), catalog)
    assert new_state is state
    assert events == []


def test_draw_then_action_phase(catalog):
    state = initialize_game_state(["A", "B"], catalog, seed=4)
    state, events = apply_action(state, act.draw_cards("player-0"), catalog)
    assert len(state.current_player.hand) == 7
    assert state.turn_phase == "action"
    assert any(e.type == PHASE_CHANGED for e in events)
    assert "draw_cards" not in get_available_action_types(state)


def test_turn_passes_and_counter_wraps(catalog):
    state = initialize_game_state(["A", "B"], catalog, seed=4)
    actions = [
        act.draw_cards("player-0"),
        act.end_turn("player-0"),
    ]
    state, _ = replay_from_actions(state, actions, catalog)
    assert state.current_player.id == "player-1"
    assert state.turn_number == 1
    assert state.turn_phase == "draw"

    state, _ = apply_action(state, act.draw_cards("player-1"), catalog)
    state, events = apply_action(state, act.advance_phase("player-1"), catalog)
    assert state.current_player.id == "player-0"
    assert state.turn_number == 2
    started = [e for e in events if e.type == TURN_STARTED]
    assert started[-1].payload == {"turn_number": 2, "player_id": "player-0", "actions": 3}


def test_advance_phase_is_an_alias_of_end_turn(make_state, give, mini_catalog):
    state = make_state({"n1": 0, "s2": 1})
    give(state, "player-0", "militia")
    via_advance, advance_events = apply_action(state, act.advance_phase("player-0"), mini_catalog)
    via_end, end_events = apply_action(state, act.end_turn("player-0"), mini_catalog)
    assert via_advance.to_dict() == via_end.to_dict()
    assert [e.type for e in advance_events] == [e.type for e in end_events]
    assert via_advance.current_player.id == "player-1"

    discarding = make_state({"n1": 0, "s2": 1}, turn_phase="discard")
    for _ in range(10):
        give(discarding, "player-0", "militia")
    _s, events = apply_action(discarding, act.advance_phase("player-0"), mini_catalog)
    assert events[0].payload["reason"] == "Discard down to 9 cards first"


def test_wrong_player_is_rejected(make_state, mini_catalog):
    state = make_state({"n1": 0, "s2": 1})
    _state, events = apply_action(state, act.end_turn("player-1"), mini_catalog)
    assert events[0].payload["reason"] == "It is not player-1's turn"


def test_out_of_actions_ends_turn(make_state, give, mini_catalog):
    state = make_state({"n1": 0, "s2": 1}, actions=1)
    general = give(state, "player-0", "militia")
    state, _ = apply_action(state, act.deploy_general("player-0", general.instance_id, "n1"), mini_catalog)
    assert state.territories["n1"].garrison == [general]
    assert state.current_player.id == "player-1"
    assert state.turn_phase == "draw"


def test_free_card_does_not_spend_actions(make_state, give, mini_catalog):
    state = make_state({"n1": 0, "s2": 1}, actions=1)
    chest = give(state, "player-0", "war_chest")
    state, _ = apply_action(state, act.play_card("player-0", chest.instance_id), mini_catalog)
    assert state.current_player.id == "player-0"
    assert state.current_player.actions == 1
    assert state.current_player.resources == 2


def test_hand_over_cap_forces_discard_and_penalty(make_state, give, mini_catalog):
    state = make_state({"n1": 0, "s2": 1})
    cards = [give(state, "player-0", "militia") for _ in range(11)]

    state, _ = apply_action(state, act.end_turn("player-0"), mini_catalog)
    assert state.turn_phase == "discard"
    assert state.current_player.id == "player-0"

    state, events = apply_action(state, act.end_turn("player-0"), mini_catalog)
    assert events[0].payload["reason"] == "Discard down to 9 cards first"

    state, _ = apply_action(state, act.discard_card("player-0", cards[0].instance_id), mini_catalog)
    assert state.turn_phase == "discard"
    state, _ = apply_action(state, act.discard_card("player-0", cards[1].instance_id), mini_catalog)

    # nine cards left: turn is over, but more than eight still costs an action
    assert state.current_player.id == "player-1"
    assert state.get_player("player-0").next_turn_action_penalty == 1

    state, _ = apply_action(state, act.draw_cards("player-1"), mini_catalog)
    state, _ = apply_action(state, act.end_turn("player-1"), mini_catalog)
    assert state.current_player.id == "player-0"
    assert state.current_player.actions == 2
    assert state.current_player.next_turn_action_penalty == 0


def test_eight_cards_carry_no_penalty(make_state, give, mini_catalog):
    state = make_state({"n1": 0, "s2": 1})
    for _ in range(8):
        give(state, "player-0", "militia")
    state, _ = apply_action(state, act.end_turn("player-0"), mini_catalog)
    assert state.get_player("player-0").next_turn_action_penalty == 0


def test_eliminated_players_are_skipped(make_state, mini_catalog):
    state = make_state({"n1": 0, "n3": 1, "s2": 2}, player_count=3)
    state.players[1].is_eliminated = True
    state, _ = apply_action(state, act.end_turn("player-0"), mini_catalog)
    assert state.current_player.id == "player-2"
    assert state.turn_number == 1
    state.turn_phase = "action"
    state, _ = apply_action(state, act.end_turn("player-2"), mini_catalog)
    assert state.current_player.id == "player-0"
    assert state.turn_number == 2


def test_territory_bonus_applies_at_turn_start(make_state, mini_catalog):
    # south fully owned by player-1: +2 draw, +2 actions
    state = make_state({"n1": 0, "s1": 1, "s2": 1})
    state, _ = apply_action(state, act.end_turn("player-0"), mini_catalog)
    assert state.current_player.actions == 5
    state.deck = [CardInstance(f"militia_{i:04d}", "militia") for i in range(10)]
    state, _ = apply_action(state, act.draw_cards("player-1"), mini_catalog)
    assert len(state.current_player.hand) == 4
