"""Victory thresholds and the confirmation window."""

from tianxia.engine import actions as act
from tianxia.engine.events import VICTORY, VICTORY_CANDIDATE
from tianxia.engine.queries import check_victory
from tianxia.engine.reducer import apply_action, check_and_apply_victory
from tianxia.engine.state import GameOptions


def _options(territories=3, value=999, confirmation_turns=1):
    return GameOptions(
        setup_id="mini",
        victory_territories=territories,
        victory_value=value,
        victory_confirmation_turns=confirmation_turns,
    )


def test_check_victory_by_count_or_value(make_state, mini_catalog):
    state = make_state({"n1": 0, "n2": 0, "n3": 0, "s2": 1}, options=_options())
    assert check_victory(state, mini_catalog) == "player-0"

    state = make_state({"n1": 0, "s1": 1, "s2": 1}, options=_options(territories=99, value=4))
    assert check_victory(state, mini_catalog) == "player-1"


def test_current_player_checked_first(make_state, mini_catalog):
    state = make_state({"n1": 0, "n2": 0, "s1": 1, "s2": 1}, options=_options(territories=2))
    state.current_player_index = 1
    assert check_victory(state, mini_catalog) == "player-1"


def test_threshold_must_be_held(make_state, mini_catalog):
    state = make_state({"n1": 0, "n2": 0, "n3": 0, "s2": 1}, options=_options())

    events = check_and_apply_victory(state, mini_catalog)
    assert [e.type for e in events] == [VICTORY_CANDIDATE]
    assert state.victory_candidate.since_turn == 1
    assert state.winner is None

    # same turn: still only a candidate
    assert check_and_apply_victory(state, mini_catalog) == []

    state.turn_number = 2
    events = check_and_apply_victory(state, mini_catalog)
    assert events[-1].type == VICTORY
    assert events[-1].payload == {"winner": "player-0", "reason": "threshold_held"}
    assert state.phase == "finished"


def test_candidate_resets_when_threshold_lost(make_state, mini_catalog):
    state = make_state({"n1": 0, "n2": 0, "n3": 0, "s2": 1}, options=_options())
    check_and_apply_victory(state, mini_catalog)
    assert state.victory_candidate is not None

    state.territories["n3"].owner = None
    state.players[0].territories.remove("n3")
    check_and_apply_victory(state, mini_catalog)
    assert state.victory_candidate is None

    # regaining it later starts the window over
    state.territories["n3"].owner = "player-0"
    state.players[0].territories.append("n3")
    state.turn_number = 3
    check_and_apply_victory(state, mini_catalog)
    assert state.victory_candidate.since_turn == 3
    assert state.winner is None


def test_zero_confirmation_wins_at_once(make_state, mini_catalog):
    state = make_state({"n1": 0, "n2": 0, "n3": 0, "s2": 1}, options=_options(confirmation_turns=0))
    events = check_and_apply_victory(state, mini_catalog)
    assert [e.type for e in events] == [VICTORY_CANDIDATE, VICTORY]
    assert state.winner == "player-0"


def test_capture_then_win_at_next_turn_start(make_state, give, mini_catalog):
    state = make_state({"n1": 0, "n2": 0, "n3": 1, "s1": 1, "s2": 1}, options=_options())
    general = give(state, "player-0", "veteran")
    state, _ = apply_action(state, act.start_attack("player-0", "n3", [general.instance_id]), mini_catalog)
    state, events = apply_action(state, act.skip_defense("player-1"), mini_catalog)
    assert state.victory_candidate.player_id == "player-0"
    assert state.winner is None

    state, _ = apply_action(state, act.end_turn("player-0"), mini_catalog)
    state, _ = apply_action(state, act.draw_cards("player-1"), mini_catalog)
    state, events = apply_action(state, act.end_turn("player-1"), mini_catalog)
    assert state.turn_number == 2
    assert state.winner == "player-0"
    assert events[-1].type == VICTORY


def test_finished_game_rejects_actions(make_state, mini_catalog):
    state = make_state({"n1": 0, "s2": 1})
    state.phase = "finished"
    state.winner = "player-0"
    _state, events = apply_action(state, act.end_turn("player-0"), mini_catalog)
    assert events[0].payload["reason"] == "The game is over"
