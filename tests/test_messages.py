import pickle

import pytest

from raftkv.messages import (
    NULL,
    AppendEntriesArgs,
    AppendEntriesReply,
    ApplyMsg,
    LogEntry,
    RequestVoteArgs,
    RequestVoteReply,
    State,
    decode_state,
    encode_state,
)


def test_state_values_follow_declaration_order():
    assert [State(v) for v in (0, 1, 2)] == [State.FOLLOWER, State.CANDIDATE, State.LEADER]


def test_null_vote_survives_round_trip_as_minus_one():
    _, voted, _ = decode_state(encode_state(1, NULL, []))
    assert voted == -1


def test_round_trip_empty_log():
    data = encode_state(0, NULL, [])
    assert decode_state(data) == (0, NULL, [])


def test_round_trip_with_entries():
    log = [LogEntry(), LogEntry(1, 100), LogEntry(1, "cmd"), LogEntry(3, 42)]
    data = encode_state(3, 2, log)
    term, voted, restored = decode_state(data)
    assert term == 3
    assert voted == 2
    assert restored == log


def test_round_trip_large_command():
    cmd = "x" * 5000
    term, voted, restored = decode_state(encode_state(7, 1, [LogEntry(), LogEntry(7, cmd)]))
    assert restored[1].command == cmd
    assert restored[1].term == 7


def test_decode_empty_raises():
    with pytest.raises(ValueError):
        decode_state(b"")


def test_decode_garbage_raises():
    with pytest.raises(ValueError):
        decode_state(b"not a valid state")


def test_decode_wrong_shape_raises():
    with pytest.raises(ValueError):
        decode_state(pickle.dumps((1, 2)))


def test_decode_bad_entry_raises():
    with pytest.raises(ValueError):
        decode_state(pickle.dumps((1, 2, [("a", 1)])))


def test_decode_non_int_term_raises():
    with pytest.raises(ValueError):
        decode_state(pickle.dumps(("1", 2, [])))


def test_default_log_entry():
    entry = LogEntry()
    assert (entry.term, entry.command) == (0, None)


def test_log_entry_is_immutable():
    entry = LogEntry(1, "a")
    with pytest.raises(AttributeError):
        entry.term = 2
    assert (entry.term, entry.command) == (1, "a")


def test_reply_defaults_are_zero_values():
    rv = RequestVoteReply()
    assert (rv.term, rv.vote_granted) == (0, False)
    ae = AppendEntriesReply()
    assert (ae.term, ae.success, ae.conflict_index, ae.conflict_term) == (0, False, 0, 0)


def test_append_entries_args_entries_not_shared():
    a = AppendEntriesArgs(1, 0, 0, 0)
    b = AppendEntriesArgs(1, 0, 0, 0)
    a.entries.append(LogEntry(1, "x"))
    assert b.entries == []


def test_request_vote_args_fields():
    args = RequestVoteArgs(term=2, candidate_id=1, last_log_index=5, last_log_term=2)
    assert (args.term, args.candidate_id, args.last_log_index, args.last_log_term) == (2, 1, 5, 2)


def test_apply_msg_equality():
    assert ApplyMsg(True, 100, 1) == ApplyMsg(command_valid=True, command=100, command_index=1)
    assert ApplyMsg(True, 100, 1) != ApplyMsg(True, 101, 1)