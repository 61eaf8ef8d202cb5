"""Raft message types, peer state and persistent-state encoding."""

from __future__ import annotations

import enum
import pickle
from dataclasses import dataclass, field
from typing import Any, Sequence

NULL = -1
"""Marker for "no vote" and "no conflicting term"."""


@dataclass
class ApplyMsg:
    """A committed entry handed from a Raft peer to its service."""

    command_valid: bool
    command: Any
    command_index: int


class State(enum.IntEnum):
    FOLLOWER = 0
    CANDIDATE = 1
    LEADER = 2


@dataclass(frozen=True)
class LogEntry:
    """A log entry: the term in which the leader received it, and its command."""

    term: int = 0
    command: Any = None


@dataclass
class RequestVoteArgs:
    term: int
    candidate_id: int
    last_log_index: int
    last_log_term: int


@dataclass
class RequestVoteReply:
    term: int = 0
    vote_granted: bool = False


@dataclass
class AppendEntriesArgs:
    term: int
    leader_id: int
    prev_log_index: int
    prev_log_term: int
    entries: list[LogEntry] = field(default_factory=list)
    leader_commit: int = 0


@dataclass
class AppendEntriesReply:
    term: int = 0
    success: bool = False
    conflict_index: int = 0
    conflict_term: int = 0


def encode_state(current_term: int, voted_for: int, log: Sequence[LogEntry]) -> bytes:
    """Serialise the persistent part of a Raft peer's state."""
    entries = [(entry.term, entry.command) for entry in log]
    return pickle.dumps((current_term, voted_for, entries), protocol=pickle.HIGHEST_PROTOCOL)


def decode_state(data: bytes) -> tuple[int, int, list[LogEntry]]:
    """Restore (current_term, voted_for, log) from encode_state output.

    Raises ValueError when the data is empty or malformed.
    """
    if not data:
        raise ValueError("no persisted state")
    try:
        decoded = pickle.loads(data)
    except Exception as exc:
        raise ValueError("persisted state cannot be decoded") from exc
    if not (isinstance(decoded, tuple) and len(decoded) == 3):
        raise ValueError("persisted state has the wrong shape")
    current_term, voted_for, entries = decoded
    if not isinstance(current_term, int) or not isinstance(voted_for, int):
        raise ValueError("persisted term or vote is not an integer")
    if not isinstance(entries, list):
        raise ValueError("persisted log is not a list")
    log = []
    for item in entries:
        if not (isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], int)):
            raise ValueError("persisted log entry is malformed")
        log.append(LogEntry(item[0], item[1]))
    return current_term, voted_for, log