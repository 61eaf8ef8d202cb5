"""A single Raft consensus peer: leader election, log replication and persistence."""

from __future__ import annotations

import logging
import random
import threading
from typing import Any, Optional, Protocol, Sequence

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
from raftkv.persister import Persister

DEBUG = 0

HEARTBEAT_INTERVAL = 0.1
"""Seconds between heartbeat rounds; at most ten per second."""

ELECTION_TIMEOUT_MS = 300
ELECTION_TIMEOUT_SPREAD_MS = 200

_logger = logging.getLogger(__name__)


def dprintf(fmt: str, *args: Any) -> None:
    """Log a %-style debug message when DEBUG is enabled."""
    if DEBUG > 0:
        _logger.info(fmt, *args)


class PeerEnd(Protocol):
    """An endpoint that delivers a named RPC to a peer.

    ``call`` returns the reply, or None when the request or reply was lost.
    """

    def call(self, method: str, args: Any) -> Optional[Any]: ...


class ApplySink(Protocol):
    """Where committed entries are delivered, such as a queue.Queue."""

    def put(self, msg: ApplyMsg) -> Any: ...


class _Signal:
    """A one-slot wake-up flag: notifying twice leaves one pending wake-up."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending = False

    def notify(self) -> None:
        with self._cond:
            self._pending = True
            self._cond.notify_all()

    def wait(self, timeout: float) -> bool:
        """Wait up to timeout seconds; return True if a wake-up was consumed."""
        with self._cond:
            self._cond.wait_for(lambda: self._pending, timeout)
            fired = self._pending
            self._pending = False
            return fired


class Raft:
    """One Raft peer.

    Peers are endpoints accepting "Raft.RequestVote" and "Raft.AppendEntries"
    calls; committed entries are delivered to ``apply_ch`` through ``put``.
    """

    def __init__(
        self,
        peers: Sequence[PeerEnd],
        me: int,
        persister: Persister,
        apply_ch: ApplySink,
    ) -> None:
        self._lock = threading.Lock()
        self._peers = list(peers)
        self._persister = persister
        self._me = me
        self._dead = threading.Event()

        self._state = State.FOLLOWER
        self._current_term = 0
        self._voted_for = NULL
        # Index 0 is a placeholder so that the first real entry has index 1.
        self._log: list[LogEntry] = [LogEntry()]

        self._commit_index = 0
        self._last_applied = 0

        self._next_index = [0] * len(self._peers)
        self._match_index = [0] * len(self._peers)

        self._apply_ch = apply_ch
        self._reset = _Signal()

        self._read_persist(persister.read_raft_state())

        self._ticker = threading.Thread(
            target=self._run, name=f"raft-{me}", daemon=True
        )
        self._ticker.start()

    # ----- public interface -------------------------------------------------

    def get_state(self) -> tuple[int, bool]:
        """Return the current term and whether this peer believes it leads."""
        with self._lock:
            return self._current_term, self._state is State.LEADER

    def start(self, command: Any) -> tuple[int, int, bool]:
        """Begin agreement on a command.

        Returns (index, term, is_leader); index is -1 when not the leader.
        """
        with self._lock:
            term = self._current_term
            is_leader = self._state is State.LEADER
            index = -1
            if is_leader:
                index = self._last_log_index() + 1
                self._log.append(LogEntry(self._current_term, command))
                self._persist()
            return index, term, is_leader

    def kill(self) -> None:
        """Stop this peer's background work."""
        self._dead.set()
        self._reset.notify()

    def killed(self) -> bool:
        return self._dead.is_set()

    # ----- RPC handlers -----------------------------------------------------

    def request_vote(self, args: RequestVoteArgs) -> RequestVoteReply:
        """Handle a RequestVote RPC."""
        with self._lock:
            if args.term > self._current_term:
                self._become_follower(args.term)
            reply = RequestVoteReply(term=self._current_term, vote_granted=False)
            if args.term < self._current_term or (
                self._voted_for != NULL and self._voted_for != args.candidate_id
            ):
                return reply
            last_term = self._last_log_term()
            if args.last_log_term < last_term or (
                args.last_log_term == last_term
                and args.last_log_index < self._last_log_index()
            ):
                return reply
            self._voted_for = args.candidate_id
            reply.vote_granted = True
            self._state = State.FOLLOWER
            self._persist()
            self._reset.notify()
            return reply

    def append_entries(self, args: AppendEntriesArgs) -> AppendEntriesReply:
        """Handle an AppendEntries RPC (heartbeat or log replication)."""
        with self._lock:
            try:
                return self._handle_append_entries(args)
            finally:
                self._reset.notify()

    def _handle_append_entries(self, args: AppendEntriesArgs) -> AppendEntriesReply:
        if args.term > self._current_term:
            self._become_follower(args.term)
        reply = AppendEntriesReply(
            term=self._current_term, success=False, conflict_index=0, conflict_term=NULL
        )
        if args.term < self._current_term:
            return reply

        prev_term = -1
        if 0 <= args.prev_log_index < len(self._log):
            prev_term = self._log[args.prev_log_index].term

        if prev_term != args.prev_log_term:
            reply.conflict_index = len(self._log)
            if prev_term != -1:
                reply.conflict_term = prev_term
                reply.conflict_index = next(
                    i for i, entry in enumerate(self._log) if entry.term == prev_term
                )
            return reply

        index = args.prev_log_index
        for offset, entry in enumerate(args.entries):
            index += 1
            if index >= len(self._log) or self._log[index].term != entry.term:
                self._log[index:] = list(args.entries[offset:])
                self._persist()
                break

        if args.leader_commit > self._commit_index:
            self._commit_index = min(args.leader_commit, self._last_log_index())
            self._apply_committed()
        reply.success = True
        return reply

    # ----- persistence ------------------------------------------------------

    def _persist(self) -> None:
        self._persister.save_raft_state(
            encode_state(self._current_term, self._voted_for, self._log)
        )

    def _read_persist(self, data: bytes) -> None:
        if not data:
            return
        try:
            current_term, voted_for, log = decode_state(data)
        except ValueError:
            dprintf("readPersist ERROR for server %d", self._me)
            return
        with self._lock:
            self._current_term = current_term
            self._voted_for = voted_for
            self._log = log

    # ----- role changes (lock held) -----------------------------------------

    def _become_follower(self, term: int) -> None:
        self._state = State.FOLLOWER
        self._voted_for = NULL
        self._current_term = term
        self._persist()

    def _become_candidate(self) -> None:
        self._state = State.CANDIDATE
        self._current_term += 1
        self._voted_for = self._me
        self._persist()
        threading.Thread(target=self._start_election, daemon=True).start()

    def _become_leader(self) -> None:
        if self._state is not State.CANDIDATE:
            return
        self._state = State.LEADER
        self._next_index = [self._last_log_index() + 1] * len(self._peers)
        self._match_index = [0] * len(self._peers)

    # ----- log helpers (lock held) ------------------------------------------

    def _last_log_index(self) -> int:
        return len(self._log) - 1

    def _last_log_term(self) -> int:
        index = self._last_log_index()
        return self._log[index].term if index >= 0 else -1

    def _prev_log_term(self, peer: int) -> int:
        prev = self._next_index[peer] - 1
        return self._log[prev].term if prev >= 0 else -1

    def _update_commit_index(self) -> None:
        self._match_index[self._me] = len(self._log) - 1
        ordered = sorted(self._match_index, reverse=True)
        candidate = ordered[len(ordered) // 2]
        # Only entries from the current term are committed by counting replicas.
        if (
            candidate > self._commit_index
            and self._log[candidate].term == self._current_term
        ):
            self._commit_index = candidate
            self._apply_committed()

    def _apply_committed(self) -> None:
        while self._last_applied < self._commit_index:
            self._last_applied += 1
            entry = self._log[self._last_applied]
            self._apply_ch.put(ApplyMsg(True, entry.command, self._last_applied))

    def _backoff_index(self, reply: AppendEntriesReply) -> int:
        if reply.conflict_term != NULL:
            matches = [
                i for i, entry in enumerate(self._log) if entry.term == reply.conflict_term
            ]
            if matches:
                return matches[-1] + 1
        return reply.conflict_index

    # ----- background work --------------------------------------------------

    def _run(self) -> None:
        while not self.killed():
            timeout = (
                random.randrange(ELECTION_TIMEOUT_SPREAD_MS) + ELECTION_TIMEOUT_MS
            ) / 1000
            with self._lock:
                state = self._state
            if state is State.LEADER:
                self._start_append_log()
                self._dead.wait(HEARTBEAT_INTERVAL)
            elif not self._reset.wait(timeout):
                with self._lock:
                    if self.killed():
                        return
                    self._become_candidate()

    def _start_election(self) -> None:
        with self._lock:
            args = RequestVoteArgs(
                term=self._current_term,
                candidate_id=self._me,
                last_log_index=self._last_log_index(),
                last_log_term=self._last_log_term(),
            )
        votes = 1

        def ask(peer: int) -> None:
            nonlocal votes
            reply = self._peers[peer].call("Raft.RequestVote", args)
            if reply is None:
                return
            with self._lock:
                if reply.term > self._current_term:
                    self._become_follower(reply.term)
                    return
                if (
                    self._state is not State.CANDIDATE
                    or self._current_term != args.term
                ):
                    return
                if reply.vote_granted:
                    votes += 1
                if votes > len(self._peers) // 2:
                    self._become_leader()
                    self._reset.notify()

        for peer in range(len(self._peers)):
            if peer != self._me:
                threading.Thread(target=ask, args=(peer,), daemon=True).start()

    def _start_append_log(self) -> None:
        for peer in range(len(self._peers)):
            if peer != self._me:
                threading.Thread(
                    target=self._replicate, args=(peer,), daemon=True
                ).start()

    def _replicate(self, peer: int) -> None:
        while not self.killed():
            with self._lock:
                if self._state is not State.LEADER:
                    return
                next_index = self._next_index[peer]
                args = AppendEntriesArgs(
                    term=self._current_term,
                    leader_id=self._me,
                    prev_log_index=next_index - 1,
                    prev_log_term=self._prev_log_term(peer),
                    entries=list(self._log[next_index:]),
                    leader_commit=self._commit_index,
                )
            reply = self._peers[peer].call("Raft.AppendEntries", args)
            with self._lock:
                if (
                    reply is None
                    or self._state is not State.LEADER
                    or self._current_term != args.term
                ):
                    return
                if reply.term > self._current_term:
                    self._become_follower(reply.term)
                    return
                if reply.success:
                    matched = args.prev_log_index + len(args.entries)
                    self._match_index[peer] = matched
                    self._next_index[peer] = matched + 1
                    self._update_commit_index()
                    return
                self._next_index[peer] = self._backoff_index(reply)