"""Client that talks to the replicated shard master service."""

from __future__ import annotations

import time
from typing import Any, Iterable, Mapping, Sequence

from raftkv.raft import PeerEnd
from raftkv.shardconfig import (
    Config,
    JoinArgs,
    LeaveArgs,
    MoveArgs,
    QueryArgs,
)


class ShardMasterClerk:
    """Sends shard master requests, trying every server until one leads.

    Each request is retried forever; a full round of failures is followed
    by a pause of ``retry_interval`` seconds.
    """

    retry_interval = 0.1

    def __init__(self, servers: Sequence[PeerEnd]) -> None:
        self._servers = list(servers)

    def _call(self, method: str, args: Any) -> Any:
        while True:
            for server in self._servers:
                reply = server.call(method, args)
                if reply is not None and not reply.wrong_leader:
                    return reply
            time.sleep(self.retry_interval)

    def query(self, num: int) -> Config:
        """Fetch configuration number num, or the latest when num is -1."""
        return self._call("ShardMaster.Query", QueryArgs(num)).config

    def join(self, servers: Mapping[int, Iterable[str]]) -> None:
        """Add replica groups, given as gid -> server names."""
        args = JoinArgs({gid: list(names) for gid, names in servers.items()})
        self._call("ShardMaster.Join", args)

    def leave(self, gids: Iterable[int]) -> None:
        """Remove the given replica groups."""
        self._call("ShardMaster.Leave", LeaveArgs(list(gids)))

    def move(self, shard: int, gid: int) -> None:
        """Hand one shard over to group gid."""
        self._call("ShardMaster.Move", MoveArgs(shard, gid))