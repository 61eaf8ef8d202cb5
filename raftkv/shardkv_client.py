"""Client for the sharded key/value service.

The client asks the shard master which group owns a key's shard, then
talks to that group, refreshing its configuration whenever it fails.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional, Sequence

from raftkv.raft import PeerEnd
from raftkv.shardconfig import NSHARDS, Config
from raftkv.shardkv_common import (
    APPEND,
    PUT,
    Err,
    GetArgs,
    PutAppendArgs,
)
from raftkv.shardmaster_client import ShardMasterClerk


def key2shard(key: str) -> int:
    """Return the shard a key belongs to, from its first byte."""
    first = key.encode("utf-8")[:1]
    shard = first[0] if first else 0
    return shard % NSHARDS


class ShardKVClerk:
    """Routes Get, Put and Append requests to the group owning each key."""

    retry_interval = 0.1

    def __init__(
        self,
        masters: Sequence[PeerEnd],
        make_end: Callable[[str], PeerEnd],
    ) -> None:
        self._master = ShardMasterClerk(masters)
        self._make_end = make_end
        self.config = Config()

    def _send(self, key: str, method: str, args: Any, done: Callable[[Err], bool]) -> Any:
        while True:
            gid = self.config.shards[key2shard(key)]
            servers: Optional[list[str]] = self.config.groups.get(gid)
            for name in servers or ():
                reply = self._make_end(name).call(method, args)
                if reply is None:
                    continue
                if done(reply.err):
                    return reply
                if reply.err == Err.WRONG_GROUP:
                    break
            time.sleep(self.retry_interval)
            self.config = self._master.query(-1)

    def get(self, key: str) -> str:
        """Return the value for key, or "" if it does not exist.

        Keeps trying forever in the face of all other errors.
        """
        reply = self._send(
            key,
            "ShardKV.Get",
            GetArgs(key),
            lambda err: err in (Err.OK, Err.NO_KEY),
        )
        return reply.value

    def put_append(self, key: str, value: str, op: str) -> None:
        """Send a Put or Append, retrying until the owning group accepts it."""
        self._send(
            key,
            "ShardKV.PutAppend",
            PutAppendArgs(key, value, op),
            lambda err: err == Err.OK,
        )

    def put(self, key: str, value: str) -> None:
        self.put_append(key, value, PUT)

    def append(self, key: str, value: str) -> None:
        self.put_append(key, value, APPEND)