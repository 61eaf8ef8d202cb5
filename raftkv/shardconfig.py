"""Shard configurations and the RPC messages of the shard master service.

A configuration assigns each of the NSHARDS shards to a replica group id
(gid) and lists the servers of every group. Configuration 0 has no groups
and every shard assigned to the invalid group 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field

NSHARDS = 10
"""The number of shards."""

OK = "OK"


def _unassigned() -> tuple[int, ...]:
    return (0,) * NSHARDS


@dataclass
class Config:
    """A numbered assignment of shards to replica groups."""

    num: int = 0
    shards: tuple[int, ...] = field(default_factory=_unassigned)
    groups: dict[int, list[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.shards = tuple(self.shards)
        if len(self.shards) != NSHARDS:
            raise ValueError(
                f"a configuration assigns exactly {NSHARDS} shards, got {len(self.shards)}"
            )

    def copy(self) -> Config:
        """Return a configuration that shares no mutable state with this one."""
        return Config(
            self.num,
            self.shards,
            {gid: list(servers) for gid, servers in self.groups.items()},
        )


@dataclass
class JoinArgs:
    servers: dict[int, list[str]] = field(default_factory=dict)
    """New gid -> server names."""


@dataclass
class JoinReply:
    wrong_leader: bool = False
    err: str = ""


@dataclass
class LeaveArgs:
    gids: list[int] = field(default_factory=list)


@dataclass
class LeaveReply:
    wrong_leader: bool = False
    err: str = ""


@dataclass
class MoveArgs:
    shard: int = 0
    gid: int = 0


@dataclass
class MoveReply:
    wrong_leader: bool = False
    err: str = ""


@dataclass
class QueryArgs:
    num: int = -1
    """Desired configuration number; -1 asks for the latest."""


@dataclass
class QueryReply:
    wrong_leader: bool = False
    err: str = ""
    config: Config = field(default_factory=Config)