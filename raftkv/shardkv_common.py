"""RPC messages and error codes of the sharded key/value service."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

PUT = "Put"
APPEND = "Append"


class Err(str, enum.Enum):
    OK = "OK"
    NO_KEY = "ErrNoKey"
    WRONG_GROUP = "ErrWrongGroup"
    WRONG_LEADER = "ErrWrongLeader"


@dataclass
class PutAppendArgs:
    key: str
    value: str
    op: str
    """Either "Put" or "Append"."""


@dataclass
class PutAppendReply:
    err: Optional[Err] = None


@dataclass
class GetArgs:
    key: str


@dataclass
class GetReply:
    err: Optional[Err] = None
    value: str = ""