"""Raft consensus peer, in-memory persister and sharded key/value clerks."""

__version__ = "0.1.0"

__all__ = [
    "persister",
    "messages",
    "raft",
    "shardconfig",
    "shardmaster_client",
    "shardkv_common",
    "shardkv_client",
]