# raftkv

A Raft consensus peer, plus the client side of a sharded key/value service
built on top of it. The package has no dependencies beyond the standard
library.

- `raftkv.persister.Persister`: an in-memory, thread-safe store for a peer's
  persistent Raft state and a service snapshot (`save_raft_state`,
  `read_raft_state`, `raft_state_size`, `save_state_and_snapshot`,
  `read_snapshot`, `snapshot_size`, `copy`).
- `raftkv.messages`: the Raft message types (`ApplyMsg`, `LogEntry`,
  `RequestVoteArgs`, `RequestVoteReply`, `AppendEntriesArgs`,
  `AppendEntriesReply`), the `State` enum, and `encode_state` /
  `decode_state` for the persisted term, vote and log. `decode_state`
  raises `ValueError` on empty or malformed data.
- `raftkv.raft.Raft`: one Raft peer with leader election, log replication,
  conflict-term backtracking of a follower's log, and persistence. The
  module also defines the `PeerEnd` and `ApplySink` protocols and the
  `dprintf` debug helper (active when `raftkv.raft.DEBUG > 0`).
- `raftkv.shardconfig`: `NSHARDS` (10), the shard `Config`, and the shard
  master's RPC argument and reply types.
- `raftkv.shardmaster_client.ShardMasterClerk`: a client for a shard master
  service (`query`, `join`, `leave`, `move`).
- `raftkv.shardkv_common` and `raftkv.shardkv_client`: the key/value RPC
  types, the `Err` codes, `key2shard`, and `ShardKVClerk`, which routes each
  key to the group that owns its shard.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Using a Raft peer

A peer talks to the others through endpoint objects you supply, one per
peer, in the same order on every peer. An endpoint's `call(method, args)`
delivers the request (`"Raft.RequestVote"` or `"Raft.AppendEntries"`) and
returns the reply, or `None` when the request or its reply was lost. On the
receiving side, route those calls to the peer's `request_vote(args)` and
`append_entries(args)` methods, which return the reply objects.

```python
import queue

from raftkv.persister import Persister
from raftkv.raft import Raft

apply_ch = queue.Queue()
rf = Raft(peers, me=0, persister=Persister(), apply_ch=apply_ch)

term, is_leader = rf.get_state()
index, term, ok = rf.start("some command")   # index is -1 unless leader

msg = apply_ch.get()          # an ApplyMsg once an entry commits
print(msg.command_index, msg.command)

rf.kill()
```

Committed entries are put on `apply_ch` as `ApplyMsg` values in index
order, starting at index 1. The peer writes its term, vote and log to the
persister whenever they change, and a new `Raft` created with that
persister starts from the saved state. The state is serialised with
`pickle`, so only restore data you wrote yourself.

Timing: a follower or candidate starts an election after 300–500 ms
without hearing from a leader or granting a vote; a leader sends a round of
heartbeats every 100 ms.

## Clients for a sharded store

```python
from raftkv.shardkv_client import ShardKVClerk, key2shard

clerk = ShardKVClerk(masters, make_end)
clerk.put("k", "v")
clerk.append("k", "w")
value = clerk.get("k")       # "" if the key does not exist
```

`masters` are endpoints for the shard master servers and
`make_end(server_name)` turns a server name from a configuration into an
endpoint. The clerk starts with the empty configuration (`clerk.config`);
after each round in which no server of the owning group completed the
request, it waits `retry_interval` seconds (0.1) and fetches the latest
configuration with `ShardMasterClerk.query(-1)`. Requests are retried
forever. `ShardMasterClerk` likewise tries each server in turn until one
answers without `wrong_leader`.

## What this package does not include

- No shard master server and no sharded key/value server: the clerks only
  send requests, so you must provide servers that answer
  `ShardMaster.Query/Join/Leave/Move` and `ShardKV.Get/PutAppend`.
- No network or RPC transport: endpoints are objects you implement.
- No durable storage: `Persister` keeps its data in memory only.
- No log compaction: `Raft` never writes a snapshot, although the
  persister can hold one.
- No command-line program.