from raftkv.shardconfig import (
    NSHARDS,
    Config,
    JoinArgs,
    JoinReply,
    LeaveArgs,
    LeaveReply,
    MoveArgs,
    MoveReply,
    QueryReply,
)
from raftkv.shardmaster_client import ShardMasterClerk


class ScriptedEnd:
    """Endpoint answering calls from a list of prepared replies."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def call(self, method, args):
        self.calls.append((method, args))
        return self.replies.pop(0)


def make_clerk(*ends):
    clerk = ShardMasterClerk(ends)
    clerk.retry_interval = 0
    return clerk


def test_query_returns_config_from_leader():
    config = Config(4, [1] * NSHARDS, {1: ["x", "y", "z"]})
    leader = ScriptedEnd([QueryReply(config=config)])
    clerk = make_clerk(leader)
    assert clerk.query(-1) == config
    method, args = leader.calls[0]
    assert method == "ShardMaster.Query"
    assert args.num == -1


def test_query_skips_lost_and_wrong_leader_replies():
    config = Config(2, [2] * NSHARDS, {2: ["a", "b", "c"]})
    lost = ScriptedEnd([None])
    follower = ScriptedEnd([QueryReply(wrong_leader=True)])
    leader = ScriptedEnd([QueryReply(config=config)])
    clerk = make_clerk(lost, follower, leader)
    assert clerk.query(2) == config
    assert [len(e.calls) for e in (lost, follower, leader)] == [1, 1, 1]


def test_query_retries_rounds_until_answered():
    config = Config(1, [7] * NSHARDS, {7: ["s"]})
    first = ScriptedEnd([None, QueryReply(config=config)])
    second = ScriptedEnd([QueryReply(wrong_leader=True)])
    clerk = make_clerk(first, second)
    assert clerk.query(-1) == config
    assert len(first.calls) == 2
    assert len(second.calls) == 1


def test_join_sends_group_servers():
    end = ScriptedEnd([JoinReply()])
    make_clerk(end).join({1: ("x", "y", "z")})
    method, args = end.calls[0]
    assert method == "ShardMaster.Join"
    assert args == JoinArgs({1: ["x", "y", "z"]})


def test_leave_sends_gids_and_retries_wrong_leader():
    follower = ScriptedEnd([LeaveReply(wrong_leader=True)])
    leader = ScriptedEnd([LeaveReply()])
    make_clerk(follower, leader).leave([1, 3])
    method, args = leader.calls[0]
    assert method == "ShardMaster.Leave"
    assert args == LeaveArgs([1, 3])


def test_move_sends_shard_and_gid():
    end = ScriptedEnd([None, MoveReply()])
    make_clerk(end).move(4, 503)
    assert len(end.calls) == 2
    method, args = end.calls[1]
    assert method == "ShardMaster.Move"
    assert args == MoveArgs(4, 503)