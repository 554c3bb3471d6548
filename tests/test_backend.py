"""
Tests for RoomRegistry - membership, capacity, listing and broadcast.
"""

import pytest

from backend import JoinResult
from schemas.rooms import RoomScope


class TestRoomMembership:

    def test_two_members_then_full(self, registry, make_connection):
        a, b, c = make_connection(), make_connection(), make_connection()

        assert registry.join("r1", a) is JoinResult.ACCEPTED
        assert registry.join("r1", b) is JoinResult.ACCEPTED
        assert registry.join("r1", c) is JoinResult.FULL

        assert registry.members("r1") == {a, b}

    def test_rejoin_by_member_is_not_full(self, registry, make_connection):
        a, b = make_connection(), make_connection()
        registry.join("r1", a)
        registry.join("r1", b)

        assert registry.join("r1", a) is JoinResult.ACCEPTED
        assert len(registry.members("r1")) == 2

    def test_full_join_does_not_create_room(self, registry, make_connection):
        registry.max_members = 0
        assert registry.join("ghost", make_connection()) is JoinResult.FULL
        assert "ghost" not in registry.rooms
        assert registry.snapshot(RoomScope.ALL) == []

    def test_leave_keeps_room_while_occupied(self, registry, make_connection):
        a, b = make_connection(), make_connection()
        registry.join("r1", a)
        registry.join("r1", b)

        assert registry.leave("r1", a) is True
        assert registry.is_active("r1")
        assert registry.members("r1") == {b}

    def test_last_leave_retires_room_but_keeps_history(self, registry, make_connection):
        a = make_connection()
        registry.join("r1", a)

        assert registry.leave("r1", a) is False
        assert "r1" not in registry.rooms
        assert registry.snapshot(RoomScope.ACTIVE) == []
        assert registry.snapshot(RoomScope.ALL) == ["r1"]

    def test_leave_by_non_member_is_noop(self, registry, make_connection):
        a, stranger = make_connection(), make_connection()
        registry.join("r1", a)

        assert registry.leave("r1", stranger) is True
        assert registry.leave("nope", stranger) is False
        assert registry.members("r1") == {a}


class TestSnapshot:

    def test_sorted_by_most_recent_activity(self, registry, make_connection):
        registry.join("old", make_connection())
        registry.join("mid", make_connection())
        registry.join("new", make_connection())

        assert registry.snapshot() == ["new", "mid", "old"]

        registry.touch("old")
        assert registry.snapshot() == ["old", "new", "mid"]

    def test_all_scope_includes_empty_rooms(self, registry, make_connection):
        a, b = make_connection(), make_connection()
        registry.join("gone", a)
        registry.join("here", b)
        registry.leave("gone", a)

        assert registry.snapshot(RoomScope.ACTIVE) == ["here"]
        assert registry.snapshot(RoomScope.ALL) == ["here", "gone"]

    def test_rooms_without_activity_sort_last(self, registry, make_connection):
        registry.join("r1", make_connection())
        registry.join("r2", make_connection())
        del registry.last_activity["r2"]

        assert registry.snapshot(RoomScope.ALL) == ["r1", "r2"]

    def test_scope_parse_falls_back_to_active(self):
        assert RoomScope.parse("all") is RoomScope.ALL
        assert RoomScope.parse("active") is RoomScope.ACTIVE
        assert RoomScope.parse("bogus") is RoomScope.ACTIVE
        assert RoomScope.parse(None) is RoomScope.ACTIVE


class TestBroadcast:

    @pytest.mark.asyncio
    async def test_excludes_sender(self, registry, make_connection):
        a, b = make_connection(), make_connection()
        registry.join("r1", a)
        registry.join("r1", b)

        delivered = await registry.broadcast("r1", {"type": "system", "text": "hello"}, exclude=a)

        assert delivered == 1
        assert a.websocket.sent == []
        assert b.websocket.sent == [{"type": "system", "text": "hello"}]

    @pytest.mark.asyncio
    async def test_failure_does_not_abort_other_recipients(self, registry, make_connection):
        broken, healthy = make_connection(fail_sends=True), make_connection()
        registry.join("r1", broken)
        registry.join("r1", healthy)

        delivered = await registry.broadcast("r1", {"type": "system", "text": "still here"})

        assert delivered == 1
        assert healthy.websocket.sent == [{"type": "system", "text": "still here"}]

    @pytest.mark.asyncio
    async def test_skips_connections_that_are_not_open(self, registry, make_connection):
        a, b = make_connection(), make_connection()
        registry.join("r1", a)
        registry.join("r1", b)
        await b.close()

        delivered = await registry.broadcast("r1", {"type": "system", "text": "x"})

        assert delivered == 1
        assert b.websocket.sent == []

    @pytest.mark.asyncio
    async def test_unknown_room_delivers_nothing(self, registry):
        assert await registry.broadcast("missing", {"type": "system", "text": "x"}) == 0
