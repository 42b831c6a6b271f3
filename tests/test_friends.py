"""
Tests for friend requests and one-to-one chat.
"""

import asyncio

import pytest

from conftest import run
from family_finance.errors import PermissionDeniedError, ValidationError
from family_finance.models.entities import FriendshipStatus
from family_finance.services.storage.interface import DuplicateError


class TestFriendRequests:

    def test_send_and_accept(self, app, ben, chen):
        request = run(app.friends.send_request(ben, "U3"))
        assert request.status == FriendshipStatus.PENDING

        pending = run(app.friends.pending_requests("U3"))
        assert [f.id for f in pending] == [request.id]
        assert run(app.friends.pending_requests("U2")) == []

        run(app.friends.accept(request.id, chen))

        assert [u.id for u in run(app.friends.friends_of("U2"))] == ["U3"]
        assert [u.id for u in run(app.friends.friends_of("U3"))] == ["U2"]

    def test_duplicate_in_either_direction(self, app, ben, chen):
        run(app.friends.send_request(ben, "U3"))

        with pytest.raises(DuplicateError):
            run(app.friends.send_request(ben, "U3"))
        with pytest.raises(DuplicateError):
            run(app.friends.send_request(chen, "U2"))

    def test_cannot_befriend_self(self, app, ben):
        with pytest.raises(ValidationError):
            run(app.friends.send_request(ben, "U2"))

    def test_only_receiver_can_accept(self, app, ben):
        request = run(app.friends.send_request(ben, "U3"))

        with pytest.raises(PermissionDeniedError):
            run(app.friends.accept(request.id, ben))

    def test_reject_deletes_request(self, app, store, ben, chen):
        request = run(app.friends.send_request(ben, "U3"))

        run(app.friends.reject(request.id, chen))

        assert store.rows("friendships") == []
        # The requester may ask again
        run(app.friends.send_request(ben, "U3"))

    def test_pending_is_not_a_friend(self, app, ben):
        run(app.friends.send_request(ben, "U3"))
        assert run(app.friends.friends_of("U2")) == []


class TestChat:

    def test_conversation_is_ordered_and_two_sided(self, app, ben, chen):
        async def scenario():
            await app.chat.send_message(ben, "U3", "hi")
            await asyncio.sleep(0.001)
            await app.chat.send_message(chen, "U2", "hello")
            await asyncio.sleep(0.001)
            await app.chat.send_message(ben, "U1", "elsewhere")
            return await app.chat.fetch_conversation("U3", "U2")

        messages = run(scenario())

        assert [m.content for m in messages] == ["hi", "hello"]

    def test_message_is_trimmed(self, app, ben):
        message = run(app.chat.send_message(ben, "U3", "  hey  "))
        assert message.content == "hey"

    def test_empty_message_rejected(self, app, ben):
        with pytest.raises(ValidationError):
            run(app.chat.send_message(ben, "U3", "   "))

    def test_feed_receives_pushed_messages_once(self, app, ben, chen):
        async def scenario():
            feed = await app.chat.open_feed("U2", "U3")
            sent = await app.chat.send_message(chen, "U2", "ping")
            # A duplicate push of the same row is ignored
            feed.add(sent)
            await app.chat.send_message(ben, "U1", "not this conversation")
            return feed

        feed = run(scenario())

        assert [m.content for m in feed.messages] == ["ping"]

    def test_closed_feed_ignores_pushes(self, app, chen):
        async def scenario():
            feed = await app.chat.open_feed("U2", "U3")
            await feed.close()
            await app.chat.send_message(chen, "U2", "too late")
            return feed

        feed = run(scenario())

        assert feed.messages == []
        assert feed.is_open is False
