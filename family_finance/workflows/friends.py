"""
Friends and one-to-one chat.

Friendship follows the same request pattern as fund membership:
PENDING (directional, only the receiver can act) -> ACCEPTED (symmetric),
or the row is deleted on reject.

Chat is fetch-then-push: a conversation is loaded once, and inserts
pushed by the realtime channel are appended to it. Pushes are never
reconciled against the backend, so a missed push stays missing until
the next explicit fetch.
"""

from typing import Any, Optional

from family_finance.audit import get_logger
from family_finance.errors import PermissionDeniedError, ValidationError
from family_finance.models.entities import (
    Friendship,
    FriendshipDraft,
    FriendshipStatus,
    Message,
    MessageDraft,
    User,
)
from family_finance.services.realtime import RealtimeInterface, Unsubscribe
from family_finance.services.storage.interface import DuplicateError
from family_finance.services.storage.repositories import Repositories
from family_finance.validation import require_text


logger = get_logger(__name__)


class FriendWorkflow:

    def __init__(self, repositories: Repositories):
        self._repos = repositories

    async def send_request(self, requester: User, receiver_id: str) -> Friendship:
        """
        Raises:
            ValidationError: requester and receiver are the same user
            NotFoundError: receiver does not exist
            DuplicateError: a request or friendship already exists either way
        """
        if receiver_id == requester.id:
            raise ValidationError("You cannot add yourself as a friend")
        await self._repos.profiles.get(receiver_id)

        if await self._repos.friendships.between(requester.id, receiver_id):
            raise DuplicateError("Request pending or already friends.")

        friendship = await self._repos.friendships.insert(FriendshipDraft(
            requester_id=requester.id,
            receiver_id=receiver_id,
        ))
        logger.info("friend_request_sent", friendship_id=friendship.id)
        return friendship

    async def _get_for_receiver(self, friendship_id: str, user: User) -> Friendship:
        friendship = await self._repos.friendships.get(friendship_id)
        if friendship.receiver_id != user.id:
            raise PermissionDeniedError("Only the receiver can answer a friend request")
        return friendship

    async def accept(self, friendship_id: str, user: User) -> Friendship:
        friendship = await self._get_for_receiver(friendship_id, user)
        await self._repos.friendships.update(friendship.id, status=FriendshipStatus.ACCEPTED)
        return friendship.model_copy(update={"status": FriendshipStatus.ACCEPTED})

    async def reject(self, friendship_id: str, user: User) -> None:
        """Rejected requests are deleted, so the requester may ask again."""
        friendship = await self._get_for_receiver(friendship_id, user)
        await self._repos.friendships.delete(friendship.id)

    async def friends_of(self, user_id: str) -> list[User]:
        """Accepted friendships, seen from either side."""
        rows = await self._repos.friendships.involving(user_id)
        friend_ids = {
            f.other_party(user_id)
            for f in rows
            if f.status == FriendshipStatus.ACCEPTED
        }
        profiles = await self._repos.profiles.list()
        return [p for p in profiles if p.id in friend_ids]

    async def pending_requests(self, user_id: str) -> list[Friendship]:
        """Requests waiting on this user. Sent requests are not included."""
        return await self._repos.friendships.list(
            receiver_id=user_id,
            status=FriendshipStatus.PENDING,
        )


class ConversationFeed:
    """
    Messages of one open conversation.

    Pushed rows are appended unless a message with the same ID is already
    present. After close() pushes are ignored.
    """

    def __init__(self, user_id: str, peer_id: str, messages: list[Message]):
        self.user_id = user_id
        self.peer_id = peer_id
        self._messages = list(messages)
        self._ids = {m.id for m in messages}
        self._unsubscribe: Optional[Unsubscribe] = None
        self.is_open = True

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def add(self, message: Message) -> bool:
        """Returns False if the message was ignored."""
        if not self.is_open or message.id in self._ids:
            return False
        if not message.is_between(self.user_id, self.peer_id):
            return False
        self._messages.append(message)
        self._ids.add(message.id)
        return True

    def attach(self, unsubscribe: Unsubscribe) -> None:
        self._unsubscribe = unsubscribe

    async def close(self) -> None:
        self.is_open = False
        if self._unsubscribe:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            await unsubscribe()


class ChatService:

    def __init__(self, repositories: Repositories, realtime: RealtimeInterface):
        self._repos = repositories
        self._realtime = realtime

    async def fetch_conversation(self, user_a: str, user_b: str) -> list[Message]:
        """Both directions, oldest first."""
        return await self._repos.messages.conversation(user_a, user_b)

    async def send_message(self, sender: User, receiver_id: str, content: str) -> Message:
        """
        Raises:
            ValidationError: content is empty after trimming
        """
        text = require_text(content, "Message")
        return await self._repos.messages.insert(MessageDraft(
            sender_id=sender.id,
            receiver_id=receiver_id,
            content=text,
        ))

    async def open_feed(self, user_id: str, peer_id: str) -> ConversationFeed:
        """
        Load the conversation and subscribe to new messages in it.

        Close the returned feed when the conversation is no longer shown.
        """
        feed = ConversationFeed(user_id, peer_id, await self.fetch_conversation(user_id, peer_id))

        def on_insert(row: dict[str, Any]) -> None:
            try:
                feed.add(self._repos.messages.decode(row))
            except Exception as e:
                logger.warning("realtime_message_dropped", row_id=row.get("id"), error=str(e))

        feed.attach(await self._realtime.subscribe_messages(user_id, peer_id, on_insert))
        return feed
