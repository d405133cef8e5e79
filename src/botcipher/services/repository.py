"""Message repository rebuilt from ledger reads."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from botcipher.core.errors import LedgerUnavailableError, LoadError
from botcipher.core.settings import settings
from botcipher.schemas.message import ChatMessage, ChatStats, MessageSnapshot
from botcipher.services.ledger import LedgerRecord, LedgerStore

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[MessageSnapshot], None]


def compute_stats(messages: Iterable[ChatMessage]) -> ChatStats:
    """Project statistics from a message sequence."""
    items = list(messages)
    total = len(items)
    encrypted = sum(1 for m in items if m.is_verified)
    verified = sum(1 for m in items if m.is_verified and m.decrypted_value)
    average = sum(m.timestamp for m in items) / total if total > 0 else 0.0
    return ChatStats(
        total_messages=total,
        encrypted_messages=encrypted,
        verified_messages=verified,
        average_timestamp=average,
    )


class MessageRepository:
    """Normalized, read-only view of every chat record on the ledger.

    Each refresh discards the previous view and rebuilds it from the ledger.
    The only state carried across refreshes is the set of messages already
    seen verified, so a lagging read can never un-verify a message.
    """

    def __init__(self, ledger: LedgerStore, *, bot_id_prefix: str | None = None) -> None:
        self._ledger = ledger
        self._bot_prefix = f"{bot_id_prefix or settings.bot_id_prefix}-"
        self._snapshot = MessageSnapshot()
        self._verified: dict[str, int] = {}
        self._listeners: list[SnapshotListener] = []

    @property
    def snapshot(self) -> MessageSnapshot:
        return self._snapshot

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return self._snapshot.messages

    @property
    def stats(self) -> ChatStats:
        return self._snapshot.stats

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register ``listener`` for every published snapshot."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def refresh(self, active_identity: str | None) -> MessageSnapshot:
        """Rebuild the message view and its statistics from the ledger.

        Args:
            active_identity: Identity used to derive ``is_user``

        Returns:
            The newly published snapshot

        Raises:
            LoadError: If identifiers cannot be enumerated or the ledger
                becomes unreachable mid-refresh
        """
        try:
            identifiers = list(await self._ledger.list_identifiers())
        except Exception as exc:
            raise LoadError(f"Failed to list messages: {exc}") from exc

        messages: list[ChatMessage] = []
        for message_id in identifiers:
            try:
                record = await self._ledger.get_record(message_id)
            except LedgerUnavailableError as exc:
                raise LoadError(f"Failed to load message {message_id}: {exc}") from exc
            except Exception as exc:
                logger.warning("Skipping message %s: %s", message_id, exc)
                continue
            messages.append(self._to_message(message_id, record, active_identity))

        snapshot = MessageSnapshot(messages=tuple(messages), stats=compute_stats(messages))
        self._publish(snapshot)
        return snapshot

    def _to_message(
        self, message_id: str, record: LedgerRecord, active_identity: str | None
    ) -> ChatMessage:
        is_verified = record.is_verified
        decrypted_value: int | None = int(record.decrypted_value or 0) if is_verified else None

        if is_verified:
            self._verified[message_id] = decrypted_value or 0
        elif message_id in self._verified:
            logger.debug("Ledger reported %s unverified after verification", message_id)
            is_verified = True
            decrypted_value = self._verified[message_id]

        return ChatMessage(
            id=message_id,
            content=record.name,
            encrypted_value=0,
            timestamp=int(record.timestamp),
            is_user=self._is_user(message_id, record.creator, active_identity),
            is_verified=is_verified,
            decrypted_value=decrypted_value,
        )

    def _is_user(self, message_id: str, creator: str, active_identity: str | None) -> bool:
        if not active_identity or message_id.startswith(self._bot_prefix):
            return False
        return creator.lower() == active_identity.lower()

    def _publish(self, snapshot: MessageSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)
