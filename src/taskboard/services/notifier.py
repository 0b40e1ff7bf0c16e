"""Relationship-change notifications with transport abstraction.

Notifier ABC decouples the engine from delivery. RedisNotifier publishes
each event on a per-recipient pub/sub channel; LoggingNotifier is used
when Redis is disabled or unreachable.

Dispatch is best-effort: it runs after the membership change committed,
and a failing notifier is logged without undoing the change.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

import redis.asyncio

from taskboard.core.relationships import RelationshipEvent
from taskboard.schemas.jsonapi import ResourceIdentifier

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Base interface for notification delivery."""

    @abstractmethod
    async def send(
        self,
        recipients: Sequence[ResourceIdentifier],
        kind: str,
        context: dict[str, Any],
    ) -> None:
        """Deliver one notification of ``kind`` to every recipient.

        Args:
            recipients: Identifiers of the resources being notified.
            kind: Event kind (``assigned``, ``unassigned``, ``promoted``, ``demoted``).
            context: Owner, relationship and acting identity for the message.
        """
        ...


class LoggingNotifier(Notifier):
    """Writes notifications to the application log."""

    async def send(
        self,
        recipients: Sequence[ResourceIdentifier],
        kind: str,
        context: dict[str, Any],
    ) -> None:
        for recipient in recipients:
            logger.info(
                "Notify %s: %s on %s.%s",
                recipient, kind, context.get("owner"), context.get("relationship"),
                extra={"event_kind": kind, "actor_id": context.get("actor")},
            )


class RedisNotifier(Notifier):
    """Publishes notifications to Redis pub/sub.

    Each recipient has its own ``{prefix}:{type}:{id}`` channel so a
    delivery worker can subscribe per user.

    Args:
        redis: The app's async Redis connection (same as app.state.redis).
        channel_prefix: Prefix of every notification channel.
    """

    def __init__(self, redis: redis.asyncio.Redis, channel_prefix: str = "notifications") -> None:
        self._redis = redis
        self._prefix = channel_prefix

    async def send(
        self,
        recipients: Sequence[ResourceIdentifier],
        kind: str,
        context: dict[str, Any],
    ) -> None:
        payload = json.dumps({"kind": kind, **context})
        for recipient in recipients:
            await self._redis.publish(f"{self._prefix}:{recipient.type}:{recipient.id}", payload)


def event_context(event: RelationshipEvent, actor: str | None) -> dict[str, Any]:
    return {
        "owner": {"type": event.owner.type, "id": event.owner.id},
        "relationship": event.relationship,
        "actor": actor,
    }


async def dispatch_events(
    notifier: Notifier, events: Iterable[RelationshipEvent], actor: str | None = None
) -> None:
    """Send each event through ``notifier``; failures are logged, never raised."""
    for event in events:
        try:
            await notifier.send(list(event.recipients), event.kind.value, event_context(event, actor))
        except Exception:
            logger.warning(
                "Failed to dispatch %s notification for %s.%s",
                event.kind.value, event.owner, event.relationship,
                exc_info=True,
                extra={"event_kind": event.kind.value, "actor_id": actor},
            )
