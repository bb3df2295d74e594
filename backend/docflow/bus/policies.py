"""
Handler failure policies.

The consumer dispatch loop never decides what a failed message means; it
hands the failure to a policy and settles the message the way the policy
answers. The default reproduces fire-and-forget delivery: log, then treat
the message as consumed. A stricter policy (redelivery, dead-letter topic)
plugs in here without touching dispatch.

A policy that itself raises is logged by the consumer and the message is
acked, so a broken policy can never stall a consumer group.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Disposition(str, enum.Enum):
    """What the consumer does with a message after its handler failed."""

    ACK = "ack"            # consumed; never redelivered
    REQUEUE = "requeue"    # returned to the group queue for another attempt


class HandlerFailurePolicy(Protocol):
    async def on_failure(self, topic: str, message: Any, exc: BaseException) -> Disposition:
        """Called after a handler raised. The return value settles the message."""


class LogAndDrop:
    """Log the failure; the unit of work is lost."""

    async def on_failure(self, topic: str, message: Any, exc: BaseException) -> Disposition:
        logger.error(
            "Error processing message, dropping | topic=%s error=%s",
            topic, exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return Disposition.ACK
