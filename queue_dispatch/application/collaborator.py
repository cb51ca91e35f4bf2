"""Timeout and error wrapping for calls into collaborators (stores, directory, senders)."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

from queue_dispatch.domain.errors import ErrorKind, QueueError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 5.0


async def guarded(
    operation: str,
    awaitable: Awaitable[T],
    timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    **context,
) -> T:
    """Await a collaborator call with a timeout.

    ``QueueError`` passes through unchanged; a timeout or any other exception
    becomes ``OPERATION_FAILED`` with the original cause attached. No retries.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except QueueError:
        raise
    except asyncio.TimeoutError as e:
        logger.warning("%s: collaborator timed out after %ss %s", operation, timeout, context)
        raise QueueError(
            ErrorKind.OPERATION_FAILED,
            f"Collaborator call timed out after {timeout}s",
            operation,
            context,
            e,
        ) from e
    except Exception as e:
        logger.warning("%s: collaborator failed: %s", operation, e)
        raise QueueError(
            ErrorKind.OPERATION_FAILED,
            f"Collaborator call failed: {e}",
            operation,
            context,
            e,
        ) from e


def wrap_unexpected(operation: str, error: Exception, **context) -> QueueError:
    """Turn an unexpected exception into UNKNOWN; QueueErrors come back as-is."""
    if isinstance(error, QueueError):
        return error
    logger.exception("%s failed unexpectedly", operation)
    return QueueError(ErrorKind.UNKNOWN, str(error) or type(error).__name__, operation, context, error)
