"""
Reliability utilities.

Deadline enforcement for workflow transactions. A timed-out transaction is
rolled back and reported as a retryable infrastructure failure. Nothing
here retries.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from backend.app.core.config import settings
from backend.app.core.exceptions import TransactionTimeoutError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def deadline(timeout: Optional[float] = None) -> AsyncIterator[float]:
    """
    Bound the enclosed block by the configured transaction deadline.
    
    Only the work inside the block is timed. Anything the caller does after
    leaving it (post-commit notification fan-out) can no longer turn a
    committed write into a failure.
    
    Args:
        timeout: Seconds allowed (defaults to settings.transaction_timeout_seconds)
    
    Raises:
        TransactionTimeoutError: If the deadline elapses inside the block
    """
    limit = timeout if timeout is not None else settings.transaction_timeout_seconds
    try:
        async with asyncio.timeout(limit):
            yield limit
    except TimeoutError as exc:
        logger.warning("Workflow transaction exceeded deadline", extra={"timeout_seconds": limit})
        raise TransactionTimeoutError(limit) from exc
