"""Chunked batch writes - split bulk updates to the store's per-call record limit."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from pairing.core.clock import utcnow
from pairing.core.domain_types import PartyKind, RequestStatus
from pairing.core.enforce_partnership import chunked
from pairing.core.repository_protocols import EntityStore, StoreSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def execute_batch_updates(
    store: EntityStore,
    ids: Sequence[T],
    write: Callable[[StoreSession, list[T]], Awaitable[int]],
    operation: str,
) -> int:
    """Apply write to ids in chunks of store.max_batch_size, one batch_write per chunk.

    Chunks commit independently: a failure leaves earlier chunks applied and
    propagates to the caller.
    """
    total = 0
    for chunk in chunked(list(ids), store.max_batch_size):
        async def run(session: StoreSession, chunk=chunk) -> int:
            return await write(session, chunk)

        total += await store.batch_write(run, operation=operation)
    if ids:
        logger.info(
            f"Batch update wrote {total} of {len(ids)} records",
            extra={"operation": operation},
        )
    return total


async def cancel_pending_requests(
    store: EntityStore, request_ids: Sequence[str], kind: PartyKind, operation: str,
) -> int:
    """Mark still-pending requests cancelled; already-terminal ones are left alone."""
    responded_at = utcnow()

    async def write(session: StoreSession, chunk: list[str]) -> int:
        repo = (
            session.supervisor_requests if kind is PartyKind.SUPERVISOR
            else session.requests
        )
        return await repo.update_status_many(chunk, RequestStatus.CANCELLED, responded_at)

    return await execute_batch_updates(store, request_ids, write, operation)
