"""Concurrent multi-item operations with partial-failure aggregation.

This module holds the two shapes of "many items, one answer":

- `perform_concurrently`: one request per item (update/delete). Every item
  runs at once, failures are collected per item and never abort siblings.
- `post_batch`: one request for the whole list (upload). The server answer
  says which items it accepted; a failed request fails the whole call.

Neither retries, limits concurrency, or cancels in-flight work. Callers that
want a retry re-run with `result.rejected_items`.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Hashable, Iterable, Sequence, TypeVar

import structlog

from core.domain.errors import NightscoutError, OperationError
from core.domain.results import OperationResult, PostResponse, Rejection
from core.services.atomic import Atomic

logger = structlog.get_logger(__name__)

ItemT = TypeVar("ItemT", bound=Hashable)

ItemOperation = Callable[[ItemT], Awaitable["BaseException | None"]]
BatchSubmit = Callable[[list[ItemT]], Awaitable[Iterable[ItemT]]]


async def perform_concurrently(
    items: Iterable[ItemT],
    operation: ItemOperation[ItemT],
    *,
    completion: Callable[[OperationResult[ItemT]], None] | None = None,
    operation_name: str = "operation",
) -> OperationResult[ItemT]:
    """Run `operation` for every item at once and partition the outcome.

    `operation` returns `None` on success or the error for that item; raising
    an exception is treated the same as returning it. Errors that are not a
    `NightscoutError` become `OperationError` rejections so no item is dropped.

    `completion`, when given, is called exactly once with the result after
    every item has finished.
    """

    item_list = list(items)
    if not item_list:
        result: OperationResult[ItemT] = OperationResult()
        if completion is not None:
            completion(result)
        return result

    rejections: Atomic[set[Rejection[ItemT]]] = Atomic(set())

    def reject(item: ItemT, error: NightscoutError) -> None:
        rejection = Rejection(item=item, error=error)

        def insert(current: set[Rejection[ItemT]]) -> set[Rejection[ItemT]]:
            current.add(rejection)
            return current

        rejections.modify(insert)
        logger.info(
            "item_rejected",
            operation=operation_name,
            item=_describe(item),
            error=str(error),
            error_kind=error.kind.value,
        )

    async def run_one(item: ItemT) -> None:
        try:
            error = await operation(item)
        except NightscoutError as exc:
            error = exc
        except Exception as exc:
            logger.exception("item_operation_crashed", operation=operation_name, item=_describe(item))
            error = OperationError(exc)
        if error is not None and not isinstance(error, NightscoutError):
            error = OperationError(error)
        if error is not None:
            reject(item, error)

    logger.debug("operation_started", operation=operation_name, item_count=len(item_list))
    await asyncio.gather(*(run_one(item) for item in item_list))

    final_rejections = frozenset(rejections.get())
    rejected = {r.item for r in final_rejections}
    processed = frozenset(item for item in item_list if item not in rejected)
    result = OperationResult(processed_items=processed, rejections=final_rejections)

    logger.info(
        "operation_completed",
        operation=operation_name,
        processed=len(result.processed_items),
        rejected=len(result.rejections),
    )
    if completion is not None:
        completion(result)
    return result


async def post_batch(
    items: Sequence[ItemT],
    submit: BatchSubmit[ItemT],
    *,
    completion: Callable[[PostResponse[ItemT]], None] | None = None,
    operation_name: str = "post",
) -> PostResponse[ItemT]:
    """Submit every item in one call and split by what the server accepted.

    Raises the submission's `NightscoutError` unchanged; no partial response
    is produced. `completion` is only called on success.
    """

    item_list = list(items)
    logger.debug("batch_post_started", operation=operation_name, item_count=len(item_list))
    try:
        accepted = await submit(item_list)
    except NightscoutError as exc:
        logger.warning(
            "batch_post_failed",
            operation=operation_name,
            item_count=len(item_list),
            error=str(exc),
            error_kind=exc.kind.value,
        )
        raise

    uploaded = frozenset(accepted)
    response = PostResponse(
        uploaded_items=uploaded,
        rejected_items=frozenset(item_list) - uploaded,
    )
    logger.info(
        "batch_post_completed",
        operation=operation_name,
        uploaded=len(response.uploaded_items),
        rejected=len(response.rejected_items),
    )
    if completion is not None:
        completion(response)
    return response


def _describe(item: object) -> str:
    item_id = getattr(item, "id", None)
    return str(item_id) if item_id is not None else repr(item)
