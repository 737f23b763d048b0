"""Continuous watch built on single-shot long-poll wait requests."""

import logging
from typing import AsyncIterator, Awaitable, Callable

from etcdv2.types import EtcdResponse, WatchCursor

WaitFn = Callable[[WatchCursor], Awaitable[EtcdResponse]]

logger = logging.getLogger("etcdv2.watch")


async def watch_loop(wait: WaitFn, cursor: WatchCursor) -> AsyncIterator[EtcdResponse]:
    """Yield every change observed from `cursor` onwards.

    Each response advances the cursor past the change it reported, so no
    change is delivered twice. The next wait request is only issued when the
    consumer asks for the next item: there is never more than one request in
    flight, and none once the consumer stops iterating or closes the
    generator. The first failure propagates and ends the stream.

    Args:
        wait: Performs one wait request for a cursor
        cursor: Starting position

    Yields:
        One EtcdResponse per observed change, without end
    """
    logger.debug(
        "etcd_watch_started",
        extra={
            "event": {"category": ["etcd"], "action": "watch_started"},
            "etcd": {
                "key": cursor.key,
                "wait_index": cursor.index,
                "recursive": cursor.recursive,
            },
        },
    )
    while True:
        response = await wait(cursor)
        yield response
        cursor = cursor.advance(response)
        logger.debug(
            "etcd_watch_advanced",
            extra={
                "event": {"category": ["etcd"], "action": "watch_advanced"},
                "etcd": {"key": cursor.key, "wait_index": cursor.index},
            },
        )
