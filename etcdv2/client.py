"""etcd v2 keys client implementation."""

from typing import Any, AsyncIterator, Optional

import httpx

from etcdv2._internal.decoder import decode_response
from etcdv2._internal.params import Param, flag, option
from etcdv2._internal.request import build_request
from etcdv2._internal.transport import KeysTransport
from etcdv2._internal.watch import watch_loop
from etcdv2.errors import ClientClosedError, from_etcd_error
from etcdv2.types import ClientConfig, EtcdError, EtcdResponse, WatchCursor


class EtcdClient:
    """Async client for the etcd v2 keys API.

    Example:
        >>> async with EtcdClient(ClientConfig(host="localhost")) as client:
        ...     await client.set("/config/mode", "active", ttl=60)
        ...     response = await client.get("/config/mode")
        ...     print(response.node.value)
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            config: Client configuration; defaults to ClientConfig()
            http_transport: Optional httpx transport, e.g. a custom pool or
                httpx.MockTransport in tests
        """
        self._config = config or ClientConfig()
        self._transport = KeysTransport(self._config, http_transport)
        if self._config.watch_timeout is None:
            self._watch_timeout = httpx.Timeout(self._config.timeout / 1000.0, read=None)
        else:
            self._watch_timeout = httpx.Timeout(
                self._config.timeout / 1000.0,
                read=self._config.watch_timeout / 1000.0,
            )

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def close(self) -> None:
        """Close all connections to the cluster."""
        await self._transport.close()

    async def __aenter__(self) -> "EtcdClient":
        """Async context manager entry."""
        if self._transport.is_closed():
            raise ClientClosedError()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore
        """Async context manager exit."""
        await self.close()

    def is_closed(self) -> bool:
        """Check if the client has been closed."""
        return self._transport.is_closed()

    async def get(
        self, key: str, recursive: bool = False, sorted: bool = False
    ) -> EtcdResponse:
        """Read a key or directory.

        Args:
            key: The key to read
            recursive: Include the whole subtree of a directory
            sorted: Return directory children in key order

        Raises:
            KeyNotFoundError: If the key does not exist
        """
        return await self._run(
            "GET", key, flag("recursive", recursive), flag("sorted", sorted)
        )

    async def wait(
        self,
        key: str,
        wait_index: Optional[int] = None,
        recursive: bool = False,
        sorted: bool = False,
        quorum: bool = False,
    ) -> EtcdResponse:
        """Wait for the next change of a key.

        Args:
            key: The key to wait on
            wait_index: Return the first change at or after this index;
                None waits for the next change from now
            recursive: Also report changes below a directory
            sorted: Return directory children in key order
            quorum: Require a quorum read

        Raises:
            EventIndexClearedError: If wait_index is older than the
                retained event history
        """
        return await self._run(
            "GET",
            key,
            ("wait", "true"),
            option("waitIndex", wait_index),
            flag("recursive", recursive),
            flag("sorted", sorted),
            flag("quorum", quorum),
            timeout=self._watch_timeout,
        )

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> EtcdResponse:
        """Store a value, creating or replacing the key.

        Args:
            key: The key to write
            value: The value to store
            ttl: Optional time-to-live in seconds
        """
        return await self._run("PUT", key, option("value", value), option("ttl", ttl))

    async def compare_and_set(
        self,
        key: str,
        value: str,
        ttl: Optional[int] = None,
        prev_value: Optional[str] = None,
        prev_index: Optional[int] = None,
        prev_exist: Optional[bool] = None,
    ) -> EtcdResponse:
        """Store a value if the current state matches the given conditions.

        Args:
            key: The key to write
            value: The value to store
            ttl: Optional time-to-live in seconds
            prev_value: Required current value
            prev_index: Required current modified index
            prev_exist: True to require the key to exist, False to require
                it not to, None for no existence condition

        Raises:
            CompareFailedError: If prev_value or prev_index does not match
            KeyNotFoundError: If prev_exist is True and the key is missing
            NodeExistError: If prev_exist is False and the key exists
        """
        return await self._run(
            "PUT",
            key,
            option("value", value),
            option("ttl", ttl),
            option("prevValue", prev_value),
            option("prevIndex", prev_index),
            option("prevExist", prev_exist),
        )

    async def clear_ttl(self, key: str) -> EtcdResponse:
        """Remove the expiration of an existing key."""
        return await self._run("PUT", key, ("ttl", ""), ("prevExist", "true"))

    async def create(self, parent_key: str, value: str) -> EtcdResponse:
        """Create an in-order key with a server-generated name under a directory."""
        return await self._run("POST", parent_key, option("value", value))

    async def create_dir(self, key: str, ttl: Optional[int] = None) -> EtcdResponse:
        """Create a directory.

        Raises:
            NodeExistError: If the key already exists
        """
        return await self._run("PUT", key, ("dir", "true"), option("ttl", ttl))

    async def delete(self, key: str, recursive: bool = False) -> EtcdResponse:
        """Delete a key, or a directory with everything below it if recursive.

        Raises:
            KeyNotFoundError: If the key does not exist
            DirNotEmptyError: If the key is a non-empty directory and
                recursive is False
        """
        return await self._run("DELETE", key, flag("recursive", recursive))

    async def compare_and_delete(
        self,
        key: str,
        prev_value: Optional[str] = None,
        prev_index: Optional[int] = None,
    ) -> EtcdResponse:
        """Delete a key if its current state matches the given conditions.

        Raises:
            CompareFailedError: If prev_value or prev_index does not match
        """
        return await self._run(
            "DELETE",
            key,
            option("prevValue", prev_value),
            option("prevIndex", prev_index),
        )

    def watch(
        self,
        key: str,
        wait_index: Optional[int] = None,
        recursive: bool = False,
        quorum: bool = False,
    ) -> AsyncIterator[EtcdResponse]:
        """Stream every change of a key.

        The stream is infinite and issues one wait request at a time, only
        while it is being iterated. It ends with the first error. Close it
        (or break out of the loop) to stop watching.

        Example:
            >>> async for response in client.watch("/jobs", recursive=True):
            ...     print(response.action, response.node.key)

        Args:
            key: The key to watch
            wait_index: First index to report; None starts from now
            recursive: Also report changes below a directory
            quorum: Require quorum reads

        Returns:
            Async iterator of EtcdResponse, one per change
        """
        cursor = WatchCursor(
            key=key, index=wait_index, recursive=recursive, quorum=quorum
        )
        return watch_loop(self._wait_at, cursor)

    async def _wait_at(self, cursor: WatchCursor) -> EtcdResponse:
        return await self.wait(
            cursor.key,
            wait_index=cursor.index,
            recursive=cursor.recursive,
            quorum=cursor.quorum,
        )

    async def _run(
        self,
        method: str,
        key: str,
        *params: Param,
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
    ) -> EtcdResponse:
        request = build_request(method, key, params)
        async with self._transport.stream(request, timeout=timeout) as response:
            result = await decode_response(response)
        if isinstance(result, EtcdError):
            raise from_etcd_error(result)
        return result
