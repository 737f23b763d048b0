"""etcd v2 keys API client.

An asyncio client for the HTTP/JSON v2 keys protocol of etcd.

Example:
    >>> import asyncio
    >>> from etcdv2 import EtcdClient, ClientConfig
    >>>
    >>> async def main():
    ...     config = ClientConfig(host="localhost", port=4001)
    ...     async with EtcdClient(config) as client:
    ...         # Set a value
    ...         response = await client.set("/my/key", "my-value")
    ...
    ...         # Get a value
    ...         response = await client.get("/my/key")
    ...         print(response.node.value)  # "my-value"
    ...
    ...         # Follow changes
    ...         async for change in client.watch("/my", recursive=True):
    ...             print(change.action, change.node.key)
    >>>
    >>> asyncio.run(main())
"""

__version__ = "0.1.0"

from etcdv2.client import EtcdClient
from etcdv2.errors import (
    ClientClosedError,
    CompareFailedError,
    DirNotEmptyError,
    EtcdClientError,
    EtcdDecodeError,
    EtcdException,
    EventIndexClearedError,
    InvalidFieldError,
    KeyNotFoundError,
    NodeExistError,
    NotDirError,
    NotFileError,
    RaftError,
    RetryExhaustedError,
    RootReadOnlyError,
    WatcherClearedError,
)
from etcdv2.retry import RetryPolicy, resilient_watch
from etcdv2.types import (
    Action,
    ClientConfig,
    EtcdError,
    EtcdResponse,
    Node,
    RetryConfig,
)

__all__ = [
    "__version__",
    # Client
    "EtcdClient",
    # Configuration
    "ClientConfig",
    "RetryConfig",
    # Results and types
    "Action",
    "Node",
    "EtcdResponse",
    "EtcdError",
    # Resilience helpers
    "RetryPolicy",
    "resilient_watch",
    # Errors
    "EtcdClientError",
    "EtcdDecodeError",
    "ClientClosedError",
    "EtcdException",
    "KeyNotFoundError",
    "CompareFailedError",
    "NotFileError",
    "NotDirError",
    "NodeExistError",
    "RootReadOnlyError",
    "DirNotEmptyError",
    "InvalidFieldError",
    "RaftError",
    "WatcherClearedError",
    "EventIndexClearedError",
    "RetryExhaustedError",
]
