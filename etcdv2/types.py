"""Type definitions for the etcd v2 keys client."""

import os
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple
from urllib.parse import urlparse


_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def _parse_expiration(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp as emitted by etcd (nanosecond precision)."""
    if value is None:
        return None
    text = _FRACTION_RE.sub(r"\1", value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


class Action(str, Enum):
    """Action reported by the server for a successful operation."""

    GET = "get"
    SET = "set"
    CREATE = "create"
    DELETE = "delete"
    UPDATE = "update"
    COMPARE_AND_SWAP = "compareAndSwap"
    COMPARE_AND_DELETE = "compareAndDelete"
    EXPIRE = "expire"


@dataclass(frozen=True)
class Node:
    """A key or directory entry in the store.

    A directory never carries a value. A leaf normally does; the server omits
    it when the node describes a key that was just removed.
    """

    key: str
    """Full key path, e.g. "/foo/bar"."""

    value: Optional[str] = None
    """Value of a leaf node."""

    dir: bool = False
    """Whether this node is a directory."""

    created_index: int = 0
    """Index of the mutation that created this node."""

    modified_index: int = 0
    """Index of the last mutation of this node."""

    ttl: Optional[int] = None
    """Remaining time-to-live in seconds."""

    expiration: Optional[datetime] = None
    """Absolute expiration time."""

    nodes: Tuple["Node", ...] = ()
    """Children, in server order. Only populated for directories."""

    def __post_init__(self) -> None:
        if self.dir and self.value is not None:
            raise ValueError(f"Directory node {self.key!r} cannot carry a value")

    @property
    def is_leaf(self) -> bool:
        return not self.dir

    def walk(self) -> Iterator["Node"]:
        """Yield this node and all of its descendants, depth first."""
        yield self
        for child in self.nodes:
            yield from child.walk()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        return cls(
            key=data["key"],
            value=data.get("value"),
            dir=bool(data.get("dir", False)),
            created_index=int(data.get("createdIndex", 0)),
            modified_index=int(data.get("modifiedIndex", 0)),
            ttl=data.get("ttl"),
            expiration=_parse_expiration(data.get("expiration")),
            nodes=tuple(cls.from_dict(child) for child in data.get("nodes", ())),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"key": self.key}
        if self.value is not None:
            data["value"] = self.value
        if self.dir:
            data["dir"] = True
        data["createdIndex"] = self.created_index
        data["modifiedIndex"] = self.modified_index
        if self.ttl is not None:
            data["ttl"] = self.ttl
        if self.expiration is not None:
            data["expiration"] = self.expiration.isoformat()
        if self.nodes:
            data["nodes"] = [child.to_dict() for child in self.nodes]
        return data


@dataclass(frozen=True)
class EtcdResponse:
    """Result of a successful operation."""

    action: Action
    """What the server did."""

    node: Node
    """Current state of the node."""

    prev_node: Optional[Node] = None
    """Previous state, for mutations that replaced or removed a value."""

    etcd_index: Optional[int] = None
    """Cluster index from the X-Etcd-Index header, when the server sent one."""

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], etcd_index: Optional[int] = None
    ) -> "EtcdResponse":
        prev = data.get("prevNode")
        return cls(
            action=Action(data["action"]),
            node=Node.from_dict(data["node"]),
            prev_node=Node.from_dict(prev) if prev is not None else None,
            etcd_index=etcd_index,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "action": self.action.value,
            "node": self.node.to_dict(),
        }
        if self.prev_node is not None:
            data["prevNode"] = self.prev_node.to_dict()
        return data


@dataclass(frozen=True)
class EtcdError:
    """Error reported by the server in a non-success response body."""

    error_code: int
    """Protocol-defined error code, e.g. 100 for "Key not found"."""

    message: str
    """Human readable description."""

    cause: str = ""
    """Context, usually the offending key."""

    index: int = 0
    """Cluster index at the time of the error."""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EtcdError":
        return cls(
            error_code=int(data["errorCode"]),
            message=str(data["message"]),
            cause=str(data.get("cause", "")),
            index=int(data.get("index", 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "errorCode": self.error_code,
            "message": self.message,
            "cause": self.cause,
            "index": self.index,
        }


@dataclass(frozen=True)
class WatchCursor:
    """Position of a watch: the next request waits for changes from `index`."""

    key: str
    index: Optional[int] = None
    recursive: bool = False
    quorum: bool = False

    def advance(self, response: EtcdResponse) -> "WatchCursor":
        """Return the cursor for the request following `response`."""
        return replace(self, index=response.node.modified_index + 1)


@dataclass
class RetryConfig:
    """Retry policy configuration for the opt-in helpers in etcdv2.retry."""

    max_attempts: int = 3
    """Maximum number of consecutive attempts."""

    initial_delay_ms: int = 10
    """Initial backoff delay in milliseconds."""

    max_delay_ms: int = 1000
    """Maximum backoff delay in milliseconds."""

    backoff_multiplier: float = 2.0
    """Backoff multiplier."""

    jitter: bool = True
    """Randomize each delay by a factor between 0.5 and 1.5."""


@dataclass
class ClientConfig:
    """Configuration for EtcdClient."""

    host: str = "127.0.0.1"
    """Host of any cluster member; writes are redirected to the leader."""

    port: int = 4001
    """Client port."""

    scheme: str = "http"
    """URL scheme, "http" or "https"."""

    timeout: int = 5000
    """Default request timeout in milliseconds."""

    watch_timeout: Optional[int] = None
    """Read timeout for long-poll wait requests in milliseconds. None waits forever."""

    max_redirects: int = 3
    """Maximum number of redirects followed per request."""

    retry: RetryConfig = field(default_factory=RetryConfig)
    """Retry policy for the opt-in helpers in etcdv2.retry."""

    @property
    def base_url(self) -> str:
        host = self.host
        # IPv6 literals need brackets in a URL authority
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"{self.scheme}://{host}:{self.port}"

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a configuration from ETCD_* environment variables."""
        config = cls()
        endpoint = os.getenv("ETCD_ENDPOINT")
        if endpoint:
            parsed = urlparse(endpoint)
            config.host = parsed.hostname or config.host
            config.port = parsed.port or config.port
            config.scheme = parsed.scheme or config.scheme
        timeout = os.getenv("ETCD_TIMEOUT_MS")
        if timeout:
            config.timeout = int(timeout)
        watch_timeout = os.getenv("ETCD_WATCH_TIMEOUT_MS")
        if watch_timeout:
            config.watch_timeout = int(watch_timeout)
        max_redirects = os.getenv("ETCD_MAX_REDIRECTS")
        if max_redirects:
            config.max_redirects = int(max_redirects)
        return config
