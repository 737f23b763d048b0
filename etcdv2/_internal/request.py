"""Mapping of key operations to HTTP requests against the v2 keys API."""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence
from urllib.parse import quote

from etcdv2._internal.params import Param, encode_form, encode_query

KEYS_PREFIX = "/v2/keys"

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Methods whose parameters travel in the URL query rather than the body.
QUERY_METHODS = frozenset({"GET", "DELETE"})


@dataclass(frozen=True)
class KeysRequest:
    """A concrete HTTP request, independent of the host it is sent to."""

    method: str
    path: str
    query: str = ""
    body: Optional[bytes] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def target(self) -> str:
        """Path plus query string, relative to the server base URL."""
        if self.query:
            return f"{self.path}?{self.query}"
        return self.path


def key_path(key: str) -> str:
    """Build the request path for a key.

    The key is a path: its "/" separators are kept, other reserved
    characters are percent-encoded.
    """
    return f"{KEYS_PREFIX}/{quote(key.lstrip('/'), safe='/')}"


def build_request(method: str, key: str, params: Sequence[Param]) -> KeysRequest:
    """Build the request for `method` on `key`.

    Args:
        method: HTTP method, one of GET, PUT, POST, DELETE
        key: Key path; not validated, the server reports malformed keys
        params: Ordered optional parameters

    Returns:
        The request, with parameters in the query for GET and DELETE and in
        a form-encoded body for PUT and POST
    """
    method = method.upper()
    path = key_path(key)
    if method in QUERY_METHODS:
        return KeysRequest(method=method, path=path, query=encode_query(params))
    return KeysRequest(
        method=method,
        path=path,
        body=encode_form(params),
        headers={"Content-Type": FORM_CONTENT_TYPE},
    )
