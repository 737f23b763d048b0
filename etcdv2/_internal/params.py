"""Encoding of optional request parameters into query strings and form bodies."""

from typing import Any, List, Optional, Sequence, Tuple
from urllib.parse import urlencode

Param = Tuple[str, Optional[str]]
"""A named parameter; a value of None means the parameter is absent."""


def flag(name: str, value: bool) -> Param:
    """Parameter sent as "true" when set and omitted otherwise."""
    return (name, "true" if value else None)


def option(name: str, value: Any) -> Param:
    """Parameter sent whenever a value is given, including empty strings."""
    if value is None:
        return (name, None)
    if isinstance(value, bool):
        return (name, "true" if value else "false")
    return (name, str(value))


def present(params: Sequence[Param]) -> List[Tuple[str, str]]:
    """Drop absent parameters, keeping the order of the rest."""
    return [(name, value) for name, value in params if value is not None]


def encode_query(params: Sequence[Param]) -> str:
    return urlencode(present(params))


def encode_form(params: Sequence[Param]) -> bytes:
    # Same percent-encoding rules as the query string.
    return encode_query(params).encode("ascii")
