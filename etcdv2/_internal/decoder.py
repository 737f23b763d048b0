"""Decoding of v2 keys API responses."""

import json
from typing import Optional, Union

import httpx

from etcdv2.errors import EtcdDecodeError
from etcdv2.types import EtcdError, EtcdResponse

DecodeResult = Union[EtcdResponse, EtcdError]
"""Either the decoded success value or the error reported by the server."""

ETCD_INDEX_HEADER = "X-Etcd-Index"


def _etcd_index(response: httpx.Response) -> Optional[int]:
    value = response.headers.get(ETCD_INDEX_HEADER)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


async def decode_response(response: httpx.Response) -> DecodeResult:
    """Drain the response body and decode it.

    Args:
        response: Response, possibly still streaming its body

    Returns:
        EtcdResponse for a success status, EtcdError otherwise

    Raises:
        EtcdDecodeError: If the body does not match the expected shape
    """
    await response.aread()
    body = response.content.decode("utf-8", errors="replace")

    try:
        data = json.loads(body)
        if response.is_success:
            return EtcdResponse.from_dict(data, etcd_index=_etcd_index(response))
        return EtcdError.from_dict(data)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        kind = "response" if response.is_success else "error"
        raise EtcdDecodeError(
            f"Malformed {kind} body (HTTP {response.status_code}): {e}",
            status_code=response.status_code,
            body=body,
        ) from e
