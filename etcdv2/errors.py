"""Custom error classes for the etcd v2 keys client."""

from typing import Dict, Optional, Type

from etcdv2.types import EtcdError


class EtcdClientError(Exception):
    """Base error class for all errors raised by this library."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code

    def __repr__(self) -> str:
        if self.code:
            return f"{self.__class__.__name__}(message={str(self)!r}, code={self.code!r})"
        return f"{self.__class__.__name__}(message={str(self)!r})"


class EtcdDecodeError(EtcdClientError):
    """Error indicating a response body did not have the expected shape.

    The server or an intermediary returned content that does not follow
    the v2 keys protocol. Not retried.
    """

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message, "DECODE_ERROR")
        self.status_code = status_code
        self.body = body

    def __repr__(self) -> str:
        return (
            f"EtcdDecodeError(message={str(self)!r}, "
            f"status_code={self.status_code}, body={self.body[:100]!r})"
        )


class ClientClosedError(EtcdClientError):
    """Error indicating an operation was attempted on a closed client."""

    def __init__(self, message: str = "Client is closed"):
        super().__init__(message, "CLIENT_CLOSED")


class EtcdException(EtcdClientError):
    """Application error reported by the server.

    Callers branch on `error_code`, or catch one of the subclasses below.
    """

    def __init__(self, error: EtcdError):
        super().__init__(error.message, str(error.error_code))
        self.error = error

    @property
    def error_code(self) -> int:
        return self.error.error_code

    @property
    def cause(self) -> str:
        return self.error.cause

    @property
    def index(self) -> int:
        return self.error.index

    def __str__(self) -> str:
        if self.error.cause:
            return f"{self.error.message} ({self.error.cause})"
        return self.error.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(error_code={self.error_code}, "
            f"message={self.error.message!r}, cause={self.cause!r}, "
            f"index={self.index})"
        )


class KeyNotFoundError(EtcdException):
    """The key does not exist (100)."""


class CompareFailedError(EtcdException):
    """A prevValue or prevIndex condition did not hold (101)."""


class NotFileError(EtcdException):
    """A leaf operation was attempted on a directory (102)."""


class NotDirError(EtcdException):
    """A directory operation was attempted on a leaf (104)."""


class NodeExistError(EtcdException):
    """The key already exists (105)."""


class RootReadOnlyError(EtcdException):
    """The root directory cannot be modified (107)."""


class DirNotEmptyError(EtcdException):
    """A non-recursive delete was attempted on a non-empty directory (108)."""


class InvalidFieldError(EtcdException):
    """A request parameter was missing or malformed (200-299)."""


class RaftError(EtcdException):
    """Internal cluster error, e.g. during leader election (300-399).

    Transient; callers may retry.
    """


class WatcherClearedError(EtcdException):
    """The server dropped the watcher, e.g. during recovery (400)."""


class EventIndexClearedError(EtcdException):
    """The requested waitIndex is older than the retained event history (401).

    `index` holds the current cluster index; a new watch can start from
    `index + 1`, missing the compacted events.
    """


class RetryExhaustedError(EtcdClientError):
    """Error indicating maximum retry attempts have been exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: Optional[Exception] = None,
    ):
        super().__init__(message, "RETRY_EXHAUSTED")
        self.attempts = attempts
        self.last_error = last_error

    def __repr__(self) -> str:
        return (
            f"RetryExhaustedError(message={str(self)!r}, "
            f"attempts={self.attempts}, last_error={self.last_error!r})"
        )


_ERRORS_BY_CODE: Dict[int, Type[EtcdException]] = {
    100: KeyNotFoundError,
    101: CompareFailedError,
    102: NotFileError,
    104: NotDirError,
    105: NodeExistError,
    107: RootReadOnlyError,
    108: DirNotEmptyError,
    400: WatcherClearedError,
    401: EventIndexClearedError,
}


def from_etcd_error(error: EtcdError) -> EtcdException:
    """Convert a decoded server error to the matching exception.

    Args:
        error: Error decoded from the response body

    Returns:
        Appropriate EtcdException subclass
    """
    cls = _ERRORS_BY_CODE.get(error.error_code)
    if cls is None:
        if 200 <= error.error_code < 300:
            cls = InvalidFieldError
        elif 300 <= error.error_code < 400:
            cls = RaftError
        else:
            cls = EtcdException
    return cls(error)
