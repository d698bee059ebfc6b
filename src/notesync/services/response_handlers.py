"""Fault capture and result shaping shared by every use case.

``safe_cache_call`` and ``safe_api_call`` turn a storage call into a result
object instead of letting the exception escape. The response handlers then
turn that result into the single ``DataState`` a use case returns.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from notesync.exceptions import (
    BatchSizeExceededError,
    CacheError,
    ErrorCode,
    NetworkError,
)
from notesync.models.state import (
    DataState,
    StateEvent,
    UIComponentType,
    error_response,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Stable error kinds, appended to the event's error info as "Reason: <kind>"
CACHE_ERROR_UNKNOWN = "Unknown cache error"
CACHE_ERROR_TIMEOUT = "Cache timeout"
CACHE_DATA_NULL = "Cache data is null"
NETWORK_ERROR_UNKNOWN = "Unknown network error"
NETWORK_ERROR_TIMEOUT = "Network timeout"
NETWORK_DATA_NULL = "Network data is null"
INVALID_STATE_EVENT = "Invalid state event"

UNKNOWN_ERROR_INFO = "Unknown error"

_ERROR_CODES = {
    CACHE_ERROR_UNKNOWN: ErrorCode.CACHE_FAULT,
    CACHE_ERROR_TIMEOUT: ErrorCode.CACHE_TIMEOUT,
    CACHE_DATA_NULL: ErrorCode.CACHE_DATA_NULL,
    NETWORK_ERROR_UNKNOWN: ErrorCode.NETWORK_FAULT,
    NETWORK_ERROR_TIMEOUT: ErrorCode.NETWORK_TIMEOUT,
    NETWORK_DATA_NULL: ErrorCode.NETWORK_DATA_NULL,
    INVALID_STATE_EVENT: ErrorCode.INVALID_STATE_EVENT,
}


def build_error_message(state_event: Optional[StateEvent], kind: str) -> str:
    error_info = state_event.error_info() if state_event is not None else UNKNOWN_ERROR_INFO
    return f"{error_info}\n\nReason: {kind}"


class CacheResult:
    """Outcome of a guarded cache call."""

    @dataclass(frozen=True)
    class Success:
        value: Any

    @dataclass(frozen=True)
    class GenericError:
        error_message: str
        detail: Optional[str] = None


class ApiResult:
    """Outcome of a guarded network call."""

    @dataclass(frozen=True)
    class Success:
        value: Any

    @dataclass(frozen=True)
    class GenericError:
        error_message: str
        detail: Optional[str] = None


CacheResultType = Union[CacheResult.Success, CacheResult.GenericError]
ApiResultType = Union[ApiResult.Success, ApiResult.GenericError]


def safe_cache_call(fn: Callable[..., Any], *args, **kwargs) -> CacheResultType:
    """Run a cache call and capture any fault as a GenericError."""
    try:
        return CacheResult.Success(fn(*args, **kwargs))
    except TimeoutError as e:
        logger.warning(f"Cache call {getattr(fn, '__name__', fn)} timed out: {e}")
        return CacheResult.GenericError(CACHE_ERROR_TIMEOUT, detail=str(e))
    except CacheError as e:
        logger.error(f"Cache call {getattr(fn, '__name__', fn)} failed: {e}")
        return CacheResult.GenericError(CACHE_ERROR_UNKNOWN, detail=str(e))
    except Exception as e:
        logger.exception(f"Unexpected error in cache call {getattr(fn, '__name__', fn)}")
        return CacheResult.GenericError(CACHE_ERROR_UNKNOWN, detail=str(e))


def safe_api_call(fn: Callable[..., Any], *args, **kwargs) -> ApiResultType:
    """Run a network call and capture any fault as a GenericError.

    ``BatchSizeExceededError`` is a caller bug, not a fault, and propagates.
    """
    try:
        return ApiResult.Success(fn(*args, **kwargs))
    except BatchSizeExceededError:
        raise
    except TimeoutError as e:
        logger.warning(f"Network call {getattr(fn, '__name__', fn)} timed out: {e}")
        return ApiResult.GenericError(NETWORK_ERROR_TIMEOUT, detail=str(e))
    except NetworkError as e:
        logger.error(f"Network call {getattr(fn, '__name__', fn)} failed: {e}")
        return ApiResult.GenericError(NETWORK_ERROR_UNKNOWN, detail=str(e))
    except Exception as e:
        logger.exception(f"Unexpected error in network call {getattr(fn, '__name__', fn)}")
        return ApiResult.GenericError(NETWORK_ERROR_UNKNOWN, detail=str(e))


class _ResponseHandler(Generic[T]):
    """Maps a guarded result onto a DataState.

    Args:
        response: The result of ``safe_cache_call`` or ``safe_api_call``
        state_event: The event being served, used for the error prefix
        handle_success: Turns a non-null success value into a DataState
        error_ui: How errors should be surfaced
    """

    _error_type: type
    _null_kind: str

    def __init__(
        self,
        response,
        state_event: Optional[StateEvent],
        handle_success: Callable[[Any], DataState[T]],
        error_ui: UIComponentType = UIComponentType.DIALOG,
    ):
        self.response = response
        self.state_event = state_event
        self.handle_success = handle_success
        self.error_ui = error_ui

    def _error(self, kind: str) -> DataState[T]:
        return DataState.error(
            error_response(
                build_error_message(self.state_event, kind),
                _ERROR_CODES[kind],
                self.error_ui,
            ),
            state_event=self.state_event,
        )

    def get_result(self) -> DataState[T]:
        if isinstance(self.response, self._error_type):
            return self._error(self.response.error_message)
        if self.response.value is None:
            return self._error(self._null_kind)
        return self.handle_success(self.response.value)


class CacheResponseHandler(_ResponseHandler[T]):
    _error_type = CacheResult.GenericError
    _null_kind = CACHE_DATA_NULL


class ApiResponseHandler(_ResponseHandler[T]):
    _error_type = ApiResult.GenericError
    _null_kind = NETWORK_DATA_NULL


def invalid_state_event(state_event: Optional[StateEvent]) -> DataState:
    """Error returned when an event reaches a component that cannot serve it."""
    return DataState.error(
        error_response(
            build_error_message(state_event, INVALID_STATE_EVENT),
            ErrorCode.INVALID_STATE_EVENT,
            UIComponentType.NONE,
        ),
        state_event=state_event,
    )
