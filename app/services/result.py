import functools
import logging
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from app.utils.exceptions import AppException, InternalErrorException

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Outcome of a service operation: either a value or an AppException."""
    value: T | None = None
    error: AppException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_code(self) -> str | None:
        return self.error.error_code if self.error is not None else None

    @classmethod
    def success(cls, value: T | None = None) -> "ServiceResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AppException) -> "ServiceResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, or raise the carried error (for HTTP handlers)."""
        if self.error is not None:
            raise self.error
        return self.value


def service_operation(func: Callable[..., T]) -> Callable[..., ServiceResult[T]]:
    """
    Wrap a service method so it returns a ServiceResult.

    AppException subclasses become failures as-is. Anything else is logged
    with its traceback and reported as an opaque InternalErrorException.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> ServiceResult[T]:
        try:
            return ServiceResult.success(func(*args, **kwargs))
        except AppException as exc:
            return ServiceResult.failure(exc)
        except Exception:
            logger.exception(f"Unhandled error in {func.__qualname__}")
            return ServiceResult.failure(InternalErrorException())
    return wrapper
