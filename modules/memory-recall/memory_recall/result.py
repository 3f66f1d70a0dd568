"""Explicit success/failure result threaded through collaborator boundaries."""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """Outcome of a call that may fail.

    Callers must check ``success`` before reading ``value``. "Found nothing"
    is ``success=True`` with an empty value; "could not search" is
    ``success=False`` with the error attached.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    value: Optional[T] = None
    error: Optional[Exception] = None

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if not self.success:
            raise self.error or RuntimeError("Result failed without an error")
        return self.value


def success(value: Any = None) -> Result:
    return Result(success=True, value=value)


def failure(error: Exception) -> Result:
    return Result(success=False, error=error)
