"""
Uniform action result envelope and the decorator that produces it
"""
from functools import wraps
from typing import Any, Generic, Optional, TypeVar
import inspect
import logging

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, PrivateAttr
from starlette.responses import Response

from salina.core.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ActionResult(BaseModel, Generic[T]):
    """``{success, data}`` on success, ``{success: false, error}`` on failure"""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    _status_code: int = PrivateAttr(default=200)

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, status_code: int = 400) -> "ActionResult":
        result = cls(success=False, error=error)
        result._status_code = status_code
        return result

    @property
    def status_code(self) -> int:
        return self._status_code

    def to_response(self) -> JSONResponse:
        content = jsonable_encoder(self, exclude_none=False)
        if self.success:
            content.pop("error", None)
        else:
            content.pop("data", None)
        return JSONResponse(status_code=self._status_code, content=content)


def report_action(failed: str):
    """
    Wrap a route handler in the result envelope.

    Authorization happens earlier, in the ``PermissionChecker`` dependency
    that resolves the handler's ``ctx``. The handler may return plain data
    (wrapped in ``ActionResult.ok``), an ``ActionResult`` (passed through,
    e.g. a not-found failure) or a starlette ``Response`` (file downloads,
    passed through untouched).

    Args:
        failed: Message returned when the handler raises unexpectedly.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                result = func(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
            except (HTTPException, UnauthorizedError):
                raise
            except Exception:
                logger.exception(f"Action {func.__name__} failed")
                return ActionResult.fail(failed, status_code=500).to_response()

            if isinstance(result, Response):
                return result
            if isinstance(result, ActionResult):
                return result.to_response()
            return ActionResult.ok(result).to_response()

        return wrapper

    return decorator
