"""
Error taxonomy and the result envelope returned across the bridge.

Handlers raise one of the InventoryError subclasses for every expected
rejection; the @operation decorator turns them into
{"success": False, "message": ...}. Anything else is logged with its
traceback and reported with the operation's generic message, so internal
detail never reaches the UI.
"""
from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from pydantic import ValidationError


class InventoryError(Exception):
    """Base for expected, user-facing failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationFailed(InventoryError):
    """Bad, missing or duplicate input."""


class Unauthorized(InventoryError):
    """Caller is not allowed to perform the operation."""


class NotFound(InventoryError):
    """Row looked up by id does not exist."""


class StateConflict(InventoryError):
    """Status already terminal, illegal transition or insufficient stock."""


def ok(message: str | None = None, **payload: Any) -> dict[str, Any]:
    result: dict[str, Any] = {"success": True}
    if message is not None:
        result["message"] = message
    result.update(payload)
    return result


def fail(message: str, **payload: Any) -> dict[str, Any]:
    return {"success": False, "message": message, **payload}


def describe_validation_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid input"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "__root__")
    msg = first.get("msg", "invalid value")
    return f"Invalid {field}: {msg}" if field else f"Invalid input: {msg}"


def operation(error_message: str) -> Callable:
    """Wrap a handler method so it always returns a result dict."""

    def decorator(func: Callable[..., dict[str, Any]]) -> Callable[..., dict[str, Any]]:
        logger = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> dict[str, Any]:
            try:
                return func(*args, **kwargs)
            except InventoryError as exc:
                logger.info("%s rejected: %s", func.__qualname__, exc.message)
                return fail(exc.message)
            except ValidationError as exc:
                message = describe_validation_error(exc)
                logger.info("%s rejected: %s", func.__qualname__, message)
                return fail(message)
            except Exception:
                logger.exception("%s failed", func.__qualname__)
                return fail(error_message)

        return wrapper

    return decorator
