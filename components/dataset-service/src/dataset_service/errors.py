"""Dataset error taxonomy and guarded load/validate helpers."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Literal, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Language = Literal["en", "cs"]

DEFAULT_LOAD_TIMEOUT_SECONDS = 30.0


class DatasetErrorCode(str, Enum):
    """Machine-readable dataset error codes."""

    LOAD_FAILED = "LOAD_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    PARSE_FAILED = "PARSE_FAILED"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    INVALID_FORMAT = "INVALID_FORMAT"
    DATABASE_ERROR = "DATABASE_ERROR"
    OVERRIDE_NOT_FOUND = "OVERRIDE_NOT_FOUND"
    UNKNOWN = "UNKNOWN"


DEFAULT_STATUS_CODES: dict[DatasetErrorCode, int] = {
    DatasetErrorCode.LOAD_FAILED: 500,
    DatasetErrorCode.VALIDATION_FAILED: 422,
    DatasetErrorCode.PARSE_FAILED: 400,
    DatasetErrorCode.FILE_NOT_FOUND: 500,
    DatasetErrorCode.INVALID_FORMAT: 400,
    DatasetErrorCode.DATABASE_ERROR: 500,
    DatasetErrorCode.OVERRIDE_NOT_FOUND: 404,
    DatasetErrorCode.UNKNOWN: 500,
}

# Codes whose details stay server-side; users only see the localized message.
INTERNAL_CODES = frozenset(
    {
        DatasetErrorCode.LOAD_FAILED,
        DatasetErrorCode.FILE_NOT_FOUND,
        DatasetErrorCode.DATABASE_ERROR,
        DatasetErrorCode.UNKNOWN,
    }
)

_MESSAGES: dict[DatasetErrorCode, dict[str, str]] = {
    DatasetErrorCode.LOAD_FAILED: {
        "en": "Failed to load dataset. Please try again later.",
        "cs": "Nepodařilo se načíst datovou sadu. Zkuste to prosím později.",
    },
    DatasetErrorCode.VALIDATION_FAILED: {
        "en": "Dataset validation failed. The data format may be invalid.",
        "cs": "Ověření datové sady se nezdařilo. Formát dat může být neplatný.",
    },
    DatasetErrorCode.PARSE_FAILED: {
        "en": "Failed to parse the dataset. Please check the file format.",
        "cs": "Nepodařilo se analyzovat datovou sadu. Prosím zkontrolujte formát souboru.",
    },
    DatasetErrorCode.FILE_NOT_FOUND: {
        "en": "The dataset file was not found.",
        "cs": "Soubor datové sady nebyl nalezen.",
    },
    DatasetErrorCode.INVALID_FORMAT: {
        "en": "The dataset has an invalid format.",
        "cs": "Datová sada má neplatný formát.",
    },
    DatasetErrorCode.DATABASE_ERROR: {
        "en": "A database error occurred. Please try again later.",
        "cs": "Došlo k chybě databáze. Zkuste to prosím později.",
    },
    DatasetErrorCode.OVERRIDE_NOT_FOUND: {
        "en": "The dataset override was not found.",
        "cs": "Přepis datové sady nebyl nalezen.",
    },
}

_FALLBACK_MESSAGES = {
    "en": "An unexpected error occurred while loading the dataset.",
    "cs": "Při načítání datové sady došlo k neočekávané chybě.",
}


class DatasetError(Exception):
    """Base exception for dataset loading, validation and override errors."""

    def __init__(
        self,
        message: str,
        code: DatasetErrorCode = DatasetErrorCode.UNKNOWN,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize dataset error.

        Args:
            message: Internal error message (not shown to end users).
            code: Machine-readable error code.
            status_code: HTTP-style status; defaults per code.
            context: Free-form details (file names, issue lists, causes).
        """
        self.message = message
        self.code = code
        self.status_code = (
            status_code if status_code is not None else DEFAULT_STATUS_CODES[code]
        )
        self.context = context or {}
        super().__init__(self.message)

    @property
    def is_internal(self) -> bool:
        """Whether details must be hidden from end users."""
        return self.code in INTERNAL_CODES


def error_message(error: DatasetError, language: Language = "en") -> str:
    """Return the localized user-facing message for an error."""
    messages = _MESSAGES.get(error.code)
    if messages is None:
        return _FALLBACK_MESSAGES[language]
    return messages[language]


@dataclass
class SafeResult(Generic[T]):
    """Outcome of a guarded load or validation."""

    data: T | None
    error: DatasetError | None


async def load_dataset_safely(
    loader: Callable[[], T],
    *,
    timeout: float = DEFAULT_LOAD_TIMEOUT_SECONDS,
    fallback_data: T | None = None,
    throw_on_error: bool = False,
) -> SafeResult[T]:
    """Run a blocking loader in a worker thread, bounded by a timeout.

    Args:
        loader: Blocking callable producing the dataset.
        timeout: Seconds before the load is abandoned.
        fallback_data: Data returned alongside the error on failure.
        throw_on_error: Raise a LOAD_FAILED DatasetError instead of returning.

    Returns:
        SafeResult with data or error populated.
    """
    started = time.perf_counter()
    try:
        data = await asyncio.wait_for(asyncio.to_thread(loader), timeout=timeout)
    except Exception as exc:
        elapsed_ms = (time.perf_counter() - started) * 1000
        timed_out = isinstance(exc, asyncio.TimeoutError)
        reason = "Dataset load timeout" if timed_out else str(exc)
        logger.error("Dataset load failed after %.1fms: %s", elapsed_ms, reason)
        error = DatasetError(
            f"Failed to load dataset: {reason}",
            DatasetErrorCode.LOAD_FAILED,
            context={"elapsed_ms": elapsed_ms},
        )
        if throw_on_error:
            raise error from exc
        return SafeResult(data=fallback_data, error=error)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("Dataset loaded in %.1fms", elapsed_ms)
    return SafeResult(data=data, error=None)


async def validate_dataset_safely(
    data: T,
    validator: Callable[[T], Awaitable[T]],
    *,
    fallback_data: T | None = None,
    throw_on_error: bool = False,
) -> SafeResult[T]:
    """Run an async validator, converting failures into VALIDATION_FAILED.

    Args:
        data: Value to validate.
        validator: Coroutine function returning the validated value.
        fallback_data: Data returned alongside the error on failure.
        throw_on_error: Raise the DatasetError instead of returning.
    """
    started = time.perf_counter()
    try:
        validated = await validator(data)
    except Exception as exc:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.error("Dataset validation failed after %.1fms: %s", elapsed_ms, exc)
        error = DatasetError(
            f"Failed to validate dataset: {exc}",
            DatasetErrorCode.VALIDATION_FAILED,
        )
        if throw_on_error:
            raise error from exc
        return SafeResult(data=fallback_data, error=error)
    logger.info(
        "Dataset validated in %.1fms", (time.perf_counter() - started) * 1000
    )
    return SafeResult(data=validated, error=None)
