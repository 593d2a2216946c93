from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    DESERIALIZATION = "deserialization"
    VALIDATION = "validation"
    STORAGE = "storage"


class JournalError(Exception):
    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.STORAGE,
    ) -> None:
        self.message = message
        self.category = category
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.message}"


class DeserializationError(JournalError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.DESERIALIZATION)


class TradeValidationError(JournalError):
    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None) -> None:
        self.errors = errors or []
        super().__init__(message, ErrorCategory.VALIDATION)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.errors:
            parts.append(f"{len(self.errors)} error(s)")
        return " | ".join(parts)


class StorageError(JournalError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.STORAGE)
