from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


class BookDataError(ValueError):
    """Raised when a payload cannot be turned into a Book."""


def _require_int(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    # bool is an int subclass; a JSON true/false is never a valid id
    if isinstance(value, bool) or not isinstance(value, int):
        raise BookDataError(f"Field '{key}' must be an integer, got {value!r}")
    return value


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise BookDataError(f"Field '{key}' must be a string, got {value!r}")
    return value


@dataclass(frozen=True)
class BookDraft:
    """Field set of a book without an identifier, sent on create and update."""

    title: str
    body: str
    owner_id: int = 1

    def to_dict(self) -> dict:
        # The remote collection calls the owner field userId
        return {
            "title": self.title.strip(),
            "body": self.body.strip(),
            "userId": self.owner_id,
        }


@dataclass(frozen=True)
class Book:
    """A single book record as confirmed by the remote collection."""

    id: int
    title: str
    body: str
    owner_id: int

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"#{self.id} {self.title} (author {self.owner_id})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "userId": self.owner_id,
        }

    def to_draft(self) -> BookDraft:
        return BookDraft(title=self.title, body=self.body, owner_id=self.owner_id)

    @staticmethod
    def from_dict(data: Any) -> "Book":
        if not isinstance(data, dict):
            raise BookDataError(f"Expected a JSON object, got {type(data).__name__}")
        return Book(
            id=_require_int(data, "id"),
            title=_require_str(data, "title"),
            body=_require_str(data, "body"),
            owner_id=_require_int(data, "userId"),
        )
