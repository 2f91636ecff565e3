from typing import Any, Dict, Optional

from book import Book, BookDraft

TITLE_MIN_LENGTH = 3
BODY_MIN_LENGTH = 10

FIELDS = ("title", "body", "owner_id")


class ValidationError(ValueError):
    """A draft failed the form rules; ``errors`` maps field name to message."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


def validate_draft(draft: BookDraft) -> Dict[str, str]:
    """Check a draft against the form rules. An empty dict means the draft is valid."""
    errors: Dict[str, str] = {}

    title = (draft.title or "").strip()
    if not title:
        errors["title"] = "Title is required"
    elif len(title) < TITLE_MIN_LENGTH:
        errors["title"] = f"Title must be at least {TITLE_MIN_LENGTH} characters long"

    body = (draft.body or "").strip()
    if not body:
        errors["body"] = "Description is required"
    elif len(body) < BODY_MIN_LENGTH:
        errors["body"] = f"Description must be at least {BODY_MIN_LENGTH} characters long"

    owner_id = draft.owner_id
    if isinstance(owner_id, bool) or not isinstance(owner_id, int) or owner_id < 1:
        errors["owner_id"] = "User ID must be a positive number"

    return errors


class BookForm:
    """State of one add/edit form.

    Editing a field clears that field's error right away; the field is not
    checked again until the next submit.
    """

    def __init__(self, editing: Optional[Book] = None) -> None:
        self.editing = editing
        if editing is not None:
            self.values: Dict[str, Any] = {"title": editing.title, "body": editing.body, "owner_id": editing.owner_id}
        else:
            self.values = {"title": "", "body": "", "owner_id": 1}
        self.errors: Dict[str, str] = {}

    @property
    def is_edit(self) -> bool:
        return self.editing is not None

    def set_field(self, name: str, value: Any) -> None:
        if name not in FIELDS:
            raise KeyError(f"Unknown form field: {name}")
        if name == "owner_id":
            value = _coerce_owner_id(value)
        else:
            value = _coerce_text(value)
        self.values[name] = value
        self.errors.pop(name, None)

    def draft(self) -> BookDraft:
        return BookDraft(title=self.values["title"], body=self.values["body"], owner_id=self.values["owner_id"])

    def submit(self) -> BookDraft:
        """Validate the current values and return the draft, or raise ValidationError."""
        draft = self.draft()
        self.errors = validate_draft(draft)
        if self.errors:
            raise ValidationError(self.errors)
        return BookDraft(title=draft.title.strip(), body=draft.body.strip(), owner_id=draft.owner_id)


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _coerce_owner_id(value: Any) -> Any:
    # Number inputs arrive as text; anything unparsable falls back to 1
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 1
