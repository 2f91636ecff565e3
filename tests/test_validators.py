import pytest

from book import Book, BookDraft
from utils.validators import BookForm, ValidationError, validate_draft


def test_short_fields_yield_three_errors():
    errors = validate_draft(BookDraft(title="ab", body="short", owner_id=0))
    assert errors == {
        "title": "Title must be at least 3 characters long",
        "body": "Description must be at least 10 characters long",
        "owner_id": "User ID must be a positive number",
    }


def test_valid_draft_yields_no_errors():
    draft = BookDraft(title="Valid Title", body="A sufficiently long description.", owner_id=1)
    assert validate_draft(draft) == {}


@pytest.mark.parametrize("title", ["", "   ", "\n\t"])
def test_blank_title_is_required(title):
    errors = validate_draft(BookDraft(title=title, body="0123456789", owner_id=1))
    assert errors == {"title": "Title is required"}


def test_blank_body_is_required():
    errors = validate_draft(BookDraft(title="Title", body="    ", owner_id=1))
    assert errors == {"body": "Description is required"}


def test_lengths_are_checked_after_trimming():
    errors = validate_draft(BookDraft(title="  ab  ", body="  012345678  ", owner_id=1))
    assert set(errors) == {"title", "body"}
    assert validate_draft(BookDraft(title=" abc ", body=" 0123456789 ", owner_id=1)) == {}


def test_form_starts_with_defaults():
    form = BookForm()
    assert form.values == {"title": "", "body": "", "owner_id": 1}
    assert form.is_edit is False


def test_form_prefills_from_edited_book():
    book = Book(id=4, title="Dune", body="Spice and sandworms", owner_id=3)
    form = BookForm(editing=book)
    assert form.is_edit is True
    assert form.draft() == book.to_draft()


def test_submit_blocks_invalid_draft_and_keeps_errors():
    form = BookForm()
    form.set_field("title", "ab")

    with pytest.raises(ValidationError) as excinfo:
        form.submit()

    assert set(excinfo.value.errors) == {"title", "body"}
    assert form.errors == excinfo.value.errors


def test_editing_a_field_clears_only_its_error():
    form = BookForm()
    with pytest.raises(ValidationError):
        form.submit()

    form.set_field("title", "x")

    assert "title" not in form.errors
    assert "body" in form.errors


def test_submit_returns_trimmed_draft():
    form = BookForm()
    form.set_field("title", "  Title  ")
    form.set_field("body", " A long enough body ")
    form.set_field("owner_id", "5")

    assert form.submit() == BookDraft(title="Title", body="A long enough body", owner_id=5)
    assert form.errors == {}


def test_unparsable_owner_id_falls_back_to_one():
    form = BookForm()
    form.set_field("owner_id", "abc")
    assert form.values["owner_id"] == 1


def test_unknown_field_is_rejected():
    with pytest.raises(KeyError):
        BookForm().set_field("isbn", "123")


def test_text_fields_are_coerced_to_strings():
    form = BookForm()
    form.set_field("title", None)
    form.set_field("body", 1234567890)
    assert form.values["title"] == ""
    assert form.values["body"] == "1234567890"
