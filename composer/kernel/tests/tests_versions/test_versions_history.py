"""
Versions — history assembly and document lifecycle
"""

import pytest
from pydantic import ValidationError

from composer.kernel.versions import (
    DocumentRecord,
    DocumentVersion,
    build_version_history,
    can_transition,
    is_locked,
    next_version_number,
)


def _version(number, title="Proposal", created_at="2026-10-01T00:00:00Z"):
    return DocumentVersion(version_number=number, title=title, created_at=created_at, id=f"v{number}")


@pytest.fixture
def document():
    return DocumentRecord.model_validate(
        {
            "id": "doc_1",
            "title": "Proposal v3",
            "content": [{"id": "a", "type": "text", "content": "Hi"}],
            "currentVersion": 3,
        }
    )


# ============================================================================
# History
# ============================================================================


class TestBuildVersionHistory:
    def test_current_first(self, document):
        history = build_version_history(document, [_version(1), _version(2)])
        assert [v.id for v in history] == ["current", "v2", "v1"]

    def test_current_synthesized_from_document(self, document):
        current = build_version_history(document, [])[0]
        assert current.change_type == "current"
        assert current.change_description == "Current version"
        assert current.version_number == 3
        assert current.title == "Proposal v3"
        assert current.content == document.content

    def test_unsorted_input(self, document):
        history = build_version_history(document, [_version(2), _version(1), _version(5)])
        assert [v.version_number for v in history] == [5, 3, 2, 1]

    def test_current_ahead_of_equal_stored_number(self, document):
        history = build_version_history(document, [_version(3)])
        assert [v.id for v in history] == ["current", "v3"]

    def test_records_are_frozen(self):
        version = _version(1)
        with pytest.raises(ValidationError):
            version.title = "changed"

    def test_camel_case_input(self):
        version = DocumentVersion.model_validate(
            {"versionNumber": 2, "title": "T", "createdAt": "2026-10-18T00:00:00Z", "changeType": "sent"}
        )
        assert version.version_number == 2
        assert version.change_type == "sent"

    def test_version_number_must_be_positive(self):
        with pytest.raises(ValidationError):
            DocumentVersion(version_number=0, title="T", created_at="2026-10-18T00:00:00Z")


class TestNextVersionNumber:
    def test_first(self):
        assert next_version_number([]) == 1

    def test_after_highest(self):
        assert next_version_number([_version(1), _version(4), _version(2)]) == 5


# ============================================================================
# Lifecycle
# ============================================================================


class TestLifecycle:
    @pytest.mark.parametrize(
        "current, target",
        [
            ("draft", "sent"),
            ("sent", "viewed"),
            ("viewed", "signed"),
            ("viewed", "declined"),
            ("signed", "completed"),
            ("sent", "expired"),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [("draft", "signed"), ("completed", "draft"), ("declined", "signed"), ("unknown", "sent")],
    )
    def test_refused(self, current, target):
        assert not can_transition(current, target)

    def test_unlocked(self, document):
        assert not is_locked(document)

    def test_locked_once_signed(self):
        document = DocumentRecord(id="d", title="T", status="signed", locked_at="2026-10-18T12:00:00Z")
        assert is_locked(document)
