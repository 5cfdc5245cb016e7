"""Tests for the vault document codec."""

import re
from datetime import date, datetime, timedelta, timezone

import pytest

from palimpsest.models import Conversation, Message
from palimpsest.vault.codec import (
    DocumentFormatError,
    decode_header,
    document_filename,
    encode_document,
    encode_header,
    format_date,
    replace_header,
    slugify,
    split_document,
)


@pytest.fixture
def conversation() -> Conversation:
    """A small two-message conversation."""
    return Conversation(
        id="conv-123",
        title="Debugging a git rebase",
        source="chatgpt",
        date=datetime(2025, 3, 15, 10, 30, tzinfo=timezone.utc),
        messages=[
            Message("user", "My rebase failed with a conflict"),
            Message("assistant", "Run `git status` first."),
        ],
        model="gpt-4o",
        tags=["chatgpt", "2025", "Q1", "git", "2025"],
    )


class TestFormatDate:
    """Tests for format_date."""

    def test_plain_date(self) -> None:
        assert format_date(date(2024, 1, 2)) == "2024-01-02"

    def test_aware_datetime_uses_utc_day(self) -> None:
        """A late-evening time west of UTC falls on the next UTC day."""
        value = datetime(2024, 12, 31, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert format_date(value) == "2025-01-01"


class TestSlugify:
    """Tests for slugify."""

    def test_collapses_non_alphanumerics(self) -> None:
        assert slugify("Hello, World! C++ & Rust") == "hello-world-c-rust"

    def test_caps_length(self) -> None:
        slug = slugify("word " * 30)
        assert len(slug) <= 50
        assert not slug.endswith("-")

    def test_empty_falls_back(self) -> None:
        assert slugify("???") == "untitled"


class TestDocumentFilename:
    """Tests for document_filename."""

    def test_pattern(self, conversation: Conversation) -> None:
        """Filenames are date, source, id hash and slug."""
        name = document_filename(conversation)
        assert re.fullmatch(r"2025-03-15_chatgpt_[0-9a-f]{8}_debugging-a-git-rebase\.md", name)

    def test_deterministic_and_id_sensitive(self, conversation: Conversation) -> None:
        """Same conversation, same name; a different id changes the hash."""
        first = document_filename(conversation)
        assert document_filename(conversation) == first

        conversation.id = "conv-124"
        assert document_filename(conversation) != first


class TestEncodeDocument:
    """Tests for encode_document."""

    def test_layout(self, conversation: Conversation) -> None:
        """Header, title, role sections and an empty Related section."""
        text = encode_document(conversation)

        assert text == (
            "---\n"
            "source: chatgpt\n"
            "date: '2025-03-15'\n"
            "model: gpt-4o\n"
            "tags: ['2025', Q1, chatgpt, git]\n"
            "id: conv-123\n"
            "---\n"
            "# Debugging a git rebase\n"
            "\n"
            "## User\n"
            "\n"
            "My rebase failed with a conflict\n"
            "\n"
            "## Assistant\n"
            "\n"
            "Run `git status` first.\n"
            "\n"
            "## Related\n"
        )

    def test_omits_missing_model_and_tags(self, conversation: Conversation) -> None:
        """No model and no tags means no such header lines."""
        conversation.model = None
        conversation.tags = None

        fields, _ = split_document(encode_document(conversation))

        assert "model" not in fields
        assert "tags" not in fields

    def test_title_is_single_line(self, conversation: Conversation) -> None:
        """Line breaks in the title are collapsed."""
        conversation.title = "first line\nsecond line"
        assert "# first line second line\n" in encode_document(conversation)


class TestHeaderRoundTrip:
    """Tests for header encoding and decoding."""

    @pytest.mark.parametrize(
        "value",
        [
            "plain-id",
            "12345",
            "true",
            "null",
            "2025-01-01",
            "has: colon",
            "quote's \"both\"",
            "[bracketed], {braced}",
            "# not a comment",
            "line one\nline two",
            "tab\there",
            "ünïcödé ✓",
            "---",
            " leading space",
        ],
    )
    def test_id_survives_round_trip(self, conversation: Conversation, value: str) -> None:
        """Any id string loads back exactly as written."""
        conversation.id = value
        header = decode_header(encode_document(conversation))
        assert header.id == value

    @pytest.mark.parametrize("value", ["gpt-4o: mini", "3.5", "a\nb", "null", "[o3]", "claude # 3"])
    def test_model_survives_round_trip(self, conversation: Conversation, value: str) -> None:
        """Model names with header-significant characters load back as strings."""
        conversation.model = value
        header = decode_header(encode_document(conversation))
        assert header.model == value

    @pytest.mark.parametrize(
        "tags",
        [
            ["2025", "Q1", "chatgpt"],
            ["z", "a", "z", "m"],
            ["has: colon", "3.5", "true"],
        ],
    )
    def test_tags_decode_to_sorted_set(self, conversation: Conversation, tags: list[str]) -> None:
        conversation.tags = tags
        header = decode_header(encode_document(conversation))
        assert header.tags == sorted(set(tags))

    def test_header_lines_stay_single_line(self, conversation: Conversation) -> None:
        """Line breaks in values are escaped, not emitted."""
        conversation.id = "a\nb\nc"
        header_block = encode_document(conversation).split("---\n")[1]
        assert len(header_block.splitlines()) == 5

    def test_decodes_owned_fields(self, conversation: Conversation) -> None:
        """Decoded fields match the conversation."""
        header = decode_header(encode_document(conversation))

        assert header.source == "chatgpt"
        assert header.date == date(2025, 3, 15)
        assert header.model == "gpt-4o"
        assert header.tags == ["2025", "Q1", "chatgpt", "git"]
        assert header.title == "Debugging a git rebase"

    def test_encode_header_orders_owned_keys_first(self) -> None:
        """Owned keys come first, then unknown keys in their given order."""
        header = encode_header({"aliases": ["x"], "id": "i", "source": "codex", "zeta": 1})
        keys = [line.split(":")[0] for line in header.splitlines()[1:-1]]
        assert keys == ["source", "id", "aliases", "zeta"]


class TestReplaceHeader:
    """Tests for split_document and replace_header."""

    def test_preserves_body_and_unknown_keys(self, conversation: Conversation) -> None:
        """A rewritten header keeps the body and user-added keys."""
        text = encode_document(conversation)
        fields, body = split_document(text)
        fields["aliases"] = ["Rebase notes"]
        text = replace_header(text, fields)

        fields["tags"] = fields["tags"] + ["python"]
        updated = replace_header(text, fields)

        new_fields, new_body = split_document(updated)
        assert new_body == body
        assert new_fields["aliases"] == ["Rebase notes"]
        assert "python" in new_fields["tags"]

    def test_missing_header_raises(self) -> None:
        """A document without front matter is rejected."""
        with pytest.raises(DocumentFormatError):
            split_document("# Just a note\n")

    def test_non_mapping_header_raises(self) -> None:
        """A header that is not a mapping is rejected."""
        with pytest.raises(DocumentFormatError):
            split_document("---\n- a\n- b\n---\nbody\n")

    def test_missing_id_raises(self) -> None:
        """decode_header requires an id."""
        with pytest.raises(DocumentFormatError):
            decode_header("---\nsource: chatgpt\n---\n# Title\n")

    def test_unquoted_date_is_accepted(self) -> None:
        """Hand-edited unquoted dates load as dates."""
        header = decode_header("---\nid: x\nsource: codex\ndate: 2024-06-01\n---\n# T\n")
        assert header.date == date(2024, 6, 1)
