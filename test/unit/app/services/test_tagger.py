"""Tests for tag name validation."""

import pytest

from app.core.context import Conf, Contact
from app.services.tagger import MAX_TAG_LENGTH, Tagger, TagFlags


class TestTagger:
    """Tests for Tagger.check."""

    @pytest.mark.parametrize("tag", ["sched", "track:ml", "a.b", "~~shared", "@chair", "x-1+y"])
    def test_valid_tags_pass(self, chair: Contact, tag: str) -> None:
        """Verify well-formed tags come back unchanged."""
        assert Tagger(chair).check(tag) == tag

    def test_surrounding_space_trimmed(self, chair: Contact) -> None:
        """Verify tags are trimmed before checking."""
        assert Tagger(chair).check("  sched ") == "sched"

    @pytest.mark.parametrize(
        ("tag", "message"),
        [
            (None, "Tag required"),
            ("", "Tag required"),
            ("bad tag", "Invalid tag ‘bad tag’"),
            ("9lives", "Invalid tag ‘9lives’"),
            ("x" * (MAX_TAG_LENGTH + 1), "Tag too long"),
        ],
    )
    def test_rejections(self, chair: Contact, tag: str | None, message: str) -> None:
        """Verify rejected tags record a readable error."""
        tagger = Tagger(chair)
        assert tagger.check(tag) is None
        assert tagger.error_ftext() == message

    def test_value_stripped_or_refused(self, chair: Contact) -> None:
        """Verify tag values are dropped, unless values are refused."""
        tagger = Tagger(chair)
        assert tagger.check("sched#4") == "sched"
        assert tagger.check("sched#4", TagFlags.NOVALUE) is None
        assert tagger.error_ftext() == "Tag value not allowed here"

    def test_private_tag_qualified(self, author: Contact) -> None:
        """Verify private tags gain the owner's id."""
        assert Tagger(author).check("~mine") == "7~mine"

    def test_private_tag_flags(self, author: Contact) -> None:
        """Verify private tags can be refused."""
        tagger = Tagger(author)
        assert tagger.check("~mine", TagFlags.NOPRIVATE) is None
        assert tagger.error_ftext() == "Private tags not allowed here"

    def test_private_tag_needs_sign_in(self, conf: Conf) -> None:
        """Verify anonymous users cannot use private tags."""
        tagger = Tagger(conf.contact(None))
        assert tagger.check("~mine") is None
        assert tagger.error_ftext() == "Sign in to use private tags"

    def test_error_cleared_on_success(self, chair: Contact) -> None:
        """Verify a later successful check clears the previous error."""
        tagger = Tagger(chair)
        tagger.check("")
        tagger.check("sched")
        assert tagger.error_ftext() == "Invalid tag"


class TestTagAnnoPermission:
    """Tests for who may edit a tag's annotations."""

    def test_chair_edits_public_tags(self, chair: Contact, author: Contact) -> None:
        """Verify only chairs edit shared tags."""
        assert chair.can_edit_tag_anno("sched")
        assert not author.can_edit_tag_anno("sched")

    def test_owner_edits_private_tags(self, chair: Contact, author: Contact) -> None:
        """Verify private tags belong to their owner alone."""
        assert author.can_edit_tag_anno("7~mine")
        assert not chair.can_edit_tag_anno("7~mine")
