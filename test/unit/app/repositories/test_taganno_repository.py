"""Tests for the SQLite tag annotation repository."""

import sqlite3

import pytest

from app.models.taganno import Statement
from app.repositories.taganno import TagAnnoRepository


class TestTagAnnoRepository:
    """Tests for TagAnnoRepository."""

    def test_next_anno_id_starts_at_one(self, repo: TagAnnoRepository) -> None:
        """Verify an unused tag allocates id 1."""
        assert repo.next_anno_id("sched") == 1

    def test_next_anno_id_per_tag(self, repo: TagAnnoRepository) -> None:
        """Verify ids continue from the tag's highest id."""
        repo.add("sched", 5)
        repo.add("other", 9)
        assert repo.next_anno_id("sched") == 6
        assert repo.next_anno_id("other") == 10

    def test_order_by_value_then_id(self, repo: TagAnnoRepository) -> None:
        """Verify ordering uses tag value, then id."""
        repo.add("sched", 3, 2.0, "c")
        repo.add("sched", 1, 2.0, "a")
        repo.add("sched", 2, 1.0, "b")
        assert [r.annoid for r in repo.order_anno_list("sched")] == [2, 1, 3]

    def test_info_decoded(self, repo: TagAnnoRepository) -> None:
        """Verify stored info fields are returned."""
        repo.add("sched", 1, 0.0, "Talks", {"location": "Hall", "time": "9:00"})
        record = repo.order_anno_list("sched")[0]
        assert record.location == "Hall"
        assert record.time == "9:00"
        assert record.session_title is None

    def test_malformed_info_ignored(self, repo: TagAnnoRepository) -> None:
        """Verify unreadable info JSON is treated as absent."""
        repo.execute_batch([Statement("INSERT INTO PaperTagAnno (tag, annoId, infoJson) VALUES (?, ?, ?)", ("t", 1, "{oops"))])
        assert repo.order_anno_list("t")[0].as_json() == {"annoid": 1, "tagval": 0.0}

    def test_failed_batch_rolls_back(self, repo: TagAnnoRepository) -> None:
        """Verify a failing statement undoes the whole batch."""
        repo.add("sched", 1, 0.0, "Keep")
        batch = [
            Statement("UPDATE PaperTagAnno SET heading = ? WHERE tag = ? AND annoId = ?", ("Lost", "sched", 1)),
            Statement("INSERT INTO PaperTagAnno (tag, annoId) VALUES (?, ?)", ("sched", 2)),
            Statement("INSERT INTO PaperTagAnno (tag, annoId) VALUES (?, ?)", ("sched", 1)),
        ]
        with pytest.raises(sqlite3.IntegrityError):
            repo.execute_batch(batch)
        records = repo.order_anno_list("sched")
        assert [(r.annoid, r.legend) for r in records] == [(1, "Keep")]

    def test_empty_batch_is_noop(self, repo: TagAnnoRepository) -> None:
        """Verify an empty batch does nothing."""
        repo.execute_batch([])
        assert repo.order_anno_list("sched") == []

    def test_persists_across_instances(self, tmp_path) -> None:
        """Verify data survives reopening the database."""
        path = tmp_path / "nested" / "conf.sqlite3"
        TagAnnoRepository(path).add("sched", 1, 0.0, "Saved")
        assert TagAnnoRepository(path).order_anno_list("sched")[0].legend == "Saved"
