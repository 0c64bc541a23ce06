from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import orjson

from app.core.logger import LogIcon, logger
from app.models.taganno import Statement, TagAnnoRecord

SCHEMA = """
CREATE TABLE IF NOT EXISTS PaperTagAnno (
  tag TEXT NOT NULL,
  annoId INTEGER NOT NULL,
  tagIndex REAL NOT NULL DEFAULT 0,
  heading TEXT,
  annoFormat INTEGER,
  infoJson TEXT,
  PRIMARY KEY (tag, annoId)
)
"""


def _decode_info(raw: str | None) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        value = orjson.loads(raw)
    except orjson.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


class TagAnnoRepository:
    """Tag annotations stored in SQLite, one row per (tag, annoId)."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_database()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_database(self) -> None:
        with self._connect() as conn:
            conn.execute(SCHEMA)
        conn.close()

    def next_anno_id(self, tag: str) -> int:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT MAX(COALESCE(MAX(annoId), 0), 0) + 1 FROM PaperTagAnno WHERE tag = ?",
                (tag,),
            ).fetchone()
        finally:
            conn.close()
        return int(row[0])

    def order_anno_list(self, tag: str) -> list[TagAnnoRecord]:
        """Annotations of `tag` ordered by tag value, then id."""
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT annoId, tagIndex, heading, annoFormat, infoJson FROM PaperTagAnno "
                "WHERE tag = ? ORDER BY tagIndex, annoId",
                (tag,),
            ).fetchall()
        finally:
            conn.close()
        return [TagAnnoRecord.from_row(dict(row), _decode_info(row["infoJson"])) for row in rows]

    def add(
        self,
        tag: str,
        anno_id: int,
        tag_index: float = 0.0,
        heading: str | None = None,
        info: dict[str, Any] | None = None,
    ) -> None:
        self.execute_batch([
            Statement(
                "INSERT INTO PaperTagAnno (tag, annoId, tagIndex, heading, infoJson) VALUES (?, ?, ?, ?, ?)",
                (tag, anno_id, tag_index, heading, orjson.dumps(info).decode() if info else None),
            )
        ])

    def execute_batch(self, statements: Sequence[Statement]) -> None:
        """Run statements in order inside one transaction.

        Any failure rolls back the whole batch and is re-raised.
        """
        if not statements:
            return
        conn = self._connect()
        try:
            with conn:
                for statement in statements:
                    conn.execute(statement.sql, statement.params)
        except sqlite3.Error as ex:
            logger.error("Annotation batch rolled back", icon=LogIcon.DATABASE, error=str(ex))
            raise
        finally:
            conn.close()
        logger.info("Annotation batch applied", icon=LogIcon.DATABASE, statements=len(statements))
