# wordindex/infrastructure/sqlite_store.py

import logging
import sqlite3
from pathlib import Path
from typing import Any, List

from wordindex.domain.errors import StoreWriteError
from wordindex.domain.interfaces import WORD_FIELDS, WordStorePort
from wordindex.domain.models import Word


logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS words (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  text TEXT NOT NULL,
  text_lower TEXT NOT NULL,
  page INTEGER NOT NULL,
  row_no INTEGER NOT NULL,
  index_in_row INTEGER NOT NULL,
  x0 REAL NOT NULL,
  y0 REAL NOT NULL,
  x1 REAL NOT NULL,
  y1 REAL NOT NULL,
  sentence TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_words_text_lower ON words(text_lower);
CREATE INDEX IF NOT EXISTS idx_words_page ON words(page);

CREATE TABLE IF NOT EXISTS meta (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);
"""

# Word field -> column. "row" is an SQL keyword.
FIELD_COLUMNS = {
    "text": "text",
    "page": "page",
    "row": "row_no",
    "index_in_row": "index_in_row",
    "sentence": "sentence",
}

SELECT_WORDS = (
    "SELECT text, page, row_no, index_in_row, x0, y0, x1, y1, sentence FROM words"
)


def connect_db(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


def _row_to_word(row: sqlite3.Row) -> Word:
    return Word(
        text=row["text"],
        page=row["page"],
        row=row["row_no"],
        index_in_row=row["index_in_row"],
        bbox=(row["x0"], row["y0"], row["x1"], row["y1"]),
        sentence=row["sentence"],
    )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqliteWordStore(WordStorePort):
    """
    Persistent word store in a single SQLite file.

    `replace_all` runs DELETE + INSERT inside one transaction: a failure
    rolls back and the previous word set is still there.
    """

    def __init__(self, db_path: str):
        self._db_path = Path(db_path)
        if self._db_path.exists() and self._db_path.is_dir():
            raise RuntimeError(f"Failed to initialize word store: path '{db_path}' is a directory.")
        try:
            conn = connect_db(self._db_path)
            try:
                conn.executescript(SCHEMA_SQL)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as error:
            raise RuntimeError(
                f"Failed to initialize word store at '{db_path}'.\n"
                f"The database may be locked by another process or corrupted.\n"
                f"Original error: {error}"
            ) from error
        logger.info("[SqliteStore] Connected to '%s'. Table has %d words.", db_path, self.count())

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ─── WordStorePort ────────────────────────────────────────────────────────

    def replace_all(self, words: List[Word]) -> None:
        rows = [
            (
                w.text, w.text.lower(), w.page, w.row, w.index_in_row,
                w.bbox[0], w.bbox[1], w.bbox[2], w.bbox[3], w.sentence,
            )
            for w in words
        ]
        conn = connect_db(self._db_path)
        try:
            with conn:
                conn.execute("DELETE FROM words")
                conn.executemany(
                    "INSERT INTO words(text, text_lower, page, row_no, index_in_row, "
                    "x0, y0, x1, y1, sentence) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )
        except sqlite3.Error as error:
            raise StoreWriteError(f"Failed to replace words in '{self._db_path}': {error}") from error
        finally:
            conn.close()
        logger.info("[SqliteStore] Replaced word set with %d words", len(rows))

    def query_by_word_prefix(self, prefix: str) -> List[Word]:
        pattern = _escape_like(prefix.lower()) + "%"
        return self._select(f"{SELECT_WORDS} WHERE text_lower LIKE ? ESCAPE '\\' ORDER BY id", (pattern,))

    def count(self) -> int:
        conn = connect_db(self._db_path)
        try:
            return int(conn.execute("SELECT COUNT(*) FROM words").fetchone()[0])
        finally:
            conn.close()

    def list_distinct(self, field: str) -> List[Any]:
        if field not in WORD_FIELDS:
            raise ValueError(f"Unknown word field '{field}'. Expected one of {WORD_FIELDS}.")
        column = FIELD_COLUMNS[field]
        conn = connect_db(self._db_path)
        try:
            rows = conn.execute(f"SELECT DISTINCT {column} FROM words ORDER BY {column}").fetchall()
        finally:
            conn.close()
        return [r[0] for r in rows]

    def all_words(self) -> List[Word]:
        return self._select(f"{SELECT_WORDS} ORDER BY id")

    def words_for_page(self, page: int) -> List[Word]:
        return self._select(f"{SELECT_WORDS} WHERE page = ? ORDER BY id", (page,))

    def save_index_metadata(self, metadata: dict[str, str]) -> None:
        conn = connect_db(self._db_path)
        try:
            with conn:
                conn.execute("DELETE FROM meta")
                conn.executemany(
                    "INSERT INTO meta(key, value) VALUES(?, ?)",
                    [(key, str(value)) for key, value in metadata.items()],
                )
        except sqlite3.Error as error:
            raise StoreWriteError(f"Failed to save index metadata: {error}") from error
        finally:
            conn.close()

    def get_index_metadata(self) -> dict[str, str]:
        conn = connect_db(self._db_path)
        try:
            rows = conn.execute("SELECT key, value FROM meta").fetchall()
        finally:
            conn.close()
        return {row["key"]: row["value"] for row in rows}

    # ─── Private ──────────────────────────────────────────────────────────────

    def _select(self, sql: str, params: tuple = ()) -> List[Word]:
        conn = connect_db(self._db_path)
        try:
            return [_row_to_word(row) for row in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()
