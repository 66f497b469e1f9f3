"""
Settings Store — the host's persistence for blocker settings.

Behavioral Contract:
- One JSON document per option name, replaced wholesale on save.
- load() never fails on a fresh database: missing settings mean defaults.
- Stored values are merged over defaults and re-sanitized on load, so a
  document written by an older version still yields a valid record.
"""

import json
import logging
import sqlite3
from typing import Optional

from pydantic import ValidationError

from country_blocker.models.config import BlockerSettings

logger = logging.getLogger(__name__)

OPTION_NAME = "country_blocker_options"


class SettingsStore:
    """
    SQLite-backed option table.
    """

    def __init__(self, db_path: str = ":memory:", option_name: str = OPTION_NAME):
        self.db_path = db_path
        self.option_name = option_name
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the options table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS options (
                name TEXT PRIMARY KEY,
                value_json TEXT NOT NULL,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.commit()

    def _read_raw(self) -> Optional[dict]:
        row = self._conn.execute(
            "SELECT value_json FROM options WHERE name = ?", (self.option_name,)
        ).fetchone()
        if row is None:
            return None
        try:
            value = json.loads(row["value_json"])
        except ValueError:
            logger.warning("Stored option %s is not valid JSON, using defaults", self.option_name)
            return None
        return value if isinstance(value, dict) else None

    def load(self) -> BlockerSettings:
        """Current settings, with defaults filled in for anything missing."""
        merged = BlockerSettings.default().model_dump()
        stored = self._read_raw()
        if stored:
            merged.update({k: v for k, v in stored.items() if k in merged})
        try:
            return BlockerSettings.model_validate(merged)
        except ValidationError as e:
            logger.warning(
                "Stored option %s is invalid, using defaults: %s", self.option_name, e
            )
            return BlockerSettings.default()

    def save(self, settings: BlockerSettings) -> BlockerSettings:
        """Persist a settings record, replacing whatever was stored."""
        self._conn.execute(
            """
            INSERT INTO options (name, value_json, updated_at)
            VALUES (?, ?, datetime('now'))
            ON CONFLICT(name) DO UPDATE SET
                value_json = excluded.value_json,
                updated_at = excluded.updated_at
            """,
            (self.option_name, settings.model_dump_json()),
        )
        self._conn.commit()
        logger.info(
            "Saved settings: %d blocked countries, redirect page %s",
            len(settings.blocked_countries),
            settings.redirect_page or "none",
        )
        return settings

    def reset(self) -> None:
        """Drop the stored settings; subsequent loads return defaults."""
        self._conn.execute("DELETE FROM options WHERE name = ?", (self.option_name,))
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
