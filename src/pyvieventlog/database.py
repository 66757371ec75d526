"""
Preference storage for the ViEventLog dashboard.

A single SQLite table holds JSON values under string keys; the saved chart
field selection is the main user of it.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import create_engine, delete
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .models import Base, StoredSetting

logger = logging.getLogger("ViEventLog")


class DatabaseService:
    """Key-value access to the preferences database."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Args:
            db_path: SQLite file to use, ``settings.database_path`` when omitted.
                    Missing parent directories are created.
        """
        self.db_path = db_path or settings.database_path
        self._engine: Optional[Engine] = None
        self._session_factory = None

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    @property
    def engine(self) -> Engine:
        """Engine for ``db_path``; the schema is created on first use."""
        if self._engine is None:
            logger.debug(f"Opening preferences database {self.db_path}")
            self._engine = create_engine(f"sqlite:///{self.db_path}", echo=False)
            Base.metadata.create_all(self._engine)
        return self._engine

    def get_session(self) -> Session:
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self.engine)
        return self._session_factory()

    def save_setting(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under ``key``, replacing any old one.

        Args:
            key: Storage key.
            value: Value to store.
        """
        try:
            with self.get_session() as session:
                session.merge(
                    StoredSetting(key=key, value=json.dumps(value), updated_at=datetime.now())
                )
                session.commit()
            logger.debug(f"Saved setting {key}")
        except Exception as e:
            logger.error(f"Failed to save setting {key}: {e}")
            raise

    def load_setting(self, key: str) -> Optional[Any]:
        """Load the value stored under ``key``.

        Returns:
            The decoded value, or None if nothing is stored.
        """
        with self.get_session() as session:
            row = session.get(StoredSetting, key)
            if row is None:
                return None
            raw = row.value
        return json.loads(raw)

    def remove_setting(self, key: str) -> None:
        """Delete the value stored under ``key``, if any."""
        try:
            with self.get_session() as session:
                session.execute(delete(StoredSetting).where(StoredSetting.key == key))
                session.commit()
            logger.debug(f"Removed setting {key}")
        except Exception as e:
            logger.error(f"Failed to remove setting {key}: {e}")
            raise
