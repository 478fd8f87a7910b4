"""
Snowflake repository for owner records and their file field values.

The host CMS owns the records; this repository only keeps what the file
fields need: whether an owner exists, and the persisted items of each of
its remote file fields. Items are stored as a VARIANT holding the list
the metadata codec produces.

The application code never writes SQL directly - it asks the repository
for what it needs in domain terms.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    database: str = "S3FIELD"
    schema: str = "CONTENT"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class OwnerRepository:
    """
    Repository for owner records and file field values.

    Implements the OwnerRecordStore protocol used by RemoteFileField:
    - owner_exists: Is there an owner record with this ID?
    - load_field: Persisted items of one field (None if no owner)
    - save_field: Replace the persisted items of one field
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def create_tables(self) -> None:
        """Create the tables this repository uses, if missing."""
        cursor = self._conn.cursor()
        try:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS owners (
                    owner_id VARCHAR NOT NULL PRIMARY KEY,
                    created_at TIMESTAMP_TZ NOT NULL
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS owner_fields (
                    owner_id VARCHAR NOT NULL,
                    field_name VARCHAR NOT NULL,
                    items VARIANT,
                    updated_at TIMESTAMP_TZ NOT NULL,
                    PRIMARY KEY (owner_id, field_name)
                )
            """)
            self._conn.commit()
        finally:
            cursor.close()

    def create_owner(self, owner_id: str) -> None:
        """Register an owner record. Idempotent."""
        cursor = self._conn.cursor()
        try:
            cursor.execute("""
                MERGE INTO owners AS target
                USING (SELECT %s AS owner_id) AS source
                ON target.owner_id = source.owner_id
                WHEN NOT MATCHED THEN INSERT (owner_id, created_at)
                VALUES (%s, %s)
            """, (
                str(owner_id),
                str(owner_id), datetime.now(timezone.utc),
            ))
            self._conn.commit()
        except Exception as e:
            logger.error(
                "Failed to create owner",
                extra={"owner_id": str(owner_id), "error": str(e)}
            )
            raise
        finally:
            cursor.close()

    def owner_exists(self, owner_id: str) -> bool:
        cursor = self._conn.cursor()
        try:
            cursor.execute("""
                SELECT owner_id FROM owners WHERE owner_id = %s
            """, (str(owner_id),))
            return cursor.fetchone() is not None
        finally:
            cursor.close()

    def load_field(self, owner_id: str, field_name: str) -> Optional[list[dict[str, Any]]]:
        """
        Load the persisted items of a field.

        Returns None when the owner does not exist, and an empty list when
        the owner exists but the field was never saved.
        """
        if not self.owner_exists(owner_id):
            return None

        cursor = self._conn.cursor()
        try:
            cursor.execute("""
                SELECT items
                FROM owner_fields
                WHERE owner_id = %s AND field_name = %s
            """, (str(owner_id), field_name))

            row = cursor.fetchone()
            if not row or row[0] is None:
                return []
            return self._parse_items(row[0])
        finally:
            cursor.close()

    def save_field(self, owner_id: str, field_name: str, items: list[dict[str, Any]]) -> None:
        """Replace the persisted items of a field."""
        items_json = json.dumps(items)
        updated_at = datetime.now(timezone.utc)

        cursor = self._conn.cursor()
        try:
            cursor.execute("""
                MERGE INTO owner_fields AS target
                USING (SELECT %s AS owner_id, %s AS field_name) AS source
                ON target.owner_id = source.owner_id
                    AND target.field_name = source.field_name
                WHEN MATCHED THEN UPDATE SET
                    items = PARSE_JSON(%s),
                    updated_at = %s
                WHEN NOT MATCHED THEN INSERT (
                    owner_id, field_name, items, updated_at
                ) VALUES (%s, %s, PARSE_JSON(%s), %s)
            """, (
                str(owner_id), field_name,
                items_json, updated_at,
                str(owner_id), field_name, items_json, updated_at,
            ))
            self._conn.commit()
        except Exception as e:
            logger.error(
                "Failed to save field",
                extra={"owner_id": str(owner_id), "field": field_name, "error": str(e)}
            )
            raise
        finally:
            cursor.close()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _parse_items(self, value) -> list[dict[str, Any]]:
        """VARIANT columns come back as JSON text."""
        if isinstance(value, str):
            value = json.loads(value)
        if isinstance(value, dict):
            return [value]
        return list(value)
