"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.
Includes mock mode with in-memory storage for local development.

Most code never touches this module directly - it goes through
OwnerRepository, which owns the SQL.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from .repositories.owners import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(key_path: str) -> bytes:
    """
    Load private key from file for key-pair authentication.

    Snowflake expects the key as DER-encoded PKCS8 bytes, not a path.
    """
    from cryptography.hazmat.primitives import serialization

    with open(key_path, "rb") as key_file:
        private_key = serialization.load_pem_private_key(
            key_file.read(),
            password=None,
        )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If private_key_path is set, uses key-pair auth
    - Otherwise, uses password auth

    Usage:
        with get_snowflake_connection(config) as conn:
            repository = OwnerRepository(conn)
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    connect_params = {
        "account": config.account,
        "user": config.user,
        "database": config.database,
        "schema": config.schema,
        "warehouse": config.warehouse,
        "role": config.role,
    }

    if config.private_key_path:
        logger.info("Using key-pair authentication for Snowflake")
        connect_params["private_key"] = _load_private_key(config.private_key_path)
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        connect_params["password"] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password or private_key_path must be provided"
        )

    try:
        conn = snowflake.connector.connect(**connect_params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e

    logger.debug(
        "Established Snowflake connection",
        extra={
            "account": config.account,
            "database": config.database,
            "schema": config.schema,
        }
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support
    OwnerRepository without a real database: the MERGE and SELECT
    statements it issues are recognised by pattern matching.
    """

    def __init__(self, storage: dict) -> None:
        self._storage = storage
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> "MockSnowflakeCursor":
        logger.debug(
            "Mock cursor execute",
            extra={"query": query[:100], "params": params}
        )

        query_upper = " ".join(query.upper().split())
        self._results = []
        self._rowcount = 0

        if query_upper.startswith("CREATE TABLE"):
            return self

        if query_upper.startswith("MERGE INTO OWNER_FIELDS"):
            owner_id, field_name, items_json = str(params[0]), params[1], params[2]
            self._storage["owner_fields"][(owner_id, field_name)] = items_json
            self._rowcount = 1

        elif query_upper.startswith("MERGE INTO OWNERS"):
            owner_id = str(params[0])
            if owner_id not in self._storage["owners"]:
                self._storage["owners"][owner_id] = {"created_at": params[2]}
                self._rowcount = 1

        elif query_upper.startswith("SELECT") and "FROM OWNER_FIELDS" in query_upper:
            key = (str(params[0]), params[1])
            if key in self._storage["owner_fields"]:
                self._results = [(self._storage["owner_fields"][key],)]

        elif query_upper.startswith("SELECT") and "FROM OWNERS" in query_upper:
            owner_id = str(params[0])
            if owner_id in self._storage["owners"]:
                self._results = [(owner_id,)]

        return self

    def fetchone(self):
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        return self._results

    def close(self) -> None:
        pass

    @property
    def rowcount(self) -> int:
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores owners and field values in memory. Not suitable for
    production, but perfect for local development, unit tests and CI.
    """

    def __init__(self) -> None:
        # {"owners": {owner_id: row}, "owner_fields": {(owner_id, field): items_json}}
        self._storage: dict[str, dict] = {
            "owners": {},
            "owner_fields": {},
        }
        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        return MockSnowflakeCursor(self._storage)

    def commit(self) -> None:
        logger.debug("Mock connection commit")

    def rollback(self) -> None:
        logger.debug("Mock connection rollback")

    def close(self) -> None:
        logger.debug("Mock connection close")

    # Helper methods for testing
    def _get_field(self, owner_id: str, field_name: str) -> Optional[str]:
        """Raw stored items JSON (for test assertions)."""
        return self._storage["owner_fields"].get((str(owner_id), field_name))

    def _clear(self) -> None:
        for table in self._storage.values():
            table.clear()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Create Snowflake connection based on configuration.

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_mode: If True, return mock connection for testing

    Yields:
        SnowflakeConnection implementation (real or mock)
    """
    if mock_mode:
        conn = MockSnowflakeConnection()
        try:
            yield conn
        finally:
            conn.close()
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn
