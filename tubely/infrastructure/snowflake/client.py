"""
Snowflake connections for the VIDEOS table.

One connection is opened per request (or per script run) and closed
afterwards. An in-memory stand-in covers local development and tests,
understanding exactly the statements VideoRepository issues.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Optional, Protocol

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


class SnowflakeConnection(Protocol):
    """The DB-API surface VideoRepository relies on."""

    def cursor(self): ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    database: str = "TUBELY"
    schema: str = "PUBLIC"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


def _load_private_key(key_path: str) -> bytes:
    """Read an unencrypted PEM key and return it as PKCS8 DER bytes."""
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
    Open a connection and close it when the block exits.

    Key-pair auth wins when a key path is configured; a password is the
    fallback. Having neither is a configuration error.
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
        "client_session_keep_alive": True,
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
    VideoRepository operations without a real database. Queries are
    dispatched by verb and matched on their WHERE column; parameters
    arrive in the column order VideoRepository uses.
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
        if query_upper.startswith("INSERT INTO VIDEOS"):
            self._handle_insert(params)
        elif query_upper.startswith("UPDATE VIDEOS"):
            self._handle_update(params)
        elif query_upper.startswith("SELECT") and "FROM VIDEOS" in query_upper:
            self._handle_select(query_upper, params)

        return self

    def _handle_insert(self, params: Optional[tuple]) -> None:
        if not params:
            return
        video_id = str(params[0])
        self._storage["videos"][video_id] = tuple(params)
        self._rowcount = 1

    def _handle_update(self, params: Optional[tuple]) -> None:
        # SET title, description, updated_at, thumbnail_url, video_url WHERE video_id
        if not params:
            return
        title, description, updated_at, thumbnail_url, video_url, video_id = params
        row = self._storage["videos"].get(str(video_id))
        if row is None:
            return
        self._storage["videos"][str(video_id)] = (
            row[0], row[1], title, description, row[4], updated_at, thumbnail_url, video_url,
        )
        self._rowcount = 1

    def _handle_select(self, query: str, params: Optional[tuple]) -> None:
        rows = list(self._storage["videos"].values())

        if "WHERE VIDEO_ID" in query and params:
            row = self._storage["videos"].get(str(params[0]))
            self._results = [row] if row else []
        elif "WHERE USER_ID" in query and params:
            matching = [r for r in rows if str(r[1]) == str(params[0])]
            self._results = sorted(matching, key=lambda r: r[4], reverse=True)
        else:
            self._results = rows

        self._rowcount = len(self._results)

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
    In-memory connection. Rows live in ``{"videos": {video_id: row}}``
    for as long as the instance does.
    """

    def __init__(self) -> None:
        self._storage: dict[str, dict[str, tuple]] = {
            "videos": {},
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


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """Yield a real connection, or a throwaway in-memory one in mock mode."""
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
