"""
Persistence Layer for Event Ingestion.

Defines the two collaborators the pipeline talks to:
- EventStore: bulk insert of new events, query of existing events by window
- ChannelDirectory: the tenant's active channels and registered data sources

Each has an in-memory implementation (tests, local runs) and a PostgreSQL
implementation on psycopg2.

The PostgreSQL store is the second line of defence against duplicates from
concurrent runs: every row carries an identity hash with a unique index per
company, inserts use ON CONFLICT DO NOTHING, and each bulk insert holds a
per-company advisory lock for the duration of its transaction.
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime

import psycopg2
import psycopg2.extensions
from psycopg2.extras import RealDictCursor, execute_values

from sportscast.configs.settings import get_settings
from sportscast.ingestion.deduplication import identity_hash
from sportscast.ingestion.errors import PersistenceFailure
from sportscast.schemas.channel import Channel, DataSource
from sportscast.schemas.event import Event

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# INTERFACES
# ---------------------------------------------------------------------------


class EventStore(ABC):
    """Where canonical events live."""

    @abstractmethod
    def insert_many(self, events: list[Event]) -> list[Event]:
        """
        Insert events and return the rows actually written, with ids assigned.

        Raises:
            PersistenceFailure: If the write fails
        """
        pass

    @abstractmethod
    def query_by_tenant_and_window(self, tenant_id: str, start: datetime, end: datetime) -> list[Event]:
        """Return the tenant's events with start_time in [start, end]."""
        pass


class ChannelDirectory(ABC):
    """Read-only view of a tenant's channel configuration."""

    @abstractmethod
    def list_active_channels(self, tenant_id: str) -> list[Channel]:
        """Active channels of the tenant, in display order."""
        pass

    def list_data_sources(self, tenant_id: str) -> list[DataSource]:
        """Active websites the tenant registered for schedule lookups."""
        return []


# ---------------------------------------------------------------------------
# IN-MEMORY
# ---------------------------------------------------------------------------


class InMemoryEventStore(EventStore):
    """
    Process-local event store.

    Mirrors the database constraint: a second event with the same identity
    for the same company is silently not inserted.
    """

    def __init__(self, events: list[Event] | None = None):
        self._lock = threading.Lock()
        self._events: list[Event] = []
        self._keys: set[tuple[str, str]] = set()
        if events:
            self.insert_many(events)

    @property
    def events(self) -> list[Event]:
        with self._lock:
            return list(self._events)

    def insert_many(self, events: list[Event]) -> list[Event]:
        inserted = []
        with self._lock:
            for event in events:
                key = (event.company_id, identity_hash(event))
                if key in self._keys:
                    continue
                stored = event.model_copy(update={"id": event.id or str(uuid.uuid4())})
                self._keys.add(key)
                self._events.append(stored)
                inserted.append(stored)
        return inserted

    def query_by_tenant_and_window(self, tenant_id: str, start: datetime, end: datetime) -> list[Event]:
        with self._lock:
            return [e for e in self._events if e.company_id == tenant_id and start <= e.start_time <= end]


class InMemoryChannelDirectory(ChannelDirectory):
    """Channel directory backed by plain lists."""

    def __init__(
        self,
        channels: list[Channel] | None = None,
        data_sources: list[DataSource] | None = None,
    ):
        self.channels = list(channels or [])
        self.data_sources = list(data_sources or [])

    def list_active_channels(self, tenant_id: str) -> list[Channel]:
        return [c for c in self.channels if c.company_id == tenant_id and c.is_active]

    def list_data_sources(self, tenant_id: str) -> list[DataSource]:
        return [s for s in self.data_sources if s.company_id == tenant_id and s.is_active]


# ---------------------------------------------------------------------------
# POSTGRESQL
# ---------------------------------------------------------------------------

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sports_events (
    id            UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    company_id    TEXT NOT NULL,
    title         TEXT NOT NULL,
    sport_type    TEXT NOT NULL,
    league        TEXT,
    home_team     TEXT,
    away_team     TEXT,
    start_time    TIMESTAMPTZ NOT NULL,
    end_time      TIMESTAMPTZ,
    channel_id    TEXT NOT NULL,
    description   TEXT,
    is_featured   BOOLEAN NOT NULL DEFAULT FALSE,
    is_hidden     BOOLEAN NOT NULL DEFAULT FALSE,
    source        TEXT,
    identity_key  TEXT NOT NULL,
    created_at    TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE UNIQUE INDEX IF NOT EXISTS sports_events_identity_uq
    ON sports_events (company_id, identity_key);

CREATE INDEX IF NOT EXISTS sports_events_company_start_idx
    ON sports_events (company_id, start_time);
"""

EVENT_COLUMNS = (
    "company_id",
    "title",
    "sport_type",
    "league",
    "home_team",
    "away_team",
    "start_time",
    "end_time",
    "channel_id",
    "description",
    "is_featured",
    "is_hidden",
    "source",
    "identity_key",
)

SELECT_COLUMNS = "id::text AS id, " + ", ".join(c for c in EVENT_COLUMNS if c != "identity_key")


def get_connection() -> psycopg2.extensions.connection:
    """
    Create PostgreSQL connection using DATABASE_URL.

    Returns
    -------
    psycopg2.extensions.connection
        Active database connection.
    """
    return psycopg2.connect(**get_settings().get_psycopg2_params())


def _row_to_event(row: dict) -> Event:
    return Event(**row)


class PostgresEventStore(EventStore):
    """
    Event store on the sports_events table.

    Opens one connection per call; both operations are single statements
    inside one transaction.
    """

    def __init__(
        self,
        connection_factory: Callable[[], psycopg2.extensions.connection] = get_connection,
    ):
        self.connection_factory = connection_factory

    def ensure_schema(self) -> None:
        """
        Create the events table and its indexes if missing.

        The unique identity index must exist before insert_many, whose
        ON CONFLICT clause targets it.

        Raises:
            PersistenceFailure: If the DDL cannot be applied
        """
        try:
            conn = self.connection_factory()
        except psycopg2.Error as e:
            raise PersistenceFailure(f"Could not connect to database: {e}") from e

        try:
            with conn, conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
        except psycopg2.Error as e:
            logger.error(f"Creating the sports_events schema failed: {e}")
            raise PersistenceFailure(f"Schema setup failed: {e}") from e
        finally:
            conn.close()
        logger.info("sports_events schema is in place")

    def insert_many(self, events: list[Event]) -> list[Event]:
        if not events:
            return []

        rows = [
            (
                e.company_id,
                e.title,
                e.sport_type,
                e.league,
                e.home_team,
                e.away_team,
                e.start_time,
                e.end_time,
                e.channel_id,
                e.description,
                e.is_featured,
                e.is_hidden,
                e.source,
                identity_hash(e),
            )
            for e in events
        ]
        companies = sorted({e.company_id for e in events})

        try:
            conn = self.connection_factory()
        except psycopg2.Error as e:
            raise PersistenceFailure(f"Could not connect to database: {e}", attempted=len(events)) from e

        try:
            with conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
                for company_id in companies:
                    cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (company_id,))

                inserted = execute_values(
                    cur,
                    f"""
                    INSERT INTO sports_events ({", ".join(EVENT_COLUMNS)})
                    VALUES %s
                    ON CONFLICT (company_id, identity_key) DO NOTHING
                    RETURNING {SELECT_COLUMNS}
                    """,
                    rows,
                    fetch=True,
                )
        except psycopg2.Error as e:
            logger.error(f"Bulk insert of {len(events)} events failed: {e}")
            raise PersistenceFailure(f"Bulk insert failed: {e}", attempted=len(events)) from e
        finally:
            conn.close()

        logger.info(f"Inserted {len(inserted)}/{len(events)} events")
        return [_row_to_event(dict(r)) for r in inserted]

    def query_by_tenant_and_window(self, tenant_id: str, start: datetime, end: datetime) -> list[Event]:
        try:
            conn = self.connection_factory()
        except psycopg2.Error as e:
            raise PersistenceFailure(f"Could not connect to database: {e}") from e

        try:
            with conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {SELECT_COLUMNS}
                    FROM sports_events
                    WHERE company_id = %s AND start_time BETWEEN %s AND %s
                    ORDER BY start_time
                    """,
                    (tenant_id, start, end),
                )
                return [_row_to_event(dict(r)) for r in cur.fetchall()]
        except psycopg2.Error as e:
            raise PersistenceFailure(f"Query of existing events failed: {e}") from e
        finally:
            conn.close()


class PostgresChannelDirectory(ChannelDirectory):
    """Channel directory on the channels and sports_data_sources tables."""

    def __init__(
        self,
        connection_factory: Callable[[], psycopg2.extensions.connection] = get_connection,
    ):
        self.connection_factory = connection_factory

    def _select(self, query: str, params: tuple, what: str) -> list[dict]:
        try:
            conn = self.connection_factory()
        except psycopg2.Error as e:
            raise PersistenceFailure(f"Could not connect to database: {e}") from e

        try:
            with conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                return [dict(r) for r in cur.fetchall()]
        except psycopg2.Error as e:
            logger.error(f"Query of {what} failed: {e}")
            raise PersistenceFailure(f"Query of {what} failed: {e}") from e
        finally:
            conn.close()

    def list_active_channels(self, tenant_id: str) -> list[Channel]:
        rows = self._select(
            """
            SELECT id::text AS id, name, company_id, channel_number, is_active
            FROM channels
            WHERE company_id = %s AND is_active
            ORDER BY created_at, name
            """,
            (tenant_id,),
            "channels",
        )
        return [Channel(**r) for r in rows]

    def list_data_sources(self, tenant_id: str) -> list[DataSource]:
        rows = self._select(
            """
            SELECT id::text AS id, company_id, name, url, description, is_active
            FROM sports_data_sources
            WHERE company_id = %s AND is_active
            ORDER BY created_at DESC
            """,
            (tenant_id,),
            "data sources",
        )
        return [DataSource(**r) for r in rows]
