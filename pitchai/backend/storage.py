import copy
import json
import os
import threading
from typing import Any, Dict, Generic, List, Optional, Protocol, Type, TypeVar

from .models import (
    DeckAnalysis,
    InvestorQA,
    PitchDeck,
    PitchReport,
    PitchVideo,
    Record,
    VideoAnalysis,
)

try:
    import psycopg
    from psycopg.types.json import Jsonb
except Exception:  # pragma: no cover - only relevant when Postgres is enabled.
    psycopg = None
    Jsonb = None


R = TypeVar("R", bound=Record)

PITCH_DECKS = "pitch_decks"
PITCH_VIDEOS = "pitch_videos"
DECK_ANALYSES = "pitch_analyses"
VIDEO_ANALYSES = "video_analyses"
INVESTOR_QAS = "investor_qas"
PITCH_REPORTS = "pitch_reports"


def normalize_database_url(database_url: str) -> str:
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url[len("postgres://") :]
    return database_url


def _sort_key(value: Any):
    # Missing values sort before present ones.
    return (value is not None, value if value is not None else "")


class RecordStore(Protocol):
    storage_name: str

    def create(self, collection: str, record: dict) -> dict:
        pass

    def list(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        pass

    def update(self, collection: str, record_id: str, patch: dict) -> dict:
        pass


class InMemoryRecordStore:
    storage_name = "memory"

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, dict]] = {}
        self._lock = threading.Lock()

    def create(self, collection: str, record: dict) -> dict:
        record_id = record.get("id")
        if not record_id:
            raise ValueError("Records must carry a non-empty id.")
        with self._lock:
            rows = self._collections.setdefault(collection, {})
            if record_id in rows:
                raise ValueError(f"{collection} record {record_id} already exists.")
            rows[record_id] = copy.deepcopy(record)
            return copy.deepcopy(rows[record_id])

    def list(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        with self._lock:
            rows = list(self._collections.get(collection, {}).values())
            if where:
                rows = [row for row in rows if all(row.get(key) == value for key, value in where.items())]
            if order_by:
                rows = sorted(rows, key=lambda row: _sort_key(row.get(order_by)), reverse=descending)
            if limit is not None:
                rows = rows[: max(0, limit)]
            return copy.deepcopy(rows)

    def update(self, collection: str, record_id: str, patch: dict) -> dict:
        with self._lock:
            rows = self._collections.get(collection, {})
            if record_id not in rows:
                raise KeyError(f"{collection} record {record_id} not found.")
            rows[record_id].update(copy.deepcopy(patch))
            return copy.deepcopy(rows[record_id])


class PostgresRecordStore:
    """Stores every collection in one JSONB table keyed by (collection, id)."""

    storage_name = "postgres"

    def __init__(self, database_url: str) -> None:
        if psycopg is None or Jsonb is None:
            raise RuntimeError("psycopg is required when DATABASE_URL is set.")
        self._database_url = normalize_database_url(database_url)
        self._ensure_schema()

    def _connect(self):
        return psycopg.connect(self._database_url, autocommit=True)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS pitchai_records (
                        collection TEXT NOT NULL,
                        record_id TEXT NOT NULL,
                        payload JSONB NOT NULL,
                        inserted_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        PRIMARY KEY (collection, record_id)
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_pitchai_records_payload
                    ON pitchai_records USING GIN (payload)
                    """
                )

    def create(self, collection: str, record: dict) -> dict:
        record_id = record.get("id")
        if not record_id:
            raise ValueError("Records must carry a non-empty id.")
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO pitchai_records (collection, record_id, payload)
                    VALUES (%s, %s, %s)
                    """,
                    (collection, record_id, Jsonb(record)),
                )
        return copy.deepcopy(record)

    def list(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        query = "SELECT payload FROM pitchai_records WHERE collection = %s"
        values: List[Any] = [collection]
        if where:
            query += " AND payload @> %s"
            values.append(Jsonb(where))
        if order_by:
            direction = "DESC" if descending else "ASC"
            nulls = "NULLS LAST" if descending else "NULLS FIRST"
            query += f" ORDER BY payload ->> %s {direction} {nulls}, inserted_at {direction}"
            values.append(order_by)
        if limit is not None:
            query += " LIMIT %s"
            values.append(max(0, limit))

        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(query, values)
                rows = cur.fetchall()
        return [row[0] if isinstance(row[0], dict) else json.loads(row[0]) for row in rows]

    def update(self, collection: str, record_id: str, patch: dict) -> dict:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE pitchai_records
                    SET payload = payload || %s
                    WHERE collection = %s AND record_id = %s
                    RETURNING payload
                    """,
                    (Jsonb(patch), collection, record_id),
                )
                row = cur.fetchone()
                if row is None:
                    raise KeyError(f"{collection} record {record_id} not found.")
        return row[0] if isinstance(row[0], dict) else json.loads(row[0])


def build_record_store(database_url: Optional[str] = None) -> RecordStore:
    database_url = (database_url if database_url is not None else os.getenv("DATABASE_URL", "")).strip()
    if database_url:
        return PostgresRecordStore(database_url=database_url)
    return InMemoryRecordStore()


class Repository(Generic[R]):
    """Typed access to one collection of a RecordStore."""

    collection: str
    model: Type[R]

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def create(self, record: R) -> R:
        return self.model.from_record(self.store.create(self.collection, record.to_record()))

    def get(self, record_id: str) -> Optional[R]:
        rows = self.store.list(self.collection, where={"id": record_id}, limit=1)
        return self.model.from_record(rows[0]) if rows else None

    def find(
        self,
        where: Optional[Dict[str, Any]] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[R]:
        rows = self.store.list(
            self.collection,
            where=where,
            order_by=order_by,
            descending=descending,
            limit=limit,
        )
        return [self.model.from_record(row) for row in rows]

    def update(self, record_id: str, patch: dict) -> R:
        return self.model.from_record(self.store.update(self.collection, record_id, patch))


class PitchDeckRepo(Repository[PitchDeck]):
    collection = PITCH_DECKS
    model = PitchDeck

    def list_for_user(self, user_id: str) -> List[PitchDeck]:
        return self.find({"userId": user_id}, order_by="uploadedAt", descending=True)


class PitchVideoRepo(Repository[PitchVideo]):
    collection = PITCH_VIDEOS
    model = PitchVideo

    def list_for_user(self, user_id: str) -> List[PitchVideo]:
        return self.find({"userId": user_id}, order_by="uploadedAt", descending=True)


class DeckAnalysisRepo(Repository[DeckAnalysis]):
    collection = DECK_ANALYSES
    model = DeckAnalysis

    def latest_for_deck(self, deck_id: str) -> Optional[DeckAnalysis]:
        found = self.find({"sourceDeckId": deck_id}, order_by="createdAt", descending=True, limit=1)
        return found[0] if found else None


class VideoAnalysisRepo(Repository[VideoAnalysis]):
    collection = VIDEO_ANALYSES
    model = VideoAnalysis

    def latest_for_video(self, video_id: str) -> Optional[VideoAnalysis]:
        found = self.find({"sourceVideoId": video_id}, order_by="createdAt", descending=True, limit=1)
        return found[0] if found else None


class InvestorQARepo(Repository[InvestorQA]):
    collection = INVESTOR_QAS
    model = InvestorQA


class ReportRepo(Repository[PitchReport]):
    collection = PITCH_REPORTS
    model = PitchReport

    def list_for_user(self, user_id: str) -> List[PitchReport]:
        return self.find({"userId": user_id}, order_by="createdAt", descending=True)

    def get_by_share_token(self, share_token: str) -> Optional[PitchReport]:
        found = self.find({"shareToken": share_token, "isShared": True}, limit=1)
        return found[0] if found else None


class Repositories:
    """One repository per entity over a shared record store."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store
        self.decks = PitchDeckRepo(store)
        self.videos = PitchVideoRepo(store)
        self.deck_analyses = DeckAnalysisRepo(store)
        self.video_analyses = VideoAnalysisRepo(store)
        self.investor_qas = InvestorQARepo(store)
        self.reports = ReportRepo(store)
