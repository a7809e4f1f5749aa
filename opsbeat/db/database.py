"""
OpsBeat Ops Store

Access to the ops_* tables behind one interface, with three backends:

- SupabaseStore: the hosted store, over its PostgREST HTTP API (production)
- PostgresStore: a direct PostgreSQL connection to the same tables
- SQLiteStore: a local file, for development and tests

Uses the Protocol pattern to define the store contract.
"""

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Union

import httpx

from opsbeat.clock import ensure_utc, to_iso, utc_now
from opsbeat.errors import ConfigError, EntityNotFoundError, StorageError
from opsbeat.logging import get_logger
from opsbeat.models.domain import (
    AgentEvent,
    AgentReaction,
    Mission,
    MissionStep,
    Proposal,
    StepStatus,
    TriggerRule,
)

logger = get_logger(__name__)

# Try to import psycopg for PostgreSQL support
try:
    import psycopg
    from psycopg.rows import dict_row
    from psycopg.types.json import Jsonb
except ImportError:
    psycopg = None  # type: ignore
    dict_row = None  # type: ignore
    Jsonb = None  # type: ignore

try:
    from psycopg_pool import ConnectionPool
except ImportError:
    ConnectionPool = None  # type: ignore


class StoreProtocol(Protocol):
    """Protocol defining the ops store interface."""

    def init_schema(self) -> None: ...
    def close(self) -> None: ...

    # Trigger rules
    def list_enabled_trigger_rules(self) -> List[TriggerRule]: ...
    def create_trigger_rule(
        self,
        name: str,
        type: str,
        source: Optional[str] = None,
        target: Optional[str] = None,
        probability: float = 0.0,
        enabled: bool = True,
    ) -> TriggerRule: ...

    # Policies
    def get_policy(self, key: str) -> Optional[Dict[str, Any]]: ...
    def upsert_policy(self, key: str, value: Dict[str, Any]) -> None: ...

    # Proposals and missions
    def create_proposal(
        self,
        source: str,
        step_kind: str,
        description: str,
        status: str,
        reason: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Proposal: ...
    def list_proposals(self, limit: int = 100) -> List[Proposal]: ...
    def create_mission(self, proposal_id: str, status: str, created_at: Optional[datetime] = None) -> Mission: ...
    def get_mission(self, mission_id: str) -> Mission: ...
    def list_missions(self, limit: int = 100) -> List[Mission]: ...
    def update_mission_status(self, mission_id: str, status: str, updated_at: datetime) -> None: ...

    # Mission steps
    def create_mission_step(
        self,
        mission_id: str,
        step_kind: str,
        status: str,
        payload: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ) -> MissionStep: ...
    def get_mission_step(self, step_id: str) -> MissionStep: ...
    def list_mission_steps(self, mission_id: str) -> List[MissionStep]: ...
    def list_stale_steps(self, updated_before: datetime) -> List[MissionStep]: ...
    def count_steps(self, step_kind: str, status: str, completed_since: datetime) -> int: ...
    def update_step_status(
        self,
        step_id: str,
        status: str,
        *,
        updated_at: datetime,
        last_error: Optional[str] = None,
    ) -> None: ...

    # Reactions and events
    def create_reaction(
        self,
        payload: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> AgentReaction: ...
    def get_reaction(self, reaction_id: str) -> AgentReaction: ...
    def list_pending_reactions(self, limit: int) -> List[AgentReaction]: ...
    def mark_reaction_processed(self, reaction_id: str, processed_at: datetime) -> None: ...
    def append_agent_event(
        self,
        agent_id: Optional[str],
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> AgentEvent: ...
    def list_agent_events(self, limit: int = 100) -> List[AgentEvent]: ...


# Row helpers shared by every backend

def _new_id() -> str:
    return str(uuid.uuid4())


def _parse_json(value: Any) -> Optional[Union[dict, list]]:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return None


def _coerce_ts(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return to_iso(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            return text
    return str(value)


def _row_to_trigger_rule(row: Mapping[str, Any]) -> TriggerRule:
    return TriggerRule(
        id=str(row["id"]),
        name=row.get("name") or "",
        type=row.get("type") or "",
        source=row.get("source"),
        target=row.get("target"),
        probability=float(row.get("probability") or 0.0),
        enabled=bool(row.get("enabled")),
    )


def _row_to_proposal(row: Mapping[str, Any]) -> Proposal:
    return Proposal(
        id=str(row["id"]),
        source=row["source"],
        step_kind=row["step_kind"],
        description=row["description"],
        status=row["status"],
        reason=row.get("reason"),
        created_at=_coerce_ts(row.get("created_at")) or "",
    )


def _row_to_mission(row: Mapping[str, Any]) -> Mission:
    return Mission(
        id=str(row["id"]),
        proposal_id=str(row["proposal_id"]),
        status=row["status"],
        created_at=_coerce_ts(row.get("created_at")) or "",
        updated_at=_coerce_ts(row.get("updated_at")) or "",
    )


def _row_to_mission_step(row: Mapping[str, Any]) -> MissionStep:
    payload = _parse_json(row.get("payload"))
    return MissionStep(
        id=str(row["id"]),
        mission_id=str(row["mission_id"]),
        step_kind=row["step_kind"],
        status=row["status"],
        payload=payload if isinstance(payload, dict) else {},
        last_error=row.get("last_error"),
        created_at=_coerce_ts(row.get("created_at")) or "",
        updated_at=_coerce_ts(row.get("updated_at")) or "",
        completed_at=_coerce_ts(row.get("completed_at")),
    )


def _row_to_reaction(row: Mapping[str, Any]) -> AgentReaction:
    payload = _parse_json(row.get("payload"))
    return AgentReaction(
        id=str(row["id"]),
        payload=payload if isinstance(payload, dict) else {},
        created_at=_coerce_ts(row.get("created_at")) or "",
        processed_at=_coerce_ts(row.get("processed_at")),
    )


def _row_to_agent_event(row: Mapping[str, Any]) -> AgentEvent:
    payload = _parse_json(row.get("payload"))
    return AgentEvent(
        id=str(row["id"]),
        agent_id=row.get("agent_id"),
        event_type=row["event_type"],
        payload=payload if isinstance(payload, dict) else {},
        created_at=_coerce_ts(row.get("created_at")) or "",
    )


class _SQLStore:
    """
    Shared SQL for the SQLite and PostgreSQL backends.

    Queries are written with `?` placeholders; subclasses translate them and
    provide connections.
    """

    placeholder = "?"

    def _q(self, query: str) -> str:
        if self.placeholder == "?":
            return query
        return query.replace("?", self.placeholder)

    def _fetchone(self, query: str, params: Iterable[Any] = ()) -> Optional[Mapping[str, Any]]:
        with self._transaction() as conn:
            cur = conn.execute(self._q(query), tuple(params))
            row = cur.fetchone()
        return dict(row) if row is not None else None

    def _fetchall(self, query: str, params: Iterable[Any] = ()) -> List[Mapping[str, Any]]:
        with self._transaction() as conn:
            cur = conn.execute(self._q(query), tuple(params))
            rows = cur.fetchall()
        return [dict(row) for row in rows]

    def _execute(self, query: str, params: Iterable[Any] = ()) -> int:
        with self._transaction() as conn:
            cur = conn.execute(self._q(query), tuple(params))
            return cur.rowcount

    def _json_param(self, value: Optional[Dict[str, Any]]) -> Any:
        return json.dumps(value or {})

    def _bool_param(self, value: bool) -> Any:
        return 1 if value else 0

    def close(self) -> None:
        pass

    # Trigger rules
    def list_enabled_trigger_rules(self) -> List[TriggerRule]:
        rows = self._fetchall(
            "SELECT * FROM ops_trigger_rules WHERE enabled = ? ORDER BY created_at ASC",
            (self._bool_param(True),),
        )
        return [_row_to_trigger_rule(row) for row in rows]

    def create_trigger_rule(
        self,
        name: str,
        type: str,
        source: Optional[str] = None,
        target: Optional[str] = None,
        probability: float = 0.0,
        enabled: bool = True,
    ) -> TriggerRule:
        rule_id = _new_id()
        self._execute(
            """
            INSERT INTO ops_trigger_rules (id, name, type, source, target, probability, enabled, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (rule_id, name, type, source, target, float(probability), self._bool_param(enabled), to_iso(utc_now())),
        )
        return TriggerRule(
            id=rule_id,
            name=name,
            type=type,
            source=source,
            target=target,
            probability=float(probability),
            enabled=enabled,
        )

    # Policies
    def get_policy(self, key: str) -> Optional[Dict[str, Any]]:
        row = self._fetchone("SELECT value FROM ops_policy WHERE id = ?", (key,))
        if row is None:
            return None
        value = _parse_json(row.get("value"))
        return value if isinstance(value, dict) else None

    def upsert_policy(self, key: str, value: Dict[str, Any]) -> None:
        self._execute(
            """
            INSERT INTO ops_policy (id, value) VALUES (?, ?)
            ON CONFLICT (id) DO UPDATE SET value = excluded.value
            """,
            (key, self._json_param(value)),
        )

    # Proposals and missions
    def create_proposal(
        self,
        source: str,
        step_kind: str,
        description: str,
        status: str,
        reason: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Proposal:
        proposal_id = _new_id()
        created = to_iso(ensure_utc(created_at))
        self._execute(
            """
            INSERT INTO ops_mission_proposals (id, source, step_kind, description, status, reason, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (proposal_id, source, step_kind, description, status, reason, created),
        )
        return Proposal(
            id=proposal_id,
            source=source,
            step_kind=step_kind,
            description=description,
            status=status,
            reason=reason,
            created_at=created,
        )

    def list_proposals(self, limit: int = 100) -> List[Proposal]:
        rows = self._fetchall(
            "SELECT * FROM ops_mission_proposals ORDER BY created_at DESC LIMIT ?",
            (limit,),
        )
        return [_row_to_proposal(row) for row in rows]

    def create_mission(self, proposal_id: str, status: str, created_at: Optional[datetime] = None) -> Mission:
        mission_id = _new_id()
        created = to_iso(ensure_utc(created_at))
        self._execute(
            "INSERT INTO ops_missions (id, proposal_id, status, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (mission_id, proposal_id, status, created, created),
        )
        return Mission(id=mission_id, proposal_id=proposal_id, status=status, created_at=created, updated_at=created)

    def get_mission(self, mission_id: str) -> Mission:
        row = self._fetchone("SELECT * FROM ops_missions WHERE id = ?", (mission_id,))
        if row is None:
            raise EntityNotFoundError(f"Mission {mission_id} not found", metadata={"mission_id": mission_id})
        return _row_to_mission(row)

    def list_missions(self, limit: int = 100) -> List[Mission]:
        rows = self._fetchall("SELECT * FROM ops_missions ORDER BY created_at DESC LIMIT ?", (limit,))
        return [_row_to_mission(row) for row in rows]

    def update_mission_status(self, mission_id: str, status: str, updated_at: datetime) -> None:
        self._execute(
            "UPDATE ops_missions SET status = ?, updated_at = ? WHERE id = ?",
            (status, to_iso(updated_at), mission_id),
        )

    # Mission steps
    def create_mission_step(
        self,
        mission_id: str,
        step_kind: str,
        status: str,
        payload: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ) -> MissionStep:
        step_id = _new_id()
        created = to_iso(ensure_utc(created_at))
        updated = to_iso(updated_at) if updated_at is not None else created
        completed = to_iso(completed_at) if completed_at is not None else None
        self._execute(
            """
            INSERT INTO ops_mission_steps
                (id, mission_id, step_kind, status, payload, created_at, updated_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (step_id, mission_id, step_kind, status, self._json_param(payload), created, updated, completed),
        )
        return MissionStep(
            id=step_id,
            mission_id=mission_id,
            step_kind=step_kind,
            status=status,
            payload=dict(payload or {}),
            created_at=created,
            updated_at=updated,
            completed_at=completed,
        )

    def get_mission_step(self, step_id: str) -> MissionStep:
        row = self._fetchone("SELECT * FROM ops_mission_steps WHERE id = ?", (step_id,))
        if row is None:
            raise EntityNotFoundError(f"Mission step {step_id} not found", metadata={"step_id": step_id})
        return _row_to_mission_step(row)

    def list_mission_steps(self, mission_id: str) -> List[MissionStep]:
        rows = self._fetchall(
            "SELECT * FROM ops_mission_steps WHERE mission_id = ? ORDER BY created_at ASC",
            (mission_id,),
        )
        return [_row_to_mission_step(row) for row in rows]

    def list_stale_steps(self, updated_before: datetime) -> List[MissionStep]:
        rows = self._fetchall(
            "SELECT * FROM ops_mission_steps WHERE status = ? AND updated_at <= ? ORDER BY updated_at ASC",
            (StepStatus.RUNNING, to_iso(updated_before)),
        )
        return [_row_to_mission_step(row) for row in rows]

    def count_steps(self, step_kind: str, status: str, completed_since: datetime) -> int:
        row = self._fetchone(
            """
            SELECT COUNT(*) AS total FROM ops_mission_steps
            WHERE step_kind = ? AND status = ? AND completed_at >= ?
            """,
            (step_kind, status, to_iso(completed_since)),
        )
        return int(row["total"]) if row else 0

    def update_step_status(
        self,
        step_id: str,
        status: str,
        *,
        updated_at: datetime,
        last_error: Optional[str] = None,
    ) -> None:
        self._execute(
            "UPDATE ops_mission_steps SET status = ?, last_error = ?, updated_at = ? WHERE id = ?",
            (status, last_error, to_iso(updated_at), step_id),
        )

    # Reactions and events
    def create_reaction(
        self,
        payload: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> AgentReaction:
        reaction_id = _new_id()
        created = to_iso(ensure_utc(created_at))
        self._execute(
            "INSERT INTO ops_agent_reactions (id, payload, created_at) VALUES (?, ?, ?)",
            (reaction_id, self._json_param(payload), created),
        )
        return AgentReaction(id=reaction_id, payload=dict(payload or {}), created_at=created)

    def get_reaction(self, reaction_id: str) -> AgentReaction:
        row = self._fetchone("SELECT * FROM ops_agent_reactions WHERE id = ?", (reaction_id,))
        if row is None:
            raise EntityNotFoundError(f"Reaction {reaction_id} not found", metadata={"reaction_id": reaction_id})
        return _row_to_reaction(row)

    def list_pending_reactions(self, limit: int) -> List[AgentReaction]:
        rows = self._fetchall(
            "SELECT * FROM ops_agent_reactions WHERE processed_at IS NULL ORDER BY created_at ASC LIMIT ?",
            (limit,),
        )
        return [_row_to_reaction(row) for row in rows]

    def mark_reaction_processed(self, reaction_id: str, processed_at: datetime) -> None:
        self._execute(
            "UPDATE ops_agent_reactions SET processed_at = ? WHERE id = ?",
            (to_iso(processed_at), reaction_id),
        )

    def append_agent_event(
        self,
        agent_id: Optional[str],
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> AgentEvent:
        event_id = _new_id()
        created = to_iso(ensure_utc(created_at))
        self._execute(
            "INSERT INTO ops_agent_events (id, agent_id, event_type, payload, created_at) VALUES (?, ?, ?, ?, ?)",
            (event_id, agent_id, event_type, self._json_param(payload), created),
        )
        return AgentEvent(
            id=event_id,
            agent_id=agent_id,
            event_type=event_type,
            payload=dict(payload or {}),
            created_at=created,
        )

    def list_agent_events(self, limit: int = 100) -> List[AgentEvent]:
        rows = self._fetchall("SELECT * FROM ops_agent_events ORDER BY created_at DESC LIMIT ?", (limit,))
        return [_row_to_agent_event(row) for row in rows]


class SQLiteStore(_SQLStore):
    """
    SQLite-backed ops store for local runs and tests.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self):
        """Context manager for database transactions."""
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(str(exc), metadata={"backend": "sqlite"}) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Initialize database schema."""
        from opsbeat.db.schema import SCHEMA_SQLITE

        with self._transaction() as conn:
            conn.executescript(SCHEMA_SQLITE)


class PostgresStore(_SQLStore):
    """
    PostgreSQL-backed ops store, for reaching the ops tables directly.
    Requires psycopg>=3. Follows the same contract as SQLiteStore.
    """

    placeholder = "%s"

    def __init__(self, db_url: str, pool_size: int = 5) -> None:
        if psycopg is None:
            raise ImportError("psycopg is required for Postgres support. Install psycopg[binary].")

        self.db_url = db_url
        self.pool = None
        if ConnectionPool:
            self.pool = ConnectionPool(
                conninfo=db_url,
                min_size=1,
                max_size=pool_size,
                kwargs={"row_factory": dict_row},
                open=True,
            )

    @contextmanager
    def _transaction(self):
        try:
            if self.pool is not None:
                with self.pool.connection() as conn:
                    yield conn
            else:
                with psycopg.connect(self.db_url, row_factory=dict_row) as conn:
                    yield conn
        except psycopg.Error as exc:
            raise StorageError(str(exc), metadata={"backend": "postgres"}) from exc

    def _json_param(self, value: Optional[Dict[str, Any]]) -> Any:
        return Jsonb(value or {})

    def _bool_param(self, value: bool) -> Any:
        return bool(value)

    def close(self) -> None:
        if self.pool is not None:
            self.pool.close()
            self.pool = None

    def init_schema(self) -> None:
        from opsbeat.db.schema import SCHEMA_POSTGRES

        with self._transaction() as conn:
            for statement in SCHEMA_POSTGRES.split(";"):
                if statement.strip():
                    conn.execute(statement)


class SupabaseStore:
    """
    Ops store backed by the hosted Supabase project, over its PostgREST API.

    Every call is one blocking HTTP round trip; the underlying httpx client is
    created lazily and must be closed by the owner.
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=f"{self.url}/rest/v1",
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "apikey": self.service_key,
                    "Authorization": f"Bearer {self.service_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def init_schema(self) -> None:
        # The hosted project owns its schema (see SCHEMA_POSTGRES for the expected tables).
        logger.info("supabase_schema_managed_remotely", extra={"url": self.url})

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = self._get_client().request(method, f"/{table}", params=params, json=json_body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StorageError(
                f"{method} {table} failed with {exc.response.status_code}: {exc.response.text}",
                metadata={"table": table, "status_code": exc.response.status_code},
                retryable=exc.response.status_code >= 500,
            ) from exc
        except httpx.HTTPError as exc:
            raise StorageError(f"{method} {table} failed: {exc}", metadata={"table": table}) from exc
        return response

    def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        response = self._request("GET", table, params={"select": "*", **params})
        rows = response.json()
        return rows if isinstance(rows, list) else []

    def _insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        response = self._request("POST", table, json_body=row, prefer="return=representation")
        data = response.json()
        if isinstance(data, list):
            return data[0] if data else row
        return data if isinstance(data, dict) else row

    def _update(self, table: str, row_id: str, changes: Dict[str, Any]) -> None:
        self._request("PATCH", table, params={"id": f"eq.{row_id}"}, json_body=changes, prefer="return=minimal")

    def _get_one(self, table: str, row_id: str, label: str) -> Dict[str, Any]:
        rows = self._select(table, {"id": f"eq.{row_id}", "limit": "1"})
        if not rows:
            raise EntityNotFoundError(f"{label} {row_id} not found", metadata={"table": table, "id": row_id})
        return rows[0]

    # Trigger rules
    def list_enabled_trigger_rules(self) -> List[TriggerRule]:
        rows = self._select("ops_trigger_rules", {"enabled": "eq.true"})
        return [_row_to_trigger_rule(row) for row in rows]

    def create_trigger_rule(
        self,
        name: str,
        type: str,
        source: Optional[str] = None,
        target: Optional[str] = None,
        probability: float = 0.0,
        enabled: bool = True,
    ) -> TriggerRule:
        row = self._insert(
            "ops_trigger_rules",
            {
                "id": _new_id(),
                "name": name,
                "type": type,
                "source": source,
                "target": target,
                "probability": float(probability),
                "enabled": enabled,
                "created_at": to_iso(utc_now()),
            },
        )
        return _row_to_trigger_rule(row)

    # Policies
    def get_policy(self, key: str) -> Optional[Dict[str, Any]]:
        rows = self._select("ops_policy", {"id": f"eq.{key}", "limit": "1"})
        if not rows:
            return None
        value = _parse_json(rows[0].get("value"))
        return value if isinstance(value, dict) else None

    def upsert_policy(self, key: str, value: Dict[str, Any]) -> None:
        self._request(
            "POST",
            "ops_policy",
            json_body={"id": key, "value": value},
            prefer="resolution=merge-duplicates,return=minimal",
        )

    # Proposals and missions
    def create_proposal(
        self,
        source: str,
        step_kind: str,
        description: str,
        status: str,
        reason: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Proposal:
        row = self._insert(
            "ops_mission_proposals",
            {
                "id": _new_id(),
                "source": source,
                "step_kind": step_kind,
                "description": description,
                "status": status,
                "reason": reason,
                "created_at": to_iso(ensure_utc(created_at)),
            },
        )
        return _row_to_proposal(row)

    def list_proposals(self, limit: int = 100) -> List[Proposal]:
        rows = self._select("ops_mission_proposals", {"order": "created_at.desc", "limit": str(limit)})
        return [_row_to_proposal(row) for row in rows]

    def create_mission(self, proposal_id: str, status: str, created_at: Optional[datetime] = None) -> Mission:
        created = to_iso(ensure_utc(created_at))
        row = self._insert(
            "ops_missions",
            {"id": _new_id(), "proposal_id": proposal_id, "status": status, "created_at": created, "updated_at": created},
        )
        return _row_to_mission(row)

    def get_mission(self, mission_id: str) -> Mission:
        return _row_to_mission(self._get_one("ops_missions", mission_id, "Mission"))

    def list_missions(self, limit: int = 100) -> List[Mission]:
        rows = self._select("ops_missions", {"order": "created_at.desc", "limit": str(limit)})
        return [_row_to_mission(row) for row in rows]

    def update_mission_status(self, mission_id: str, status: str, updated_at: datetime) -> None:
        self._update("ops_missions", mission_id, {"status": status, "updated_at": to_iso(updated_at)})

    # Mission steps
    def create_mission_step(
        self,
        mission_id: str,
        step_kind: str,
        status: str,
        payload: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ) -> MissionStep:
        created = to_iso(ensure_utc(created_at))
        row = self._insert(
            "ops_mission_steps",
            {
                "id": _new_id(),
                "mission_id": mission_id,
                "step_kind": step_kind,
                "status": status,
                "payload": payload or {},
                "created_at": created,
                "updated_at": to_iso(updated_at) if updated_at is not None else created,
                "completed_at": to_iso(completed_at) if completed_at is not None else None,
            },
        )
        return _row_to_mission_step(row)

    def get_mission_step(self, step_id: str) -> MissionStep:
        return _row_to_mission_step(self._get_one("ops_mission_steps", step_id, "Mission step"))

    def list_mission_steps(self, mission_id: str) -> List[MissionStep]:
        rows = self._select("ops_mission_steps", {"mission_id": f"eq.{mission_id}", "order": "created_at.asc"})
        return [_row_to_mission_step(row) for row in rows]

    def list_stale_steps(self, updated_before: datetime) -> List[MissionStep]:
        rows = self._select(
            "ops_mission_steps",
            {
                "status": f"eq.{StepStatus.RUNNING}",
                "updated_at": f"lte.{to_iso(updated_before)}",
                "order": "updated_at.asc",
            },
        )
        return [_row_to_mission_step(row) for row in rows]

    def count_steps(self, step_kind: str, status: str, completed_since: datetime) -> int:
        response = self._request(
            "HEAD",
            "ops_mission_steps",
            params={
                "select": "id",
                "step_kind": f"eq.{step_kind}",
                "status": f"eq.{status}",
                "completed_at": f"gte.{to_iso(completed_since)}",
            },
            prefer="count=exact",
        )
        # Content-Range looks like "0-4/5", or "*/0" when nothing matched
        content_range = response.headers.get("content-range", "")
        _, _, total = content_range.partition("/")
        try:
            return int(total)
        except ValueError:
            raise StorageError(
                f"Unexpected Content-Range {content_range!r} counting ops_mission_steps",
                metadata={"table": "ops_mission_steps"},
            )

    def update_step_status(
        self,
        step_id: str,
        status: str,
        *,
        updated_at: datetime,
        last_error: Optional[str] = None,
    ) -> None:
        self._update(
            "ops_mission_steps",
            step_id,
            {"status": status, "last_error": last_error, "updated_at": to_iso(updated_at)},
        )

    # Reactions and events
    def create_reaction(
        self,
        payload: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> AgentReaction:
        row = self._insert(
            "ops_agent_reactions",
            {"id": _new_id(), "payload": payload or {}, "created_at": to_iso(ensure_utc(created_at))},
        )
        return _row_to_reaction(row)

    def get_reaction(self, reaction_id: str) -> AgentReaction:
        return _row_to_reaction(self._get_one("ops_agent_reactions", reaction_id, "Reaction"))

    def list_pending_reactions(self, limit: int) -> List[AgentReaction]:
        rows = self._select(
            "ops_agent_reactions",
            {"processed_at": "is.null", "order": "created_at.asc", "limit": str(limit)},
        )
        return [_row_to_reaction(row) for row in rows]

    def mark_reaction_processed(self, reaction_id: str, processed_at: datetime) -> None:
        self._update("ops_agent_reactions", reaction_id, {"processed_at": to_iso(processed_at)})

    def append_agent_event(
        self,
        agent_id: Optional[str],
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> AgentEvent:
        row = self._insert(
            "ops_agent_events",
            {
                "id": _new_id(),
                "agent_id": agent_id,
                "event_type": event_type,
                "payload": payload or {},
                "created_at": to_iso(ensure_utc(created_at)),
            },
        )
        return _row_to_agent_event(row)

    def list_agent_events(self, limit: int = 100) -> List[AgentEvent]:
        rows = self._select("ops_agent_events", {"order": "created_at.desc", "limit": str(limit)})
        return [_row_to_agent_event(row) for row in rows]


Store = Union[SQLiteStore, PostgresStore, SupabaseStore]


def get_store(config) -> Store:
    """
    Factory function to create the store selected by configuration.

    Preference order: hosted Supabase project, direct PostgreSQL, local SQLite.
    """
    if config.supabase_enabled:
        return SupabaseStore(config.supabase_url, config.supabase_service_key, timeout=config.http_timeout)

    if config.is_postgres:
        return PostgresStore(config.db_url, pool_size=config.db_pool_size)

    if config.environment == "production":
        raise ConfigError(
            "SUPABASE_URL and SUPABASE_SERVICE_KEY are required in production",
            metadata={"environment": config.environment},
        )
    return SQLiteStore(config.db_path)
