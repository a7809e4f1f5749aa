"""
OpsBeat Database Schema Definitions

Raw SQL schema for the ops tables, for SQLite (local runs and tests) and for a
PostgreSQL database reached directly instead of through the hosted REST API.
"""

SCHEMA_SQLITE = """
CREATE TABLE IF NOT EXISTS ops_trigger_rules (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    source TEXT,
    target TEXT,
    probability REAL NOT NULL DEFAULT 0,
    enabled INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS ops_mission_proposals (
    id TEXT PRIMARY KEY,
    source TEXT NOT NULL,
    step_kind TEXT NOT NULL,
    description TEXT NOT NULL,
    status TEXT NOT NULL,
    reason TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS ops_missions (
    id TEXT PRIMARY KEY,
    proposal_id TEXT NOT NULL REFERENCES ops_mission_proposals(id),
    status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS ops_mission_steps (
    id TEXT PRIMARY KEY,
    mission_id TEXT NOT NULL REFERENCES ops_missions(id),
    step_kind TEXT NOT NULL,
    status TEXT NOT NULL,
    payload TEXT NOT NULL DEFAULT '{}',
    last_error TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    completed_at TEXT
);

CREATE TABLE IF NOT EXISTS ops_policy (
    id TEXT PRIMARY KEY,
    value TEXT NOT NULL DEFAULT '{}'
);

CREATE TABLE IF NOT EXISTS ops_agent_reactions (
    id TEXT PRIMARY KEY,
    payload TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    processed_at TEXT
);

CREATE TABLE IF NOT EXISTS ops_agent_events (
    id TEXT PRIMARY KEY,
    agent_id TEXT,
    event_type TEXT NOT NULL,
    payload TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_ops_mission_steps_status ON ops_mission_steps(status, updated_at);
CREATE INDEX IF NOT EXISTS idx_ops_mission_steps_mission ON ops_mission_steps(mission_id);
CREATE INDEX IF NOT EXISTS idx_ops_agent_reactions_pending ON ops_agent_reactions(processed_at, created_at);
"""

SCHEMA_POSTGRES = """
CREATE TABLE IF NOT EXISTS ops_trigger_rules (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    source TEXT,
    target TEXT,
    probability DOUBLE PRECISION NOT NULL DEFAULT 0,
    enabled BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS ops_mission_proposals (
    id TEXT PRIMARY KEY,
    source TEXT NOT NULL,
    step_kind TEXT NOT NULL,
    description TEXT NOT NULL,
    status TEXT NOT NULL,
    reason TEXT,
    created_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS ops_missions (
    id TEXT PRIMARY KEY,
    proposal_id TEXT NOT NULL REFERENCES ops_mission_proposals(id),
    status TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS ops_mission_steps (
    id TEXT PRIMARY KEY,
    mission_id TEXT NOT NULL REFERENCES ops_missions(id),
    step_kind TEXT NOT NULL,
    status TEXT NOT NULL,
    payload JSONB NOT NULL DEFAULT '{}'::jsonb,
    last_error TEXT,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL,
    completed_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS ops_policy (
    id TEXT PRIMARY KEY,
    value JSONB NOT NULL DEFAULT '{}'::jsonb
);

CREATE TABLE IF NOT EXISTS ops_agent_reactions (
    id TEXT PRIMARY KEY,
    payload JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL,
    processed_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS ops_agent_events (
    id TEXT PRIMARY KEY,
    agent_id TEXT,
    event_type TEXT NOT NULL,
    payload JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_ops_mission_steps_status ON ops_mission_steps(status, updated_at);
CREATE INDEX IF NOT EXISTS idx_ops_mission_steps_mission ON ops_mission_steps(mission_id);
CREATE INDEX IF NOT EXISTS idx_ops_agent_reactions_pending ON ops_agent_reactions(processed_at, created_at);
"""
