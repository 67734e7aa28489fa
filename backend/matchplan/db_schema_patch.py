from __future__ import annotations

import logging
from typing import Dict, List, Tuple, Type

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

logger = logging.getLogger(__name__)

# Columns introduced by alembic revision 002_corrections; a database created
# from 001_initial alone gets them on startup.
# (name, sqlite_type, postgres_type, default clause)
REQUIRED_TOURNAMENT_COLUMNS: List[Tuple[str, str, str, str]] = [
    ("manual_tiebreaks", "JSON", "JSON", ""),
    ("max_consecutive_referee_slots", "INTEGER", "INTEGER", ""),
]

REQUIRED_MATCH_COLUMNS: List[Tuple[str, str, str, str]] = [
    ("penalty_score_a", "INTEGER", "INTEGER", ""),
    ("penalty_score_b", "INTEGER", "INTEGER", ""),
    ("correction_in_progress", "INTEGER", "BOOLEAN", "DEFAULT {false}"),
]


def _is_sqlite(engine: Engine) -> bool:
    return engine.dialect.name.lower() == "sqlite"


def _get_existing_columns_sqlite(engine: Engine, table_name: str) -> Dict[str, str]:
    cols: Dict[str, str] = {}
    with engine.connect() as conn:
        res = conn.execute(text(f"PRAGMA table_info({table_name});")).fetchall()
        # PRAGMA table_info returns rows: (cid, name, type, notnull, dflt_value, pk)
        for row in res:
            cols[str(row[1])] = str(row[2])
    return cols


def _get_existing_columns_postgres(engine: Engine, table_name: str) -> Dict[str, str]:
    cols: Dict[str, str] = {}
    sql = """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_schema = 'public' AND table_name = :table_name;
    """
    with engine.connect() as conn:
        res = conn.execute(text(sql), {"table_name": table_name}).fetchall()
        for row in res:
            cols[str(row[0])] = str(row[1])
    return cols


def _table_exists(engine: Engine, table: str) -> bool:
    if _is_sqlite(engine):
        sql = "SELECT name FROM sqlite_master WHERE type='table' AND name=:table_name"
    else:
        sql = """
        SELECT 1 FROM information_schema.tables
        WHERE table_schema = 'public' AND table_name = :table_name
        """
    with engine.connect() as conn:
        return conn.execute(text(sql), {"table_name": table}).fetchone() is not None


def ensure_columns(engine: Engine, model: Type[SQLModel], required: List[Tuple[str, str, str, str]]) -> List[str]:
    """
    Idempotently adds missing columns to the model's table.
    Safe to run at every startup. Returns the names of the columns added.
    """
    table = model.__table__.name
    added: List[str] = []
    try:
        if not _table_exists(engine, table):
            # create_all creates it with every column
            return added

        sqlite = _is_sqlite(engine)
        existing = _get_existing_columns_sqlite(engine, table) if sqlite else _get_existing_columns_postgres(engine, table)
        with engine.begin() as conn:
            for name, sqlite_type, pg_type, default in required:
                if name in existing:
                    continue
                column_type = sqlite_type if sqlite else pg_type
                default_sql = default.format(false="0" if sqlite else "FALSE")
                if_not_exists = "" if sqlite else "IF NOT EXISTS "
                conn.execute(
                    text(f"ALTER TABLE {table} ADD COLUMN {if_not_exists}{name} {column_type} {default_sql}".rstrip())
                )
                added.append(name)
    except Exception as e:
        logger.warning(f"Failed to ensure {table} columns: {e}")
    return added


def ensure_schema(engine: Engine) -> None:
    from matchplan.models.match import Match
    from matchplan.models.tournament import Tournament

    for model, required in ((Tournament, REQUIRED_TOURNAMENT_COLUMNS), (Match, REQUIRED_MATCH_COLUMNS)):
        added = ensure_columns(engine, model, required)
        if added:
            logger.info("Added columns to %s: %s", model.__table__.name, ", ".join(added))
