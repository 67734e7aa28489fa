import os
from pathlib import Path
from typing import Any, Dict, Generator

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./matchplan.db")


def _engine_options(url: str) -> Dict[str, Any]:
    """Connection options for the configured URL; file-backed SQLite gets its directory created."""
    options: Dict[str, Any] = {"echo": os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" not in url:
            Path(url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)
    return options


engine: Engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))


def get_session() -> Generator[Session, None, None]:
    """One session per request"""
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Create tournament, team, match and correction tables if missing"""
    # Registers every table with SQLModel metadata
    import matchplan.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
