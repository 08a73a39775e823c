# backend/db.py
# Database abstraction layer supporting PostgreSQL (production) and SQLite (dev)

from contextlib import contextmanager
from pathlib import Path as FsPath
from typing import Any, Dict, Generator, Optional
from urllib.parse import urlparse

from sqlalchemy import create_engine, text, pool
from sqlalchemy.engine import Connection, Engine

from backend.config import DATABASE_PATH, DATABASE_URL


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        role TEXT NOT NULL DEFAULT 'member',
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        owner_id TEXT NOT NULL,
        members_json TEXT NOT NULL DEFAULT '[]',
        tasks_json TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        assigned_to TEXT,
        due_date TEXT,
        project_id TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_projects_owner_id ON projects(owner_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_project_id ON tasks(project_id)",
]


def resolve_database_url(database_url: Optional[str] = None) -> str:
    """
    Pick the database URL: explicit argument, then DATABASE_URL, then the
    SQLite file next to this package.
    """
    url = (database_url or DATABASE_URL or "").strip()
    if url:
        # Render/Heroku style URLs use the deprecated postgres:// scheme
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        return url

    db_path = FsPath(DATABASE_PATH)
    if not db_path.is_absolute():
        db_path = FsPath(__file__).resolve().parent / db_path
    return f"sqlite:///{db_path}"


def init_engine(database_url: Optional[str] = None) -> Engine:
    """Create a SQLAlchemy engine for PostgreSQL or SQLite."""
    url = resolve_database_url(database_url)

    parsed = urlparse(url)
    if not parsed.scheme:
        raise ValueError(f"Invalid DATABASE_URL: {url[:20]}...")

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=False,
        )
        print("[DB] Using SQLite (local dev mode)")
    else:
        engine = create_engine(
            url,
            poolclass=pool.QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Verify connections before use
            echo=False,
        )
        print(f"[DB] Using PostgreSQL ({parsed.hostname})")

    return engine


def init_db(engine: Engine) -> None:
    """Create tables and indexes if they do not exist yet."""
    with engine.begin() as conn:
        for statement in SCHEMA:
            conn.execute(text(statement))
    print("[DB] Schema ensured (users, projects, tasks)")


@contextmanager
def get_db_connection(engine: Engine) -> Generator[Connection, None, None]:
    """
    Context manager for a transactional connection.
    Commits on clean exit, rolls back if the block raises.
    """
    with engine.begin() as conn:
        yield conn


def execute_query(
    conn: Connection,
    query: str,
    params: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Execute a query with named parameters (:name style works on both
    SQLite and PostgreSQL through SQLAlchemy's text()).
    """
    return conn.execute(text(query), params or {})
