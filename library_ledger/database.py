from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from urllib.parse import quote_plus
from library_ledger.config import settings


def build_database_url() -> str:
    """Resolve the database URL: explicit URL, then Postgres parts, then SQLite."""
    if settings.database_url:
        return settings.database_url
    if settings.db_name:
        db_user = quote_plus(settings.db_user or "")
        db_password = quote_plus(settings.db_password or "")
        return f"postgresql://{db_user}:{db_password}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    return f"sqlite:///{settings.sqlite_path}"


DATABASE_URL = build_database_url()


def make_engine(url: str):
    if url.startswith("sqlite"):
        engine_kwargs = {"connect_args": {"check_same_thread": False}, "echo": False}
        # In-memory databases live as long as their single connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool
        return create_engine(url, **engine_kwargs)

    connect_args = {}
    if settings.db_ssl_mode != "disable":
        connect_args["sslmode"] = settings.db_ssl_mode
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=10,
        max_overflow=20,
        echo=False,
        connect_args=connect_args
    )


engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
