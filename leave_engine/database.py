from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from leave_engine.core.config import settings

DATABASE_URL = settings.database_url
IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    # Local development and tests; the session is shared with FastAPI worker threads
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        # An in-memory database only exists on its one connection
        poolclass=StaticPool if ":memory:" in DATABASE_URL else None,
    )

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
else:
    engine = create_engine(DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    One session per HTTP request.
    Services own their transactions (commit/rollback); this only closes the session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create the leave tables. Called once from the application lifespan."""
    # Models must be imported so their tables are on Base.metadata
    import leave_engine.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
