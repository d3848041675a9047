from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from config.settings import settings

DATABASE_URL = settings.DATABASE_URL


def _engine_options() -> dict:
    if settings.is_sqlite:
        # SQLite: no pool sizing, allow sessions from worker threads
        return {
            "echo": settings.DEBUG,
            "connect_args": {"check_same_thread": False, "timeout": 30},
        }
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "echo": settings.DEBUG,
        "connect_args": {"options": "-c timezone=utc"},
    }


engine = create_engine(DATABASE_URL, **_engine_options())

if settings.is_sqlite:
    @event.listens_for(engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
