from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from config import DATABASE_URL

def make_engine(url: str):
    # check_same_thread=False is required for SQLite + FastAPI
    # because requests may be handled on different threads
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)

# ── Engine ───────────────────────────────────────────────────
engine = make_engine(DATABASE_URL)

# ── Session factory ──────────────────────────────────────────
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ── Base class ───────────────────────────────────────────────
# All models inherit from this
Base = declarative_base()

# ── Create all tables on startup ─────────────────────────────
def init_db(bind=None):
    import models  # noqa: F401  registers tables on Base.metadata
    Base.metadata.create_all(bind=bind or engine)
