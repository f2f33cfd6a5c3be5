from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from database import Base


# ============================================================
# StoredSession — the persisted half of a console session
# One row per browser cookie. The bearer token lives here so a
# restarted console can hydrate the session again.
# ============================================================
class StoredSession(Base):
    __tablename__ = "console_sessions"

    id          = Column(String, primary_key=True, index=True)   # cookie value
    token       = Column(Text, nullable=False)                    # bearer token from the API
    user_json   = Column(Text)                                    # last known profile, JSON
    created_at  = Column(DateTime, server_default=func.now())
    updated_at  = Column(DateTime, server_default=func.now(), onupdate=func.now())
