"""Job run history."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from placekeeper.db.base import Base
from placekeeper.models.place import utcnow


class JobRun(Base):
    """One execution of a scheduled or manual job."""

    __tablename__ = "job_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_name = Column(String(50), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="running")  # running, success, error, cancelled
    message = Column(Text)
    stats = Column(JSON, nullable=False, default=dict)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    finished_at = Column(DateTime(timezone=True))
