from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.types import JSON

from capital.core.base import Base


class EconomyRecord(Base):
    """
    Durable copy of the last successful market-data refresh. Holds at most one row.
    """

    __tablename__ = "economy_api_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    time = Column(DateTime(timezone=True), nullable=False)
    data = Column(JSON, nullable=False)
