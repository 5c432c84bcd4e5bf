from sqlalchemy import Column, String, DateTime, Text
from datetime import datetime
from models.base import Base


class Setting(Base):
    """
    Key/value application settings shared with the rest of the app.

    Keys written by the import pipeline:
    - fcc_last_updated: ISO timestamp of the last completed import
    - fcc_schedule_*: recurring import schedule
    """
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
