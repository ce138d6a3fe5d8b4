from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from .database import Base


class TimestampMixin:
    """Mixin to add automatic created/updated timestamps"""
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


class Report(Base, TimestampMixin):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, index=True, nullable=False)  # report_<guid>.json
    payload = Column(Text, nullable=False)

    def __repr__(self):
        return f"<Report(id={self.id}, name='{self.name}')>"
