from sqlalchemy import Column, Integer, BigInteger, DateTime, Boolean, Float, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from models.base import Base


class ExportHistory(Base):
    """
    Audit entry for one export run of one query.

    Purpose:
    - Latest / last successful export lookup
    - Per-user results of any past run
    """
    __tablename__ = "export_history"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    query_id = Column(Integer, nullable=False, index=True)

    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    success = Column(Boolean, nullable=False, default=False)

    # User who triggered the run, None for scheduled runs
    user_id = Column(Integer, nullable=True)

    success_count = Column(Integer, default=0)
    error_count = Column(Integer, default=0)

    items = relationship("ExportHistoryItem", back_populates="history")

    __table_args__ = (
        Index("idx_export_history_query_timestamp", "query_id", "timestamp"),
    )


class ExportHistoryItem(Base):
    """One attempted user grade within an export run."""
    __tablename__ = "export_history_items"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    history_id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("export_history.id"),
        nullable=False,
        index=True
    )
    user_id = Column(Integer, nullable=False)
    grade = Column(Float, nullable=True)
    success = Column(Boolean, nullable=False, default=True)

    history = relationship("ExportHistory", back_populates="items")
