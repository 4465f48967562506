from sqlalchemy import Column, Integer, String, Boolean, Index
from models.base import Base


class ExportQuery(Base):
    """
    Links an external identifier to a host grade item.

    Design:
    - item_id carries no foreign key: a query outlives the deletion of its
      grade item and is then simply not exportable
    - automated queries are run by the scheduler, the others on demand
    """
    __tablename__ = "export_queries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(255), nullable=True)
    item_id = Column(Integer, nullable=False, index=True)
    automated = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_export_query_item_automated", "item_id", "automated"),
    )
