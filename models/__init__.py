"""
SQLAlchemy ORM models for database tables.

This package defines the database schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class
    query: Export query configuration (query -> host grade item)
    history: Export run history and per-user history items
    host: Read-only host gradebook tables (course, users, roles, grade items, grades)

Usage:
    from models.query import ExportQuery
    from models.history import ExportHistory, ExportHistoryItem
    from models.host import Course, GradeItem, GradeGrade

Example:
    # Create a manually triggered query
    query = ExportQuery(external_id="SIS-101", item_id=42, automated=False)
    session.add(query)
    await session.commit()

Relationships:
    - ExportQuery -> GradeItem (by item_id, no foreign key)
    - ExportHistory -> ExportQuery (by query_id, one-to-many)
    - ExportHistory -> ExportHistoryItem (one-to-many, items deleted first)
"""

__all__ = [
    "Base",
    "ExportQuery",
    "ExportHistory",
    "ExportHistoryItem",
    "Course",
    "HostUser",
    "RoleAssignment",
    "GradeItem",
    "GradeGrade",
]
