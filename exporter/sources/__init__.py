"""
Grade sources.

Modules:
    sql_source: Host gradebook tables read through SQLAlchemy
"""

__all__ = [
    "SQLGradeSource",
]
