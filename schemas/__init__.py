"""
Pydantic schemas for data validation and serialization.

This package defines Pydantic models for the structured records flowing
through the export pipeline and for API responses:

Schemas:
    export: Query, grade item, user, grade, export result and history records
    api: API endpoint response schemas

Features:
    - Validation at the persistence boundary (rows are read through from_attributes)
    - Explicit optional fields (external_id, final_grade)
    - JSON serialization for the API and event listeners

Usage:
    from schemas.export import QueryRecord, ExportOutcome, HistoryRecord
    from schemas.api import ExportResponse, HealthCheckResponse

Example:
    # Validate a query before saving it
    query = QueryRecord(external_id="  SIS-101 ", item_id=42)

    assert query.external_id == "SIS-101"
    assert query.automated is False
"""

__all__ = [
    "QueryRecord",
    "GradeItemRecord",
    "CourseRecord",
    "UserRecord",
    "GradeRecord",
    "ExportResult",
    "ExportOutcome",
    "HistoryRecord",
    "HealthCheckResponse",
    "ExportResponse",
]
