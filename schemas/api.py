"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from schemas.export import ExportResult, HistoryRecord, QueryRecord


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    total_queries: int = 0
    automated_queries: int = 0
    last_export_at: Optional[datetime] = None
    last_export_success: Optional[bool] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "total_queries": 4,
                "automated_queries": 3,
                "last_export_at": "2024-01-15T10:00:00Z",
                "last_export_success": True
            }
        }


# ============================================================================
# Query and Export Schemas
# ============================================================================

class CourseQueriesResponse(BaseModel):
    """Manually triggered queries of one course"""
    course_id: int
    queries: List[QueryRecord] = Field(default_factory=list)


class ExportResponse(BaseModel):
    """Result of an on-demand export"""
    query_id: int
    exported: bool = Field(..., description="False when the query had nothing to export")
    success: Optional[bool] = None
    successes: List[ExportResult] = Field(default_factory=list)
    errors: List[ExportResult] = Field(default_factory=list)
    inconsistencies: List[int] = Field(default_factory=list)
    history_id: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "query_id": 1,
                "exported": True,
                "success": False,
                "successes": [{"user_id": 3, "final_grade": 85.0}],
                "errors": [{"user_id": 5, "final_grade": 60.0}],
                "inconsistencies": [],
                "history_id": 12
            }
        }


class HistoryListResponse(BaseModel):
    query_id: int
    history: List[HistoryRecord] = Field(default_factory=list)


class ExportedItemsResponse(BaseModel):
    """Per-user grades stored for one past run"""
    query_id: int
    history_id: int
    items: Dict[int, Optional[float]] = Field(default_factory=dict)


class WipeHistoryResponse(BaseModel):
    query_id: int
    wiped: bool
