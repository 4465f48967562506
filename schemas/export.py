"""
Pydantic schemas for queries, gradebook snapshots and export results
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict
from datetime import datetime


class QueryRecord(BaseModel):
    """
    A configured export query.

    Rows from export_queries are validated through this model on the way
    out of the database and on the way back in.
    """

    id: Optional[int] = None
    external_id: Optional[str] = Field(None, max_length=255)
    item_id: int = Field(..., ge=1)
    automated: bool = False

    @validator("external_id", pre=True)
    def clean_external_id(cls, v):
        """Blank external ids are stored as NULL"""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @validator("automated", pre=True)
    def coerce_automated(cls, v):
        if v is None:
            return False
        return v

    @property
    def external_name(self) -> Optional[str]:
        """Name of this query in the external system"""
        return self.external_id

    def is_automated(self) -> bool:
        return bool(self.automated)

    class Config:
        from_attributes = True


class CourseRecord(BaseModel):
    id: int
    fullname: str = ""
    shortname: str = ""

    class Config:
        from_attributes = True


class GradeItemRecord(BaseModel):
    """Host grade item; the pipeline only relies on id and course_id"""
    id: int
    course_id: int
    itemname: Optional[str] = None
    grademax: float = 100.0

    class Config:
        from_attributes = True


class UserRecord(BaseModel):
    id: int
    username: str
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    email: Optional[str] = None
    idnumber: Optional[str] = None

    class Config:
        from_attributes = True


class GradeRecord(BaseModel):
    """
    A user's grade for one grade item.

    final_grade is None when the user has not been graded yet.
    """
    user_id: int
    item_id: Optional[int] = None
    final_grade: Optional[float] = None

    @validator("final_grade", pre=True)
    def clean_final_grade(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_empty(self) -> bool:
        return self.final_grade is None


# Ordered user-id keyed snapshots, owned by one export run
UserSnapshot = Dict[int, UserRecord]
GradeSnapshot = Dict[int, GradeRecord]


class ExportResult(BaseModel):
    """One user grade that was sent to the external sink"""
    user_id: int
    final_grade: float


class ExportOutcome(BaseModel):
    """
    Result of one export run.

    Every exported user with a non-empty grade is in exactly one of
    successes / errors. inconsistencies lists user ids whose grade had no
    matching user in the run's user snapshot; those were never sent.
    """
    successes: List[ExportResult] = Field(default_factory=list)
    errors: List[ExportResult] = Field(default_factory=list)
    inconsistencies: List[int] = Field(default_factory=list)
    history_id: Optional[int] = None

    @property
    def success(self) -> bool:
        """Run-level success: nothing rejected and nothing inconsistent"""
        return not self.errors and not self.inconsistencies

    @property
    def attempted(self) -> int:
        return len(self.successes) + len(self.errors)


class HistoryRecord(BaseModel):
    """Audit entry for one export run"""
    id: int
    query_id: int
    timestamp: datetime
    success: bool
    user_id: Optional[int] = None
    success_count: int = 0
    error_count: int = 0

    class Config:
        from_attributes = True
