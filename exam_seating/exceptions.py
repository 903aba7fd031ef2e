"""Errors raised by the allocation services.

Each error carries a machine friendly ``code`` and the HTTP status the API
answers with, so routers only need a single handler.
"""
from typing import Any, Dict, Optional


class AllocationError(Exception):
    code: str = "allocation_error"
    status_code: int = 500

    def __init__(self, message: str = "Allocation failed", *, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body = {"status": "error", "code": self.code, "error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ExamNotFoundError(AllocationError):
    code = "exam_not_found"
    status_code = 404

    def __init__(self, exam_id: str):
        super().__init__("Exam not found", details={"exam_id": exam_id})


class NoCoursesError(AllocationError):
    code = "no_courses"
    status_code = 400

    def __init__(self, exam_id: str):
        super().__init__("No courses for this exam", details={"exam_id": exam_id})


class RecordNotFoundError(AllocationError):
    code = "not_found"
    status_code = 404


class AssignmentConflictError(AllocationError):
    code = "assignment_conflict"
    status_code = 409


class DuplicateRecordError(AllocationError):
    code = "duplicate"
    status_code = 409


class InvalidRequestError(AllocationError):
    code = "invalid_request"
    status_code = 400


class PersistenceError(AllocationError):
    """A write transaction failed and was rolled back."""

    code = "persistence_error"
    status_code = 500

    def __init__(self, message: str = "Could not save assignments", *, cause: Optional[BaseException] = None):
        super().__init__(message, details={"cause": str(cause)} if cause is not None else None)
        self.cause = cause
