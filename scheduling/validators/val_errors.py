from typing import Any, Dict, List, Optional
from fastapi import HTTPException

class SchedulingError(HTTPException):
    """Base class for failures of the scheduling core. Routers let these propagate as HTTP responses."""
    code = "scheduling_error"
    status_code_default = 400

    def __init__(self, message: str, **extra: Any):
        self.message = message
        detail: Dict[str, Any] = {"code": self.code, "message": message}
        detail.update(extra)
        super().__init__(status_code=self.status_code_default, detail=detail)

    def __str__(self):
        return self.message

class SchedulingValidationError(SchedulingError):
    code = "validation_error"
    status_code_default = 400

class NotFoundError(SchedulingError):
    code = "not_found"
    status_code_default = 404

class ConflictDetectedError(SchedulingError):
    code = "conflict_detected"
    status_code_default = 409

    def __init__(self, conflicts: List[Any]):
        self.conflicts = conflicts
        super().__init__(
            f"{len(conflicts)} conflict(s) detected",
            conflicts=[_conflict_payload(conflict) for conflict in conflicts]
        )

class ChainIntegrityError(SchedulingError):
    code = "chain_integrity_error"
    status_code_default = 409

    def __init__(self, message: str, chain: Optional[List[str]] = None):
        self.chain = chain or []
        super().__init__(message, chain=self.chain)

class StoreUnavailableError(SchedulingError):
    code = "store_unavailable"
    status_code_default = 503

    def __init__(self, operation: str, message: str, failed_indices: Optional[List[int]] = None):
        self.operation = operation
        self.failed_indices = failed_indices or []
        super().__init__(
            f"{operation} failed: {message}",
            operation=operation,
            failed_indices=self.failed_indices
        )

def _conflict_payload(conflict: Any) -> Dict[str, Any]:
    if hasattr(conflict, "model_dump"):
        return conflict.model_dump(mode="json", exclude={"candidate"})
    return dict(conflict)
