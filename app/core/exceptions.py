from typing import Any, Optional


class EngineError(Exception):
    """Base class for errors raised by the job engine."""
    status_code: int = 400

    def __init__(self, detail: str, details: Optional[Any] = None):
        super().__init__(detail)
        self.detail = detail
        self.details = details


# --- Synchronous rejections (no ledger row is created) ---

class EntitlementError(EngineError):
    """No active plan, quota exhausted or definition not visible to the plan."""
    status_code = 403


class CredentialError(EngineError):
    """The required provider credential is missing or not allowed."""
    status_code = 400


class AdmissionError(EngineError):
    status_code = 400


class ResourceNotFoundError(AdmissionError):
    status_code = 404


class ResourceConflictError(AdmissionError):
    status_code = 409


# --- Asynchronous failures, absorbed into the ledger row ---

class ExecutionError(EngineError):
    status_code = 500


class RunTimeoutError(ExecutionError):
    pass


class RemoteRunNotFoundError(ExecutionError):
    pass


class RemoteRunFailedError(ExecutionError):
    def __init__(self, detail: str, status: Optional[str] = None, payload: Optional[Any] = None):
        super().__init__(detail, details=payload)
        self.status = status
        self.payload = payload


class JobCancelledError(ExecutionError):
    pass


class RemoteProvisioningError(EngineError):
    """A provider call failed while creating or changing a definition. Local state was rolled back."""
    status_code = 502
