"""Job runner implementations."""

from querygen.orchestrator.backend.base import JobRunner, RunnerFactory
from querygen.orchestrator.backend.codegen_backend import CodegenBackend, QueryParseError

__all__ = [
    "CodegenBackend",
    "JobRunner",
    "QueryParseError",
    "RunnerFactory",
]
