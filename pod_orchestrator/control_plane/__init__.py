"""
pod_orchestrator/control_plane — gates a pod passes before placement.

Public API:
    validate_pod()       — semantic pod checks, raises PodValidationError
    PodValidationError   — raised when a pod is rejected
"""

from pod_orchestrator.control_plane.pod_validator import (
    PodValidationError,
    validate_pod,
)

__all__ = ["PodValidationError", "validate_pod"]
