"""
pod_orchestrator/shared/config.py
──────────────────────────────────
Process-wide settings the pod compiler needs, passed in explicitly.

Nothing in the compiler reads configuration from the environment or from a
global. The caller constructs one PlacementConfig and threads it through
build_task_group(); invalid values fail at construction with a pydantic
ValidationError.

Fields
───────
  mesos_role                       — the framework's role. Resources reserved
                                     for it are acceptable by default.
  default_accepted_resource_roles  — explicit default role set used when a pod
                                     declares none. None = derive it.
  env_vars_prefix                  — prepended to every port-derived env var
                                     name (PORT0 → <prefix>PORT0).
  executor_cpus / executor_mem     — baseline reservation of the executor
                                     process itself, on top of its tasks.
"""

from __future__ import annotations

from typing import FrozenSet, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pod_orchestrator.shared.models import UNRESERVED_ROLE

DEFAULT_EXECUTOR_CPUS: float = 0.1
"""CPU reserved for the default executor of every pod instance."""

DEFAULT_EXECUTOR_MEM: float = 32.0
"""Memory (MiB) reserved for the default executor of every pod instance."""


class PlacementConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    mesos_role: Optional[str] = Field(None, min_length=1)
    default_accepted_resource_roles: Optional[FrozenSet[str]] = None
    env_vars_prefix: Optional[str] = None
    executor_cpus: float = Field(DEFAULT_EXECUTOR_CPUS, ge=0.0)
    executor_mem: float = Field(DEFAULT_EXECUTOR_MEM, ge=0.0)

    @field_validator("default_accepted_resource_roles")
    @classmethod
    def non_empty_roles(cls, value: Optional[FrozenSet[str]]) -> Optional[FrozenSet[str]]:
        if value is not None and not value:
            raise ValueError("default_accepted_resource_roles must not be empty")
        return value

    @property
    def default_accepted_resource_roles_set(self) -> Set[str]:
        """
        Roles a pod may consume when it does not name any itself.

        The explicit default wins. Otherwise unreserved resources plus
        resources reserved for the framework's own role.
        """
        if self.default_accepted_resource_roles is not None:
            return set(self.default_accepted_resource_roles)
        roles = {UNRESERVED_ROLE}
        if self.mesos_role:
            roles.add(self.mesos_role)
        return roles
