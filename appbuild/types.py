"""Shared type definitions for appbuild.

This module contains enums and small dataclasses shared across
subpackages to avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


DEFAULT_PROJECT_TYPE = "default"


class UnitState(str, Enum):
    """Lifecycle state of a single application build."""

    PENDING = "pending"
    STAGING = "staging"
    PRE_HOOKS = "pre_hooks"
    BUILDING = "building"
    POST_HOOKS = "post_hooks"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"


class HookPhase(str, Enum):
    """Whether a hook runs before or after its stage."""

    PRE = "pre"
    POST = "post"


class HookStage(str, Enum):
    """Build stage a hook is attached to."""

    COMPILE = "compile"
    SOURCE_COMPILE = "source_compile"
    APP_COMPILE = "app_compile"


class PathKind(str, Enum):
    """Groups of directories tracked by the code path."""

    DEPS = "deps"
    PLUGINS = "plugins"
    PROJECT_APPS = "project_apps"
    EXTRAS = "extras"


@dataclass
class OperationResult:
    """Result of an operation (custom build, finalize, etc.)."""

    success: bool
    message: str = ""
    code: str | None = None
    details: dict[str, object] = field(default_factory=dict)


__all__ = [
    "DEFAULT_PROJECT_TYPE",
    "HookPhase",
    "HookStage",
    "OperationResult",
    "PathKind",
    "UnitState",
]
