"""Headless Claude CLI delegation."""

from .executor import (
    DelegatedExecutor,
    ExecutableNotFoundError,
    ExecutionOptions,
    ExecutionResult,
    InvalidPermissionModeError,
    PermissionMode,
    SettingsArtifactError,
    SettingsNotFoundError,
    serialize_result,
)
from .progress import ProgressReporter
from .project_settings import ProjectSettings, ToolRestrictions
from .stream import RecordKind, StreamInterpreter, StreamRecord, ToolInvocation
from .supervisor import ProcessHandle, ProcessSupervisor

__all__ = [
    "DelegatedExecutor",
    "ExecutableNotFoundError",
    "ExecutionOptions",
    "ExecutionResult",
    "InvalidPermissionModeError",
    "PermissionMode",
    "ProcessHandle",
    "ProcessSupervisor",
    "ProgressReporter",
    "ProjectSettings",
    "RecordKind",
    "SettingsArtifactError",
    "SettingsNotFoundError",
    "StreamInterpreter",
    "StreamRecord",
    "ToolInvocation",
    "ToolRestrictions",
    "serialize_result",
]
