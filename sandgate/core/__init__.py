"""
SandGate Core — Policy Engine and Shared Infrastructure

Submodules:
- version   : Version constants (single source of truth)
- types     : Shared enums, dataclasses, exceptions
- constants : Limits, default patterns, store layout names
- config    : Configuration dataclasses and YAML loading
- access/   : Pattern matching, blocked paths, masking, security policies
- audit/    : Chain-hashed security logging

Quick imports:
    from sandgate.core import SecurityPolicy, HostCommandPolicy
    from sandgate.core import PermissionDenied, BlockedPath
    from sandgate.core.version import __version__
"""

from sandgate.core.version import __version__, CONFIG_FILENAMES, CONFIG_SCHEMA_VERSION

from sandgate.core.types import (
    # Exceptions
    SandGateError,
    PermissionDenied,
    NotFound,
    ParseError,
    ExecutionTimeout,
    ExecutionFailure,
    # Enums
    SecurityMode,
    OutputTarget,
    BlockSource,
    SyncStatus,
    Decision,
    AlertSeverity,
    # Dataclasses
    BlockedPath,
    ContainerInfo,
    ExecResult,
    FileAccessResult,
    ProcessResult,
    ToolInfo,
    SyncItem,
    SyncRequest,
    SyncReport,
)

from sandgate.core.config import GatewayConfig, ConfigError, load_config
from sandgate.core.access import SecurityPolicy, HostCommandPolicy, BlockedPathIndex
from sandgate.core.audit import SecurityLogger
