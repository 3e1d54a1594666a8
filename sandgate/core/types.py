"""
SandGate Core Types — Shared enums, dataclasses, and exceptions.

This module centralizes all type definitions used across the SandGate codebase.
All layers (Core, Gateway, HostTools) import types from here.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# EXCEPTIONS
# =============================================================================

class SandGateError(Exception):
    """Base exception for all SandGate errors."""
    pass


class PermissionDenied(SandGateError):
    """Raised when the security policy refuses an operation.

    Carries the human-readable reason and, when one exists, the rule that
    caused the refusal (a BlockedPath, a deny pattern, ...) so the caller can
    explain the denial instead of surfacing a bare error.
    """

    def __init__(self, reason: str, rule: Any = None):
        super().__init__(reason)
        self.reason = reason
        self.rule = rule


class NotFound(SandGateError):
    """Raised when a container or tool does not exist."""
    pass


class ParseError(SandGateError):
    """Raised on malformed command quoting or an unparseable tool header."""
    pass


class ExecutionTimeout(SandGateError):
    """Raised when a process or exec session exceeds its timeout."""

    def __init__(self, timeout: float, target: str = ""):
        message = f"execution timed out after {timeout}s"
        if target:
            message = f"{message}: {target}"
        super().__init__(message)
        self.timeout = timeout
        self.target = target


class ExecutionFailure(SandGateError):
    """Raised on OS-level or SDK-level execution problems.

    Daemon unreachable, missing binary, API error. Never raised for a
    non-zero exit code, which is a normal result.
    """
    pass


# =============================================================================
# ENUMS
# =============================================================================

class SecurityMode(Enum):
    """How container exec requests are authorized."""
    STRICT = "strict"          # No exec at all
    MODERATE = "moderate"      # Whitelisted commands only
    PERMISSIVE = "permissive"  # Any command on accessible containers


class OutputTarget(Enum):
    """Output categories that masking rules can be applied to."""
    LOGS = "logs"
    EXEC = "exec"
    INSPECT = "inspect"


class BlockSource(Enum):
    """Where a blocked path entry came from."""
    MANUAL = "manual"
    AUTO_IMPORTED = "auto-imported"


class SyncStatus(Enum):
    """Comparison result between a staging tool and its approved copy."""
    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class Decision(Enum):
    """Operator answer for one item of the approval pipeline."""
    ACCEPT = "accept"
    SKIP = "skip"
    DIFF = "diff"


class AlertSeverity(Enum):
    """Severity levels for security log entries."""
    INFO = "info"
    WARNING = "warning"
    HIGH = "high"
    CRITICAL = "critical"


# =============================================================================
# POLICY DATACLASSES
# =============================================================================

@dataclass(frozen=True)
class BlockedPath:
    """A filesystem pattern denied regardless of other authorization.

    container is a container name or "*" for every container (and the host).
    """
    container: str
    pattern: str
    reason: str
    source: BlockSource = BlockSource.MANUAL
    origin: str = ""
    original_path: str = ""

    @property
    def is_global(self) -> bool:
        return self.container == "*"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'container': self.container,
            'pattern': self.pattern,
            'reason': self.reason,
            'source': self.source.value,
        }
        if self.origin:
            data['origin'] = self.origin
        if self.original_path:
            data['original_path'] = self.original_path
        return data


# =============================================================================
# RESULT DATACLASSES
# =============================================================================

@dataclass
class ContainerInfo:
    """Summary of a container visible through the gateway."""
    id: str
    name: str
    image: str
    state: str
    status: str = ""
    created: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    ports: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ExecResult:
    """Combined output and exit code of a container exec."""
    exit_code: int
    output: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FileAccessResult:
    """Outcome of list_files / read_file.

    A blocked path is a structured result rather than an exception so callers
    can explain which rule matched.
    """
    success: bool
    data: str = ""
    blocked: bool = False
    block: Optional[BlockedPath] = None
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'success': self.success}
        if self.data:
            data['data'] = self.data
        if self.blocked:
            data['blocked'] = True
            data['block_info'] = self.block.to_dict() if self.block else None
        if self.error:
            data['error'] = self.error
        return data


@dataclass
class ProcessResult:
    """Output of a host process. A non-zero exit code is a normal outcome."""
    stdout: str
    stderr: str
    exit_code: int

    def __str__(self) -> str:
        parts = []
        if self.stdout:
            parts.append(self.stdout)
        if self.stderr:
            parts.append("[stderr]\n" + self.stderr)
        text = "\n".join(parts)
        if self.exit_code != 0:
            text += f"\n[exit code: {self.exit_code}]"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# HOST TOOL DATACLASSES
# =============================================================================

@dataclass
class ToolInfo:
    """Metadata parsed from a tool script's leading comment block."""
    name: str
    description: str = ""
    usage: str = ""
    examples: List[str] = field(default_factory=list)
    extension: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SyncItem:
    """One staging tool and its relation to the approved store."""
    name: str
    status: SyncStatus
    staging_path: str
    approved_path: str
    description: str = ""


@dataclass
class SyncRequest:
    """What the approval pipeline asks the operator about one item."""
    item: SyncItem
    prompt: str
    allow_diff: bool = False


@dataclass
class SyncReport:
    """Totals of one approval run."""
    synced: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def synced_count(self) -> int:
        return len(self.synced)


__all__ = [
    # Exceptions
    'SandGateError', 'PermissionDenied', 'NotFound', 'ParseError',
    'ExecutionTimeout', 'ExecutionFailure',
    # Enums
    'SecurityMode', 'OutputTarget', 'BlockSource', 'SyncStatus', 'Decision',
    'AlertSeverity',
    # Dataclasses
    'BlockedPath', 'ContainerInfo', 'ExecResult', 'FileAccessResult',
    'ProcessResult', 'ToolInfo', 'SyncItem', 'SyncRequest', 'SyncReport',
]
