#!/usr/bin/env python3
"""
SandGate Core Access — Security Policy
========================================
Authorization engine consumed by every enforcement surface:
- Container allow-list (glob patterns, empty list admits every container)
- Exec whitelist per container plus the "*" entry shared by all containers
- Dangerous mode: base-command allow-list behind an explicit opt-in flag
- Blocked-path index (manual + auto-imported)
- Output masking and host path masking

The policy is built once and never mutated afterwards. Every check is a
pure query returning (allowed, reason) or the matching rule, so callers can
explain a refusal.

Import from: sandgate.core.access.policy
"""

import shlex
import logging
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from sandgate.core.types import BlockedPath, OutputTarget, ParseError, SecurityMode
from sandgate.core.constants import (
    SHELL_METACHARACTERS, SHELL_SUBSTITUTIONS, PATH_TRAVERSAL,
)
from sandgate.core.access.patterns import match_any, matches_command_pattern
from sandgate.core.access.blocked_paths import BlockedPathIndex
from sandgate.core.access.masking import OutputMasker, mask_host_paths

logger = logging.getLogger(__name__)

DANGEROUS_HINT = "hint: this command is available with dangerously=true"


# =============================================================================
# COMMAND PARSING HELPERS
# =============================================================================

def tokenize(command: str) -> List[str]:
    """Quote-aware split (single/double quotes, backslash escapes).

    Raises ParseError on an unterminated quote or a dangling escape.
    """
    if not command or not command.strip():
        return []
    try:
        return shlex.split(command, posix=True)
    except ValueError as e:
        raise ParseError(f"cannot parse command: {e}") from e


def find_shell_metacharacter(command: str) -> Optional[str]:
    """Return the first forbidden shell sequence found in the raw string."""
    for sub in SHELL_SUBSTITUTIONS:
        if sub in command:
            return sub
    for ch in command:
        if ch in SHELL_METACHARACTERS:
            return ch
    return None


def extract_path_arguments(args: Sequence[str]) -> List[str]:
    """Arguments that may name a file: non-flag tokens and --opt=value values."""
    paths = []
    for arg in args:
        if not arg:
            continue
        if arg.startswith('-'):
            if arg.startswith('--') and '=' in arg:
                value = arg.split('=', 1)[1]
                if value:
                    paths.append(value)
            continue
        paths.append(arg)
    return paths


def _frozen_map(data: Optional[Mapping[str, Sequence[str]]]) -> Mapping[str, Tuple[str, ...]]:
    return MappingProxyType({k: tuple(v) for k, v in (data or {}).items()})


# =============================================================================
# SECURITY POLICY
# =============================================================================

class SecurityPolicy:
    """Immutable container-side authorization engine."""

    def __init__(self, mode: SecurityMode = SecurityMode.MODERATE,
                 allowed_containers: Sequence[str] = (),
                 exec_whitelist: Optional[Mapping[str, Sequence[str]]] = None,
                 permissions: Optional[Mapping[str, bool]] = None,
                 blocked_paths: Optional[BlockedPathIndex] = None,
                 masker: Optional[OutputMasker] = None,
                 dangerous_enabled: bool = False,
                 dangerous_commands: Optional[Mapping[str, Sequence[str]]] = None,
                 host_path_masking: bool = True,
                 host_path_replacement: str = "[HOST_PATH]"):
        self._mode = SecurityMode(mode)
        self._allowed_containers = tuple(allowed_containers)
        self._exec_whitelist = _frozen_map(exec_whitelist)
        perms = {'logs': True, 'inspect': True, 'stats': True, 'exec': True, 'lifecycle': False}
        perms.update({k: bool(v) for k, v in (permissions or {}).items()})
        self._permissions = MappingProxyType(perms)
        self._blocked = blocked_paths if blocked_paths is not None else BlockedPathIndex()
        self._masker = masker if masker is not None else OutputMasker((), enabled=False)
        self._dangerous_enabled = bool(dangerous_enabled)
        self._dangerous_commands = _frozen_map(dangerous_commands)
        self._host_path_masking = bool(host_path_masking)
        self._host_path_replacement = host_path_replacement

    @classmethod
    def from_config(cls, cfg, containers: Sequence[str] = (),
                    security_logger=None) -> 'SecurityPolicy':
        """Build from a SecurityConfig, running blocked-path auto-import once.

        containers are names known at startup (the allow-list is always
        included) so imported paths can be mapped onto a specific container.
        """
        cfg.validate()
        known = list(containers) + [c for c in cfg.allowed_containers if c not in containers]
        index = BlockedPathIndex.from_config(cfg.blocked_paths, known, security_logger)
        masker = OutputMasker.from_config(cfg.output_masking)
        perms = cfg.permissions
        policy = cls(
            mode=SecurityMode(cfg.mode),
            allowed_containers=cfg.allowed_containers,
            exec_whitelist=cfg.exec_whitelist,
            permissions={'logs': perms.logs, 'inspect': perms.inspect, 'stats': perms.stats,
                         'exec': perms.exec, 'lifecycle': perms.lifecycle},
            blocked_paths=index,
            masker=masker,
            dangerous_enabled=cfg.exec_dangerously.enabled,
            dangerous_commands=cfg.exec_dangerously.commands,
            host_path_masking=cfg.host_path_masking.enabled,
            host_path_replacement=cfg.host_path_masking.replacement,
        )
        logger.info("Security policy loaded: mode=%s, %d blocked paths, %d masking rules",
                    policy.mode.value, len(index), masker.pattern_count)
        return policy

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def mode(self) -> SecurityMode:
        return self._mode

    @property
    def allowed_containers(self) -> Tuple[str, ...]:
        return self._allowed_containers

    @property
    def exec_whitelist(self) -> Mapping[str, Tuple[str, ...]]:
        return self._exec_whitelist

    @property
    def permissions(self) -> Mapping[str, bool]:
        return self._permissions

    @property
    def dangerous_mode_enabled(self) -> bool:
        return self._dangerous_enabled

    @property
    def host_path_masking_enabled(self) -> bool:
        return self._host_path_masking

    @property
    def blocked_paths(self) -> Tuple[BlockedPath, ...]:
        return self._blocked.entries

    @property
    def blocked_index(self) -> BlockedPathIndex:
        return self._blocked

    def blocked_paths_for(self, container: str) -> List[BlockedPath]:
        return self._blocked.for_container(container)

    # -------------------------------------------------------------------------
    # Container checks
    # -------------------------------------------------------------------------

    def can_access_container(self, name: str) -> bool:
        if not self._allowed_containers:
            return True
        return match_any(self._allowed_containers, name) is not None

    def can_get_logs(self) -> bool:
        return self._permissions['logs']

    def can_inspect(self) -> bool:
        return self._permissions['inspect']

    def can_get_stats(self) -> bool:
        return self._permissions['stats']

    def can_lifecycle(self, container: str) -> Tuple[bool, str]:
        if not self._permissions['lifecycle']:
            return False, "lifecycle operations are disabled in security policy"
        if not self.can_access_container(container):
            return False, f"container not in allowed list: {container}"
        if self._mode == SecurityMode.STRICT:
            return False, "lifecycle operations are not allowed in strict mode"
        return True, "OK"

    # -------------------------------------------------------------------------
    # Exec checks
    # -------------------------------------------------------------------------

    def allowed_commands(self, container: str) -> List[str]:
        return list(self._exec_whitelist.get(container, ())) + \
            list(self._exec_whitelist.get('*', ()))

    def dangerous_commands(self, container: str) -> List[str]:
        return list(self._dangerous_commands.get(container, ())) + \
            list(self._dangerous_commands.get('*', ()))

    def _whitelist_match(self, container: str, command: str) -> Optional[str]:
        # Verbatim comparison, no trimming: "ls " is not "ls"
        for pattern in self.allowed_commands(container):
            if matches_command_pattern(command, pattern):
                return pattern
        return None

    def _dangerous_base_allowed(self, container: str, base: str) -> bool:
        return base in self.dangerous_commands(container)

    def can_exec(self, container: str, command: str) -> Tuple[bool, str]:
        if not self._permissions['exec']:
            return False, "exec is disabled in security policy"
        if not self.can_access_container(container):
            return False, f"container not in allowed list: {container}"
        if self._mode == SecurityMode.STRICT:
            return False, "exec is not allowed in strict mode"
        if self._mode == SecurityMode.PERMISSIVE:
            return True, "OK"

        matched = self._whitelist_match(container, command)
        if matched is not None:
            # A prefix entry must not reach outside the directory it names
            if command != matched and PATH_TRAVERSAL in command:
                return False, (f"path traversal (..) is not allowed in wildcard whitelist "
                               f"matches: {command}")
            return True, "OK"

        words = command.split()
        if self._dangerous_enabled and words and self._dangerous_base_allowed(container, words[0]):
            return False, f"command not whitelisted: {command} ({DANGEROUS_HINT})"
        return False, f"command not whitelisted: {command}"

    def can_exec_dangerously(self, container: str, command: str) -> Tuple[bool, str]:
        if not self._dangerous_enabled:
            return False, "dangerous mode is not enabled in security policy"
        if not self._permissions['exec']:
            return False, "exec is disabled in security policy"
        if not self.can_access_container(container):
            return False, f"container not in allowed list: {container}"
        if self._mode == SecurityMode.STRICT:
            return False, "dangerous exec is not allowed in strict mode"

        meta = find_shell_metacharacter(command)
        if meta is not None:
            return False, (f"shell metacharacter {meta!r} is not allowed in dangerous mode "
                           "(pipes, redirects, command chaining, command substitution, newlines)")
        if PATH_TRAVERSAL in command:
            return False, "path traversal (..) is not allowed in dangerous mode"

        try:
            tokens = tokenize(command)
        except ParseError as e:
            return False, str(e)
        if not tokens:
            return False, "empty command"

        # The gateway runs the whitespace split, so both views of the
        # command must pass
        argv = command.split()
        for base in (tokens[0], argv[0]):
            if not self._dangerous_base_allowed(container, base):
                return False, (f"command '{base}' is not in exec_dangerously list "
                               f"for container '{container}'")

        for path in extract_path_arguments(tokens[1:] + argv[1:]):
            blocked = self.is_path_blocked(container, path)
            if blocked is not None:
                return False, f"path is blocked: {path} (reason: {blocked.reason})"
        return True, "OK"

    def is_path_blocked(self, container: str, path: str) -> Optional[BlockedPath]:
        return self._blocked.is_path_blocked(container, path)

    # -------------------------------------------------------------------------
    # Output sanitization
    # -------------------------------------------------------------------------

    def mask_output(self, text: str, target: OutputTarget) -> str:
        return self._masker.mask(text, target)

    def mask_logs(self, text: str) -> str:
        return self.mask_output(text, OutputTarget.LOGS)

    def mask_exec(self, text: str) -> str:
        return self.mask_output(text, OutputTarget.EXEC)

    def mask_inspect(self, text: str) -> str:
        return self.mask_output(text, OutputTarget.INSPECT)

    def mask_host_paths(self, text: str) -> str:
        if not self._host_path_masking:
            return text
        return mask_host_paths(text, self._host_path_replacement)

    def masking_status(self) -> Dict:
        return self._masker.status()

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def summary(self) -> Dict:
        """Serializable description of the policy for operators and clients."""
        return {
            'mode': self._mode.value,
            'allowed_containers': list(self._allowed_containers),
            'permissions': dict(self._permissions),
            'exec_whitelist': {k: list(v) for k, v in self._exec_whitelist.items()},
            'exec_dangerously': {
                'enabled': self._dangerous_enabled,
                'commands': {k: list(v) for k, v in self._dangerous_commands.items()},
            },
            'blocked_paths': len(self._blocked),
            'output_masking': self.masking_status(),
            'host_path_masking': self._host_path_masking,
        }


__all__ = [
    'SecurityPolicy', 'tokenize', 'find_shell_metacharacter',
    'extract_path_arguments', 'DANGEROUS_HINT',
]
