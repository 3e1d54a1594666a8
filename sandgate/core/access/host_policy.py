#!/usr/bin/env python3
"""
SandGate Core Access — Host Command Policy
============================================
Authorization of host-OS command strings:
- Shell metacharacters and command substitution rejected on the raw string
- Quote-aware tokenization, unterminated quotes are a ParseError
- Any token containing '..' is rejected in normal and dangerous mode
- deny[base] is consulted first and always wins over the whitelist
- whitelist[base] holds exact or trailing-'*' prefix argument patterns
- Dangerous mode: dangerously.commands[base] lists permitted first
  arguments ("*" = any), dangerously.commands["*"] lists base commands
  permitted with any arguments
- Every container operand of a docker/compose command must pass
  allowed_containers
- File-path arguments are checked against the shared blocked-path index:
  the command run inside a container in that container's scope, all
  other arguments in the host scope

Import from: sandgate.core.access.host_policy
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Set, Tuple

from sandgate.core.types import PermissionDenied, ParseError
from sandgate.core.constants import (
    PATH_TRAVERSAL, DOCKER_COMMANDS,
    DOCKER_GLOBAL_VALUE_FLAGS, COMPOSE_GLOBAL_VALUE_FLAGS,
    DOCKER_SUBCOMMAND_VALUE_FLAGS, COMPOSE_SUBCOMMAND_VALUE_FLAGS,
    DOCKER_TARGET_COMMAND_SUBCOMMANDS, COMPOSE_TARGET_COMMAND_SUBCOMMANDS,
    DOCKER_NO_TARGET_SUBCOMMANDS, COMPOSE_NO_TARGET_SUBCOMMANDS,
)
from sandgate.core.access.patterns import first_command_match, match_any
from sandgate.core.access.policy import (
    DANGEROUS_HINT, tokenize, find_shell_metacharacter, extract_path_arguments,
)

logger = logging.getLogger(__name__)


def split_command(command: str) -> Tuple[str, str, List[str]]:
    """Return (base command, argument string, tokens).

    The argument string is the remaining tokens joined by single spaces.
    """
    tokens = tokenize(command)
    if not tokens:
        return "", "", []
    return tokens[0], ' '.join(tokens[1:]), tokens


@dataclass
class DockerTargets:
    """What a host-side docker command points at.

    containers:       every container (or compose service) operand
    command_index:    start of the command run inside containers[0], or -1
    container_paths:  (container, path) pairs from 'docker cp' operands
    operand_indices:  token positions of the operands above
    """
    containers: List[str] = field(default_factory=list)
    command_index: int = -1
    container_paths: List[Tuple[str, str]] = field(default_factory=list)
    operand_indices: Set[int] = field(default_factory=set)


def _skip_options(tokens: List[str], i: int, value_flags: FrozenSet[str]) -> int:
    while i < len(tokens):
        token = tokens[i]
        if token == '--':
            return i + 1
        if not token.startswith('-') or token == '-':
            return i
        i += 2 if token in value_flags else 1
    return i


def docker_targets(tokens: List[str]) -> DockerTargets:
    """Locate every container named by a docker or compose command.

    Global options before the subcommand are skipped (docker compose -f
    x.yml logs web). After the subcommand every non-flag operand is a
    target, except for exec/run-style subcommands where only the first one
    is and the rest is the command run inside it.
    """
    targets = DockerTargets()
    if not tokens or tokens[0] not in DOCKER_COMMANDS:
        return targets

    compose = tokens[0] == 'docker-compose'
    i = _skip_options(tokens, 1,
                      COMPOSE_GLOBAL_VALUE_FLAGS if compose else DOCKER_GLOBAL_VALUE_FLAGS)
    if not compose and i < len(tokens) and tokens[i] == 'compose':
        compose = True
        i = _skip_options(tokens, i + 1, COMPOSE_GLOBAL_VALUE_FLAGS)
    if i >= len(tokens):
        return targets

    subcommand = tokens[i]
    i += 1
    if not compose and subcommand == 'container' and i < len(tokens):
        subcommand = tokens[i]
        i += 1

    if compose:
        value_flags = COMPOSE_SUBCOMMAND_VALUE_FLAGS.get(subcommand, frozenset())
        no_target = COMPOSE_NO_TARGET_SUBCOMMANDS
        with_command = COMPOSE_TARGET_COMMAND_SUBCOMMANDS
    else:
        value_flags = DOCKER_SUBCOMMAND_VALUE_FLAGS.get(subcommand, frozenset())
        no_target = DOCKER_NO_TARGET_SUBCOMMANDS
        with_command = DOCKER_TARGET_COMMAND_SUBCOMMANDS
    if subcommand in no_target:
        return targets

    options_done = False
    while i < len(tokens):
        token = tokens[i]
        if not options_done and token == '--':
            options_done = True
            i += 1
            continue
        if not options_done and token.startswith('-') and token != '-':
            i += 2 if token in value_flags else 1
            continue
        if not compose and subcommand == 'cp':
            # container:path, anything else is a host path
            if ':' in token:
                name, path = token.split(':', 1)
                targets.containers.append(name)
                targets.container_paths.append((name, path))
                targets.operand_indices.add(i)
            i += 1
            continue
        targets.containers.append(token)
        targets.operand_indices.add(i)
        if subcommand in with_command:
            targets.command_index = i + 1
            return targets
        i += 1
    return targets


class HostCommandPolicy:
    """Decides whether a host command string may run."""

    def __init__(self, config, blocked_index=None):
        self.config = config
        self.blocked_index = blocked_index

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def dangerous_enabled(self) -> bool:
        return self.config.dangerously.enabled

    def allowed_commands(self) -> dict:
        return {base: list(patterns) for base, patterns in self.config.whitelist.items()}

    def dangerous_commands(self) -> dict:
        return {base: list(subs) for base, subs in self.config.dangerously.commands.items()}

    # -------------------------------------------------------------------------
    # Rule matching
    # -------------------------------------------------------------------------

    def _deny_match(self, base: str, args: str) -> Optional[str]:
        return first_command_match(args, self.config.deny.get(base, ()))

    def _whitelist_match(self, base: str, args: str) -> Optional[str]:
        return first_command_match(args, self.config.whitelist.get(base, ()))

    def _dangerous_match(self, base: str, tokens: List[str]) -> bool:
        commands = self.config.dangerously.commands
        if base in commands.get('*', ()):
            return True
        subcommands = commands.get(base)
        if subcommands is None:
            return False
        if '*' in subcommands:
            return True
        return len(tokens) > 1 and tokens[1] in subcommands

    def _container_allowed(self, name: str) -> bool:
        allowed = self.config.allowed_containers
        return not allowed or match_any(allowed, name) is not None

    # -------------------------------------------------------------------------
    # Authorization
    # -------------------------------------------------------------------------

    def authorize(self, command: str, dangerously: bool = False) -> List[str]:
        """Return the argv for an authorized command.

        Raises PermissionDenied (carrying the matched rule where one exists)
        or ParseError for malformed quoting.
        """
        if not self.config.enabled:
            raise PermissionDenied("host commands are disabled")
        if dangerously and not self.config.dangerously.enabled:
            raise PermissionDenied("dangerous mode is not enabled for host commands")

        meta = find_shell_metacharacter(command)
        if meta is not None:
            raise PermissionDenied(
                f"shell metacharacter {meta!r} is not allowed: {command}", rule=meta)

        base, args, tokens = split_command(command)
        if not tokens:
            raise PermissionDenied("empty command")

        if any(PATH_TRAVERSAL in token for token in tokens):
            raise PermissionDenied(f"path traversal detected: {command}", rule=PATH_TRAVERSAL)

        denied_by = self._deny_match(base, args)
        if denied_by is not None:
            raise PermissionDenied(f"command denied: {command}", rule=f"{base} {denied_by}")

        if self._whitelist_match(base, args) is None:
            dangerous_ok = self._dangerous_match(base, tokens)
            if not (dangerously and dangerous_ok):
                if self.config.dangerously.enabled and dangerous_ok:
                    raise PermissionDenied(f"command not whitelisted: {command} ({DANGEROUS_HINT})")
                if dangerously:
                    raise PermissionDenied(f"command not allowed in dangerous mode: {command}")
                raise PermissionDenied(f"command not whitelisted: {command}")

        host_scope = self.config.path_scope
        checks = [(host_scope, path) for path in extract_path_arguments(tokens[1:])]
        if base in DOCKER_COMMANDS:
            targets = docker_targets(tokens)
            for container in targets.containers:
                if not self._container_allowed(container):
                    raise PermissionDenied(
                        f"container not in allowed list: {container}",
                        rule=list(self.config.allowed_containers))

            end = targets.command_index if targets.command_index >= 0 else len(tokens)
            host_args = [token for i, token in enumerate(tokens[1:end], 1)
                         if i not in targets.operand_indices]
            checks = [(host_scope, path) for path in extract_path_arguments(host_args)]
            if targets.command_index >= 0:
                checks.extend((targets.containers[0], path) for path in
                              extract_path_arguments(tokens[targets.command_index:]))
            checks.extend(targets.container_paths)

        if self.blocked_index is not None:
            for scope, path in checks:
                blocked = self.blocked_index.is_path_blocked(scope, path)
                if blocked is not None:
                    raise PermissionDenied(
                        f"path is blocked: {path} (reason: {blocked.reason})", rule=blocked)
        return tokens

    def can_exec(self, command: str) -> Tuple[bool, str]:
        return self._check(command, dangerously=False)

    def can_exec_dangerously(self, command: str) -> Tuple[bool, str]:
        return self._check(command, dangerously=True)

    def _check(self, command: str, dangerously: bool) -> Tuple[bool, str]:
        try:
            self.authorize(command, dangerously=dangerously)
        except PermissionDenied as e:
            return False, e.reason
        except ParseError as e:
            return False, f"failed to parse command: {e}"
        return True, "OK"


__all__ = ['HostCommandPolicy', 'DockerTargets', 'split_command', 'docker_targets', 'tokenize']
