#!/usr/bin/env python3
"""
SandGate Gateway — Host Command Executor
==========================================
Runs whitelisted CLI commands on the host OS on behalf of the assistant.
Authorization is delegated to HostCommandPolicy; execution to the process
runner (argv, workspace root as working directory, reduced environment,
timeout-bounded).

Import from: sandgate.gateway.host_exec
"""

import logging
from pathlib import Path
from typing import Optional, Union

from sandgate.core.types import (
    ExecutionFailure, ExecutionTimeout, ParseError, PermissionDenied, ProcessResult,
)
from sandgate.core.constants import MAX_OUTPUT_LENGTH
from sandgate.core.access.host_policy import HostCommandPolicy
from sandgate.gateway.runner import run_with_timeout

logger = logging.getLogger(__name__)


class HostCommandExecutor:
    """Host CLI access gated by whitelist, deny list and blocked paths."""

    def __init__(self, config, policy=None, workspace_root: Union[str, Path] = ".",
                 security_logger=None, max_output: int = MAX_OUTPUT_LENGTH):
        self.config = config
        blocked_index = policy.blocked_index if policy is not None else None
        self.host_policy = HostCommandPolicy(config, blocked_index)
        self.workspace_root = Path(workspace_root).expanduser().resolve()
        self.security_logger = security_logger
        self.max_output = max_output

    @property
    def enabled(self) -> bool:
        return self.host_policy.enabled

    def _blocked(self, command: str, reason: str) -> None:
        if self.security_logger:
            self.security_logger.log_blocked("HOST_COMMAND", command, reason)

    def _action(self, command: str, result: str, details: dict = None) -> None:
        if self.security_logger:
            self.security_logger.log_action("HOST_COMMAND", command, result, details)

    def execute(self, command: str, dangerously: bool = False,
                timeout: Optional[float] = None) -> ProcessResult:
        """Authorize and run command.

        Raises PermissionDenied, ParseError, ExecutionTimeout or
        ExecutionFailure. A non-zero exit code is returned, not raised.
        """
        try:
            argv = self.host_policy.authorize(command, dangerously=dangerously)
        except PermissionDenied as e:
            self._blocked(command, e.reason)
            raise
        except ParseError as e:
            self._blocked(command, f"parse error: {e}")
            raise

        timeout = timeout or self.config.timeout
        logger.debug("Running host command %r (timeout=%ss)", argv, timeout)
        try:
            result = run_with_timeout(argv, cwd=str(self.workspace_root), timeout=timeout,
                                      max_output=self.max_output)
        except ExecutionTimeout:
            self._action(command, "TIMEOUT", {'timeout': timeout})
            raise
        except ExecutionFailure as e:
            self._action(command, "ERROR", {'error': str(e)})
            raise

        self._action(command, "SUCCESS" if result.exit_code == 0 else "FAILED",
                     {'exit_code': result.exit_code, 'dangerously': dangerously})
        return result


__all__ = ['HostCommandExecutor']
