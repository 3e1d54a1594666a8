#!/usr/bin/env python3
"""
SandGate Host Tools — Tool Registry
=====================================
Discovers and runs host tool scripts.

States:
- disabled: every call raises PermissionDenied
- legacy (no approved_dir): tools are read straight from the configured
  directories, no approval step
- secure: directories in strict priority order
    1. staging dirs (only in dev mode)
    2. per-project approved dir
    3. common approved dir (when enabled)
  The first directory holding a name wins.

Import from: sandgate.hosttools.registry
"""

import os
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from sandgate.core.types import (
    ExecutionFailure, ExecutionTimeout, NotFound, PermissionDenied, ProcessResult, ToolInfo,
)
from sandgate.core.constants import TOOL_INTERPRETERS, MAX_OUTPUT_LENGTH
from sandgate.gateway.runner import run_with_timeout
from sandgate.hosttools import toolparser
from sandgate.hosttools.approval import common_approved_dir, project_approved_dir

logger = logging.getLogger(__name__)


class HostToolRegistry:
    """Read side of the host tool store."""

    def __init__(self, config, workspace_root: Union[str, Path] = ".", dev_mode: bool = False,
                 security_logger=None, max_output: int = MAX_OUTPUT_LENGTH):
        self.config = config
        self.workspace_root = Path(os.path.abspath(os.path.expanduser(str(workspace_root))))
        self.dev_mode = dev_mode
        self.security_logger = security_logger
        self.max_output = max_output

    @property
    def is_enabled(self) -> bool:
        return bool(self.config and self.config.enabled)

    @property
    def is_secure_mode(self) -> bool:
        return bool(self.config and self.config.is_secure_mode)

    def _resolve(self, directory: str) -> Path:
        path = Path(directory).expanduser()
        return path if path.is_absolute() else self.workspace_root / path

    def tool_dirs(self) -> List[Path]:
        if not self.is_secure_mode:
            return [self._resolve(d) for d in self.config.directories]

        dirs = []
        if self.dev_mode:
            dirs.extend(self._resolve(d) for d in self.config.effective_staging_dirs)
        dirs.append(project_approved_dir(self.config.approved_dir, self.workspace_root))
        if self.config.common:
            dirs.append(common_approved_dir(self.config.approved_dir))
        return dirs

    def _require_enabled(self, action: str, target: str) -> None:
        if not self.is_enabled:
            if self.security_logger:
                self.security_logger.log_blocked(action, target, "host tools are disabled")
            raise PermissionDenied("host tools are disabled")

    def _require_name(self, action: str, name: str) -> None:
        ok, reason = toolparser.validate_name(name)
        if not ok:
            if self.security_logger:
                self.security_logger.log_blocked(action, name, reason)
            raise PermissionDenied(reason, rule=name)

    def list_tools(self) -> List[ToolInfo]:
        self._require_enabled("TOOL_LIST", "*")
        seen = set()
        tools = []
        for directory in self.tool_dirs():
            try:
                found = toolparser.list_tools(directory, self.config.allowed_extensions)
            except OSError as e:
                logger.debug("Tool directory %s unavailable: %s", directory, e)
                continue
            for tool in found:
                if tool.name not in seen:
                    seen.add(tool.name)
                    tools.append(tool)
        return tools

    def _locate(self, name: str) -> Tuple[Path, ToolInfo]:
        for directory in self.tool_dirs():
            try:
                info = toolparser.get_tool_info(directory, name, self.config.allowed_extensions)
            except NotFound:
                continue
            return directory / name, info
        raise NotFound(f"tool not found: {name}")

    def get_tool_info(self, name: str) -> ToolInfo:
        self._require_enabled("TOOL_INFO", name)
        self._require_name("TOOL_INFO", name)
        return self._locate(name)[1]

    def run_tool(self, name: str, args: Sequence[str] = (),
                 timeout: Optional[float] = None) -> ProcessResult:
        self._require_enabled("TOOL_RUN", name)
        self._require_name("TOOL_RUN", name)
        path, info = self._locate(name)

        interpreter = TOOL_INTERPRETERS.get(info.extension)
        if interpreter is None:
            raise PermissionDenied(f"unsupported extension: {info.extension}", rule=name)
        argv = list(interpreter) + [str(path)] + [str(a) for a in args]
        timeout = timeout or self.config.timeout

        logger.debug("Running host tool %s from %s", name, path.parent)
        try:
            result = run_with_timeout(argv, cwd=str(self.workspace_root), timeout=timeout,
                                      max_output=self.max_output)
        except (ExecutionTimeout, ExecutionFailure) as e:
            if self.security_logger:
                self.security_logger.log_action("TOOL_RUN", name, "ERROR", {'error': str(e)})
            raise
        if self.security_logger:
            self.security_logger.log_action(
                "TOOL_RUN", name, "SUCCESS" if result.exit_code == 0 else "FAILED",
                {'exit_code': result.exit_code, 'source': str(path.parent)})
        return result


__all__ = ['HostToolRegistry']
