#!/usr/bin/env python3
"""
SandGate Gateway — Process Runner
===================================
Timeout-bounded execution of an argv list on the host:
- No shell, reduced environment (SAFE_ENV_VARS only)
- On expiry the whole process tree is killed (psutil) and
  ExecutionTimeout is raised
- A non-zero exit code is a normal ProcessResult
- A missing binary or other OS-level failure raises ExecutionFailure

Shared by host command execution and host tool runs.

Import from: sandgate.gateway.runner
"""

import os
import logging
import subprocess
from typing import Dict, List, Optional

import psutil

from sandgate.core.types import ExecutionFailure, ExecutionTimeout, ProcessResult
from sandgate.core.constants import SAFE_ENV_VARS, MAX_OUTPUT_LENGTH

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n... [truncated]"


def safe_environment(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    env = {k: os.environ[k] for k in SAFE_ENV_VARS if k in os.environ}
    if extra:
        env.update(extra)
    return env


def truncate_output(output: str, limit: int = MAX_OUTPUT_LENGTH) -> str:
    if limit > 0 and len(output) > limit:
        return output[:limit] + TRUNCATION_MARKER
    return output


def kill_process_tree(pid: int) -> None:
    """Kill pid and every descendant. Vanished processes are ignored."""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return
    procs = parent.children(recursive=True) + [parent]
    for proc in procs:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass
    _, alive = psutil.wait_procs(procs, timeout=3)
    for proc in alive:
        logger.warning("Process %d survived kill", proc.pid)


def run_with_timeout(argv: List[str], cwd: Optional[str] = None, timeout: float = 60,
                     env: Optional[Dict[str, str]] = None,
                     max_output: int = MAX_OUTPUT_LENGTH) -> ProcessResult:
    if not argv:
        raise ExecutionFailure("empty argv")
    if env is None:
        env = safe_environment()

    try:
        proc = subprocess.Popen(
            argv,
            shell=False,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors='replace',
            cwd=cwd,
            env=env,
        )
    except OSError as e:
        raise ExecutionFailure(f"failed to start {argv[0]}: {e}") from e

    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning("Process %d (%s) timed out after %ss, killing", proc.pid, argv[0], timeout)
        kill_process_tree(proc.pid)
        proc.communicate()
        raise ExecutionTimeout(timeout, ' '.join(argv)[:100])

    return ProcessResult(
        stdout=truncate_output(stdout or "", max_output),
        stderr=truncate_output(stderr or "", max_output),
        exit_code=proc.returncode,
    )


__all__ = ['run_with_timeout', 'kill_process_tree', 'safe_environment', 'truncate_output']
