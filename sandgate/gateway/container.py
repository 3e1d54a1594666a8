#!/usr/bin/env python3
"""
SandGate Gateway — Container Gateway
======================================
Every container operation passes the security policy before the Docker SDK
is touched:
- list / logs / stats / inspect: container allow-list plus permission flag
- exec: exec whitelist, or dangerous mode when the caller opts in
- list_files / read_file: internal commands gated only by blocked paths
- start / stop / restart: lifecycle permission

Refusals raise PermissionDenied, never an empty result. A missing container
raises NotFound; an unreachable daemon or API failure raises
ExecutionFailure; an exec that outlives its timeout raises ExecutionTimeout.
All text handed back is masked for its output target.

Import from: sandgate.gateway.container
"""

import json
import time
import logging
import contextlib
from datetime import datetime
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Dict, List, Optional, Union

import docker
import docker.errors
import requests.exceptions

from sandgate.core.types import (
    ContainerInfo, ExecResult, ExecutionFailure, ExecutionTimeout,
    FileAccessResult, NotFound, ParseError, PermissionDenied,
)
from sandgate.core.constants import DEFAULT_LOG_TAIL, DEFAULT_EXEC_TIMEOUT
from sandgate.gateway.runner import kill_process_tree

logger = logging.getLogger(__name__)

_DURATION_UNITS = {'s': 1, 'm': 60, 'h': 3600, 'd': 86400}


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def parse_tail(tail: Union[str, int, None]) -> Union[str, int]:
    if tail is None or tail == "":
        tail = DEFAULT_LOG_TAIL
    if isinstance(tail, int):
        return tail
    if tail == "all":
        return "all"
    if tail.isdigit():
        return int(tail)
    raise ParseError(f"invalid tail value: {tail!r} (a line count or 'all')")


def parse_since(since: Union[str, int, datetime, None]) -> Union[int, datetime, None]:
    """Accept a unix timestamp, an ISO-8601 time or a relative duration ("10m")."""
    if since is None or since == "":
        return None
    if isinstance(since, (int, datetime)):
        return since
    if since.isdigit():
        return int(since)
    unit = since[-1:]
    if unit in _DURATION_UNITS and since[:-1].isdigit():
        return int(time.time()) - int(since[:-1]) * _DURATION_UNITS[unit]
    try:
        return datetime.fromisoformat(since.replace('Z', '+00:00'))
    except ValueError:
        raise ParseError(f"invalid since value: {since!r}") from None


def format_stats(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce a raw stats sample to the figures operators look at."""
    cpu = raw.get('cpu_stats') or {}
    precpu = raw.get('precpu_stats') or {}
    cpu_delta = (cpu.get('cpu_usage', {}).get('total_usage', 0)
                 - precpu.get('cpu_usage', {}).get('total_usage', 0))
    system_delta = cpu.get('system_cpu_usage', 0) - precpu.get('system_cpu_usage', 0)
    online = cpu.get('online_cpus') or len(cpu.get('cpu_usage', {}).get('percpu_usage') or []) or 1
    cpu_percent = (cpu_delta / system_delta) * online * 100.0 if system_delta > 0 else 0.0

    memory = raw.get('memory_stats') or {}
    mem_usage = memory.get('usage', 0)
    mem_limit = memory.get('limit', 0)

    rx = tx = 0
    for iface in (raw.get('networks') or {}).values():
        rx += iface.get('rx_bytes', 0)
        tx += iface.get('tx_bytes', 0)

    read = write = 0
    for entry in (raw.get('blkio_stats') or {}).get('io_service_bytes_recursive') or []:
        op = str(entry.get('op', '')).lower()
        if op == 'read':
            read += entry.get('value', 0)
        elif op == 'write':
            write += entry.get('value', 0)

    return {
        'name': str(raw.get('name', '')).lstrip('/'),
        'cpu_percent': round(cpu_percent, 2),
        'memory_usage': mem_usage,
        'memory_limit': mem_limit,
        'memory_percent': round(mem_usage / mem_limit * 100.0, 2) if mem_limit else 0.0,
        'network_rx_bytes': rx,
        'network_tx_bytes': tx,
        'block_read_bytes': read,
        'block_write_bytes': write,
        'pids': (raw.get('pids_stats') or {}).get('current', 0),
    }


def _format_ports(ports: Optional[Dict[str, Any]]) -> List[str]:
    result = []
    for container_port, bindings in sorted((ports or {}).items()):
        if not bindings:
            result.append(container_port)
            continue
        for binding in bindings:
            result.append(f"{binding.get('HostIp', '')}:{binding.get('HostPort', '')}"
                          f"->{container_port}")
    return result


# =============================================================================
# GATEWAY
# =============================================================================

class ContainerGateway:
    """Policy-enforcing facade over the Docker SDK."""

    def __init__(self, policy, client=None, security_logger=None,
                 exec_timeout: float = DEFAULT_EXEC_TIMEOUT):
        self.policy = policy
        self._client = client
        self.security_logger = security_logger
        self.exec_timeout = exec_timeout

    @property
    def client(self):
        """Docker client, connected on first use."""
        if self._client is None:
            try:
                self._client = docker.from_env()
            except docker.errors.DockerException as e:
                logger.error(f"Failed to connect to Docker daemon: {e}")
                raise ExecutionFailure(f"cannot connect to Docker daemon: {e}") from e
        return self._client

    @contextlib.contextmanager
    def _sdk_errors(self, container: str, operation: str):
        """Translate SDK exceptions into NotFound / ExecutionFailure."""
        try:
            yield
        except docker.errors.NotFound as e:
            raise NotFound(f"container not found: {container}") from e
        except docker.errors.APIError as e:
            logger.error(f"Docker API error during {operation} on {container}: {e}")
            raise ExecutionFailure(f"failed to {operation}: {e}") from e
        except (docker.errors.DockerException, requests.exceptions.ConnectionError) as e:
            logger.error(f"Docker daemon unreachable during {operation}: {e}")
            raise ExecutionFailure(f"docker daemon unreachable: {e}") from e

    def _deny(self, action: str, target: str, reason: str, rule=None):
        if self.security_logger:
            self.security_logger.log_blocked(action, target, reason)
        raise PermissionDenied(reason, rule=rule)

    def _log_action(self, action: str, target: str, result: str, details: Dict = None):
        if self.security_logger:
            self.security_logger.log_action(action, target, result, details)

    def _require_access(self, action: str, container: str) -> None:
        if not self.policy.can_access_container(container):
            self._deny(action, container, f"access denied to container: {container}")

    # -------------------------------------------------------------------------
    # Read-only operations
    # -------------------------------------------------------------------------

    def list_containers(self, all: bool = True) -> List[ContainerInfo]:
        if not self.policy.can_inspect():
            self._deny("LIST_CONTAINERS", "*", "inspect permission denied")
        with self._sdk_errors("*", "list containers"):
            containers = self.client.containers.list(all=all)

        result = []
        for c in containers:
            if not self.policy.can_access_container(c.name):
                continue
            attrs = c.attrs or {}
            result.append(ContainerInfo(
                id=c.id[:12],
                name=c.name,
                image=(attrs.get('Config') or {}).get('Image', ''),
                state=c.status,
                status=(attrs.get('State') or {}).get('Status', c.status),
                created=attrs.get('Created', ''),
                labels=dict(c.labels or {}),
                ports=_format_ports(c.ports),
            ))
        return result

    def get_logs(self, container: str, tail: Union[str, int, None] = DEFAULT_LOG_TAIL,
                 since: Union[str, int, datetime, None] = None) -> str:
        if not self.policy.can_get_logs():
            self._deny("LOGS", container, "logs permission denied")
        self._require_access("LOGS", container)

        kwargs: Dict[str, Any] = {'stdout': True, 'stderr': True, 'tail': parse_tail(tail)}
        since_value = parse_since(since)
        if since_value is not None:
            kwargs['since'] = since_value

        with self._sdk_errors(container, "get logs"):
            raw = self.client.containers.get(container).logs(**kwargs)
        text = raw.decode('utf-8', errors='replace') if isinstance(raw, bytes) else str(raw)
        self._log_action("LOGS", container, "SUCCESS", {'tail': kwargs['tail']})
        return self.policy.mask_logs(text)

    def get_stats(self, container: str) -> Dict[str, Any]:
        if not self.policy.can_get_stats():
            self._deny("STATS", container, "stats permission denied")
        self._require_access("STATS", container)

        with self._sdk_errors(container, "get stats"):
            raw = self.client.containers.get(container).stats(stream=False)
        self._log_action("STATS", container, "SUCCESS")
        return format_stats(raw)

    def inspect_container(self, container: str) -> str:
        """Inspection document as masked JSON text."""
        if not self.policy.can_inspect():
            self._deny("INSPECT", container, "inspect permission denied")
        self._require_access("INSPECT", container)

        with self._sdk_errors(container, "inspect container"):
            attrs = self.client.containers.get(container).attrs
        text = json.dumps(attrs, indent=2, default=str)
        self._log_action("INSPECT", container, "SUCCESS")
        return self.policy.mask_host_paths(self.policy.mask_inspect(text))

    # -------------------------------------------------------------------------
    # Exec
    # -------------------------------------------------------------------------

    def exec(self, container: str, command: str, dangerously: bool = False,
             timeout: Optional[float] = None) -> ExecResult:
        """Run a whitelisted (or, with dangerously=True, dangerous-mode) command."""
        if dangerously:
            allowed, reason = self.policy.can_exec_dangerously(container, command)
        else:
            allowed, reason = self.policy.can_exec(container, command)
        if not allowed:
            self._deny("EXEC_DANGEROUS" if dangerously else "EXEC",
                       f"{container}: {command}", reason)

        # Whitespace split only; quoted arguments are not supported
        argv = command.split()
        if not argv:
            self._deny("EXEC", container, "empty command")

        result = self._exec_internal(container, argv, timeout)
        self._log_action("EXEC_DANGEROUS" if dangerously else "EXEC", f"{container}: {command}",
                         "SUCCESS" if result.exit_code == 0 else "FAILED",
                         {'exit_code': result.exit_code})
        return ExecResult(exit_code=result.exit_code, output=self.policy.mask_exec(result.output))

    def _exec_internal(self, container: str, argv: List[str],
                       timeout: Optional[float] = None) -> ExecResult:
        """Run argv in the container, bypassing the whitelist.

        Only called after an exec check or a blocked-path check has passed.
        """
        timeout = timeout or self.exec_timeout
        api = self.client.api
        with self._sdk_errors(container, "exec"):
            exec_id = api.exec_create(container, argv, stdout=True, stderr=True)['Id']

        pool = ThreadPoolExecutor(max_workers=1)
        try:
            future = pool.submit(api.exec_start, exec_id)
            try:
                with self._sdk_errors(container, "exec"):
                    raw = future.result(timeout=timeout)
            except FutureTimeout:
                self._kill_exec(container, exec_id)
                self._log_action("EXEC", f"{container}: {' '.join(argv)}", "TIMEOUT",
                                 {'timeout': timeout})
                raise ExecutionTimeout(timeout, f"{container}: {' '.join(argv)}"[:100]) from None
        finally:
            pool.shutdown(wait=False)

        with self._sdk_errors(container, "inspect exec"):
            info = api.exec_inspect(exec_id)
        output = raw.decode('utf-8', errors='replace') if isinstance(raw, bytes) else str(raw or "")
        exit_code = info.get('ExitCode')
        return ExecResult(exit_code=exit_code if exit_code is not None else -1, output=output)

    def _kill_exec(self, container: str, exec_id: str) -> None:
        """Kill the exec'd process when its pid is visible from this host."""
        try:
            pid = self.client.api.exec_inspect(exec_id).get('Pid') or 0
        except (docker.errors.DockerException, requests.exceptions.ConnectionError) as e:
            logger.warning(f"Cannot inspect timed out exec in {container}: {e}")
            return
        if pid > 0:
            kill_process_tree(pid)
        else:
            logger.warning(f"Timed out exec in {container} has no visible pid")

    # -------------------------------------------------------------------------
    # File access (internal commands)
    # -------------------------------------------------------------------------

    def _file_access(self, action: str, container: str, path: str,
                     argv: List[str]) -> FileAccessResult:
        self._require_access(action, container)

        blocked = self.policy.is_path_blocked(container, path)
        if blocked is not None:
            reason = f"path is blocked: {path} (reason: {blocked.reason})"
            if self.security_logger:
                self.security_logger.log_blocked(action, f"{container}:{path}", reason)
            return FileAccessResult(success=False, blocked=True, block=blocked, error=reason)

        result = self._exec_internal(container, argv)
        output = self.policy.mask_exec(result.output)
        self._log_action(action, f"{container}:{path}",
                         "SUCCESS" if result.exit_code == 0 else "FAILED",
                         {'exit_code': result.exit_code})
        if result.exit_code != 0:
            return FileAccessResult(success=False, data=output,
                                    error=f"command exited with code {result.exit_code}")
        return FileAccessResult(success=True, data=output)

    def list_files(self, container: str, path: str) -> FileAccessResult:
        return self._file_access("LIST_FILES", container, path, ['ls', '-la', path])

    def read_file(self, container: str, path: str, max_lines: int = 0) -> FileAccessResult:
        if max_lines > 0:
            argv = ['head', '-n', str(max_lines), path]
        else:
            argv = ['cat', path]
        return self._file_access("READ_FILE", container, path, argv)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _lifecycle(self, action: str, container: str, timeout: Optional[int] = None) -> None:
        allowed, reason = self.policy.can_lifecycle(container)
        if not allowed:
            self._deny(action.upper(), container, reason)
        with self._sdk_errors(container, f"{action} container"):
            target = self.client.containers.get(container)
            if action == 'start':
                target.start()
            elif timeout is not None:
                getattr(target, action)(timeout=timeout)
            else:
                getattr(target, action)()
        self._log_action(action.upper(), container, "SUCCESS")

    def start_container(self, container: str) -> None:
        self._lifecycle('start', container)

    def stop_container(self, container: str, timeout: Optional[int] = None) -> None:
        self._lifecycle('stop', container, timeout)

    def restart_container(self, container: str, timeout: Optional[int] = None) -> None:
        self._lifecycle('restart', container, timeout)


__all__ = ['ContainerGateway', 'parse_tail', 'parse_since', 'format_stats']
