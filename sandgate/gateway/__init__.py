"""
Gateway Layer — Enforcement surfaces.

Classes:
- ContainerGateway: Policy-checked Docker operations with output masking
- HostCommandExecutor: Whitelisted host CLI commands

Functions:
- run_with_timeout: argv execution with process-tree kill on timeout
"""

from sandgate.gateway.runner import run_with_timeout
from sandgate.gateway.container import ContainerGateway
from sandgate.gateway.host_exec import HostCommandExecutor

__all__ = ['ContainerGateway', 'HostCommandExecutor', 'run_with_timeout']
