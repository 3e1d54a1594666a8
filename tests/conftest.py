"""
Shared pytest fixtures for the SandGate test suite.

Provides a temporary base directory, config objects, a file-backed
SecurityLogger and a mock Docker client so gateway tests run without a
Docker daemon.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Import after path fix
from sandgate.core.config import (
    GatewayConfig, HostCommandsConfig, HostToolsConfig, SecurityConfig,
)
from sandgate.core.audit.logger import SecurityLogger


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_base(tmp_path):
    """A temporary SandGate home with a logs directory."""
    (tmp_path / "logs").mkdir()
    return tmp_path


@pytest.fixture
def config(tmp_base):
    """A GatewayConfig pointing at the temp directory."""
    return GatewayConfig(base_dir=tmp_base, workspace_root=str(tmp_base))


@pytest.fixture
def security_config():
    """Security section with global patterns only and no auto-import."""
    return SecurityConfig.from_dict({
        'mode': 'moderate',
        'allowed_containers': ['api', 'web-*'],
        'exec_whitelist': {
            'api': ['ls', 'cat /app/README.md'],
            '*': ['whoami', 'diff *'],
        },
        'blocked_paths': {
            'manual': {'api': ['/etc/shadow', '/app/config/*'], '*': ['/root/*']},
        },
    })


@pytest.fixture
def host_commands_config():
    return HostCommandsConfig.from_dict({
        'enabled': True,
        'whitelist': {
            'git': ['status', 'diff *'],
            'echo': ['*'],
            'docker': ['ps', 'logs *', 'exec *'],
        },
        'deny': {'echo': ['dangerous *']},
        'dangerously': {
            'enabled': True,
            'commands': {'git': ['log', 'show'], '*': ['env']},
        },
    })


@pytest.fixture
def host_tools_config(tmp_path):
    return HostToolsConfig.from_dict({
        'enabled': True,
        'approved_dir': str(tmp_path / "approved"),
        'staging_dirs': [str(tmp_path / "workspace" / "staging")],
    })


# ---------------------------------------------------------------------------
# Audit fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def security_logger(tmp_base):
    """A real SecurityLogger writing into the temp logs directory."""
    return SecurityLogger(log_dir=tmp_base / "logs")


@pytest.fixture
def mock_logger():
    """Drop-in SecurityLogger replacement that records calls."""
    logger = MagicMock(spec=SecurityLogger)
    return logger


# ---------------------------------------------------------------------------
# Docker fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def docker_client():
    """Mock docker.DockerClient with a successful low-level exec API."""
    client = MagicMock()
    client.api.exec_create.return_value = {'Id': 'exec-1'}
    client.api.exec_start.return_value = b"total 0\n"
    client.api.exec_inspect.return_value = {'ExitCode': 0, 'Pid': 0}
    return client
