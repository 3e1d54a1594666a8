"""
SandGate Configuration
=======================
Configuration dataclasses with fail-secure defaults for the policy engine,
host command execution and host tools.

The engine consumes already-parsed configuration: every dataclass has a
from_dict() that converts a plain mapping (as produced by a YAML or JSON
parser). load_config() is the thin YAML entry point used by the operator CLI.

Import from: sandgate.core.config
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from dataclasses import dataclass, field

import yaml

from sandgate.core.types import SandGateError, SecurityMode
from sandgate.core.version import CONFIG_FILENAMES
from sandgate.core.constants import (
    DEFAULT_SCAN_FILES, DEFAULT_GLOBAL_BLOCKED_PATTERNS,
    CLAUDE_SETTINGS_FILES, GEMINI_IGNORE_FILES,
    DEFAULT_MASK_REPLACEMENT, DEFAULT_MASKING_PATTERNS,
    DEFAULT_HOST_PATH_REPLACEMENT, DEFAULT_TOOL_EXTENSIONS,
    DEFAULT_HOST_SCOPE, DEFAULT_EXEC_TIMEOUT, DEFAULT_COMMAND_TIMEOUT,
    MAX_OUTPUT_LENGTH,
)


class ConfigError(SandGateError):
    """Raised when a configuration mapping is malformed or invalid."""
    pass


# =============================================================================
# MAPPING HELPERS
# =============================================================================

def _section(data: Optional[Mapping], key: str) -> Mapping:
    value = (data or {}).get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _str_list(value: Any, key: str = "") -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"'{key}' must be a list of strings")
    return [str(v) for v in value]


def _list_map(value: Any, key: str = "") -> Dict[str, List[str]]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' must be a mapping of name -> list")
    return {str(k): _str_list(v, f"{key}.{k}") for k, v in value.items()}


# =============================================================================
# SECURITY POLICY SECTIONS
# =============================================================================

@dataclass
class PermissionsConfig:
    logs: bool = True
    inspect: bool = True
    stats: bool = True
    exec: bool = True
    lifecycle: bool = False

    @classmethod
    def from_dict(cls, data: Mapping) -> 'PermissionsConfig':
        defaults = cls()
        return cls(**{name: bool(data.get(name, getattr(defaults, name)))
                      for name in ('logs', 'inspect', 'stats', 'exec', 'lifecycle')})


@dataclass
class SettingsScanConfig:
    """Where to look for one family of AI-tool settings/ignore files."""
    enabled: bool = True
    max_depth: int = 0
    settings_files: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping, default_files: List[str]) -> 'SettingsScanConfig':
        files = data.get('settings_files')
        return cls(
            enabled=bool(data.get('enabled', True)),
            max_depth=int(data.get('max_depth', 0)),
            settings_files=_str_list(files, 'settings_files') if files is not None
            else list(default_files),
        )


@dataclass
class AutoImportConfig:
    enabled: bool = False
    workspace_root: str = "."
    scan_files: List[str] = field(default_factory=lambda: list(DEFAULT_SCAN_FILES))
    global_patterns: List[str] = field(
        default_factory=lambda: list(DEFAULT_GLOBAL_BLOCKED_PATTERNS))
    claude_code_settings: SettingsScanConfig = field(
        default_factory=lambda: SettingsScanConfig(settings_files=list(CLAUDE_SETTINGS_FILES)))
    gemini_settings: SettingsScanConfig = field(
        default_factory=lambda: SettingsScanConfig(settings_files=list(GEMINI_IGNORE_FILES)))

    @classmethod
    def from_dict(cls, data: Mapping) -> 'AutoImportConfig':
        cfg = cls(
            enabled=bool(data.get('enabled', False)),
            workspace_root=str(data.get('workspace_root') or "."),
            claude_code_settings=SettingsScanConfig.from_dict(
                _section(data, 'claude_code_settings'), CLAUDE_SETTINGS_FILES),
            gemini_settings=SettingsScanConfig.from_dict(
                _section(data, 'gemini_settings'), GEMINI_IGNORE_FILES),
        )
        if 'scan_files' in data:
            cfg.scan_files = _str_list(data['scan_files'], 'scan_files')
        if 'global_patterns' in data:
            cfg.global_patterns = _str_list(data['global_patterns'], 'global_patterns')
        return cfg


@dataclass
class BlockedPathsConfig:
    manual: Dict[str, List[str]] = field(default_factory=dict)
    auto_import: AutoImportConfig = field(default_factory=AutoImportConfig)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'BlockedPathsConfig':
        return cls(
            manual=_list_map(data.get('manual'), 'manual'),
            auto_import=AutoImportConfig.from_dict(_section(data, 'auto_import')),
        )


@dataclass
class MaskingTargetsConfig:
    logs: bool = True
    exec: bool = True
    inspect: bool = True

    @classmethod
    def from_dict(cls, data: Mapping, default: 'MaskingTargetsConfig' = None) -> 'MaskingTargetsConfig':
        default = default or cls()
        return cls(
            logs=bool(data.get('logs', default.logs)),
            exec=bool(data.get('exec', default.exec)),
            inspect=bool(data.get('inspect', default.inspect)),
        )


@dataclass
class MaskingRuleConfig:
    """A masking rule with its own replacement and targets."""
    pattern: str
    replacement: Optional[str] = None
    apply_to: Optional[MaskingTargetsConfig] = None


@dataclass
class OutputMaskingConfig:
    enabled: bool = True
    replacement: str = DEFAULT_MASK_REPLACEMENT
    patterns: List[str] = field(default_factory=lambda: list(DEFAULT_MASKING_PATTERNS))
    apply_to: MaskingTargetsConfig = field(default_factory=MaskingTargetsConfig)
    rules: List[MaskingRuleConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'OutputMaskingConfig':
        apply_to = MaskingTargetsConfig.from_dict(_section(data, 'apply_to'))
        cfg = cls(
            enabled=bool(data.get('enabled', True)),
            replacement=str(data.get('replacement') or DEFAULT_MASK_REPLACEMENT),
            apply_to=apply_to,
        )
        if 'patterns' in data:
            cfg.patterns = _str_list(data['patterns'], 'patterns')
        for raw in data.get('rules') or []:
            if isinstance(raw, str):
                cfg.rules.append(MaskingRuleConfig(pattern=raw))
                continue
            if not isinstance(raw, Mapping) or 'pattern' not in raw:
                raise ConfigError("each output_masking rule needs a 'pattern'")
            targets = raw.get('apply_to')
            cfg.rules.append(MaskingRuleConfig(
                pattern=str(raw['pattern']),
                replacement=raw.get('replacement'),
                apply_to=MaskingTargetsConfig.from_dict(targets, apply_to)
                if isinstance(targets, Mapping) else None,
            ))
        return cfg


@dataclass
class DangerousModeConfig:
    enabled: bool = False
    commands: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'DangerousModeConfig':
        return cls(
            enabled=bool(data.get('enabled', False)),
            commands=_list_map(data.get('commands'), 'commands'),
        )


@dataclass
class HostPathMaskingConfig:
    enabled: bool = True
    replacement: str = DEFAULT_HOST_PATH_REPLACEMENT

    @classmethod
    def from_dict(cls, data: Mapping) -> 'HostPathMaskingConfig':
        return cls(
            enabled=bool(data.get('enabled', True)),
            replacement=str(data.get('replacement') or DEFAULT_HOST_PATH_REPLACEMENT),
        )


@dataclass
class SecurityConfig:
    mode: str = SecurityMode.MODERATE.value
    allowed_containers: List[str] = field(default_factory=list)
    exec_whitelist: Dict[str, List[str]] = field(default_factory=dict)
    permissions: PermissionsConfig = field(default_factory=PermissionsConfig)
    blocked_paths: BlockedPathsConfig = field(default_factory=BlockedPathsConfig)
    output_masking: OutputMaskingConfig = field(default_factory=OutputMaskingConfig)
    exec_dangerously: DangerousModeConfig = field(default_factory=DangerousModeConfig)
    host_path_masking: HostPathMaskingConfig = field(default_factory=HostPathMaskingConfig)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'SecurityConfig':
        return cls(
            mode=str(data.get('mode') or SecurityMode.MODERATE.value),
            allowed_containers=_str_list(data.get('allowed_containers'), 'allowed_containers'),
            exec_whitelist=_list_map(data.get('exec_whitelist'), 'exec_whitelist'),
            permissions=PermissionsConfig.from_dict(_section(data, 'permissions')),
            blocked_paths=BlockedPathsConfig.from_dict(_section(data, 'blocked_paths')),
            output_masking=OutputMaskingConfig.from_dict(_section(data, 'output_masking')),
            exec_dangerously=DangerousModeConfig.from_dict(_section(data, 'exec_dangerously')),
            host_path_masking=HostPathMaskingConfig.from_dict(_section(data, 'host_path_masking')),
        )

    def validate(self) -> None:
        valid = {m.value for m in SecurityMode}
        if self.mode not in valid:
            raise ConfigError(
                f"invalid security mode: {self.mode} (must be strict, moderate, or permissive)")


# =============================================================================
# HOST ACCESS SECTIONS
# =============================================================================

@dataclass
class HostCommandsConfig:
    enabled: bool = False
    allowed_containers: List[str] = field(default_factory=list)
    whitelist: Dict[str, List[str]] = field(default_factory=dict)
    deny: Dict[str, List[str]] = field(default_factory=dict)
    dangerously: DangerousModeConfig = field(default_factory=DangerousModeConfig)
    timeout: int = DEFAULT_COMMAND_TIMEOUT
    path_scope: str = DEFAULT_HOST_SCOPE

    @classmethod
    def from_dict(cls, data: Mapping) -> 'HostCommandsConfig':
        return cls(
            enabled=bool(data.get('enabled', False)),
            allowed_containers=_str_list(data.get('allowed_containers'), 'allowed_containers'),
            whitelist=_list_map(data.get('whitelist'), 'whitelist'),
            deny=_list_map(data.get('deny'), 'deny'),
            dangerously=DangerousModeConfig.from_dict(_section(data, 'dangerously')),
            timeout=int(data.get('timeout', DEFAULT_COMMAND_TIMEOUT)),
            path_scope=str(data.get('path_scope') or DEFAULT_HOST_SCOPE),
        )


@dataclass
class HostToolsConfig:
    enabled: bool = False
    directories: List[str] = field(default_factory=lambda: [".sandbox/host-tools"])
    approved_dir: str = ""
    staging_dirs: List[str] = field(default_factory=lambda: [".sandbox/host-tools"])
    common: bool = True
    allowed_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_TOOL_EXTENSIONS))
    timeout: int = 60

    @property
    def is_secure_mode(self) -> bool:
        """Secure mode reads tools only from the approved store."""
        return bool(self.approved_dir)

    @property
    def effective_staging_dirs(self) -> List[str]:
        return list(self.staging_dirs or self.directories)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'HostToolsConfig':
        cfg = cls(
            enabled=bool(data.get('enabled', False)),
            approved_dir=str(data.get('approved_dir') or ""),
            common=bool(data.get('common', True)),
            timeout=int(data.get('timeout', 60)),
        )
        if 'directories' in data:
            cfg.directories = _str_list(data['directories'], 'directories')
        if 'staging_dirs' in data:
            cfg.staging_dirs = _str_list(data['staging_dirs'], 'staging_dirs')
        if 'allowed_extensions' in data:
            cfg.allowed_extensions = _str_list(data['allowed_extensions'], 'allowed_extensions')
        return cfg


# =============================================================================
# TOP-LEVEL CONFIG
# =============================================================================

@dataclass
class GatewayConfig:
    base_dir: Path = field(default_factory=lambda: Path(
        os.environ.get('SANDGATE_HOME', str(Path.home() / '.sandgate'))))
    log_dir: Optional[Path] = None
    log_level: str = "info"
    workspace_root: str = "."

    exec_timeout: int = DEFAULT_EXEC_TIMEOUT
    max_output_length: int = MAX_OUTPUT_LENGTH

    security: SecurityConfig = field(default_factory=SecurityConfig)
    host_commands: HostCommandsConfig = field(default_factory=HostCommandsConfig)
    host_tools: HostToolsConfig = field(default_factory=HostToolsConfig)

    def __post_init__(self):
        self.base_dir = Path(self.base_dir)
        if self.log_dir is None:
            self.log_dir = self.base_dir / "logs"
        else:
            self.log_dir = Path(self.log_dir)

    @property
    def workspace_path(self) -> Path:
        return Path(self.workspace_root).expanduser().resolve()

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> 'GatewayConfig':
        data = data or {}
        if not isinstance(data, Mapping):
            raise ConfigError("configuration root must be a mapping")
        host_access = _section(data, 'host_access')
        logging_section = _section(data, 'logging')
        kwargs: Dict[str, Any] = {
            'security': SecurityConfig.from_dict(_section(data, 'security')),
            'host_commands': HostCommandsConfig.from_dict(_section(host_access, 'host_commands')),
            'host_tools': HostToolsConfig.from_dict(_section(host_access, 'host_tools')),
            'workspace_root': str(host_access.get('workspace_root') or "."),
            'log_level': str(logging_section.get('level') or "info"),
        }
        if data.get('base_dir'):
            kwargs['base_dir'] = Path(str(data['base_dir'])).expanduser()
        if logging_section.get('dir'):
            kwargs['log_dir'] = Path(str(logging_section['dir'])).expanduser()
        if 'exec_timeout' in data:
            kwargs['exec_timeout'] = int(data['exec_timeout'])
        if 'max_output_length' in data:
            kwargs['max_output_length'] = int(data['max_output_length'])
        return cls(**kwargs)

    def validate(self) -> None:
        self.security.validate()
        if self.log_level not in ('debug', 'info', 'warn', 'warning', 'error'):
            raise ConfigError(f"invalid log level: {self.log_level}")
        if self.exec_timeout <= 0:
            raise ConfigError(f"invalid exec_timeout: {self.exec_timeout} (must be > 0)")
        if self.host_tools.enabled and self.host_tools.timeout <= 0:
            raise ConfigError(
                f"invalid host_tools timeout: {self.host_tools.timeout} (must be > 0)")
        if self.host_commands.enabled and self.host_commands.timeout <= 0:
            raise ConfigError(
                f"invalid host_commands timeout: {self.host_commands.timeout} (must be > 0)")


def find_config_file(search_dirs: Optional[List[Path]] = None) -> Optional[Path]:
    """Return the first sandgate.yaml found in the search directories."""
    if search_dirs is None:
        search_dirs = [Path('.'), Path('./configs'), Path.home() / '.sandgate']
    for directory in search_dirs:
        for name in CONFIG_FILENAMES:
            candidate = Path(directory) / name
            if candidate.is_file():
                return candidate
    return None


def load_config(path: Optional[Path] = None) -> GatewayConfig:
    """Parse a YAML config file into a validated GatewayConfig.

    Without a path the default search locations are tried; with none found
    the defaults are returned.
    """
    if path is None:
        path = find_config_file()
    if path is None:
        cfg = GatewayConfig()
    else:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"failed to read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"failed to parse config file {path}: {e}") from e
        cfg = GatewayConfig.from_dict(data)
    cfg.validate()
    return cfg


__all__ = [
    'ConfigError',
    'PermissionsConfig', 'SettingsScanConfig', 'AutoImportConfig',
    'BlockedPathsConfig', 'MaskingTargetsConfig', 'MaskingRuleConfig',
    'OutputMaskingConfig', 'DangerousModeConfig', 'HostPathMaskingConfig',
    'SecurityConfig', 'HostCommandsConfig', 'HostToolsConfig', 'GatewayConfig',
    'find_config_file', 'load_config',
]
