#!/usr/bin/env python3
"""
SandGate Core Access — Blocked Path Index
===========================================
Merges blocked filesystem patterns from three sources:
1. Manual entries from the configuration (per container or "*")
2. Global patterns (.env, *.key, ... applied to every container)
3. Auto-imported entries:
   - compose files: volumes that mount /dev/null over a path, tmpfs mounts
   - devcontainer.json mount strings
   - AI-tool settings: Claude-style permissions.deny Read(...) rules and
     Gemini-style ignore files, scanned up to a configured depth

Every import failure is logged and skipped; the index is still built from
whatever could be read, so manual entries always apply.

Import from: sandgate.core.access.blocked_paths
"""

import json
import logging
import posixpath
import re
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import yaml

from sandgate.core.types import BlockedPath, BlockSource
from sandgate.core.constants import (
    COMPOSE_FILE_NAMES, DEVCONTAINER_FILE_NAME, SKIPPED_SCAN_DIRS,
)
from sandgate.core.access.patterns import match_path, matches_name

logger = logging.getLogger(__name__)

_CLAUDE_READ_RULE = re.compile(r'^Read\(([^)]+)\)$')
_DEVCONTAINER_DEV_NULL = re.compile(r'source=/dev/null[^"]*target=([^,"]+)')
_DEVCONTAINER_TMPFS = re.compile(r'type=(?:tmpfs|volume)[^"]*target=([^,"]+)')


class BlockedPathIndex:
    """Immutable list of blocked paths with container-first lookup."""

    def __init__(self, entries: Iterable[BlockedPath] = ()):
        self._entries: Tuple[BlockedPath, ...] = tuple(entries)

    @classmethod
    def from_config(cls, cfg, containers: Sequence[str] = (),
                    security_logger=None) -> 'BlockedPathIndex':
        """Build the index from a BlockedPathsConfig.

        containers are the known container names (or globs) used to map an
        imported host path onto a container-specific entry.
        """
        importer = _Importer(containers, security_logger)
        entries: List[BlockedPath] = []

        for container, patterns in cfg.manual.items():
            for pattern in patterns:
                entries.append(BlockedPath(
                    container=container, pattern=pattern, reason="manual_block",
                    source=BlockSource.MANUAL, origin="config"))

        auto = cfg.auto_import
        for pattern in auto.global_patterns:
            entries.append(BlockedPath(
                container="*", pattern=pattern, reason="global_pattern",
                source=BlockSource.MANUAL, origin="config"))

        if auto.enabled:
            entries.extend(importer.import_all(auto))

        logger.debug("Blocked path index built with %d entries", len(entries))
        return cls(entries)

    @property
    def entries(self) -> Tuple[BlockedPath, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def for_container(self, container: str) -> List[BlockedPath]:
        return [e for e in self._entries if e.container in ('*', container)]

    def is_path_blocked(self, container: str, path: str) -> Optional[BlockedPath]:
        """Return the entry blocking path for container, or None.

        Entries scoped to the container are consulted before global ones so
        the most specific explanation wins.
        """
        if not path:
            return None
        for entry in self._entries:
            if entry.container == container and entry.container != '*':
                if match_path(path, entry.pattern):
                    return entry
        for entry in self._entries:
            if entry.is_global and match_path(path, entry.pattern):
                return entry
        return None


class _Importer:
    """Reads compose/devcontainer/settings files into BlockedPath entries."""

    def __init__(self, containers: Sequence[str], security_logger=None):
        self.containers = list(containers)
        self.security_logger = security_logger

    def import_all(self, auto) -> List[BlockedPath]:
        root = Path(auto.workspace_root or ".")
        entries: List[BlockedPath] = []

        for scan_file in auto.scan_files:
            full_path = root / scan_file
            if not full_path.is_file():
                continue
            name = full_path.name
            if name in COMPOSE_FILE_NAMES:
                entries.extend(self._guarded(self.parse_compose, full_path))
            elif name == DEVCONTAINER_FILE_NAME:
                entries.extend(self._guarded(self.parse_devcontainer, full_path))
            else:
                logger.debug("Unrecognized scan file skipped: %s", full_path)

        if auto.claude_code_settings.enabled:
            entries.extend(self._scan_settings(
                root, auto.claude_code_settings, "Claude Code", self.parse_claude_settings))
        if auto.gemini_settings.enabled:
            entries.extend(self._scan_settings(
                root, auto.gemini_settings, "Gemini", self.parse_gitignore_style))
        return entries

    def _guarded(self, parser: Callable[[Path], List[BlockedPath]],
                 path: Path) -> List[BlockedPath]:
        try:
            return parser(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning("Auto-import of blocked paths from %s failed: %s", path, e)
            if self.security_logger:
                self.security_logger.log_blocked("AUTO_IMPORT", str(path), f"parse failed: {e}")
            return []

    # -------------------------------------------------------------------------
    # Settings scanning
    # -------------------------------------------------------------------------

    def _scan_settings(self, root: Path, scan_cfg, label: str,
                       parser: Callable[[Path], List[BlockedPath]]) -> List[BlockedPath]:
        logger.debug("Scanning %s settings under %s (max_depth=%d)",
                     label, root.resolve(), scan_cfg.max_depth)
        entries: List[BlockedPath] = []
        for directory in self._settings_dirs(root, scan_cfg.max_depth):
            for settings_file in scan_cfg.settings_files:
                candidate = directory / settings_file
                if candidate.is_file():
                    logger.debug("Found %s settings file: %s", label, candidate)
                    entries.extend(self._guarded(parser, candidate))
        return entries

    def _settings_dirs(self, root: Path, max_depth: int) -> List[Path]:
        """root plus sub-directories up to max_depth, skipping hidden/vendor dirs."""
        dirs = [root]
        frontier = [root]
        for _ in range(max(0, max_depth)):
            next_frontier = []
            for directory in frontier:
                try:
                    children = sorted(directory.iterdir())
                except OSError as e:
                    logger.debug("Cannot read directory %s: %s", directory, e)
                    continue
                for child in children:
                    if not child.is_dir():
                        continue
                    if child.name.startswith('.') or child.name in SKIPPED_SCAN_DIRS:
                        continue
                    next_frontier.append(child)
            dirs.extend(next_frontier)
            frontier = next_frontier
        return dirs

    # -------------------------------------------------------------------------
    # Parsers
    # -------------------------------------------------------------------------

    def parse_compose(self, path: Path) -> List[BlockedPath]:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError("compose file root is not a mapping")

        entries = []
        services = data.get('services') or {}
        if not isinstance(services, dict):
            raise ValueError("compose 'services' is not a mapping")
        for service_name, service in services.items():
            if not isinstance(service, dict):
                continue
            for volume in service.get('volumes') or []:
                target = _dev_null_target(volume)
                if target:
                    entry = self.extract(target, str(path), "volume_mount_to_dev_null")
                    if entry:
                        entries.append(entry)
            tmpfs = service.get('tmpfs') or []
            if isinstance(tmpfs, str):
                tmpfs = [tmpfs]
            for mount in tmpfs:
                entry = self.extract(str(mount).split(':', 1)[0], str(path), "tmpfs_mount")
                if entry:
                    entries.append(entry)
            logger.debug("Compose service %s scanned", service_name)
        return entries

    def parse_devcontainer(self, path: Path) -> List[BlockedPath]:
        content = path.read_text(encoding='utf-8')
        entries = []
        for regex, reason in ((_DEVCONTAINER_DEV_NULL, "devcontainer_bind_mount"),
                              (_DEVCONTAINER_TMPFS, "devcontainer_tmpfs_mount")):
            for target in regex.findall(content):
                entry = self.extract(target, str(path), reason)
                if entry:
                    entries.append(entry)
        return entries

    def parse_claude_settings(self, path: Path) -> List[BlockedPath]:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("settings root is not an object")
        permissions = data.get('permissions') or {}
        deny = permissions.get('deny') or [] if isinstance(permissions, dict) else []
        entries = []
        for rule in deny:
            match = _CLAUDE_READ_RULE.match(str(rule))
            if not match:
                continue
            entries.append(self.convert_settings_pattern(match.group(1), str(path)))
        if entries:
            logger.debug("Imported %d blocked patterns from %s", len(entries), path)
        return entries

    def parse_gitignore_style(self, path: Path) -> List[BlockedPath]:
        entries = []
        for line in path.read_text(encoding='utf-8').splitlines():
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            if line.startswith('!'):
                logger.debug("Skipping negation pattern %r in %s", line, path)
                continue
            pattern = line + '*' if line.endswith('/') else line
            pattern = pattern.lstrip('/')
            entries.append(BlockedPath(
                container="*", pattern=pattern, reason="gemini_exclude_file",
                source=BlockSource.AUTO_IMPORTED, origin=str(path), original_path=line))
        return entries

    # -------------------------------------------------------------------------
    # Path → entry conversion
    # -------------------------------------------------------------------------

    def _container_for(self, part: str) -> bool:
        return any(matches_name(part, container) for container in self.containers)

    def convert_settings_pattern(self, pattern: str, origin: str) -> BlockedPath:
        """Map a settings glob such as 'demo-apps/api/.env' onto a container."""
        original = pattern
        pattern = pattern[2:] if pattern.startswith('./') else pattern
        parts = pattern.split('/')
        for i, part in enumerate(parts):
            if '*' in part:
                continue
            if self._container_for(part):
                remainder = '/'.join(parts[i + 1:]) or pattern
                return BlockedPath(
                    container=part, pattern=remainder, reason="claude_code_settings_deny",
                    source=BlockSource.AUTO_IMPORTED, origin=origin, original_path=original)
        return BlockedPath(
            container="*", pattern=pattern, reason="claude_code_settings_deny",
            source=BlockSource.AUTO_IMPORTED, origin=origin, original_path=original)

    def extract(self, path: str, origin: str, reason: str) -> Optional[BlockedPath]:
        """Map a mount target onto a container-specific or global entry."""
        parts = path.split('/')
        for i, part in enumerate(parts):
            if part and self._container_for(part):
                remainder = '/' + '/'.join(parts[i + 1:])
                if remainder == '/':
                    remainder = '/*'
                return BlockedPath(
                    container=part, pattern=remainder, reason=reason,
                    source=BlockSource.AUTO_IMPORTED, origin=origin, original_path=path)

        basename = posixpath.basename(path.rstrip('/'))
        if not basename or basename == '.':
            return None
        return BlockedPath(
            container="*", pattern=basename, reason=reason,
            source=BlockSource.AUTO_IMPORTED, origin=origin, original_path=path)


def _dev_null_target(volume) -> Optional[str]:
    """Target of a volume entry that mounts /dev/null, short or long syntax."""
    if isinstance(volume, str):
        if volume.startswith('/dev/null:'):
            parts = volume.split(':')
            if len(parts) >= 2 and parts[1]:
                return parts[1]
        return None
    if isinstance(volume, dict) and volume.get('source') == '/dev/null':
        target = volume.get('target')
        return str(target) if target else None
    return None


__all__ = ['BlockedPathIndex']
