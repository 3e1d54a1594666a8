#!/usr/bin/env python3
"""
SandGate Host Tools — Approval Pipeline
=========================================
Promotes staging tool scripts (writable from the sandbox) into the
operator-controlled approved store:

    <approved-root>/_common/<files>
    <approved-root>/<project-id>/.project      {"workspace": "<abs path>"}
    <approved-root>/<project-id>/<files>

detect_changes() compares each staging tool against its approved copy
(size first, SHA-256 only for equal sizes). run_interactive_sync() asks a
decider about every New/Updated item and copies accepted files. The
decider is a plain object, so the loop can be driven by a console or by a
scripted sequence of answers.

Import from: sandgate.hosttools.approval
"""

import os
import sys
import json
import shutil
import difflib
import hashlib
import logging
from pathlib import Path
from typing import Dict, List, Optional, TextIO, Union

from sandgate.core.types import (
    AlertSeverity, Decision, SyncItem, SyncReport, SyncRequest, SyncStatus,
)
from sandgate.core.constants import (
    COMMON_DIR_NAME, HASH_CHUNK_SIZE, PROJECT_ID_HASH_CHARS, PROJECT_META_FILE,
)
from sandgate.hosttools.toolparser import list_tools, validate_name

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# =============================================================================
# APPROVED STORE LAYOUT
# =============================================================================

def project_id(workspace: PathLike) -> str:
    """Stable directory name for a workspace: '<basename>-<sha256[:8]>'."""
    abs_path = os.path.abspath(os.fspath(workspace))
    base = os.path.basename(abs_path.rstrip(os.sep)) or abs_path
    sanitized = ''.join(ch for ch in base
                        if ch.isascii() and (ch.isalnum() or ch in '-_'))
    digest = hashlib.sha256(abs_path.encode('utf-8')).hexdigest()
    return f"{sanitized or 'project'}-{digest[:PROJECT_ID_HASH_CHARS]}"


def resolve_approved_dir(approved_dir: PathLike) -> Path:
    return Path(os.path.abspath(os.path.expanduser(os.fspath(approved_dir))))


def project_approved_dir(approved_dir: PathLike, workspace: PathLike) -> Path:
    return resolve_approved_dir(approved_dir) / project_id(workspace)


def common_approved_dir(approved_dir: PathLike) -> Path:
    return resolve_approved_dir(approved_dir) / COMMON_DIR_NAME


def write_project_meta(project_dir: Path, workspace: PathLike) -> None:
    meta = {'workspace': os.path.abspath(os.fspath(workspace))}
    (Path(project_dir) / PROJECT_META_FILE).write_text(
        json.dumps(meta, indent=2), encoding='utf-8')


def read_project_meta(project_dir: PathLike) -> Optional[str]:
    """Workspace path recorded in a project directory, or None."""
    try:
        data = json.loads((Path(project_dir) / PROJECT_META_FILE).read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        logger.debug("No readable project metadata in %s: %s", project_dir, e)
        return None
    workspace = data.get('workspace') if isinstance(data, dict) else None
    return str(workspace) if workspace else None


# =============================================================================
# FILE COMPARISON
# =============================================================================

def file_hash(path: PathLike) -> str:
    h = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b''):
            h.update(chunk)
    return h.hexdigest()


def compare_files(staging: PathLike, approved: PathLike) -> SyncStatus:
    """New if approved is missing, Updated on any size or digest difference."""
    try:
        approved_size = os.stat(approved).st_size
    except FileNotFoundError:
        return SyncStatus.NEW
    if os.stat(staging).st_size != approved_size:
        return SyncStatus.UPDATED
    if file_hash(staging) != file_hash(approved):
        return SyncStatus.UPDATED
    return SyncStatus.UNCHANGED


def copy_file(src: PathLike, dst: PathLike) -> None:
    """Copy contents and permission bits, creating parent directories."""
    Path(dst).parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dst)
    shutil.copymode(src, dst)


def unified_diff(approved: PathLike, staging: PathLike) -> str:
    with open(approved, 'r', encoding='utf-8', errors='replace') as f:
        old = f.readlines()
    with open(staging, 'r', encoding='utf-8', errors='replace') as f:
        new = f.readlines()
    return ''.join(difflib.unified_diff(
        old, new, fromfile='approved (current)', tofile='staging (new)'))


# =============================================================================
# PIPELINE
# =============================================================================

class ApprovalPipeline:
    """Staging → approved store synchronization for one workspace."""

    def __init__(self, config, workspace_root: PathLike = ".", security_logger=None):
        if not config.approved_dir:
            raise ValueError("approved_dir is not configured (host tools are in legacy mode)")
        self.config = config
        self.workspace_root = Path(os.path.abspath(os.fspath(workspace_root)))
        self.security_logger = security_logger
        self.detect_errors: Dict[str, str] = {}

    @property
    def approved_dir(self) -> Path:
        return project_approved_dir(self.config.approved_dir, self.workspace_root)

    def staging_dirs(self) -> List[Path]:
        dirs = []
        for directory in self.config.effective_staging_dirs:
            path = Path(directory).expanduser()
            dirs.append(path if path.is_absolute() else self.workspace_root / path)
        return dirs

    def detect_changes(self) -> List[SyncItem]:
        """Every staging tool with its status. Unreadable items are left out
        and recorded in detect_errors."""
        self.detect_errors = {}
        approved_dir = self.approved_dir
        items: List[SyncItem] = []
        for directory in self.staging_dirs():
            try:
                tools = list_tools(directory, self.config.allowed_extensions)
            except OSError as e:
                logger.debug("Skipping staging directory %s: %s", directory, e)
                continue
            for tool in tools:
                ok, reason = validate_name(tool.name)
                if not ok:
                    logger.warning("Staging tool skipped: %s", reason)
                    self.detect_errors[tool.name] = reason
                    continue
                staging_path = directory / tool.name
                approved_path = approved_dir / tool.name
                try:
                    status = compare_files(staging_path, approved_path)
                except OSError as e:
                    logger.warning("Comparing %s failed: %s", tool.name, e)
                    self.detect_errors[tool.name] = str(e)
                    continue
                items.append(SyncItem(
                    name=tool.name, status=status,
                    staging_path=str(staging_path), approved_path=str(approved_path),
                    description=tool.description))
        return items

    def _request(self, item: SyncItem) -> SyncRequest:
        header = f"{item.name} - \"{item.description}\"" if item.description else item.name
        if item.status == SyncStatus.NEW:
            prompt = (f"New tool found:\n  {header}\n  Source: {item.staging_path}\n"
                      f"  -> Copy to {item.approved_path}? [y/N] ")
            return SyncRequest(item=item, prompt=prompt, allow_diff=False)
        prompt = (f"Updated tool found:\n  {header}\n  Source: {item.staging_path}\n"
                  f"  -> Update {item.approved_path}? [y/N/d(iff)] ")
        return SyncRequest(item=item, prompt=prompt, allow_diff=True)

    def _decide(self, item: SyncItem, decider) -> Decision:
        request = self._request(item)
        decision = decider.decide(request)
        if decision == Decision.DIFF:
            if not request.allow_diff:
                return Decision.SKIP
            try:
                decider.notify(unified_diff(item.approved_path, item.staging_path))
            except OSError as e:
                decider.notify(f"  Error reading files for diff: {e}")
            decision = decider.decide(SyncRequest(item=item, prompt="  -> Update? [y/N] "))
            if decision == Decision.DIFF:
                return Decision.SKIP
        return decision

    def run_interactive_sync(self, decider) -> SyncReport:
        items = self.detect_changes()
        report = SyncReport(failed=dict(self.detect_errors))

        approved_dir = self.approved_dir
        approved_dir.mkdir(parents=True, exist_ok=True)
        try:
            write_project_meta(approved_dir, self.workspace_root)
        except OSError as e:
            logger.warning("Failed to write project metadata: %s", e)

        pending = [item for item in items if item.status != SyncStatus.UNCHANGED]
        report.unchanged = [item.name for item in items if item.status == SyncStatus.UNCHANGED]
        if not pending:
            decider.notify("All tools are up to date. No sync needed.")
            return report

        for item in items:
            if item.status == SyncStatus.UNCHANGED:
                decider.notify(f"Unchanged: {item.name} (skipped)")
                continue

            if self._decide(item, decider) != Decision.ACCEPT:
                report.skipped.append(item.name)
                decider.notify("  Skipped")
                continue

            try:
                copy_file(item.staging_path, item.approved_path)
                digest = file_hash(item.approved_path)
            except OSError as e:
                logger.warning("Copying %s failed: %s", item.name, e)
                report.failed[item.name] = str(e)
                decider.notify(f"  Error: {e}")
                if self.security_logger:
                    self.security_logger.log_action(
                        "TOOL_APPROVE", item.name, "ERROR", {'error': str(e)})
                continue

            report.synced.append(item.name)
            decider.notify("  Copied" if item.status == SyncStatus.NEW else "  Updated")
            if self.security_logger:
                self.security_logger.log_event(
                    "TOOL_APPROVED", AlertSeverity.INFO,
                    {'tool': item.name, 'status': item.status.value,
                     'sha256': digest})
        return report


class ConsoleDecider:
    """Line-oriented operator prompt: y/yes accepts, d/diff shows a diff,
    anything else (or end of input) skips."""

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout

    def decide(self, request: SyncRequest) -> Decision:
        self.stdout.write(request.prompt)
        self.stdout.flush()
        line = self.stdin.readline()
        answer = line.strip().lower()
        if answer in ('y', 'yes'):
            return Decision.ACCEPT
        if request.allow_diff and answer in ('d', 'diff'):
            return Decision.DIFF
        return Decision.SKIP

    def notify(self, message: str) -> None:
        self.stdout.write(message.rstrip('\n') + '\n')
        self.stdout.flush()


__all__ = [
    'project_id', 'resolve_approved_dir', 'project_approved_dir', 'common_approved_dir',
    'write_project_meta', 'read_project_meta', 'file_hash', 'compare_files',
    'copy_file', 'unified_diff', 'ApprovalPipeline', 'ConsoleDecider',
]
