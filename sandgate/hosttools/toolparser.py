#!/usr/bin/env python3
"""
SandGate Host Tools — Tool Header Parser
==========================================
Reads the leading comment block of a tool script into a ToolInfo:

    #!/bin/bash
    # demo-up.sh
    # Start the demo environment
    #
    # Usage:
    #   demo-up.sh [--build]
    #
    # Examples:
    #   demo-up.sh --build
    # ---
    # (ignored)

The first non-empty line is the description; optional Usage: and Examples:
blocks follow; a '---' line ends the header. One parser per extension,
each reading at most HEADER_LINE_LIMITS[ext] lines. Python headers may also
be a leading module docstring.

Files whose name starts with '_' are helpers and never listed.

Import from: sandgate.hosttools.toolparser
"""

import os
import logging
from itertools import islice
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Sequence, Tuple

from sandgate.core.types import NotFound, ParseError, PermissionDenied, ToolInfo
from sandgate.core.constants import HEADER_LINE_LIMITS

logger = logging.getLogger(__name__)


def validate_name(name: str) -> Tuple[bool, str]:
    """A tool name must be a bare file name."""
    if not name:
        return False, "empty tool name"
    if '/' in name or '\\' in name or '..' in name:
        return False, f"invalid tool name (path traversal): {name}"
    return True, "OK"


def require_valid_name(name: str) -> None:
    ok, reason = validate_name(name)
    if not ok:
        raise PermissionDenied(reason, rule=name)


# =============================================================================
# HEADER PARSING
# =============================================================================

def _read_lines(path: Path, limit: int) -> List[str]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return [line.rstrip('\r\n') for line in islice(f, limit)]
    except UnicodeDecodeError as e:
        raise ParseError(f"tool header is not valid UTF-8: {path.name}") from e


def _build_info(name: str, ext: str, contents: Iterable[str]) -> ToolInfo:
    """Fold stripped comment text into description / usage / examples."""
    info = ToolInfo(name=name, extension=ext)
    usage: List[str] = []
    section = ""
    for content in contents:
        if content.startswith('---'):
            break
        if not info.description and content:
            # A bare file-name line is not a description
            if content == name or content.endswith(ext):
                continue
            info.description = content
            continue
        if content.startswith('Usage:'):
            section = 'usage'
            rest = content[len('Usage:'):].strip()
            if rest:
                usage.append(rest)
            continue
        if content.startswith('Examples:'):
            section = 'examples'
            continue
        if not content:
            continue
        if section == 'usage':
            usage.append(content)
        elif section == 'examples':
            info.examples.append(content)
    info.usage = '\n'.join(usage)
    return info


def _shell_comments(lines: Sequence[str]) -> Iterator[str]:
    for i, line in enumerate(lines):
        if i == 0 and line.startswith('#!'):
            continue
        if not line.startswith('#'):
            return
        yield line[1:].strip()


def _go_comments(lines: Sequence[str]) -> Iterator[str]:
    for line in lines:
        if line.startswith('package '):
            return
        if line.startswith('//'):
            yield line[2:].strip()


def _python_comments(lines: Sequence[str]) -> Iterator[str]:
    i = 0
    if lines and lines[0].startswith('#!'):
        i = 1
    while i < len(lines):
        line = lines[i]
        stripped = line.strip()
        if 'coding:' in line or 'coding=' in line:
            i += 1
            continue
        if stripped.startswith('#'):
            yield stripped[1:].strip()
            i += 1
            continue
        if not stripped:
            i += 1
            continue
        break
    else:
        return

    # Leading module docstring
    stripped = lines[i].strip()
    for quote in ('"""', "'''"):
        if stripped.startswith(quote):
            break
    else:
        return
    body = stripped[3:]
    if quote in body:
        yield body.split(quote, 1)[0].strip()
        return
    if body.strip():
        yield body.strip()
    for line in lines[i + 1:]:
        if quote in line:
            tail = line.split(quote, 1)[0].strip()
            if tail:
                yield tail
            return
        yield line.strip()


def parse_shell_header(path: Path) -> ToolInfo:
    lines = _read_lines(path, HEADER_LINE_LIMITS['.sh'])
    return _build_info(path.name, '.sh', _shell_comments(lines))


def parse_go_header(path: Path) -> ToolInfo:
    lines = _read_lines(path, HEADER_LINE_LIMITS['.go'])
    return _build_info(path.name, '.go', _go_comments(lines))


def parse_python_header(path: Path) -> ToolInfo:
    lines = _read_lines(path, HEADER_LINE_LIMITS['.py'])
    return _build_info(path.name, '.py', _python_comments(lines))


HEADER_PARSERS: Dict[str, Callable[[Path], ToolInfo]] = {
    '.sh': parse_shell_header,
    '.go': parse_go_header,
    '.py': parse_python_header,
}


def parse_file_header(path: Path) -> ToolInfo:
    path = Path(path)
    parser = HEADER_PARSERS.get(path.suffix)
    if parser is None:
        raise ParseError(f"unsupported extension: {path.suffix}")
    return parser(path)


# =============================================================================
# DIRECTORY QUERIES
# =============================================================================

def list_tools(directory: Path, allowed_extensions: Sequence[str]) -> List[ToolInfo]:
    """Tools in one directory, sorted by name. Unreadable headers are skipped."""
    directory = Path(directory)
    tools = []
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if not entry.is_file():
            continue
        name = entry.name
        if name.startswith('_'):
            continue
        if os.path.splitext(name)[1] not in allowed_extensions:
            continue
        try:
            tools.append(parse_file_header(Path(entry.path)))
        except (OSError, ParseError) as e:
            logger.debug("Skipping tool %s: %s", entry.path, e)
    return tools


def get_tool_info(directory: Path, name: str, allowed_extensions: Sequence[str]) -> ToolInfo:
    require_valid_name(name)
    ext = os.path.splitext(name)[1]
    if ext not in allowed_extensions:
        raise PermissionDenied(f"extension not allowed: {ext or '(none)'}", rule=name)
    path = Path(directory) / name
    if not path.is_file():
        raise NotFound(f"tool not found: {name}")
    return parse_file_header(path)


__all__ = [
    'validate_name', 'require_valid_name', 'HEADER_PARSERS',
    'parse_shell_header', 'parse_go_header', 'parse_python_header',
    'parse_file_header', 'list_tools', 'get_tool_info',
]
