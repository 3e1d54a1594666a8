#!/usr/bin/env python3
"""
SandGate Core Access — Pattern Matching
=========================================
Glob and prefix primitives shared by every policy check:
- glob_match: shell glob where '*' and '?' never cross a '/' separator
  (fnmatch would let '*' match across directories)
- matches_command_pattern: exact or trailing-wildcard prefix match
- match_path: blocked-path semantics (basename, directory, full-path glob)

Import from: sandgate.core.access.patterns
"""

import re
import posixpath
from functools import lru_cache
from typing import Iterable, Optional


@lru_cache(maxsize=512)
def _compile_glob(pattern: str) -> 're.Pattern':
    """Translate a glob into an anchored regex. Raises ValueError if malformed."""
    out = []
    i, n = 0, len(pattern)
    while i < n:
        ch = pattern[i]
        i += 1
        if ch == '*':
            out.append('[^/]*')
        elif ch == '?':
            out.append('[^/]')
        elif ch == '\\':
            if i >= n:
                raise ValueError(f"bad pattern (trailing escape): {pattern!r}")
            out.append(re.escape(pattern[i]))
            i += 1
        elif ch == '[':
            j = i
            negate = False
            if j < n and pattern[j] in '^!':
                negate = True
                j += 1
            chars = []
            first = True
            while j < n and (pattern[j] != ']' or first):
                first = False
                c = pattern[j]
                if c == '\\':
                    j += 1
                    if j >= n:
                        raise ValueError(f"bad pattern (trailing escape): {pattern!r}")
                    chars.append(re.escape(pattern[j]))
                elif c == '-' and chars and j + 1 < n and pattern[j + 1] != ']':
                    chars.append('-')
                else:
                    chars.append(re.escape(c))
                j += 1
            if j >= n:
                raise ValueError(f"bad pattern (unterminated class): {pattern!r}")
            body = ''.join(chars)
            # A class never matches the separator, negated or not
            out.append(f"[^/{body}]" if negate else f"(?!/)[{body}]")
            i = j + 1
        else:
            out.append(re.escape(ch))
    return re.compile('(?s:' + ''.join(out) + r')\Z')


def glob_match(pattern: str, name: str) -> bool:
    """Match name against a shell glob. Raises ValueError on a malformed pattern."""
    return _compile_glob(pattern).match(name) is not None


def is_valid_glob(pattern: str) -> bool:
    try:
        _compile_glob(pattern)
    except ValueError:
        return False
    return True


def match_any(patterns: Iterable[str], name: str) -> Optional[str]:
    """Return the first glob that matches name. Malformed patterns are skipped."""
    for pattern in patterns:
        try:
            if glob_match(pattern, name):
                return pattern
        except ValueError:
            continue
    return None


def matches_name(name: str, pattern: str) -> bool:
    """Exact comparison unless the pattern carries a wildcard."""
    if '*' not in pattern and '?' not in pattern and '[' not in pattern:
        return name == pattern
    try:
        return glob_match(pattern, name)
    except ValueError:
        return False


def matches_command_pattern(value: str, pattern: str) -> bool:
    """Exact match, or prefix match when the pattern contains '*'.

    The prefix is everything before the first '*': "diff *" admits
    "diff HEAD~1" but not a bare "diff".
    """
    if value == pattern:
        return True
    if '*' in pattern:
        return value.startswith(pattern.split('*', 1)[0])
    return False


def first_command_match(value: str, patterns: Iterable[str]) -> Optional[str]:
    for pattern in patterns:
        if matches_command_pattern(value, pattern):
            return pattern
    return None


def clean_path(path: str) -> str:
    """Lexical normalization in the style of a POSIX path cleaner."""
    if not path:
        return '.'
    cleaned = posixpath.normpath(path)
    # normpath keeps a leading '//' as a special case
    if cleaned.startswith('//'):
        cleaned = '/' + cleaned.lstrip('/')
    return cleaned


def match_path(path: str, pattern: str) -> bool:
    """Does a blocked-path pattern cover this path?

    - identical after normalization
    - a pattern without '/' matches the basename, exactly or as a glob
    - a pattern ending in '/*' matches everything under that directory,
      wherever the directory appears in the path
    - otherwise a full-path glob
    """
    path = clean_path(path)
    raw_pattern = pattern
    pattern = clean_path(pattern)
    if path == pattern:
        return True

    if '/' not in pattern:
        basename = posixpath.basename(path)
        if basename == pattern:
            return True
        if '*' in pattern or '?' in pattern or '[' in pattern:
            try:
                if glob_match(pattern, basename):
                    return True
            except ValueError:
                pass

    if raw_pattern.endswith('/*'):
        directory = clean_path(raw_pattern[:-2])
        with_slash = directory.rstrip('/') + '/'
        if path.startswith(with_slash) or ('/' + with_slash.lstrip('/')) in path:
            return True

    try:
        return glob_match(pattern, path)
    except ValueError:
        return False


__all__ = [
    'glob_match', 'is_valid_glob', 'match_any', 'matches_name',
    'matches_command_pattern', 'first_command_match',
    'clean_path', 'match_path',
]
