#!/usr/bin/env python3
"""
SandGate Core Access — Output Masking
=======================================
Regex-based redaction of secrets in container output:
- Rules are applied in declaration order
- Each rule names the output targets (logs / exec / inspect) it applies to
- A rule whose replacement text would itself match a rule is rejected at
  construction, which keeps masking idempotent

Also masks user home directories in host paths ("/home/alice/..." becomes
"[HOST_PATH]/...") so inspect output does not leak host usernames.

Import from: sandgate.core.access.masking
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Tuple

from sandgate.core.types import OutputTarget
from sandgate.core.constants import (
    DEFAULT_MASK_REPLACEMENT, HOST_PATH_PREFIXES, WINDOWS_HOST_PATH_PREFIXES,
)

logger = logging.getLogger(__name__)

ALL_TARGETS = frozenset(OutputTarget)


@dataclass(frozen=True)
class MaskingRule:
    regex: 're.Pattern'
    replacement: str = DEFAULT_MASK_REPLACEMENT
    apply_to: FrozenSet[OutputTarget] = ALL_TARGETS

    def applies_to(self, target: OutputTarget) -> bool:
        return target in self.apply_to

    def apply(self, text: str) -> str:
        # Callable replacement: the text is inserted literally, no group refs
        return self.regex.sub(lambda _m: self.replacement, text)


def _targets(cfg) -> FrozenSet[OutputTarget]:
    if cfg is None:
        return ALL_TARGETS
    return frozenset(t for t in OutputTarget if getattr(cfg, t.value, False))


class OutputMasker:
    """Ordered, immutable set of masking rules."""

    def __init__(self, rules: Iterable[MaskingRule] = (), enabled: bool = True):
        self.enabled = enabled
        self._rules: Tuple[MaskingRule, ...] = tuple(rules)

    @classmethod
    def from_config(cls, cfg) -> 'OutputMasker':
        """Build from an OutputMaskingConfig. Bad rules are logged and dropped."""
        if cfg is None:
            return cls((), enabled=False)

        candidates: List[Tuple[str, str, FrozenSet[OutputTarget]]] = []
        default_targets = _targets(cfg.apply_to)
        for pattern in cfg.patterns:
            candidates.append((pattern, cfg.replacement, default_targets))
        for rule in cfg.rules:
            candidates.append((
                rule.pattern,
                rule.replacement if rule.replacement is not None else cfg.replacement,
                _targets(rule.apply_to) if rule.apply_to is not None else default_targets,
            ))

        compiled: List[MaskingRule] = []
        for pattern, replacement, targets in candidates:
            try:
                regex = re.compile(pattern)
            except re.error as e:
                logger.warning("Invalid masking pattern skipped: %r (%s)", pattern, e)
                continue
            compiled.append(MaskingRule(regex=regex, replacement=replacement, apply_to=targets))

        rules = []
        for rule in compiled:
            clash = next((other for other in compiled
                          if other.regex.search(rule.replacement)), None)
            if clash is not None:
                logger.warning("Masking rule %r rejected: replacement %r matches %r",
                               rule.regex.pattern, rule.replacement, clash.regex.pattern)
                continue
            rules.append(rule)
        return cls(rules, enabled=cfg.enabled)

    @property
    def rules(self) -> Tuple[MaskingRule, ...]:
        return self._rules

    @property
    def pattern_count(self) -> int:
        return len(self._rules)

    def should_mask(self, target: OutputTarget) -> bool:
        return self.enabled and any(r.applies_to(target) for r in self._rules)

    def mask(self, text: str, target: OutputTarget) -> str:
        if not self.enabled or not text:
            return text
        for rule in self._rules:
            if rule.applies_to(target):
                text = rule.apply(text)
        return text

    def status(self) -> Dict:
        return {
            'enabled': self.enabled,
            'pattern_count': self.pattern_count,
            'apply_to': {t.value: self.should_mask(t) for t in OutputTarget},
        }


# =============================================================================
# HOST PATH MASKING
# =============================================================================

_PATH_TERMINATORS = "\"' ,]}\n\t"


def _mask_after_prefix(text: str, prefix: str, replacement: str, separators: str) -> str:
    """Replace prefix+username (up to the next separator) with replacement."""
    start = 0
    while True:
        idx = text.find(prefix, start)
        if idx == -1:
            return text
        user_start = idx + len(prefix)
        user_end = user_start
        while user_end < len(text) and text[user_end] not in separators \
                and text[user_end] not in _PATH_TERMINATORS:
            user_end += 1
        if user_end > user_start:
            text = text[:idx] + replacement + text[user_end:]
            start = idx + len(replacement)
        else:
            start = idx + 1


def mask_host_paths(text: str, replacement: str) -> str:
    if not text:
        return text
    for prefix in WINDOWS_HOST_PATH_PREFIXES:
        text = _mask_after_prefix(text, prefix, replacement, "\\/")
    for prefix in HOST_PATH_PREFIXES:
        text = _mask_after_prefix(text, prefix, replacement, "/")
    return text


__all__ = ['MaskingRule', 'OutputMasker', 'mask_host_paths', 'ALL_TARGETS']
