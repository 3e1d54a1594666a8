"""
Access Control — Pattern matching, blocked paths, masking, policies.

Submodules:
- patterns: Glob and prefix primitives ('*' never crosses '/')
- blocked_paths: Manual + auto-imported blocked path index
- masking: Regex output masking and host path masking
- policy: Container-side SecurityPolicy
- host_policy: Host command authorization

Classes:
- SecurityPolicy: Immutable container authorization engine
- HostCommandPolicy: Whitelist / deny / dangerous-mode host command checks
- BlockedPathIndex: Container-first blocked path lookup
- OutputMasker: Ordered masking rules per output target
"""

from sandgate.core.access.patterns import glob_match, match_path, matches_command_pattern
from sandgate.core.access.blocked_paths import BlockedPathIndex
from sandgate.core.access.masking import OutputMasker, MaskingRule, mask_host_paths
from sandgate.core.access.policy import SecurityPolicy, tokenize
from sandgate.core.access.host_policy import HostCommandPolicy, split_command

__all__ = [
    # Patterns
    'glob_match',
    'match_path',
    'matches_command_pattern',

    # Blocked paths and masking
    'BlockedPathIndex',
    'OutputMasker',
    'MaskingRule',
    'mask_host_paths',

    # Policies
    'SecurityPolicy',
    'HostCommandPolicy',
    'tokenize',
    'split_command',
]
