"""
SandGate Core — Version Constants

Single source of truth for all version-related values.
Import from here instead of hardcoding versions elsewhere.

Usage:
    from sandgate.core.version import __version__, CONFIG_FILENAMES
"""

# =============================================================================
# PACKAGE VERSION
# =============================================================================

__version__ = "1.0.0"


# =============================================================================
# CONFIG FILE
# =============================================================================

# Names searched (in order) by the operator CLI when --config is not given
CONFIG_FILENAMES = ("sandgate.yaml", "sandgate.yml")

# Tracks the structure of the YAML config, not the code
CONFIG_SCHEMA_VERSION = "1.0"


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    '__version__',
    'CONFIG_FILENAMES',
    'CONFIG_SCHEMA_VERSION',
]
