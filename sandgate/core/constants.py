"""
SandGate Constants — Numeric Values, Limits, and Default Patterns
==================================================================
Non-config constants used across the gateway. Token sizes, line caps,
shell metacharacters, default masking and blocked-path patterns,
approved-store layout names.

Import from: sandgate.core.constants
"""

# =============================================================================
# TOKEN / CRYPTO SIZES (bytes of randomness)
# =============================================================================

SESSION_ID_BYTES = 8            # 16 hex chars for log session IDs

# =============================================================================
# FILE I/O
# =============================================================================

HASH_CHUNK_SIZE = 8192          # Bytes per read when hashing files
PROJECT_ID_HASH_CHARS = 8       # Hex chars of sha256(workspace) in a project ID

# =============================================================================
# APPROVED STORE LAYOUT
# =============================================================================

PROJECT_META_FILE = ".project"
COMMON_DIR_NAME = "_common"

# =============================================================================
# HOST TOOLS
# =============================================================================

DEFAULT_TOOL_EXTENSIONS = ('.sh', '.go', '.py')

# Header parsing stops after this many lines, whatever the file size
HEADER_LINE_LIMITS = {
    '.sh': 50,
    '.py': 30,
    '.go': 100,
}

# argv prefix used to run a tool, keyed by extension
TOOL_INTERPRETERS = {
    '.sh': ('bash',),
    '.py': ('python3',),
    '.go': ('go', 'run'),
}

# =============================================================================
# COMMAND PARSING
# =============================================================================

# Rejected on the raw host command string before any tokenization.
# '&' covers '&&' and background jobs, '|' covers '||'.
SHELL_METACHARACTERS = frozenset('|><;&`\n\r')
SHELL_SUBSTITUTIONS = ('$(',)

PATH_TRAVERSAL = '..'

DOCKER_COMMANDS = frozenset({'docker', 'docker-compose'})

# Flags that consume the following token as a value. Anything not listed is
# treated as a boolean flag, so an unlisted value flag makes its value look
# like a container name and fails the allow-list. A boolean flag must never
# appear here: it would swallow the container name that follows it.
DOCKER_GLOBAL_VALUE_FLAGS = frozenset({
    '-H', '--host', '-c', '--context', '--config', '-l', '--log-level',
    '--tlscacert', '--tlscert', '--tlskey',
})
COMPOSE_GLOBAL_VALUE_FLAGS = frozenset({
    '-f', '--file', '-p', '--project-name', '--profile', '--env-file',
    '--project-directory', '--ansi', '--progress', '--parallel',
})

_EXEC_VALUE_FLAGS = frozenset({
    '-u', '--user', '-w', '--workdir', '-e', '--env', '--env-file', '--detach-keys',
})

DOCKER_SUBCOMMAND_VALUE_FLAGS = {
    'logs': frozenset({'-n', '--tail', '--since', '--until'}),
    'exec': _EXEC_VALUE_FLAGS,
    'stop': frozenset({'-t', '--time', '-s', '--signal'}),
    'restart': frozenset({'-t', '--time', '-s', '--signal'}),
    'kill': frozenset({'-s', '--signal'}),
    'start': frozenset({'--detach-keys'}),
    'inspect': frozenset({'-f', '--format', '--type'}),
    'stats': frozenset({'--format'}),
}
COMPOSE_SUBCOMMAND_VALUE_FLAGS = {
    'logs': frozenset({'-n', '--tail', '--since', '--until', '--index'}),
    'exec': _EXEC_VALUE_FLAGS | {'--index'},
    'run': _EXEC_VALUE_FLAGS | {'--name', '--entrypoint', '-p', '--publish',
                                '-v', '--volume', '-l', '--label'},
    'stop': frozenset({'-t', '--timeout'}),
    'restart': frozenset({'-t', '--timeout'}),
    'up': frozenset({'-t', '--timeout', '--scale', '--exit-code-from', '--pull'}),
}

# Subcommands whose first operand is the target and whose remaining tokens
# belong to the command run inside it
DOCKER_TARGET_COMMAND_SUBCOMMANDS = frozenset({'exec', 'run', 'top', 'port'})
COMPOSE_TARGET_COMMAND_SUBCOMMANDS = frozenset({'exec', 'run'})

# Subcommands whose operands are images or nothing at all, never containers
DOCKER_NO_TARGET_SUBCOMMANDS = frozenset({
    'ps', 'ls', 'images', 'pull', 'search', 'version', 'info', 'build',
})
COMPOSE_NO_TARGET_SUBCOMMANDS = frozenset({'ls', 'version', 'config'})

# Scope name used for blocked-path checks of host command arguments
DEFAULT_HOST_SCOPE = "host"

# =============================================================================
# ENVIRONMENT
# =============================================================================

# Variables passed through to host commands and tools
SAFE_ENV_VARS = {
    'PATH', 'HOME', 'USER', 'LOGNAME', 'LANG', 'LC_ALL', 'LC_CTYPE',
    'TERM', 'TMPDIR', 'SHELL', 'GOPATH', 'GOCACHE', 'GOROOT',
    'DOCKER_HOST', 'DOCKER_CONTEXT', 'DOCKER_CONFIG',
}

# =============================================================================
# AUTO-IMPORT
# =============================================================================

COMPOSE_FILE_NAMES = (
    'docker-compose.yml', 'docker-compose.yaml', 'compose.yml', 'compose.yaml',
)
DEVCONTAINER_FILE_NAME = 'devcontainer.json'

DEFAULT_SCAN_FILES = [
    '.devcontainer/docker-compose.yml',
    '.devcontainer/devcontainer.json',
    'cli_sandbox/docker-compose.yml',
]

DEFAULT_GLOBAL_BLOCKED_PATTERNS = [
    '.env',
    '*.key',
    '*.pem',
    'secrets/*',
]

CLAUDE_SETTINGS_FILES = [
    '.claude/settings.json',
    '.claude/settings.local.json',
]

GEMINI_IGNORE_FILES = [
    '.aiexclude',
    '.geminiignore',
]

# Directories never descended into while scanning for settings files
SKIPPED_SCAN_DIRS = frozenset({'node_modules', 'vendor', '__pycache__'})

# =============================================================================
# OUTPUT MASKING
# =============================================================================

DEFAULT_MASK_REPLACEMENT = "[MASKED]"

DEFAULT_MASKING_PATTERNS = [
    r'(?i)(password|passwd|pwd)\s*[=:]\s*["\']?[^\s"\'\n]+["\']?',
    r'(?i)(api[_-]?key|apikey|secret[_-]?key)\s*[=:]\s*["\']?[^\s"\'\n]+["\']?',
    r'(?i)(secret|token|credential)\s*[=:]\s*["\']?[^\s"\'\n]+["\']?',
    r'(?i)bearer\s+[a-zA-Z0-9._-]+',
    r'sk-[a-zA-Z0-9]{20,}',
    r'(?i)(aws[_-]?access[_-]?key[_-]?id|aws[_-]?secret[_-]?access[_-]?key)'
    r'\s*[=:]\s*["\']?[A-Z0-9/+=]+["\']?',
    r'(?i)(postgres|mysql|mongodb|redis)://[^:]+:[^@]+@',
]

DEFAULT_HOST_PATH_REPLACEMENT = "[HOST_PATH]"

# Home-directory prefixes; the user segment after them is replaced
HOST_PATH_PREFIXES = ('/Users/', '/home/', '/c/Users/', '/C/Users/')
WINDOWS_HOST_PATH_PREFIXES = (
    'C:\\Users\\', 'c:\\Users\\', 'D:\\Users\\', 'd:\\Users\\',
    'C:/Users/', 'c:/Users/', 'D:/Users/', 'd:/Users/',
)

# =============================================================================
# CONTAINER OPERATIONS
# =============================================================================

DEFAULT_LOG_TAIL = "100"
DEFAULT_EXEC_TIMEOUT = 60       # seconds
DEFAULT_COMMAND_TIMEOUT = 60    # seconds
MAX_OUTPUT_LENGTH = 100_000     # characters kept from process output


__all__ = [
    'SESSION_ID_BYTES', 'HASH_CHUNK_SIZE', 'PROJECT_ID_HASH_CHARS',
    'PROJECT_META_FILE', 'COMMON_DIR_NAME',
    'DEFAULT_TOOL_EXTENSIONS', 'HEADER_LINE_LIMITS', 'TOOL_INTERPRETERS',
    'SHELL_METACHARACTERS', 'SHELL_SUBSTITUTIONS', 'PATH_TRAVERSAL',
    'DOCKER_COMMANDS', 'DOCKER_GLOBAL_VALUE_FLAGS', 'COMPOSE_GLOBAL_VALUE_FLAGS',
    'DOCKER_SUBCOMMAND_VALUE_FLAGS', 'COMPOSE_SUBCOMMAND_VALUE_FLAGS',
    'DOCKER_TARGET_COMMAND_SUBCOMMANDS', 'COMPOSE_TARGET_COMMAND_SUBCOMMANDS',
    'DOCKER_NO_TARGET_SUBCOMMANDS', 'COMPOSE_NO_TARGET_SUBCOMMANDS',
    'DEFAULT_HOST_SCOPE',
    'SAFE_ENV_VARS',
    'COMPOSE_FILE_NAMES', 'DEVCONTAINER_FILE_NAME', 'DEFAULT_SCAN_FILES',
    'DEFAULT_GLOBAL_BLOCKED_PATTERNS', 'CLAUDE_SETTINGS_FILES',
    'GEMINI_IGNORE_FILES', 'SKIPPED_SCAN_DIRS',
    'DEFAULT_MASK_REPLACEMENT', 'DEFAULT_MASKING_PATTERNS',
    'DEFAULT_HOST_PATH_REPLACEMENT', 'HOST_PATH_PREFIXES',
    'WINDOWS_HOST_PATH_PREFIXES',
    'DEFAULT_LOG_TAIL', 'DEFAULT_EXEC_TIMEOUT', 'DEFAULT_COMMAND_TIMEOUT',
    'MAX_OUTPUT_LENGTH',
]
