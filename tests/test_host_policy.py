"""
SandGate — Host Command Policy Tests
======================================

Whitelist / deny precedence, hard-coded metacharacter rejection, dangerous
mode and blocked-path checks of host command arguments.

Run with:  pytest tests/test_host_policy.py -v
"""

import pytest

from sandgate.core.config import HostCommandsConfig
from sandgate.core.types import BlockedPath, ParseError, PermissionDenied
from sandgate.core.access.blocked_paths import BlockedPathIndex
from sandgate.core.access.host_policy import (
    HostCommandPolicy, docker_targets, split_command,
)
from sandgate.core.access.policy import DANGEROUS_HINT


@pytest.fixture
def host_policy(host_commands_config):
    return HostCommandPolicy(host_commands_config)


@pytest.fixture
def blocked_index():
    return BlockedPathIndex([
        BlockedPath(container='api', pattern='/etc/shadow', reason='manual_block'),
        BlockedPath(container='host', pattern='/etc/passwd', reason='manual_block'),
        BlockedPath(container='*', pattern='.env', reason='global_pattern'),
    ])


# =========================================================================
# PARSING
# =========================================================================

class TestCommandParsing:

    def test_split_command(self):
        assert split_command("git  diff   HEAD") == ("git", "diff HEAD", ["git", "diff", "HEAD"])
        assert split_command("") == ("", "", [])

    def test_split_command_quotes(self):
        base, args, tokens = split_command('git commit -m "two words"')
        assert tokens == ['git', 'commit', '-m', 'two words']
        assert args == 'commit -m two words'

    @pytest.mark.parametrize("tokens,expected", [
        (['docker', 'logs', '--tail', '50', 'api'], (['api'], -1)),
        (['docker', 'exec', '-u', 'root', 'api', 'cat', '/x'], (['api'], 5)),
        (['docker', 'compose', 'restart', 'web'], (['web'], -1)),
        (['docker', 'stop', 'dev-app', 'prod-db'], (['dev-app', 'prod-db'], -1)),
        (['docker', 'rm', '-f', 'prod-db'], (['prod-db'], -1)),
        (['docker', 'logs', '-f', '-t', 'prod-db'], (['prod-db'], -1)),
        (['docker', 'compose', '-f', 'x.yml', 'logs', 'svc'], (['svc'], -1)),
        (['docker-compose', '-p', 'proj', 'exec', 'web', 'ls'], (['web'], 5)),
        (['docker', 'container', 'stop', '-t', '5', 'api'], (['api'], -1)),
        (['docker', 'ps'], ([], -1)),
        (['docker', 'images', 'nginx'], ([], -1)),
        (['git', 'status'], ([], -1)),
    ])
    def test_docker_targets(self, tokens, expected):
        targets = docker_targets(tokens)
        assert (targets.containers, targets.command_index) == expected

    def test_docker_cp_operands(self):
        targets = docker_targets(['docker', 'cp', 'api:/etc/shadow', './out'])
        assert targets.containers == ['api']
        assert targets.container_paths == [('api', '/etc/shadow')]
        assert targets.operand_indices == {2}


# =========================================================================
# WHITELIST AND DENY
# =========================================================================

class TestWhitelist:

    def test_git_scenario(self, host_policy):
        assert host_policy.can_exec("git status") == (True, "OK")
        assert host_policy.can_exec("git diff HEAD~1") == (True, "OK")

        allowed, reason = host_policy.can_exec("git status --short")
        assert not allowed
        assert "not whitelisted" in reason

    def test_unknown_base_command(self, host_policy):
        assert host_policy.can_exec("curl http://example.com") == (
            False, "command not whitelisted: curl http://example.com")

    def test_deny_wins_over_whitelist(self):
        policy = HostCommandPolicy(HostCommandsConfig.from_dict({
            'enabled': True,
            'deny': {'echo': ['dangerous *']},
            'whitelist': {'echo': ['dangerous test']},
        }))
        with pytest.raises(PermissionDenied) as exc:
            policy.authorize("echo dangerous test")
        assert exc.value.reason == "command denied: echo dangerous test"
        assert exc.value.rule == "echo dangerous *"

    def test_authorize_returns_argv(self, host_policy):
        assert host_policy.authorize("git diff HEAD") == ['git', 'diff', 'HEAD']

    @pytest.mark.parametrize("command", [
        "echo hi | cat",
        "echo hi; rm -rf /",
        "echo `whoami`",
        "echo $(id)",
        "echo a && b",
        "echo a || b",
    ])
    def test_metacharacters_rejected_regardless_of_whitelist(self, host_policy, command):
        # echo is whitelisted with "*", so only the metacharacter check can deny
        allowed, reason = host_policy.can_exec(command)
        assert not allowed
        assert "shell metacharacter" in reason
        assert not host_policy.can_exec_dangerously(command)[0]

    def test_path_traversal_rejected(self, host_policy):
        allowed, reason = host_policy.can_exec("git diff ../other/file")
        assert not allowed
        assert reason == "path traversal detected: git diff ../other/file"

    def test_empty_command(self, host_policy):
        assert host_policy.can_exec("   ") == (False, "empty command")

    def test_unterminated_quote(self, host_policy):
        with pytest.raises(ParseError):
            host_policy.authorize('echo "oops')
        allowed, reason = host_policy.can_exec('echo "oops')
        assert not allowed
        assert reason.startswith("failed to parse command:")

    def test_disabled(self):
        policy = HostCommandPolicy(HostCommandsConfig())
        assert policy.can_exec("git status") == (False, "host commands are disabled")

    def test_listing(self, host_policy):
        assert host_policy.allowed_commands()['git'] == ['status', 'diff *']
        assert host_policy.dangerous_commands()['*'] == ['env']


# =========================================================================
# DANGEROUS MODE
# =========================================================================

class TestDangerousMode:

    def test_dangerous_only_command_needs_opt_in(self, host_policy):
        allowed, reason = host_policy.can_exec("git log")
        assert not allowed
        assert DANGEROUS_HINT in reason
        assert host_policy.can_exec_dangerously("git log") == (True, "OK")

    def test_star_entry_admits_base_command(self, host_policy):
        assert host_policy.can_exec_dangerously("env") == (True, "OK")

    def test_unlisted_subcommand(self, host_policy):
        assert host_policy.can_exec_dangerously("git push") == (
            False, "command not allowed in dangerous mode: git push")

    def test_whitelisted_command_also_passes_in_dangerous_mode(self, host_policy):
        assert host_policy.can_exec_dangerously("git status")[0]

    def test_disabled_dangerous_mode(self):
        policy = HostCommandPolicy(HostCommandsConfig.from_dict({
            'enabled': True,
            'dangerously': {'enabled': False, 'commands': {'git': ['log']}},
        }))
        assert policy.can_exec_dangerously("git log") == (
            False, "dangerous mode is not enabled for host commands")
        allowed, reason = policy.can_exec("git log")
        assert reason == "command not whitelisted: git log"

    def test_deny_applies_in_dangerous_mode(self):
        policy = HostCommandPolicy(HostCommandsConfig.from_dict({
            'enabled': True,
            'deny': {'git': ['push *']},
            'dangerously': {'enabled': True, 'commands': {'git': ['*']}},
        }))
        assert policy.can_exec_dangerously("git log")[0]
        assert not policy.can_exec_dangerously("git push origin main")[0]


# =========================================================================
# CONTAINERS AND BLOCKED PATHS
# =========================================================================

class TestDockerCommands:

    def test_container_allow_list(self, host_commands_config):
        host_commands_config.allowed_containers = ['api']
        policy = HostCommandPolicy(host_commands_config)
        assert policy.can_exec("docker logs api")[0]
        assert policy.can_exec("docker logs db") == (
            False, "container not in allowed list: db")
        # Commands that name no container are unaffected
        assert policy.can_exec("docker ps")[0]

    def test_blocked_path_scoped_to_named_container(self, host_commands_config, blocked_index):
        policy = HostCommandPolicy(host_commands_config, blocked_index)
        with pytest.raises(PermissionDenied) as exc:
            policy.authorize("docker exec api cat /etc/shadow")
        assert exc.value.rule is blocked_index.is_path_blocked("api", "/etc/shadow")
        assert exc.value.reason == "path is blocked: /etc/shadow (reason: manual_block)"

        # The entry is specific to api
        assert policy.can_exec("docker exec worker cat /etc/shadow")[0]

    def test_global_entry_applies_to_host_scope(self, host_commands_config, blocked_index):
        policy = HostCommandPolicy(host_commands_config, blocked_index)
        assert not policy.can_exec("echo /srv/app/.env")[0]
        assert not policy.can_exec("echo /etc/passwd")[0]
        assert policy.can_exec("echo /etc/hostname")[0]

    def test_option_value_paths_checked(self, host_commands_config, blocked_index):
        policy = HostCommandPolicy(host_commands_config, blocked_index)
        assert not policy.can_exec("git diff --output=/app/.env")[0]

    @pytest.fixture
    def dev_only_policy(self, blocked_index):
        return HostCommandPolicy(HostCommandsConfig.from_dict({
            'enabled': True,
            'allowed_containers': ['dev-*'],
            'whitelist': {'docker': ['stop *', 'rm *', 'logs *', 'compose *', 'cp *', 'exec *']},
        }), blocked_index)

    def test_every_operand_checked_against_allow_list(self, dev_only_policy):
        assert dev_only_policy.can_exec("docker stop dev-app dev-web")[0]
        assert dev_only_policy.can_exec("docker stop dev-app prod-db") == (
            False, "container not in allowed list: prod-db")

    @pytest.mark.parametrize("command", [
        "docker rm -f prod-db",
        "docker logs -f prod-db",
        "docker logs -t --tail 10 prod-db",
    ])
    def test_boolean_flags_do_not_hide_container(self, dev_only_policy, command):
        assert dev_only_policy.can_exec(command) == (
            False, "container not in allowed list: prod-db")

    def test_boolean_flag_before_allowed_container(self, dev_only_policy):
        assert dev_only_policy.can_exec("docker rm -f dev-app") == (True, "OK")

    def test_compose_global_options_skipped(self, dev_only_policy):
        assert dev_only_policy.can_exec("docker compose -f x.yml logs dev-web")[0]
        assert dev_only_policy.can_exec("docker compose -f x.yml logs svc") == (
            False, "container not in allowed list: svc")

    def test_cp_container_path_blocked(self, blocked_index):
        policy = HostCommandPolicy(HostCommandsConfig.from_dict({
            'enabled': True, 'whitelist': {'docker': ['cp *']},
        }), blocked_index)
        allowed, reason = policy.can_exec("docker cp api:/etc/shadow ./out")
        assert not allowed
        assert reason == "path is blocked: /etc/shadow (reason: manual_block)"
        assert policy.can_exec("docker cp worker:/etc/shadow ./out")[0]

    def test_host_side_option_value_checked(self, dev_only_policy):
        allowed, reason = dev_only_policy.can_exec("docker exec --env-file /srv/app/.env dev-app ls")
        assert not allowed
        assert reason == "path is blocked: /srv/app/.env (reason: global_pattern)"
