"""
SandGate — Output Masking Tests
=================================

Per-target masking rules, rule validation and host path masking.

Run with:  pytest tests/test_masking.py -v
"""

from sandgate.core.config import OutputMaskingConfig
from sandgate.core.types import OutputTarget
from sandgate.core.access.masking import OutputMasker, mask_host_paths


def _masker(data):
    return OutputMasker.from_config(OutputMaskingConfig.from_dict(data))


class TestDefaultPatterns:

    def test_password_assignment_masked(self):
        masker = _masker({})
        assert masker.mask("password=hunter2", OutputTarget.LOGS) == "[MASKED]"

    def test_bearer_token_masked_everywhere(self):
        masker = _masker({})
        for target in OutputTarget:
            out = masker.mask("Authorization: Bearer abc.def-123", target)
            assert "abc.def-123" not in out

    def test_connection_string_credentials(self):
        out = _masker({}).mask("postgres://app:s3cret@db:5432/app", OutputTarget.EXEC)
        assert "s3cret" not in out
        assert out.endswith("db:5432/app")

    def test_masking_is_idempotent(self):
        masker = _masker({})
        once = masker.mask("token: abc123 api_key=xyz", OutputTarget.LOGS)
        assert masker.mask(once, OutputTarget.LOGS) == once

    def test_plain_text_untouched(self):
        assert _masker({}).mask("listening on :8080", OutputTarget.LOGS) == "listening on :8080"


class TestTargets:

    def _log_only(self):
        return _masker({
            'patterns': [],
            'rules': [{
                'pattern': r'internal-[0-9]+',
                'replacement': '<id>',
                'apply_to': {'logs': True, 'exec': False, 'inspect': False},
            }],
        })

    def test_log_only_rule_does_not_touch_inspect(self):
        masker = self._log_only()
        assert masker.mask("host internal-42", OutputTarget.LOGS) == "host <id>"
        assert masker.mask("host internal-42", OutputTarget.INSPECT) == "host internal-42"
        assert masker.mask("host internal-42", OutputTarget.EXEC) == "host internal-42"

    def test_top_level_apply_to(self):
        masker = _masker({'patterns': ['sk-[a-z]+'], 'apply_to': {'exec': False}})
        assert masker.mask("key sk-abc", OutputTarget.LOGS) == "key [MASKED]"
        assert masker.mask("key sk-abc", OutputTarget.EXEC) == "key sk-abc"

    def test_status(self):
        status = self._log_only().status()
        assert status == {
            'enabled': True,
            'pattern_count': 1,
            'apply_to': {'logs': True, 'exec': False, 'inspect': False},
        }

    def test_disabled_masker_passes_through(self):
        masker = _masker({'enabled': False})
        assert masker.mask("password=hunter2", OutputTarget.LOGS) == "password=hunter2"
        assert not any(masker.status()['apply_to'].values())


class TestRuleValidation:

    def test_invalid_regex_skipped(self):
        masker = _masker({'patterns': ['(', 'sk-[a-z]+']})
        assert masker.pattern_count == 1

    def test_replacement_matching_a_rule_is_rejected(self):
        masker = _masker({'patterns': [r'secret-\w+'], 'replacement': 'secret-hidden'})
        assert masker.pattern_count == 0
        assert masker.mask("secret-abc", OutputTarget.LOGS) == "secret-abc"

    def test_replacement_inserted_literally(self):
        masker = _masker({'patterns': [], 'rules': [
            {'pattern': '(a)b', 'replacement': r'\1'},
        ]})
        assert masker.mask("xab", OutputTarget.LOGS) == r"x\1"

    def test_rule_feeding_another_rule_is_rejected(self):
        masker = _masker({'patterns': [], 'rules': [
            {'pattern': 'foo', 'replacement': 'bar'},
            {'pattern': 'bar', 'replacement': 'baz'},
        ]})
        # Rule one produces "bar", which rule two matches
        assert masker.pattern_count == 1
        assert masker.mask("foo bar", OutputTarget.LOGS) == "foo baz"


class TestHostPaths:

    def test_unix_home(self):
        assert mask_host_paths("/home/alice/project", "[HOST_PATH]") == "[HOST_PATH]/project"
        assert mask_host_paths('"/Users/carol"', "[HOST_PATH]") == '"[HOST_PATH]"'

    def test_windows_home(self):
        text = "C:\\Users\\bob\\src and C:/Users/bob/src"
        assert mask_host_paths(text, "[HOST_PATH]") == "[HOST_PATH]\\src and [HOST_PATH]/src"

    def test_bare_prefix_unchanged(self):
        assert mask_host_paths("/home/", "[HOST_PATH]") == "/home/"

    def test_other_paths_unchanged(self):
        assert mask_host_paths("/var/lib/docker", "[HOST_PATH]") == "/var/lib/docker"
