"""Settings loading, precedence and credential masking."""
import json

import pytest

from labmirror.config import Credentials, Settings, Timeouts, load_settings, mask_identifier, parse_bool
from labmirror.errors import ConfigError

BASE_ENV = {"EDUCODER_USERNAME": "13812345678", "EDUCODER_PASSWORD": "pw"}


@pytest.fixture
def paths(tmp_path):
    return tmp_path / ".env", tmp_path / "config.json"


class TestLoadSettings:
    def test_defaults(self, paths):
        env_file, config_file = paths
        settings = load_settings(env_file=env_file, config_file=config_file, environ=BASE_ENV)
        assert settings.target == Credentials("13812345678", "pw")
        assert settings.source is None
        assert settings.course_name == "机器学习"
        assert settings.course_url is None
        assert settings.timeouts == Timeouts()
        assert settings.tolerate_divergence is True
        assert settings.headless is False

    def test_missing_target_credentials(self, paths):
        env_file, config_file = paths
        with pytest.raises(ConfigError):
            load_settings(env_file=env_file, config_file=config_file, environ={})

    def test_require_dual_without_source(self, paths):
        env_file, config_file = paths
        settings = load_settings(env_file=env_file, config_file=config_file, environ=BASE_ENV)
        with pytest.raises(ConfigError):
            settings.require_dual()

    def test_environment_beats_env_file_beats_config_json(self, paths):
        env_file, config_file = paths
        env_file.write_text(
            "EDUCODER_COURSE_NAME=数据挖掘\nTIMEOUT_LEVEL_WAIT=1500\nEDUCODER_COMPLETE_USERNAME=done@example.com\n",
            encoding="utf-8",
        )
        config_file.write_text(
            json.dumps(
                {
                    "educoder": {"courseName": "深度学习", "completePassword": "secret", "courseUrl": "https://x/list"},
                    "timeout": {"levelWait": 9000, "evaluation": 45000, "loginResult": 20000},
                    "browser": {"headless": True},
                }
            ),
            encoding="utf-8",
        )
        environ = dict(BASE_ENV, TIMEOUT_LEVEL_WAIT="2500")
        settings = load_settings(env_file=env_file, config_file=config_file, environ=environ)
        assert settings.course_name == "数据挖掘"
        assert settings.course_url == "https://x/list"
        assert settings.timeouts.level_buffer == 2500
        assert settings.timeouts.evaluation == 45000
        assert settings.timeouts.login_result == 20000
        assert settings.headless is True
        assert settings.require_dual() == Credentials("done@example.com", "secret")

    def test_bad_values_fall_back(self, paths):
        env_file, config_file = paths
        config_file.write_text("{not json", encoding="utf-8")
        environ = dict(BASE_ENV, TIMEOUT_PAGE_LOAD="soon", MIRROR_TOLERATE_DIVERGENCE="no")
        settings = load_settings(env_file=env_file, config_file=config_file, environ=environ)
        assert settings.timeouts.page_load == 20000
        assert settings.tolerate_divergence is False


class TestMasking:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("13812345678", "138****5678"),
            ("abcdef@example.com", "ab***@example.com"),
            ("ab@example.com", "a*@example.com"),
            ("student", "s***t"),
            ("ab", "*b"),
            ("", ""),
        ],
    )
    def test_mask_identifier(self, value, expected):
        assert mask_identifier(value) == expected

    def test_credentials_repr_hides_password(self):
        text = repr(Credentials("13812345678", "hunter2"))
        assert "hunter2" not in text
        assert "138****5678" in text

    def test_settings_repr_hides_passwords(self):
        text = repr(Settings(target=Credentials("student", "hunter2")))
        assert "hunter2" not in text

    @pytest.mark.parametrize("value,expected", [("1", True), ("YES", True), ("false", False), (None, True)])
    def test_parse_bool(self, value, expected):
        assert parse_bool(value, True) is expected
