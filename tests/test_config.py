"""
Configuration Tests
-------------------
Tests cover:
- Credential loading order and immutability
- YAML config with environment overrides
- Typed settings defaults
"""

import pytest

from api.credentials import CredentialSet, load_credentials, tail
from infra.config import ConfigManager, SecretManager, Settings


class TestCredentialSet:

    def test_iterates_in_priority_order(self):
        creds = CredentialSet(["first", "second"])

        assert list(creds) == ["first", "second"]
        assert len(creds) == 2
        assert not creds.is_empty()

    def test_empty(self):
        assert CredentialSet().is_empty()
        assert CredentialSet(["", ""]).is_empty()

    def test_immutable(self):
        creds = CredentialSet(["a"])

        with pytest.raises(AttributeError):
            creds._credentials = ("b",)

    def test_repr_hides_secrets(self):
        creds = CredentialSet(["supersecret-1234"])

        assert "supersecret" not in repr(creds)
        assert "1234" in repr(creds)

    def test_tail(self):
        assert tail("abcd1234") == "1234"
        assert tail("") == ""


class TestLoadCredentials:

    def test_primary_then_fallback(self):
        creds = load_credentials({
            "PANDA_SCORE_TOKEN_FALLBACK": "backup",
            "PANDA_SCORE_TOKEN": "primary",
        })

        assert list(creds) == ["primary", "backup"]

    def test_missing_is_not_an_error_at_load(self):
        """Missing tokens are only fatal on first use."""
        creds = load_credentials({})

        assert creds.is_empty()

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("PANDA_SCORE_TOKEN", "from-env")

        assert list(load_credentials()) == ["from-env"]

    def test_secret_manager_validate(self):
        manager = SecretManager({"PANDA_SCORE_TOKEN": "x"})

        assert manager.validate() == {
            "panda_score_token": True,
            "panda_score_token_fallback": False,
        }
        assert manager.list_available() == ["panda_score_token"]


class TestConfigManager:

    def test_missing_file_uses_defaults(self, tmp_path):
        config = ConfigManager(str(tmp_path / "absent.yaml"), environ={})

        assert config.get("cache.ttl_seconds", 300) == 300

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("cache:\n  ttl_seconds: 120\n  max_size: 10\n")

        config = ConfigManager(str(path), environ={})

        assert config.get("cache.ttl_seconds") == 120
        assert config.get_section("cache") == {"ttl_seconds": 120, "max_size": 10}

    def test_environment_overrides_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("cache:\n  ttl_seconds: 120\n")

        config = ConfigManager(str(path), environ={"EMOB_CACHE_TTL_SECONDS": "45"})

        assert config.get("cache.ttl_seconds") == "45"

    def test_runtime_set(self, tmp_path):
        config = ConfigManager(str(tmp_path / "absent.yaml"), environ={})
        config.set("upstream.min_credentials", 1)

        assert config.get("upstream.min_credentials") == 1


class TestSettings:

    def test_defaults(self, tmp_path):
        settings = Settings.from_config(ConfigManager(str(tmp_path / "absent.yaml"), environ={}))

        assert settings.cache_ttl_seconds == 300.0
        assert settings.cache_max_size == 50
        assert settings.min_credentials == 2
        assert settings.timeout_seconds == 10.0
        assert settings.base_url == "https://api.pandascore.co"
        assert settings.log_dir is None

    def test_environment_values_are_coerced(self, tmp_path):
        config = ConfigManager(
            str(tmp_path / "absent.yaml"),
            environ={"EMOB_CACHE_MAX_SIZE": "12", "EMOB_LOGGING_LEVEL": "debug"},
        )

        settings = Settings.from_config(config)

        assert settings.cache_max_size == 12
        assert settings.log_level == "DEBUG"
