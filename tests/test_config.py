"""
imageslot Tests - Configuration, credentials and saved preferences
"""

import pytest

from imageslot.config import Credential, Settings, parse_resource_path
from imageslot.errors import AuthError, ConfigError
from imageslot.models import LosslessPolicy, ManualPolicy, PresetPolicy
from imageslot.preferences import PreferenceStore, default_policy


class TestCredential:
    def test_complete_credential(self):
        credential = Credential(token="ghp_abc", resource_path="owner/repo")
        assert credential.require() is credential

    def test_missing_token(self):
        with pytest.raises(AuthError):
            Credential(token="", resource_path="owner/repo").require()

    def test_missing_token_is_config_error(self):
        with pytest.raises(ConfigError):
            Credential(resource_path="owner/repo").require()

    def test_missing_path(self):
        with pytest.raises(ConfigError):
            Credential(token="ghp_abc").require()

    def test_settings_provider(self, test_settings):
        credential = test_settings.credential()
        assert credential.token == "ghp_testtoken1234"
        assert credential.resource_path == "owner/repo"


class TestResourcePath:
    def test_two_segments(self):
        assert parse_resource_path("owner/repo") == ("owner", "repo")

    def test_surrounding_slashes(self):
        assert parse_resource_path("/owner/repo/") == ("owner", "repo")

    @pytest.mark.parametrize("path", ["", "owner", "owner/", "a/b/c"])
    def test_malformed(self, path):
        with pytest.raises(ConfigError):
            parse_resource_path(path)


class TestDefaults:
    def test_upload_limits(self):
        config = Settings(_env_file=None)
        assert config.max_upload_bytes == 20 * 1024 * 1024
        assert config.max_dimension == 2048
        assert config.upload_confirm_delay == 10.0
        assert config.reuse_confirm_delay == 3.0
        assert config.resource_filename == "image1.jpg"

    def test_default_policy_is_medium_preset(self):
        assert default_policy(Settings(_env_file=None)) == PresetPolicy(tier="medium")

    def test_default_policy_manual(self):
        config = Settings(_env_file=None, compression_mode="manual", compression_quality=40)
        assert default_policy(config) == ManualPolicy(factor=0.4)

    def test_default_policy_none(self):
        config = Settings(_env_file=None, compression_mode="none")
        assert default_policy(config) == LosslessPolicy()


class TestPreferenceStore:
    def test_defaults_without_file(self, test_settings, tmp_path):
        store = PreferenceStore(tmp_path / "prefs.json", config=test_settings)
        assert store.load() == PresetPolicy(tier="medium")

    def test_save_and_load(self, test_settings, tmp_path):
        store = PreferenceStore(tmp_path / "prefs.json", config=test_settings)

        store.save(ManualPolicy(factor=0.35))

        assert PreferenceStore(tmp_path / "prefs.json", config=test_settings).load() == ManualPolicy(factor=0.35)

    def test_unreadable_file_falls_back(self, test_settings, tmp_path):
        state_file = tmp_path / "prefs.json"
        state_file.write_text('{"compression": {"mode": "manual", "factor": 7}}', encoding="utf-8")

        assert PreferenceStore(state_file, config=test_settings).load() == PresetPolicy(tier="medium")

    @pytest.mark.parametrize("content", ["[1, 2]", "42", '"high"', "null"])
    def test_non_object_file_falls_back(self, test_settings, tmp_path, content):
        state_file = tmp_path / "prefs.json"
        state_file.write_text(content, encoding="utf-8")

        assert PreferenceStore(state_file, config=test_settings).load() == PresetPolicy(tier="medium")
