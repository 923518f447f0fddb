import pytest

from idea_capture.config import DEFAULT_SETTINGS, SettingsManager
from idea_capture.exceptions import ConfigurationError


def test_defaults_without_file(tmp_path):
    settings = SettingsManager(tmp_path)

    assert settings.get('export.max_uri_length') == 2000
    assert settings.get('export', 'safety_margin') == 100
    assert settings.get('audio', 'max_duration_seconds') == 60
    assert settings.get('missing.key', default="x") == "x"


def test_user_file_is_merged_over_defaults(tmp_path):
    (tmp_path / "settings.yaml").write_text(
        "export:\n  vault_name: Ideas\n  enrichment_timeout_seconds: 2\n"
    )

    settings = SettingsManager(tmp_path)

    assert settings.get('export', 'vault_name') == "Ideas"
    assert settings.get('export', 'enrichment_timeout_seconds') == 2
    assert settings.get('export', 'summary_max_length') == 1000


def test_set_and_save_round_trip(tmp_path):
    settings = SettingsManager(tmp_path)
    settings.set('hotkeys.hold_to_talk', 'ctrl+alt+r')
    settings.save()

    assert SettingsManager(tmp_path).get('hotkeys', 'hold_to_talk') == 'ctrl+alt+r'


def test_all_is_a_copy(tmp_path):
    settings = SettingsManager(tmp_path)
    settings.all['export']['vault_name'] = "changed"

    assert settings.get('export', 'vault_name') == DEFAULT_SETTINGS['export']['vault_name']


@pytest.mark.parametrize("content", ["export: [unclosed", "- just\n- a list\n"])
def test_invalid_file_raises(tmp_path, content):
    (tmp_path / "settings.yaml").write_text(content)

    with pytest.raises(ConfigurationError):
        SettingsManager(tmp_path)


def test_vault_name_falls_back_to_environment(tmp_path, monkeypatch):
    monkeypatch.setenv('OBSIDIAN_VAULT_NAME', 'EnvVault')
    settings = SettingsManager(tmp_path)
    settings.set('export', 'vault_name', '')

    assert settings.get_vault_name() == 'EnvVault'

    settings.set('export', 'vault_name', 'Configured')
    assert settings.get_vault_name() == 'Configured'


def test_session_dir_is_created(tmp_path):
    settings = SettingsManager(tmp_path / "config")
    settings.set('logging', 'session_dir', str(tmp_path / "sessions"))

    assert settings.get_session_dir().is_dir()


def test_set_requires_value(tmp_path):
    with pytest.raises(ValueError):
        SettingsManager(tmp_path).set('only_key')


@pytest.mark.parametrize("content", [
    "export:\n  max_uri_length: 0\n",
    "export:\n  enrichment_timeout_seconds: -1\n",
    "audio:\n  max_duration_seconds: soon\n",
    "export:\n  max_uri_length: 100\n  safety_margin: 100\n",
])
def test_unusable_limits_raise(tmp_path, content):
    (tmp_path / "settings.yaml").write_text(content)

    with pytest.raises(ConfigurationError):
        SettingsManager(tmp_path)


def test_empty_file_keeps_defaults(tmp_path):
    (tmp_path / "settings.yaml").write_text("")

    assert SettingsManager(tmp_path).get('export', 'max_uri_length') == 2000
