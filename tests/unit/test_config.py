"""Unit tests for YAML configuration and persisted settings."""

import json
import os
import pytest
from pathlib import Path

from dictateflow.config import DictateFlowConfig, merge_dicts
from dictateflow.config.settings import (
    InMemorySettingsStore,
    JsonSettingsStore,
    Settings,
    TranscriptionProvider,
    load_settings,
    save_settings,
)


@pytest.mark.unit
class TestDictateFlowConfig:
    """Test cases for DictateFlowConfig."""

    def test_defaults_without_file(self):
        config = DictateFlowConfig()
        assert config.get('history.max_sessions') == 20
        assert config.get('recording.chunk_interval_seconds') == 5.0
        assert config.get('recording.append_padding_seconds') == 5
        assert config.get('audio.sample_rate') == 16000
        assert config.get('missing.key', 'fallback') == 'fallback'

    def test_missing_file(self, temp_data_dir):
        with pytest.raises(FileNotFoundError):
            DictateFlowConfig(os.path.join(temp_data_dir, "nope.yaml"))

    def test_empty_file(self, temp_data_dir):
        path = Path(temp_data_dir) / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError):
            DictateFlowConfig(str(path))

    def test_invalid_yaml(self, temp_data_dir):
        path = Path(temp_data_dir) / "bad.yaml"
        path.write_text("history: [unclosed\n")
        with pytest.raises(ValueError):
            DictateFlowConfig(str(path))

    def test_file_overrides_defaults_and_resolves_paths(self, temp_data_dir):
        path = Path(temp_data_dir) / "dictateflow.yaml"
        path.write_text(
            "history:\n"
            "  max_sessions: 5\n"
            "storage:\n"
            "  data_directory: store\n"
        )
        config = DictateFlowConfig(str(path))

        assert config.get('history.max_sessions') == 5
        # Untouched sections keep their defaults
        assert config.get('recording.max_concurrent_chunks') == 4
        assert config.get('storage.data_directory') == str(Path(temp_data_dir) / "store")
        assert config.get('logging.file_path') == str(Path(temp_data_dir) / "data/logs/dictateflow.log")
        assert config.get_settings_path() == str(Path(temp_data_dir, "store", "settings.json").absolute())

    def test_set(self):
        config = DictateFlowConfig()
        config.set('recording.stop_timeout_seconds', 3)
        config.set('new.nested.key', 'value')
        assert config.get('recording.stop_timeout_seconds') == 3
        assert config.get('new.nested.key') == 'value'

    def test_from_dict(self):
        config = DictateFlowConfig.from_dict({'audio': {'sample_rate': 8000}})
        assert config.get('audio.sample_rate') == 8000
        assert config.get('audio.channels') == 1


@pytest.mark.unit
def test_merge_dicts_is_deep_and_pure():
    base = {'a': {'b': 1, 'c': 2}, 'd': 3}
    merged = merge_dicts(base, {'a': {'b': 10}})
    assert merged == {'a': {'b': 10, 'c': 2}, 'd': 3}
    assert base['a']['b'] == 1


@pytest.mark.unit
class TestSettings:
    """Test cases for loading and saving user settings."""

    def test_defaults(self):
        settings = load_settings(InMemorySettingsStore())
        assert settings.provider == TranscriptionProvider.GOOGLE
        assert settings.stream_chunks is False
        assert settings.custom_vocabulary == []
        assert settings.local.base_url == "http://localhost:1234/v1"
        assert settings.local.model_name == "whisper-1"

    def test_partial_blob_merges_over_defaults(self):
        store = InMemorySettingsStore({'provider': 'local', 'local': {'model_name': 'large-v3'}})
        settings = load_settings(store)
        assert settings.provider == TranscriptionProvider.LOCAL
        assert settings.local.model_name == "large-v3"
        assert settings.local.base_url == "http://localhost:1234/v1"

    def test_invalid_blob_falls_back_to_defaults(self):
        settings = load_settings(InMemorySettingsStore({'provider': 'carrier-pigeon'}))
        assert settings == Settings()

    def test_save_then_load(self):
        store = InMemorySettingsStore()
        settings = Settings(stream_chunks=True, custom_vocabulary=["pydantic", "aiohttp"])
        save_settings(store, settings)
        assert load_settings(store) == settings


@pytest.mark.unit
class TestJsonSettingsStore:
    """Test cases for JsonSettingsStore."""

    def test_missing_file_is_empty(self, temp_data_dir):
        assert JsonSettingsStore(os.path.join(temp_data_dir, "settings.json")).load() == {}

    def test_corrupt_file_is_empty(self, temp_data_dir):
        path = Path(temp_data_dir) / "settings.json"
        path.write_text("{not json")
        assert JsonSettingsStore(str(path)).load() == {}

    def test_non_object_is_empty(self, temp_data_dir):
        path = Path(temp_data_dir) / "settings.json"
        path.write_text("[1, 2]")
        assert JsonSettingsStore(str(path)).load() == {}

    def test_save_creates_parent(self, temp_data_dir):
        path = Path(temp_data_dir) / "nested" / "settings.json"
        store = JsonSettingsStore(str(path))
        store.save({'stream_chunks': True})
        assert json.loads(path.read_text()) == {'stream_chunks': True}
        assert store.load() == {'stream_chunks': True}
