"""Unit tests for runtime configuration."""

from pathlib import Path

import pytest

from message_bridge.config import BridgeConfig, default_storage_path
from message_bridge.storage.kv import JsonFileStore, MemoryStore


class TestFromEnv:
    def test_defaults(self):
        config = BridgeConfig.from_env({})

        assert config.storage_path == default_storage_path()
        assert config.persist is True
        assert config.api_base_url == "http://localhost:3000"
        assert config.request_timeout == 30.0
        assert config.seed_demo_tasks is True
        assert config.log_level == "WARNING"

    def test_overrides(self, tmp_path):
        config = BridgeConfig.from_env(
            {
                "MESSAGE_BRIDGE_STORAGE_PATH": str(tmp_path / "s.json"),
                "MESSAGE_BRIDGE_NO_PERSIST": "yes",
                "MESSAGE_BRIDGE_API_BASE_URL": "https://api.example.com/",
                "MESSAGE_BRIDGE_REQUEST_TIMEOUT": "2.5",
                "MESSAGE_BRIDGE_SEED_DEMO_TASKS": "false",
                "MESSAGE_BRIDGE_LOG_LEVEL": "debug",
            }
        )

        assert config.storage_path == tmp_path / "s.json"
        assert config.persist is False
        assert config.api_base_url == "https://api.example.com"
        assert config.users_url == "https://api.example.com/users"
        assert config.llm_url == "https://api.example.com/llm"
        assert config.request_timeout == 2.5
        assert config.seed_demo_tasks is False
        assert config.log_level == "DEBUG"

    def test_zero_timeout_disables_deadline(self):
        config = BridgeConfig.from_env({"MESSAGE_BRIDGE_REQUEST_TIMEOUT": "0"})

        assert config.request_timeout is None

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("MESSAGE_BRIDGE_NO_PERSIST", "maybe"),
            ("MESSAGE_BRIDGE_REQUEST_TIMEOUT", "soon"),
        ],
    )
    def test_invalid_values(self, name, value):
        with pytest.raises(ValueError):
            BridgeConfig.from_env({name: value})


class TestCreateStore:
    def test_memory_when_not_persisting(self):
        assert isinstance(BridgeConfig(persist=False).create_store(), MemoryStore)

    def test_file_store(self, tmp_path):
        store = BridgeConfig(storage_path=tmp_path / "data" / "storage.json").create_store()

        assert isinstance(store, JsonFileStore)
        assert store.path == Path(tmp_path / "data" / "storage.json")
