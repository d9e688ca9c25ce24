"""
Tests for the state store backends, the settings manager and migrations.
"""

import json

import pytest

from commit_watch.config import MonitorSettings
from commit_watch.exceptions import ConfigurationError, StorageError
from commit_watch.state.manager import (
    InMemoryStateStore,
    JsonFileStateStore,
    StateStore,
    StateStoreFactory,
    StorageKeys,
)
from commit_watch.state.migrations import (
    CURRENT_SCHEMA_VERSION,
    migrate_legacy_keys,
    normalize_repo_keys,
)
from commit_watch.state.settings import SettingsManager


class TestInMemoryStateStore:
    """Test the InMemoryStateStore implementation."""

    def setup_method(self):
        """Set up test fixtures."""
        self.store = InMemoryStateStore()

    @pytest.mark.asyncio
    async def test_set_get_remove(self):
        await self.store.set({"a": 1, "b": {"x": [1, 2]}})

        assert await self.store.get(["a", "b", "missing"]) == {"a": 1, "b": {"x": [1, 2]}}
        assert await self.store.get_value("a") == 1
        assert await self.store.get_value("missing", "fallback") == "fallback"

        await self.store.remove(["a", "missing"])
        assert await self.store.get("a") == {}
        assert self.store.get_stats() == {"keys_count": 1}

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        """Mutating a value after writing or reading it does not change the store."""
        value = {"github:org/a": "sha1"}
        await self.store.set({StorageKeys.LAST_COMMITS: value})
        value["github:org/b"] = "sha2"

        read = await self.store.get_value(StorageKeys.LAST_COMMITS)
        read["github:org/c"] = "sha3"

        assert await self.store.get_value(StorageKeys.LAST_COMMITS) == {"github:org/a": "sha1"}

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await self.store.health_check() is True


class TestJsonFileStateStore:
    """Test the JSON file backend."""

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "state" / "commit-watch.json"
        store = JsonFileStateStore(path)

        await store.set({StorageKeys.UNREAD_COUNT: 3, "github_token": "secret"})
        await store.remove("github_token")

        reopened = JsonFileStateStore(path)
        assert await reopened.get_value(StorageKeys.UNREAD_COUNT) == 3
        assert await reopened.get_value("github_token") is None
        assert json.loads(path.read_text()) == {StorageKeys.UNREAD_COUNT: 3}
        assert not path.with_suffix(".json.tmp").exists()

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        store = JsonFileStateStore(tmp_path / "absent.json")

        assert await store.get(["anything"]) == {}
        assert await store.health_check() is True

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_storage_error(self, tmp_path):
        path = tmp_path / "corrupt.json"
        path.write_text("{not json")
        store = JsonFileStateStore(path)

        with pytest.raises(StorageError):
            await store.get_value("settings")
        assert await store.health_check() is False

    @pytest.mark.asyncio
    async def test_non_object_document_raises(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]")

        with pytest.raises(StorageError):
            await JsonFileStateStore(path).get_value("settings")

    @pytest.mark.asyncio
    async def test_stats(self, tmp_path):
        store = JsonFileStateStore(tmp_path / "state.json")
        await store.set({"a": 1, "b": 2})

        stats = store.get_stats()

        assert stats["keys_count"] == 2
        assert stats["path"].endswith("state.json")


class TestStateStoreFactory:
    """Test the StateStoreFactory."""

    def test_create_memory_store(self):
        store = StateStoreFactory.create_state_store("memory")
        assert isinstance(store, InMemoryStateStore)
        assert isinstance(store, StateStore)

    def test_create_file_store(self, tmp_path):
        store = StateStoreFactory.create_state_store("FILE", tmp_path / "s.json")
        assert isinstance(store, JsonFileStateStore)

    def test_file_store_requires_path(self):
        with pytest.raises(ValueError, match="requires a path"):
            StateStoreFactory.create_state_store("file")

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown state backend"):
            StateStoreFactory.create_state_store("redis")

    def test_supported_backends(self):
        assert StateStoreFactory.get_supported_backends() == ["memory", "file"]


class TestMigrations:
    """Test the legacy key migration."""

    def test_normalize_repo_keys(self):
        normalized = normalize_repo_keys(
            {
                "org/a": "legacy-a",
                "org/b": "legacy-b",
                "github:org/b": "composite-b",
                "gitlab:group/c": "c",
            }
        )

        assert normalized == {
            "github:org/a": "legacy-a",
            "github:org/b": "composite-b",
            "gitlab:group/c": "c",
        }

    @pytest.mark.asyncio
    async def test_migrates_settings_and_watch_state(self):
        store = InMemoryStateStore(
            {
                StorageKeys.SETTINGS: {"enabled_repos": {"org/a": False}},
                StorageKeys.LAST_COMMITS: {"org/a": "sha1"},
                StorageKeys.LAST_RELEASES: {"org/a": "42", "gitlab:g/p": "v1"},
            }
        )

        assert await migrate_legacy_keys(store) is True

        assert await store.get_value(StorageKeys.SETTINGS) == {
            "enabled_repos": {"github:org/a": False}
        }
        assert await store.get_value(StorageKeys.LAST_COMMITS) == {"github:org/a": "sha1"}
        assert await store.get_value(StorageKeys.LAST_RELEASES) == {
            "github:org/a": "42",
            "gitlab:g/p": "v1",
        }
        assert await store.get_value(StorageKeys.SCHEMA_VERSION) == CURRENT_SCHEMA_VERSION

    @pytest.mark.asyncio
    async def test_migration_runs_once(self):
        store = InMemoryStateStore({StorageKeys.LAST_COMMITS: {"org/a": "sha1"}})
        await migrate_legacy_keys(store)

        # Plain keys written after the migration are left untouched
        await store.set({StorageKeys.LAST_COMMITS: {"org/z": "sha9"}})

        assert await migrate_legacy_keys(store) is False
        assert await store.get_value(StorageKeys.LAST_COMMITS) == {"org/z": "sha9"}

    @pytest.mark.asyncio
    async def test_empty_store_only_records_version(self):
        store = InMemoryStateStore()

        assert await migrate_legacy_keys(store) is True
        assert await store.get(
            [StorageKeys.SCHEMA_VERSION, StorageKeys.LAST_COMMITS]
        ) == {StorageKeys.SCHEMA_VERSION: CURRENT_SCHEMA_VERSION}


class TestSettingsManager:
    """Test persisted monitoring preferences."""

    def setup_method(self):
        self.store = InMemoryStateStore()
        self.manager = SettingsManager(self.store, MonitorSettings(check_interval_minutes=10))

    @pytest.mark.asyncio
    async def test_load_defaults(self):
        settings = await self.manager.load()

        assert settings.check_interval_minutes == 10
        assert settings.ignore_forks is True
        assert settings.is_repo_enabled("github:org/anything")

    @pytest.mark.asyncio
    async def test_stored_values_merge_over_defaults(self):
        await self.store.set({StorageKeys.SETTINGS: {"ignore_own_commits": True}})

        settings = await self.manager.load()

        assert settings.ignore_own_commits is True
        assert settings.check_interval_minutes == 10

    @pytest.mark.asyncio
    async def test_invalid_stored_settings_fall_back_to_defaults(self):
        await self.store.set({StorageKeys.SETTINGS: {"check_interval_minutes": -1}})

        settings = await self.manager.load()

        assert settings.check_interval_minutes == 10

    @pytest.mark.asyncio
    async def test_update_persists(self):
        updated = await self.manager.update(
            {"enabled_repos": {"github:org/a": False}, "ignore_forks": False}
        )

        assert not updated.is_repo_enabled("github:org/a")
        stored = await self.store.get_value(StorageKeys.SETTINGS)
        assert stored["ignore_forks"] is False
        assert stored["check_interval_minutes"] == 10

    @pytest.mark.asyncio
    async def test_unknown_field_is_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown settings"):
            await self.manager.update({"poll_everything": True})

    @pytest.mark.asyncio
    async def test_invalid_value_is_rejected(self):
        with pytest.raises(ConfigurationError):
            await self.manager.update({"check_interval_minutes": 0})
        assert await self.store.get_value(StorageKeys.SETTINGS) is None
