"""Unit tests for configuration dataclasses."""

import pytest

from anime_cache.core.models import StorageKind
from anime_cache.utils.config import CacheConfig, RegistryConfig, StorageConfig, default_domains


class TestCacheConfig:
    def test_defaults(self):
        config = CacheConfig()

        assert config.max_size == 1000
        assert config.ttl_seconds == 300.0
        assert config.storage is StorageKind.MEMORY
        assert config.cleanup_interval_seconds == 60.0
        assert config.single_flight is False

    def test_storage_string_is_coerced(self):
        assert CacheConfig(storage="persistent").storage is StorageKind.PERSISTENT

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_size": 0},
            {"ttl_seconds": -5},
            {"cleanup_interval_seconds": 0},
            {"storage": "indexedDB"},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            CacheConfig(**kwargs)


class TestRegistryConfig:
    def test_default_domains(self):
        domains = default_domains()

        assert domains["anime"] == CacheConfig(max_size=500, ttl_seconds=600, storage=StorageKind.PERSISTENT)
        assert domains["episodes"] == CacheConfig(max_size=1000, ttl_seconds=1800, storage=StorageKind.PERSISTENT)
        assert domains["search"] == CacheConfig(max_size=100, ttl_seconds=300, storage=StorageKind.SESSION)
        assert domains["images"] == CacheConfig(max_size=2000, ttl_seconds=3600, storage=StorageKind.PERSISTENT)

    def test_from_empty_dict(self):
        config = RegistryConfig.from_dict({})

        assert config.domains == default_domains()
        assert config.storage == StorageConfig()

    def test_from_dict_merges_overrides(self):
        config = RegistryConfig.from_dict(
            {
                "domains": {"anime": {"ttl_seconds": 60}},
                "storage": {"redis_url": "redis://localhost:6379/1"},
            }
        )

        assert config.domains["anime"].ttl_seconds == 60
        # untouched fields keep their defaults
        assert config.domains["anime"].max_size == 500
        assert config.domains["anime"].storage is StorageKind.PERSISTENT
        assert config.storage.redis_url == "redis://localhost:6379/1"
        assert config.storage.key_prefix == "cache_"

    def test_from_dict_validates_overrides(self):
        with pytest.raises(ValueError):
            RegistryConfig.from_dict({"domains": {"search": {"max_size": -1}}})

    def test_from_dict_rejects_unknown_fields(self):
        with pytest.raises(TypeError):
            RegistryConfig.from_dict({"domains": {"search": {"size": 10}}})
