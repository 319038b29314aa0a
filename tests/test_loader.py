# Tests for aitoolsync.plugins.loader
# End-to-end plugin resolution with a fake cloner

import shutil
from unittest.mock import patch

import pytest

from aitoolsync.config.schema import PluginConfig
from aitoolsync.git.operations import GitError
from aitoolsync.plugins.cache import CACHE_MANIFEST_FILE, PluginCache
from aitoolsync.plugins.errors import ReferenceParseError, ResolutionError
from aitoolsync.plugins.fetcher import Fetcher
from aitoolsync.plugins.loader import LoadOptions, PluginLoader, ResolvedPathCache

from conftest import SAMPLE_PLUGIN_FILES, write_plugin

REFERENCE = "github:acme/toolkit@v2.1.0"


@pytest.fixture
def cache(cache_dir) -> PluginCache:
    return PluginCache(cache_dir)


@pytest.fixture
def loader(cache, fake_cloner) -> PluginLoader:
    return PluginLoader(cache=cache, fetcher=Fetcher(cloner=fake_cloner))


class TestResolvedPathCache:
    """Tests for the in-memory path memo."""

    def test_set_get(self, temp_dir):
        memo = ResolvedPathCache()
        memo.set("a", temp_dir)
        assert memo.get("a") == temp_dir
        assert "a" in memo
        assert len(memo) == 1

    def test_missing(self):
        assert ResolvedPathCache().get("a") is None

    def test_discard_and_clear(self, temp_dir):
        memo = ResolvedPathCache()
        memo.set("a", temp_dir)
        memo.set("b", temp_dir)
        memo.discard("a")
        memo.discard("missing")
        assert "a" not in memo
        memo.clear()
        assert len(memo) == 0

    def test_discard_under(self, temp_dir):
        memo = ResolvedPathCache()
        memo.set("inside", temp_dir / "scratch" / "plugin")
        memo.set("outside", temp_dir / "cache" / "plugin")

        memo.discard_under(temp_dir / "scratch")

        assert "inside" not in memo
        assert "outside" in memo


class TestRemoteScenario:
    """github:acme/toolkit@v2.1.0 end to end."""

    def test_fetch_and_cache(self, loader, cache, cache_dir, fake_cloner):
        result = loader.load(REFERENCE)

        assert result.success
        assert result.errors == []
        assert fake_cloner.calls[0]["url"] == "https://github.com/acme/toolkit.git"
        assert fake_cloner.calls[0]["ref"] == "v2.1.0"
        assert cache.is_cached(REFERENCE)

        entry = cache.get_cache_entry(REFERENCE)
        assert "acme_toolkit" in entry.id
        assert "v2.1.0" in entry.id
        assert entry.content_hash is not None
        assert entry.manifest.name == "toolkit"
        assert result.plugin_path == cache_dir / entry.id

    def test_content(self, loader):
        result = loader.load(REFERENCE)
        assert len(result.rules) == 2
        assert len(result.personas) == 1
        assert len(result.commands) == 1
        assert len(result.hooks) == 2
        assert result.mcp_servers == {"db": {"command": "db-server", "args": ["--port", "5432"]}}
        assert result.plugin_info.name == "toolkit"
        assert result.source == REFERENCE

    def test_cache_hit_skips_fetch(self, cache, fake_cloner):
        PluginLoader(cache=cache, fetcher=Fetcher(cloner=fake_cloner)).load(REFERENCE)

        # A new loader has an empty memo, so this exercises the disk cache
        resolved = PluginLoader(cache=cache, fetcher=Fetcher(cloner=fake_cloner)).resolve(REFERENCE)

        assert resolved.from_cache is True
        assert resolved.version == "v2.1.0"
        assert len(fake_cloner.calls) == 1

    def test_cache_hit_touches_entry(self, cache, fake_cloner):
        loader = PluginLoader(cache=cache, fetcher=Fetcher(cloner=fake_cloner))
        with patch("aitoolsync.plugins.cache._now", return_value="2024-01-01T00:00:00+00:00"):
            loader.load(REFERENCE)
        with patch("aitoolsync.plugins.cache._now", return_value="2024-06-01T00:00:00+00:00"):
            loader.load(REFERENCE)

        assert cache.get_cache_entry(REFERENCE).last_accessed == "2024-06-01T00:00:00+00:00"

    def test_version_override(self, loader, cache, fake_cloner):
        loader.load("github:acme/toolkit@v1", LoadOptions(version="v3"))
        assert fake_cloner.calls[0]["ref"] == "v3"
        assert cache.is_cached("github:acme/toolkit", "v3")
        assert not cache.is_cached("github:acme/toolkit", "v1")

    def test_token_and_timeout_passed(self, loader, fake_cloner):
        loader.load(REFERENCE, LoadOptions(token="s3cr3t", timeout=42))
        assert fake_cloner.calls[0]["url"].startswith("https://s3cr3t:x-oauth-basic@")
        assert fake_cloner.calls[0]["timeout"] == 42

    def test_plugin_version_defaults_to_ref(self, cache, cloner_factory):
        cloner = cloner_factory(files={"plugin.json": '{"name": "bare"}', "skills/a.md": "A"})
        result = PluginLoader(cache=cache, fetcher=Fetcher(cloner=cloner)).load("github:acme/bare@v1")
        assert result.plugin_info.version == "v1"

    def test_subpath(self, cache, cloner_factory, cache_dir):
        cloner = cloner_factory(files={"plugins/review/skills/a.md": "A"})
        reference = "github:acme/mono/plugins/review@v1"

        result = PluginLoader(cache=cache, fetcher=Fetcher(cloner=cloner)).load(reference)
        assert len(result.rules) == 1
        assert result.plugin_path.parts[-2:] == ("plugins", "review")

        resolved = PluginLoader(cache=cache, fetcher=Fetcher(cloner=cloner)).resolve(reference)
        assert resolved.from_cache is True
        assert resolved.path == result.plugin_path

    def test_subpath_not_served_from_tag_clone(self, cache, cloner_factory):
        # "toolkit/v2" (subpath) and "toolkit@v2" (tag) map to the same plugin id
        cloner = cloner_factory(files={"v2/skills/a.md": "A", "skills/b.md": "B"})
        loader = PluginLoader(cache=cache, fetcher=Fetcher(cloner=cloner))
        loader.load("github:acme/toolkit@v2")

        resolved = loader.resolve("github:acme/toolkit/v2")

        assert resolved.from_cache is False
        assert [call["ref"] for call in cloner.calls] == ["v2", None]
        assert cache.is_cached("github:acme/toolkit/v2")
        assert not cache.is_cached("github:acme/toolkit", "v2")


class TestLocalScenario:
    """./local-plugin relative to a base path."""

    def test_no_cache_no_subprocess(self, temp_dir, cache_dir):
        repo = temp_dir / "repo"
        write_plugin(repo / "local-plugin", SAMPLE_PLUGIN_FILES)
        loader = PluginLoader(cache=PluginCache(cache_dir))

        with patch("aitoolsync.git.operations.subprocess.run") as mock_run:
            resolved = loader.resolve("./local-plugin", LoadOptions(base_path=repo))
            result = loader.load("./local-plugin", LoadOptions(base_path=repo))

        mock_run.assert_not_called()
        assert resolved.path == repo / "local-plugin"
        assert resolved.from_cache is False
        assert result.success
        assert len(result.rules) == 2
        assert not cache_dir.exists()

    def test_missing_local_path(self, loader, temp_dir, fake_cloner):
        with pytest.raises(ResolutionError):
            loader.resolve("./local-plugin", LoadOptions(base_path=temp_dir / "repo"))

        result = loader.load("./local-plugin", LoadOptions(base_path=temp_dir / "repo"))
        assert result.success is False
        assert result.errors[0].type == "directory"
        assert fake_cloner.calls == []


class TestFailures:
    """Fatal errors give an empty, failed result."""

    def test_malformed_reference(self, loader, fake_cloner):
        with pytest.raises(ReferenceParseError):
            loader.resolve("github:acme")

        result = loader.load("github:acme")
        assert result.success is False
        assert result.total_items == 0
        assert [e.type for e in result.errors] == ["source"]
        assert fake_cloner.calls == []

    def test_clone_failure(self, cache, cache_dir, cloner_factory):
        cloner = cloner_factory(error=GitError("clone failed", returncode=128, stderr="fatal: not found"))
        result = PluginLoader(cache=cache, fetcher=Fetcher(cloner=cloner)).load(REFERENCE)

        assert result.success is False
        assert result.errors[0].type == "fetch"
        assert "not found" in result.errors[0].message
        assert not cache.is_cached(REFERENCE)
        assert not (cache_dir / "github_acme_toolkit_v2.1.0").exists()

    def test_missing_subpath(self, loader, cache):
        result = loader.load("github:acme/toolkit/missing@v1")
        assert result.success is False
        assert result.errors[0].type == "directory"
        assert cache.list_cached() == []

    def test_corrupt_manifest(self, loader, cache_dir, fake_cloner):
        cache_dir.mkdir()
        (cache_dir / CACHE_MANIFEST_FILE).write_text("not json", encoding="utf-8")

        result = loader.load(REFERENCE)

        assert result.success is False
        assert result.errors[0].type == "manifest"
        assert fake_cloner.calls == []


class TestRefetching:
    """Stale entries, orphans and forced refreshes."""

    def test_stale_entry_refetched(self, loader, cache, fake_cloner):
        first = loader.load(REFERENCE)
        shutil.rmtree(first.plugin_path)

        second = loader.load(REFERENCE)

        assert second.success
        assert len(fake_cloner.calls) == 2
        assert cache.is_cached(REFERENCE)

    def test_orphan_directory_refetched(self, loader, cache, fake_cloner):
        target = cache.get_target_path(REFERENCE)
        write_plugin(target, {"junk.md": "old"})

        result = loader.load(REFERENCE)

        assert result.success
        assert len(fake_cloner.calls) == 1
        assert not (target / "junk.md").exists()
        assert cache.is_cached(REFERENCE)

    def test_force_refresh(self, loader, fake_cloner):
        loader.load(REFERENCE)
        loader.load(REFERENCE, LoadOptions(force_refresh=True))
        assert len(fake_cloner.calls) == 2

    def test_no_cache(self, loader, cache, cache_dir, fake_cloner):
        result = loader.load(REFERENCE, LoadOptions(use_cache=False))
        assert result.success
        assert cache.list_cached() == []
        assert not cache_dir.exists()

        # Resolved path is memoized for the rest of the run
        loader.load(REFERENCE, LoadOptions(use_cache=False))
        assert len(fake_cloner.calls) == 1
        loader.cleanup()

    def test_no_cache_failure_keeps_cached_copy(self, cache, cloner_factory):
        PluginLoader(cache=cache, fetcher=Fetcher(cloner=cloner_factory())).load(REFERENCE)
        cached_path = cache.get_plugin_path(cache.get_cache_entry(REFERENCE))

        failing = cloner_factory(error=GitError("clone failed", returncode=128))
        loader = PluginLoader(cache=cache, fetcher=Fetcher(cloner=failing))
        result = loader.load(REFERENCE, LoadOptions(use_cache=False))
        loader.cleanup()

        assert result.success is False
        assert failing.calls[0]["target_path"] != cached_path
        assert cache.is_cached(REFERENCE)
        assert (cached_path / "plugin.json").is_file()

    def test_no_cache_cleanup(self, loader, cache_dir, fake_cloner):
        result = loader.load(REFERENCE, LoadOptions(use_cache=False))
        scratch = result.plugin_path
        assert scratch.is_dir()
        assert cache_dir not in scratch.parents

        loader.cleanup()

        assert not scratch.exists()
        loader.load(REFERENCE, LoadOptions(use_cache=False))
        assert len(fake_cloner.calls) == 2
        loader.cleanup()
        loader.cleanup()


class TestMemo:
    """The loader-owned path memo."""

    def test_memoized(self, loader):
        loader.load(REFERENCE)
        assert REFERENCE in loader.path_cache

    def test_clear(self, loader):
        loader.load(REFERENCE)
        loader.path_cache.clear()
        assert len(loader.path_cache) == 0

    def test_shared_memo(self, cache, fake_cloner):
        memo = ResolvedPathCache()
        PluginLoader(cache=cache, fetcher=Fetcher(cloner=fake_cloner), path_cache=memo).load(REFERENCE)
        assert REFERENCE in memo


class TestFiltering:
    """Targets and content categories."""

    def test_targets(self, loader):
        result = loader.load(REFERENCE, LoadOptions(targets=["cursor"]))
        assert result.hooks == []
        assert len(result.rules) == 2

    def test_include(self, loader):
        result = loader.load(REFERENCE, LoadOptions(include=["rules", "personas"]))
        assert len(result.rules) == 2
        assert len(result.personas) == 1
        assert result.commands == []
        assert result.hooks == []

    def test_exclude(self, loader):
        result = loader.load(REFERENCE, LoadOptions(exclude=["hooks"]))
        assert result.hooks == []
        assert len(result.commands) == 1


class TestLoadPlugins:
    """Loading the plugins of a configuration."""

    def test_load_plugins(self, loader, fake_cloner):
        configs = [
            PluginConfig(name="toolkit", source="github:acme/toolkit", version="v2.1.0", include=["rules"]),
            PluginConfig(name="off", source="./nowhere", enabled=False),
            PluginConfig(name="broken", source="github:acme"),
        ]

        results = loader.load_plugins(configs)

        assert len(results) == 2
        toolkit, broken = results
        assert toolkit.success
        assert len(toolkit.rules) == 2
        assert toolkit.personas == []
        assert fake_cloner.calls[0]["ref"] == "v2.1.0"
        assert broken.success is False

    def test_shared_options(self, loader):
        configs = [PluginConfig(name="toolkit", source=REFERENCE)]
        results = loader.load_plugins(configs, LoadOptions(exclude=["rules"]))
        assert results[0].rules == []
        assert len(results[0].personas) == 1


class TestInvalidate:
    """Loader-level invalidation."""

    def test_invalidate(self, loader, cache, fake_cloner):
        loader.load(REFERENCE)

        assert loader.invalidate(REFERENCE) is True
        assert not cache.is_cached(REFERENCE)
        assert REFERENCE not in loader.path_cache

        loader.load(REFERENCE)
        assert len(fake_cloner.calls) == 2

    def test_invalidate_with_version(self, loader, cache):
        loader.load("github:acme/toolkit", LoadOptions(version="v2"))
        assert loader.invalidate("github:acme/toolkit", "v2") is True
        assert cache.list_cached() == []

    def test_invalidate_not_cached(self, loader):
        assert loader.invalidate(REFERENCE) is False

    def test_invalidate_local(self, loader):
        assert loader.invalidate("./local-plugin") is False
