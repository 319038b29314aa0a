# Tests for aitoolsync.utils.hashing
# Content hashing for cached plugin integrity

from aitoolsync.utils.hashing import directory_hash


class TestDirectoryHash:
    """Tests for directory_hash."""

    def test_existing_directory(self, temp_dir):
        d = temp_dir / "testdir"
        d.mkdir()
        (d / "a.txt").write_text("content a", encoding="utf-8")
        (d / "b.txt").write_text("content b", encoding="utf-8")
        h = directory_hash(d)
        assert h is not None
        assert len(h) == 64  # SHA256 hex length

    def test_nonexistent_directory(self, temp_dir):
        assert directory_hash(temp_dir / "missing") is None

    def test_file_returns_none(self, temp_dir):
        f = temp_dir / "file.txt"
        f.write_text("test", encoding="utf-8")
        assert directory_hash(f) is None

    def test_deterministic(self, temp_dir):
        d = temp_dir / "testdir"
        d.mkdir()
        (d / "a.txt").write_text("content", encoding="utf-8")
        assert directory_hash(d) == directory_hash(d)

    def test_content_change_changes_hash(self, temp_dir):
        d = temp_dir / "testdir"
        d.mkdir()
        f = d / "a.txt"
        f.write_text("v1", encoding="utf-8")
        h1 = directory_hash(d)
        f.write_text("v2", encoding="utf-8")
        h2 = directory_hash(d)
        assert h1 != h2

    def test_rename_changes_hash(self, temp_dir):
        d = temp_dir / "testdir"
        d.mkdir()
        f = d / "a.txt"
        f.write_text("same", encoding="utf-8")
        h1 = directory_hash(d)
        f.rename(d / "b.txt")
        assert directory_hash(d) != h1

    def test_exclude_patterns(self, temp_dir):
        d = temp_dir / "testdir"
        d.mkdir()
        (d / "keep.txt").write_text("keep", encoding="utf-8")
        (d / "skip.tmp").write_text("skip", encoding="utf-8")
        h_all = directory_hash(d)
        h_filtered = directory_hash(d, exclude_patterns=["*.tmp"])
        assert h_all != h_filtered

    def test_excluded_directory_ignored(self, temp_dir):
        d = temp_dir / "testdir"
        d.mkdir()
        (d / "plugin.json").write_text("{}", encoding="utf-8")
        h1 = directory_hash(d, exclude_patterns=[".git"])
        (d / ".git").mkdir()
        (d / ".git" / "HEAD").write_text("ref: refs/heads/main", encoding="utf-8")
        assert directory_hash(d, exclude_patterns=[".git"]) == h1

    def test_algorithm(self, temp_dir):
        d = temp_dir / "testdir"
        d.mkdir()
        (d / "a.txt").write_text("content", encoding="utf-8")
        assert len(directory_hash(d, algorithm="sha1")) == 40
