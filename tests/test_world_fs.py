"""Tests for the per-world filesystem view."""

import pytest

from spectra.engine.filesystem import SpectraFS
from spectra.engine.world_fs import DirEntry, WorldFS
from spectra.errors import (
    FolderNotEmptyError,
    NodeNotFoundError,
    NotAFileError,
    NotAFolderError,
)
from spectra.models import SeedConfig, SpectraConfig


def _make_fs(secondary=None, **seed_overrides) -> SpectraFS:
    seed = dict(
        max_depth=2, min_folders=2, max_folders=2,
        min_files=1, max_files=2, seed=3, db_path=":memory:",
    )
    seed.update(seed_overrides)
    return SpectraFS(SpectraConfig(seed=SeedConfig(**seed), secondary_tables=secondary or {}))


class TestWorldFS:
    def setup_method(self):
        self.spectra = _make_fs(secondary={"s1": 0.0})
        self.fs = self.spectra.as_fs("primary")

    def teardown_method(self):
        self.spectra.close()

    def _first_file(self) -> DirEntry:
        return next(e for e in self.fs.read_dir("/") if not e.is_dir)

    def test_as_fs_binds_world(self):
        assert isinstance(self.fs, WorldFS)
        assert self.fs.world.is_primary
        assert self.spectra.as_fs("s1").world.name == "s1"

    def test_read_dir(self):
        entries = self.fs.read_dir("/")
        assert len([e for e in entries if e.is_dir]) == 2
        assert all(e.path == "/" + e.name for e in entries)

    def test_relative_paths(self):
        assert self.fs.read_dir(".") == self.fs.read_dir("/")
        folder = next(e for e in self.fs.read_dir("/") if e.is_dir)
        assert self.fs.stat(folder.name).id == self.fs.stat(folder.path).id

    def test_exists_and_is_dir(self):
        entry = self._first_file()
        assert self.fs.exists(entry.path)
        assert not self.fs.is_dir(entry.path)
        assert self.fs.is_dir("/")
        assert not self.fs.exists("/missing")
        assert not self.fs.exists(f"{entry.path}/below_a_file")

    def test_read_file_full_and_ranged(self):
        entry = self._first_file()
        full = self.fs.read_file(entry.path)
        assert len(full) == 1024
        assert self.fs.read_file(entry.path, 10, 20) == full[10:20]
        assert self.fs.read_file(entry.path, start=1000) == full[1000:]
        assert self.fs.read_file(entry.path, -5, 4) == full[:4]
        assert self.fs.read_file(entry.path, 0, 5000) == full
        assert self.fs.read_file(entry.path, 30, 30) == b""

    def test_read_folder_fails(self):
        with pytest.raises(NotAFileError):
            self.fs.read_file("/")

    def test_checksum(self):
        entry = self._first_file()
        data, checksum = self.spectra.read_file_bytes(self.fs.stat(entry.path).id)
        assert self.fs.checksum(entry.path) == checksum

    def test_walk_whole_tree(self):
        visited = list(self.fs.walk("/"))
        # root, 2 folders at depth 1, 2 each at depth 2
        assert len(visited) == 7
        assert visited[0][0] == "/"
        assert len(visited[0][1]) == 2
        # depth-2 folders hold only files
        leaves = [v for v in visited if v[0].count("/") == 2]
        assert all(folders == [] and files for _, folders, files in leaves)

    def test_walk_max_depth(self):
        visited = list(self.fs.walk("/", max_depth=0))
        assert [v[0] for v in visited] == ["/"]
        assert len(list(self.fs.walk("/", max_depth=1))) == 3

    def test_walk_is_top_down(self):
        paths = [v[0] for v in self.fs.walk("/")]
        for path in paths[1:]:
            parent = path.rsplit("/", 1)[0] or "/"
            assert paths.index(parent) < paths.index(path)

    def test_hidden_world_view(self):
        s1 = self.spectra.as_fs("s1")
        assert s1.read_dir("/") == []
        assert list(s1.walk("/")) == [("/", [], [])]
        with pytest.raises(NodeNotFoundError):
            s1.stat(self._first_file().path)

    def test_mkdir_and_rmdir(self):
        node = self.fs.mkdir("/made")
        assert node.path == "/made"
        assert self.fs.is_dir("/made")
        self.fs.rmdir("/made")
        assert not self.fs.exists("/made")

    def test_mkdirs(self):
        node = self.fs.mkdirs("/x/y/z")
        assert node.path == "/x/y/z"
        assert self.fs.is_dir("/x/y")
        # Existing folders are tolerated
        assert self.fs.mkdirs("/x/y").path == "/x/y"

    def test_mkdirs_through_file(self):
        entry = self._first_file()
        with pytest.raises(NotAFolderError):
            self.fs.mkdirs(f"{entry.path}/sub")

    def test_write_and_remove_file(self):
        self.fs.mkdir("/out")
        node = self.fs.write_file("/out/report.csv", b"a,b\n")
        assert node.path == "/out/report.csv"
        with pytest.raises(FolderNotEmptyError):
            self.fs.rmdir("/out")
        self.fs.remove("/out/report.csv")
        self.fs.rmdir("/out")

    def test_remove_and_rmdir_check_type(self):
        entry = self._first_file()
        with pytest.raises(NotAFolderError):
            self.fs.rmdir(entry.path)
        self.fs.mkdir("/d")
        with pytest.raises(NotAFileError):
            self.fs.remove("/d")
