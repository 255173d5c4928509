"""Tests for the file-based index store and the writer lock."""

import os

import pytest

from ragdesk.core.errors import DimensionMismatch, IndexBusy, IndexCorrupted, IndexUnavailable
from ragdesk.core.models import IndexEntry
from ragdesk.storage import IndexLock, LocalIndexStore, make_index_store
from ragdesk.storage import local as local_module
from ragdesk.utils import read_json, write_json


def entry(i: int, vector=None, source: str = "a.md") -> IndexEntry:
    return IndexEntry(
        id=f"id-{i}",
        vector=vector or [1.0, 0.0, 0.0],
        text=f"chunk {i}",
        metadata={"id": f"id-{i}", "source": source, "chunk_index": i, "tags": ["text"]},
    )


@pytest.fixture
def local_store(tmp_path) -> LocalIndexStore:
    return LocalIndexStore(tmp_path / "index", keep_generations=2)


class TestLocalIndexStore:
    """Tests for generation directories and the CURRENT pointer."""

    def test_no_index(self, local_store) -> None:
        """Nothing persisted yet: load fails, metadata and manifest are empty."""
        assert not local_store.exists()
        assert local_store.current_generation() is None
        assert local_store.load_metadata() == []
        assert local_store.get_manifest() is None
        with pytest.raises(IndexUnavailable):
            local_store.load()

    def test_round_trip(self, local_store) -> None:
        """Persisted entries load back in order with their manifest."""
        entries = [entry(0, [1.0, 0.0, 0.0]), entry(1, [0.0, 1.0, 0.0])]
        generation = local_store.persist(entries, {"cfg_fingerprint": "abc", "model": "m"})

        index = local_store.load()

        assert local_store.current_generation() == generation
        assert index.generation == generation
        assert index.ids == ["id-0", "id-1"]
        assert index.ordered_entries() == entries
        assert index.matrix.shape == (2, 3)
        assert index.dimension == 3
        manifest = local_store.get_manifest()
        assert manifest["cfg_fingerprint"] == "abc"
        assert manifest["count"] == 2
        assert manifest["dimension"] == 3
        assert [m["id"] for m in local_store.load_metadata()] == ["id-0", "id-1"]

    def test_generation_files(self, local_store) -> None:
        """Each generation holds vectors, docs, metadata and manifest files."""
        generation = local_store.persist([entry(0)], {})
        gen_dir = local_store.root / "generations" / generation

        assert sorted(p.name for p in gen_dir.iterdir()) == [
            "docs.json", "manifest.json", "meta.json", "vectors.json",
        ]
        assert read_json(gen_dir / "vectors.json") == {"ids": ["id-0"], "vectors": [[1.0, 0.0, 0.0]]}
        assert (local_store.root / "CURRENT").read_text().strip() == generation

    def test_empty_index(self, local_store) -> None:
        """An empty index exists and loads with zero entries."""
        local_store.persist([], {"cfg_fingerprint": "abc"})
        index = local_store.load()
        assert local_store.exists()
        assert len(index) == 0
        assert index.dimension is None

    def test_mixed_dimensions_rejected(self, local_store) -> None:
        """A persist with mixed vector lengths fails and keeps the old generation."""
        first = local_store.persist([entry(0)], {})
        with pytest.raises(DimensionMismatch):
            local_store.persist([entry(0), entry(1, [1.0, 0.0])], {})
        assert local_store.current_generation() == first

    def test_failed_write_leaves_prior_generation(self, local_store, monkeypatch) -> None:
        """A crash while writing files publishes nothing and leaves no temp dir."""
        first = local_store.persist([entry(0)], {})

        def failing_write(path, data, indent=None):
            if path.name == "docs.json":
                raise OSError("disk full")
            write_json(path, data, indent=indent)

        monkeypatch.setattr(local_module, "write_json", failing_write)
        with pytest.raises(OSError):
            local_store.persist([entry(0), entry(1)], {})

        assert local_store.current_generation() == first
        assert len(local_store.load()) == 1
        assert [p.name for p in (local_store.root / "generations").iterdir()] == [first]

    def test_prunes_old_generations(self, local_store) -> None:
        """Only keep_generations generations remain, including the current one."""
        generations = [local_store.persist([entry(i)], {}) for i in range(4)]
        remaining = sorted(p.name for p in (local_store.root / "generations").iterdir())
        assert remaining == generations[-2:]

    def test_missing_document_is_corruption(self, local_store) -> None:
        """A vector without its document is reported as corruption."""
        generation = local_store.persist([entry(0), entry(1)], {})
        docs_path = local_store.root / "generations" / generation / "docs.json"
        docs = read_json(docs_path)
        del docs["id-1"]
        write_json(docs_path, docs)

        with pytest.raises(IndexCorrupted):
            local_store.load()

    def test_duplicate_ids_are_corruption(self, local_store) -> None:
        """The same id twice in one generation is rejected on load."""
        generation = local_store.persist([entry(0)], {})
        vectors_path = local_store.root / "generations" / generation / "vectors.json"
        write_json(vectors_path, {"ids": ["id-0", "id-0"], "vectors": [[1.0, 0.0, 0.0]] * 2})

        with pytest.raises(IndexCorrupted):
            local_store.load()

    def test_clear(self, local_store) -> None:
        """Clearing removes every generation."""
        local_store.persist([entry(0)], {})
        local_store.clear()
        assert not local_store.exists()

    def test_factory(self, cfg, data_dir) -> None:
        """The default backend is a local store under data_dir/index."""
        store = make_index_store(cfg)
        assert isinstance(store, LocalIndexStore)
        assert store.root == data_dir / "index"

        cfg["index_store"]["backend"] = "elastic"
        with pytest.raises(ValueError):
            make_index_store(cfg)


class TestIndexLock:
    """Tests for the exclusive writer lock."""

    def test_second_writer_is_busy(self, local_store) -> None:
        """While one writer holds the lock, another gets IndexBusy."""
        with local_store.lock():
            with pytest.raises(IndexBusy):
                local_store.lock().acquire()
        with local_store.lock():
            pass

    def test_lock_file_holds_pid(self, tmp_path) -> None:
        """The lock file records the holder and disappears on release."""
        path = tmp_path / "x.lock"
        with IndexLock(path):
            assert path.read_text() == str(os.getpid())
        assert not path.exists()

    def test_live_foreign_holder(self, tmp_path) -> None:
        """A lock file owned by a running process blocks acquisition."""
        path = tmp_path / "x.lock"
        path.write_text(str(os.getppid()))
        with pytest.raises(IndexBusy):
            IndexLock(path).acquire()
        path.unlink()
        with IndexLock(path):
            pass

    def test_stale_lock_reclaimed(self, tmp_path) -> None:
        """A lock file left by a dead process is taken over."""
        path = tmp_path / "x.lock"
        path.write_text("999999999")
        with IndexLock(path):
            assert path.read_text() == str(os.getpid())
