"""
Tests for the key-value media.
"""
import orjson

from clientguard import FileStorage, MemoryStorage


class TestMemoryStorage:

    def test_item_api(self):
        storage = MemoryStorage()
        storage.set_item("a", "1")
        assert storage.get_item("a") == "1"
        assert storage.get_item("missing") is None
        storage.remove_item("a")
        storage.remove_item("a")
        assert storage.keys() == []

    def test_mapping_api(self):
        storage = MemoryStorage({"a": "1"})
        storage["b"] = "2"
        assert dict(storage) == {"a": "1", "b": "2"}
        assert len(storage) == 2
        assert "b" in storage
        del storage["a"]
        assert list(storage) == ["b"]

    def test_clear(self):
        storage = MemoryStorage({"a": "1", "b": "2"})
        storage.clear()
        assert len(storage) == 0


class TestFileStorage:

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "data" / "storage.json"
        storage = FileStorage(path)
        storage.set_item("a", "1")
        storage.set_item("b", "2")
        storage.remove_item("a")
        assert FileStorage(path).keys() == ["b"]
        assert orjson.loads(path.read_bytes()) == {"b": "2"}

    def test_last_writer_wins(self, tmp_path):
        path = tmp_path / "storage.json"
        first = FileStorage(path)
        second = FileStorage(path)
        first.set_item("a", "from-first")
        second.set_item("b", "from-second")
        assert FileStorage(path).keys() == ["b"]

    def test_reload(self, tmp_path):
        path = tmp_path / "storage.json"
        first = FileStorage(path)
        second = FileStorage(path)
        first.set_item("a", "1")
        second.reload()
        assert second.get_item("a") == "1"

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("not json")
        assert FileStorage(path).keys() == []

    def test_clear(self, tmp_path):
        path = tmp_path / "storage.json"
        storage = FileStorage(path)
        storage.set_item("a", "1")
        storage.clear()
        assert FileStorage(path).keys() == []
