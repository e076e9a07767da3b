import pytest

from pnm_checkin.errors import StorageUnavailable
from pnm_checkin.storage import FileStorage, MemoryStorage, open_storage


def test_file_storage_round_trip(tmp_path):
    storage = FileStorage(tmp_path)

    assert storage.get_item("ingestCsvBackup") is None
    storage.set_item("ingestCsvBackup", '{"rows": []}')
    assert storage.get_item("ingestCsvBackup") == '{"rows": []}'

    storage.remove_item("ingestCsvBackup")
    assert storage.get_item("ingestCsvBackup") is None


def test_file_storage_replace_leaves_no_temp_files(tmp_path):
    storage = FileStorage(tmp_path)
    storage.set_item("password", "first")
    storage.set_item("password", "second")

    assert storage.get_item("password") == "second"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["password.json"]


@pytest.mark.parametrize("key", ["", "../escape", "a/b", ".hidden"])
def test_invalid_keys_are_rejected(tmp_path, key):
    with pytest.raises(ValueError):
        FileStorage(tmp_path).get_item(key)
    with pytest.raises(ValueError):
        MemoryStorage().set_item(key, "x")


def test_open_storage_creates_directory(tmp_path):
    target = tmp_path / "nested" / "backups"
    storage = open_storage(target)

    assert isinstance(storage, FileStorage)
    assert target.is_dir()


def test_open_storage_returns_none_when_path_is_a_file(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")

    assert open_storage(blocker / "backups") is None


def test_unencodable_value_is_storage_unavailable_and_cleans_up(tmp_path):
    storage = FileStorage(tmp_path)

    with pytest.raises(StorageUnavailable):
        storage.set_item("password", "bad\udcff")

    assert list(tmp_path.iterdir()) == []
