import json

import pytest

from codenexus.errors import SerializationError, StorageError
from codenexus.models import Relation
from codenexus.storage import CommentsData, JsonStorage, RelationsData, TagsData


@pytest.fixture
def storage(tmp_path):
    store = JsonStorage(tmp_path / ".codenexus")
    store.initialize()
    return store


def test_initialize_creates_files(tmp_path):
    data_dir = tmp_path / ".codenexus"
    store = JsonStorage(data_dir)
    assert store.is_initialized() is False
    store.initialize()
    assert store.is_initialized() is True
    assert json.loads((data_dir / "tags.json").read_text()) == {"file_tags": {}}
    assert json.loads((data_dir / "comments.json").read_text()) == {"file_comments": {}}
    assert json.loads((data_dir / "relations.json").read_text()) == {"file_relations": {}}


def test_default_file_is_pretty_printed(storage):
    text = (storage.data_dir / "tags.json").read_text()
    assert text == '{\n  "file_tags": {}\n}'


def test_initialize_keeps_existing_data(storage):
    storage.save_comments(CommentsData({"a.rs": "entry point"}))
    storage.initialize()
    assert storage.load_comments() == CommentsData({"a.rs": "entry point"})


def test_fresh_storage_loads_empty(storage):
    assert storage.load_tags() == TagsData()
    assert storage.load_comments() == CommentsData()
    assert storage.load_relations() == RelationsData()


def test_tags_round_trip(storage):
    data = TagsData({"src/a.rs": ["category:api", "status:done"]})
    storage.save_tags(data)
    assert storage.load_tags() == data


def test_comments_round_trip_unicode(storage):
    data = CommentsData({"src/main.rs": "程序入口"})
    storage.save_comments(data)
    assert storage.load_comments() == data
    assert "程序入口" in (storage.data_dir / "comments.json").read_text(encoding="utf-8")


def test_relations_round_trip(storage):
    data = RelationsData({"a.rs": [Relation("b.rs", "calls"), Relation("c.rs", "reads")]})
    storage.save_relations(data)
    assert storage.load_relations() == data


def test_save_writes_backup_of_previous_content(storage):
    first = TagsData({"a.rs": ["x:y"]})
    second = TagsData({"b.rs": ["x:z"]})
    storage.save_tags(first)
    storage.save_tags(second)
    backup = storage.data_dir / "tags.json.bak"
    assert json.loads(backup.read_text()) == {"file_tags": {"a.rs": ["x:y"]}}
    assert storage.load_tags() == second


def test_blank_file_loads_default(storage):
    (storage.data_dir / "relations.json").write_text("   \n")
    assert storage.load_relations() == RelationsData()


def test_invalid_json_raises(storage):
    (storage.data_dir / "tags.json").write_text("{not json")
    with pytest.raises(SerializationError):
        storage.load_tags()


@pytest.mark.parametrize(
    "content",
    ["{}", '{"file_tags": []}', '{"file_tags": {"a": "x:y"}}', '{"file_tags": {"a": [1]}}'],
)
def test_wrong_shape_raises(storage, content):
    (storage.data_dir / "tags.json").write_text(content)
    with pytest.raises(SerializationError):
        storage.load_tags()


def test_bad_relation_entry_raises(storage):
    (storage.data_dir / "relations.json").write_text('{"file_relations": {"a": [{"target": "b"}]}}')
    with pytest.raises(SerializationError):
        storage.load_relations()


def test_missing_file_raises_storage_error(tmp_path):
    store = JsonStorage(tmp_path / "nowhere")
    with pytest.raises(StorageError):
        store.load_comments()


def test_initialize_fails_when_dir_is_a_file(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    store = JsonStorage(blocker / "data")
    with pytest.raises(StorageError):
        store.initialize()


def test_is_initialized_false_when_file_removed(storage):
    (storage.data_dir / "comments.json").unlink()
    assert storage.is_initialized() is False


def test_data_dir_property(tmp_path):
    assert JsonStorage(str(tmp_path)).data_dir == tmp_path