import json

import pytest

from codenexus.errors import SerializationError
from codenexus.models import FileInfo, QueryResult, Relation, SystemStatus, TagStats


def test_relation_round_trip():
    relation = Relation(target="src/b.rs", description="calls")
    assert Relation.from_dict(relation.to_dict()) == relation


def test_relation_round_trip_through_json():
    relation = Relation(target="src/api.rs", description="依赖")
    text = json.dumps(relation.to_dict(), ensure_ascii=False)
    assert Relation.from_dict(json.loads(text)) == relation


@pytest.mark.parametrize(
    "data",
    [
        {"target": "a"},
        {"description": "d"},
        {"target": 1, "description": "d"},
        ["a", "d"],
        None,
    ],
)
def test_relation_from_invalid_data(data):
    with pytest.raises(SerializationError):
        Relation.from_dict(data)


def test_file_info_to_dict():
    outgoing = Relation("b.rs", "uses")
    incoming = Relation("c.rs", "used by")
    info = FileInfo(
        path="a.rs",
        tags=["category:api"],
        comment=None,
        relations=[outgoing],
        incoming_relations=[incoming],
    )
    data = info.to_dict()
    assert data["path"] == "a.rs"
    assert data["tags"] == ["category:api"]
    assert data["comment"] is None
    assert data["relations"] == [outgoing.to_dict()]
    assert data["incoming_relations"] == [incoming.to_dict()]


def test_file_info_defaults_are_independent():
    first = FileInfo(path="a")
    second = FileInfo(path="b")
    first.tags.append("x:y")
    assert second.tags == []


def test_query_result_to_dict():
    result = QueryResult(files=["a.rs", "b.rs"], total=2)
    assert result.to_dict() == {"files": ["a.rs", "b.rs"], "total": 2}


def test_system_status_nests_tag_stats():
    stats = TagStats(tag_types={"category": ["api", "ui"]}, total_files=3, total_tags=2)
    status = SystemStatus(
        total_files=3, tagged_files=3, commented_files=1, total_relations=4, tag_stats=stats
    )
    data = status.to_dict()
    assert data["tag_stats"] == stats.to_dict()
    assert data["tag_stats"]["tag_types"] == {"category": ["api", "ui"]}
    assert data["commented_files"] == 1
    assert json.loads(json.dumps(data)) == data