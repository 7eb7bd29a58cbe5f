import io
import json

import pytest

from codenexus.protocol import (
    DEFAULT_PROTOCOL_VERSION,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    StdioService,
    main,
    tool_definitions,
)
from codenexus.server import INSTRUCTIONS


@pytest.fixture
def project(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.rs").write_text("fn main() {}", encoding="utf-8")
    (tmp_path / "src" / "lib.rs").write_text("pub mod utils;", encoding="utf-8")
    return tmp_path


@pytest.fixture
def service():
    return StdioService()


def call(service, name, arguments, request_id=1):
    return service.handle_message(
        {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "tools/call",
            "params": {"name": name, "arguments": arguments},
        }
    )


def text_of(reply):
    return reply["result"]["content"][0]["text"]


def test_tool_definitions_cover_every_server_tool():
    names = [tool["name"] for tool in tool_definitions()]
    assert names == [
        "add_file_tags",
        "remove_file_tags",
        "query_files_by_tags",
        "get_all_tags",
        "add_file_comment",
        "update_file_comment",
        "add_file_relation",
        "remove_file_relation",
        "query_file_relations",
        "query_incoming_relations",
        "get_file_info",
        "get_system_status",
        "search_files",
    ]


def test_tool_schemas_require_all_properties():
    for tool in tool_definitions():
        schema = tool["inputSchema"]
        assert schema["type"] == "object"
        assert schema["required"] == list(schema["properties"])
        assert "project_path" in schema["properties"]


def test_initialize_reports_instructions_and_tools(service):
    reply = service.handle_message({"jsonrpc": "2.0", "id": 7, "method": "initialize", "params": {}})
    assert reply["id"] == 7
    assert reply["result"]["instructions"] == INSTRUCTIONS
    assert "tools" in reply["result"]["capabilities"]
    assert reply["result"]["protocolVersion"] == DEFAULT_PROTOCOL_VERSION


def test_initialize_echoes_requested_version(service):
    reply = service.handle_message(
        {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "v-test"}}
    )
    assert reply["result"]["protocolVersion"] == "v-test"


def test_notification_gets_no_reply(service):
    assert service.handle_message({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None


def test_ping_returns_empty_result(service):
    reply = service.handle_message({"jsonrpc": "2.0", "id": "a", "method": "ping"})
    assert reply == {"jsonrpc": "2.0", "id": "a", "result": {}}


def test_tools_list_matches_definitions(service):
    reply = service.handle_message({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
    assert reply["result"]["tools"] == tool_definitions()


def test_unknown_method_is_rejected(service):
    reply = service.handle_message({"jsonrpc": "2.0", "id": 3, "method": "nope"})
    assert reply["error"]["code"] == METHOD_NOT_FOUND


def test_non_object_message_is_invalid(service):
    reply = service.handle_message([1, 2])
    assert reply["error"]["code"] == INVALID_REQUEST


def test_unknown_tool_is_invalid_params(service):
    reply = call(service, "does_not_exist", {})
    assert reply["error"]["code"] == INVALID_PARAMS


def test_missing_argument_is_invalid_params(service, project):
    reply = call(service, "add_file_tags", {"project_path": str(project), "file_path": "src/main.rs"})
    assert reply["error"]["code"] == INVALID_PARAMS
    assert "tags" in reply["error"]["message"]


def test_wrongly_typed_argument_is_invalid_params(service, project):
    reply = call(
        service,
        "add_file_tags",
        {"project_path": str(project), "file_path": "src/main.rs", "tags": "category:api"},
    )
    assert reply["error"]["code"] == INVALID_PARAMS


def test_add_tags_then_file_info(service, project):
    added = call(
        service,
        "add_file_tags",
        {"project_path": str(project), "file_path": "src/main.rs", "tags": ["category:api"]},
    )
    assert json.loads(text_of(added))["success"] is True
    assert added["result"]["isError"] is False

    info = call(service, "get_file_info", {"project_path": str(project), "file_path": "src/main.rs"}, 2)
    document = json.loads(text_of(info))
    assert document["path"] == "src/main.rs"
    assert document["tags"] == ["category:api"]


def test_tool_error_is_reported_in_text(service, project):
    reply = call(
        service,
        "add_file_tags",
        {"project_path": str(project), "file_path": "src/main.rs", "tags": ["badtag"]},
    )
    assert json.loads(text_of(reply))["error"]["code"] == "INVALID_TAG_FORMAT"


def test_relation_round_trip_through_service(service, project):
    base = {"project_path": str(project), "from_file": "src/main.rs", "to_file": "src/lib.rs"}
    call(service, "add_file_relation", {**base, "description": "uses"})
    incoming = call(
        service, "query_incoming_relations", {"project_path": str(project), "file_path": "src/lib.rs"}
    )
    assert json.loads(text_of(incoming)) == [{"target": "src/main.rs", "description": "uses"}]

    call(service, "remove_file_relation", base)
    outgoing = call(
        service, "query_file_relations", {"project_path": str(project), "file_path": "src/main.rs"}
    )
    assert json.loads(text_of(outgoing)) == []


def test_serve_writes_one_reply_per_request(service):
    lines = "\n".join(
        [
            json.dumps({"jsonrpc": "2.0", "id": 1, "method": "ping"}),
            json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
            "{not json",
            "",
        ]
    )
    out = io.StringIO()
    service.serve(io.StringIO(lines), out)
    replies = [json.loads(line) for line in out.getvalue().splitlines()]
    assert len(replies) == 2
    assert replies[0]["id"] == 1
    assert replies[1]["error"]["code"] == PARSE_ERROR


def test_main_serves_stdin(monkeypatch):
    request = json.dumps({"jsonrpc": "2.0", "id": 9, "method": "tools/list"}) + "\n"
    out = io.StringIO()
    monkeypatch.setattr("sys.stdin", io.StringIO(request))
    monkeypatch.setattr("sys.stdout", out)
    assert main([]) == 0
    reply = json.loads(out.getvalue())
    assert reply["id"] == 9
    assert len(reply["result"]["tools"]) == len(tool_definitions())


def test_main_rejects_unknown_log_level():
    with pytest.raises(SystemExit):
        main(["--log-level", "LOUD"])