"""Line-delimited JSON-RPC service that offers the server's tools over standard I/O."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass
from typing import IO, Any, Callable, Iterable, Mapping

from .server import INSTRUCTIONS, CodeNexusServer

logger = logging.getLogger(__name__)

SERVER_NAME = "codenexus"
SERVER_VERSION = "0.1.3"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"
LOG_LEVEL_ENV = "CODENEXUS_LOG"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

_PROJECT_PATH_DOC = "项目根目录路径"
_FILE_PATH_DOC = "文件路径（相对于项目根目录）"


@dataclass(frozen=True)
class _Param:
    name: str
    kind: str
    description: str

    def schema(self) -> dict[str, Any]:
        if self.kind == "array":
            return {"type": "array", "items": {"type": "string"}, "description": self.description}
        return {"type": "string", "description": self.description}

    def accepts(self, value: Any) -> bool:
        if self.kind == "array":
            return isinstance(value, list) and all(isinstance(item, str) for item in value)
        return isinstance(value, str)


@dataclass(frozen=True)
class _Tool:
    name: str
    description: str
    params: tuple[_Param, ...]
    handler: Callable[..., str]

    def definition(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": {
                "type": "object",
                "properties": {param.name: param.schema() for param in self.params},
                "required": [param.name for param in self.params],
            },
        }


_PROJECT = _Param("project_path", "string", _PROJECT_PATH_DOC)
_FILE = _Param("file_path", "string", _FILE_PATH_DOC)
_COMMENT = _Param("comment", "string", "注释内容")
_FROM = _Param("from_file", "string", "源文件路径（相对于项目根目录）")
_TO = _Param("to_file", "string", "目标文件路径（相对于项目根目录）")

_TOOLS: tuple[_Tool, ...] = (
    _Tool(
        "add_file_tags",
        "为文件添加标签，标签格式为 type:value",
        (_PROJECT, _FILE, _Param("tags", "array", "标签列表，格式为 type:value")),
        CodeNexusServer.add_file_tags,
    ),
    _Tool(
        "remove_file_tags",
        "移除文件的指定标签",
        (_PROJECT, _FILE, _Param("tags", "array", "要移除的标签列表")),
        CodeNexusServer.remove_file_tags,
    ),
    _Tool(
        "query_files_by_tags",
        "根据标签查询文件，支持 AND、NOT、通配符",
        (_PROJECT, _Param("query", "string", "标签查询表达式，支持 AND、NOT、通配符")),
        CodeNexusServer.query_files_by_tags,
    ),
    _Tool("get_all_tags", "获取所有标签，按类型分组", (_PROJECT,), CodeNexusServer.get_all_tags),
    _Tool(
        "add_file_comment",
        "为文件添加注释",
        (_PROJECT, _FILE, _COMMENT),
        CodeNexusServer.add_file_comment,
    ),
    _Tool(
        "update_file_comment",
        "更新文件注释",
        (_PROJECT, _FILE, _COMMENT),
        CodeNexusServer.update_file_comment,
    ),
    _Tool(
        "add_file_relation",
        "添加文件间的关联关系",
        (_PROJECT, _FROM, _TO, _Param("description", "string", "关联关系描述")),
        CodeNexusServer.add_file_relation,
    ),
    _Tool(
        "remove_file_relation",
        "移除文件间的关联关系",
        (_PROJECT, _FROM, _TO),
        CodeNexusServer.remove_file_relation,
    ),
    _Tool(
        "query_file_relations",
        "查询文件的出向关联关系",
        (_PROJECT, _FILE),
        CodeNexusServer.query_file_relations,
    ),
    _Tool(
        "query_incoming_relations",
        "查询指向该文件的关联关系",
        (_PROJECT, _FILE),
        CodeNexusServer.query_incoming_relations,
    ),
    _Tool(
        "get_file_info",
        "获取文件的完整信息，包括标签、注释、关联关系",
        (_PROJECT, _FILE),
        CodeNexusServer.get_file_info,
    ),
    _Tool(
        "get_system_status",
        "获取系统状态和统计信息",
        (_PROJECT,),
        CodeNexusServer.get_system_status,
    ),
    _Tool(
        "search_files",
        "综合搜索文件，包括注释和关联关系描述",
        (_PROJECT, _Param("keyword", "string", "搜索关键词")),
        CodeNexusServer.search_files,
    ),
)

_TOOLS_BY_NAME = {tool.name: tool for tool in _TOOLS}


def tool_definitions() -> list[dict[str, Any]]:
    """Return the name, description and input schema of every tool."""
    return [tool.definition() for tool in _TOOLS]


class _RpcError(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


class StdioService:
    """Answers JSON-RPC requests for one CodeNexusServer."""

    def __init__(self, server: CodeNexusServer | None = None) -> None:
        self.server = server if server is not None else CodeNexusServer()

    def __repr__(self) -> str:
        return f"StdioService(server={self.server!r})"

    def handle_message(self, message: Any) -> dict[str, Any] | None:
        """Handle one decoded message; return the reply, or None for notifications."""
        if not isinstance(message, Mapping):
            return _error(None, INVALID_REQUEST, "Invalid request: expected an object")

        request_id = message.get("id")
        is_notification = "id" not in message
        method = message.get("method")

        if method is None and ("result" in message or "error" in message):
            return None
        if not isinstance(method, str):
            if is_notification:
                return None
            return _error(request_id, INVALID_REQUEST, "Invalid request: missing method")

        try:
            result = self._dispatch(method, message.get("params"))
        except _RpcError as exc:
            return None if is_notification else _error(request_id, exc.code, exc.message)
        except Exception as exc:  # noqa: BLE001 - every failure must become a reply
            logger.exception("处理请求失败: %s", method)
            return None if is_notification else _error(request_id, INTERNAL_ERROR, str(exc))

        if is_notification:
            return None
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def _dispatch(self, method: str, params: Any) -> dict[str, Any]:
        if params is None:
            params = {}
        if not isinstance(params, Mapping):
            raise _RpcError(INVALID_PARAMS, "Invalid params: expected an object")

        if method == "initialize":
            return self._initialize(params)
        if method == "ping":
            return {}
        if method.startswith("notifications/"):
            return {}
        if method == "tools/list":
            return {"tools": tool_definitions()}
        if method == "tools/call":
            return self._call_tool(params)
        raise _RpcError(METHOD_NOT_FOUND, f"Method not found: {method}")

    @staticmethod
    def _initialize(params: Mapping[str, Any]) -> dict[str, Any]:
        version = params.get("protocolVersion")
        if not isinstance(version, str) or not version:
            version = DEFAULT_PROTOCOL_VERSION
        return {
            "protocolVersion": version,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "instructions": INSTRUCTIONS,
        }

    def _call_tool(self, params: Mapping[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        tool = _TOOLS_BY_NAME.get(name) if isinstance(name, str) else None
        if tool is None:
            raise _RpcError(INVALID_PARAMS, f"tool not found: {name}")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            raise _RpcError(INVALID_PARAMS, "Invalid params: arguments must be an object")

        values = {}
        for param in tool.params:
            if param.name not in arguments:
                raise _RpcError(INVALID_PARAMS, f"missing field `{param.name}`")
            value = arguments[param.name]
            if not param.accepts(value):
                raise _RpcError(INVALID_PARAMS, f"invalid type for `{param.name}`")
            values[param.name] = value

        text = tool.handler(self.server, **values)
        return {"content": [{"type": "text", "text": text}], "isError": False}

    def serve(self, reader: Iterable[str], writer: IO[str]) -> None:
        """Read one JSON message per line and write one reply per line until input ends."""
        for line in reader:
            line = line.strip()
            if not line:
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError as exc:
                reply: dict[str, Any] | None = _error(None, PARSE_ERROR, f"Parse error: {exc}")
            else:
                reply = self.handle_message(message)
            if reply is not None:
                writer.write(json.dumps(reply, ensure_ascii=False) + "\n")
                writer.flush()


def main(argv: list[str] | None = None) -> int:
    """Run the service on standard input and output."""
    parser = argparse.ArgumentParser(
        prog="codenexus",
        description="CodeNexus 代码库关系管理工具",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get(LOG_LEVEL_ENV, "WARNING"),
        help=f"logging level written to stderr (default from {LOG_LEVEL_ENV}, else WARNING)",
    )
    args = parser.parse_args(argv)

    level = logging.getLevelName(str(args.log_level).upper())
    if not isinstance(level, int):
        parser.error(f"unknown log level: {args.log_level}")
    logging.basicConfig(stream=sys.stderr, level=level, format="%(levelname)s %(name)s: %(message)s")

    service = StdioService()
    logger.info("CodeNexus MCP 服务器已启动")
    try:
        service.serve(sys.stdin, sys.stdout)
    except KeyboardInterrupt:
        pass
    return 0