"""Error types raised across the package, each with a stable code and a hint."""

from __future__ import annotations

import json


class CodeNexusError(Exception):
    """Base class of every error the package raises."""

    code = "INTERNAL_ERROR"
    suggestion = "请重试或联系技术支持"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class _DetailError(CodeNexusError):
    """An error whose message is a fixed template around one detail."""

    template = "{}"

    def __init__(self, detail: object) -> None:
        self.detail = str(detail)
        super().__init__(self.template.format(self.detail))


class FileMissingError(_DetailError):
    code = "FILE_NOT_FOUND"
    suggestion = "请检查文件路径是否正确"
    template = "文件不存在: {}"


class InvalidTagFormatError(_DetailError):
    code = "INVALID_TAG_FORMAT"
    suggestion = "请使用 type:value 格式，如 category:api"
    template = "标签格式错误: {}，应为 type:value 格式"


class InvalidQuerySyntaxError(_DetailError):
    code = "INVALID_QUERY_SYNTAX"
    suggestion = "请检查查询语法，支持 AND、NOT、通配符"
    template = "查询语法错误: {}"


class RelationAlreadyExistsError(CodeNexusError):
    code = "RELATION_ALREADY_EXISTS"
    suggestion = "关联关系已存在，请先移除再添加"

    def __init__(self, from_file: str, to_file: str) -> None:
        self.from_file = from_file
        self.to_file = to_file
        super().__init__(f"关联关系已存在: {from_file} -> {to_file}")


class RelationNotFoundError(CodeNexusError):
    code = "RELATION_NOT_FOUND"
    suggestion = "请先添加关联关系"

    def __init__(self, from_file: str, to_file: str) -> None:
        self.from_file = from_file
        self.to_file = to_file
        super().__init__(f"关联关系不存在: {from_file} -> {to_file}")


class TagNotFoundError(CodeNexusError):
    code = "TAG_NOT_FOUND"
    suggestion = "请先为文件添加该标签"

    def __init__(self, tag: str, file: str) -> None:
        self.tag = tag
        self.file = file
        super().__init__(f"标签不存在: {tag} 在文件 {file}")


class StorageError(_DetailError):
    code = "STORAGE_ERROR"
    suggestion = "请检查文件权限和磁盘空间"
    template = "存储错误: {}"


class SerializationError(_DetailError):
    code = "SERIALIZATION_ERROR"
    suggestion = "数据格式错误，请检查数据文件"
    template = "JSON 序列化错误: {}"


class FileSystemError(_DetailError):
    code = "FILESYSTEM_ERROR"
    suggestion = "请检查文件系统权限"
    template = "文件系统错误: {}"


class ConfigError(_DetailError):
    code = "CONFIG_ERROR"
    suggestion = "请检查配置文件格式"
    template = "配置错误: {}"


class InternalError(_DetailError):
    code = "INTERNAL_ERROR"
    suggestion = "请重试或联系技术支持"
    template = "内部错误: {}"


def format_error_response(error: CodeNexusError) -> str:
    """Render an error as a compact JSON document with code, message and hint."""
    payload = {
        "error": {
            "code": error.code,
            "message": str(error),
            "suggestion": error.suggestion,
        }
    }
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))