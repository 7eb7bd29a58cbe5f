"""JSON file storage for tags, comments and relations of one project."""

from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, TypeVar

from .errors import SerializationError, StorageError
from .models import Relation

logger = logging.getLogger(__name__)

TAGS_FILE = "tags.json"
COMMENTS_FILE = "comments.json"
RELATIONS_FILE = "relations.json"

T = TypeVar("T")


@dataclass
class TagsData:
    """Tags per file path."""

    file_tags: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class CommentsData:
    """Comment per file path."""

    file_comments: dict[str, str] = field(default_factory=dict)


@dataclass
class RelationsData:
    """Outgoing relations per file path."""

    file_relations: dict[str, list[Relation]] = field(default_factory=dict)


def _mapping_field(document: Any, key: str) -> dict[str, Any]:
    if not isinstance(document, dict):
        raise SerializationError("invalid type: expected an object")
    if key not in document:
        raise SerializationError(f"missing field `{key}`")
    value = document[key]
    if not isinstance(value, dict):
        raise SerializationError(f"invalid type for `{key}`: expected a map")
    return value


def _parse_tags(document: Any) -> TagsData:
    file_tags = {}
    for path, tags in _mapping_field(document, "file_tags").items():
        if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
            raise SerializationError(f"invalid tags for `{path}`: expected a list of strings")
        file_tags[path] = list(tags)
    return TagsData(file_tags)


def _parse_comments(document: Any) -> CommentsData:
    file_comments = {}
    for path, comment in _mapping_field(document, "file_comments").items():
        if not isinstance(comment, str):
            raise SerializationError(f"invalid comment for `{path}`: expected a string")
        file_comments[path] = comment
    return CommentsData(file_comments)


def _parse_relations(document: Any) -> RelationsData:
    file_relations = {}
    for path, relations in _mapping_field(document, "file_relations").items():
        if not isinstance(relations, list):
            raise SerializationError(f"invalid relations for `{path}`: expected a list")
        file_relations[path] = [Relation.from_dict(item) for item in relations]
    return RelationsData(file_relations)


def _dump_tags(data: TagsData) -> dict[str, Any]:
    return {"file_tags": {path: list(tags) for path, tags in data.file_tags.items()}}


def _dump_comments(data: CommentsData) -> dict[str, Any]:
    return {"file_comments": dict(data.file_comments)}


def _dump_relations(data: RelationsData) -> dict[str, Any]:
    return {
        "file_relations": {
            path: [relation.to_dict() for relation in relations]
            for path, relations in data.file_relations.items()
        }
    }


def _pretty(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


class JsonStorage:
    """Reads and writes the three JSON data files in one directory."""

    def __init__(self, data_dir: str | os.PathLike[str]) -> None:
        self._data_dir = Path(data_dir)

    def __repr__(self) -> str:
        return f"JsonStorage(data_dir={str(self._data_dir)!r})"

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def initialize(self) -> None:
        """Create the data directory and any missing data file with empty content."""
        if not self._data_dir.exists():
            try:
                self._data_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageError(exc) from exc
            logger.info("创建数据目录: %s", self._data_dir)

        self._ensure_file(TAGS_FILE, _dump_tags(TagsData()))
        self._ensure_file(COMMENTS_FILE, _dump_comments(CommentsData()))
        self._ensure_file(RELATIONS_FILE, _dump_relations(RelationsData()))

    def _ensure_file(self, filename: str, default: dict[str, Any]) -> None:
        path = self._data_dir / filename
        if path.exists():
            return
        try:
            path.write_text(_pretty(default), encoding="utf-8")
        except OSError as exc:
            raise StorageError(exc) from exc
        logger.debug("创建默认数据文件: %s", path)

    def load_tags(self) -> TagsData:
        return self._load(TAGS_FILE, _parse_tags, TagsData)

    def save_tags(self, data: TagsData) -> None:
        self._save(TAGS_FILE, _dump_tags(data))

    def load_comments(self) -> CommentsData:
        return self._load(COMMENTS_FILE, _parse_comments, CommentsData)

    def save_comments(self, data: CommentsData) -> None:
        self._save(COMMENTS_FILE, _dump_comments(data))

    def load_relations(self) -> RelationsData:
        return self._load(RELATIONS_FILE, _parse_relations, RelationsData)

    def save_relations(self, data: RelationsData) -> None:
        self._save(RELATIONS_FILE, _dump_relations(data))

    def _load(self, filename: str, parse: Callable[[Any], T], default: Callable[[], T]) -> T:
        path = self._data_dir / filename
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("文件读取错误 %s: %s", path, exc)
            raise StorageError(exc) from exc

        if not content.strip():
            return default()
        try:
            document = json.loads(content)
        except json.JSONDecodeError as exc:
            logger.error("JSON 解析错误 %s: %s", path, exc)
            raise SerializationError(exc) from exc
        return parse(document)

    def _save(self, filename: str, document: dict[str, Any]) -> None:
        path = self._data_dir / filename
        if path.exists():
            backup = path.with_name(f"{path.stem}.json.bak")
            try:
                shutil.copyfile(path, backup)
            except OSError as exc:
                logger.error("创建备份失败 %s: %s", backup, exc)

        try:
            path.write_text(_pretty(document), encoding="utf-8")
        except OSError as exc:
            logger.error("文件写入错误 %s: %s", path, exc)
            raise StorageError(exc) from exc
        logger.debug("数据已保存到: %s", path)

    def is_initialized(self) -> bool:
        """Tell whether the directory and all three data files exist."""
        return self._data_dir.exists() and all(
            (self._data_dir / name).exists() for name in (TAGS_FILE, COMMENTS_FILE, RELATIONS_FILE)
        )