"""Tags attached to project files, with an in-memory index and a small query language."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .errors import FileMissingError, InvalidTagFormatError, TagNotFoundError
from .storage import JsonStorage, TagsData

logger = logging.getLogger(__name__)


def wildcard_match(pattern: str, text: str) -> bool:
    """Match text against a pattern in which '*' stands for any run of characters."""
    if "*" not in pattern:
        return pattern == text

    parts = pattern.split("*")
    first, *middle, last = parts

    position = 0
    if first:
        if not text.startswith(first):
            return False
        position = len(first)

    if last and not text.endswith(last):
        return False

    for part in middle:
        if not part:
            continue
        found = text.find(part, position)
        if found < 0:
            return False
        position = found + len(part)

    return True


class TagManager:
    """Keeps the tags of each file and indexes them by type and by tag."""

    def __init__(self, storage: JsonStorage) -> None:
        self._storage = storage
        self._file_tags: dict[str, set[str]] = {}
        self._tag_index: dict[str, set[str]] = {}
        self._tag_to_files: dict[str, set[str]] = {}

    def __repr__(self) -> str:
        return f"TagManager(storage={self._storage!r}, files={len(self._file_tags)})"

    def initialize(self) -> None:
        """Load stored tags and rebuild the indices."""
        self._build_indices(self._storage.load_tags())
        logger.info("标签管理器初始化完成，加载了 %d 个文件的标签", len(self._file_tags))

    def _build_indices(self, data: TagsData) -> None:
        self._file_tags.clear()
        self._tag_index.clear()
        self._tag_to_files.clear()
        for file_path, tags in data.file_tags.items():
            self._file_tags[file_path] = set(tags)
            for tag in tags:
                self._index(tag, file_path)

    def _index(self, tag: str, file_path: str) -> None:
        tag_type, sep, tag_value = tag.partition(":")
        if sep:
            self._tag_index.setdefault(tag_type, set()).add(tag_value)
        self._tag_to_files.setdefault(tag, set()).add(file_path)

    def _unindex(self, tag: str, file_path: str) -> None:
        files = self._tag_to_files.get(tag)
        if files is None:
            return
        files.discard(file_path)
        if files:
            return
        del self._tag_to_files[tag]
        tag_type, sep, tag_value = tag.partition(":")
        if not sep:
            return
        values = self._tag_index.get(tag_type)
        if values is not None:
            values.discard(tag_value)
            if not values:
                del self._tag_index[tag_type]

    def validate_tag(self, tag: str) -> None:
        """Raise InvalidTagFormatError unless the tag has the form type:value."""
        parts = tag.split(":")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise InvalidTagFormatError(tag)

    def add_tags(
        self,
        absolute_file_path: str | os.PathLike[str],
        relative_file_path: str,
        tags: list[str],
    ) -> None:
        """Attach tags to an existing file; tags it already has are left alone."""
        absolute = Path(absolute_file_path)
        if not absolute.exists():
            raise FileMissingError(str(absolute))
        for tag in tags:
            self.validate_tag(tag)

        file_tags = self._file_tags.setdefault(relative_file_path, set())
        added = []
        for tag in tags:
            if tag not in file_tags:
                file_tags.add(tag)
                added.append(tag)

        for tag in added:
            self._index(tag, relative_file_path)

        if added:
            self._save()
            logger.info("为文件 %s 添加了 %d 个标签: %s", relative_file_path, len(added), added)
        else:
            logger.debug("文件 %s 的标签没有变化", relative_file_path)

    def remove_tags(
        self,
        absolute_file_path: str | os.PathLike[str],
        relative_file_path: str,
        tags: list[str],
    ) -> None:
        """Detach tags from a file; every tag must be present or nothing changes."""
        file_tags = self._file_tags.get(relative_file_path)
        if file_tags is None:
            raise FileMissingError(relative_file_path)

        for tag in tags:
            if tag not in file_tags:
                raise TagNotFoundError(tag, relative_file_path)

        removed = []
        for tag in tags:
            if tag in file_tags:
                file_tags.remove(tag)
                removed.append(tag)

        for tag in removed:
            self._unindex(tag, relative_file_path)

        if not file_tags:
            del self._file_tags[relative_file_path]

        if removed:
            self._save()
            logger.info("从文件 %s 移除了 %d 个标签: %s", relative_file_path, len(removed), removed)

    def get_file_tags(self, file_path: str) -> list[str]:
        """Return the file's tags in sorted order."""
        return sorted(self._file_tags.get(file_path, ()))

    def get_all_tags(self) -> dict[str, list[str]]:
        """Return the sorted tag values of each tag type."""
        return {tag_type: sorted(values) for tag_type, values in self._tag_index.items()}

    def query_files_by_tags(self, query: str) -> list[str]:
        """Evaluate a query with OR, AND, NOT, parentheses and '*' and return sorted files."""
        query = query.strip()
        if not query:
            return []
        return sorted(self._evaluate(query))

    def _evaluate(self, query: str) -> set[str]:
        if " OR " in query:
            result: set[str] = set()
            for part in query.split(" OR "):
                result |= self._evaluate(part.strip())
            return result

        if " AND " in query:
            parts = [self._evaluate(part.strip()) for part in query.split(" AND ")]
            return set.intersection(*parts)

        if query.startswith("NOT "):
            inner = self._evaluate(query[4:].strip())
            return set(self._file_tags) - inner

        if query.startswith("(") and query.endswith(")"):
            return self._evaluate(query[1:-1])

        if "*" in query:
            result = set()
            for tag, files in self._tag_to_files.items():
                if wildcard_match(query, tag):
                    result |= files
            return result

        return set(self._tag_to_files.get(query, ()))

    def get_untagged_files(self) -> list[str]:
        """Return files without tags; the project tree is not scanned, so this is empty."""
        return []

    def _save(self) -> None:
        data = TagsData({path: sorted(tags) for path, tags in self._file_tags.items()})
        self._storage.save_tags(data)

    def get_stats(self) -> tuple[int, int, int]:
        """Return (files with a record, distinct tags, tag types)."""
        return len(self._file_tags), len(self._tag_to_files), len(self._tag_index)