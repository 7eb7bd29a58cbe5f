"""Free-text comments attached to project files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from .errors import ConfigError, FileMissingError
from .storage import CommentsData, JsonStorage

logger = logging.getLogger(__name__)


class CommentManager:
    """Keeps one comment per file and persists them through the storage."""

    def __init__(self, storage: JsonStorage) -> None:
        self._storage = storage
        self._comments: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"CommentManager(storage={self._storage!r}, files={len(self._comments)})"

    def initialize(self) -> None:
        """Load stored comments into memory."""
        self._comments = dict(self._storage.load_comments().file_comments)
        logger.info("注释管理器初始化完成，加载了 %d 个文件的注释", len(self._comments))

    @staticmethod
    def _check_inputs(absolute_file_path: str | os.PathLike[str], comment: str) -> None:
        absolute = Path(absolute_file_path)
        if not absolute.exists():
            raise FileMissingError(str(absolute))
        if not comment.strip():
            raise ConfigError("注释内容不能为空")

    def add_comment(
        self,
        absolute_file_path: str | os.PathLike[str],
        relative_file_path: str,
        comment: str,
    ) -> None:
        """Add a comment to a file that has none yet."""
        self._check_inputs(absolute_file_path, comment)
        if relative_file_path in self._comments:
            raise ConfigError(f"文件 {relative_file_path} 已存在注释，请使用 update_comment 更新")
        self._comments[relative_file_path] = comment
        self._save()
        logger.info("为文件 %s 添加了注释", relative_file_path)

    def update_comment(
        self,
        absolute_file_path: str | os.PathLike[str],
        relative_file_path: str,
        comment: str,
    ) -> None:
        """Set a file's comment, replacing any earlier one."""
        self._check_inputs(absolute_file_path, comment)
        existed = relative_file_path in self._comments
        self._comments[relative_file_path] = comment
        self._save()
        if existed:
            logger.info("更新了文件 %s 的注释", relative_file_path)
        else:
            logger.info("为文件 %s 添加了注释", relative_file_path)

    def get_comment(self, file_path: str) -> str | None:
        return self._comments.get(file_path)

    def get_comments(self, file_paths: list[str]) -> dict[str, str]:
        """Return the comments of those given files that have one."""
        return {path: self._comments[path] for path in file_paths if path in self._comments}

    def get_all_comments(self) -> Mapping[str, str]:
        """Return a read-only view of every comment."""
        return MappingProxyType(self._comments)

    def delete_comment(self, file_path: str) -> None:
        """Remove a file's comment; the file itself need not exist any more."""
        if file_path not in self._comments:
            raise FileMissingError(f"文件 {file_path} 没有注释")
        del self._comments[file_path]
        self._save()
        logger.info("删除了文件 %s 的注释", file_path)

    def has_comment(self, file_path: str) -> bool:
        return file_path in self._comments

    def get_commented_files(self) -> list[str]:
        return sorted(self._comments)

    def search_comments(self, keyword: str) -> list[tuple[str, str]]:
        """Return (path, comment) pairs whose comment contains the keyword, ignoring case."""
        needle = keyword.lower()
        return sorted(
            (path, comment) for path, comment in self._comments.items() if needle in comment.lower()
        )

    def get_stats(self) -> tuple[int, int]:
        """Return (number of comments, total length in UTF-8 bytes)."""
        total = sum(len(comment.encode("utf-8")) for comment in self._comments.values())
        return len(self._comments), total

    def cleanup_invalid_comments(self) -> int:
        """Drop comments of paths that no longer exist; return how many were dropped."""
        stale = [path for path in self._comments if not Path(path).exists()]
        for path in stale:
            del self._comments[path]
            logger.debug("清理了不存在文件的注释: %s", path)
        if stale:
            self._save()
            logger.info("清理了 %d 个无效注释", len(stale))
        return len(stale)

    def export_comments(self) -> dict[str, str]:
        return dict(self._comments)

    def import_comments(self, comments: Mapping[str, str]) -> int:
        """Take in comments for existing paths with non-blank text; return how many."""
        imported = 0
        for path, comment in comments.items():
            if Path(path).exists() and comment.strip():
                self._comments[path] = comment
                imported += 1
        if imported:
            self._save()
            logger.info("导入了 %d 个注释", imported)
        return imported

    def _save(self) -> None:
        self._storage.save_comments(CommentsData(dict(self._comments)))