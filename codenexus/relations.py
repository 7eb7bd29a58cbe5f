"""Directed, described relations between project files, with a reverse index."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from .errors import (
    ConfigError,
    FileMissingError,
    RelationAlreadyExistsError,
    RelationNotFoundError,
)
from .models import Relation
from .storage import JsonStorage, RelationsData

logger = logging.getLogger(__name__)


class RelationManager:
    """Keeps the outgoing relations of each file and an index of incoming ones."""

    def __init__(self, storage: JsonStorage) -> None:
        self._storage = storage
        self._relations: dict[str, list[Relation]] = {}
        self._incoming: dict[str, list[tuple[str, str]]] = {}

    def __repr__(self) -> str:
        return f"RelationManager(storage={self._storage!r}, files={len(self._relations)})"

    def initialize(self) -> None:
        """Load stored relations and rebuild the reverse index."""
        self._relations = {
            path: list(relations)
            for path, relations in self._storage.load_relations().file_relations.items()
        }
        self._build_incoming_index()
        logger.info("关联关系管理器初始化完成，加载了 %d 个文件的关联关系", len(self._relations))

    def _build_incoming_index(self) -> None:
        self._incoming.clear()
        for from_file, relations in self._relations.items():
            for relation in relations:
                self._incoming.setdefault(relation.target, []).append(
                    (from_file, relation.description)
                )

    def add_relation(
        self,
        absolute_from_file: str | os.PathLike[str],
        relative_from_file: str,
        absolute_to_file: str | os.PathLike[str],
        relative_to_file: str,
        description: str,
    ) -> None:
        """Add a relation between two existing files; the pair must not be linked yet."""
        for absolute in (Path(absolute_from_file), Path(absolute_to_file)):
            if not absolute.exists():
                raise FileMissingError(str(absolute))
        if not description.strip():
            raise ConfigError("关联描述不能为空")

        if self.has_relation(relative_from_file, relative_to_file):
            raise RelationAlreadyExistsError(relative_from_file, relative_to_file)

        self._relations.setdefault(relative_from_file, []).append(
            Relation(relative_to_file, description)
        )
        self._incoming.setdefault(relative_to_file, []).append((relative_from_file, description))

        self._save()
        logger.info(
            "添加了关联关系: %s -> %s (%s)", relative_from_file, relative_to_file, description
        )

    def remove_relation(
        self,
        absolute_from_file: str | os.PathLike[str],
        relative_from_file: str,
        absolute_to_file: str | os.PathLike[str],
        relative_to_file: str,
    ) -> None:
        """Remove a relation; the files themselves need not exist any more."""
        relations = self._relations.get(relative_from_file)
        if relations is None:
            raise RelationNotFoundError(relative_from_file, relative_to_file)

        kept = [relation for relation in relations if relation.target != relative_to_file]
        if len(kept) == len(relations):
            raise RelationNotFoundError(relative_from_file, relative_to_file)

        if kept:
            self._relations[relative_from_file] = kept
        else:
            del self._relations[relative_from_file]

        incoming = self._incoming.get(relative_to_file)
        if incoming is not None:
            remaining = [item for item in incoming if item[0] != relative_from_file]
            if remaining:
                self._incoming[relative_to_file] = remaining
            else:
                del self._incoming[relative_to_file]

        self._save()
        logger.info("移除了关联关系: %s -> %s", relative_from_file, relative_to_file)

    def get_file_relations(self, file_path: str) -> list[Relation]:
        """Return the file's outgoing relations."""
        return [Relation(r.target, r.description) for r in self._relations.get(file_path, ())]

    def get_incoming_relations(self, file_path: str) -> list[Relation]:
        """Return relations pointing at the file; each target names the source file."""
        return [
            Relation(from_file, description)
            for from_file, description in self._incoming.get(file_path, ())
        ]

    def query_relations_by_description(self, keyword: str) -> list[tuple[str, Relation]]:
        """Return (source, relation) pairs whose description contains the keyword, ignoring case."""
        needle = keyword.lower()
        results = [
            (from_file, Relation(relation.target, relation.description))
            for from_file, relations in self._relations.items()
            for relation in relations
            if needle in relation.description.lower()
        ]
        results.sort(key=lambda item: item[0])
        return results

    def get_all_relations(self) -> Mapping[str, list[Relation]]:
        """Return a read-only view of every file's outgoing relations."""
        return MappingProxyType(self._relations)

    def has_relation(self, from_file: str, to_file: str) -> bool:
        return any(relation.target == to_file for relation in self._relations.get(from_file, ()))

    def get_related_files(self) -> list[str]:
        """Return the sorted files that have outgoing relations."""
        return sorted(self._relations)

    def get_stats(self) -> tuple[int, int, int]:
        """Return (files with relations, total relations, files with incoming relations)."""
        total = sum(len(relations) for relations in self._relations.values())
        return len(self._relations), total, len(self._incoming)

    def get_relation_graph(self, file_path: str, max_depth: int) -> dict[str, list[Relation]]:
        """Follow outgoing relations from a file up to max_depth levels deep."""
        graph: dict[str, list[Relation]] = {}
        visited: set[str] = set()

        def visit(path: str, depth: int) -> None:
            if depth >= max_depth or path in visited:
                return
            visited.add(path)
            relations = self._relations.get(path)
            if relations is None:
                return
            graph[path] = self.get_file_relations(path)
            for relation in relations:
                visit(relation.target, depth + 1)

        visit(file_path, 0)
        return graph

    def cleanup_invalid_relations(self) -> int:
        """Drop relations whose source or target path no longer exists; return the count."""
        stale_sources = [path for path in self._relations if not Path(path).exists()]

        removed = 0
        updates: list[tuple[str, list[Relation]]] = []
        for from_file, relations in self._relations.items():
            valid = []
            for relation in relations:
                if Path(relation.target).exists():
                    valid.append(relation)
                else:
                    removed += 1
                    logger.debug("清理了指向不存在文件的关联: %s -> %s", from_file, relation.target)
            if len(valid) != len(relations):
                updates.append((from_file, valid))

        for path in stale_sources:
            relations = self._relations.pop(path, None)
            if relations is not None:
                removed += len(relations)
                logger.debug("清理了不存在文件的所有关联: %s", path)

        for from_file, valid in updates:
            if valid:
                self._relations[from_file] = valid
            else:
                self._relations.pop(from_file, None)

        if removed:
            self._build_incoming_index()
            self._save()
            logger.info("清理了 %d 个无效关联关系", removed)
        return removed

    def _save(self) -> None:
        data = RelationsData({path: list(rels) for path, rels in self._relations.items()})
        self._storage.save_relations(data)