"""Data records exchanged by the managers, the query engine and the server."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import SerializationError


@dataclass
class Relation:
    """A directed link to another file with a description."""

    target: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {"target": self.target, "description": self.description}

    @classmethod
    def from_dict(cls, data: Any) -> "Relation":
        if not isinstance(data, dict):
            raise SerializationError("invalid type: expected a relation object")
        values = []
        for key in ("target", "description"):
            if key not in data:
                raise SerializationError(f"missing field `{key}`")
            value = data[key]
            if not isinstance(value, str):
                raise SerializationError(f"invalid type for `{key}`: expected a string")
            values.append(value)
        return cls(*values)


@dataclass
class FileInfo:
    """Everything known about one file."""

    path: str
    tags: list[str] = field(default_factory=list)
    comment: str | None = None
    relations: list[Relation] = field(default_factory=list)
    incoming_relations: list[Relation] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "tags": list(self.tags),
            "comment": self.comment,
            "relations": [relation.to_dict() for relation in self.relations],
            "incoming_relations": [relation.to_dict() for relation in self.incoming_relations],
        }


@dataclass
class QueryResult:
    """Files matched by a query and their count."""

    files: list[str]
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {"files": list(self.files), "total": self.total}


@dataclass
class TagStats:
    """Tag values grouped by type, with totals."""

    tag_types: dict[str, list[str]]
    total_files: int
    total_tags: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "tag_types": {kind: list(values) for kind, values in self.tag_types.items()},
            "total_files": self.total_files,
            "total_tags": self.total_tags,
        }


@dataclass
class SystemStatus:
    """Overall counts for a project."""

    total_files: int
    tagged_files: int
    commented_files: int
    total_relations: int
    tag_stats: TagStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_files": self.total_files,
            "tagged_files": self.tagged_files,
            "commented_files": self.commented_files,
            "total_relations": self.total_relations,
            "tag_stats": self.tag_stats.to_dict(),
        }