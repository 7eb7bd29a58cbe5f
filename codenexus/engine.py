"""Queries that combine tags, comments and relations."""

from __future__ import annotations

from .comments import CommentManager
from .errors import InvalidQuerySyntaxError
from .models import FileInfo, QueryResult, SystemStatus, TagStats
from .relations import RelationManager
from .tags import TagManager

MAX_SUGGESTIONS = 10


class QueryEngine:
    """Answers questions about files using the three managers of one project."""

    def __init__(
        self,
        tag_manager: TagManager,
        comment_manager: CommentManager,
        relation_manager: RelationManager,
    ) -> None:
        self._tags = tag_manager
        self._comments = comment_manager
        self._relations = relation_manager

    def __repr__(self) -> str:
        return (
            f"QueryEngine(tags={self._tags!r}, comments={self._comments!r}, "
            f"relations={self._relations!r})"
        )

    def execute_tag_query(self, query: str) -> QueryResult:
        files = self._tags.query_files_by_tags(query)
        return QueryResult(files=files, total=len(files))

    def get_file_info(self, file_path: str) -> FileInfo:
        """Gather the tags, comment and relations of one file."""
        return FileInfo(
            path=file_path,
            tags=self._tags.get_file_tags(file_path),
            comment=self._comments.get_comment(file_path),
            relations=self._relations.get_file_relations(file_path),
            incoming_relations=self._relations.get_incoming_relations(file_path),
        )

    def execute_complex_query(
        self, tag_query: str | None, relation_keyword: str | None
    ) -> QueryResult:
        """Combine a tag query with a search of relation descriptions."""
        files: list[str] = []
        if tag_query is not None:
            files = self._tags.query_files_by_tags(tag_query)

        if relation_keyword is not None:
            relation_files = [
                from_file
                for from_file, _ in self._relations.query_relations_by_description(relation_keyword)
            ]
            if not files:
                files = relation_files
            else:
                wanted = set(relation_files)
                files = [path for path in files if path in wanted]

        files = sorted(set(files))
        return QueryResult(files=files, total=len(files))

    def get_system_status(self) -> SystemStatus:
        tagged, distinct_tags, _ = self._tags.get_stats()
        commented, _ = self._comments.get_stats()
        related, total_relations, _ = self._relations.get_stats()
        return SystemStatus(
            total_files=max(tagged, commented, related),
            tagged_files=tagged,
            commented_files=commented,
            total_relations=total_relations,
            tag_stats=TagStats(
                tag_types=self._tags.get_all_tags(),
                total_files=tagged,
                total_tags=distinct_tags,
            ),
        )

    def search_files(self, keyword: str) -> list[FileInfo]:
        """Find files whose comment or outgoing relation descriptions mention the keyword."""
        paths = {path for path, _ in self._comments.search_comments(keyword)}
        paths.update(path for path, _ in self._relations.query_relations_by_description(keyword))
        return [self.get_file_info(path) for path in sorted(paths)]

    def get_related_files(self, file_path: str, max_results: int) -> list[str]:
        """Suggest files sharing a tag or a relation with the given file."""
        related: set[str] = set()
        for tag in self._tags.get_file_tags(file_path):
            related.update(
                path for path in self._tags.query_files_by_tags(tag) if path != file_path
            )
        related.update(r.target for r in self._relations.get_file_relations(file_path))
        related.update(r.target for r in self._relations.get_incoming_relations(file_path))
        return sorted(related)[:max_results]

    def get_batch_file_info(self, file_paths: list[str]) -> list[FileInfo]:
        return [self.get_file_info(path) for path in file_paths]

    def validate_query_syntax(self, query: str) -> None:
        """Raise InvalidQuerySyntaxError for an empty query or a malformed one."""
        query = query.strip()
        if not query:
            raise InvalidQuerySyntaxError("查询不能为空")

        if " AND " in query and any(not part.strip() for part in query.split(" AND ")):
            raise InvalidQuerySyntaxError("AND 操作符前后不能为空")

        if ":" in query and " " not in query and len(query.split(":")) != 2:
            raise InvalidQuerySyntaxError("标签格式应为 type:value")

    def get_query_suggestions(self, partial_query: str) -> list[str]:
        """Suggest up to ten full tags matching a partial query."""
        if not partial_query:
            return []
        suggestions = []
        for tag_type, values in self._tags.get_all_tags().items():
            full_tags = [f"{tag_type}:{value}" for value in values]
            if tag_type.startswith(partial_query):
                suggestions.extend(full_tags)
            else:
                suggestions.extend(tag for tag in full_tags if partial_query in tag)
        return sorted(suggestions)[:MAX_SUGGESTIONS]