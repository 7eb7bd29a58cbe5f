"""Multi-project server exposing the tag, comment and relation tools as JSON replies."""

from __future__ import annotations

import functools
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Mapping, TypeVar

from .comments import CommentManager
from .engine import QueryEngine
from .errors import CodeNexusError, InternalError, SerializationError, format_error_response
from .models import FileInfo, QueryResult, Relation, SystemStatus, TagStats
from .paths import get_data_dir, normalize_file_path, validate_file_path, validate_project_path
from .relations import RelationManager
from .storage import JsonStorage
from .tags import TagManager

logger = logging.getLogger(__name__)

INSTRUCTIONS = "CodeNexus 代码库关系管理工具 - 通过标签、注释和关联关系管理代码文件"

F = TypeVar("F", bound=Callable[..., str])


class _Rejected(Exception):
    """A tool call stopped early; the message is the reply text."""


def _jsonable(value: Any) -> Any:
    if isinstance(value, (Relation, FileInfo, QueryResult, TagStats, SystemStatus)):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def _dumps(document: Any) -> str:
    return json.dumps(document, ensure_ascii=False, separators=(",", ":"))


def _success(message: str) -> str:
    return _dumps({"success": True, "message": message})


def _data(value: Any) -> str:
    try:
        return _dumps(_jsonable(value))
    except (TypeError, ValueError) as exc:
        logger.error("序列化响应数据失败: %s", exc)
        return format_error_response(SerializationError(exc))


def _tool(failure: str) -> Callable[[F], F]:
    """Turn early rejections into plain text and package errors into JSON error replies."""

    def decorate(method: F) -> F:
        @functools.wraps(method)
        def wrapper(*args: Any, **kwargs: Any) -> str:
            try:
                return method(*args, **kwargs)
            except _Rejected as rejected:
                return str(rejected)
            except CodeNexusError as exc:
                logger.error("%s: %s", failure, exc)
                return format_error_response(exc)

        return wrapper  # type: ignore[return-value]

    return decorate


class ProjectManager:
    """The loaded managers and query engine of one project directory."""

    def __init__(self, project_path: str) -> None:
        validated = validate_project_path(project_path)
        storage = JsonStorage(get_data_dir(validated))
        storage.initialize()

        tag_manager = TagManager(storage)
        comment_manager = CommentManager(storage)
        relation_manager = RelationManager(storage)
        tag_manager.initialize()
        comment_manager.initialize()
        relation_manager.initialize()

        self.project_path = project_path
        self.tag_manager = tag_manager
        self.comment_manager = comment_manager
        self.relation_manager = relation_manager
        self.query_engine = QueryEngine(tag_manager, comment_manager, relation_manager)
        self.lock = threading.RLock()
        logger.debug("项目管理器创建完成: %s", project_path)

    def __repr__(self) -> str:
        return f"ProjectManager(project_path={self.project_path!r})"


class CodeNexusServer:
    """Serves tool calls for any number of projects, caching one manager per path."""

    def __init__(self) -> None:
        self._projects: dict[str, ProjectManager] = {}
        self._lock = threading.Lock()
        logger.info("CodeNexus 服务器初始化完成")

    def __repr__(self) -> str:
        return f"CodeNexusServer(projects={sorted(self._projects)!r})"

    def get_or_create_project(self, project_path: str) -> ProjectManager:
        """Return the cached manager of a project, loading it on first use."""
        with self._lock:
            project = self._projects.get(project_path)
            if project is not None:
                return project
            try:
                project = ProjectManager(project_path)
            except CodeNexusError as exc:
                raise InternalError(f"创建项目管理器失败: {exc}") from exc
            self._projects[project_path] = project
            logger.info("为项目创建了新的管理器: %s", project_path)
            return project

    def _project(self, project_path: str) -> ProjectManager:
        try:
            return self.get_or_create_project(project_path)
        except CodeNexusError as exc:
            raise _Rejected(f"错误: {exc}") from exc

    @staticmethod
    def _root(project_path: str) -> Path:
        try:
            return validate_project_path(project_path)
        except CodeNexusError as exc:
            raise _Rejected(f"项目路径验证失败: {exc}") from exc

    @staticmethod
    def _checked_file(root: Path, file_path: str, who: str = "") -> Path:
        try:
            return validate_file_path(root, file_path)
        except CodeNexusError as exc:
            raise _Rejected(f"{who}文件路径验证失败: {exc}") from exc

    @staticmethod
    def _relative(root: Path, full_path: Path, who: str = "") -> str:
        try:
            return normalize_file_path(root, full_path)
        except CodeNexusError as exc:
            label = f"{who}文件路径规范化失败" if who else "路径规范化失败"
            raise _Rejected(f"{label}: {exc}") from exc

    def _existing(self, project_path: str, file_path: str) -> tuple[Path, str]:
        root = self._root(project_path)
        full = self._checked_file(root, file_path)
        return full, self._relative(root, full)

    @_tool("添加标签失败")
    def add_file_tags(self, project_path: str, file_path: str, tags: list[str]) -> str:
        """Attach tags of the form type:value to a file."""
        full, relative = self._existing(project_path, file_path)
        project = self._project(project_path)
        with project.lock:
            project.tag_manager.add_tags(full, relative, list(tags))
        return _success("标签添加成功")

    @_tool("移除标签失败")
    def remove_file_tags(self, project_path: str, file_path: str, tags: list[str]) -> str:
        """Detach tags from a file."""
        root = self._root(project_path)
        full = root / file_path
        relative = self._relative(root, full)
        project = self._project(project_path)
        with project.lock:
            project.tag_manager.remove_tags(full, relative, list(tags))
        return _success("标签移除成功")

    @_tool("标签查询失败")
    def query_files_by_tags(self, project_path: str, query: str) -> str:
        """Find files by a tag query with AND, OR, NOT and wildcards."""
        project = self._project(project_path)
        with project.lock:
            result = project.query_engine.execute_tag_query(query)
        return _data(result)

    @_tool("获取所有标签失败")
    def get_all_tags(self, project_path: str) -> str:
        """List every tag value grouped by tag type."""
        project = self._project(project_path)
        with project.lock:
            all_tags = project.tag_manager.get_all_tags()
        return _data(all_tags)

    @_tool("添加注释失败")
    def add_file_comment(self, project_path: str, file_path: str, comment: str) -> str:
        """Add a comment to a file that has none."""
        full, relative = self._existing(project_path, file_path)
        project = self._project(project_path)
        with project.lock:
            project.comment_manager.add_comment(full, relative, comment)
        return _success("注释添加成功")

    @_tool("更新注释失败")
    def update_file_comment(self, project_path: str, file_path: str, comment: str) -> str:
        """Set or replace a file's comment."""
        full, relative = self._existing(project_path, file_path)
        project = self._project(project_path)
        with project.lock:
            project.comment_manager.update_comment(full, relative, comment)
        return _success("注释更新成功")

    @_tool("添加关联关系失败")
    def add_file_relation(
        self, project_path: str, from_file: str, to_file: str, description: str
    ) -> str:
        """Link one file to another with a description."""
        root = self._root(project_path)
        from_full = self._checked_file(root, from_file, "源")
        to_full = self._checked_file(root, to_file, "目标")
        from_relative = self._relative(root, from_full, "源")
        to_relative = self._relative(root, to_full, "目标")
        project = self._project(project_path)
        with project.lock:
            project.relation_manager.add_relation(
                from_full, from_relative, to_full, to_relative, description
            )
        return _success("关联关系添加成功")

    @_tool("移除关联关系失败")
    def remove_file_relation(self, project_path: str, from_file: str, to_file: str) -> str:
        """Remove the link between two files."""
        root = self._root(project_path)
        from_full = root / from_file
        to_full = root / to_file
        from_relative = self._relative(root, from_full, "源")
        to_relative = self._relative(root, to_full, "目标")
        project = self._project(project_path)
        with project.lock:
            project.relation_manager.remove_relation(from_full, from_relative, to_full, to_relative)
        return _success("关联关系移除成功")

    @_tool("查询关联关系失败")
    def query_file_relations(self, project_path: str, file_path: str) -> str:
        """List the file's outgoing relations."""
        _, relative = self._existing(project_path, file_path)
        project = self._project(project_path)
        with project.lock:
            relations = project.relation_manager.get_file_relations(relative)
        return _data(relations)

    @_tool("查询入向关联关系失败")
    def query_incoming_relations(self, project_path: str, file_path: str) -> str:
        """List the relations that point at the file."""
        _, relative = self._existing(project_path, file_path)
        project = self._project(project_path)
        with project.lock:
            relations = project.relation_manager.get_incoming_relations(relative)
        return _data(relations)

    @_tool("获取文件信息失败")
    def get_file_info(self, project_path: str, file_path: str) -> str:
        """Report the tags, comment and relations of a file."""
        _, relative = self._existing(project_path, file_path)
        project = self._project(project_path)
        with project.lock:
            info = project.query_engine.get_file_info(relative)
        return _data(info)

    @_tool("获取系统状态失败")
    def get_system_status(self, project_path: str) -> str:
        """Report counts of tagged, commented and related files."""
        project = self._project(project_path)
        with project.lock:
            status = project.query_engine.get_system_status()
        return _data(status)

    @_tool("搜索文件失败")
    def search_files(self, project_path: str, keyword: str) -> str:
        """Search comments and relation descriptions for a keyword."""
        project = self._project(project_path)
        with project.lock:
            results = project.query_engine.search_files(keyword)
        return _data(results)