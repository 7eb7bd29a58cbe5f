"""Validation and normalisation of project and file paths."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .errors import CodeNexusError, ConfigError, FileMissingError, FileSystemError

logger = logging.getLogger(__name__)

DATA_DIR_NAME = ".codenexus"


def _resolve(path: Path, what: str, shown: object) -> Path:
    try:
        return path.resolve(strict=True)
    except OSError as exc:
        raise FileSystemError(f"无法解析{what} {shown}: {exc}") from exc


def validate_project_path(project_path: str | os.PathLike[str]) -> Path:
    """Check that the project path is an existing directory and return it absolute."""
    text = os.fspath(project_path)
    if not text.strip():
        raise ConfigError("项目路径不能为空")

    path = Path(text)
    if not path.exists():
        raise FileMissingError(f"项目路径不存在: {text}")
    if not path.is_dir():
        raise ConfigError(f"项目路径必须是目录: {text}")

    absolute = _resolve(path, "项目路径", text)
    logger.debug("项目路径验证成功: %s", absolute)
    return absolute


def validate_file_path(project_path: str | os.PathLike[str], file_path: str) -> Path:
    """Check that a file path inside the project names an existing file; return it resolved."""
    if not file_path.strip():
        raise ConfigError("文件路径不能为空")

    project = Path(project_path)
    full_path = project / file_path
    if not full_path.exists():
        raise FileMissingError(f"文件不存在: {file_path} (完整路径: {full_path})")
    if not full_path.is_file():
        raise ConfigError(f"路径必须指向文件而不是目录: {file_path}")

    canonical_file = _resolve(full_path, "文件路径", file_path)
    canonical_project = _resolve(project, "项目路径", project)

    if not canonical_file.is_relative_to(canonical_project):
        logger.warning("安全警告: 文件路径超出项目范围: %s", canonical_file)
        raise ConfigError(f"文件路径必须在项目目录内: {file_path}")

    logger.debug("文件路径验证成功: %s", canonical_file)
    return canonical_file


def get_data_dir(project_path: str | os.PathLike[str]) -> Path:
    """Return the directory where a project's data files live."""
    return Path(project_path) / DATA_DIR_NAME


def normalize_file_path(
    project_path: str | os.PathLike[str], file_path: str | os.PathLike[str]
) -> str:
    """Return the file's path relative to the project, with forward slashes."""
    canonical_project = _resolve(Path(project_path), "项目路径", project_path)
    canonical_file = _resolve(Path(file_path), "文件路径", file_path)

    try:
        relative = canonical_file.relative_to(canonical_project)
    except ValueError as exc:
        raise ConfigError(f"文件路径不在项目目录内: {file_path}") from exc

    if relative == Path("."):
        return ""
    return str(relative).replace("\\", "/")


def project_path_error(message: str) -> CodeNexusError:
    """Build the error used for an unusable project path."""
    return ConfigError(message)