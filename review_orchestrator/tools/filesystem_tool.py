"""Filesystem tool - bounded, read-only file access.

Operations run in a worker thread. Reads are limited to allow-listed
extensions and ``ToolBounds.max_file_size``; walks are depth-bounded and
their listings truncated at ``max_listed_entries``. When
``ToolBounds.allowed_roots`` is set, every path must resolve under one
of the roots.
"""

import asyncio
import fnmatch
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from review_orchestrator.config import ToolBounds, get_tool_bounds
from review_orchestrator.tools.base import (
    Tool,
    ToolDescriptor,
    ToolResult,
    count_lines,
    sub_parameters,
)
from review_orchestrator.tools.catalog import Capability, ToolId

FILESYSTEM_OPERATIONS = (
    "read_file",
    "list_directory",
    "find_files",
    "analyze_structure",
    "get_file_info",
)

FILESYSTEM_DESCRIPTOR = ToolDescriptor(
    name=ToolId.FILESYSTEM.value,
    description=(
        "Read files, list directories, and analyze file structures. "
        "Limited to code and configuration files under 1MB."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "operation": {
                "type": "string",
                "description": "Filesystem operation to perform",
                "enum": list(FILESYSTEM_OPERATIONS),
            },
            "path": {"type": "string", "description": "File or directory path"},
            "parameters": {
                "type": "object",
                "description": "Operation-specific parameters",
                "properties": {
                    "pattern": {"type": "string", "description": "File pattern to match"},
                    "recursive": {"type": "boolean", "description": "Search recursively"},
                    "max_depth": {
                        "type": "integer",
                        "minimum": 0,
                        "description": "Maximum directory depth",
                    },
                    "include_hidden": {
                        "type": "boolean",
                        "description": "Include hidden files",
                    },
                },
            },
        },
        "required": ["operation", "path"],
    },
    required_capabilities=frozenset([Capability.FILESYSTEM_READ.value]),
)


class FileSystemToolError(Exception):
    pass


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class FileSystemTool(Tool):
    descriptor = FILESYSTEM_DESCRIPTOR

    def __init__(self, *, bounds: Optional[ToolBounds] = None, logger: Optional[Any] = None):
        self._bounds = bounds or get_tool_bounds()
        super().__init__(timeout_seconds=self._bounds.tool_timeout_seconds, logger=logger)

    async def _run(self, parameters: Dict[str, Any]) -> ToolResult:
        operation = parameters["operation"]
        handler = {
            "read_file": self._read_file,
            "list_directory": self._list_directory,
            "find_files": self._find_files,
            "analyze_structure": self._analyze_structure,
            "get_file_info": self._get_file_info,
        }.get(operation)
        if handler is None:
            return ToolResult.failure(f"Unknown operation: {operation}")

        try:
            return await asyncio.to_thread(
                handler, parameters["path"], sub_parameters(parameters)
            )
        except FileSystemToolError as exc:
            return ToolResult.failure(str(exc))
        except OSError as exc:
            return ToolResult.failure(f"Failed to {operation.replace('_', ' ')}: {exc}")

    # ─── Path policy ───

    def _resolve(self, raw: str) -> Path:
        path = Path(raw).expanduser().resolve()
        roots = [Path(r).resolve() for r in self._bounds.allowed_roots]
        if roots and not any(path == r or r in path.parents for r in roots):
            raise FileSystemToolError(f"Path is outside allowed roots: {raw}")
        return path

    def _is_allowed_file(self, path: Path) -> bool:
        if not path.is_file():
            return False
        try:
            if path.stat().st_size > self._bounds.max_file_size:
                return False
        except OSError:
            return False
        return path.suffix.lower() in self._bounds.allowed_extensions

    def _path_info(self, path: Path) -> Dict[str, Any]:
        try:
            stat = path.stat()
        except OSError:
            return {"name": path.name, "path": str(path), "error": "Failed to read attributes"}
        return {
            "name": path.name,
            "path": str(path),
            "type": "directory" if path.is_dir() else "file",
            "size": stat.st_size,
            "modified": _iso(stat.st_mtime),
        }

    def _walk(self, root: Path, max_depth: int, recursive: bool = True):
        """Yield (dirpath, dirnames, filenames) no deeper than max_depth."""
        base_depth = len(root.parts)
        for dirpath, dirnames, filenames in os.walk(root):
            depth = len(Path(dirpath).parts) - base_depth
            if not recursive or depth >= max_depth:
                dirnames[:] = []
            dirnames.sort()
            yield Path(dirpath), dirnames, sorted(filenames)

    # ─── Operations (worker thread) ───

    def _read_file(self, raw: str, params: Dict[str, Any]) -> ToolResult:
        path = self._resolve(raw)
        if not self._is_allowed_file(path):
            raise FileSystemToolError(f"File type not allowed or file too large: {raw}")
        content = path.read_text(encoding="utf-8", errors="replace")
        return ToolResult.ok(
            content,
            {"file": raw, "size": len(content), "lines": count_lines(content), "encoding": "UTF-8"},
            mime_type="text/plain",
        )

    def _list_directory(self, raw: str, params: Dict[str, Any]) -> ToolResult:
        path = self._resolve(raw)
        if not path.is_dir():
            raise FileSystemToolError(f"Path is not a directory: {raw}")
        include_hidden = bool(params.get("include_hidden", False))

        entries = [
            self._path_info(child)
            for child in sorted(path.iterdir())
            if include_hidden or not child.name.startswith(".")
        ]
        truncated = len(entries) > self._bounds.max_listed_entries
        entries = entries[: self._bounds.max_listed_entries]
        return ToolResult.ok(
            entries,
            {
                "directory": raw,
                "file_count": len(entries),
                "include_hidden": include_hidden,
                "truncated": truncated,
            },
        )

    def _find_files(self, raw: str, params: Dict[str, Any]) -> ToolResult:
        path = self._resolve(raw)
        if not path.is_dir():
            raise FileSystemToolError(f"Path is not a directory: {raw}")
        pattern = str(params.get("pattern") or "*")
        recursive = bool(params.get("recursive", True))
        max_depth = min(
            int(params.get("max_depth", self._bounds.max_walk_depth)),
            self._bounds.max_walk_depth,
        )

        found: List[Dict[str, Any]] = []
        truncated = False
        for dirpath, _, filenames in self._walk(path, max_depth, recursive):
            for name in filenames:
                candidate = dirpath / name
                if fnmatch.fnmatch(name, pattern) and self._is_allowed_file(candidate):
                    if len(found) >= self._bounds.max_listed_entries:
                        truncated = True
                        break
                    found.append(self._path_info(candidate))
            if truncated:
                break

        return ToolResult.ok(
            found,
            {
                "root_path": raw,
                "pattern": pattern,
                "found_files": len(found),
                "recursive": recursive,
                "truncated": truncated,
            },
        )

    def _analyze_structure(self, raw: str, params: Dict[str, Any]) -> ToolResult:
        path = self._resolve(raw)
        if not path.is_dir():
            raise FileSystemToolError(f"Path is not a directory: {raw}")
        max_depth = min(
            int(params.get("max_depth", self._bounds.max_structure_depth)),
            self._bounds.max_walk_depth,
        )

        total_files = 0
        total_dirs = 0
        total_size = 0
        extension_counts: Dict[str, int] = {}
        for dirpath, _, filenames in self._walk(path, max_depth):
            total_dirs += 1
            for name in filenames:
                total_files += 1
                try:
                    total_size += (dirpath / name).stat().st_size
                except OSError:
                    pass
                suffix = Path(name).suffix
                if suffix:
                    extension_counts[suffix] = extension_counts.get(suffix, 0) + 1

        structure = {
            "total_files": total_files,
            "total_directories": total_dirs,
            "total_size_bytes": total_size,
            "extension_counts": dict(sorted(extension_counts.items())),
        }
        return ToolResult.ok(
            structure,
            {"root_path": raw, "max_depth": max_depth, "analysis_time": int(time.time() * 1000)},
        )

    def _get_file_info(self, raw: str, params: Dict[str, Any]) -> ToolResult:
        path = self._resolve(raw)
        stat = path.stat()
        info = {
            "path": raw,
            "size": stat.st_size,
            "is_directory": path.is_dir(),
            "is_regular_file": path.is_file(),
            "created_time": _iso(stat.st_ctime),
            "modified_time": _iso(stat.st_mtime),
            "readable": os.access(path, os.R_OK),
            "writable": os.access(path, os.W_OK),
            "executable": os.access(path, os.X_OK),
        }
        return ToolResult.ok(info)


__all__ = ["FileSystemTool", "FILESYSTEM_DESCRIPTOR", "FILESYSTEM_OPERATIONS"]
