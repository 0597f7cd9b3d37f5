"""Git tool - read-only repository inspection.

Commands:
- diff: working tree or commit diff, optionally for one file
- log: one-line history (bounded), with author/since/file filters
- show: a single commit (requires ``commit``)
- status: porcelain status, one entry per changed file
- blame: line attribution (requires ``file``)
- file-content: raw file contents, confined to the repository

Git runs as an argument vector (never through a shell) under a
per-command sub-timeout.
"""

import asyncio
import shutil
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

GIT_COMMANDS = ("diff", "log", "show", "status", "blame", "file-content")

GIT_DESCRIPTOR = ToolDescriptor(
    name=ToolId.GIT.value,
    description=(
        "Execute Git commands and analyze repository data. Can get diffs, "
        "file contents, commit history, and branch information."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "command": {
                "type": "string",
                "description": "Git command to execute",
                "enum": list(GIT_COMMANDS),
            },
            "repository": {"type": "string", "description": "Repository path"},
            "parameters": {
                "type": "object",
                "description": "Command-specific parameters",
                "properties": {
                    "file": {"type": "string", "description": "File path"},
                    "commit": {"type": "string", "description": "Commit hash"},
                    "branch": {"type": "string", "description": "Branch name"},
                    "since": {"type": "string", "description": "Date since"},
                    "author": {"type": "string", "description": "Author filter"},
                },
            },
        },
        "required": ["command", "repository"],
    },
    required_capabilities=frozenset(
        [Capability.FILESYSTEM_READ.value, Capability.PROCESS_EXECUTE.value]
    ),
)


class GitCommandError(Exception):
    pass


def resolve_in_repository(path: str, repository: str) -> Optional[Path]:
    """Resolve ``path`` relative to the repository root, None if it escapes.

    Leading slashes are stripped so "/src/app.py" means <repo>/src/app.py.
    """
    root = Path(repository).resolve()
    normalized = path.lstrip("/")
    resolved = (root / normalized).resolve()
    if resolved != root and root not in resolved.parents:
        return None
    return resolved


class GitTool(Tool):
    descriptor = GIT_DESCRIPTOR

    def __init__(
        self,
        *,
        bounds: Optional[ToolBounds] = None,
        git_executable: str = "git",
        logger: Optional[Any] = None,
    ):
        self._bounds = bounds or get_tool_bounds()
        super().__init__(timeout_seconds=self._bounds.tool_timeout_seconds, logger=logger)
        self._git = git_executable

    async def is_available(self) -> bool:
        return shutil.which(self._git) is not None

    async def _git_command(self, repository: str, args: List[str]) -> str:
        """Run ``git -C <repository> <args>`` and return stdout."""
        timeout = self._bounds.git_timeout_seconds
        try:
            process = await asyncio.create_subprocess_exec(
                self._git, "-C", repository, *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise GitCommandError("Git is not installed or not in PATH")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise GitCommandError(f"Git command timed out after {timeout:g}s")

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise GitCommandError(
                message or f"Git command failed with code {process.returncode}"
            )
        return stdout.decode("utf-8", errors="replace").rstrip()

    async def _run(self, parameters: Dict[str, Any]) -> ToolResult:
        command = parameters["command"]
        repository = parameters["repository"]
        params = sub_parameters(parameters)

        handler = {
            "diff": self._diff,
            "log": self._log,
            "show": self._show,
            "status": self._status,
            "blame": self._blame,
            "file-content": self._file_content,
        }.get(command)
        if handler is None:
            return ToolResult.failure(f"Unknown git command: {command}")
        if str(params.get("commit") or "").startswith("-"):
            return ToolResult.failure(f"Invalid commit reference: {params['commit']}")

        try:
            return await handler(repository, params)
        except GitCommandError as exc:
            self._logger.info("git_command_failed", command=command, error=str(exc))
            return ToolResult.failure(f"Failed to execute git {command}: {exc}")

    async def _diff(self, repository: str, params: Dict[str, Any]) -> ToolResult:
        args = ["diff"]
        if params.get("commit"):
            args.append(str(params["commit"]))
        if params.get("file"):
            args.extend(["--", str(params["file"])])
        output = await self._git_command(repository, args)
        return ToolResult.ok(
            output,
            {"command": "diff", "repository": repository, "lines": count_lines(output)},
            mime_type="text/x-diff",
        )

    async def _log(self, repository: str, params: Dict[str, Any]) -> ToolResult:
        args = ["log", "--oneline", f"--max-count={self._bounds.max_log_entries}"]
        if params.get("author"):
            args.append(f"--author={params['author']}")
        if params.get("since"):
            args.append(f"--since={params['since']}")
        if params.get("file"):
            args.extend(["--", str(params["file"])])
        output = await self._git_command(repository, args)
        commits = output.splitlines() if output else []
        return ToolResult.ok(
            commits,
            {"command": "log", "repository": repository, "commit_count": len(commits)},
        )

    async def _show(self, repository: str, params: Dict[str, Any]) -> ToolResult:
        commit = params.get("commit")
        if not commit:
            return ToolResult.failure("Commit hash required for git show")
        output = await self._git_command(repository, ["show", str(commit)])
        return ToolResult.ok(
            output, {"command": "show", "commit": commit, "repository": repository}
        )

    async def _status(self, repository: str, params: Dict[str, Any]) -> ToolResult:
        output = await self._git_command(repository, ["status", "--porcelain"])
        files = output.splitlines() if output else []
        return ToolResult.ok(
            files,
            {"command": "status", "repository": repository, "changed_files": len(files)},
        )

    async def _blame(self, repository: str, params: Dict[str, Any]) -> ToolResult:
        path = params.get("file")
        if not path:
            return ToolResult.failure("File path required for git blame")
        output = await self._git_command(repository, ["blame", "--", str(path)])
        return ToolResult.ok(
            output, {"command": "blame", "file": path, "repository": repository}
        )

    async def _file_content(self, repository: str, params: Dict[str, Any]) -> ToolResult:
        path = params.get("file")
        if not path:
            return ToolResult.failure("File path required")
        resolved = resolve_in_repository(str(path), repository)
        if resolved is None:
            return ToolResult.failure(f"Path '{path}' is outside repository bounds")

        try:
            content = await asyncio.to_thread(self._read_text, resolved)
        except (OSError, ValueError) as exc:
            return ToolResult.failure(f"Failed to read file: {exc}")

        return ToolResult.ok(
            content,
            {
                "file": path,
                "repository": repository,
                "size": len(content),
                "lines": count_lines(content),
            },
            mime_type="text/plain",
        )

    def _read_text(self, path: Path) -> str:
        size = path.stat().st_size
        if size > self._bounds.max_file_size:
            raise ValueError(
                f"file is {size} bytes, limit is {self._bounds.max_file_size}"
            )
        return path.read_text(encoding="utf-8", errors="replace")


__all__ = ["GitTool", "GIT_DESCRIPTOR", "GIT_COMMANDS", "resolve_in_repository"]
