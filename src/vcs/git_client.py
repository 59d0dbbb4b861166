# src/vcs/git_client.py - v1
"""Git implementation of the version-control interface.

Shells out to the ``git`` CLI. Every command runs in a worker thread with a
timeout: local commands use the command timeout, commands that talk to the
remote (fetch, push, pull) use the network timeout so a dead remote cannot
stall shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from pathlib import Path

from docvault.core.errors import VersionControlError
from docvault.vcs.base_vcs import BaseVersionControl

logger = logging.getLogger(__name__)

_NOTHING_TO_COMMIT = ("nothing to commit", "no changes added to commit")


class GitVersionControl(BaseVersionControl):
    """Version control backed by a local git working tree."""

    def __init__(
        self,
        repo_dir: Path | str = ".",
        remote: str = "origin",
        branch: str = "main",
        read_ref: str = "HEAD",
        user_name: str = "docvault",
        user_email: str = "docvault@localhost",
        command_timeout: float = 30.0,
        network_timeout: float = 120.0,
    ) -> None:
        self._repo_dir = Path(repo_dir).expanduser().resolve()
        self._remote = remote
        self._branch = branch
        self._read_ref = read_ref
        self._identity = ["-c", f"user.name={user_name}", "-c", f"user.email={user_email}"]
        self._command_timeout = command_timeout
        self._network_timeout = network_timeout

    @property
    def repo_dir(self) -> Path:
        return self._repo_dir

    async def add_and_commit(self, path: Path, message: str) -> None:
        rel = self._relative(path)
        await self._git(["add", "--", rel])
        result = await self._git(
            [*self._identity, "commit", "-m", message, "--", rel], check=False
        )
        if result.returncode == 0:
            logger.info("Committed %s: %s", rel, message)
            return
        output = f"{_decode(result.stdout)}\n{_decode(result.stderr)}"
        if any(marker in output for marker in _NOTHING_TO_COMMIT):
            logger.debug("Nothing to commit for %s", rel)
            return
        raise VersionControlError("git commit", output.strip(), result.returncode)

    async def get_last_commit_hash(self) -> str:
        result = await self._git(["rev-parse", self._read_ref])
        return _decode(result.stdout).strip()

    async def fetch(self) -> None:
        if not await self._has_remote():
            logger.debug("No remote %r configured, skipping fetch", self._remote)
            return
        await self._git(["fetch", self._remote, self._branch], network=True)

    async def list_tracked_files(self, pattern: str) -> list[str]:
        result = await self._git(["ls-files", "-z", "--", pattern])
        return [p for p in _decode(result.stdout).split("\0") if p]

    async def read_file_at_head(self, path: str) -> bytes:
        # "<ref>:./<path>" resolves relative to the working directory.
        result = await self._git(["show", f"{self._read_ref}:./{path}"])
        return result.stdout

    async def push(self) -> None:
        if not await self._has_remote():
            raise VersionControlError("git push", f"remote {self._remote!r} is not configured")
        await self._git(["push", self._remote, self._branch], network=True)
        logger.info("Pushed to %s/%s", self._remote, self._branch)

    async def pull(self) -> None:
        if not await self._has_remote():
            raise VersionControlError("git pull", f"remote {self._remote!r} is not configured")
        await self._git(["pull", "--ff-only", self._remote, self._branch], network=True)

    async def is_repo(self) -> bool:
        try:
            result = await self._git(["rev-parse", "--is-inside-work-tree"], check=False)
        except VersionControlError:
            return False
        return result.returncode == 0 and _decode(result.stdout).strip() == "true"

    # --- internals ---

    async def _has_remote(self) -> bool:
        result = await self._git(["remote"])
        return self._remote in _decode(result.stdout).split()

    def _relative(self, path: Path) -> str:
        resolved = Path(path).expanduser().resolve()
        try:
            return resolved.relative_to(self._repo_dir).as_posix()
        except ValueError as e:
            raise VersionControlError(
                "git add", f"{resolved} is outside repository {self._repo_dir}"
            ) from e

    async def _git(
        self, args: list[str], check: bool = True, network: bool = False
    ) -> subprocess.CompletedProcess[bytes]:
        timeout = self._network_timeout if network else self._command_timeout
        return await asyncio.to_thread(self._run_git, args, check, timeout)

    def _run_git(
        self, args: list[str], check: bool, timeout: float
    ) -> subprocess.CompletedProcess[bytes]:
        """Run a git command within the repository directory."""
        verb = next((a for a in args if not a.startswith(("-", "user."))), "")
        command = f"git {verb}"
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=str(self._repo_dir),
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise VersionControlError(command, f"timed out after {timeout:.0f}s") from e
        except OSError as e:
            # git binary missing or repository directory absent
            raise VersionControlError(command, str(e)) from e
        if check and result.returncode != 0:
            raise VersionControlError(command, _decode(result.stderr).strip(), result.returncode)
        return result


def _decode(raw: bytes | None) -> str:
    return (raw or b"").decode("utf-8", errors="replace")
