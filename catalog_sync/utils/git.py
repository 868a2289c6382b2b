"""Git snapshot-and-publish helpers."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Iterable

from catalog_sync.errors import GitError
from catalog_sync.utils.dates import commit_stamp
from catalog_sync.utils.process import CommandRunner, SubprocessRunner

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 300.0


class GitRepo:
    def __init__(self, root: Path, *, runner: CommandRunner | None = None) -> None:
        self.root = root
        self.runner = runner or SubprocessRunner()

    def git(self, *args: str) -> str:
        try:
            result = self.runner.run(["git", *args], cwd=self.root, timeout=GIT_TIMEOUT)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise GitError(f"Failed to execute: git {' '.join(args)}: {exc}") from exc
        if not result.ok:
            raise GitError(f"git {' '.join(args)} failed (exit {result.returncode}): {result.stderr.strip()}")
        if result.stderr.strip():
            logger.debug("git stderr: %s", result.stderr.strip())
        return result.stdout

    def has_changes(self) -> bool:
        return bool(self.git("status", "--porcelain").strip())

    def commit_and_push(self, files: Iterable[str], directories: Iterable[str] = ()) -> bool:
        """Stage ``files`` and everything under ``directories`` (deletions included), commit, push.

        Returns ``False`` when nothing ended up staged.
        """
        for path in files:
            self.git("add", "--", path)
        for directory in directories:
            if (self.root / directory).exists():
                self.git("add", "-A", "--", directory)

        staged = self.git("diff", "--cached", "--name-only").strip()
        if not staged:
            logger.info("No changes to commit")
            return False
        logger.info("Staged files:\n%s", staged)

        message = f"chore: sync product data from bitable ({commit_stamp()})"
        self.git("commit", "-m", message)
        logger.info("Committed: %s", message)
        self.git("push")
        logger.info("Pushed to remote")
        return True
