"""
PhaseGrid Git Service

Git worktree operations for a project repository. Every command runs
synchronously with no timeout and no retry; failures surface as
``GitCommandError``.
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from phasegrid.errors import GitCommandError
from phasegrid.logging import get_logger, log_extra

logger = get_logger(__name__)

DEFAULT_WORKTREES_DIR = ".worktrees"


def run_process(
    cmd: list,
    *,
    cwd: Optional[Path] = None,
    capture_output: bool = True,
    text: bool = True,
    check: bool = True,
    **kwargs,
) -> subprocess.CompletedProcess:
    """
    Run a subprocess command with sensible defaults.

    Args:
        cmd: Command and arguments to run
        cwd: Working directory for the command
        capture_output: Whether to capture stdout/stderr
        text: Whether to decode output as text
        check: Whether to raise on non-zero exit code

    Returns:
        CompletedProcess result

    Raises:
        subprocess.CalledProcessError: If check=True and command fails
    """
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=capture_output,
        text=text,
        **kwargs,
    )
    if check and result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode,
            cmd,
            result.stdout,
            result.stderr,
        )
    return result


@dataclass
class WorktreeInfo:
    """One entry of ``git worktree list --porcelain``."""
    path: str
    head: Optional[str] = None
    branch: Optional[str] = None


def parse_worktree_porcelain(output: str) -> List[WorktreeInfo]:
    """
    Parse porcelain worktree listing output.

    Records are separated by blank lines. ``branch`` stays None for a
    detached HEAD (or a bare repository).
    """
    worktrees: List[WorktreeInfo] = []
    current: Optional[WorktreeInfo] = None

    for line in output.splitlines():
        if line.startswith("worktree "):
            if current is not None:
                worktrees.append(current)
            current = WorktreeInfo(path=line[len("worktree "):])
        elif current is None:
            continue
        elif line.startswith("HEAD "):
            current.head = line[len("HEAD "):]
        elif line.startswith("branch "):
            branch = line[len("branch "):]
            if branch.startswith("refs/heads/"):
                branch = branch[len("refs/heads/"):]
            current.branch = branch
        elif not line.strip():
            worktrees.append(current)
            current = None

    if current is not None:
        worktrees.append(current)
    return worktrees


class WorktreeManager:
    """
    Create, list and remove git worktrees for one repository.

    New worktrees live beside the repository, in
    ``<repo parent>/<worktrees_dir>/<branch with "/" replaced by "-">``.

    Example:
        manager = WorktreeManager("/src/app")
        path = manager.create("feature/login")  # /src/.worktrees/feature-login
    """

    def __init__(self, repo_path: Union[str, Path], worktrees_dir: str = DEFAULT_WORKTREES_DIR) -> None:
        self.repo_path = Path(repo_path).expanduser().resolve()
        self.worktrees_dir = worktrees_dir

    def worktree_path(self, branch: str) -> Path:
        return self.repo_path.parent / self.worktrees_dir / branch.replace("/", "-")

    def _git(self, *args: str) -> subprocess.CompletedProcess:
        cmd = ["git", *args]
        try:
            return run_process(cmd, cwd=self.repo_path)
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise GitCommandError(
                f"git {' '.join(args)} failed (exit {exc.returncode}): {stderr}",
                metadata={"repo_path": str(self.repo_path), "returncode": exc.returncode},
            ) from exc
        except OSError as exc:
            # Missing git binary or repo directory
            raise GitCommandError(
                f"git {' '.join(args)} could not run: {exc}",
                metadata={"repo_path": str(self.repo_path)},
            ) from exc

    def create(self, branch: str) -> Path:
        """
        Create a worktree on a new branch and return its absolute path.

        Raises:
            GitCommandError: If ``git worktree add`` fails (e.g. the branch exists)
        """
        path = self.worktree_path(branch)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._git("worktree", "add", "-b", branch, str(path))
        logger.info(
            "git_worktree_added",
            extra=log_extra(repo_path=str(self.repo_path), branch=branch, worktree_path=str(path)),
        )
        return path

    def list(self) -> List[WorktreeInfo]:
        result = self._git("worktree", "list", "--porcelain")
        return parse_worktree_porcelain(result.stdout)

    def remove(self, path: Union[str, Path]) -> None:
        """Force-remove a worktree. Raises ``GitCommandError`` on failure."""
        self._git("worktree", "remove", "--force", str(path))
        logger.info(
            "git_worktree_removed",
            extra=log_extra(repo_path=str(self.repo_path), worktree_path=str(path)),
        )
