"""
Git collaborator — thin subprocess wrappers.

Every function returns None on failure (not a repository, no commits yet,
git not installed, timeout) instead of raising.
"""

import subprocess
from pathlib import Path

GIT_TIMEOUT_SEC = 5
DIFF_TIMEOUT_SEC = 20


def _git(repo_path, *args, timeout=GIT_TIMEOUT_SEC):
    """Run git in repo_path. Returns stdout or None on any failure."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=str(repo_path),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, NotADirectoryError, OSError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout


def get_git_dir(repo_path):
    """Absolute path of the repository's git directory, or None."""
    out = _git(repo_path, "rev-parse", "--absolute-git-dir")
    if not out or not out.strip():
        return None
    return Path(out.strip())


def get_head_commit(repo_path):
    """Full HEAD commit hash, or None (no repo / no commits yet)."""
    out = _git(repo_path, "rev-parse", "--verify", "--quiet", "HEAD")
    if not out or not out.strip():
        return None
    return out.strip()


def get_commit_diff(repo_path, commit_hash):
    """
    Textual diff between commit_hash and its immediate parent.
    Root commits have no parent: show the commit's own patch instead.
    """
    out = _git(repo_path, "diff", "--no-color", f"{commit_hash}~1", commit_hash,
               timeout=DIFF_TIMEOUT_SEC)
    if out is None:
        out = _git(repo_path, "show", "--no-color", "--format=", commit_hash,
                   timeout=DIFF_TIMEOUT_SEC)
    return out


def head_watch_paths(git_dir):
    """
    Files whose modification means HEAD may have moved: HEAD itself, the
    branch ref it points to (if any), and packed-refs.
    """
    git_dir = Path(git_dir)
    head = git_dir / "HEAD"
    paths = [head, git_dir / "packed-refs"]
    try:
        content = head.read_text(encoding="utf-8").strip()
    except OSError:
        return paths
    if content.startswith("ref:"):
        paths.append(git_dir / content[4:].strip())
    return paths
