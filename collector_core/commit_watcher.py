"""
CommitWatcher — detects HEAD moving to a new commit.

Polls the modification times of the HEAD reference files every
COMMIT_POLL_SEC; when they change, re-queries git and compares against the
last known hash. A failed query is "unknown" and never counts as a change.

On a genuine change (and when diff extraction is enabled) the commit's
added lines are written per file under diff_dir/<short-hash>/, and the raw
diff is forwarded to the AI-detection endpoint in the background.
"""

import asyncio
import hashlib
import re
from pathlib import Path

from .config import log, DIFF_DIR
from .constants import COMMIT_POLL_SEC
from .signals import Signal
from .storage import write_text_artifact
from . import api
from . import vcs

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\s\x00-\x1f]')


def sanitize_filename(path):
    """Flatten a repo path into a single safe file name."""
    cleaned = _UNSAFE_CHARS.sub("_", path).strip("._")
    return cleaned or "unnamed"


def _path_from_diff_header(line):
    # "diff --git a/src/x.py b/src/x.py" → "src/x.py"
    rest = line[len("diff --git "):]
    marker = rest.rfind(" b/")
    if marker != -1:
        return rest[marker + 3:]
    return rest.split(" ")[-1]


def extract_added_lines(diff_text):
    """
    Map each changed file to its added/modified lines, without the leading
    "+" and without any diff metadata. Files with no added lines are omitted.
    """
    files = {}
    current = None
    in_hunk = False
    for line in (diff_text or "").splitlines():
        if line.startswith("diff --git "):
            current = _path_from_diff_header(line)
            in_hunk = False
            continue
        if current is None:
            continue
        if line.startswith("@@"):
            in_hunk = True
            continue
        # file headers before the first hunk are all metadata
        if not in_hunk:
            continue
        if line.startswith("+"):
            files.setdefault(current, []).append(line[1:])
    return {path: "\n".join(lines) + "\n" for path, lines in files.items()}


class CommitWatcher:
    def __init__(self, repo_path, config=None, diff_dir=None, extract_diffs=True,
                 poll_interval=COMMIT_POLL_SEC):
        self.repo_path = Path(repo_path)
        self._config = config
        self.diff_dir = Path(diff_dir or DIFF_DIR)
        self.extract_diffs = extract_diffs
        self._poll_interval = poll_interval

        self.current_commit_hash = None
        self.enabled = False
        self._git_dir = None
        self._signature = None
        self._poll_task = None
        self._side_tasks = set()
        self.on_commit_changed = Signal("commit_changed")

    # ─── Lifecycle ───────────────────────────────────────────

    async def start(self):
        """Resolve the repository and start polling. Returns False when disabled."""
        self._git_dir = await asyncio.to_thread(vcs.get_git_dir, self.repo_path)
        if self._git_dir is None:
            log.warning("No git repository at %s — commit watching disabled", self.repo_path)
            self.enabled = False
            return False

        self.enabled = True
        self.current_commit_hash = await asyncio.to_thread(vcs.get_head_commit, self.repo_path)
        self._signature = self._stat_signature()
        log.info("Watching %s (HEAD=%s)", self._git_dir,
                 (self.current_commit_hash or "unknown")[:8])
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        return True

    async def stop(self):
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        for task in list(self._side_tasks):
            task.cancel()

    async def _poll_loop(self):
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                signature = self._stat_signature()
                if signature == self._signature:
                    continue
                latest = await asyncio.to_thread(vcs.get_head_commit, self.repo_path)
                if latest is None:
                    # keep the old signature so the next poll asks again
                    log.info("HEAD query returned unknown — retrying next poll")
                    continue
                self._signature = signature
                await self._handle_head(latest)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error("Commit poll error: %s", e, exc_info=True)

    def _stat_signature(self):
        # inode too: git replaces ref files by rename, often within one mtime tick
        sig = []
        for path in vcs.head_watch_paths(self._git_dir):
            try:
                st = path.stat()
                sig.append((str(path), st.st_mtime_ns, st.st_size, st.st_ino))
            except OSError:
                sig.append((str(path), None, None, None))
        return tuple(sig)

    # ─── Change detection ────────────────────────────────────

    async def check_now(self):
        """Query HEAD once. Returns the new hash if it changed, else None."""
        if not self.enabled:
            return None
        latest = await asyncio.to_thread(vcs.get_head_commit, self.repo_path)
        if latest is None:
            log.info("HEAD query returned unknown — no action")
            return None
        return await self._handle_head(latest)

    async def _handle_head(self, latest):
        if latest == self.current_commit_hash:
            return None

        previous = self.current_commit_hash
        self.current_commit_hash = latest
        log.info("New commit detected: %s (previous=%s)", latest[:8], (previous or "none")[:8])

        if self.extract_diffs:
            await self._process_diff(latest)

        await self.on_commit_changed.emit_async(latest)
        return latest

    async def _process_diff(self, commit_hash):
        diff_text = await asyncio.to_thread(vcs.get_commit_diff, self.repo_path, commit_hash)
        if not diff_text:
            log.info("No diff available for %s", commit_hash[:8])
            return

        try:
            written = await asyncio.to_thread(self.write_diff_artifacts, commit_hash, diff_text)
            log.info("Wrote %d diff artifact(s) for %s", len(written), commit_hash[:8])
        except OSError as e:
            log.warning("Failed to write diff artifacts for %s: %s", commit_hash[:8], e)

        if self._config is not None:
            task = asyncio.get_running_loop().create_task(
                asyncio.to_thread(api.send_ai_detection, self._config, diff_text)
            )
            self._side_tasks.add(task)
            task.add_done_callback(self._side_tasks.discard)

    def write_diff_artifacts(self, commit_hash, diff_text):
        """Write one text file of added lines per changed file. Returns the paths."""
        target_dir = self.diff_dir / commit_hash[:8]
        written = []
        used = set()
        for path, content in extract_added_lines(diff_text).items():
            name = sanitize_filename(path)
            if name in used:
                # "a/b.py" and "a_b.py" flatten to the same name
                name = f"{name}_{hashlib.sha1(path.encode('utf-8')).hexdigest()[:8]}"
            used.add(name)
            out = target_dir / f"{name}.txt"
            write_text_artifact(out, content)
            written.append(out)
        return written
