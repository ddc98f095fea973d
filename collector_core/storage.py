"""
Local durable artifacts — append-only line files.

Files are opened in append mode per write; no handle is held across calls,
so external readers (tail -f, log shippers) are never blocked.
"""

import json
from pathlib import Path


def append_line(path, line):
    """Append one line. Raises OSError if the file cannot be written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not line.endswith("\n"):
        line += "\n"
    with open(path, "a", encoding="utf-8") as f:
        f.write(line)


def append_jsonl(path, entry):
    append_line(path, json.dumps(entry, ensure_ascii=False))


def read_jsonl(path):
    """All parseable entries of a JSON-lines file ([] if missing)."""
    path = Path(path)
    if not path.exists():
        return []
    entries = []
    for raw in path.read_text(encoding="utf-8").splitlines():
        if not raw.strip():
            continue
        try:
            entries.append(json.loads(raw))
        except json.JSONDecodeError:
            continue
    return entries


def write_text_artifact(path, text):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
