"""Frontmatter parsing and path display helpers."""

from __future__ import annotations

from pathlib import Path

_LIST_KEYS = ("aliases",)


def parse_frontmatter(raw: str) -> dict:
    meta: dict = {}
    for line in raw.split("\n"):
        line = line.strip()
        if ":" in line:
            key, val = line.split(":", 1)
            key = key.strip()
            val = val.strip()
            if val.startswith("[") or key in _LIST_KEYS:
                if val.startswith("["):
                    val = val.strip("[]")
                items = [v.strip().strip("'\"") for v in val.split(",") if v.strip()]
                meta[key] = items
            else:
                meta[key] = val.strip("'\"")
    return meta


def parse_frontmatter_and_body(path: Path) -> tuple[dict | None, str]:
    content = path.read_text(encoding="utf-8", errors="replace")
    if not content.startswith("---"):
        return None, content
    end = content.find("---", 3)
    if end == -1:
        return None, content
    frontmatter = content[3:end].strip()
    body = content[end + 3 :]
    return parse_frontmatter(frontmatter), body


def short_cwd(p: Path) -> str:
    """Return path relative to home directory, using ~ prefix."""
    try:
        rel = p.relative_to(Path.home())
        return f"~/{rel}" if str(rel) != "." else "~"
    except ValueError:
        return str(p)
