"""File discovery: walk a project, respect .gitignore, return Java source paths."""

import logging
from pathlib import Path

import pathspec

log = logging.getLogger(__name__)

_EXTENSIONS = frozenset({".java"})


def _load_gitignore_spec(root: Path) -> pathspec.PathSpec | None:
    gitignore = root / ".gitignore"
    if gitignore.exists():
        patterns = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
        return pathspec.PathSpec.from_lines("gitwildmatch", patterns)
    return None


def discover_files(root_dir: str, exclude_dirs: list[str] | None = None) -> list[str]:
    """
    Return absolute paths of all Java sources under root_dir, sorted.

    Respects .gitignore and exclude_dirs (matched against every path part).
    """
    root = Path(root_dir).resolve()
    gitignore_spec = _load_gitignore_spec(root)
    excluded = set(exclude_dirs or ())

    results: list[str] = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in _EXTENSIONS:
            continue
        rel = path.relative_to(root)
        if any(part in excluded for part in rel.parts):
            continue
        if gitignore_spec and gitignore_spec.match_file(rel.as_posix()):
            continue
        results.append(str(path))

    log.info("Discovered %d files under %s", len(results), root)
    return results
