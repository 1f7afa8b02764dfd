"""Load source files from the local filesystem."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

import pathspec

from vulnlens.analysis.submission import SubmissionError
from vulnlens.constants import (
    BINARY_DETECTION_BUFFER,
    GITHUB_SKIP_DIRECTORIES,
    MAX_UPLOAD_BYTES,
    is_supported_file,
)
from vulnlens.streaming.events import CodeFile

logger = logging.getLogger(__name__)


def _is_binary(path: Path) -> bool:
    with path.open("rb") as fh:
        return b"\x00" in fh.read(BINARY_DETECTION_BUFFER)


def _load_gitignore(root: Path) -> pathspec.PathSpec:
    """Patterns from ``root/.gitignore``; empty when absent or unreadable."""
    gitignore = root / ".gitignore"
    if not gitignore.is_file():
        return pathspec.GitIgnoreSpec.from_lines([])
    try:
        with open(gitignore, encoding="utf-8") as f:
            return pathspec.GitIgnoreSpec.from_lines(f)
    except OSError:
        logger.warning("event=gitignore_unreadable path=%s", gitignore)
        return pathspec.GitIgnoreSpec.from_lines([])


def _walk(root: Path, skips: set[str]) -> Iterator[Path]:
    """Supported files under *root* in sorted order.

    Skips *skips* directories and anything the root ``.gitignore``
    matches. Symlinks that resolve outside the root are ignored.
    """
    resolved_root = root.resolve()
    ignored = _load_gitignore(root)
    for f in sorted(root.rglob("*")):
        rel = f.relative_to(root)
        if any(part in skips for part in rel.parts[:-1]):
            continue
        if ignored.match_file(rel.as_posix()):
            continue
        if f.is_symlink() and not f.resolve().is_relative_to(
            resolved_root
        ):
            continue
        if not f.is_file():
            continue
        if not is_supported_file(f.name):
            logger.debug("event=unsupported_skipped file=%s", rel)
            continue
        yield f


def load_code_files(
    paths: Iterable[str | Path],
    *,
    max_file_bytes: int = MAX_UPLOAD_BYTES,
    skip_directories: Iterable[str] = GITHUB_SKIP_DIRECTORIES,
) -> list[CodeFile]:
    """Read files (or the supported files under directories).

    Names are relative to the directory they were found under, or the
    bare file name for files given directly. Binary files are skipped.
    A file named directly is loaded whatever its extension, so
    submission validation can report it as unsupported; the size limit
    only applies to supported files.

    Raises:
        FileNotFoundError: a path does not exist.
        SubmissionError: a supported file exceeds *max_file_bytes*.
    """
    skips = set(skip_directories)
    files: list[CodeFile] = []
    for raw in paths:
        path = Path(raw)
        if not path.exists():
            msg = f"Path does not exist: {path}"
            raise FileNotFoundError(msg)
        if path.is_dir():
            candidates = [
                (f, f.relative_to(path).as_posix())
                for f in _walk(path, skips)
            ]
        else:
            candidates = [(path, path.name)]

        for file_path, name in candidates:
            size = file_path.stat().st_size
            if size > max_file_bytes:
                if not is_supported_file(name):
                    logger.info(
                        "event=unsupported_skipped file=%s bytes=%d",
                        name,
                        size,
                    )
                    continue
                msg = (
                    f"File {name} is too large "
                    f"({size} > {max_file_bytes} bytes)"
                )
                raise SubmissionError(msg)
            if _is_binary(file_path):
                logger.debug("event=binary_skipped file=%s", name)
                continue
            content = file_path.read_text(
                encoding="utf-8", errors="replace"
            )
            files.append(CodeFile(name=name, content=content))
    return files
