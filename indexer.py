"""
indexer.py

File collection and text chunking for /index.

Strategy:
- Walk a directory recursively, keeping text files with known extensions
- Split each file into fixed-size character windows with overlap
- Chunks are stored as separate documents by the session

Usage:
    from indexer import collect_files, chunk_text

    for f in collect_files("notes/"):
        for chunk in chunk_text(f.content, chunk_size=1000, overlap=200):
            ...
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

import config

logger = logging.getLogger(__name__)


@dataclass
class IndexedFile:
    """File to be indexed with its content."""
    path: Path
    content: str


@dataclass
class IndexReport:
    """Result of indexing a directory."""
    files_indexed: int
    chunks_added: int
    files_skipped: int = 0


def chunk_text(text: str, chunk_size: int, overlap: int = 0) -> List[str]:
    """
    Split text into overlapping character windows.

    A chunk_size of 0 (unset in config) keeps the text whole.

    Raises:
        ValueError: overlap is negative or not smaller than chunk_size
    """
    if not text.strip():
        return []
    if chunk_size <= 0 or len(text) <= chunk_size:
        return [text]
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError(f"chunk_overlap ({overlap}) must be in [0, chunk_size={chunk_size})")

    chunks = []
    start = 0
    step = chunk_size - overlap
    while start < len(text):
        end = min(start + chunk_size, len(text))
        chunks.append(text[start:end])
        if end == len(text):
            break
        start += step
    return chunks


def is_indexable(path: Path) -> bool:
    return path.suffix.lower() in config.INDEXABLE_EXTENSIONS


def collect_files(dir_path: Union[str, Path]) -> List[IndexedFile]:
    """
    Recursively collect indexable text files, sorted by path.

    Files that cannot be decoded as UTF-8 are skipped.
    """
    root = Path(dir_path)
    if not root.is_dir():
        raise FileNotFoundError(f"not a directory: {root}")

    files = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or not is_indexable(path):
            continue
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping {path}: {e}")
            continue
        files.append(IndexedFile(path=path, content=content))
    return files
