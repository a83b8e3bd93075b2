"""
Streaming readers for large puzzle dumps.

Dumps are read line by line without loading the file into memory. Zstandard
archives go through ``zstandard``'s stream reader; gzip and bzip2 use the
standard library.
"""

from __future__ import annotations

import bz2
import csv
import gzip
import io
import logging
import zlib
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, TextIO, Union

import zstandard

from ..core.errors import DumpReadError

logger = logging.getLogger(__name__)


@contextmanager
def open_dump(path: Union[str, Path]) -> Iterator[TextIO]:
    """
    Open a dump as a text stream, decompressing by file suffix.

    Raises:
        DumpReadError: if the file is missing, cannot be opened, or is
            truncated or corrupt part way through
    """
    path = Path(path)
    if not path.is_file():
        raise DumpReadError(f"Dump file not found: {path}")

    suffix = path.suffix.lower()
    logger.debug(f"Opening dump {path} ({suffix or 'plain'})")
    try:
        if suffix == ".zst":
            with open(path, "rb") as fh:
                dctx = zstandard.ZstdDecompressor()
                with dctx.stream_reader(fh) as reader:
                    yield io.TextIOWrapper(reader, encoding="utf-8", newline="")
        elif suffix == ".gz":
            with gzip.open(path, "rt", encoding="utf-8", newline="") as fh:
                yield fh
        elif suffix == ".bz2":
            with bz2.open(path, "rt", encoding="utf-8", newline="") as fh:
                yield fh
        else:
            with open(path, "r", encoding="utf-8", newline="") as fh:
                yield fh
    except (OSError, EOFError, zlib.error, csv.Error, zstandard.ZstdError, UnicodeDecodeError) as e:
        raise DumpReadError(f"Failed to read dump {path}: {e}")


def iter_rows(stream: TextIO) -> Iterator[List[str]]:
    """Yield CSV rows from a text stream, skipping blank lines."""
    for row in csv.reader(stream):
        if row and any(cell.strip() for cell in row):
            yield row
