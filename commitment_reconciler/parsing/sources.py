from __future__ import annotations

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, Union


@contextmanager
def open_input(path: Union[str, Path]) -> Iterator[IO[str]]:
    """Open an input file for parsing; ``-`` reads stdin.

    The handle is closed on every exit path, including parser failures.
    """
    if str(path) == "-":
        yield sys.stdin
        return
    # newline="" is required by the csv module for quoted multi-line cells.
    with Path(path).open("r", encoding="utf-8-sig", newline="") as handle:
        yield handle
