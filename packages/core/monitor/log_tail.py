"""
Incremental reader for a text log that another process keeps appending to.

The file is opened read-only for every read and never locked, so the writer
is not disturbed. Failures are logged and reported as "nothing new".
"""

from __future__ import annotations

import codecs
import logging
import re
from pathlib import Path
from typing import Callable, List, Optional, Union

log = logging.getLogger(__name__)

_LINE_SPLIT = re.compile(r"\r?\n")


class LogTailReader:
    def __init__(
        self,
        path: Union[str, Path],
        encoding: str = "utf-8",
        warn: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._path = Path(path)
        self._warn = warn or log.warning
        self._encoding = encoding
        self._offset = 0
        self._is_initial = True
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    @property
    def path(self) -> Path:
        return self._path

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def is_initial(self) -> bool:
        return self._is_initial

    def read_new_content(self) -> str:
        """Return everything appended since the previous call ("" if nothing or on error)."""
        if not self._path.is_file():
            return ""

        try:
            with open(self._path, "rb") as f:
                if self._is_initial:
                    start = 0
                else:
                    size = f.seek(0, 2)
                    start = self._offset
                    if size < start:
                        log.info(f"{self._path.name} shrank ({size} < {start} bytes), reading from the start")
                        start = 0
                        self._decoder.reset()
                        self._pending = ""
                f.seek(start)
                data = f.read()
                self._offset = f.tell()
        except OSError as e:
            self._warn(f"Error reading log {self._path}: {e}")
            return ""

        self._is_initial = False
        return self._decoder.decode(data)

    def read_new_lines(self) -> List[str]:
        """
        Return complete lines appended since the previous call.

        A trailing line without its terminator is held back until the
        writer finishes it.
        """
        content = self.read_new_content()
        if not content:
            return []
        parts = _LINE_SPLIT.split(self._pending + content)
        # A trailing "\r" stays pending and joins its "\n" on the next read.
        self._pending = parts.pop()
        return [p for p in parts if p.strip()]
