"""
TinyVM: Source File Retrieval

A source name may be given with or without its extension: "fact" finds
"fact.vm" when "fact" itself does not exist. The whole lookup is tried
OPEN_ATTEMPTS times before giving up.
"""

import logging
from pathlib import Path
from typing import Tuple, Union

from .config import TinyVMError, OPEN_ATTEMPTS, SOURCE_EXTENSION

log = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "File was not found, or does not exist. Unable to interpret."


class SourceError(TinyVMError):
    """Raised when a source file cannot be read after every attempt."""
    def __init__(self, filename: str, cause: Exception = None):
        self.filename = filename
        self.cause = cause
        super().__init__(f"{NOT_FOUND_MESSAGE} ({filename})")


def _open_once(filename: str, extension: str) -> Tuple[str, Path]:
    path = Path(filename)
    try:
        return path.read_text(encoding="utf-8"), path
    except FileNotFoundError:
        pass
    path = Path(filename + extension)
    return path.read_text(encoding="utf-8"), path


def read_source(filename: Union[str, Path], extension: str = SOURCE_EXTENSION,
                attempts: int = OPEN_ATTEMPTS) -> Tuple[str, Path]:
    """Read a source file, trying ``filename`` then ``filename + extension``.

    Returns (text, path actually read). Raises SourceError once all
    attempts have failed.
    """
    filename = str(filename)
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            return _open_once(filename, extension)
        except (OSError, UnicodeDecodeError) as e:
            last_error = e
            log.debug("open %s failed (attempt %d/%d): %s",
                      filename, attempt, attempts, e)
    raise SourceError(filename, last_error)
