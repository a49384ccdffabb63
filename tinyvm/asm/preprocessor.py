"""
TinyVM Front End: Preprocessor

Two directives, each occupying the rest of its line:

  %include NAME      replaced by the contents of file NAME
  %define KEY VALUE  removed (leaves a bare newline); KEY -> VALUE recorded

Expansion repeats until a pass finds neither directive, so included files
may include and define in turn. Substitution of defined keys is done by
the lexer, token by token.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

from ..config import TinyVMError

log = logging.getLogger(__name__)

TOK_INCLUDE = "%include"
TOK_DEFINE = "%define"


class PreprocessErrorKind(Enum):
    FAILED_INCLUDE = "failed include"
    DUPLICATE_DEFINE = "duplicate define"
    EMPTY_DEFINE = "empty define"
    DEFINE_WITHOUT_VALUE = "define without value"


class PreprocessError(TinyVMError):
    def __init__(self, kind: PreprocessErrorKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        msg = f"Preprocessor error: {kind.value}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class Preprocessor:
    """Expand %include and %define directives in TinyVM source."""

    def __init__(self, source: str, defines: Optional[Dict[str, str]] = None,
                 base_dir: Optional[Union[str, Path]] = None):
        self.source = source
        self.defines: Dict[str, str] = dict(defines or {})
        self.base_dir = Path(base_dir) if base_dir is not None else None

    def process(self) -> str:
        src = self.source
        while True:
            src, any_includes = self._process_directive(src, TOK_INCLUDE, self._include)
            src, any_defines = self._process_directive(src, TOK_DEFINE, self._define)
            if not any_includes and not any_defines:
                return src

    @staticmethod
    def _process_directive(src: str, directive: str,
                           replace_line: Callable[[str], str]) -> Tuple[str, bool]:
        """Replace the first ``directive`` line (newline included) in ``src``."""
        start = src.find(directive)
        if start < 0:
            return src, False
        end = src.find('\n', start)
        if end < 0:
            end = len(src)
        argument = src[start + len(directive):end].strip()
        replacement = replace_line(argument)
        return src[:start] + replacement + src[end + 1:], True

    def _resolve_include(self, name: str) -> Path:
        path = Path(name)
        if self.base_dir is not None and not path.is_absolute():
            candidate = self.base_dir / path
            if candidate.exists():
                return candidate
        return path

    def _include(self, name: str) -> str:
        path = self._resolve_include(name)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PreprocessError(PreprocessErrorKind.FAILED_INCLUDE, f"{name}: {e}") from e
        log.debug("included %s (%d bytes)", path, len(text))
        return text

    def _define(self, line: str) -> str:
        if not line:
            raise PreprocessError(PreprocessErrorKind.EMPTY_DEFINE)

        # "%define key value": everything after the first space is the value
        key, sep, value = line.partition(' ')
        if not sep:
            raise PreprocessError(PreprocessErrorKind.DEFINE_WITHOUT_VALUE, line)
        value = value.strip()

        if key in self.defines:
            raise PreprocessError(
                PreprocessErrorKind.DUPLICATE_DEFINE,
                f"{key}: already {self.defines[key]!r}, redefined as {value!r}")
        self.defines[key] = value
        return "\n"
