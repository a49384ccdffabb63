"""
TinyVM Front End: Lexer

Splits preprocessed source into one token list per line. The list index
is the 0-based source line, so parser diagnostics can point back at it.

  - '#' starts a comment running to end of line
  - tokens are separated by spaces, tabs, commas and carriage returns
  - a token equal to a define key is replaced by that define's value
"""

import re
from typing import Dict, List, Optional

COMMENT_CHAR = '#'
_SEPARATORS = re.compile(r'[ \t,\r]+')


class Lexer:
    """Tokenizes TinyVM source into lines of tokens."""

    def __init__(self, source: str, defines: Optional[Dict[str, str]] = None):
        self.source = source
        self.defines = defines or {}
        self.lines: List[List[str]] = []

    def tokenize(self) -> List[List[str]]:
        self.lines = []
        text = self.source
        if text.endswith('\n'):
            text = text[:-1]
        if not text:
            return self.lines

        for raw in text.split('\n'):
            comment = raw.find(COMMENT_CHAR)
            if comment >= 0:
                raw = raw[:comment]
            tokens = [self.defines.get(tok, tok)
                      for tok in _SEPARATORS.split(raw) if tok]
            self.lines.append(tokens)
        return self.lines

    def dump(self) -> str:
        """One line per source line: index and its tokens."""
        return '\n'.join(f"{i:4d}: {' '.join(repr(t) for t in toks)}"
                         for i, toks in enumerate(self.lines))
