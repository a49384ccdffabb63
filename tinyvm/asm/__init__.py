"""
TinyVM Front End

Pipeline:
  source text -> Preprocessor -> Lexer -> Parser -> Program
"""

from pathlib import Path
from typing import Dict, Optional, Union

from .preprocessor import Preprocessor, PreprocessError, PreprocessErrorKind
from .lexer import Lexer
from .parser import Parser, ParseError, ParseErrorKind, parse_value, is_valid_label
from ..program import Program


def compile_source(source: str, defines: Optional[Dict[str, str]] = None,
                   base_dir: Optional[Union[str, Path]] = None) -> Program:
    """Preprocess, lex and parse ``source`` into a resolved Program.

    ``defines`` seeds the define table (a %define of the same key is then
    a duplicate). Relative %include names resolve against ``base_dir``.
    """
    pp = Preprocessor(source, defines, base_dir)
    text = pp.process()
    lines = Lexer(text, pp.defines).tokenize()
    return Parser(lines).parse(pp.defines)


__all__ = [
    "compile_source",
    "Preprocessor", "PreprocessError", "PreprocessErrorKind",
    "Lexer",
    "Parser", "ParseError", "ParseErrorKind", "parse_value", "is_valid_label",
]
