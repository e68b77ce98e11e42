from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from .ast import ProtoFile
from .lexer import tokenize
from .parser import DEFAULT_MAX_DEPTH, Parser
from .proto_grammar import build_proto_grammar
from .spans import START, Span


_PARSER: Parser | None = None


def _get_parser() -> Parser:
    global _PARSER
    if _PARSER is None:
        _PARSER = Parser.for_grammar(build_proto_grammar())
    return _PARSER


def parse(
    text: str, *, file: str = "<memory>", max_depth: int = DEFAULT_MAX_DEPTH
) -> tuple[str, ProtoFile]:
    """Parse one .proto source.

    Returns the trailing break text (whitespace and comments after the last
    declaration) together with the AST. Raises ParseError on any failure; no
    partial AST is returned.
    """
    toks = tokenize(text, file=file)
    out = _get_parser().parse(toks, max_depth=max_depth)
    if not isinstance(out, ProtoFile):
        raise RuntimeError(f"parser returned unexpected value: {type(out)!r}")
    eof = toks[-1]
    out = replace(out, span=Span(file=file, start=START, end=eof.span.end))
    return eof.leading, out


def parse_source(
    src: str, *, file: str = "<memory>", max_depth: int = DEFAULT_MAX_DEPTH
) -> ProtoFile:
    return parse(src, file=file, max_depth=max_depth)[1]


def parse_file(path: str | Path, *, max_depth: int = DEFAULT_MAX_DEPTH) -> ProtoFile:
    p = Path(path).expanduser()
    src = p.read_text(encoding="utf-8")
    return parse_source(src, file=str(p), max_depth=max_depth)


def iter_proto_files(directory: str | Path) -> list[Path]:
    d = Path(directory).expanduser()
    return sorted(p for p in d.iterdir() if p.is_file() and p.suffix == ".proto")


def parse_directory(
    directory: str | Path, *, max_depth: int = DEFAULT_MAX_DEPTH
) -> dict[str, ProtoFile]:
    """Parse every `*.proto` file directly inside `directory`, keyed by path.

    Imports are not followed.
    """
    return {str(p): parse_file(p, max_depth=max_depth) for p in iter_proto_files(directory)}
