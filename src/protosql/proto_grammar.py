"""
Protocol buffer grammar in one place:

- **Token policy**: which token kinds count as identifiers, scalar type names
- **Grammar**: `build_proto_grammar()` producing the LALR(1) grammar used by the parser

Option values are not interpreted. They are captured as the source text between
`=` and the terminating `;` (or `,`/`]` inside brackets), rebuilt from the tokens
and the breaks that preceded them.
"""

from __future__ import annotations

from . import ast as A
from . import events as E
from .errors import FailureKind, ParseError
from .grammar import Grammar, n, t
from .lexer import read_integer, scan_word
from .parser import join_span
from .production_dsl import ProductionSink, Rhs, RuleNt, eps, sym
from .spans import Position, Span
from .tokens import KEYWORDS, Token, TokenKind


# ---------------------------------------------------------------------------
# Tokens / keyword policy
# ---------------------------------------------------------------------------

# Keywords stay usable as names (`message option { ... }`, `string syntax = 1;`).
IDENTIFIER_TOKEN_KINDS: tuple[TokenKind, ...] = (TokenKind.WORD, *KEYWORDS.values())

# As a field type these need a written rule: without one they would start
# another body statement or be read as the rule itself.
RULED_ONLY_TYPE_KINDS: frozenset[TokenKind] = frozenset(
    {
        TokenKind.MESSAGE,
        TokenKind.ENUM,
        TokenKind.ONEOF,
        TokenKind.OPTION,
        TokenKind.RESERVED,
        TokenKind.EXTENSIONS,
        TokenKind.OPTIONAL,
        TokenKind.REPEATED,
        TokenKind.REQUIRED,
    }
)

# Type names read as plain references; `map` and `group` have their own forms.
_TYPE_NAME_KINDS: tuple[TokenKind, ...] = tuple(
    k for k in IDENTIFIER_TOKEN_KINDS if k not in (TokenKind.MAP, TokenKind.GROUP)
)

SCALAR_TYPES: dict[str, A.ScalarType] = {s.value: s for s in A.ScalarType}

# Upper bound of `N to max` in reserved and extension ranges.
MAX_FIELD_NUMBER = 536870911

_ALL_TOKENS: tuple[TokenKind, ...] = tuple(k for k in TokenKind if k is not TokenKind.EOF)


def _all_except(*excluded: TokenKind) -> tuple[TokenKind, ...]:
    return tuple(k for k in _ALL_TOKENS if k not in excluded)


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def _tok(v: object) -> Token:
    if not isinstance(v, Token):
        raise TypeError(f"expected Token, got {type(v)!r}")
    return v


def _as_list(v: object) -> list[object]:
    if v is None:
        return []
    if isinstance(v, list):
        return v
    raise TypeError(f"expected list, got {type(v)!r}")


def _word(tok: Token) -> A.Word:
    return A.Word(span=tok.span, value=tok.lexeme)


def _string_word(tok: Token) -> A.Word:
    # Strings never span lines, so the quotes shift columns and offsets alike.
    sp = tok.span
    start = Position(sp.start.offset + 1, sp.start.line, sp.start.column + 1)
    end = Position(sp.end.offset - 1, sp.end.line, sp.end.column - 1)
    return A.Word(span=Span(sp.file, start, end), value=tok.string_value)


def _integer(tok: Token, *, allow_hex: bool, negative: bool = False) -> A.IntegerLiteral:
    limit = 2**31 if negative else 2**31 - 1
    try:
        value, end = read_integer(tok.lexeme, 0, allow_hex=allow_hex, limit=limit)
    except ValueError as e:
        raise ParseError(
            span=tok.span,
            message=f"invalid integer {tok.lexeme!r}",
            hint=str(e),
            kind=FailureKind.LITERAL,
        ) from e
    if end != len(tok.lexeme):
        raise ParseError(
            span=tok.span,
            message=f"invalid integer {tok.lexeme!r}",
            hint="hexadecimal is only accepted for enum values" if not allow_hex else None,
            kind=FailureKind.LITERAL,
        )
    return A.IntegerLiteral(span=tok.span, value=-value if negative else value)


def raw_text(tokens: list[Token]) -> str:
    """Source text covered by `tokens`, breaks between them included."""
    if not tokens:
        return ""
    return tokens[0].lexeme + "".join(tk.leading + tk.lexeme for tk in tokens[1:])


def _find_option(options: tuple[A.FieldOption, ...], key: str) -> A.FieldOption | None:
    for opt in options:
        if not opt.name.custom and opt.name.name.value == key:
            return opt
    return None


def _option_bool(opt: A.FieldOption) -> bool:
    value = opt.value.strip()
    if value == "true":
        return True
    if value == "false":
        return False
    raise ParseError(
        span=opt.span,
        message=f"invalid value for {opt.name}: {opt.value!r}",
        hint="expected true or false",
        kind=FailureKind.LITERAL,
    )


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------


def build_proto_grammar() -> Grammar[object]:
    sink = ProductionSink([])

    def NT(name: str) -> RuleNt:
        return RuleNt(n(name), sink)

    def T(kind: TokenKind) -> Rhs:
        return sym(t(kind))

    # Terminals
    WORD = T(TokenKind.WORD)
    STRING = T(TokenKind.STRING)
    LBRACE = T(TokenKind.LBRACE)
    RBRACE = T(TokenKind.RBRACE)
    LBRACKET = T(TokenKind.LBRACKET)
    RBRACKET = T(TokenKind.RBRACKET)
    LPAREN = T(TokenKind.LPAREN)
    RPAREN = T(TokenKind.RPAREN)
    LANGLE = T(TokenKind.LANGLE)
    RANGLE = T(TokenKind.RANGLE)
    SEMI = T(TokenKind.SEMI)
    COMMA = T(TokenKind.COMMA)
    EQ = T(TokenKind.EQ)
    MINUS = T(TokenKind.MINUS)

    # Keywords
    SYNTAX = T(TokenKind.SYNTAX)
    IMPORT = T(TokenKind.IMPORT)
    PACKAGE = T(TokenKind.PACKAGE)
    OPTION = T(TokenKind.OPTION)
    MESSAGE = T(TokenKind.MESSAGE)
    ENUM = T(TokenKind.ENUM)
    EXTEND = T(TokenKind.EXTEND)
    SERVICE = T(TokenKind.SERVICE)
    ONEOF = T(TokenKind.ONEOF)
    MAP = T(TokenKind.MAP)
    GROUP = T(TokenKind.GROUP)
    RESERVED = T(TokenKind.RESERVED)
    EXTENSIONS = T(TokenKind.EXTENSIONS)
    TO = T(TokenKind.TO)
    MAX = T(TokenKind.MAX)
    OPTIONAL = T(TokenKind.OPTIONAL)
    REPEATED = T(TokenKind.REPEATED)
    REQUIRED = T(TokenKind.REQUIRED)

    # Nonterminals
    File = NT("File")
    Items = NT("Items")
    Item = NT("Item")
    Ident = NT("Ident")
    Block = NT("Block")
    BlockItem = NT("BlockItem")
    RawItem = NT("RawItem")
    RawOpt = NT("RawOpt")
    BItem = NT("BItem")
    BValue = NT("BValue")
    BValueTail = NT("BValueTail")
    SkipItem = NT("SkipItem")
    SkipBody = NT("SkipBody")
    OptionName = NT("OptionName")
    OptionStmt = NT("OptionStmt")
    SyntaxStmt = NT("SyntaxStmt")
    ImportStmt = NT("ImportStmt")
    PackageStmt = NT("PackageStmt")
    FieldOption = NT("FieldOption")
    FieldOptionTail = NT("FieldOptionTail")
    FieldOptionList = NT("FieldOptionList")
    FieldOptions = NT("FieldOptions")
    FieldOptionsOpt = NT("FieldOptionsOpt")
    Rule = NT("Rule")
    MapType = NT("MapType")
    FieldType = NT("FieldType")
    BareFieldType = NT("BareFieldType")
    FieldHead = NT("FieldHead")
    FieldEnd = NT("FieldEnd")
    Field = NT("Field")
    FieldListElem = NT("FieldListElem")
    FieldList = NT("FieldList")
    OneofElem = NT("OneofElem")
    OneofBody = NT("OneofBody")
    Oneof = NT("Oneof")
    Range = NT("Range")
    RangesTail = NT("RangesTail")
    Ranges = NT("Ranges")
    NamesTail = NT("NamesTail")
    Names = NT("Names")
    ReservedStmt = NT("ReservedStmt")
    ExtensionsStmt = NT("ExtensionsStmt")
    EnumNumber = NT("EnumNumber")
    EnumValue = NT("EnumValue")
    EnumElem = NT("EnumElem")
    EnumBody = NT("EnumBody")
    Enum = NT("Enum")
    MessageElem = NT("MessageElem")
    MessageBody = NT("MessageBody")
    Message = NT("Message")
    Extend = NT("Extend")
    Service = NT("Service")

    # -----------------------------------------------------------------------
    # Semantic actions
    # -----------------------------------------------------------------------
    def act_passthrough(xs: list[object]) -> object:
        return xs[0]

    def act_none(xs: list[object]) -> object:
        return None

    def act_empty_list(xs: list[object]) -> object:
        return []

    def act_body(xs: list[object]) -> object:
        # [head] + tail, dropping stray `;`
        head = [xs[0]] if xs[0] is not None else []
        return head + _as_list(xs[1])

    def act_token(xs: list[object]) -> object:
        return [_tok(xs[0])]

    def act_braced(xs: list[object]) -> object:
        return [_tok(xs[0])] + _as_list(xs[1]) + [_tok(xs[2])]

    def act_concat(xs: list[object]) -> object:
        return _as_list(xs[0]) + _as_list(xs[1])

    def act_ident(xs: list[object]) -> object:
        return _word(_tok(xs[0]))

    def act_opt_name_plain(xs: list[object]) -> object:
        name: A.Word = xs[0]
        return A.OptionName(span=name.span, custom=False, name=name)

    def act_opt_name_custom(xs: list[object]) -> object:
        return A.OptionName(span=join_span(xs[0], xs[2]), custom=True, name=xs[1])

    def act_option_stmt(xs: list[object]) -> object:
        return A.DeclOption(
            span=join_span(xs[0], xs[4]),
            name=xs[1],
            value=raw_text(_as_list(xs[3])),
        )

    def act_syntax_stmt(xs: list[object]) -> object:
        lit = _tok(xs[2])
        try:
            version = A.Syntax(lit.string_value)
        except ValueError:
            raise ParseError(
                span=lit.span,
                message=f"unknown syntax {lit.lexeme}",
                hint='use: syntax = "proto2"; or syntax = "proto3";',
                kind=FailureKind.LITERAL,
            ) from None
        return E.SyntaxStmt(span=join_span(xs[0], xs[3]), version=version)

    def act_import_stmt(xs: list[object]) -> object:
        return E.Import(span=join_span(xs[0], xs[2]), path=_string_word(_tok(xs[1])))

    def act_package_stmt(xs: list[object]) -> object:
        return E.Package(span=join_span(xs[0], xs[2]), name=xs[1])

    def act_field_option(xs: list[object]) -> object:
        value = _as_list(xs[2])
        return A.FieldOption(span=join_span(xs[0], value[-1]), name=xs[0], value=raw_text(value))

    def act_field_opt_tail(xs: list[object]) -> object:
        return [xs[1]] + _as_list(xs[2])

    def act_field_opt_list(xs: list[object]) -> object:
        return [xs[0]] + _as_list(xs[1])

    def act_field_options(xs: list[object]) -> object:
        return _as_list(xs[1])

    def act_rule(xs: list[object]) -> object:
        tok = _tok(xs[0])
        return A.FieldRule(position=tok.span.start, variant=A.RuleVariant(tok.lexeme))

    def act_field_head(xs: list[object]) -> object:
        typ, type_span = xs[1]
        return (xs[0], typ, type_span)

    def act_field_head_implicit(xs: list[object]) -> object:
        typ, type_span = xs[0]
        return (A.IMPLICIT_OPTIONAL, typ, type_span)

    # Field types travel as (type, span): scalar types carry no span of their own.
    def act_type_word(xs: list[object]) -> object:
        tok = _tok(xs[0])
        scalar = SCALAR_TYPES.get(tok.lexeme)
        if scalar is not None:
            return (scalar, tok.span)
        return (A.MessageOrEnum(span=tok.span, name=_word(tok)), tok.span)

    def act_type_group(xs: list[object]) -> object:
        tok = _tok(xs[0])
        return (A.Group(span=tok.span), tok.span)

    def act_type_map(xs: list[object]) -> object:
        sp = join_span(xs[0], xs[5])
        key, _ = xs[2]
        value, _ = xs[4]
        return (A.MapType(span=sp, position=_tok(xs[0]).span.start, key=key, value=value), sp)

    def act_field_end_semi(xs: list[object]) -> object:
        return (None, _tok(xs[0]))

    def act_field_end_block(xs: list[object]) -> object:
        return (_as_list(xs[1]), _tok(xs[2]))

    def act_field(xs: list[object]) -> object:
        rule, typ, type_span = xs[0]
        name: A.Word = xs[1]
        options = tuple(_as_list(xs[4]))
        body, last = xs[5]

        start = rule.position if rule.position is not None else type_span.start
        span = Span(file=type_span.file, start=start, end=last.span.end)

        if body is not None:
            if not isinstance(typ, A.Group):
                raise ParseError(
                    span=last.span,
                    message=f"field {name} is not a group and cannot have a body",
                    hint="end the field with ';'",
                )
            typ = A.Group(
                span=Span(type_span.file, type_span.start, last.span.end),
                fields=tuple(body),
            )

        default = _find_option(options, "default")
        packed = _find_option(options, "packed")
        deprecated = _find_option(options, "deprecated")
        return A.Field(
            span=span,
            name=name,
            rule=rule,
            type=typ,
            number=_integer(_tok(xs[3]), allow_hex=False),
            default=default.value if default is not None else None,
            packed=_option_bool(packed) if packed is not None else None,
            deprecated=_option_bool(deprecated) if deprecated is not None else False,
            options=options,
        )

    def act_oneof(xs: list[object]) -> object:
        body = _as_list(xs[3])
        return A.OneOf(
            span=join_span(xs[0], xs[4]),
            name=xs[1],
            position=_tok(xs[0]).span.start,
            fields=tuple(x for x in body if isinstance(x, A.Field)),
            options=tuple(x for x in body if isinstance(x, A.DeclOption)),
        )

    def act_range_single(xs: list[object]) -> object:
        lo = _integer(_tok(xs[0]), allow_hex=False).value
        return range(lo, lo + 1)

    def act_range(xs: list[object]) -> object:
        lo = _integer(_tok(xs[0]), allow_hex=False).value
        hi = _integer(_tok(xs[2]), allow_hex=False).value
        return range(lo, hi + 1)

    def act_range_max(xs: list[object]) -> object:
        lo = _integer(_tok(xs[0]), allow_hex=False).value
        return range(lo, MAX_FIELD_NUMBER + 1)

    def act_ranges_tail(xs: list[object]) -> object:
        return [xs[1]] + _as_list(xs[2])

    def act_ranges(xs: list[object]) -> object:
        return [xs[0]] + _as_list(xs[1])

    def act_reserved_name(xs: list[object]) -> object:
        tok = _tok(xs[0])
        name = _string_word(tok)
        if not name.value or scan_word(name.value, 0) != len(name.value):
            raise ParseError(
                span=tok.span,
                message=f"reserved name {tok.lexeme} is not an identifier",
                kind=FailureKind.LITERAL,
            )
        return [name] + _as_list(xs[1])

    def act_names_skip_comma(xs: list[object]) -> object:
        return _as_list(xs[1])

    def act_reserved_nums(xs: list[object]) -> object:
        return E.ReservedNumbers(span=join_span(xs[0], xs[2]), ranges=tuple(_as_list(xs[1])))

    def act_reserved_names(xs: list[object]) -> object:
        return E.ReservedNames(span=join_span(xs[0], xs[2]), names=tuple(_as_list(xs[1])))

    def act_extensions(xs: list[object]) -> object:
        return E.ExtensionRanges(span=join_span(xs[0], xs[3]), ranges=tuple(_as_list(xs[1])))

    def act_enum_number(xs: list[object]) -> object:
        return _integer(_tok(xs[0]), allow_hex=True)

    def act_enum_number_neg(xs: list[object]) -> object:
        lit = _integer(_tok(xs[1]), allow_hex=True, negative=True)
        return A.IntegerLiteral(span=join_span(xs[0], xs[1]), value=lit.value)

    def act_enum_value(xs: list[object]) -> object:
        return A.EnumValue(
            span=join_span(xs[0], xs[4]),
            name=xs[0],
            number=xs[2],
            options=tuple(_as_list(xs[3])),
        )

    def act_enum(xs: list[object]) -> object:
        return E.fold_enum(join_span(xs[0], xs[4]), xs[1], _as_list(xs[3]))

    def act_message(xs: list[object]) -> object:
        return E.fold_message(join_span(xs[0], xs[4]), xs[1], _as_list(xs[3]))

    def act_extend(xs: list[object]) -> object:
        extendee: A.Word = xs[1]
        fields = [f for f in _as_list(xs[3]) if isinstance(f, A.Field)]
        return E.Extend(
            span=join_span(xs[0], xs[4]),
            extensions=tuple(A.Extension(span=f.span, extendee=extendee, field=f) for f in fields),
        )

    def act_file(xs: list[object]) -> object:
        items = _as_list(xs[0])
        if items:
            sp = join_span(items[0], items[-1])
        else:
            # Replaced by the caller, which knows the file and the end of input.
            sp = Span(file="<unknown>", start=Position(0, 1, 1), end=Position(0, 1, 1))
        return E.fold_file(sp, items)

    # -----------------------------------------------------------------------
    # Productions
    # -----------------------------------------------------------------------

    # Names: any word, keywords included
    for kind in IDENTIFIER_TOKEN_KINDS:
        Ident |= T(kind) @ act_ident

    # Balanced `{ ... }` blocks inside option values
    for kind in _all_except(TokenKind.LBRACE, TokenKind.RBRACE):
        BlockItem |= T(kind) @ act_token
    BlockItem |= LBRACE & Block & RBRACE @ act_braced
    Block |= BlockItem & Block @ act_concat
    Block |= eps() @ act_empty_list

    # `option` statement values run to the next `;`
    for kind in _all_except(TokenKind.SEMI, TokenKind.LBRACE, TokenKind.RBRACE):
        RawItem |= T(kind) @ act_token
    RawItem |= LBRACE & Block & RBRACE @ act_braced
    RawOpt |= RawItem & RawOpt @ act_concat
    RawOpt |= eps() @ act_empty_list

    # Bracket option values run to the next top-level `,` or `]`
    for kind in _all_except(
        TokenKind.COMMA, TokenKind.LBRACKET, TokenKind.RBRACKET, TokenKind.LBRACE, TokenKind.RBRACE
    ):
        BItem |= T(kind) @ act_token
    BItem |= LBRACE & Block & RBRACE @ act_braced
    BValueTail |= BItem & BValueTail @ act_concat
    BValueTail |= eps() @ act_empty_list
    BValue |= BItem & BValueTail @ act_concat

    # Service bodies are discarded up to the first `}`
    for kind in _all_except(TokenKind.RBRACE):
        SkipItem |= T(kind) @ act_none
    SkipBody |= SkipItem & SkipBody @ act_none
    SkipBody |= eps() @ act_none

    # Options
    OptionName |= Ident @ act_opt_name_plain
    OptionName |= LPAREN & Ident & RPAREN @ act_opt_name_custom
    OptionStmt |= OPTION & OptionName & EQ & RawOpt & SEMI @ act_option_stmt

    # Syntax / import / package
    SyntaxStmt |= SYNTAX & EQ & STRING & SEMI @ act_syntax_stmt
    ImportStmt |= IMPORT & STRING & SEMI @ act_import_stmt
    PackageStmt |= PACKAGE & Ident & SEMI @ act_package_stmt

    # Field options
    FieldOption |= OptionName & EQ & BValue @ act_field_option
    FieldOptionTail |= COMMA & FieldOption & FieldOptionTail @ act_field_opt_tail
    FieldOptionTail |= eps() @ act_empty_list
    FieldOptionList |= FieldOption & FieldOptionTail @ act_field_opt_list
    FieldOptions |= LBRACKET & FieldOptionList & RBRACKET @ act_field_options
    FieldOptionsOpt |= FieldOptions & FieldOptionsOpt @ act_concat
    FieldOptionsOpt |= eps() @ act_empty_list

    # Fields
    Rule |= OPTIONAL | REPEATED | REQUIRED @ act_rule
    MapType |= MAP & LANGLE & FieldType & COMMA & FieldType & RANGLE @ act_type_map
    for kind in _TYPE_NAME_KINDS:
        FieldType |= T(kind) @ act_type_word
        if kind not in RULED_ONLY_TYPE_KINDS:
            BareFieldType |= T(kind) @ act_type_word
    for Typ in (FieldType, BareFieldType):
        # a bare `map` is a reference; `map <` starts a map type
        Typ |= MAP @ act_type_word
        Typ |= GROUP @ act_type_group
        Typ |= MapType @ act_passthrough
    FieldHead |= Rule & FieldType @ act_field_head
    FieldHead |= BareFieldType @ act_field_head_implicit
    FieldEnd |= SEMI @ act_field_end_semi
    FieldEnd |= LBRACE & FieldList & RBRACE @ act_field_end_block
    Field |= FieldHead & Ident & EQ & WORD & FieldOptionsOpt & FieldEnd @ act_field
    FieldListElem |= Field @ act_passthrough
    FieldListElem |= SEMI @ act_none
    FieldList |= FieldListElem & FieldList @ act_body
    FieldList |= eps() @ act_empty_list

    # Oneof
    OneofElem |= Field | OptionStmt @ act_passthrough
    OneofElem |= SEMI @ act_none
    OneofBody |= OneofElem & OneofBody @ act_body
    OneofBody |= eps() @ act_empty_list
    Oneof |= ONEOF & Ident & LBRACE & OneofBody & RBRACE @ act_oneof

    # Reserved / extension ranges
    Range |= WORD @ act_range_single
    Range |= WORD & TO & WORD @ act_range
    Range |= WORD & TO & MAX @ act_range_max
    RangesTail |= COMMA & Range & RangesTail @ act_ranges_tail
    RangesTail |= eps() @ act_empty_list
    Ranges |= Range & RangesTail @ act_ranges
    NamesTail |= COMMA & NamesTail @ act_names_skip_comma
    NamesTail |= STRING & NamesTail @ act_reserved_name
    NamesTail |= eps() @ act_empty_list
    Names |= STRING & NamesTail @ act_reserved_name
    ReservedStmt |= RESERVED & Ranges & SEMI @ act_reserved_nums
    ReservedStmt |= RESERVED & Names & SEMI @ act_reserved_names
    ExtensionsStmt |= EXTENSIONS & Ranges & FieldOptionsOpt & SEMI @ act_extensions

    # Enum
    EnumNumber |= WORD @ act_enum_number
    EnumNumber |= MINUS & WORD @ act_enum_number_neg
    EnumValue |= Ident & EQ & EnumNumber & FieldOptionsOpt & SEMI @ act_enum_value
    EnumElem |= EnumValue | OptionStmt | ReservedStmt @ act_passthrough
    EnumElem |= SEMI @ act_none
    EnumBody |= EnumElem & EnumBody @ act_body
    EnumBody |= eps() @ act_empty_list
    Enum |= ENUM & Ident & LBRACE & EnumBody & RBRACE @ act_enum

    # Message
    MessageElem |= (
        Field | Message | Enum | Oneof | OptionStmt | ReservedStmt | ExtensionsStmt
    ) @ act_passthrough
    MessageElem |= SEMI @ act_none
    MessageBody |= MessageElem & MessageBody @ act_body
    MessageBody |= eps() @ act_empty_list
    Message |= MESSAGE & Ident & LBRACE & MessageBody & RBRACE @ act_message

    # Extend / service
    Extend |= EXTEND & Ident & LBRACE & FieldList & RBRACE @ act_extend
    Service |= SERVICE & Ident & LBRACE & SkipBody & RBRACE @ act_none

    # Top-level
    Item |= (
        SyntaxStmt | ImportStmt | PackageStmt | OptionStmt | Message | Enum | Extend | Service
    ) @ act_passthrough
    Item |= SEMI @ act_none
    Items |= Item & Items @ act_body
    Items |= eps() @ act_empty_list
    File |= Items @ act_file

    return Grammar(start=File.head, productions=tuple(sink.productions))
