"""Expression compiler: directive expression text to null-safe Python.

Expressions are small: paths, literals, comparisons, boolean logic and
(in calculation mode) arithmetic. Every path segment goes through the
runtime's safe accessor, so an undefined segment yields None instead of
raising.

Grammar (lowest to highest precedence):
    expr        := or_expr
    or_expr     := and_expr (("||" | "or") and_expr)*
    and_expr    := not_expr (("&&" | "and") not_expr)*
    not_expr    := ("!" | "not") not_expr | comparison
    comparison  := additive (("==" | "!=" | "<" | ">" | "<=" | ">=") additive)?
    additive    := term (("+" | "-") term)*          # calculation mode only
    term        := unary (("*" | "/" | "%") unary)*   # calculation mode only
    unary       := "-" unary | primary                # calculation mode only
    primary     := NUMBER | STRING | "true" | "false" | "null"
                 | "(" expr ")" | path
    path        := ["$"] NAME ("." (NAME | DIGITS))* [call]
    call        := "(" [expr ("," expr)*] ")"

A negative number literal (``-1``) is accepted in every mode. ``==`` and
``!=`` compare loosely, the way switch cases match: ``3 == '3'`` holds.

Generated code relies on these names in the render function's scope:
``_lookup``, ``_helper``, ``_get``, ``_call``, ``_eq``, ``_cmp``, ``_add``,
``_sub``, ``_mul``, ``_div``, ``_mod``, ``_neg`` and ``_e``.

Thread Safety:
ExpressionCompiler is stateless. Scope objects belong to a single compile.

"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass
from enum import Enum
from typing import NoReturn

from ramita.errors import TemplateSyntaxError

# A case value of this shape is a string literal, not a lookup
CASE_LITERAL_RE = re.compile(r"[A-Za-z][A-Za-z0-9_]*")

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<number>\d+(?:\.\d+)?)
    |(?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
    |(?P<name>\$?[A-Za-z_][A-Za-z0-9_]*)
    |(?P<op>\|\||&&|==|!=|<=|>=|[!<>+\-*/%(),.])
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}

_COMPARISONS = {"==", "!=", "<", ">", "<=", ">="}
_ARITHMETIC = {"+": "_add", "-": "_sub", "*": "_mul", "/": "_div", "%": "_mod"}
_KEYWORD_LITERALS = {"true": "True", "false": "False", "null": "None"}
_WORD_OPERATORS = frozenset(["and", "or", "not"])


class ExpressionMode(Enum):
    """How an expression's result is used.

    VALUE: raw value (lookups, repeat sources, switch subjects)
    CONDITIONAL: truth test (if, unless, errors)
    CALCULATION: value with arithmetic and concatenation (with, attr, yield default)
    TEXT: escaped for markup output (text, inline interpolation)
    """

    VALUE = "value"
    CONDITIONAL = "conditional"
    CALCULATION = "calculation"
    TEXT = "text"


@dataclass(frozen=True, slots=True)
class Token:
    kind: str
    value: str
    pos: int


# =============================================================================
# Lexical scope
# =============================================================================


class Scope:
    """Lexical scope mapping template names to generated Python locals.

    Each binding gets a unique identifier (``l_item_3``) so nested loops,
    fragments and ``with`` blocks never clobber each other. Frames share one
    counter per compile.

    Example:
        >>> root = Scope()
        >>> frame = root.child()
        >>> frame.bind("item")
        'l_item_0'
        >>> root.resolve("item") is None
        True

    """

    __slots__ = ("_names", "_parent", "_counter")

    def __init__(self, parent: Scope | None = None, counter: itertools.count | None = None) -> None:
        self._names: dict[str, str] = {}
        self._parent = parent
        self._counter = counter if counter is not None else itertools.count()

    @property
    def parent(self) -> Scope | None:
        return self._parent

    def child(self) -> Scope:
        """Create a nested frame sharing this scope's counter."""
        return Scope(self, self._counter)

    def bind(self, name: str) -> str:
        """Bind a template name in this frame and return its Python local."""
        local = self.fresh(f"l_{name}")
        self._names[name] = local
        return local

    def fresh(self, prefix: str) -> str:
        """Return a unique identifier with the given prefix."""
        return f"{prefix}_{next(self._counter)}"

    def resolve(self, name: str) -> str | None:
        """Return the Python local bound to name, searching outward."""
        scope: Scope | None = self
        while scope is not None:
            local = scope._names.get(name)
            if local is not None:
                return local
            scope = scope._parent
        return None


# =============================================================================
# Tokenizer
# =============================================================================


def tokenize(expression: str) -> list[Token]:
    """Split expression text into tokens.

    Raises:
        TemplateSyntaxError: On a character that starts no token (including
            an unterminated string).
    """
    tokens: list[Token] = []
    pos = 0
    length = len(expression)
    while pos < length:
        match = _TOKEN_RE.match(expression, pos)
        if match is None:
            char = expression[pos]
            message = "Unterminated string" if char in ("'", '"') else f"Unexpected character '{char}'"
            raise TemplateSyntaxError(message, expression=expression, col_offset=pos + 1)
        kind = match.lastgroup
        assert kind is not None
        if kind != "ws":
            tokens.append(Token(kind, match.group(0), pos))
        pos = match.end()
    return tokens


def _unescape(literal: str) -> str:
    body = literal[1:-1]
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


# =============================================================================
# Parser / code generator
# =============================================================================


class _ExpressionParser:
    """Recursive-descent parser emitting Python source.

    Each rule returns ``(code, is_bool)``; ``is_bool`` marks code already
    producing a bool so conditionals skip a redundant ``bool()`` wrapper.
    """

    __slots__ = ("_text", "_tokens", "_index", "_calc", "_scope")

    def __init__(self, text: str, mode: ExpressionMode, scope: Scope | None) -> None:
        self._text = text
        self._tokens = tokenize(text)
        self._index = 0
        self._calc = mode is ExpressionMode.CALCULATION
        self._scope = scope

    def parse(self) -> tuple[str, bool]:
        if not self._tokens:
            self._error("Empty expression", 0)
        result = self._or()
        token = self._peek()
        if token is not None:
            if token.kind == "op" and token.value in _ARITHMETIC:
                self._error("Arithmetic is only allowed in calculation mode", token.pos)
            self._error(f"Unexpected '{token.value}'", token.pos)
        return result

    # -- token helpers --------------------------------------------------------

    def _peek(self) -> Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _match_op(self, *ops: str) -> Token | None:
        token = self._peek()
        if token is not None and token.kind == "op" and token.value in ops:
            return self._advance()
        return None

    def _match_word(self, word: str) -> Token | None:
        token = self._peek()
        if token is not None and token.kind == "name" and token.value == word:
            return self._advance()
        return None

    def _expect_op(self, op: str) -> Token:
        token = self._match_op(op)
        if token is None:
            nxt = self._peek()
            where = nxt.pos if nxt is not None else len(self._text)
            found = f"'{nxt.value}'" if nxt is not None else "end of expression"
            self._error(f"Expected '{op}', found {found}", where)
        return token

    def _error(self, message: str, pos: int) -> NoReturn:
        raise TemplateSyntaxError(message, expression=self._text, col_offset=pos + 1)

    # -- grammar rules --------------------------------------------------------

    def _or(self) -> tuple[str, bool]:
        code, is_bool = self._and()
        while self._match_op("||") or self._match_word("or"):
            right, right_bool = self._and()
            code, is_bool = f"({_as_bool(code, is_bool)} or {_as_bool(right, right_bool)})", True
        return code, is_bool

    def _and(self) -> tuple[str, bool]:
        code, is_bool = self._not()
        while self._match_op("&&") or self._match_word("and"):
            right, right_bool = self._not()
            code, is_bool = f"({_as_bool(code, is_bool)} and {_as_bool(right, right_bool)})", True
        return code, is_bool

    def _not(self) -> tuple[str, bool]:
        if self._match_op("!") or self._match_word("not"):
            operand, _ = self._not()
            return f"(not {operand})", True
        return self._comparison()

    def _comparison(self) -> tuple[str, bool]:
        left, is_bool = self._additive()
        token = self._match_op(*_COMPARISONS)
        if token is None:
            return left, is_bool
        right, _ = self._additive()
        if token.value == "==":
            return f"_eq({left}, {right})", True
        if token.value == "!=":
            return f"(not _eq({left}, {right}))", True
        return f"_cmp({token.value!r}, {left}, {right})", True

    def _additive(self) -> tuple[str, bool]:
        if not self._calc:
            return self._unary()
        code, is_bool = self._term()
        while (token := self._match_op("+", "-")) is not None:
            right, _ = self._term()
            code, is_bool = f"{_ARITHMETIC[token.value]}({code}, {right})", False
        return code, is_bool

    def _term(self) -> tuple[str, bool]:
        code, is_bool = self._unary()
        while (token := self._match_op("*", "/", "%")) is not None:
            right, _ = self._unary()
            code, is_bool = f"{_ARITHMETIC[token.value]}({code}, {right})", False
        return code, is_bool

    def _unary(self) -> tuple[str, bool]:
        token = self._match_op("-")
        if token is None:
            return self._primary()
        nxt = self._peek()
        if nxt is not None and nxt.kind == "number":
            self._advance()
            return f"(-{_number(nxt.value)})", False
        if not self._calc:
            self._error("Arithmetic is only allowed in calculation mode", token.pos)
        operand, _ = self._unary()
        return f"_neg({operand})", False

    def _primary(self) -> tuple[str, bool]:
        token = self._peek()
        if token is None:
            self._error("Unexpected end of expression", len(self._text))
        assert token is not None
        self._advance()

        if token.kind == "number":
            return _number(token.value), False
        if token.kind == "string":
            return repr(_unescape(token.value)), False
        if token.kind == "op" and token.value == "(":
            code, is_bool = self._or()
            self._expect_op(")")
            return f"({code})", is_bool
        if token.kind == "name":
            lowered = token.value.lower()
            if lowered in _KEYWORD_LITERALS:
                return _KEYWORD_LITERALS[lowered], lowered != "null"
            if token.value in _WORD_OPERATORS:
                self._error(f"Unexpected '{token.value}'", token.pos)
            return self._path(token), False

        self._error(f"Unexpected '{token.value}'", token.pos)

    def _path(self, head: Token) -> str:
        name = head.value.lstrip("$")
        segments: list[str | int] = []
        while self._match_op("."):
            token = self._peek()
            if token is None or token.kind not in ("name", "number"):
                where = token.pos if token is not None else len(self._text)
                self._error("Expected a name after '.'", where)
            assert token is not None
            self._advance()
            if token.kind == "number":
                # "items.0.1" lexes as one number token
                segments.extend(int(part) for part in token.value.split("."))
            else:
                segments.append(token.value.lstrip("$"))

        args: list[str] | None = None
        if self._match_op("("):
            args = []
            if self._match_op(")") is None:
                while True:
                    arg, _ = self._or()
                    args.append(arg)
                    if self._match_op(")"):
                        break
                    self._expect_op(",")

        if args is not None and not segments:
            return f"_call({', '.join([f'_helper({name!r})', *args])})"

        local = self._scope.resolve(name) if self._scope is not None else None
        code = local if local is not None else f"_lookup({name!r})"
        for segment in segments:
            code = f"_get({code}, {segment!r})"
        if args is not None:
            return f"_call({', '.join([code, *args])})"
        return code


def _number(text: str) -> str:
    return repr(float(text)) if "." in text else repr(int(text))


def _as_bool(code: str, is_bool: bool) -> str:
    return code if is_bool else f"bool({code})"


# =============================================================================
# Public API
# =============================================================================


class ExpressionCompiler:
    """Compiles directive expressions to Python source.

    Usage:
        >>> compiler = ExpressionCompiler()
        >>> compiler.compile("user.name", ExpressionMode.VALUE)
        "_get(_lookup('user'), 'name')"
        >>> compiler.compile("!user.active", ExpressionMode.CONDITIONAL)
        "(not _get(_lookup('user'), 'active'))"

    """

    __slots__ = ()

    def compile(
        self,
        expression: str,
        mode: ExpressionMode = ExpressionMode.VALUE,
        scope: Scope | None = None,
    ) -> str:
        """Compile an expression.

        Args:
            expression: Expression text
            mode: How the result is used
            scope: Lexical scope for locally bound names

        Returns:
            Python expression source

        Raises:
            TemplateSyntaxError: If the expression is malformed.
        """
        code, is_bool = _ExpressionParser(expression, mode, scope).parse()
        if mode is ExpressionMode.CONDITIONAL:
            return _as_bool(code, is_bool)
        if mode is ExpressionMode.TEXT:
            return f"_e({code})"
        return code

    def compile_case(self, value: str, scope: Scope | None = None) -> str:
        """Compile a switch case value.

        A bare word (no dots, no quotes) is a string literal, even ``true``.
        Anything else is a value-mode expression.
        """
        stripped = value.strip()
        if CASE_LITERAL_RE.fullmatch(stripped):
            return repr(stripped)
        return self.compile(stripped, ExpressionMode.VALUE, scope)


def split_interpolation(text: str) -> list[tuple[str, bool]]:
    """Split text into literal runs and ``{expression}`` runs.

    Braces inside quoted strings do not end an expression. Unterminated or
    empty braces stay literal.

    Returns:
        ``(segment, is_expression)`` pairs in order; expression segments
        exclude the braces.

    Example:
        >>> split_interpolation("Hi {user.name}!")
        [('Hi ', False), ('user.name', True), ('!', False)]

    """
    parts: list[tuple[str, bool]] = []
    literal_start = 0
    pos = 0
    length = len(text)
    while pos < length:
        open_at = text.find("{", pos)
        if open_at == -1:
            break
        close_at = _matching_brace(text, open_at)
        if close_at is None:
            break
        inner = text[open_at + 1 : close_at]
        if not inner.strip():
            pos = close_at + 1
            continue
        if open_at > literal_start:
            parts.append((text[literal_start:open_at], False))
        parts.append((inner, True))
        pos = literal_start = close_at + 1
    if literal_start < length:
        parts.append((text[literal_start:], False))
    return parts


def _matching_brace(text: str, open_at: int) -> int | None:
    depth = 0
    quote = ""
    pos = open_at
    while pos < len(text):
        char = text[pos]
        if quote:
            if char == "\\":
                pos += 1
            elif char == quote:
                quote = ""
        elif char in ("'", '"'):
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return pos
        pos += 1
    return None


__all__ = [
    "CASE_LITERAL_RE",
    "ExpressionCompiler",
    "ExpressionMode",
    "Scope",
    "Token",
    "split_interpolation",
    "tokenize",
]
