"""Statement and expression reader for body text.

Bodies stay raw text in the IR. Backends read each skeleton statement
into the small tree below and lower it per target. The reader covers the
common expression grammar; anything it cannot read becomes Raw, which
backends emit as an unsupported comment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..frontend.parse import TypeScope, _array_of, parse_type
from ..frontend.scan import find_matching, find_top_level, split_top_level
from ..ir import Type

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<str>(?:u8|u|U|L|R)?"(?:\\.|[^"\\])*")
    |(?P<char>(?:u|U|L)?'(?:\\.|[^'\\])+')
    |(?P<num>(?:0[xX][0-9a-fA-F']+|0[bB][01']+|\d[\d']*\.?[\d']*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)[uUlLfF]*)
    |(?P<name>[A-Za-z_]\w*)
    |(?P<op>::|->\*|->|\+\+|--|<<=|>>=|<=>|<=|>=|==|!=|&&|\|\||\+=|-=|\*=|/=|%=|&=|\|=|\^=|<<|>>|\.\.\.|[-+*/%<>=!~&|^?:.,;()\[\]{}\#])
    """,
    re.VERBOSE,
)


@dataclass
class Token:
    kind: str
    text: str
    start: int = 0
    end: int = 0


class ReadFailure(Exception):
    """Raised inside the reader; callers fall back to Raw."""


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    n = len(text)
    while pos < n:
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise ReadFailure(f"unexpected character {text[pos]!r}")
        kind = m.lastgroup or ""
        if kind != "ws":
            tokens.append(Token(kind, m.group(0), m.start(), m.end()))
        pos = m.end()
    return tokens


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass(kw_only=True)
class Expr:
    """Base for read expressions. Abstract."""


@dataclass(kw_only=True)
class Lit(Expr):
    """Literal. kind is num, str, char, bool or null."""

    kind: str
    text: str


@dataclass(kw_only=True)
class Name(Expr):
    """Possibly qualified name: std::cout -> ["std", "cout"]. targs holds <...> text."""

    parts: list[str]
    targs: list[str] = field(default_factory=list)

    @property
    def last(self) -> str:
        return self.parts[-1]

    @property
    def qualified(self) -> str:
        return "::".join(self.parts)


@dataclass(kw_only=True)
class Unary(Expr):
    op: str
    operand: Expr
    postfix: bool = False


@dataclass(kw_only=True)
class Binary(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(kw_only=True)
class Assign(Expr):
    """target op value, op is = or a compound operator."""

    op: str
    target: Expr
    value: Expr


@dataclass(kw_only=True)
class Ternary(Expr):
    cond: Expr
    then: Expr
    else_: Expr


@dataclass(kw_only=True)
class Call(Expr):
    func: Expr
    args: list[Expr] = field(default_factory=list)
    brace: bool = False


@dataclass(kw_only=True)
class Member(Expr):
    obj: Expr
    name: str
    arrow: bool = False


@dataclass(kw_only=True)
class Index(Expr):
    obj: Expr
    index: Expr


@dataclass(kw_only=True)
class Cast(Expr):
    """static_cast<T>(e) and friends. kind is static, dynamic, const or reinterpret."""

    kind: str
    typ: str
    expr: Expr


@dataclass(kw_only=True)
class New(Expr):
    typ: str
    args: list[Expr] = field(default_factory=list)


@dataclass(kw_only=True)
class Lambda(Expr):
    """Lambda; body is raw text read lazily by the backends."""

    captures: str
    params: str
    body: str
    ret: str = ""


@dataclass(kw_only=True)
class InitList(Expr):
    items: list[Expr] = field(default_factory=list)


@dataclass(kw_only=True)
class Raw(Expr):
    """Text the reader could not understand."""

    text: str


# Binary precedence (higher binds tighter), C++ rules.
BINARY_PREC: dict[str, int] = {
    "||": 4,
    "&&": 5,
    "|": 6,
    "^": 7,
    "&": 8,
    "==": 9, "!=": 9,
    "<": 10, ">": 10, "<=": 10, ">=": 10, "<=>": 10,
    "<<": 11, ">>": 11,
    "+": 12, "-": 12,
    "*": 13, "/": 13, "%": 13,
}

ASSIGN_OPS = {"=", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "<<=", ">>="}

_CASTS = {"static_cast", "dynamic_cast", "const_cast", "reinterpret_cast"}

# Names after which '<' opens template arguments.
_TEMPLATE_CALLEES = {
    "make_unique", "make_shared", "vector", "map", "unordered_map", "set", "unordered_set",
    "pair", "make_pair", "optional", "function", "atomic", "lock_guard", "unique_lock",
    "shared_lock", "scoped_lock", "promise", "future", "shared_future", "array", "get",
    "numeric_limits", "tuple", "make_tuple", "list", "deque",
}

_TYPE_TOKENS = {"const", "unsigned", "signed", "long", "short", "int", "char", "bool", "float", "double", "void", "auto"}


class ExprReader:
    """Pratt reader over a token list."""

    def __init__(self, tokens: list[Token], template_names: set[str] | None = None, source: str = ""):
        self.tokens = tokens
        self.source = source
        self.pos = 0
        self.template_names = template_names or set()

    def peek(self, offset: int = 0) -> Token | None:
        i = self.pos + offset
        return self.tokens[i] if i < len(self.tokens) else None

    def at(self, text: str) -> bool:
        tok = self.peek()
        return tok is not None and tok.text == text and tok.kind in ("op", "name")

    def advance(self) -> Token:
        tok = self.peek()
        if tok is None:
            raise ReadFailure("unexpected end of expression")
        self.pos += 1
        return tok

    def expect(self, text: str) -> None:
        tok = self.advance()
        if tok.text != text:
            raise ReadFailure(f"expected {text!r}, got {tok.text!r}")

    def done(self) -> bool:
        return self.pos >= len(self.tokens)

    # --- entry ---

    def expression(self) -> Expr:
        return self.assignment()

    def assignment(self) -> Expr:
        left = self.ternary()
        tok = self.peek()
        if tok is not None and tok.kind == "op" and tok.text in ASSIGN_OPS:
            self.advance()
            value = self.assignment()
            return Assign(op=tok.text, target=left, value=value)
        return left

    def ternary(self) -> Expr:
        cond = self.binary(0)
        if self.at("?"):
            self.advance()
            then = self.assignment()
            self.expect(":")
            else_ = self.assignment()
            return Ternary(cond=cond, then=then, else_=else_)
        return cond

    def binary(self, min_prec: int) -> Expr:
        left = self.unary()
        while True:
            tok = self.peek()
            if tok is None or tok.kind != "op" or tok.text not in BINARY_PREC:
                return left
            prec = BINARY_PREC[tok.text]
            if prec <= min_prec:
                return left
            self.advance()
            right = self.binary(prec)
            left = Binary(op=tok.text, left=left, right=right)

    def unary(self) -> Expr:
        tok = self.peek()
        if tok is None:
            raise ReadFailure("unexpected end of expression")
        if tok.kind == "op" and tok.text in ("!", "~", "-", "+", "*", "&", "++", "--"):
            self.advance()
            return Unary(op=tok.text, operand=self.unary())
        if tok.kind == "name" and tok.text == "new":
            return self.new_expr()
        if tok.kind == "name" and tok.text in ("co_await", "sizeof"):
            self.advance()
            return Unary(op=tok.text, operand=self.unary())
        if tok.kind == "op" and tok.text == "(" and self._looks_like_c_cast():
            self.advance()
            typ = self._collect_until(")")
            self.expect(")")
            return Cast(kind="c", typ=typ, expr=self.unary())
        return self.postfix(self.primary())

    def _looks_like_c_cast(self) -> bool:
        nxt = self.peek(1)
        close = self.peek(2)
        after = self.peek(3)
        return (
            nxt is not None and nxt.kind == "name" and nxt.text in _TYPE_TOKENS - {"const", "auto"}
            and close is not None and close.text == ")"
            and after is not None and (after.kind != "op" or after.text in ("(", "-", "!"))
        )

    def _collect_until(self, stop: str) -> str:
        parts: list[str] = []
        depth = 0
        while True:
            tok = self.peek()
            if tok is None:
                raise ReadFailure(f"missing {stop!r}")
            if depth == 0 and tok.text == stop:
                return _join_tokens(parts)
            if tok.text in ("(", "[", "{", "<"):
                depth += 1
            elif tok.text in (")", "]", "}", ">"):
                depth -= 1
            elif tok.text == ">>":
                depth -= 2
            parts.append(tok.text)
            self.advance()

    def new_expr(self) -> Expr:
        self.advance()
        typ_tokens: list[str] = []
        while True:
            tok = self.peek()
            if tok is None or tok.text in ("(", "{", "[", ";", ")", ","):
                break
            if tok.text == "<":
                self.advance()
                typ_tokens.append("<" + self._template_args_text() + ">")
                continue
            typ_tokens.append(tok.text)
            self.advance()
        typ = _join_tokens(typ_tokens)
        args: list[Expr] = []
        if self.at("(") or self.at("{"):
            close = ")" if self.advance().text == "(" else "}"
            args = self.arguments(close)
        elif self.at("["):
            self.advance()
            size = self.expression()
            self.expect("]")
            return New(typ=typ + "[]", args=[size])
        return New(typ=typ, args=args)

    def arguments(self, close: str) -> list[Expr]:
        args: list[Expr] = []
        if self.at(close):
            self.advance()
            return args
        while True:
            args.append(self.assignment())
            if self.at(","):
                self.advance()
                continue
            self.expect(close)
            return args

    def _template_args_text(self) -> str:
        """Consume template arguments after '<' up to the matching '>'."""
        parts: list[str] = []
        depth = 1
        while True:
            tok = self.advance()
            if tok.text == "<":
                depth += 1
            elif tok.text == ">":
                depth -= 1
                if depth == 0:
                    return _join_tokens(parts)
            elif tok.text == ">>":
                depth -= 2
                if depth <= 0:
                    if depth < 0:
                        self.pos -= 1
                        self.tokens[self.pos] = Token("op", ">")
                    return _join_tokens(parts + ([">"] if depth < 0 else []))
            elif tok.text in (";", "{", "}"):
                raise ReadFailure("unterminated template arguments")
            parts.append(tok.text)

    def _try_template_args(self, name: str) -> list[str] | None:
        """If '<' after name opens template arguments, consume and return them."""
        if not self.at("<"):
            return None
        if name not in _TEMPLATE_CALLEES and name not in _CASTS and not name[:1].isupper():
            return None
        saved = self.pos
        saved_tokens = list(self.tokens)
        self.advance()
        try:
            text = self._template_args_text()
        except ReadFailure:
            self.pos = saved
            self.tokens = saved_tokens
            return None
        nxt = self.peek()
        if nxt is not None and nxt.text not in ("(", "{", "::", ")", ";", ",", ">"):
            self.pos = saved
            self.tokens = saved_tokens
            return None
        return split_top_level(text)

    def primary(self) -> Expr:
        tok = self.advance()
        if tok.kind == "num":
            return Lit(kind="num", text=tok.text.replace("'", ""))
        if tok.kind == "str":
            text = tok.text
            # adjacent literals concatenate
            while self.peek() is not None and self.peek().kind == "str":
                nxt = self.advance().text
                text = text[:-1] + nxt[nxt.index('"') + 1 :]
            return Lit(kind="str", text=text)
        if tok.kind == "char":
            return Lit(kind="char", text=tok.text)
        if tok.kind == "op" and tok.text == "(":
            inner = self.expression()
            self.expect(")")
            return inner
        if tok.kind == "op" and tok.text == "{":
            return InitList(items=self.arguments("}"))
        if tok.kind == "op" and tok.text == "[":
            return self.lambda_expr()
        if tok.kind == "op" and tok.text == "::":
            tok = self.advance()
        if tok.kind != "name":
            raise ReadFailure(f"unexpected {tok.text!r}")
        if tok.text in ("true", "false"):
            return Lit(kind="bool", text=tok.text)
        if tok.text in ("nullptr", "NULL"):
            return Lit(kind="null", text=tok.text)
        if tok.text in _CASTS and self.at("<"):
            self.advance()
            typ = self._template_args_text()
            self.expect("(")
            inner = self.expression()
            self.expect(")")
            return Cast(kind=tok.text.split("_", 1)[0], typ=typ, expr=inner)
        parts = [tok.text]
        targs = self._try_template_args(tok.text) or []
        while self.at("::"):
            self.advance()
            nxt = self.advance()
            if nxt.text == "~":
                nxt = self.advance()
                parts.append("~" + nxt.text)
            else:
                parts.append(nxt.text)
            more = self._try_template_args(nxt.text)
            if more is not None:
                targs = more
        return Name(parts=parts, targs=targs)

    def lambda_expr(self) -> Expr:
        captures = self._collect_until("]")
        self.expect("]")
        params = ""
        if self.at("("):
            self.advance()
            params = self._collect_until(")")
            self.expect(")")
        ret = ""
        while not self.at("{"):
            tok = self.advance()
            if tok.text == "->":
                ret_parts: list[str] = []
                while not self.at("{"):
                    ret_parts.append(self.advance().text)
                ret = _join_tokens(ret_parts)
        self.expect("{")
        opening = self.tokens[self.pos - 1]
        depth = 1
        body_tokens: list[str] = []
        while True:
            tok = self.advance()
            if tok.text == "{":
                depth += 1
            elif tok.text == "}":
                depth -= 1
                if depth == 0:
                    break
            body_tokens.append(tok.text)
        body = self.source[opening.end : tok.start].strip() if self.source else " ".join(body_tokens)
        return Lambda(captures=captures, params=params, body=body, ret=ret)

    def postfix(self, expr: Expr) -> Expr:
        while True:
            tok = self.peek()
            if tok is None or tok.kind != "op":
                return expr
            if tok.text == "(":
                self.advance()
                expr = Call(func=expr, args=self.arguments(")"))
            elif tok.text == "{" and isinstance(expr, Name):
                self.advance()
                expr = Call(func=expr, args=self.arguments("}"), brace=True)
            elif tok.text == "[":
                self.advance()
                index = self.expression()
                self.expect("]")
                expr = Index(obj=expr, index=index)
            elif tok.text in (".", "->"):
                self.advance()
                name = self.advance()
                if name.text == "template":
                    name = self.advance()
                if name.kind != "name" and name.text != "~":
                    raise ReadFailure("member name expected")
                member = name.text
                if member == "~":
                    member = "~" + self.advance().text
                self._try_template_args(member)
                expr = Member(obj=expr, name=member, arrow=tok.text == "->")
            elif tok.text in ("++", "--"):
                self.advance()
                expr = Unary(op=tok.text, operand=expr, postfix=True)
            else:
                return expr


def _join_tokens(parts: list[str]) -> str:
    text = " ".join(parts)
    text = re.sub(r"\s*(::|<|>|,|\*|&|\(|\)|\[|\])\s*", r"\1", text)
    return text.replace(",", ", ")


def read_expr(text: str) -> Expr:
    """Read one expression; Raw if the text is outside the supported grammar."""
    text = text.strip()
    if not text:
        return Raw(text="")
    try:
        reader = ExprReader(tokenize(text), source=text)
        expr = reader.expression()
        if not reader.done():
            return Raw(text=text)
        return expr
    except (ReadFailure, IndexError):
        return Raw(text=text)


def read_args(text: str) -> list[Expr]:
    return [read_expr(a) for a in split_top_level(text)]


# ============================================================
# STATEMENTS
# ============================================================


@dataclass(kw_only=True)
class Op:
    """A read statement. Abstract."""


@dataclass(kw_only=True)
class ExprOp(Op):
    expr: Expr


@dataclass(kw_only=True)
class DeclOp(Op):
    """Local declaration. init is '=' value; args is (...) or {...} constructor arguments."""

    typ: Type
    type_text: str
    name: str
    init: Expr | None = None
    args: list[Expr] | None = None
    brace: bool = False
    is_static: bool = False


@dataclass(kw_only=True)
class ReturnOp(Op):
    value: Expr | None = None


@dataclass(kw_only=True)
class ThrowOp(Op):
    value: Expr | None = None


@dataclass(kw_only=True)
class YieldOp(Op):
    value: Expr


@dataclass(kw_only=True)
class CoReturnOp(Op):
    value: Expr | None = None


@dataclass(kw_only=True)
class PrintOp(Op):
    """std::cout/std::cerr chain: literal text and expressions in order."""

    items: list[Expr]
    newline: bool = False
    stderr: bool = False


@dataclass(kw_only=True)
class JumpOp(Op):
    """break or continue."""

    word: str


@dataclass(kw_only=True)
class DeleteOp(Op):
    target: Expr


@dataclass(kw_only=True)
class CaseOp(Op):
    """case X: / default: label, possibly followed by a statement on the same line."""

    value: Expr | None
    rest: str = ""


@dataclass(kw_only=True)
class UnsupportedOp(Op):
    text: str


_DECL_HEAD_RE = re.compile(
    r"^(?P<spec>(?:(?:static|const|constexpr|volatile|thread_local|register|inline)\s+)*)"
    r"(?P<type>(?:(?:const|unsigned|signed|long|short|struct|class|typename)\s+)*"
    r"(?:::)?[A-Za-z_][\w]*(?:\s*::\s*[A-Za-z_]\w*)*(?:\s*<.*>)?(?:\s+(?:int|long|double|char|short))*"
    r"(?:\s*const)?(?:\s*[*&]+\s*(?:const\b)?)*)"
    r"\s*(?P<name>(?<![\w:])[A-Za-z_]\w*)\s*(?P<array>\[[^\]]*\])?\s*(?P<rest>[=({].*)?$",
    re.DOTALL,
)

_NOT_TYPES = {"return", "throw", "delete", "co_return", "co_yield", "co_await", "else", "goto", "case", "new", "using"}


def _read_declaration(text: str, template_names: set[str]) -> DeclOp | None:
    m = _DECL_HEAD_RE.match(text)
    if m is None:
        return None
    type_text = m.group("type").strip()
    first = type_text.split()[0] if type_text else ""
    if not type_text or first in _NOT_TYPES or m.group("name") in _NOT_TYPES:
        return None
    lt = type_text.find("<")
    if lt >= 0 and not type_text.rstrip("*& ").removesuffix("const").rstrip("*& ").endswith(">"):
        return None
    rest = (m.group("rest") or "").strip()
    typ = parse_type(type_text, TypeScope(template_names=set(template_names)))
    if m.group("array"):
        typ = _array_of(typ, m.group("array"))
    decl = DeclOp(typ=typ, type_text=type_text, name=m.group("name"), is_static="static" in m.group("spec"))
    if not rest:
        return decl
    if rest.startswith("="):
        decl.init = read_expr(rest[1:])
        return decl
    close = find_matching(rest, 0)
    if close != len(rest) - 1:
        return None
    decl.args = read_args(rest[1:-1])
    decl.brace = rest[0] == "{"
    return decl


def _read_print(text: str) -> PrintOp | None:
    m = re.match(r"^(?:std::)?(cout|cerr|clog)\s*<<", text)
    if m is None:
        return None
    expr = read_expr(text)
    items: list[Expr] = []
    node = expr
    while isinstance(node, Binary) and node.op == "<<":
        items.append(node.right)
        node = node.left
    if not isinstance(node, Name):
        return None
    items.reverse()
    newline = False
    result: list[Expr] = []
    for item in items:
        if isinstance(item, Name) and item.last == "endl":
            newline = True
            continue
        result.append(item)
    if not newline and result and isinstance(result[-1], Lit) and result[-1].kind == "str" and result[-1].text.endswith('\\n"'):
        last = result[-1]
        newline = True
        trimmed = last.text[:-3] + '"'
        if trimmed.endswith('""') and len(trimmed) <= 3:
            result.pop()
        else:
            result[-1] = Lit(kind="str", text=trimmed)
    return PrintOp(items=result, newline=newline, stderr=m.group(1) != "cout")


def read_statement(text: str, template_names: set[str] | None = None) -> Op:
    """Read one ';'-terminated statement (terminator excluded)."""
    text = text.strip()
    names = template_names or set()
    if text in ("break", "continue"):
        return JumpOp(word=text)
    m = re.match(r"^(return|throw|co_return|co_yield|delete)\b\s*(\[\s*\])?\s*(.*)$", text, re.DOTALL)
    if m is not None:
        word, rest = m.group(1), m.group(3).strip()
        value = read_expr(rest) if rest else None
        if word == "return":
            return ReturnOp(value=value)
        if word == "throw":
            return ThrowOp(value=value)
        if word == "co_return":
            return CoReturnOp(value=value)
        if word == "co_yield":
            return YieldOp(value=value if value is not None else Raw(text=""))
        return DeleteOp(target=value if value is not None else Raw(text=""))
    m = re.match(r"^(?:case\s+(.+?)|default)\s*:(?!:)\s*(.*)$", text, re.DOTALL)
    if m is not None:
        value = read_expr(m.group(1)) if m.group(1) else None
        return CaseOp(value=value, rest=m.group(2).strip())
    printed = _read_print(text)
    if printed is not None:
        return printed
    eq = find_top_level(text, "=", angles=True)
    head = text[:eq] if eq >= 0 else text
    if re.search(r"[A-Za-z_>*&]\s*[*&]*\s*[A-Za-z_]\w*\s*(\[[^\]]*\])?\s*(?:[({].*)?$", head.strip(), re.DOTALL) and (
        " " in head.strip() or "*" in head or "&" in head
    ):
        decl = _read_declaration(text, names)
        if decl is not None:
            return decl
    expr = read_expr(text)
    if isinstance(expr, Raw):
        return UnsupportedOp(text=text)
    return ExprOp(expr=expr)


def walk(expr: Expr):
    """Yield expr and all sub-expressions, depth first."""
    yield expr
    if isinstance(expr, Unary):
        yield from walk(expr.operand)
    elif isinstance(expr, (Binary,)):
        yield from walk(expr.left)
        yield from walk(expr.right)
    elif isinstance(expr, Assign):
        yield from walk(expr.target)
        yield from walk(expr.value)
    elif isinstance(expr, Ternary):
        yield from walk(expr.cond)
        yield from walk(expr.then)
        yield from walk(expr.else_)
    elif isinstance(expr, Call):
        yield from walk(expr.func)
        for a in expr.args:
            yield from walk(a)
    elif isinstance(expr, Member):
        yield from walk(expr.obj)
    elif isinstance(expr, Index):
        yield from walk(expr.obj)
        yield from walk(expr.index)
    elif isinstance(expr, Cast):
        yield from walk(expr.expr)
    elif isinstance(expr, New):
        for a in expr.args:
            yield from walk(a)
    elif isinstance(expr, InitList):
        for a in expr.items:
            yield from walk(a)


def op_exprs(op: Op) -> list[Expr]:
    """Top-level expressions carried by a statement."""
    if isinstance(op, ExprOp):
        return [op.expr]
    if isinstance(op, DeclOp):
        return ([op.init] if op.init is not None else []) + list(op.args or [])
    if isinstance(op, (ReturnOp, ThrowOp, CoReturnOp)):
        return [op.value] if op.value is not None else []
    if isinstance(op, YieldOp):
        return [op.value]
    if isinstance(op, DeleteOp):
        return [op.target]
    if isinstance(op, PrintOp):
        return list(op.items)
    return []


def contains_raw(op: Op) -> bool:
    return any(isinstance(node, Raw) for expr in op_exprs(op) for node in walk(expr))
