"""Lexical helpers: comment stripping, bracket matching, top-level splitting.

Everything here works on raw text and is string-literal aware. Offsets into
the cleaned text are offsets into the original source: comments are blanked,
never removed, so line numbers survive.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..ir import BlockStmt, SimpleStmt, Stmt

_PAIRS: dict[str, str] = {"{": "}", "(": ")", "[": "]", "<": ">"}

_OPENERS = "([{"
_CLOSERS = ")]}"

# Heads that open a real block inside a function body.
_BLOCK_KEYWORDS: tuple[str, ...] = (
    "if", "else", "for", "while", "do", "switch", "try", "catch", "case", "default",
)


@dataclass
class Comment:
    """A comment in the source: [start, end) offsets and its text."""

    start: int
    end: int
    text: str


def skip_literal(text: str, i: int) -> int:
    """Return the index just past the string or char literal starting at i."""
    quote = text[i]
    n = len(text)
    j = i + 1
    while j < n:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == quote:
            return j + 1
        if c == "\n":
            return j
        j += 1
    return n


def _blank(chars: list[str], start: int, end: int) -> None:
    for k in range(start, end):
        if chars[k] != "\n":
            chars[k] = " "


def scan_comments(source: str) -> tuple[str, list[Comment]]:
    """Blank out comments and preprocessor lines.

    Returns the cleaned text and the comments found, in order. Block
    comments do not nest; the first */ closes them.
    """
    chars = list(source)
    comments: list[Comment] = []
    n = len(source)
    i = 0
    at_line_start = True
    while i < n:
        c = source[i]
        if c == '"' or c == "'":
            i = skip_literal(source, i)
            at_line_start = False
            continue
        if c == "/" and i + 1 < n and source[i + 1] == "/":
            j = source.find("\n", i)
            if j < 0:
                j = n
            comments.append(Comment(i, j, source[i:j]))
            _blank(chars, i, j)
            i = j
            continue
        if c == "/" and i + 1 < n and source[i + 1] == "*":
            j = source.find("*/", i + 2)
            j = n if j < 0 else j + 2
            comments.append(Comment(i, j, source[i:j]))
            _blank(chars, i, j)
            i = j
            continue
        if c == "#" and at_line_start:
            j = i
            while True:
                k = source.find("\n", j)
                if k < 0:
                    j = n
                    break
                if k > 0 and source[k - 1] == "\\":
                    j = k + 1
                    continue
                j = k
                break
            _blank(chars, i, j)
            i = j
            continue
        if c == "\n":
            at_line_start = True
        elif not c.isspace():
            at_line_start = False
        i += 1
    return "".join(chars), comments


def strip_comments(source: str) -> str:
    """Blank out // and /* */ comments and preprocessor lines."""
    return scan_comments(source)[0]


def comment_text(raw: str) -> str:
    """Strip comment markers, returning the prose of a comment."""
    if raw.startswith("//"):
        return raw[2:].lstrip("/!").strip()
    body = raw[2:]
    if body.endswith("*/"):
        body = body[:-2]
    lines = []
    for line in body.split("\n"):
        line = line.strip()
        if line.startswith("*"):
            line = line[1:].strip()
        lines.append(line)
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines).lstrip("*!").strip()


def skip_ws(text: str, pos: int, end: int | None = None) -> int:
    """Return the first non-whitespace index at or after pos."""
    if end is None:
        end = len(text)
    while pos < end and text[pos].isspace():
        pos += 1
    return pos


def find_matching(text: str, open_index: int) -> int:
    """Index of the bracket closing the one at open_index, or -1.

    Only the bracket kind at open_index is counted. Angle brackets give up
    at ';', '{' or '}' since those never appear inside a template argument
    list.
    """
    opener = text[open_index]
    closer = _PAIRS[opener]
    depth = 0
    n = len(text)
    i = open_index
    while i < n:
        c = text[i]
        if c == '"' or c == "'":
            i = skip_literal(text, i)
            continue
        if c == opener:
            depth += 1
        elif c == closer:
            depth -= 1
            if depth == 0:
                return i
        elif opener == "<" and c in ";{}":
            return -1
        i += 1
    return -1


def split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split on sep outside (), [], {} and <>. Pieces are stripped; empty text gives []."""
    if not text.strip():
        return []
    parts: list[str] = []
    depth = 0
    angle = 0
    start = 0
    n = len(text)
    i = 0
    while i < n:
        c = text[i]
        if c == '"' or c == "'":
            i = skip_literal(text, i)
            continue
        if c in _OPENERS:
            depth += 1
        elif c in _CLOSERS:
            depth -= 1
        elif c == "<":
            angle += 1
        elif c == ">" and angle > 0 and not (i > 0 and text[i - 1] == "-"):
            angle -= 1
        elif c == sep and depth == 0 and angle == 0:
            parts.append(text[start:i].strip())
            start = i + 1
        i += 1
    parts.append(text[start:].strip())
    return parts


def _opens_angle(text: str, i: int) -> bool:
    """True if the '<' at i starts a template argument list."""
    nxt = text[i + 1] if i + 1 < len(text) else ""
    if nxt in "<=":
        return False
    j = i - 1
    while j >= 0 and text[j] == " ":
        j -= 1
    return j >= 0 and (text[j].isalnum() or text[j] == "_")


def find_top_level(text: str, target: str, angles: bool = False) -> int:
    """Index of the first target char outside (), [], {}, or -1.

    With angles, template argument lists count as nesting too. '=' only
    matches a lone assignment, never ==, <=, >=, != or +=.
    """
    depth = 0
    angle = 0
    n = len(text)
    i = 0
    while i < n:
        c = text[i]
        if c == '"' or c == "'":
            i = skip_literal(text, i)
            continue
        if c in _OPENERS:
            if depth == 0 and angle == 0 and c == target:
                return i
            depth += 1
        elif c in _CLOSERS:
            depth -= 1
        elif angles and c == "<" and depth == 0 and _opens_angle(text, i):
            angle += 1
        elif angles and c == ">" and angle > 0 and depth == 0 and text[i - 1] != "-":
            angle -= 1
        elif c == target and depth == 0 and angle == 0:
            if target != "=":
                return i
            prev = text[i - 1] if i > 0 else ""
            nxt = text[i + 1] if i + 1 < n else ""
            if nxt != "=" and prev not in "=!<>+-*/%&|^":
                return i
        i += 1
    return -1


def statement_end(text: str, pos: int, end: int | None = None) -> int:
    """Index of the next ';' or '{' outside parentheses and brackets, or -1."""
    if end is None:
        end = len(text)
    depth = 0
    i = pos
    while i < end:
        c = text[i]
        if c == '"' or c == "'":
            i = skip_literal(text, i)
            continue
        if c == "(" or c == "[":
            depth += 1
        elif c == ")" or c == "]":
            depth -= 1
        elif depth <= 0 and (c == ";" or c == "{"):
            return i
        elif depth <= 0 and c == "}":
            return -1
        i += 1
    return -1


def skip_to_semicolon(text: str, pos: int, end: int | None = None) -> int:
    """Index of the next ';' at depth 0, stepping over nested blocks, or -1."""
    if end is None:
        end = len(text)
    while pos < end:
        stop = statement_end(text, pos, end)
        if stop < 0:
            return -1
        if text[stop] == ";":
            return stop
        close = find_matching(text, stop)
        if close < 0:
            return -1
        pos = close + 1
    return -1


def line_of(text: str, pos: int) -> int:
    """1-indexed line number of offset pos."""
    return text.count("\n", 0, pos) + 1


def _is_block_head(head: str) -> bool:
    word = head.split("(", 1)[0].strip()
    if not word:
        return head == ""
    first = word.split()[0].rstrip(":")
    return first in _BLOCK_KEYWORDS


def _control_split(text: str) -> tuple[str, str] | None:
    """Split 'if (c) stmt' / 'else stmt' into (head, stmt) for brace-less bodies."""
    stripped = text.lstrip()
    if stripped.startswith("else") and (len(stripped) == 4 or not stripped[4].isalnum() and stripped[4] != "_"):
        rest = stripped[4:].strip()
        if rest.startswith("if"):
            inner = _control_split(rest)
            if inner is None:
                return None
            return ("else " + inner[0], inner[1])
        return ("else", rest)
    for kw in ("if", "while", "for", "switch"):
        if stripped.startswith(kw) and stripped[len(kw):].lstrip().startswith("("):
            open_index = stripped.index("(")
            close = find_matching(stripped, open_index)
            if close < 0:
                return None
            return (stripped[: close + 1], stripped[close + 1 :].strip())
    return None


def split_statements(text: str, base_line: int = 1) -> list[Stmt]:
    """Recover the block structure of a function body.

    Returns SimpleStmt for ';'-terminated statements and BlockStmt for
    control blocks and bare blocks. Brace initializers and lambdas stay
    inside their SimpleStmt.
    """
    stmts: list[Stmt] = []
    n = len(text)
    pos = 0
    line = base_line
    last = 0
    while True:
        pos = skip_ws(text, pos, n)
        if pos >= n:
            break
        line += text.count("\n", last, pos)
        last = pos
        c = text[pos]
        if c == ";":
            pos += 1
            continue
        if c == "}":
            pos += 1
            continue
        if c == "{":
            close = find_matching(text, pos)
            if close < 0:
                stmts.append(SimpleStmt(text=text[pos:].strip(), line=line))
                break
            stmts.append(BlockStmt(head="", body=split_statements(text[pos + 1 : close], line), line=line))
            pos = close + 1
            continue
        stop = statement_end(text, pos, n)
        if stop < 0:
            rest = text[pos:].strip().rstrip("}").strip()
            if rest:
                stmts.append(SimpleStmt(text=rest, line=line))
            break
        if text[stop] == ";":
            stmt_text = " ".join(text[pos:stop].split())
            control = _control_split(stmt_text)
            if control is not None and control[1]:
                inner = split_statements(control[1] + ";", line)
                stmts.append(BlockStmt(head=control[0], body=inner, line=line))
            else:
                stmts.append(SimpleStmt(text=stmt_text, line=line))
            pos = stop + 1
            continue
        head = " ".join(text[pos:stop].split())
        close = find_matching(text, stop)
        if close < 0:
            stmts.append(SimpleStmt(text=text[pos:].strip(), line=line))
            break
        if _is_block_head(head):
            body_line = line + text.count("\n", pos, stop)
            stmts.append(BlockStmt(head=head, body=split_statements(text[stop + 1 : close], body_line), line=line))
            pos = close + 1
            continue
        semi = skip_to_semicolon(text, close + 1, n)
        if semi < 0:
            semi = n
        stmts.append(SimpleStmt(text=" ".join(text[pos:semi].split()), line=line))
        pos = semi + 1
    return stmts
