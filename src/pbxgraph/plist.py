"""
ASCII property-list codec for project documents.

Parsing produces plain Python values: str, list and dict (insertion ordered).
Comments are skipped. Formatting works the other way and understands one
extra value type, PBXRef, which renders an identifier followed by a
`/* comment */`.

String escaping:
    Output is pure ASCII. Quoted strings use backslash escapes for
    backslash, double quote, newline, tab and carriage return, `\\Uxxxx` for
    any other control character, and `&#<decimal>;` for every non-ASCII code
    point. An `&` that would otherwise read back as such a reference is
    written as `&#38;`. unescape() undoes backslash escapes first and
    references second, which makes the pair lossless.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import re
import sys

from pbxgraph.errors import MalformedDocument, MergeConflictDetected

BARE_STRING = re.compile(r'^[A-Za-z0-9_$/:.]+$')
CHARACTER_REFERENCE = re.compile(r'&#(\d+);')
CONFLICT_MARKER = re.compile(r'^(<{7}|={7}|>{7})( |\r?$)', re.MULTILINE)

_ESCAPES = {'\\': '\\\\', '"': '\\"', '\n': '\\n', '\t': '\\t', '\r': '\\r'}
_UNESCAPES = {
    '\\': '\\', '"': '"', "'": "'", 'n': '\n', 't': '\t', 'r': '\r',
    'a': '\a', 'b': '\b', 'f': '\f', 'v': '\v', '0': '\0',
}
# Characters that end an unquoted token
_DELIMITERS = frozenset(' \t\r\n{}();=,"\'')


@dataclass(frozen=True)
class PBXRef:
    """An identifier written with an optional `/* comment */`."""
    identifier: str
    comment: Optional[str] = None


# ==================== ESCAPING ====================

def escape_string(value: str) -> str:
    """ASCII-only body of a quoted string (without the surrounding quotes)."""
    parts = []
    for index, char in enumerate(value):
        if char in _ESCAPES:
            parts.append(_ESCAPES[char])
        elif char == '&' and CHARACTER_REFERENCE.match(value, index):
            parts.append('&#38;')
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            parts.append(f'\\U{ord(char):04x}')
        elif ord(char) > 0x7F:
            parts.append(f'&#{ord(char)};')
        else:
            parts.append(char)
    return ''.join(parts)


def quote(value: str) -> str:
    """Bare token when the string allows it, quoted and escaped otherwise."""
    if BARE_STRING.match(value) and '//' not in value and '/*' not in value:
        return value
    return f'"{escape_string(value)}"'


def escape_comment(text: str) -> str:
    """ASCII comment body that cannot terminate the comment early."""
    parts = []
    for char in text:
        if ord(char) > 0x7F:
            parts.append(f'&#{ord(char)};')
        elif ord(char) < 0x20:
            parts.append(' ')
        else:
            parts.append(char)
    return ''.join(parts).replace('*/', '*_/')


def unescape(body: str) -> str:
    """Inverse of escape_string().

    Raises:
        ValueError: A character reference is outside the Unicode range.
    """
    if '\\' in body:
        parts = []
        index = 0
        while index < len(body):
            char = body[index]
            if char != '\\' or index + 1 >= len(body):
                parts.append(char)
                index += 1
                continue
            code = body[index + 1]
            if code == 'U' and re.fullmatch(r'[0-9A-Fa-f]{4}', body[index + 2:index + 6]):
                parts.append(chr(int(body[index + 2:index + 6], 16)))
                index += 6
            else:
                parts.append(_UNESCAPES.get(code, code))
                index += 2
        body = ''.join(parts)
    if '&#' in body:
        body = CHARACTER_REFERENCE.sub(_character, body)
    return body


def _character(match: re.Match) -> str:
    code_point = int(match.group(1))
    if code_point > sys.maxunicode:
        raise ValueError(f"character reference `{match.group(0)}` is outside the Unicode range")
    return chr(code_point)


# ==================== FORMATTING ====================

def format_value(value: Any, indent: int = 0, single_line: bool = False) -> str:
    """Render a value; nested containers open at `indent` tab stops.

    Dictionary keys are written `isa` first, then in ascending order.
    """
    if isinstance(value, PBXRef):
        if value.comment:
            return f"{value.identifier} /* {escape_comment(value.comment)} */"
        return value.identifier
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, bool):
        return 'YES' if value else 'NO'
    if isinstance(value, (int, float)):
        return quote(str(value))
    if isinstance(value, (list, tuple)):
        if single_line:
            items = ''.join(f"{format_value(item, indent, True)}, " for item in value)
            return f"({items})"
        pad = '\t' * (indent + 1)
        items = ''.join(f"{pad}{format_value(item, indent + 1)},\n" for item in value)
        return "(\n" + items + '\t' * indent + ")"
    if isinstance(value, dict):
        keys = sorted(value, key=lambda key: (key != 'isa', key))
        if single_line:
            entries = ''.join(
                f"{quote(key)} = {format_value(value[key], indent, True)}; " for key in keys
            )
            return "{" + entries + "}"
        pad = '\t' * (indent + 1)
        entries = ''.join(
            f"{pad}{quote(key)} = {format_value(value[key], indent + 1)};\n" for key in keys
        )
        return "{\n" + entries + '\t' * indent + "}"
    raise TypeError(f"Unsupported value type: {type(value)!r}")


# ==================== PARSING ====================

def detect_merge_conflict(text: str, path: Optional[Union[str, Path]] = None) -> None:
    """Raise MergeConflictDetected if version-control markers start any line."""
    match = CONFLICT_MARKER.search(text)
    if match:
        line = text.count('\n', 0, match.start()) + 1
        raise MergeConflictDetected(
            f"merge conflict marker `{match.group(1)}` at line {line}", path
        )


class _Parser:
    def __init__(self, text: str, path: Optional[Union[str, Path]]):
        self.text = text
        self.path = path
        self.pos = 0

    def error(self, message: str, pos: Optional[int] = None) -> MalformedDocument:
        pos = self.pos if pos is None else pos
        line = self.text.count('\n', 0, pos) + 1
        return MalformedDocument(f"line {line}: {message}", self.path)

    def skip(self) -> None:
        text = self.text
        while self.pos < len(text):
            char = text[self.pos]
            if char in ' \t\r\n':
                self.pos += 1
            elif text.startswith('//', self.pos):
                end = text.find('\n', self.pos)
                self.pos = len(text) if end < 0 else end + 1
            elif text.startswith('/*', self.pos):
                end = text.find('*/', self.pos + 2)
                if end < 0:
                    raise self.error("unterminated comment")
                self.pos = end + 2
            else:
                return

    def expect(self, char: str) -> None:
        self.skip()
        if self.pos >= len(self.text) or self.text[self.pos] != char:
            found = self.text[self.pos] if self.pos < len(self.text) else 'end of input'
            raise self.error(f"expected `{char}`, found `{found}`")
        self.pos += 1

    def peek(self) -> Optional[str]:
        self.skip()
        return self.text[self.pos] if self.pos < len(self.text) else None

    def value(self) -> Any:
        char = self.peek()
        if char is None:
            raise self.error("unexpected end of input")
        if char == '{':
            return self.dictionary()
        if char == '(':
            return self.array()
        return self.string()

    def dictionary(self) -> Dict[str, Any]:
        self.expect('{')
        result: Dict[str, Any] = {}
        while self.peek() != '}':
            if self.peek() is None:
                raise self.error("unterminated dictionary")
            key_pos = self.pos
            key = self.string()
            self.expect('=')
            item = self.value()
            self.expect(';')
            if key in result:
                raise self.error(f"duplicate key `{key}`", key_pos)
            result[key] = item
        self.pos += 1
        return result

    def array(self) -> List[Any]:
        self.expect('(')
        result: List[Any] = []
        while self.peek() != ')':
            if self.peek() is None:
                raise self.error("unterminated array")
            result.append(self.value())
            if self.peek() == ',':
                self.pos += 1
            elif self.peek() != ')':
                raise self.error("expected `,` or `)`")
        self.pos += 1
        return result

    def string(self) -> str:
        self.skip()
        text = self.text
        start = self.pos
        if start >= len(text):
            raise self.error("unexpected end of input")
        quote_char = text[start]
        if quote_char in '"\'':
            index = start + 1
            while index < len(text):
                if text[index] == '\\':
                    index += 2
                    continue
                if text[index] == quote_char:
                    try:
                        value = unescape(text[start + 1:index])
                    except ValueError as exc:
                        raise self.error(str(exc), start) from None
                    self.pos = index + 1
                    return value
                index += 1
            raise self.error("unterminated string", start)
        index = start
        while index < len(text) and text[index] not in _DELIMITERS:
            if text.startswith('/*', index) or text.startswith('//', index):
                break
            index += 1
        if index == start:
            raise self.error(f"unexpected `{text[start]}`")
        self.pos = index
        return text[start:index]


def loads(text: str, path: Optional[Union[str, Path]] = None) -> Any:
    """Parse one property-list value; trailing content is an error."""
    parser = _Parser(text, path)
    result = parser.value()
    if parser.peek() is not None:
        raise parser.error("unexpected content after the top-level value")
    return result
