from __future__ import annotations
from typing import Any, Dict, List, Tuple

from ..errors import LiteralSyntaxError

_KEYWORDS = {"true": True, "false": False, "null": None, "undefined": None}
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}
MAX_DEPTH = 200   # 객체/배열 중첩 한도


class _Parser:
    """
    JS 객체 리터럴의 '데이터' 부분집합만 읽는 재귀 하강 파서.
      value  := object | array | string | number | true | false | null | undefined
      object := '{' (key ':' value (',' key ':' value)* ','?)? '}'
      key    := identifier | string | number
    그 외(함수 호출, 연산자, 식별자 값 등)는 전부 LiteralSyntaxError.
    """

    def __init__(self, text: str) -> None:
        self.s = text
        self.i = 0
        self.n = len(text)
        self.depth = 0

    # ---------------- 공백 ----------------
    def _skip(self) -> None:
        while self.i < self.n and self.s[self.i].isspace():
            self.i += 1

    def _peek(self) -> str:
        self._skip()
        return self.s[self.i] if self.i < self.n else ""

    def _expect(self, ch: str) -> None:
        if self._peek() != ch:
            got = self.s[self.i] if self.i < self.n else "end of input"
            raise LiteralSyntaxError(f"expected {ch!r}, got {got!r}", self.i)
        self.i += 1

    # ---------------- 진입점 ----------------
    def parse(self) -> Any:
        val = self._value()
        self._skip()
        if self.i != self.n:
            raise LiteralSyntaxError(f"unexpected trailing input {self.s[self.i:self.i + 20]!r}", self.i)
        return val

    def _value(self) -> Any:
        ch = self._peek()
        if ch in ("{", "["):
            if self.depth >= MAX_DEPTH:
                raise LiteralSyntaxError(f"nesting deeper than {MAX_DEPTH} levels", self.i)
            self.depth += 1
            try:
                return self._object() if ch == "{" else self._array()
            finally:
                self.depth -= 1
        if ch in ("'", '"', "`"):
            return self._string()
        if ch == "-" or ch == "+" or ch == "." or ch.isdigit():
            return self._number()
        if ch.isalpha() or ch in "_$":
            start = self.i
            word = self._identifier()
            if word in _KEYWORDS:
                return _KEYWORDS[word]
            raise LiteralSyntaxError(f"identifier {word!r} is not allowed as a value", start)
        if not ch:
            raise LiteralSyntaxError("unexpected end of input", self.i)
        raise LiteralSyntaxError(f"unexpected character {ch!r}", self.i)

    def _object(self) -> Dict[Any, Any]:
        self._expect("{")
        out: Dict[Any, Any] = {}
        while True:
            if self._peek() == "}":
                self.i += 1
                return out
            key = self._key()
            self._expect(":")
            out[key] = self._value()
            ch = self._peek()
            if ch == ",":
                self.i += 1
                continue
            if ch == "}":
                self.i += 1
                return out
            raise LiteralSyntaxError(f"expected ',' or '}}' in object, got {ch or 'end of input'!r}", self.i)

    def _array(self) -> List[Any]:
        self._expect("[")
        out: List[Any] = []
        while True:
            if self._peek() == "]":
                self.i += 1
                return out
            out.append(self._value())
            ch = self._peek()
            if ch == ",":
                self.i += 1
                continue
            if ch == "]":
                self.i += 1
                return out
            raise LiteralSyntaxError(f"expected ',' or ']' in array, got {ch or 'end of input'!r}", self.i)

    def _key(self) -> Any:
        ch = self._peek()
        if ch in ("'", '"', "`"):
            return self._string()
        if ch.isdigit() or ch in "-.":
            return self._number()
        if ch.isalpha() or ch in "_$":
            return self._identifier()
        raise LiteralSyntaxError(f"invalid object key starting with {ch or 'end of input'!r}", self.i)

    def _identifier(self) -> str:
        start = self.i
        while self.i < self.n and (self.s[self.i].isalnum() or self.s[self.i] in "_$"):
            self.i += 1
        return self.s[start:self.i]

    def _string(self) -> str:
        quote = self.s[self.i]
        start = self.i
        self.i += 1
        buf: List[str] = []
        while self.i < self.n:
            ch = self.s[self.i]
            if ch == quote:
                self.i += 1
                return "".join(buf)
            if ch == "\\":
                self.i += 1
                if self.i >= self.n:
                    break
                esc = self.s[self.i]
                if esc == "u":
                    hexdigits = self.s[self.i + 1:self.i + 5]
                    if len(hexdigits) != 4 or any(c not in "0123456789abcdefABCDEF" for c in hexdigits):
                        raise LiteralSyntaxError("bad \\u escape", self.i)
                    buf.append(chr(int(hexdigits, 16)))
                    self.i += 5
                    continue
                if esc == "\n":
                    # 줄 이어쓰기
                    self.i += 1
                    continue
                buf.append(_ESCAPES.get(esc, esc))
                self.i += 1
                continue
            if quote == "`" and ch == "$" and self.s[self.i + 1:self.i + 2] == "{":
                raise LiteralSyntaxError("template interpolation is not allowed", self.i)
            if ch == "\n" and quote != "`":
                raise LiteralSyntaxError("unterminated string", start)
            buf.append(ch)
            self.i += 1
        raise LiteralSyntaxError("unterminated string", start)

    def _number(self) -> Any:
        start = self.i
        if self.s[self.i] in "+-":
            self.i += 1
        digits_start = self.i
        while self.i < self.n and (self.s[self.i].isdigit() or self.s[self.i] in ".eE" or
                                   (self.s[self.i] in "+-" and self.s[self.i - 1] in "eE")):
            self.i += 1
        token = self.s[start:self.i]
        if self.i == digits_start:
            raise LiteralSyntaxError(f"invalid number {token!r}", start)
        try:
            if any(c in token for c in ".eE"):
                return float(token)
            return int(token)
        except ValueError:
            raise LiteralSyntaxError(f"invalid number {token!r}", start) from None


def parse_literal(text: str) -> Any:
    """코드 실행 없이 데이터 리터럴만 읽는다"""
    if not isinstance(text, str):
        raise LiteralSyntaxError(f"expected text, got {type(text).__name__}")
    return _Parser(text).parse()


def find_matching_brace(text: str, start: int) -> Tuple[int, int]:
    """
    text[start] == '{' 부터 깊이가 0 으로 돌아오는 곳까지.
    따옴표 안의 괄호와 이스케이프는 무시. 못 찾으면 (start, -1).
    """
    depth = 0
    quote = ""
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = ""
        elif ch in ("'", '"', "`"):
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return start, i + 1
        i += 1
    return start, -1
