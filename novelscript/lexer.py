"""Lexer turning script text into a stream of tokens."""

from __future__ import annotations

from collections import deque
from os import PathLike
from typing import Iterator, Union

from .tokens import Token, TokenType

_WHITESPACE = frozenset(" \t\n\r\v\f")
_LETTERS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")
_DIGITS = frozenset("0123456789")

_KEYWORDS = {
    "background": TokenType.BACKGROUND,
    "define": TokenType.DEFINE,
    "show": TokenType.SHOW,
    "scene": TokenType.SCENE,
    "hide": TokenType.HIDE,
    "music": TokenType.MUSIC,
    "play": TokenType.PLAY,
    "stop": TokenType.STOP,
    "choice": TokenType.CHOICE,
    "option": TokenType.OPTION,
    "label": TokenType.LABEL,
    "jump": TokenType.JUMP,
    "end": TokenType.END,
}

_PUNCTUATION = {
    ":": TokenType.COLON,
    ",": TokenType.COMMA,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACKET,
    "}": TokenType.RBRACKET,
}

_ESCAPES = {"n": "\n", "t": "\t"}


def _is_word_char(ch: str) -> bool:
    return ch in _LETTERS or ch in _DIGITS or ch == "_"


class Lexer:
    """Reads tokens from script text, with arbitrary lookahead."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0
        self._line = 1
        self._pending: deque[Token] = deque()

    @classmethod
    def from_file(cls, path: Union[str, "PathLike[str]"]) -> "Lexer":
        """Create a lexer over the contents of a file."""
        with open(path, encoding="utf-8", newline="") as handle:
            return cls(handle.read())

    def next_token(self) -> Token:
        """Consume and return the next token."""
        if self._pending:
            return self._pending.popleft()
        return self._scan()

    def peek_token(self, n: int = 1) -> Token:
        """Return the n-th upcoming token without consuming it."""
        if n < 1:
            raise ValueError("lookahead must be at least 1")
        while len(self._pending) < n:
            self._pending.append(self._scan())
        return self._pending[n - 1]

    def __iter__(self) -> Iterator[Token]:
        """Yield tokens up to and including the end-of-file token."""
        while True:
            token = self.next_token()
            yield token
            if token.type is TokenType.END_OF_FILE:
                return

    @property
    def _at_end(self) -> bool:
        return self._pos >= len(self._text)

    @property
    def _current(self) -> str:
        return "" if self._at_end else self._text[self._pos]

    def _advance(self) -> None:
        if not self._at_end:
            self._pos += 1

    def _token(self, token_type: TokenType, value: str) -> Token:
        return Token(token_type, value, self._line)

    def _scan(self) -> Token:
        while not self._at_end:
            ch = self._current
            if ch in _WHITESPACE:
                if ch == "\n":
                    self._line += 1
                self._advance()
            elif ch in _LETTERS or ch == "_":
                return self._identifier()
            elif ch in _DIGITS:
                return self._number()
            elif ch == '"':
                self._advance()
                return self._string()
            elif ch == "#":
                return self._comment()
            else:
                return self._symbol()
        return self._token(TokenType.END_OF_FILE, "")

    def _identifier(self) -> Token:
        start = self._pos
        while _is_word_char(self._current):
            self._advance()
        lexeme = self._text[start:self._pos]
        return self._token(_KEYWORDS.get(lexeme, TokenType.IDENTIFIER), lexeme)

    def _number(self) -> Token:
        start = self._pos
        has_dot = False
        while self._current in _DIGITS or (not has_dot and self._current == "."):
            if self._current == ".":
                has_dot = True
            self._advance()
        lexeme = self._text[start:self._pos]
        return self._token(TokenType.FLOAT if has_dot else TokenType.INT, lexeme)

    def _string(self) -> Token:
        parts: list[str] = []
        while not self._at_end and self._current != '"':
            ch = self._current
            if ch == "\\":
                self._advance()
                ch = _ESCAPES.get(self._current, self._current)
            parts.append(ch)
            self._advance()
        lexeme = "".join(parts)
        if self._current == '"':
            self._advance()
            return self._token(TokenType.STRING, lexeme)
        return self._token(TokenType.UNKNOWN, lexeme)

    def _comment(self) -> Token:
        self._advance()
        start = self._pos
        while not self._at_end and self._current != "\n":
            self._advance()
        return self._token(TokenType.COMMENT, self._text[start:self._pos])

    def _symbol(self) -> Token:
        ch = self._current
        if ch == "-":
            self._advance()
            if self._current in _DIGITS and self._current:
                # The sign is dropped: only the digits form the number.
                return self._number()
            if self._current == ">":
                self._advance()
                return self._token(TokenType.ARROW, "->")
            # The character following a lone '-' is consumed with it.
            self._advance()
            return self._token(TokenType.UNKNOWN, "-")
        self._advance()
        return self._token(_PUNCTUATION.get(ch, TokenType.UNKNOWN), ch)