"""Token kinds and the token record produced by the lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Every kind of token the script language knows."""

    BACKGROUND = auto()
    COMMENT = auto()
    DEFINE = auto()
    SHOW = auto()
    HIDE = auto()
    SCENE = auto()
    MUSIC = auto()
    PLAY = auto()
    STOP = auto()
    CHOICE = auto()
    OPTION = auto()
    LABEL = auto()
    JUMP = auto()
    ARROW = auto()
    IDENTIFIER = auto()
    STRING = auto()
    FLOAT = auto()
    INT = auto()
    COLON = auto()
    COMMA = auto()
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    END_OF_FILE = auto()
    END = auto()
    UNKNOWN = auto()


@dataclass(frozen=True)
class Token:
    """A lexeme together with its kind and the line it was read on."""

    type: TokenType
    value: str
    line: int


# HIDE has no display name and is reported as undefined.
_DISPLAY_NAMES = {
    token_type: token_type.name
    for token_type in TokenType
    if token_type not in (TokenType.HIDE, TokenType.END_OF_FILE)
}
_DISPLAY_NAMES[TokenType.END_OF_FILE] = "EOF"


def token_name(token_type: TokenType) -> str:
    """Return the display name of a token kind, or ``"UNDEFINED"``."""
    return _DISPLAY_NAMES.get(token_type, "UNDEFINED")