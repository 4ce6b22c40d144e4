"""Recursive-descent parser building a checked syntax tree from tokens."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Dict, List, Set

from .ast import (
    ASTNode,
    BackgroundNode,
    CharacterModeData,
    CharacterNode,
    ChoiceNode,
    DialogueNode,
    EndNode,
    HideNode,
    JumpNode,
    LabelNode,
    MusicNode,
    OptionNode,
    Parameters,
    PlayNode,
    ProgramNode,
    SceneNode,
    ShowNode,
    StopNode,
)
from .lexer import Lexer
from .tokens import Token, TokenType


class ParseError(ValueError):
    """Raised when a script is syntactically or semantically invalid."""


class ParameterMode(Enum):
    """Which family of parameters a parenthesised list may hold."""

    IMAGE = auto()
    DIALOGUE = auto()


@dataclass
class SymbolTable:
    """Names declared so far, used for semantic checks."""

    backgrounds: Set[str] = field(default_factory=set)
    characters: Dict[str, Set[str]] = field(default_factory=dict)
    music: Set[str] = field(default_factory=set)
    labels: Set[str] = field(default_factory=set)
    jump_targets: Set[str] = field(default_factory=set)


_NUMBER_PREFIX = re.compile(
    r"""\s*(?P<sign>[+-]?)(?:
        (?P<hex>0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)(?:[pP][+-]?\d+)?)
      | (?P<dec>(?P<mant>\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
      | (?P<inf>inf(?:inity)?)
      | (?P<nan>nan(?:\([0-9A-Za-z_]*\))?)
    )""",
    re.IGNORECASE | re.VERBOSE,
)


class _OutOfRange(Exception):
    pass


def _parse_double(text: str) -> float:
    """Parse the longest numeric prefix of ``text`` as a double."""
    match = _NUMBER_PREFIX.match(text)
    if match is None:
        raise ValueError(text)
    sign = -1.0 if match.group("sign") == "-" else 1.0
    if match.group("inf"):
        return sign * math.inf
    if match.group("nan"):
        return math.nan
    if match.group("hex"):
        try:
            value = float.fromhex(match.group("hex"))
        except OverflowError as exc:
            raise _OutOfRange(text) from exc
        return sign * value
    value = float(match.group("dec"))
    if math.isinf(value):
        raise _OutOfRange(text)
    if value == 0.0 and any(ch in "123456789" for ch in match.group("mant")):
        raise _OutOfRange(text)
    return sign * value


def _check_parameter(allowed: frozenset, name: str, value: str) -> float:
    if name not in allowed:
        raise ParseError(f"[Error: No existe el parametro : {name}]")
    try:
        return _parse_double(value)
    except _OutOfRange:
        raise ParseError(
            f"[Error: El valor es muy grande para el parametro : {name}]"
        ) from None
    except ValueError:
        raise ParseError(
            f"[Error: Se ingreso un valor incorrecto para el parametro: {name}]"
        ) from None


_IMAGE_PARAMETERS = frozenset({"x", "y", "scale"})
_DIALOGUE_PARAMETERS = frozenset({"size", "speed"})


def check_parameter_image(name: str, value: str) -> float:
    """Validate an image parameter (x, y, scale) and return its value."""
    return _check_parameter(_IMAGE_PARAMETERS, name, value)


def check_parameter_dialogue(name: str, value: str) -> float:
    """Validate a dialogue parameter (size, speed) and return its value."""
    return _check_parameter(_DIALOGUE_PARAMETERS, name, value)


_PARAMETER_CHECKS: Dict[ParameterMode, Callable[[str, str], float]] = {
    ParameterMode.IMAGE: check_parameter_image,
    ParameterMode.DIALOGUE: check_parameter_dialogue,
}

_VALUE_TOKENS = frozenset(
    {TokenType.INT, TokenType.FLOAT, TokenType.IDENTIFIER, TokenType.STRING}
)


class Parser:
    """Parses a token stream into a :class:`ProgramNode`."""

    def __init__(self, lexer: Lexer) -> None:
        self._lexer = lexer
        self._current = Token(TokenType.UNKNOWN, "", 0)
        self.symbols = SymbolTable()
        self._statement_parsers: Dict[TokenType, Callable[[], ASTNode]] = {
            TokenType.BACKGROUND: self._parse_background,
            TokenType.DEFINE: self._parse_define,
            TokenType.SCENE: self._parse_scene,
            TokenType.SHOW: self._parse_show,
            TokenType.HIDE: self._parse_hide,
            TokenType.MUSIC: self._parse_music,
            TokenType.PLAY: self._parse_play,
            TokenType.STOP: self._parse_stop,
            TokenType.CHOICE: self._parse_choice,
            TokenType.JUMP: self._parse_jump,
            TokenType.END: self._parse_end,
        }
        self._advance()

    # -- token handling -------------------------------------------------

    def _advance(self) -> None:
        self._current = self._lexer.next_token()
        while self._current.type is TokenType.COMMENT:
            self._current = self._lexer.next_token()

    def _expect(self, token_type: TokenType, message: str) -> None:
        if self._current.type is not token_type:
            raise ParseError(f"[Línea {self._current.line}] Error: {message}")
        self._advance()

    def _semantic_error(self, message: str) -> ParseError:
        return ParseError(
            f"[Línea {self._current.line}] Error Semántico: {message}"
        )

    def _is_dialogue(self) -> bool:
        if self._current.type is TokenType.STRING:
            return True
        if self._current.type is TokenType.IDENTIFIER:
            return self._lexer.peek_token(1).type is TokenType.STRING
        return False

    def _statement(self) -> Callable[[], ASTNode] | None:
        """Return the parser for the statement at the current token, if any."""
        parse = self._statement_parsers.get(self._current.type)
        if parse is not None:
            return parse
        if self._is_dialogue():
            return self._parse_dialogue
        return None

    # -- program and labels ---------------------------------------------

    def parse_program(self) -> ProgramNode:
        """Parse the whole token stream and check jump targets."""
        program = ProgramNode()
        while self._current.type is not TokenType.END_OF_FILE:
            if self._current.type is TokenType.LABEL:
                program.statements.append(self._parse_label())
                continue
            parse = self._statement()
            if parse is None:
                raise ParseError(
                    f"[Línea {self._current.line}] Sentencia inválida"
                )
            program.statements.append(parse())

        for target in sorted(self.symbols.jump_targets):
            if target not in self.symbols.labels:
                raise ParseError(
                    "Error Semántico: Se hace referencia a la etiqueta no "
                    f"definida '{target}' en un comando 'jump' o 'choice'."
                )
        return program

    def _parse_label(self) -> LabelNode:
        node = LabelNode()
        self._advance()
        node.name = self._current.value
        self._expect(
            TokenType.IDENTIFIER, "Se esperaba un identificador para la etiqueta"
        )
        self.symbols.labels.add(node.name)
        self._expect(
            TokenType.COLON, "Se esperaba ':' después del nombre de la etiqueta"
        )

        while self._current.type not in (TokenType.LABEL, TokenType.END_OF_FILE):
            parse = self._statement()
            if parse is None:
                raise ParseError(
                    f"[Línea {self._current.line}] Sentencia inválida dentro "
                    f"de la etiqueta '{node.name}'."
                )
            node.statements.append(parse())
        return node

    # -- parameters -----------------------------------------------------

    def _parse_parameters(self, mode: ParameterMode, parameters: Parameters) -> None:
        self._parse_parameter(mode, parameters)
        while self._current.type is TokenType.COMMA:
            self._advance()
            self._parse_parameter(mode, parameters)

    def _parse_parameter(self, mode: ParameterMode, parameters: Parameters) -> None:
        name = self._current.value
        self._expect(TokenType.IDENTIFIER, "Se esperaba nombre de parámetro")
        self._expect(TokenType.COLON, "Se esperaba ':'")
        if self._current.type not in _VALUE_TOKENS:
            raise ParseError("Valor de parámetro inválido")
        parameters[name] = _PARAMETER_CHECKS[mode](name, self._current.value)
        self._advance()

    def _parse_optional_parameters(self, mode: ParameterMode) -> Parameters:
        parameters: Parameters = {}
        if self._current.type is TokenType.LPAREN:
            self._advance()
            self._parse_parameters(mode, parameters)
            self._expect(TokenType.RPAREN, "Se esperaba ')'")
        return parameters

    # -- assets ---------------------------------------------------------

    def _parse_background(self) -> BackgroundNode:
        node = BackgroundNode()
        self._advance()
        node.name = self._current.value
        self._expect(TokenType.IDENTIFIER, "Se esperaba nombre de fondo")

        if node.name in self.symbols.backgrounds:
            raise self._semantic_error(
                f"El fondo '{node.name}' ya ha sido definido."
            )
        self.symbols.backgrounds.add(node.name)

        self._expect(TokenType.LPAREN, "Se esperaba '('")
        node.image_path = self._current.value
        self._expect(TokenType.STRING, "Se esperaba ruta de imagen")

        if self._current.type is TokenType.COMMA:
            self._advance()
            self._parse_parameters(ParameterMode.IMAGE, node.parameters)

        self._expect(TokenType.RPAREN, "Se esperaba ')'")
        return node

    def _parse_define(self) -> CharacterNode:
        node = CharacterNode()
        self._advance()
        node.id = self._current.value
        self._expect(TokenType.IDENTIFIER, "Se esperaba ID de personaje")

        if node.id in self.symbols.characters:
            raise self._semantic_error(
                f"El personaje '{node.id}' ya ha sido definido."
            )
        modes = self.symbols.characters.setdefault(node.id, set())

        node.display_name = self._current.value
        self._expect(TokenType.STRING, "Se esperaba nombre visible")
        self._expect(TokenType.LBRACKET, "Se esperaba '{'")

        while self._current.type not in (TokenType.RBRACKET, TokenType.END_OF_FILE):
            mode = self._parse_mode()
            if mode.name in modes:
                raise self._semantic_error(
                    f"El modo '{mode.name}' ya está definido para el "
                    f"personaje '{node.id}'."
                )
            modes.add(mode.name)
            node.modes.append(mode)
            if self._current.type is TokenType.COMMA:
                self._advance()

        self._expect(TokenType.RBRACKET, "Se esperaba '}'")
        return node

    def _parse_mode(self) -> CharacterModeData:
        mode = CharacterModeData()
        mode.name = self._current.value
        self._expect(TokenType.IDENTIFIER, "Se esperaba nombre de modo")
        self._expect(TokenType.COLON, "Se esperaba ':'")
        self._expect(TokenType.LPAREN, "Se esperaba '('")

        mode.image_path = self._current.value
        self._expect(TokenType.STRING, "Se esperaba ruta de imagen")

        if self._current.type is TokenType.COMMA:
            self._advance()
            self._parse_parameters(ParameterMode.IMAGE, mode.parameters)

        self._expect(TokenType.RPAREN, "Se esperaba ')'")
        return mode

    def _parse_music(self) -> MusicNode:
        node = MusicNode()
        self._advance()
        node.id = self._current.value
        self._expect(TokenType.IDENTIFIER, "Se esperaba un ID para la música")

        if node.id in self.symbols.music:
            raise self._semantic_error(
                f"La pista de música '{node.id}' ya ha sido definida."
            )
        self.symbols.music.add(node.id)

        node.file_path = self._current.value
        self._expect(TokenType.STRING, "Se esperaba la ruta del archivo de música")
        return node

    # -- commands -------------------------------------------------------

    def _parse_scene(self) -> SceneNode:
        node = SceneNode()
        self._advance()
        node.name = self._current.value
        self._expect(TokenType.IDENTIFIER, "Se esperaba nombre de escena o fondo")

        if node.name not in self.symbols.backgrounds:
            raise self._semantic_error(f"El fondo '{node.name}' no ha sido definido.")

        node.parameters = self._parse_optional_parameters(ParameterMode.IMAGE)
        return node

    def _parse_show(self) -> ShowNode:
        node = ShowNode()
        self._advance()
        node.character_id = self._current.value
        self._expect(TokenType.IDENTIFIER, "Se esperaba nombre del personaje")

        modes = self.symbols.characters.get(node.character_id)
        if modes is None:
            raise self._semantic_error(
                f"El personaje '{node.character_id}' no ha sido definido."
            )

        node.mode = self._current.value
        self._expect(TokenType.IDENTIFIER, "Se esperaba el modo del personaje")

        if node.mode not in modes:
            raise self._semantic_error(
                f"El modo '{node.mode}' no está definido para el personaje "
                f"'{node.character_id}'."
            )

        node.parameters = self._parse_optional_parameters(ParameterMode.IMAGE)
        return node

    def _parse_hide(self) -> HideNode:
        node = HideNode()
        self._advance()
        node.character_id = self._current.value
        self._expect(
            TokenType.IDENTIFIER, "Se esperaba nombre del personaje o imagen"
        )
        node.parameters = self._parse_optional_parameters(ParameterMode.IMAGE)

        if node.character_id not in self.symbols.characters:
            raise self._semantic_error(
                "Intento de ocultar personaje no definido "
                f"'{node.character_id}'."
            )
        return node

    def _parse_dialogue(self) -> DialogueNode:
        node = DialogueNode()
        if self._current.type is TokenType.STRING:
            node.speaker = "You"
            node.text = self._current.value
            self._advance()
        elif self._current.type is TokenType.IDENTIFIER:
            node.speaker = self._current.value
            self._advance()
            node.text = self._current.value
            self._expect(TokenType.STRING, "Se esperaba diálogo entre comillas")
        else:
            raise ParseError("Diálogo inválido")
        node.parameters = self._parse_optional_parameters(ParameterMode.DIALOGUE)
        return node

    def _parse_music_reference(self, node_type: type, message: str):
        node = node_type()
        self._advance()
        node.music_id = self._current.value
        self._expect(TokenType.IDENTIFIER, message)
        if node.music_id not in self.symbols.music:
            raise self._semantic_error(
                f"La pista de música '{node.music_id}' no ha sido definida."
            )
        return node

    def _parse_play(self) -> PlayNode:
        return self._parse_music_reference(
            PlayNode, "Se esperaba el ID de la música a reproducir"
        )

    def _parse_stop(self) -> StopNode:
        return self._parse_music_reference(
            StopNode, "Se esperaba el ID de la música a detener"
        )

    def _parse_choice(self) -> ChoiceNode:
        node = ChoiceNode()
        self._advance()
        node.prompt = self._current.value
        self._expect(
            TokenType.STRING, "Se esperaba un string para el prompt de la elección"
        )

        options: List[OptionNode] = []
        while self._current.type is TokenType.OPTION:
            option = OptionNode()
            self._advance()
            option.text = self._current.value
            self._expect(
                TokenType.STRING, "Se esperaba un string para el texto de la opción"
            )
            self._expect(
                TokenType.ARROW, "Se esperaba '->' después del texto de la opción"
            )
            option.goto_label = self._current.value
            self._expect(
                TokenType.IDENTIFIER,
                "Se esperaba un identificador para la etiqueta de salto",
            )
            self.symbols.jump_targets.add(option.goto_label)
            options.append(option)
        node.options = options
        return node

    def _parse_jump(self) -> JumpNode:
        node = JumpNode()
        self._advance()
        node.target = self._current.value
        self._expect(TokenType.IDENTIFIER, "Se esperaba el ID de la etiqueta a ir")
        self.symbols.jump_targets.add(node.target)
        return node

    def _parse_end(self) -> EndNode:
        self._advance()
        return EndNode()


def parse(text: str) -> ProgramNode:
    """Parse script text into a checked :class:`ProgramNode`."""
    return Parser(Lexer(text)).parse_program()