"""Syntax tree of a story script and its rendering to story JSON."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Dict, List, Union

ParameterValue = Union[int, float, str]
Parameters = Dict[str, ParameterValue]

_JSON_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def escape_json_string(text: str) -> str:
    """Escape quotes, backslashes and common control characters for JSON."""
    return "".join(_JSON_ESCAPES.get(ch, ch) for ch in text)


def format_number(value: ParameterValue) -> str:
    """Format a numeric parameter the way a default stream prints a double."""
    return f"{float(value):g}"


def _absolute(path: Union[str, "PathLike[str]"]) -> str:
    return str(Path(path).absolute())


def _pad(indent: int) -> str:
    return " " * indent


class ASTNode(ABC):
    """A node of the story syntax tree."""

    @abstractmethod
    def generate_code(self, indent: int = 0) -> str:
        """Return the JSON fragment for this node, indented by ``indent``."""


@dataclass
class MusicNode(ASTNode):
    """Declaration of a music track."""

    id: str = ""
    file_path: str = ""

    def generate_code(self, indent: int = 0) -> str:
        return (
            f'{_pad(indent)}"{self.id}": '
            f'"{escape_json_string(_absolute(self.file_path))}"'
        )


@dataclass
class PlayNode(ASTNode):
    """Start playing a music track."""

    music_id: str = ""

    def generate_code(self, indent: int = 0) -> str:
        return f'{_pad(indent)}{{ "command": "play", "music": "{self.music_id}" }}'


@dataclass
class StopNode(ASTNode):
    """Stop a music track."""

    music_id: str = ""

    def generate_code(self, indent: int = 0) -> str:
        return f'{_pad(indent)}{{ "command": "stop", "music": "{self.music_id}" }}'


@dataclass
class BackgroundNode(ASTNode):
    """Declaration of a background image."""

    name: str = ""
    image_path: str = ""
    parameters: Parameters = field(default_factory=dict)

    def generate_code(self, indent: int = 0) -> str:
        return (
            f'{_pad(indent)}"{self.name}": '
            f'"{escape_json_string(_absolute(self.image_path))}"'
        )


@dataclass
class CharacterModeData:
    """One named look of a character and the image that shows it."""

    name: str = ""
    image_path: str = ""
    parameters: Parameters = field(default_factory=dict)


@dataclass
class CharacterNode(ASTNode):
    """Declaration of a character with its modes."""

    id: str = ""
    display_name: str = ""
    modes: List[CharacterModeData] = field(default_factory=list)

    def generate_code(self, indent: int = 0) -> str:
        states = []
        for mode in self.modes:
            entry = (
                f'{_pad(indent + 4)}"{mode.name}": {{ "path": '
                f'"{escape_json_string(_absolute(mode.image_path))}"'
            )
            if "scale" in mode.parameters:
                scale = format_number(mode.parameters["scale"])
                entry += f', "scale": [{scale}, {scale}]'
            states.append(entry + " }")
        return (
            f'{_pad(indent)}"{self.id}": {{\n'
            f'{_pad(indent + 2)}"name": "{escape_json_string(self.display_name)}",\n'
            f'{_pad(indent + 2)}"states": {{\n'
            + ",\n".join(states)
            + f"\n{_pad(indent + 2)}}}\n"
            + f"{_pad(indent)}}}"
        )


@dataclass
class ShowNode(ASTNode):
    """Show a character in a given mode."""

    character_id: str = ""
    mode: str = ""
    parameters: Parameters = field(default_factory=dict)

    def generate_code(self, indent: int = 0) -> str:
        out = (
            f'{_pad(indent)}{{ "command": "show", '
            f'"character": "{self.character_id}", "state": "{self.mode}"'
        )
        if "x" in self.parameters or "y" in self.parameters:
            x = format_number(self.parameters.get("x", 0.0))
            y = format_number(self.parameters.get("y", 0.0))
            out += f', "position": [{x}, {y}]'
        return out + " }"


@dataclass
class HideNode(ASTNode):
    """Hide a character."""

    character_id: str = ""
    parameters: Parameters = field(default_factory=dict)

    def generate_code(self, indent: int = 0) -> str:
        return (
            f'{_pad(indent)}{{ "command": "hide", '
            f'"character": "{self.character_id}" }}'
        )


@dataclass
class DialogueNode(ASTNode):
    """A line of dialogue spoken by a character or the narrator."""

    speaker: str = ""
    text: str = ""
    parameters: Parameters = field(default_factory=dict)

    def generate_code(self, indent: int = 0) -> str:
        out = (
            f'{_pad(indent)}{{ "command": "dialogue", '
            f'"speaker": "{self.speaker}", '
            f'"text": "{escape_json_string(self.text)}"'
        )
        if "speed" in self.parameters:
            out += f', "speed": {format_number(self.parameters["speed"])}'
        return out + " }"


@dataclass
class SceneNode(ASTNode):
    """Switch to a background."""

    name: str = ""
    parameters: Parameters = field(default_factory=dict)

    def generate_code(self, indent: int = 0) -> str:
        return f'{_pad(indent)}{{ "command": "scene", "background": "{self.name}" }}'


@dataclass
class OptionNode(ASTNode):
    """One option of a choice and the label it leads to."""

    text: str = ""
    goto_label: str = ""

    def generate_code(self, indent: int = 0) -> str:
        return (
            f'{_pad(indent)}{{ "text": "{escape_json_string(self.text)}", '
            f'"goto": "{escape_json_string(self.goto_label)}" }}'
        )


@dataclass
class ChoiceNode(ASTNode):
    """A prompt with options to choose from."""

    prompt: str = ""
    options: List[OptionNode] = field(default_factory=list)

    def generate_code(self, indent: int = 0) -> str:
        options = ",\n".join(option.generate_code(indent + 4) for option in self.options)
        return (
            f'{_pad(indent)}{{ "command": "choice", '
            f'"prompt": "{escape_json_string(self.prompt)}", "options": [\n'
            + options
            + f"\n{_pad(indent + 2)}]\n"
            + f"{_pad(indent)}}}"
        )


@dataclass
class LabelNode(ASTNode):
    """A named block of statements."""

    name: str = ""
    statements: List[ASTNode] = field(default_factory=list)

    def generate_code(self, indent: int = 0) -> str:
        commands = ",\n".join(stmt.generate_code(indent + 4) for stmt in self.statements)
        return (
            f"{_pad(indent)}{{\n"
            f'{_pad(indent + 2)}"label": "{self.name}",\n'
            f'{_pad(indent + 2)}"commands": [\n'
            + commands
            + f"\n{_pad(indent + 2)}]\n"
            + f"{_pad(indent)}}}"
        )


@dataclass
class JumpNode(ASTNode):
    """Continue at another label."""

    target: str = ""

    def generate_code(self, indent: int = 0) -> str:
        return f'{_pad(indent)}{{ "command": "jump", "target": "{self.target}" }}'


@dataclass
class EndNode(ASTNode):
    """End the story."""

    def generate_code(self, indent: int = 0) -> str:
        return f'{_pad(indent)}{{"command": "end"}}'


@dataclass
class ProgramNode(ASTNode):
    """A whole script: asset declarations and labelled blocks."""

    statements: List[ASTNode] = field(default_factory=list)

    def _section(self, node_type: type, indent: int) -> str:
        return ",\n".join(
            stmt.generate_code(indent)
            for stmt in self.statements
            if isinstance(stmt, node_type)
        )

    def generate_code(self, indent: int = 0) -> str:
        return (
            "{\n"
            '  "assets": {\n'
            '    "backgrounds": {\n'
            + self._section(BackgroundNode, 6)
            + "\n    },\n"
            '    "music": {\n'
            + self._section(MusicNode, 6)
            + "\n    },\n"
            '    "characters": {\n'
            + self._section(CharacterNode, 6)
            + "\n    }\n"
            "  },\n"
            '  "script": [\n'
            + self._section(LabelNode, 4)
            + "\n  ]\n"
            "}\n"
        )