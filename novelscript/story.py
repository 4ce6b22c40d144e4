"""Story data loaded from compiled JSON, plus engine-independent helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum, auto
from os import PathLike
from typing import Any, Callable, Dict, List, Mapping, Tuple, Union

DEFAULT_DIALOGUE_SPEED = 30.0


class EngineState(Enum):
    """What the story player is currently doing."""

    IDLE = auto()
    EXECUTING_COMMAND = auto()
    WRITING_DIALOGUE = auto()
    WAITING_FOR_INPUT = auto()
    WAITING_FOR_CHOICE = auto()


@dataclass(frozen=True)
class Transform:
    """Position and scale of a sprite on screen."""

    position: Tuple[float, float] = (0.0, 0.0)
    scale: Tuple[float, float] = (1.0, 1.0)


@dataclass(frozen=True)
class DialogueCmd:
    """Show a line of dialogue, typed out at ``speed`` characters per second."""

    speaker_id: str
    text: str
    speed: float = DEFAULT_DIALOGUE_SPEED


@dataclass(frozen=True)
class ShowCmd:
    """Show a character in one of its states."""

    character_id: str
    mode: str
    transform: Transform = field(default_factory=Transform)


@dataclass(frozen=True)
class HideCmd:
    """Hide a character."""

    character_id: str


@dataclass(frozen=True)
class SceneCmd:
    """Switch the visible background."""

    background_name: str


@dataclass(frozen=True)
class PlayCmd:
    """Start a music track, looping."""

    music_id: str


@dataclass(frozen=True)
class StopCmd:
    """Stop a music track."""

    music_id: str


@dataclass(frozen=True)
class ChoiceOption:
    """One option of a choice and the label it leads to."""

    text: str
    goto_label: str


@dataclass(frozen=True)
class ChoiceCmd:
    """Ask the player to pick one of several options."""

    prompt: str
    options: Tuple[ChoiceOption, ...] = ()


@dataclass(frozen=True)
class JumpCmd:
    """Continue at another label."""

    target_label: str


@dataclass(frozen=True)
class EndCmd:
    """End the story."""


StoryCommand = Union[
    DialogueCmd, ShowCmd, HideCmd, SceneCmd, PlayCmd, StopCmd, ChoiceCmd, JumpCmd, EndCmd
]


@dataclass
class CharacterAsset:
    """A character's display name and its states as (image path, transform)."""

    name: str
    states: Dict[str, Tuple[str, Transform]] = field(default_factory=dict)


@dataclass
class Story:
    """Assets and the flattened command list of a compiled story."""

    backgrounds: Dict[str, str] = field(default_factory=dict)
    music: Dict[str, str] = field(default_factory=dict)
    characters: Dict[str, CharacterAsset] = field(default_factory=dict)
    commands: List[StoryCommand] = field(default_factory=list)
    labels: Dict[str, int] = field(default_factory=dict)


def _string(obj: Mapping[str, Any], key: str) -> str:
    value = obj.get(key) if isinstance(obj, Mapping) else None
    if not isinstance(value, str):
        raise ValueError(f"story field {key!r} must be a string")
    return value


def _pair(value: Any, key: str) -> Tuple[float, float]:
    try:
        return float(value[0]), float(value[1])
    except (TypeError, IndexError, KeyError, ValueError):
        raise ValueError(f"story field {key!r} must hold two numbers") from None


def _section(obj: Any, key: str) -> Mapping[str, Any]:
    value = obj.get(key) if isinstance(obj, Mapping) else None
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"story field {key!r} must be an object")
    return value


def _parse_character(data: Any) -> CharacterAsset:
    character = CharacterAsset(name=_string(data, "name"))
    for state_name, state in _section(data, "states").items():
        transform = Transform()
        if "scale" in state:
            transform = Transform(scale=_pair(state["scale"], "scale"))
        character.states[state_name] = (_string(state, "path"), transform)
    return character


def _parse_command(data: Any) -> StoryCommand | None:
    kind = _string(data, "command")
    if kind == "scene":
        return SceneCmd(_string(data, "background"))
    if kind == "play":
        return PlayCmd(_string(data, "music"))
    if kind == "stop":
        return StopCmd(_string(data, "music"))
    if kind == "show":
        transform = Transform()
        if "position" in data:
            transform = Transform(position=_pair(data["position"], "position"))
        return ShowCmd(_string(data, "character"), _string(data, "state"), transform)
    if kind == "hide":
        return HideCmd(_string(data, "character"))
    if kind == "dialogue":
        speed = data.get("speed", DEFAULT_DIALOGUE_SPEED)
        try:
            speed = float(speed)
        except (TypeError, ValueError):
            raise ValueError("story field 'speed' must be a number") from None
        return DialogueCmd(_string(data, "speaker"), _string(data, "text"), speed)
    if kind == "choice":
        options = tuple(
            ChoiceOption(_string(option, "text"), _string(option, "goto"))
            for option in data.get("options") or ()
        )
        return ChoiceCmd(_string(data, "prompt"), options)
    if kind == "jump":
        return JumpCmd(_string(data, "target"))
    if kind == "end":
        return EndCmd()
    return None


def parse_story(data: Mapping[str, Any]) -> Story:
    """Build a :class:`Story` from decoded story JSON.

    Unknown command kinds are skipped. Each label maps to the index of its
    first command in the flattened command list.
    """
    story = Story()
    assets = _section(data, "assets")
    for name, path in _section(assets, "backgrounds").items():
        if not isinstance(path, str):
            raise ValueError(f"background {name!r} must have a string path")
        story.backgrounds[name] = path
    for name, path in _section(assets, "music").items():
        if not isinstance(path, str):
            raise ValueError(f"music {name!r} must have a string path")
        story.music[name] = path
    for name, character in _section(assets, "characters").items():
        story.characters[name] = _parse_character(character)

    for entry in data.get("script") or ():
        label = _string(entry, "label")
        story.labels[label] = len(story.commands)
        for command_data in entry.get("commands") or ():
            command = _parse_command(command_data)
            if command is not None:
                story.commands.append(command)
    return story


def load_story(path: Union[str, "PathLike[str]"]) -> Story:
    """Read and parse a story JSON file."""
    with open(path, encoding="utf-8") as handle:
        return parse_story(json.load(handle))


def wrap_text(text: str, line_length: float, measure: Callable[[str], float]) -> str:
    """Break ``text`` into lines no wider than ``line_length`` where possible.

    ``measure`` gives the rendered width of a string. Words are split on
    spaces and newlines; a word that overflows starts a new line.
    """
    wrapped = ""
    current = ""
    word = ""
    for ch in text:
        if ch in " \n":
            if measure(current + word) > line_length:
                wrapped += current + "\n"
                current = word + ch
            else:
                current += word + " "
            word = ""
        else:
            word += ch
    if measure(current + word) > line_length:
        wrapped += current + "\n" + word
    else:
        wrapped += current + word
    return wrapped


class Typewriter:
    """Reveals text one character at a time at a fixed speed."""

    def __init__(self) -> None:
        self.full_text = ""
        self.typed_text = ""
        self.visible = False
        self._time_per_char = 0.05
        self._elapsed = 0.0
        self._typing = False

    def start(self, text: str, speed: float) -> None:
        """Begin typing ``text`` at ``speed`` characters per second."""
        self.full_text = text
        self.typed_text = ""
        self._elapsed = 0.0
        self._time_per_char = 1.0 / speed if speed > 0 else 0.0
        self._typing = True
        self.visible = True

    def update(self, delta_time: float) -> None:
        """Advance the clock, revealing at most one character."""
        if not self._typing or len(self.typed_text) >= len(self.full_text):
            return
        self._elapsed += delta_time
        if self._elapsed >= self._time_per_char:
            self._elapsed = 0.0
            self.typed_text += self.full_text[len(self.typed_text)]
            if len(self.typed_text) >= len(self.full_text):
                self._typing = False

    def finish(self) -> None:
        """Reveal the whole text at once."""
        if self._typing:
            self._typing = False
            self.typed_text = self.full_text

    def is_finished(self) -> bool:
        """Return whether typing is complete."""
        return not self._typing

    def hide(self) -> None:
        """Stop displaying the text box."""
        self.visible = False