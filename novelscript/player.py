"""Story playback: an engine-independent runner and a pygame front end."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections import deque
from pathlib import Path
from typing import Callable, Deque, Dict, List, Optional, Sequence, Set, Tuple

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame  # noqa: E402

from .story import (  # noqa: E402
    ChoiceCmd,
    ChoiceOption,
    DialogueCmd,
    EndCmd,
    EngineState,
    HideCmd,
    JumpCmd,
    PlayCmd,
    SceneCmd,
    ShowCmd,
    StopCmd,
    Story,
    Typewriter,
    load_story,
    wrap_text,
)

log = logging.getLogger(__name__)

WINDOW_WIDTH = 1600
WINDOW_HEIGHT = 800
WINDOW_POSITION = (100, 100)
FRAME_RATE = 60
TEXT_BOX_POSX = 0
TEXT_BOX_POSY = int(WINDOW_HEIGHT * 0.65)
TEXT_BOX_WIDTH = WINDOW_WIDTH
TEXT_BOX_HEIGHT = WINDOW_HEIGHT - TEXT_BOX_POSY
TEXT_BOX_PADDING = 100
DIALOGUE_SIZE = 36
DIALOGUE_POSX = TEXT_BOX_POSX + 20
DIALOGUE_POSY = TEXT_BOX_POSY + 20
CHOICE_BOX_WIDTH = 1400
CHOICE_BOX_PADDING = 50
TEXT_OPTION_SIZE = 24
OPTION_PADDING = 10
OPTION_MARGIN = 10
PROMPT_SIZE = 24
PROMPT_MARGIN = 10

NARRATOR = "You"
START_LABEL = "start"
DEFAULT_STORY_PATH = Path(".tmp") / "story.json"
DEFAULT_FONT_PATH = "assets/fonts/WinkyRough-Italic-VariableFont_wght.ttf"

_WHITE = (255, 255, 255)
_BLACK = (0, 0, 0)
_DIM = (128, 128, 128)
_TEXT_BOX_COLOR = (0, 0, 0, 200)
_CHOICE_BG_COLOR = (0, 0, 0, 180)
_OPTION_COLOR = (50, 50, 50, 180)
_OPTION_HOVER_COLOR = (80, 80, 80, 200)
_OPTION_OUTLINE_COLOR = (100, 100, 100, 200)
_OPTION_OUTLINE = 2


class StoryRunner:
    """Steps through a story's commands and keeps the resulting scene state.

    The runner knows nothing about windows or sound: a front end reads its
    attributes to draw, drains ``audio_events`` to play music and forwards
    key presses and option picks to it.
    """

    def __init__(self, story: Story) -> None:
        self.story = story
        self.state = EngineState.IDLE
        self.index = 0
        self.typewriter = Typewriter()
        self.text_wrapper: Callable[[str], str] = lambda text: text
        self.current_background = ""
        self.current_music = ""
        self.character_states: Dict[str, str] = {cid: "" for cid in story.characters}
        self.visible_characters: Set[str] = set()
        self.focused: Dict[str, bool] = {cid: True for cid in story.characters}
        self.positions: Dict[Tuple[str, str], Tuple[float, float]] = {
            (cid, state): transform.position
            for cid, character in story.characters.items()
            for state, (_, transform) in character.states.items()
        }
        self.choice: Optional[ChoiceCmd] = None
        self.finished = False
        self.audio_events: Deque[Tuple[str, str]] = deque()

    def start(self) -> None:
        """Position the runner at the ``start`` label.

        A story without commands leaves the runner idle; one with commands
        but no ``start`` label is an error.
        """
        if not self.story.commands:
            return
        if START_LABEL not in self.story.labels:
            self.state = EngineState.IDLE
            raise ValueError(f"'{START_LABEL}' label not found in story")
        self.index = self.story.labels[START_LABEL]
        self.state = EngineState.EXECUTING_COMMAND

    def execute_next(self) -> None:
        """Carry out the command at the current position."""
        if self.finished:
            return
        commands = self.story.commands
        if self.index >= len(commands):
            self.typewriter.hide()
            self.state = EngineState.IDLE
            log.debug("reached end of script at command %d of %d", self.index, len(commands))
            return

        command = commands[self.index]
        if isinstance(command, DialogueCmd):
            self._start_dialogue(command)
            return
        if isinstance(command, ChoiceCmd):
            self.typewriter.hide()
            self.choice = command
            self.state = EngineState.WAITING_FOR_CHOICE
            return

        for character_id in self.focused:
            self.focused[character_id] = True

        match command:
            case SceneCmd(background_name=name):
                self.current_background = name
            case ShowCmd(character_id=cid, mode=mode, transform=transform):
                if cid in self.character_states:
                    if mode in self.story.characters[cid].states:
                        self.character_states[cid] = mode
                    current = self.character_states[cid]
                    if current:
                        self.positions[(cid, current)] = transform.position
                    self.visible_characters.add(cid)
            case HideCmd(character_id=cid):
                self.visible_characters.discard(cid)
            case PlayCmd(music_id=music_id):
                if self.current_music and self.current_music in self.story.music:
                    self.audio_events.append(("stop", self.current_music))
                if music_id in self.story.music:
                    self.current_music = music_id
                    self.audio_events.append(("play", music_id))
            case StopCmd(music_id=music_id):
                if music_id in self.story.music:
                    self.audio_events.append(("stop", music_id))
                    if self.current_music == music_id:
                        self.current_music = ""
            case EndCmd():
                self.finished = True
            case JumpCmd(target_label=target):
                if target in self.story.labels:
                    self.index = self.story.labels[target]
                else:
                    log.error('jump target label "%s" not found', target)

        self.state = EngineState.IDLE if self.finished else EngineState.EXECUTING_COMMAND
        self.index += 1

    def _start_dialogue(self, command: DialogueCmd) -> None:
        speaker = command.speaker_id
        name = "" if speaker == NARRATOR else speaker
        character = self.story.characters.get(speaker)
        if character is not None:
            name = character.name
        for character_id in self.focused:
            self.focused[character_id] = character_id == speaker or speaker == NARRATOR
        text = f"{name}:\n{command.text}" if name else command.text
        self.typewriter.start(self.text_wrapper(text), command.speed)
        self.state = EngineState.WRITING_DIALOGUE

    def press_space(self, dialogue_finished: Optional[bool] = None) -> None:
        """React to the advance key.

        A finished line moves on; a line still being typed is completed and
        then waits for another press. ``dialogue_finished`` defaults to the
        state of the runner's own typewriter.
        """
        if dialogue_finished is None:
            dialogue_finished = self.typewriter.is_finished()
        if dialogue_finished and self.state is EngineState.WRITING_DIALOGUE:
            self.state = EngineState.EXECUTING_COMMAND
            self.index += 1
            return
        if self.state is EngineState.WRITING_DIALOGUE:
            self.typewriter.finish()
            self.state = EngineState.WAITING_FOR_INPUT
        elif self.state is EngineState.WAITING_FOR_INPUT:
            self.state = EngineState.EXECUTING_COMMAND
            self.index += 1

    def choose(self, index: int) -> bool:
        """Pick option ``index`` of the pending choice.

        Returns whether the story moved to the option's label.
        """
        if self.state is not EngineState.WAITING_FOR_CHOICE or self.choice is None:
            return False
        options = self.choice.options
        if not 0 <= index < len(options):
            raise IndexError(f"choice has no option {index}")
        target = options[index].goto_label
        if target not in self.story.labels:
            log.error('label "%s" not found', target)
            return False
        self.index = self.story.labels[target]
        self.state = EngineState.EXECUTING_COMMAND
        self.choice = None
        return True


def _render_text(font: "pygame.font.Font", text: str, color=_WHITE) -> "pygame.Surface":
    lines = [font.render(line, True, color) for line in text.split("\n")]
    width = max((line.get_width() for line in lines), default=0)
    height = font.get_linesize() * len(lines)
    surface = pygame.Surface((max(width, 1), max(height, 1)), pygame.SRCALPHA)
    for row, line in enumerate(lines):
        surface.blit(line, (0, row * font.get_linesize()))
    return surface


def _translucent_rect(size: Tuple[float, float], color) -> "pygame.Surface":
    surface = pygame.Surface((max(int(size[0]), 1), max(int(size[1]), 1)), pygame.SRCALPHA)
    surface.fill(color)
    return surface


class _ChoiceBox:
    """Lays out and draws a choice prompt with clickable options."""

    def __init__(self, font: "pygame.font.Font") -> None:
        self._font = font
        self._measure = lambda s: font.size(s)[0]
        self.choice: Optional[ChoiceCmd] = None
        self._background = pygame.Rect(0, 0, CHOICE_BOX_WIDTH, 100)
        self._prompt: Optional["pygame.Surface"] = None
        self._prompt_pos = (0.0, 0.0)
        self._options: List[Tuple["pygame.Surface", "pygame.Rect", Tuple[float, float]]] = []
        self._hovered = -1

    def layout(self, choice: ChoiceCmd) -> None:
        self.choice = choice
        self._hovered = -1
        self._prompt = _render_text(
            self._font, wrap_text(choice.prompt, CHOICE_BOX_WIDTH * 0.9, self._measure)
        )
        total_height = PROMPT_MARGIN * 2 + self._prompt.get_height()
        option_width = CHOICE_BOX_WIDTH * 0.9

        texts = []
        for option in choice.options:
            text = _render_text(
                self._font, wrap_text(option.text, option_width * 0.9, self._measure)
            )
            total_height += text.get_height() + OPTION_PADDING * 2 + OPTION_MARGIN * 2
            texts.append(text)

        height = total_height + CHOICE_BOX_PADDING * 2
        bg_x = (WINDOW_WIDTH - CHOICE_BOX_WIDTH) / 2.0
        bg_y = (WINDOW_HEIGHT - height) / 2.0
        self._background = pygame.Rect(int(bg_x), int(bg_y), CHOICE_BOX_WIDTH, int(height))

        self._prompt_pos = (
            (CHOICE_BOX_WIDTH - self._prompt.get_width()) / 2.0 + bg_x,
            bg_y + CHOICE_BOX_PADDING + PROMPT_MARGIN,
        )
        current_y = self._prompt_pos[1] + self._prompt.get_height() + PROMPT_MARGIN

        self._options = []
        for text in texts:
            option_height = text.get_height() + OPTION_PADDING * 2
            rect = pygame.Rect(
                int((CHOICE_BOX_WIDTH - option_width) / 2.0 + bg_x),
                int(current_y + OPTION_MARGIN),
                int(option_width),
                int(option_height),
            )
            text_pos = (
                rect.x + (option_width - text.get_width()) / 2.0,
                current_y + (option_height + OPTION_MARGIN - text.get_height()) / 2.0,
            )
            self._options.append((text, rect, text_pos))
            current_y += option_height + OPTION_MARGIN * 2

    def hide(self) -> None:
        self.choice = None

    def option_at(self, pos: Tuple[int, int]) -> int:
        if self.choice is None:
            return -1
        for number, (_, rect, _) in enumerate(self._options):
            if rect.collidepoint(pos):
                return number
        return -1

    def hover(self, pos: Tuple[int, int]) -> None:
        if self.choice is not None:
            self._hovered = self.option_at(pos)

    def draw(self, screen: "pygame.Surface") -> None:
        if self.choice is None or self._prompt is None:
            return
        screen.blit(_translucent_rect(self._background.size, _CHOICE_BG_COLOR), self._background)
        screen.blit(self._prompt, self._prompt_pos)
        for number, (_, rect, _) in enumerate(self._options):
            color = _OPTION_HOVER_COLOR if number == self._hovered else _OPTION_COLOR
            screen.blit(_translucent_rect(rect.size, color), rect)
            outline = rect.inflate(_OPTION_OUTLINE * 2, _OPTION_OUTLINE * 2)
            pygame.draw.rect(screen, _OPTION_OUTLINE_COLOR, outline, _OPTION_OUTLINE)
        for text, _, text_pos in self._options:
            screen.blit(text, text_pos)


class VisualNovelPlayer:
    """Plays a story in a pygame window."""

    def __init__(self, story: Story, font_path: str = DEFAULT_FONT_PATH) -> None:
        self.story = story
        self.font_path = font_path
        self.runner = StoryRunner(story)
        self._screen: Optional["pygame.Surface"] = None
        self._font: Optional["pygame.font.Font"] = None
        self._choice_box: Optional[_ChoiceBox] = None
        self._textures: Dict[str, "pygame.Surface"] = {}
        self._backgrounds: Dict[str, "pygame.Surface"] = {}
        self._sprites: Dict[Tuple[str, str], Tuple["pygame.Surface", "pygame.Surface"]] = {}
        self._audio = False
        self._playing: Optional[str] = None
        self._wait_for_release = False
        self._running = False

    def run(self) -> None:
        """Open the window and play until it is closed or the story ends."""
        pygame.init()
        try:
            self._open()
            self.runner.start()
            clock = pygame.time.Clock()
            self._running = True
            while self._running:
                delta = clock.tick(FRAME_RATE) / 1000.0
                self._handle_events()
                self._update(delta)
                if self.runner.finished:
                    break
                self._render()
        finally:
            self._running = False
            if self._audio:
                pygame.mixer.music.stop()
            pygame.quit()

    def _open(self) -> None:
        os.environ.setdefault("SDL_VIDEO_WINDOW_POS", "%d,%d" % WINDOW_POSITION)
        self._screen = pygame.display.set_mode((WINDOW_WIDTH, WINDOW_HEIGHT))
        pygame.display.set_caption("visualNovel")
        self._font = pygame.font.Font(self.font_path, DIALOGUE_SIZE)
        option_font = pygame.font.Font(self.font_path, TEXT_OPTION_SIZE)
        self._choice_box = _ChoiceBox(option_font)
        font = self._font
        self.runner.text_wrapper = lambda text: wrap_text(
            text, TEXT_BOX_WIDTH - TEXT_BOX_PADDING, lambda s: font.size(s)[0]
        )
        try:
            pygame.mixer.init()
            self._audio = True
        except pygame.error as exc:
            log.error("audio unavailable: %s", exc)
            self._audio = False
        self._load_assets()

    def _load_texture(self, path: str) -> Optional["pygame.Surface"]:
        if path in self._textures:
            return self._textures[path]
        try:
            texture = pygame.image.load(path).convert_alpha()
        except (pygame.error, OSError) as exc:
            log.error("could not load texture %s: %s", path, exc)
            return None
        self._textures[path] = texture
        return texture

    def _load_assets(self) -> None:
        for name, path in self.story.backgrounds.items():
            texture = self._load_texture(path)
            if texture is not None:
                self._backgrounds[name] = pygame.transform.smoothscale(
                    texture, (WINDOW_WIDTH, WINDOW_HEIGHT)
                )
        for cid, character in self.story.characters.items():
            for state, (path, transform) in character.states.items():
                texture = self._load_texture(path)
                if texture is None:
                    continue
                size = (
                    max(int(texture.get_width() * transform.scale[0]), 1),
                    max(int(texture.get_height() * transform.scale[1]), 1),
                )
                sprite = pygame.transform.smoothscale(texture, size)
                dimmed = sprite.copy()
                dimmed.fill(_DIM, special_flags=pygame.BLEND_RGB_MULT)
                self._sprites[(cid, state)] = (sprite, dimmed)

    def _handle_events(self) -> None:
        assert self._choice_box is not None
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self._running = False
            if event.type == pygame.KEYDOWN and event.key == pygame.K_SPACE:
                self.runner.press_space()
            if self.runner.state is not EngineState.WAITING_FOR_CHOICE:
                continue
            if event.type == pygame.MOUSEBUTTONUP and event.button == 1:
                if self._wait_for_release:
                    self._wait_for_release = False
                    return
                chosen = self._choice_box.option_at(event.pos)
                if chosen != -1 and self.runner.choose(chosen):
                    self._choice_box.hide()
            elif event.type == pygame.MOUSEMOTION:
                self._choice_box.hover(event.pos)

    def _update(self, delta: float) -> None:
        assert self._choice_box is not None
        if self.runner.state is EngineState.EXECUTING_COMMAND:
            self.runner.execute_next()
            choice = self.runner.choice
            if choice is not None and self._choice_box.choice is not choice:
                self._choice_box.layout(choice)
                self._wait_for_release = pygame.mouse.get_pressed()[0]
        self._apply_audio()
        self.runner.typewriter.update(delta)

    def _apply_audio(self) -> None:
        while self.runner.audio_events:
            action, music_id = self.runner.audio_events.popleft()
            if not self._audio:
                continue
            if action == "stop":
                if self._playing == music_id:
                    pygame.mixer.music.stop()
                    self._playing = None
                continue
            try:
                pygame.mixer.music.load(self.story.music[music_id])
                pygame.mixer.music.play(loops=-1)
                self._playing = music_id
            except pygame.error as exc:
                log.error("could not play music %s: %s", music_id, exc)

    def _render(self) -> None:
        assert self._screen is not None and self._font is not None
        assert self._choice_box is not None
        screen = self._screen
        screen.fill(_BLACK)
        background = self._backgrounds.get(self.runner.current_background)
        if background is not None:
            screen.blit(background, (0, 0))
        for cid in self.story.characters:
            if cid not in self.runner.visible_characters:
                continue
            state = self.runner.character_states.get(cid, "")
            sprites = self._sprites.get((cid, state))
            if sprites is None:
                continue
            sprite = sprites[0] if self.runner.focused.get(cid, True) else sprites[1]
            screen.blit(sprite, self.runner.positions.get((cid, state), (0.0, 0.0)))
        typewriter = self.runner.typewriter
        if typewriter.visible:
            screen.blit(
                _translucent_rect((TEXT_BOX_WIDTH, TEXT_BOX_HEIGHT), _TEXT_BOX_COLOR),
                (TEXT_BOX_POSX, TEXT_BOX_POSY),
            )
            if typewriter.typed_text:
                screen.blit(
                    _render_text(self._font, typewriter.typed_text),
                    (DIALOGUE_POSX, DIALOGUE_POSY),
                )
        self._choice_box.draw(screen)
        pygame.display.flip()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Play a compiled story file."""
    parser = argparse.ArgumentParser(prog="novelscript-play", description="Play a compiled story.")
    parser.add_argument("story", nargs="?", default=str(DEFAULT_STORY_PATH))
    parser.add_argument("--font", default=DEFAULT_FONT_PATH)
    args = parser.parse_args(argv)

    try:
        story = load_story(args.story)
    except (OSError, ValueError) as exc:
        print(f"Error: could not load story from {args.story}: {exc}", file=sys.stderr)
        return 1

    try:
        VisualNovelPlayer(story, args.font).run()
    except (pygame.error, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


__all__ = ["StoryRunner", "VisualNovelPlayer", "ChoiceOption", "main"]