# novelscript

`novelscript` turns a short, readable script into a visual novel. A script
declares backgrounds, characters and music, then tells the story in labelled
sections made of dialogue, scene changes, character poses and choices. The
compiler checks the script and writes a JSON story file; the player opens a
pygame window and runs that story.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## The script language

```
# Assets are declared at the top level.
background park("images/park.png")
background cafe("images/cafe.png")

define alice "Alice" {
    happy: ("images/alice_happy.png", scale: 0.5),
    sad: ("images/alice_sad.png")
}

music theme "music/theme.ogg"

# The story starts at the label called "start".
label start:
    scene park
    play theme
    show alice happy (x: 300, y: 120)
    "It was a quiet afternoon."
    alice "Shall we get a coffee?" (speed: 40)
    choice "What do you say?"
        option "Sure!" -> coffee
        option "Maybe later." -> later

label coffee:
    scene cafe
    alice "I knew you'd say that."
    jump finish

label later:
    show alice sad
    alice "Oh... all right."
    stop theme
    jump finish

label finish:
    hide alice
    end
```

Statements:

| Statement | Meaning |
|-----------|---------|
| `background NAME("path", …)` | Declare a background image. |
| `define ID "Name" { mode: ("path", scale: N), … }` | Declare a character and its modes (poses). |
| `music ID "path"` | Declare a music track. |
| `label NAME:` | Start a labelled section; it runs until the next `label`. |
| `scene NAME` | Switch to a declared background. |
| `show ID MODE (x: N, y: N)` | Show a character in one of its modes, optionally at a position. |
| `hide ID` | Hide a character. |
| `ID "text" (speed: N)` | A line spoken by a character; `speed` is characters per second (30 if not given). |
| `"text"` | Narration. |
| `play ID` / `stop ID` | Start (looping) or stop a music track. |
| `choice "prompt" option "text" -> LABEL …` | Let the reader pick where the story goes. |
| `jump LABEL` | Continue at another label. |
| `end` | Close the story. |

Lines starting with `#` are comments. Strings accept the escapes `\n`, `\t`,
`\\`, `\"` and `\'`. Image parameters are `x`, `y` and `scale`; dialogue
parameters are `size` and `speed`.

Things worth knowing:

- Only asset declarations and labels end up in the compiled story. Commands
  written at the top level, outside any label, are checked but not kept.
- A `-` in front of a number is dropped by the tokenizer, so `x: -20` means
  `x: 20`.
- `size` is accepted on dialogue but not written to the story; `x` and `y`
  are used by `show`, `scale` by character modes.
- Image and music paths are turned into absolute paths, relative to the
  directory the compiler is run from.

The compiler stops at the first error and reports it, with its line where it
has one: redefined backgrounds, characters, modes or music; use of anything
that was never declared; unknown parameters; and `jump` or `option` targets
that name no label. Messages are in Spanish.

## Compiling and playing

Compile a script (the output defaults to `juego.json`):

```
novelscript story.sst -o story.json
```

`novelscript -h` lists the options.

Play the compiled story:

```
novelscript-play story.json --font path/to/font.ttf
```

Without arguments the player reads `.tmp/story.json` and the font
`assets/fonts/WinkyRough-Italic-VariableFont_wght.ttf`, both relative to the
current directory. The story must have a label called `start`.

In the player, press Space to finish the line being typed or move on to the
next one, and click an option to make a choice. The window closes when the
story reaches `end`.

## Using it from Python

```python
import json

from novelscript.cli import compile_source
from novelscript.parser import parse
from novelscript.player import StoryRunner
from novelscript.story import EngineState, parse_story

text = open("story.sst", encoding="utf-8").read()
program = parse(text)                      # syntax tree, raises ParseError
story = parse_story(json.loads(compile_source(text)))

runner = StoryRunner(story)
runner.start()
while runner.state is EngineState.EXECUTING_COMMAND:
    runner.execute_next()
print(runner.state, runner.typewriter.full_text)
```

- `novelscript.lexer.Lexer` tokenizes a script; `novelscript.tokens` holds
  `TokenType` and `Token`.
- `novelscript.parser.parse` (or `Parser(lexer).parse_program()`) builds the
  tree of nodes from `novelscript.ast`, whose `generate_code()` renders the
  story JSON.
- `novelscript.cli.compile_file(input_path, output_path)` compiles a file to
  a file.
- `novelscript.story.load_story` / `parse_story` read a compiled story into
  command objects; `wrap_text` and `Typewriter` are the text helpers the
  player uses.
- `novelscript.player.StoryRunner` steps through the commands without any
  window: `press_space()` advances dialogue, `choose(index)` picks an option,
  and music requests collect in `audio_events`.
  `VisualNovelPlayer(story, font_path).run()` shows it all in pygame.

## What it does not do

The compiler produces a JSON story file only; it does not build a standalone
game executable. Playing a story always goes through `novelscript-play` (or
`VisualNovelPlayer`), which needs the image, music and font files to exist at
the paths recorded in the story.