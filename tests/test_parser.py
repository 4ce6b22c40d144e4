import json

import pytest

from novelscript.ast import (
    BackgroundNode,
    CharacterNode,
    ChoiceNode,
    DialogueNode,
    EndNode,
    HideNode,
    JumpNode,
    LabelNode,
    MusicNode,
    PlayNode,
    SceneNode,
    ShowNode,
    StopNode,
)
from novelscript.lexer import Lexer
from novelscript.parser import (
    ParseError,
    Parser,
    check_parameter_dialogue,
    check_parameter_image,
    parse,
)

SCRIPT = """
# assets
background park ("park.png")
music theme "theme.ogg"
define eli "Eli" {
  happy: ("eli_happy.png", scale: 0.5),
  sad: ("eli_sad.png")
}

label start:
  scene park
  play theme
  show eli happy (x: 100, y: 20)
  eli "Hello!" (speed: 40)
  "Narration here."
  choice "Where to?"
    option "Left" -> left
    option "Right" -> right
label left:
  hide eli
  stop theme
  jump right
label right:
  end
"""


def test_full_script_structure():
    program = parse(SCRIPT)
    kinds = [type(stmt) for stmt in program.statements]
    assert kinds == [
        BackgroundNode,
        MusicNode,
        CharacterNode,
        LabelNode,
        LabelNode,
        LabelNode,
    ]
    start = program.statements[3]
    assert start.name == "start"
    assert [type(s) for s in start.statements] == [
        SceneNode,
        PlayNode,
        ShowNode,
        DialogueNode,
        DialogueNode,
        ChoiceNode,
    ]


def test_asset_fields():
    program = parse(SCRIPT)
    background, music, character = program.statements[:3]
    assert background.name == "park"
    assert background.image_path == "park.png"
    assert music.id == "theme"
    assert music.file_path == "theme.ogg"
    assert character.id == "eli"
    assert character.display_name == "Eli"
    assert [m.name for m in character.modes] == ["happy", "sad"]
    assert character.modes[0].parameters == {"scale": 0.5}
    assert character.modes[1].parameters == {}


def test_command_fields():
    start = parse(SCRIPT).statements[3]
    show = start.statements[2]
    assert show.character_id == "eli"
    assert show.mode == "happy"
    assert show.parameters == {"x": 100.0, "y": 20.0}
    spoken = start.statements[3]
    assert spoken.speaker == "eli"
    assert spoken.text == "Hello!"
    assert spoken.parameters == {"speed": 40.0}
    narration = start.statements[4]
    assert narration.speaker == "You"
    assert narration.text == "Narration here."
    choice = start.statements[5]
    assert choice.prompt == "Where to?"
    assert [(o.text, o.goto_label) for o in choice.options] == [
        ("Left", "left"),
        ("Right", "right"),
    ]


def test_later_labels_contents():
    program = parse(SCRIPT)
    left, right = program.statements[4], program.statements[5]
    assert [type(s) for s in left.statements] == [HideNode, StopNode, JumpNode]
    assert left.statements[2].target == "right"
    assert [type(s) for s in right.statements] == [EndNode]


def test_generated_json_is_valid():
    data = json.loads(parse(SCRIPT).generate_code(0))
    assert [entry["label"] for entry in data["script"]] == ["start", "left", "right"]
    assert set(data["assets"]["characters"]["eli"]["states"]) == {"happy", "sad"}


def test_symbols_collected():
    parser = Parser(Lexer(SCRIPT))
    parser.parse_program()
    assert parser.symbols.backgrounds == {"park"}
    assert parser.symbols.music == {"theme"}
    assert parser.symbols.characters == {"eli": {"happy", "sad"}}
    assert parser.symbols.labels == {"start", "left", "right"}
    assert parser.symbols.jump_targets == {"left", "right"}


def test_empty_script():
    assert parse("# only a comment\n").statements == []


def test_check_parameter_image_values():
    assert check_parameter_image("x", "12.5") == 12.5
    assert check_parameter_image("scale", "2abc") == 2.0


def test_check_parameter_image_rejects_unknown_name():
    with pytest.raises(ParseError, match="No existe el parametro : speed"):
        check_parameter_image("speed", "1")


def test_check_parameter_image_rejects_text():
    with pytest.raises(ParseError, match="valor incorrecto para el parametro: x"):
        check_parameter_image("x", "left")


def test_check_parameter_out_of_range():
    with pytest.raises(ParseError, match="muy grande para el parametro : y"):
        check_parameter_image("y", "1e999")


def test_check_parameter_dialogue():
    assert check_parameter_dialogue("size", "24") == 24.0
    with pytest.raises(ParseError, match="No existe el parametro : x"):
        check_parameter_dialogue("x", "1")


def test_unknown_dialogue_parameter_in_script():
    with pytest.raises(ParseError, match="No existe el parametro : volume"):
        parse('"hi" (volume: 3)')


def test_expect_error_reports_line():
    with pytest.raises(ParseError) as info:
        parse('background bg "x.png"')
    assert str(info.value) == "[Línea 1] Error: Se esperaba '('"


def test_invalid_top_level_statement():
    with pytest.raises(ParseError, match=r"\[Línea 2\] Sentencia inválida"):
        parse("\n}")


def test_invalid_statement_inside_label():
    with pytest.raises(ParseError, match="dentro de la etiqueta 'start'"):
        parse("label start:\n  :")


def test_duplicate_background():
    with pytest.raises(ParseError, match="El fondo 'a' ya ha sido definido"):
        parse('background a ("a.png")\nbackground a ("b.png")')


def test_scene_requires_background():
    with pytest.raises(ParseError, match="El fondo 'nowhere' no ha sido definido"):
        parse("scene nowhere")


def test_duplicate_character_mode():
    with pytest.raises(ParseError, match="El modo 'happy' ya está definido"):
        parse('define e "E" { happy: ("a.png"), happy: ("b.png") }')


def test_duplicate_character():
    text = 'define e "E" { a: ("a.png") }\ndefine e "E" { b: ("b.png") }'
    with pytest.raises(ParseError, match="El personaje 'e' ya ha sido definido"):
        parse(text)


def test_show_undefined_character_and_mode():
    with pytest.raises(ParseError, match="El personaje 'ghost' no ha sido definido"):
        parse("show ghost happy")
    with pytest.raises(ParseError, match="El modo 'angry' no está definido"):
        parse('define e "E" { happy: ("a.png") }\nshow e angry')


def test_hide_undefined_character():
    with pytest.raises(ParseError, match="ocultar personaje no definido 'ghost'"):
        parse("hide ghost")


def test_music_errors():
    with pytest.raises(ParseError, match="La pista de música 'm' ya ha sido definida"):
        parse('music m "a.ogg"\nmusic m "b.ogg"')
    with pytest.raises(ParseError, match="La pista de música 'm' no ha sido definida"):
        parse("play m")
    with pytest.raises(ParseError, match="La pista de música 'm' no ha sido definida"):
        parse("stop m")


def test_undefined_jump_target():
    with pytest.raises(ParseError, match="etiqueta no definida 'nowhere'"):
        parse("label start:\n  jump nowhere")


def test_undefined_choice_target():
    with pytest.raises(ParseError, match="etiqueta no definida 'missing'"):
        parse('label start:\n  choice "Go?" option "Yes" -> missing')


def test_jump_before_label_definition_is_accepted():
    program = parse("jump later\nlabel later:\n  end")
    assert isinstance(program.statements[0], JumpNode)
    assert program.statements[1].name == "later"


def test_asset_declared_inside_label_is_kept_there():
    program = parse('label start:\n  background bg ("bg.png")\n  scene bg')
    label = program.statements[0]
    assert [type(s) for s in label.statements] == [BackgroundNode, SceneNode]


def test_comment_between_tokens_is_skipped():
    program = parse('eli # speaker\n "Hi"')
    node = program.statements[0]
    assert (node.speaker, node.text) == ("eli", "Hi")


def test_invalid_parameter_value():
    with pytest.raises(ParseError, match="Valor de parámetro inválido"):
        parse('"hi" (speed: ,)')