import pytest

from novelscript.player import StoryRunner, VisualNovelPlayer, main
from novelscript.story import (
    CharacterAsset,
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
    Transform,
)


def make_story(commands, labels=None):
    return Story(
        backgrounds={"park": "park.png"},
        music={"theme": "theme.ogg", "battle": "battle.ogg"},
        characters={
            "alice": CharacterAsset(
                "Alice",
                {"happy": ("happy.png", Transform()), "sad": ("sad.png", Transform())},
            ),
            "bob": CharacterAsset("Bob", {"calm": ("calm.png", Transform())}),
        },
        commands=list(commands),
        labels=dict(labels if labels is not None else {"start": 0}),
    )


def started(commands, labels=None):
    runner = StoryRunner(make_story(commands, labels))
    runner.start()
    return runner


def test_start_positions_at_start_label():
    runner = started([EndCmd(), SceneCmd("park")], {"intro": 0, "start": 1})
    assert runner.index == 1
    assert runner.state is EngineState.EXECUTING_COMMAND


def test_start_without_start_label_raises():
    runner = StoryRunner(make_story([EndCmd()], {"intro": 0}))
    with pytest.raises(ValueError):
        runner.start()
    assert runner.state is EngineState.IDLE


def test_start_with_empty_script_stays_idle():
    runner = StoryRunner(make_story([], {"start": 0}))
    runner.start()
    assert runner.state is EngineState.IDLE


def test_narrator_dialogue_has_no_speaker_prefix_and_focuses_everyone():
    runner = started([DialogueCmd("You", "Hello there")])
    runner.execute_next()
    assert runner.typewriter.full_text == "Hello there"
    assert runner.state is EngineState.WRITING_DIALOGUE
    assert runner.index == 0
    assert all(runner.focused.values())


def test_character_dialogue_uses_display_name_and_focus():
    runner = started([DialogueCmd("alice", "Hi")])
    runner.execute_next()
    assert runner.typewriter.full_text == "Alice:\nHi"
    assert runner.focused == {"alice": True, "bob": False}


def test_unknown_speaker_uses_id():
    runner = started([DialogueCmd("carol", "Hey")])
    runner.execute_next()
    assert runner.typewriter.full_text == "carol:\nHey"
    assert not any(runner.focused.values())


def test_text_wrapper_is_applied():
    runner = started([DialogueCmd("You", "abc")])
    runner.text_wrapper = str.upper
    runner.execute_next()
    assert runner.typewriter.full_text == "ABC"


def test_space_finishes_typing_then_advances():
    runner = started([DialogueCmd("You", "Hello"), EndCmd()])
    runner.execute_next()
    runner.press_space()
    assert runner.state is EngineState.WAITING_FOR_INPUT
    assert runner.typewriter.typed_text == "Hello"
    runner.press_space()
    assert runner.state is EngineState.EXECUTING_COMMAND
    assert runner.index == 1


def test_space_on_finished_dialogue_advances_at_once():
    runner = started([DialogueCmd("You", "Hello"), EndCmd()])
    runner.execute_next()
    runner.press_space(dialogue_finished=True)
    assert runner.state is EngineState.EXECUTING_COMMAND
    assert runner.index == 1


def test_space_while_executing_does_nothing():
    runner = started([SceneCmd("park")])
    runner.press_space()
    assert runner.index == 0
    assert runner.state is EngineState.EXECUTING_COMMAND


def test_scene_sets_background_and_advances():
    runner = started([SceneCmd("park")])
    runner.execute_next()
    assert runner.current_background == "park"
    assert runner.index == 1
    assert runner.state is EngineState.EXECUTING_COMMAND


def test_show_sets_state_position_and_visibility():
    runner = started([ShowCmd("alice", "sad", Transform(position=(300.0, 40.0)))])
    runner.execute_next()
    assert "alice" in runner.visible_characters
    assert runner.character_states["alice"] == "sad"
    assert runner.positions[("alice", "sad")] == (300.0, 40.0)


def test_show_with_unknown_mode_keeps_previous_state():
    runner = started([ShowCmd("alice", "happy"), ShowCmd("alice", "angry")])
    runner.execute_next()
    runner.execute_next()
    assert runner.character_states["alice"] == "happy"


def test_hide_removes_character():
    runner = started([ShowCmd("bob", "calm"), HideCmd("bob")])
    runner.execute_next()
    runner.execute_next()
    assert "bob" not in runner.visible_characters


def test_non_dialogue_command_restores_focus():
    runner = started([DialogueCmd("alice", "Hi"), SceneCmd("park")])
    runner.execute_next()
    assert runner.focused == {"alice": True, "bob": False}
    runner.press_space(dialogue_finished=True)
    runner.execute_next()
    assert runner.focused == {"alice": True, "bob": True}
    assert runner.current_background == "park"


def test_play_and_stop_emit_audio_events():
    runner = started([PlayCmd("theme"), PlayCmd("battle"), StopCmd("battle")])
    for _ in range(3):
        runner.execute_next()
    assert list(runner.audio_events) == [
        ("play", "theme"),
        ("stop", "theme"),
        ("play", "battle"),
        ("stop", "battle"),
    ]
    assert runner.current_music == ""


def test_play_unknown_track_is_ignored():
    runner = started([PlayCmd("missing")])
    runner.execute_next()
    assert list(runner.audio_events) == []
    assert runner.current_music == ""
    assert runner.index == 1


def test_jump_lands_after_first_command_of_target():
    commands = [JumpCmd("later"), SceneCmd("park"), EndCmd()]
    runner = started(commands, {"start": 0, "later": 1})
    runner.execute_next()
    assert runner.index == runner.story.labels["later"] + 1


def test_jump_to_missing_label_continues():
    runner = started([JumpCmd("nowhere"), EndCmd()])
    runner.execute_next()
    assert runner.index == 1
    assert runner.state is EngineState.EXECUTING_COMMAND


def test_end_finishes_and_stops_execution():
    runner = started([EndCmd(), SceneCmd("park")])
    runner.execute_next()
    assert runner.finished
    position = runner.index
    runner.execute_next()
    assert runner.index == position
    assert runner.current_background == ""


def test_past_end_of_script_goes_idle_and_hides_dialogue():
    runner = started([DialogueCmd("You", "Bye")])
    runner.execute_next()
    runner.press_space(dialogue_finished=True)
    runner.execute_next()
    assert runner.state is EngineState.IDLE
    assert not runner.typewriter.visible


def choice_runner():
    choice = ChoiceCmd(
        "Where to?",
        (ChoiceOption("Left", "left"), ChoiceOption("Right", "right"), ChoiceOption("Up", "up")),
    )
    commands = [DialogueCmd("You", "Hmm"), choice, SceneCmd("park"), EndCmd()]
    runner = started(commands, {"start": 0, "left": 2, "right": 3})
    runner.execute_next()
    runner.press_space(dialogue_finished=True)
    runner.execute_next()
    return runner, choice


def test_choice_waits_and_hides_dialogue():
    runner, choice = choice_runner()
    assert runner.state is EngineState.WAITING_FOR_CHOICE
    assert runner.choice is choice
    assert not runner.typewriter.visible


def test_choose_moves_to_label_start():
    runner, _ = choice_runner()
    assert runner.choose(1) is True
    assert runner.index == runner.story.labels["right"]
    assert runner.state is EngineState.EXECUTING_COMMAND
    assert runner.choice is None


def test_choose_missing_label_stays_waiting():
    runner, _ = choice_runner()
    assert runner.choose(2) is False
    assert runner.state is EngineState.WAITING_FOR_CHOICE


def test_choose_out_of_range_raises():
    runner, _ = choice_runner()
    with pytest.raises(IndexError):
        runner.choose(5)


def test_choose_without_pending_choice_returns_false():
    runner = started([SceneCmd("park")])
    assert runner.choose(0) is False
    assert runner.index == 0


def test_player_wraps_runner_over_story():
    story = make_story([EndCmd()])
    player = VisualNovelPlayer(story, "font.ttf")
    assert player.runner.story is story
    assert player.runner.state is EngineState.IDLE


def test_main_missing_story_file_fails(tmp_path, capsys):
    missing = tmp_path / "absent.json"
    assert main([str(missing)]) == 1
    assert str(missing) in capsys.readouterr().err


def test_main_invalid_json_fails(tmp_path):
    broken = tmp_path / "story.json"
    broken.write_text("{not json", encoding="utf-8")
    assert main([str(broken)]) == 1