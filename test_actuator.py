"""
Tests for button discovery and the page-free parts of the actuator
"""
import asyncio
from types import SimpleNamespace

from actuator import SKIP_PREDICATES, SUBMIT_PREDICATES, Actuator, pick_button
from config import SolverConfig
from models import SubQuestion


def button(text, *classes, tag="button", type="", disabled=False):
    return {"text": text, "classes": list(classes), "tag": tag, "type": type, "disabled": disabled}


class RecordingPage:
    def __init__(self):
        self.evaluated = []

    async def evaluate(self, script, arg=None):
        self.evaluated.append(arg)


def make_actuator(**overrides):
    page = RecordingPage()
    return Actuator(SimpleNamespace(page=page), SolverConfig(**overrides)), page


def test_submit_prefers_answer_button_over_skip():
    buttons = [button("Bỏ qua", "btn", "btn-gray"), button("Trả lời", "btn", "btn-primary")]
    assert pick_button(buttons, SUBMIT_PREDICATES) == 1
    assert pick_button(buttons, SKIP_PREDICATES) == 0


def test_submit_ignores_disabled_buttons():
    buttons = [button("Trả lời", "btn-primary", disabled=True), button("Submit")]
    assert pick_button(buttons, SUBMIT_PREDICATES) == 1


def test_submit_ignores_hidden_buttons():
    hidden = button("Trả lời", "btn-primary")
    hidden["visible"] = False
    assert pick_button([hidden, button("Check Answer")], SUBMIT_PREDICATES) == 1


def test_submit_matches_primary_class_without_text():
    buttons = [button("Next"), button("", "btn", "btn-lg", "btn-block", "ripple", "btn-primary")]
    assert pick_button(buttons, SUBMIT_PREDICATES) == 1


def test_submit_falls_back_to_input_submit():
    buttons = [button("Close"), button("Go", tag="input", type="submit")]
    assert pick_button(buttons, SUBMIT_PREDICATES) == 1


def test_no_matching_button():
    assert pick_button([button("Close")], SUBMIT_PREDICATES) is None
    assert pick_button([], SKIP_PREDICATES) is None


def test_skip_matches_text_case_insensitively():
    assert pick_button([button("Next"), button("SKIP this")], SKIP_PREDICATES) == 1


def test_mark_done_passes_known_handles():
    actuator, page = make_actuator()
    asyncio.run(actuator.mark_done(["1", None, "20"]))
    assert page.evaluated == [['[data-hw-id="1"]', '[data-hw-id="20"]']]


def test_mark_done_without_handles_is_noop():
    actuator, page = make_actuator()
    asyncio.run(actuator.mark_done([None]))
    assert page.evaluated == []


def test_true_false_without_target_fails():
    actuator, page = make_actuator()
    sub_question = SubQuestion("a", "Statement", true_handle=None, false_handle="8")
    assert asyncio.run(actuator.select_true_false(sub_question, True)) is False
    assert page.evaluated == []


def test_typing_delays_follow_mode():
    actuator, _ = make_actuator(human_delay_min=100, human_delay_max=300)
    assert actuator._typing_delays() == (100, 300)
    actuator.config.instant_mode = True
    assert actuator._typing_delays() == (0, 50)
