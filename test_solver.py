"""
End-to-end solve cycles against fake page, actuator and completion service
"""
import asyncio

import pytest

from config import SolverConfig
from conftest import EMPTY_PAGE, MCQ_PAGE, FakeActuator, FakeLLM, FakeSearch, FakeSession, completion
from llm_client import CompletionError
from models import CycleOutcome
from solver import HomeworkSolver

FILLABLE_PAGE = """
<html><body>
  <div class="question fade-indown" data-hw-id="1" data-hw-visible="1">
    <div class="fadein" data-hw-id="2">The capital of France is <input type="text" data-hw-id="3" data-hw-value="">.</div>
  </div>
</body></html>
"""

TRUE_FALSE_PAGE = """
<html><body>
  <app-question-true-false-test data-hw-id="1" data-hw-visible="1">
    <div class="fadein" data-hw-id="2">Consider the statements.</div>
    <div class="question-child" data-hw-id="3">
      <div class="child-content" data-hw-id="4">
        <span class="option-char" data-hw-id="5">a)</span>
        <div class="option-content" data-hw-id="6">Water boils at 100 C</div>
        <input type="radio" value="true" data-hw-id="7" data-hw-checked="0">
        <input type="radio" value="false" data-hw-id="8" data-hw-checked="0">
      </div>
      <div class="child-content" data-hw-id="9">
        <span class="option-char" data-hw-id="10">b)</span>
        <div class="option-content" data-hw-id="11">Ice sinks in water</div>
        <input type="radio" value="true" data-hw-id="12" data-hw-checked="0">
        <input type="radio" value="false" data-hw-id="13" data-hw-checked="0">
      </div>
    </div>
  </app-question-true-false-test>
  <div class="answer-sheet"><div class="option active" data-hw-id="20">1</div></div>
</body></html>
"""

FINISHED_PAGE = """
<html><body>
  <div class="answer-sheet">
    <div class="option done" data-hw-id="20">1</div>
    <div class="option done" data-hw-id="21">2</div>
  </div>
</body></html>
"""


def make_solver(html, reply=None, actuator=None, llm=None, search=None, **overrides):
    config = SolverConfig(human_delay_min=0, **overrides)
    return HomeworkSolver(
        FakeSession(html),
        actuator or FakeActuator(),
        llm or FakeLLM(reply),
        config,
        web_search=search,
        settle_delay=0,
    )


def test_mcq_cycle_selects_parsed_letter():
    solver = make_solver(MCQ_PAGE, completion("FINAL: B"))
    outcome = asyncio.run(solver.solve_once(include_solved=False))

    assert outcome is CycleOutcome.SUCCESS
    assert solver.actuator.calls == [
        ("select_option", "B"),
        ("click_submit",),
        ("mark_done", ["1", None]),
    ]
    assert "B. 4" in solver.llm.prompts[0]
    assert solver.status == "MCQ Solved"

    attempt = solver.recent_attempts()[-1]
    assert attempt["kind"] == "mcq"
    assert attempt["answer"] == "B"
    assert attempt["outcome"] == "success"
    assert attempt["question_number"] == 3
    assert attempt["question_id"] == "48213"


def test_four_option_mcq_selects_b():
    options = "".join(
        f'<div class="select-item" data-hw-id="{10 + i}"><span class="number-item">{letter.lower()}</span>'
        f"<label>choice {letter}</label></div>"
        for i, letter in enumerate("ABCD")
    )
    page = (
        '<html><body><div class="question fade-indown" data-hw-id="1">'
        f'<div class="question-text" data-hw-id="2">Pick one</div>{options}</div></body></html>'
    )
    solver = make_solver(page, completion("FINAL: B"))
    assert asyncio.run(solver.solve_once(include_solved=False)) is CycleOutcome.SUCCESS
    assert solver.actuator.calls[0] == ("select_option", "B")
    assert "A. choice A\nB. choice B\nC. choice C\nD. choice D" in solver.llm.prompts[0]


def test_unparseable_letter_fails_without_ui_action():
    solver = make_solver(MCQ_PAGE, completion("no idea"))
    assert asyncio.run(solver.solve_once()) is CycleOutcome.FAILURE
    assert solver.actuator.calls == []


def test_letter_outside_options_fails():
    solver = make_solver(MCQ_PAGE, "FINAL: D")
    assert asyncio.run(solver.solve_once()) is CycleOutcome.FAILURE
    assert solver.actuator.calls == []


def test_failed_selection_fails_cycle():
    solver = make_solver(MCQ_PAGE, "FINAL: A", actuator=FakeActuator(results={"select_option": False}))
    assert asyncio.run(solver.solve_once()) is CycleOutcome.FAILURE
    assert solver.actuator.names() == ["select_option"]


def test_missing_submit_button_counts_when_page_moved_on():
    actuator = FakeActuator(results={"click_submit": False}, primary_button=False)
    solver = make_solver(MCQ_PAGE, "FINAL: A", actuator=actuator)
    assert asyncio.run(solver.solve_once()) is CycleOutcome.SUCCESS
    assert actuator.names() == ["select_option", "click_submit", "mark_done"]


def test_submit_failure_with_primary_button_fails():
    actuator = FakeActuator(results={"click_submit": False}, primary_button=True)
    solver = make_solver(MCQ_PAGE, "FINAL: A", actuator=actuator)
    assert asyncio.run(solver.solve_once()) is CycleOutcome.FAILURE
    assert "mark_done" not in actuator.names()


def test_no_question_outcome():
    solver = make_solver(EMPTY_PAGE)
    assert asyncio.run(solver.solve_once(include_solved=False)) is CycleOutcome.NO_QUESTION
    assert solver.llm.prompts == []
    assert solver.status == "No Questions"


def test_finished_outcome_when_grid_complete():
    solver = make_solver(FINISHED_PAGE)
    assert asyncio.run(solver.solve_once(include_solved=False)) is CycleOutcome.FINISHED
    assert solver.status == "Finished"


def test_finished_not_reported_when_including_solved():
    solver = make_solver(FINISHED_PAGE)
    assert asyncio.run(solver.solve_once(include_solved=True)) is CycleOutcome.NO_QUESTION


def test_fillable_cycle_types_answer():
    solver = make_solver(FILLABLE_PAGE, completion('FINAL: "Paris"'))
    assert asyncio.run(solver.solve_once()) is CycleOutcome.SUCCESS
    assert solver.actuator.calls[0] == ("fill_blank", 0, "Paris")
    assert solver.status == "Fillable Solved"
    assert "[BLANK]" in solver.llm.prompts[0]


def test_empty_text_answer_fails():
    solver = make_solver(FILLABLE_PAGE, completion("   "))
    assert asyncio.run(solver.solve_once()) is CycleOutcome.FAILURE
    assert solver.actuator.calls == []


def test_true_false_cycle_applies_values_in_order():
    solver = make_solver(TRUE_FALSE_PAGE, completion("FINAL: TRUE,FALSE"))
    assert asyncio.run(solver.solve_once()) is CycleOutcome.SUCCESS
    assert solver.actuator.calls == [
        ("select_true_false", "a", True),
        ("select_true_false", "b", False),
        ("click_submit",),
        ("mark_done", ["4", "9", "1", "20"]),
    ]
    assert solver.status == "True/False Solved"


def test_true_false_wrong_count_applies_nothing():
    solver = make_solver(TRUE_FALSE_PAGE, completion("FINAL: TRUE"))
    assert asyncio.run(solver.solve_once()) is CycleOutcome.FAILURE
    assert solver.actuator.calls == []


def test_completion_error_propagates_and_is_recorded():
    solver = make_solver(MCQ_PAGE, llm=FakeLLM(error=CompletionError("HTTP 500: boom")))
    with pytest.raises(CompletionError):
        asyncio.run(solver.solve_once())
    attempt = solver.recent_attempts()[-1]
    assert attempt["error"] == "HTTP 500: boom"
    assert attempt["outcome"] is None
    assert solver.status == "Error"


def test_web_search_result_reaches_prompt():
    search = FakeSearch(result="The treaty was signed in 1648.")
    solver = make_solver(MCQ_PAGE, "FINAL: A", search=search, web_search=True)
    asyncio.run(solver.solve_once())
    assert search.queries == ["What is 2 + 2?"]
    assert "Web Search Results:\nThe treaty was signed in 1648." in solver.llm.prompts[0]


def test_skip_resets_done_flags_first():
    solver = make_solver(MCQ_PAGE)
    assert asyncio.run(solver.skip_current_question()) is True
    assert solver.actuator.names() == ["reset_done", "click_skip"]


def test_clear_answers():
    solver = make_solver(MCQ_PAGE)
    assert asyncio.run(solver.clear_answers()) is True
    assert solver.status == "Cleared"
