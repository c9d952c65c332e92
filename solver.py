"""
Homework solver: one detect -> prompt -> complete -> parse -> apply -> submit cycle

The cycle's return value is everything the scheduler needs:
SUCCESS / FAILURE / NO_QUESTION / FINISHED. Parse and UI failures become
FAILURE; completion-service errors propagate to the scheduler.
"""
import asyncio
import logging
from collections import deque
from typing import List, Optional, Union

from config import SolverConfig
from extractor import QuestionExtractor, question_identity
from models import (
    MCQ,
    CycleOutcome,
    ExtractedQuestion,
    Fillable,
    ShortAnswer,
    SolveAttempt,
    TrueFalse,
    Unknown,
)
from prompts import build_fill_prompt, build_mcq_prompt, build_short_answer_prompt, build_true_false_prompt
from response_parser import parse_letter, parse_text, parse_true_false

logger = logging.getLogger(__name__)


def _unique(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


class HomeworkSolver:
    """
    Orchestrates a single solve cycle against the page

    Args:
        session: Provides snapshot() of the current page
        actuator: Applies answers and clicks controls
        llm: Completion client with complete(prompt, images)
        config: Solver configuration
        web_search: Optional lookup used for factual MCQ questions
        settle_delay: Seconds to wait after submitting before marking done
    """

    def __init__(self, session, actuator, llm, config: SolverConfig,
                 extractor: Optional[QuestionExtractor] = None, web_search=None,
                 settle_delay: float = 1.0, history_limit: int = 50):
        self.session = session
        self.actuator = actuator
        self.llm = llm
        self.config = config
        self.extractor = extractor or QuestionExtractor()
        self.web_search = web_search
        self.settle_delay = settle_delay
        self.status = "Ready"
        self.attempts = deque(maxlen=history_limit)
        self._attempt_counter = 0

    def _set_status(self, status: str):
        self.status = status
        logger.debug(f"[SOLVE] Status: {status}")

    async def solve_once(self, include_solved: bool = True) -> CycleOutcome:
        """Run one cycle; include_solved re-answers questions already marked done"""
        self._attempt_counter += 1
        attempt = SolveAttempt(self._attempt_counter, include_solved)
        self.attempts.append(attempt)
        try:
            outcome = await self._solve(attempt, include_solved)
        except Exception as e:
            attempt.error = str(e)
            attempt.finish()
            self._set_status("Error")
            raise
        attempt.finish(outcome)
        return outcome

    async def _solve(self, attempt: SolveAttempt, include_solved: bool) -> CycleOutcome:
        self._set_status("Detecting...")
        logger.debug("[SOLVE] Starting new solve cycle.")
        snapshot = await self.session.snapshot()
        question = self.extractor.detect(snapshot, include_solved)
        attempt.kind = question.kind

        if isinstance(question, Unknown):
            if not include_solved and snapshot.assignment_finished():
                self._set_status("Finished")
                return CycleOutcome.FINISHED
            logger.info("[SOLVE] No questions detected.")
            self._set_status("No Questions")
            return CycleOutcome.NO_QUESTION

        container = self.extractor.container_for(snapshot, question)
        attempt.question_number, attempt.question_id = question_identity(container)
        logger.info(f"[SOLVE] Solving {question.kind.upper()} - Num: {attempt.question_number}, ID: {attempt.question_id}")

        grid_handle = snapshot.active_grid_handle()
        if isinstance(question, MCQ):
            solved = await self._solve_mcq(question, attempt, grid_handle)
        elif isinstance(question, TrueFalse):
            solved = await self._solve_true_false(question, attempt, grid_handle)
        else:
            solved = await self._solve_blank(question, attempt, grid_handle)
        return CycleOutcome.SUCCESS if solved else CycleOutcome.FAILURE

    async def _submit(self, question: ExtractedQuestion, grid_handle: Optional[str], solved_status: str,
                      extra_handles: Optional[List[Optional[str]]] = None) -> bool:
        submitted = await self.actuator.click_submit()
        # No primary button left usually means the page already moved on
        if submitted or not await self.actuator.has_primary_button():
            await asyncio.sleep(self.settle_delay)
            await self.actuator.mark_done((extra_handles or []) + [question.container, grid_handle])
            self._set_status(solved_status)
            return True
        return False

    async def _human_pause(self):
        await asyncio.sleep(self.config.human_delay_min / 1000)

    async def _solve_mcq(self, question: MCQ, attempt: SolveAttempt, grid_handle: Optional[str]) -> bool:
        self._set_status("Thinking (MCQ)...")
        search_result = ""
        if self.config.web_search and self.web_search is not None and self.web_search.should_search(question.text):
            search_result = await self.web_search.search(question.text)

        prompt = build_mcq_prompt(question.text, question.options, search_result, think=self.config.think_before_answer)
        logger.info(f"[SOLVE] MCQ Prompt: {prompt}")
        images = _unique(question.images + [src for option in question.options for src in option.images])

        response = await self.llm.complete(prompt, images)
        letter = parse_letter(response)
        attempt.answer = letter
        if not letter:
            logger.warning("[SOLVE] Could not parse an option letter from the response")
            return False
        option = question.find_option(letter)
        if option is None:
            logger.warning(f"[SOLVE] Answer {letter} does not match any option")
            return False
        if not await self.actuator.select_option(option):
            return False
        await self._human_pause()
        return await self._submit(question, grid_handle, "MCQ Solved")

    async def _solve_blank(self, question: Union[ShortAnswer, Fillable], attempt: SolveAttempt, grid_handle: Optional[str]) -> bool:
        short = isinstance(question, ShortAnswer)
        label = "Short" if short else "Fillable"
        self._set_status(f"Thinking ({label})...")
        if not question.blanks:
            return False

        think = self.config.think_before_answer
        prompt = build_short_answer_prompt(question.text, think=think) if short else build_fill_prompt(question.text, think=think)
        response = await self.llm.complete(prompt, question.images)
        answer = parse_text(response)
        attempt.answer = answer
        if not answer:
            logger.warning(f"[SOLVE] Empty {label.lower()} answer")
            return False
        if not await self.actuator.fill_blank(question.blanks[0], answer):
            return False
        await asyncio.sleep(self.settle_delay)
        return await self._submit(question, grid_handle, "Short Answer Solved" if short else "Fillable Solved")

    async def _solve_true_false(self, question: TrueFalse, attempt: SolveAttempt, grid_handle: Optional[str]) -> bool:
        self._set_status("Thinking (T/F)...")
        sub_questions = question.sub_questions
        prompt = build_true_false_prompt(question.text, sub_questions, question.table, think=self.config.think_before_answer)
        response = await self.llm.complete(prompt, question.images)
        answer = parse_true_false(response, sub_questions)
        attempt.answer = answer.values
        if not answer.is_valid(len(sub_questions)):
            logger.warning("[SOLVE] True/False answer invalid, nothing applied")
            return False

        all_selected = True
        for sq, entry in zip(sub_questions, answer.entries):
            if not await self.actuator.select_true_false(sq, entry.value):
                all_selected = False
        if not all_selected:
            return False
        await self._human_pause()
        return await self._submit(question, grid_handle, "True/False Solved",
                                  extra_handles=[sq.handle for sq in sub_questions])

    async def skip_current_question(self) -> bool:
        """Clear done flags so the question is retried later, then press skip"""
        await self.actuator.reset_done()
        return await self.actuator.click_skip()

    async def clear_answers(self) -> bool:
        cleared = await self.actuator.clear_all_answers()
        self._set_status("Cleared")
        return cleared

    def recent_attempts(self, limit: int = 10) -> List[dict]:
        return [a.to_dict() for a in list(self.attempts)[-limit:]]
