"""
UI actions on the assignment page

Every action locates its target through the handle stamped by the last
snapshot, replays the interaction the page expects (click, typed
characters, input/change events) and reports success as a boolean. A
missing element or a value that did not stick is a failed action, not an
exception.
"""
import asyncio
import logging
import random
import re
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError, Locator, Page

from config import SolverConfig
from host_page import CONTAINER_SELECTOR, GRID_ACTIVE_SELECTOR, GRID_ITEMS_SELECTOR, css_for_handle
from models import Blank, Option, SubQuestion

logger = logging.getLogger(__name__)

BUTTON_SELECTOR = 'button, input[type="button"], input[type="submit"]'

DESCRIBE_BUTTONS_SCRIPT = """
els => els.map(b => ({
    text: (b.innerText || b.value || '').trim(),
    classes: Array.from(b.classList),
    tag: b.tagName.toLowerCase(),
    type: (b.getAttribute('type') || '').toLowerCase(),
    disabled: !!b.disabled,
    visible: b.offsetParent !== null,
}))
"""
DISPATCH_INPUT_CHANGE_SCRIPT = """
el => {
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
}
"""
CHECK_INNER_INPUT_SCRIPT = """
el => {
    const input = el.querySelector('input');
    if (input) {
        input.checked = true;
        input.dispatchEvent(new Event('change', { bubbles: true }));
    }
}
"""
MARK_TRUE_FALSE_SCRIPT = """
el => {
    if (el.tagName === 'INPUT') {
        el.checked = true;
        el.dispatchEvent(new Event('change', { bubbles: true }));
    } else {
        el.classList.add('active-answer');
        el.dispatchEvent(new Event('click', { bubbles: true }));
    }
}
"""
MARK_DONE_SCRIPT = """
selectors => selectors.forEach(sel => {
    const el = document.querySelector(sel);
    if (el && el.isConnected) el.classList.add('done');
})
"""
RESET_DONE_SCRIPT = """
([activeSelector, containerSelector]) => {
    const active = document.querySelector(activeSelector);
    if (active) active.classList.remove('done');
    document.querySelectorAll(containerSelector).forEach(c => c.classList.remove('done'));
}
"""
CLEAR_ANSWERS_SCRIPT = """
gridSelector => {
    document.querySelectorAll("input[type='text'], textarea").forEach(el => {
        el.value = '';
        el.dispatchEvent(new Event('input', { bubbles: true }));
        el.dispatchEvent(new Event('change', { bubbles: true }));
    });
    document.querySelectorAll("input[type='radio'], input[type='checkbox']").forEach(el => {
        el.checked = false;
        el.dispatchEvent(new Event('change', { bubbles: true }));
    });
    const classes = ['active-answer', 'selected', 'done', 'highlighed', 'highlighted', 'active', 'checked', 'active-answer-item'];
    document.querySelectorAll(classes.map(c => '.' + c).join(', ')).forEach(el => el.classList.remove(...classes));
    document.querySelectorAll(gridSelector).forEach(el => el.classList.remove('done'));
    document.querySelectorAll('.text-answered, .answer-label-checked').forEach(el => el.remove());
}
"""

ButtonInfo = Dict[str, Any]
ButtonPredicate = Callable[[ButtonInfo], bool]


def _is_button(b: ButtonInfo, *class_names: str) -> bool:
    return b.get("tag") == "button" and all(c in b.get("classes", []) for c in class_names)


# Tried in order; the first predicate with any enabled match decides
SUBMIT_PREDICATES: List[ButtonPredicate] = [
    lambda b: b["text"] == "Trả lời",
    lambda b: _is_button(b, "btn", "btn-lg", "btn-block", "ripple", "btn-primary"),
    lambda b: _is_button(b, "btn-primary"),
    lambda b: re.search(r"trả lời|tra loi", b["text"], re.IGNORECASE) is not None,
    lambda b: b["text"] == "Bỏ qua" or _is_button(b, "btn-gray"),
    lambda b: b["text"] == "Submit",
    lambda b: b["text"] == "Check Answer",
    lambda b: re.search(r"submit", b["text"], re.IGNORECASE) is not None,
    lambda b: b.get("tag") == "input" and b.get("type") == "submit",
]

SKIP_PREDICATES: List[ButtonPredicate] = [
    lambda b: b["text"] == "Bỏ qua",
    lambda b: _is_button(b, "btn-gray"),
    lambda b: re.search(r"skip|bỏ qua", b["text"], re.IGNORECASE) is not None,
]


def pick_button(buttons: List[ButtonInfo], predicates: List[ButtonPredicate]) -> Optional[int]:
    """Index of the first visible, enabled button matched by the earliest predicate"""
    enabled = [(i, b) for i, b in enumerate(buttons) if not b.get("disabled") and b.get("visible", True)]
    for predicate in predicates:
        for index, button in enabled:
            if predicate(button):
                return index
    return None


class Actuator:
    """Applies answers to the live page through Playwright"""

    def __init__(self, session, config: SolverConfig, submit_settle: float = 0.8, skip_settle: float = 2.0):
        self.session = session
        self.config = config
        self.submit_settle = submit_settle
        self.skip_settle = skip_settle

    @property
    def page(self) -> Page:
        return self.session.page

    async def _locate(self, handle: Optional[str]) -> Optional[Locator]:
        if handle is None:
            return None
        locator = self.page.locator(css_for_handle(handle))
        if await locator.count() == 0:
            logger.warning(f"[ACTUATOR] Element {handle} is no longer on the page")
            return None
        return locator.first

    async def _simulate_click(self, locator: Locator):
        steps = (
            ("Scroll into view", lambda: locator.scroll_into_view_if_needed(timeout=2000)),
            ("Focus", locator.focus),
            ("Click", lambda: locator.evaluate("el => el.click()")),
            ("Dispatch event", lambda: locator.evaluate(DISPATCH_INPUT_CHANGE_SCRIPT)),
        )
        for name, step in steps:
            try:
                await step()
            except PlaywrightError as e:
                logger.debug(f"[ACTUATOR] {name} failed: {e}")

    def _typing_delays(self):
        if self.config.instant_mode:
            return 0, 50
        return self.config.human_delay_min, self.config.human_delay_max

    async def select_option(self, option: Option) -> bool:
        locator = await self._locate(option.handle)
        if locator is None:
            return False
        await self._simulate_click(locator)
        try:
            await locator.evaluate(CHECK_INNER_INPUT_SCRIPT)
        except PlaywrightError as e:
            logger.debug(f"[ACTUATOR] Checking inner input failed: {e}")
        logger.debug(f"[ACTUATOR] Selected option {option.letter}")
        return True

    async def fill_blank(self, blank: Blank, text: str) -> bool:
        """Type text into the blank one character at a time, then verify the value"""
        if not text:
            return False
        locator = await self._locate(blank.handle)
        if locator is None:
            return False

        min_delay, max_delay = self._typing_delays()
        try:
            await locator.hover(timeout=2000)
        except PlaywrightError as e:
            logger.debug(f"[ACTUATOR] Hover failed: {e}")
        try:
            await locator.focus()
            await locator.fill("")
            for i, char in enumerate(text):
                await self.page.keyboard.type(char)
                if i < len(text) - 1:
                    await asyncio.sleep(random.uniform(min_delay, max_delay) / 1000)
            await locator.dispatch_event("change")
            await asyncio.sleep(0.1)
            await locator.evaluate("el => el.blur()")
            value = await locator.input_value()
        except PlaywrightError as e:
            logger.error(f"[ACTUATOR] fill_blank error: {e}")
            return False

        if value != text:
            logger.warning(f"[ACTUATOR] Failed to set input value via typing simulation ({value!r} != {text!r})")
            return False
        logger.debug(f"[ACTUATOR] Filled blank {blank.index} with: {text}")
        return True

    async def select_true_false(self, sub_question: SubQuestion, value: bool) -> bool:
        handle = sub_question.true_handle if value else sub_question.false_handle
        if handle is None:
            logger.warning(f"[ACTUATOR] True/False element not found for sub-question {sub_question.char} with value {value}")
            return False
        locator = await self._locate(handle)
        if locator is None:
            return False
        await self._simulate_click(locator)
        try:
            await locator.evaluate(MARK_TRUE_FALSE_SCRIPT)
        except PlaywrightError as e:
            logger.warning(f"[ACTUATOR] Marking {value} for sub-question {sub_question.char} failed: {e}")
            return False
        logger.debug(f"[ACTUATOR] Selected {'True' if value else 'False'} for sub-question {sub_question.char or ''}")
        return True

    async def _click_button(self, predicates: List[ButtonPredicate], label: str) -> bool:
        buttons = await self.page.eval_on_selector_all(BUTTON_SELECTOR, DESCRIBE_BUTTONS_SCRIPT)
        index = pick_button(buttons, predicates)
        if index is None:
            logger.warning(f"[ACTUATOR] {label} button not found")
            return False
        await self._simulate_click(self.page.locator(BUTTON_SELECTOR).nth(index))
        logger.info(f"[ACTUATOR] Clicked {label.lower()} button: {buttons[index]['text']!r}")
        return True

    async def click_submit(self) -> bool:
        clicked = await self._click_button(SUBMIT_PREDICATES, "Submit")
        if clicked:
            await asyncio.sleep(self.submit_settle)
        return clicked

    async def click_skip(self) -> bool:
        clicked = await self._click_button(SKIP_PREDICATES, "Skip")
        if clicked:
            await asyncio.sleep(self.skip_settle)
        return clicked

    async def has_primary_button(self) -> bool:
        return await self.page.locator("button.btn-primary").count() > 0

    async def mark_done(self, handles: List[Optional[str]]):
        """Flag container/grid/sub-question elements as completed"""
        selectors = [css_for_handle(h) for h in handles if h is not None]
        if selectors:
            await self.page.evaluate(MARK_DONE_SCRIPT, selectors)

    async def reset_done(self):
        """Remove the done flag from the active grid item and all question containers"""
        await self.page.evaluate(RESET_DONE_SCRIPT, [GRID_ACTIVE_SELECTOR, CONTAINER_SELECTOR])

    async def clear_all_answers(self) -> bool:
        logger.info("[ACTUATOR] Clearing all answers on page...")
        await self.page.evaluate(CLEAR_ANSWERS_SCRIPT, GRID_ITEMS_SELECTOR)
        logger.info("[ACTUATOR] All answers cleared.")
        return True
