"""
Question detection and extraction from a page snapshot

Markup for the four question shapes overlaps (a short-answer container also
satisfies the fillable check, true/false answer divs look like MCQ options),
so shapes are tried in a fixed order and the first eligible match wins:

    ShortAnswer -> MCQ -> Fillable -> TrueFalse

A shape's `solved` flag comes from the answer grid when the page has one,
otherwise from the shape's own indicators.
"""
import copy
import logging
import re
from typing import Callable, Iterable, List, Optional, Tuple

from bs4 import Comment, NavigableString, Tag

from host_page import (
    ANNOTATION_ATTRS,
    Container,
    PageSnapshot,
    handle_of,
    has_class,
    image_source,
    input_value,
    is_checked,
)
from models import (
    MCQ,
    Blank,
    ExtractedQuestion,
    Fillable,
    Option,
    ShortAnswer,
    SubQuestion,
    TrueFalse,
    Unknown,
)

logger = logging.getLogger(__name__)

BLANK_INPUT_SELECTOR = "input[type='text'], textarea"
MCQ_OPTION_SELECTOR = ".question-option, .select-item, .item-answer"
SUB_QUESTION_SELECTOR = ".question-child .child-content, .option.ng-star-inserted"
TABLE_SELECTOR = ".table-material-question"

# Elements rendered on their own line
BLOCK_TAGS = {
    "address", "article", "aside", "blockquote", "dd", "div", "dl", "dt",
    "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2", "h3",
    "h4", "h5", "h6", "header", "hr", "li", "main", "nav", "ol", "p", "pre",
    "section", "table", "tbody", "tfoot", "thead", "tr", "ul",
}
SKIP_TAGS = {"script", "style", "template", "noscript", "textarea", "select"}

_HTML_SPACE = re.compile(r"[ \t\r\n\f]+")


# ============================================================================
# TEXT HELPERS
# ============================================================================

def normalize_text(text: str) -> str:
    """Collapse horizontal whitespace and line breaks, then trim"""
    text = re.sub(r"[ \t]+", " ", text or "")
    text = re.sub(r"[\r\n]+", "\n", text)
    return text.strip()


def _mathjax_text(node: Tag) -> str:
    label = node.get("aria-label")
    if label:
        logger.debug(f"[EXTRACT] MathJax aria-label: {label}")
        return label
    assistive = node.select_one("mjx-assistive-mml")
    if assistive is not None:
        return normalize_text(assistive.get_text(" "))
    return ""


def _is_blank_input(node: Tag) -> bool:
    return node.name == "textarea" or (node.name == "input" and node.get("type") == "text")


def render_text(node: Optional[Tag], replace_blanks: bool = False) -> str:
    """
    Approximate the rendered text of an element

    MathJax containers become inline [MATHJAX]...[/MATHJAX] markers. With
    replace_blanks, text inputs become [BLANK] markers and the answer span
    next to each input is dropped.
    """
    if node is None:
        return ""

    skipped = set()
    if replace_blanks:
        for blank in node.select(BLANK_INPUT_SELECTOR):
            parent = blank.parent
            second = parent.select_one(".ans-span-second") if parent is not None else None
            if second is not None:
                skipped.add(id(second))

    parts: List[str] = []

    def walk(current):
        if isinstance(current, Comment):
            return
        if isinstance(current, NavigableString):
            parts.append(_HTML_SPACE.sub(" ", str(current)))
            return
        if id(current) in skipped:
            return
        if replace_blanks and _is_blank_input(current):
            parts.append(" [BLANK] ")
            return
        if current.name in SKIP_TAGS:
            return
        if current.name == "br":
            parts.append("\n")
            return
        if current.name == "mjx-container":
            math = _mathjax_text(current)
            if math:
                parts.append(f" [MATHJAX]{math}[/MATHJAX] ")
            return
        block = current.name in BLOCK_TAGS
        if block:
            parts.append("\n")
        for child in current.children:
            walk(child)
        if block:
            parts.append("\n")
        elif current.name in ("td", "th"):
            parts.append(" ")

    walk(node)
    lines = "".join(parts).split("\n")
    return "\n".join(line.strip() for line in lines)


def cleaned_text(node: Optional[Tag], replace_blanks: bool = False) -> str:
    return normalize_text(render_text(node, replace_blanks=replace_blanks))


def scrape_images(node: Optional[Tag]) -> List[str]:
    """Sources of fully loaded images under node"""
    if node is None:
        return []
    sources = []
    for img in node.select("img"):
        src = image_source(img)
        if src:
            sources.append(src)
    return sources


def scrape_table(node: Optional[Tag]) -> Optional[str]:
    """Markup of the question's data table without snapshot annotations"""
    if node is None:
        return None
    table = node.select_one(TABLE_SELECTOR)
    if table is None:
        return None
    table = copy.copy(table)
    for el in [table] + table.find_all(True):
        for attr in ANNOTATION_ATTRS:
            if attr in el.attrs:
                del el.attrs[attr]
    return str(table)


def _first(container: Container, *selectors: str) -> Tag:
    """First descendant matching any selector in order, else the container itself"""
    for selector in selectors:
        found = container.select_one(selector)
        if found is not None:
            return found
    return container.tag


def _unique(parts: Iterable[str]) -> List[str]:
    seen = []
    for part in parts:
        if part not in seen:
            seen.append(part)
    return seen


def _blanks(container: Container) -> Tuple[List[Blank], bool]:
    inputs = container.select(BLANK_INPUT_SELECTOR)
    blanks = [Blank(index=i, handle=handle_of(el)) for i, el in enumerate(inputs)]
    solved = bool(inputs) and all(input_value(el).strip() for el in inputs)
    return blanks, solved


# ============================================================================
# SHAPE EXTRACTORS - each returns None when its markers are absent
# ============================================================================

def extract_short_answer(container: Container) -> Optional[ShortAnswer]:
    if container.select_one("app-question-short-answer, .content-question") is None:
        return None
    blanks, solved = _blanks(container)
    if not blanks:
        return None

    parts = []
    header = container.select_one(".question-header, .quetion-number")
    if header is not None:
        parts.append(cleaned_text(header))
    content = container.select_one(".content-question, .content")
    if content is not None:
        parts.append(cleaned_text(content))
    text = "\n\n".join(p for p in _unique(parts) if p).strip()

    images = scrape_images(container.select_one(".content-question")) + scrape_images(container.select_one(".content"))
    return ShortAnswer(text=text, images=images, blanks=blanks, solved=solved, container=container.handle)


def _option_from_node(node: Tag) -> Optional[Option]:
    if has_class(node, "question-option"):
        label = node.select_one(".question-option-label")
        letter = cleaned_text(label) if label is not None else ""
        content = node.select_one(".question-option-content")
    else:
        label = node.select_one(".number-item")
        letter = cleaned_text(label).upper() if label is not None else ""
        content = node.select_one("label")
    if not letter:
        return None
    return Option(
        letter=letter,
        text=cleaned_text(content),
        images=scrape_images(content),
        handle=handle_of(node),
    )


def extract_mcq(container: Container) -> Optional[MCQ]:
    solved = False
    options = []
    for node in container.select(MCQ_OPTION_SELECTOR):
        if has_class(node, "selected", "active", "highlighed", "highlighted") or node.select_one(".text-answered") is not None:
            solved = True
        option = _option_from_node(node)
        if option is not None:
            options.append(option)
    if not options:
        return None

    parts = []
    for selector in (".question-text", ".question-name"):
        node = container.select_one(selector)
        if node is not None:
            part = cleaned_text(node)
            if part:
                parts.append(part)
    title = container.select_one(".title")
    if title is not None:
        title_text = cleaned_text(title)
        if title_text and not any(title_text in p for p in parts):
            parts.append(title_text)
    if not parts:
        parts.append(cleaned_text(_first(container, ".fadein")))
    text = "\n\n".join(_unique(parts)).strip()

    images = scrape_images(container.select_one(".question-text")) + scrape_images(container.select_one(".question-name"))
    return MCQ(text=text, images=images, options=options, solved=solved, container=container.handle)


def extract_fillable(container: Container) -> Optional[Fillable]:
    if container.select_one("app-question-short-answer") is not None:
        return None
    blanks, solved = _blanks(container)
    if not blanks:
        return None
    question_node = _first(container, ".fadein", ".question-text")
    return Fillable(
        text=cleaned_text(question_node, replace_blanks=True),
        images=scrape_images(question_node),
        blanks=blanks,
        solved=solved,
        container=container.handle,
    )


def _sub_question_char(node: Tag) -> Optional[str]:
    for selector in (".option-char", ".item-option"):
        el = node.select_one(selector)
        if el is None:
            continue
        char = cleaned_text(el).replace(")", "", 1).replace(".", "", 1)
        if char:
            return char
    return None


def _sub_question(node: Tag) -> SubQuestion:
    true_input = node.select_one('input[value="true"]')
    false_input = node.select_one('input[value="false"]')
    item_answers = node.select(".item-answer")
    true_div = next((el for el in item_answers if "Đúng" in render_text(el)), None)
    false_div = next((el for el in item_answers if "Sai" in render_text(el)), None)

    answered = (
        is_checked(true_input)
        or is_checked(false_input)
        or has_class(true_div, "active-answer", "selected")
        or has_class(false_div, "active-answer", "selected")
    )
    return SubQuestion(
        char=_sub_question_char(node),
        text=cleaned_text(node.select_one(".fadein, .option-content")),
        answered=answered,
        true_handle=handle_of(true_input if true_input is not None else true_div),
        false_handle=handle_of(false_input if false_input is not None else false_div),
        handle=handle_of(node),
    )


def extract_true_false(container: Container) -> Optional[TrueFalse]:
    sub_questions = [
        sq for sq in (_sub_question(node) for node in container.select(SUB_QUESTION_SELECTOR))
        if sq.char or sq.text
    ]
    if not sub_questions:
        return None
    question_node = _first(container, ".fadein", ".question-text")
    return TrueFalse(
        text=cleaned_text(question_node),
        images=scrape_images(question_node),
        table=scrape_table(question_node),
        sub_questions=sub_questions,
        solved=all(sq.answered for sq in sub_questions),
        container=container.handle,
    )


ShapeMatcher = Callable[[Container], Optional[ExtractedQuestion]]

# Order matters, see module docstring
SHAPE_MATCHERS: List[Tuple[str, ShapeMatcher]] = [
    ("shortanswer", extract_short_answer),
    ("mcq", extract_mcq),
    ("fillable", extract_fillable),
    ("truefalse", extract_true_false),
]


# ============================================================================
# CLASSIFICATION
# ============================================================================

def classify(containers: List[Container], include_solved: bool, grid_signal: Optional[bool] = None) -> ExtractedQuestion:
    """
    Pick the first eligible question among containers

    Args:
        containers: Question containers in document order
        include_solved: Also return questions that are already solved
        grid_signal: Done-state from the answer grid, None when there is no grid

    Returns:
        The first matching shape, or Unknown
    """
    for container in containers:
        if not include_solved and container.done:
            continue
        logger.debug(f"[EXTRACT] Detecting in container: {container.describe()}")

        for name, matcher in SHAPE_MATCHERS:
            shape = matcher(container)
            if shape is None:
                continue
            solved = grid_signal if grid_signal is not None else shape.solved
            if include_solved or not solved:
                shape.solved = solved
                logger.debug(f"[EXTRACT] Matched {name} (solved={solved})")
                return shape
    return Unknown()


def question_identity(container: Optional[Container]) -> Tuple[Optional[int], Optional[str]]:
    """Question number ("Câu N") and numeric id ("#123") from the header, for logging"""
    if container is None:
        return None, None
    number = None
    question_id = container.element_id
    header = container.select_one(".question-header, .quetion-number, .num")
    if header is not None:
        match = re.search(r"Câu:?\s*(\d+)", cleaned_text(header), re.IGNORECASE)
        if match:
            number = int(match.group(1))
        id_node = header.select_one("span, .num span")
        if id_node is not None:
            id_match = re.search(r"#(\d+)", cleaned_text(id_node))
            if id_match:
                question_id = id_match.group(1)
    return number, question_id


class QuestionExtractor:
    """Runs classification against a whole page snapshot"""

    def detect(self, snapshot: PageSnapshot, include_solved: bool = False) -> ExtractedQuestion:
        return classify(snapshot.containers(), include_solved, snapshot.grid_signal())

    def container_for(self, snapshot: PageSnapshot, question: ExtractedQuestion) -> Optional[Container]:
        handle = getattr(question, "container", None)
        if handle is None:
            return None
        tag = snapshot.find(handle)
        return Container(tag) if tag is not None else None
