"""
Read-only view of the host page

The browser stamps runtime state onto the DOM (element ids, visibility,
image load state, input values) with ANNOTATE_SCRIPT, then the page HTML is
parsed with BeautifulSoup. Everything the extractor knows about the page
comes from that snapshot; element handles are the stamped `data-hw-id`
values and stay valid until the next snapshot.
"""
import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

HANDLE_ATTR = "data-hw-id"
VISIBLE_ATTR = "data-hw-visible"
LOADED_ATTR = "data-hw-loaded"
SRC_ATTR = "data-hw-src"
VALUE_ATTR = "data-hw-value"
CHECKED_ATTR = "data-hw-checked"
ANNOTATION_ATTRS = (HANDLE_ATTR, VISIBLE_ATTR, LOADED_ATTR, SRC_ATTR, VALUE_ATTR, CHECKED_ATTR)

CONTAINER_SELECTOR = (
    ".question-name, #step, app-question-short-answer, .question.fade-indown, "
    ".test-school-question-option, app-question-true-false-test, app-test-school-question-option"
)
GRID_ACTIVE_SELECTOR = ".answer-sheet .option.active, .mobile-bottom-bar .number.active"
GRID_ITEMS_SELECTOR = ".answer-sheet .option, .mobile-bottom-bar .number"

# Runs in the page; argument is CONTAINER_SELECTOR. Returns the number of stamped elements.
ANNOTATE_SCRIPT = """
(containerSelector) => {
    let counter = 0;
    for (const el of document.querySelectorAll('body *')) {
        el.setAttribute('data-hw-id', String(counter++));
        if (el.matches(containerSelector)) {
            el.setAttribute('data-hw-visible', el.offsetParent !== null ? '1' : '0');
        }
        if (el.tagName === 'IMG') {
            el.setAttribute('data-hw-loaded', el.complete && el.naturalWidth > 0 ? '1' : '0');
            if (el.src) el.setAttribute('data-hw-src', el.src);
        }
        if (el.tagName === 'INPUT' || el.tagName === 'TEXTAREA') {
            el.setAttribute('data-hw-value', el.value || '');
            if (el.type === 'checkbox' || el.type === 'radio') {
                el.setAttribute('data-hw-checked', el.checked ? '1' : '0');
            }
        }
    }
    return counter;
}
"""


def css_for_handle(handle: str) -> str:
    """CSS selector that locates an element by its stamped handle"""
    return f'[{HANDLE_ATTR}="{handle}"]'


def classes(tag: Optional[Tag]) -> List[str]:
    if tag is None:
        return []
    return list(tag.get("class") or [])


def has_class(tag: Optional[Tag], *names: str) -> bool:
    tag_classes = classes(tag)
    return any(name in tag_classes for name in names)


def handle_of(tag: Optional[Tag]) -> Optional[str]:
    if tag is None:
        return None
    return tag.get(HANDLE_ATTR)


def is_visible(tag: Tag) -> bool:
    # Unannotated markup counts as visible
    return tag.get(VISIBLE_ATTR, "1") != "0"


def input_value(tag: Tag) -> str:
    """Live value of an input/textarea as captured in the snapshot"""
    if tag.has_attr(VALUE_ATTR):
        return tag[VALUE_ATTR]
    if tag.name == "textarea":
        return tag.get_text()
    return tag.get("value", "")


def is_checked(tag: Optional[Tag]) -> bool:
    if tag is None:
        return False
    if tag.has_attr(CHECKED_ATTR):
        return tag[CHECKED_ATTR] == "1"
    return tag.has_attr("checked")


def image_source(tag: Tag) -> Optional[str]:
    """Source of a fully loaded image, or None"""
    if tag.get(LOADED_ATTR) != "1":
        return None
    return tag.get(SRC_ATTR) or tag.get("src") or None


class Container:
    """One question's root node inside a snapshot"""

    def __init__(self, tag: Tag):
        self.tag = tag

    @property
    def handle(self) -> Optional[str]:
        return handle_of(self.tag)

    @property
    def done(self) -> bool:
        """Set by the host (or by us after a submit) once the question was completed"""
        return has_class(self.tag, "done")

    @property
    def element_id(self) -> Optional[str]:
        return self.tag.get("id") or None

    def select(self, selector: str) -> List[Tag]:
        return self.tag.select(selector)

    def select_one(self, selector: str) -> Optional[Tag]:
        return self.tag.select_one(selector)

    def describe(self) -> str:
        return " ".join(classes(self.tag)) or self.tag.name

    def __repr__(self) -> str:
        return f"Container({self.describe()!r}, handle={self.handle!r})"


class PageSnapshot:
    """Parsed, annotated copy of the page at one point in time"""

    def __init__(self, soup: BeautifulSoup):
        self.soup = soup

    @classmethod
    def from_html(cls, html: str) -> "PageSnapshot":
        return cls(BeautifulSoup(html, "html.parser"))

    def containers(self) -> List[Container]:
        """Visible question containers in document order"""
        return [Container(tag) for tag in self.soup.select(CONTAINER_SELECTOR) if is_visible(tag)]

    def grid_signal(self) -> Optional[bool]:
        """Done-state of the active item in the answer grid, None without a grid"""
        active = self.soup.select_one(GRID_ACTIVE_SELECTOR)
        if active is None:
            return None
        return has_class(active, "done")

    def assignment_finished(self) -> bool:
        """True when every grid item is done; False if there is no grid"""
        indicators = self.soup.select(GRID_ITEMS_SELECTOR)
        if not indicators:
            return False
        all_done = all(has_class(el, "done") for el in indicators)
        if all_done:
            logger.info(f"[SNAPSHOT] Assignment completion detected via grid check ({len(indicators)} questions)")
        return all_done

    def active_grid_handle(self) -> Optional[str]:
        return handle_of(self.soup.select_one(GRID_ACTIVE_SELECTOR))

    def find(self, handle: str) -> Optional[Tag]:
        return self.soup.select_one(css_for_handle(handle))

    def container_handles(self) -> List[str]:
        return [c.handle for c in self.containers() if c.handle is not None]
