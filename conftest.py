"""
Shared fakes for solver, scheduler and API tests
The browser and completion service are replaced by recording stand-ins.
"""
from host_page import PageSnapshot

MCQ_PAGE = """
<html><body data-hw-id="0">
  <div class="question-name" data-hw-id="1" data-hw-visible="1">
    <div class="question-header" data-hw-id="2">Câu 3 <span data-hw-id="3">#48213</span></div>
    <div class="question-text" data-hw-id="4">What is 2 + 2?</div>
    <div class="question-option" data-hw-id="5">
      <span class="question-option-label" data-hw-id="6">A</span>
      <div class="question-option-content" data-hw-id="7">3</div>
    </div>
    <div class="question-option" data-hw-id="8">
      <span class="question-option-label" data-hw-id="9">B</span>
      <div class="question-option-content" data-hw-id="10">4</div>
    </div>
  </div>
</body></html>
"""

EMPTY_PAGE = '<html><body data-hw-id="0"><p data-hw-id="1">Nothing here</p></body></html>'


def completion(content):
    """Minimal chat/completions reply body"""
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class FakeSession:
    def __init__(self, html=MCQ_PAGE, started=True):
        self.html = html
        self.started = started
        self.navigated = []

    async def snapshot(self):
        return PageSnapshot.from_html(self.html)

    async def navigate(self, url):
        self.navigated.append(url)


class FakeLLM:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []
        self.images = []

    async def complete(self, prompt, images=None):
        self.prompts.append(prompt)
        self.images.append(list(images or []))
        if self.error is not None:
            raise self.error
        return self.reply


class FakeActuator:
    """Records every call; results maps an action name to its return value"""

    def __init__(self, results=None, primary_button=True):
        self.calls = []
        self.results = results or {}
        self.primary_button = primary_button

    def _result(self, name):
        return self.results.get(name, True)

    async def select_option(self, option):
        self.calls.append(("select_option", option.letter))
        return self._result("select_option")

    async def fill_blank(self, blank, text):
        self.calls.append(("fill_blank", blank.index, text))
        return self._result("fill_blank")

    async def select_true_false(self, sub_question, value):
        self.calls.append(("select_true_false", sub_question.char, value))
        return self._result("select_true_false")

    async def click_submit(self):
        self.calls.append(("click_submit",))
        return self._result("click_submit")

    async def click_skip(self):
        self.calls.append(("click_skip",))
        return self._result("click_skip")

    async def has_primary_button(self):
        return self.primary_button

    async def mark_done(self, handles):
        self.calls.append(("mark_done", list(handles)))

    async def reset_done(self):
        self.calls.append(("reset_done",))

    async def clear_all_answers(self):
        self.calls.append(("clear_all_answers",))
        return True

    def names(self):
        return [call[0] for call in self.calls]


class FakeSearch:
    def __init__(self, result="No relevant results found.", relevant=True):
        self.result = result
        self.relevant = relevant
        self.queries = []

    def should_search(self, question):
        return self.relevant

    async def search(self, query):
        self.queries.append(query)
        return self.result

