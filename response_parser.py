"""
Decoding of free-form completion replies into typed answers

Parsers never raise. A reply that cannot be decoded gives "" (letter/text)
or an invalid TrueFalseAnswer, and the caller treats that as a failed cycle.
"""
import logging
import re
from typing import Any, List

from models import SubQuestion, TrueFalseAnswer, TrueFalseEntry

logger = logging.getLogger(__name__)

QUOTE_CHARS = "\"'`“”‘’"


def response_content(response: Any) -> str:
    """
    Pull the answer text out of a completion reply

    Accepts the decoded JSON body (choices[0].message.content, falling back to
    reasoning_content, then a top-level "answer") or a raw string.
    """
    if not response:
        return ""
    if isinstance(response, str):
        return response
    if not isinstance(response, dict):
        return ""

    choices = response.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message") or {}
        if isinstance(message, dict):
            for key in ("content", "reasoning_content"):
                value = message.get(key)
                if isinstance(value, str) and value:
                    return value
    answer = response.get("answer")
    if isinstance(answer, str):
        return answer
    return ""


def _after_final(content: str) -> str:
    """Text following a FINAL: marker (rest of that line), or the whole content"""
    match = re.search(r"FINAL:\s*(.+)", content, re.IGNORECASE)
    return match.group(1) if match else content


def parse_letter(response: Any) -> str:
    """Single option letter A-D, or "" when none can be found"""
    content = response_content(response)
    final = re.search(r"FINAL:\s*([A-D])\b", content, re.IGNORECASE)
    if final:
        return final.group(1).upper()
    match = re.search(r"\b([A-D])\b", content)
    if match:
        return match.group(1)
    logger.debug(f"[PARSE] No letter in response: {content[:100]!r}")
    return ""


def parse_text(response: Any) -> str:
    """Short answer text with label and quotes stripped, or "" """
    text = _after_final(response_content(response))
    text = re.sub(r"^\s*answer:\s*", "", text, flags=re.IGNORECASE)
    return text.strip().strip(QUOTE_CHARS).strip()


def parse_true_false(response: Any, sub_questions: List[SubQuestion]) -> TrueFalseAnswer:
    """
    TRUE/FALSE list aligned with sub_questions

    Unrecognized tokens become None. Check the result with
    is_valid(len(sub_questions)) before applying any of it.
    """
    content = _after_final(response_content(response))
    tokens = [t.strip().upper() for t in content.split(",")] if content.strip() else []

    entries = []
    for i, sq in enumerate(sub_questions):
        token = tokens[i] if i < len(tokens) else None
        if token == "TRUE":
            entries.append(TrueFalseEntry(char=sq.char, value=True))
        elif token == "FALSE":
            entries.append(TrueFalseEntry(char=sq.char, value=False))
        else:
            logger.warning(f"[PARSE] Could not parse True/False answer for sub-question {sq.char}: {token!r}")
            entries.append(TrueFalseEntry(char=sq.char, value=None))

    answer = TrueFalseAnswer(entries=entries, token_count=len(tokens))
    if tokens and len(tokens) != len(sub_questions):
        logger.warning(f"[PARSE] Expected {len(sub_questions)} TRUE/FALSE values, got {len(tokens)}")
    return answer
