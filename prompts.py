"""
Prompt construction for each question shape
All builders are pure: same question in, same text out
"""
from typing import List, Optional

from models import Option, SubQuestion

MATHJAX_NOTE = (
    "Mathematical formulas and symbols are enclosed in [MATHJAX]...[/MATHJAX] tags. "
    "Interpret the content within these tags as mathematical expressions."
)

THINK_PREFIX_LETTER = (
    "Internally use step-by-step reasoning as a reasoning model would, but do NOT reveal your "
    'chain-of-thought. Reply only with the final single-letter answer prefixed by "FINAL:" '
    "(for example: FINAL: A).\n\n"
)
THINK_PREFIX_SHORT = (
    "Internally use step-by-step reasoning as a reasoning model would, but do NOT reveal your "
    'chain-of-thought. After reasoning, reply only with the final short answer prefixed by "FINAL:".\n\n'
)
THINK_PREFIX_TRUE_FALSE = (
    "Internally use step-by-step reasoning as a reasoning model would, but do NOT reveal your "
    'chain-of-thought. After reasoning, reply with the final answers only prefixed by "FINAL:" '
    "followed by the comma-separated TRUE/FALSE values (example: FINAL: TRUE,FALSE,TRUE).\n\n"
)


def build_mcq_prompt(question: str, options: List[Option], search_result: str = "", think: bool = True) -> str:
    """Ask for exactly one option letter"""
    letters = [o.letter for o in options] or ["A", "B", "C", "D"]
    letter_list = ", ".join(letters[:-1]) + f" or {letters[-1]}" if len(letters) > 1 else letters[0]

    prompt = THINK_PREFIX_LETTER if think else ""
    prompt += (
        f"You are a homework solver. {MATHJAX_NOTE} Even if you are unsure or the question is "
        "ambiguous, provide your best guess by selecting one letter. Always reply with exactly one "
        f"uppercase letter: {letter_list} - nothing else, no explanations or refusals.\n\n"
    )
    prompt += f"Question:\n{question}\n\n"
    if search_result:
        prompt += f"Web Search Results:\n{search_result}\n\n"
    prompt += "Choices:\n"
    for option in options:
        prompt += f"{option.letter}. {option.text}\n"
    prompt += f"\nWhich letter is correct? Reply ONLY with {letter_list}."
    return prompt


def build_fill_prompt(question: str, think: bool = True) -> str:
    """Fill-in-the-blank: short phrase or number"""
    prefix = THINK_PREFIX_SHORT if think else ""
    return prefix + (
        f"You are a homework solver. {MATHJAX_NOTE} If the question is in another language, "
        "translate it to English first and then solve it step by step. Fill the blank(s) with short "
        "phrase(s) or word(s) or a number. For numerical answers, use a comma (,) as the decimal "
        "separator and do not include units. Even if you are unsure or lack complete information, "
        "provide your best guess or approximation as a short phrase, word, or number. Never leave the "
        "answer blank or refuse - always fill it in. Format the answer concisely, starting with the key "
        "numerical value or phrase if applicable. Reply only with the short answer (numerical if "
        f"possible), with no prefixes or suffixes.\n\nQuestion:\n{question}"
    )


def build_short_answer_prompt(question: str, think: bool = True) -> str:
    """Short answer: single concise value with strict numeric rules"""
    prefix = THINK_PREFIX_SHORT if think else ""
    return prefix + (
        f"You are a homework solver. {MATHJAX_NOTE} If the question is in another language, "
        "translate to English first. Solve the following question with a single concise answer.\n\n"
        "CRITICAL NUMERIC RULES:\n"
        "- For decimal numbers, use EXACTLY ONE comma (,) as the decimal separator (e.g., 12,5).\n"
        "- For whole numbers, provide the number only (e.g., 25).\n"
        "- If the question asks you to choose multiple numeric options and combine them, concatenate "
        "the numbers into a single integer without spaces (e.g., choosing 1, 3, and 5 results in 135).\n"
        "- Do NOT include units (e.g., kg, m, s), letters, spaces, or any other characters if the "
        "answer is a number.\n"
        "- Provide ONLY the final numeric value or a very short word/phrase if it refers to a non-math concept.\n"
        "- Never leave the answer blank or refuse.\n\n"
        f"Question:\n{question}"
    )


def build_true_false_prompt(question: str, sub_questions: List[SubQuestion], table: Optional[str] = None,
                            think: bool = True) -> str:
    """One TRUE/FALSE per sub-question, comma separated, in presented order"""
    prompt = THINK_PREFIX_TRUE_FALSE if think else ""
    prompt += (
        f"You are a homework solver. {MATHJAX_NOTE} For each sub-question, reply with \"TRUE\" or "
        "\"FALSE\" only, separated by commas. Example: TRUE,FALSE,TRUE,TRUE\n\n"
    )
    prompt += f"Main Question:\n{question}\n\n"
    if table:
        prompt += f"Table Data:\n{table}\n\n"
    prompt += "Sub-questions:\n"
    for sq in sub_questions:
        prompt += f"{sq.char or ''}) {sq.text}\n"
    chars = ", ".join(sq.char for sq in sub_questions if sq.char)
    prompt += (
        f"\nFor each of the {len(sub_questions)} sub-questions" + (f" ({chars})" if chars else "")
        + ", is the statement TRUE or FALSE? Reply ONLY with TRUE or FALSE for each, separated by commas, "
        "in the same order."
    )
    return prompt
