# tolerant parsing of structured json returned by the llm service
import copy
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# maximum number of cut points tried by the truncation strategy
MAX_TRUNCATION_ATTEMPTS = 60

Strategy = Tuple[str, Callable[[str], Optional[Dict[str, Any]]]]


# outcome of parse_structured_response
@dataclass
class ParseOutcome:
    data: Dict[str, Any]
    strategy: str  # name of the strategy that produced data, "fallback" if none did
    backfilled: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.strategy != "fallback"

    @property
    def repaired(self) -> bool:
        return self.strategy not in ("direct", "fallback") or bool(self.backfilled)


# remove markdown code fences around a response
def strip_fences(text: str) -> str:
    text = text.strip()
    fenced = re.search(r"```(?:json|JSON)?\s*([\s\S]*?)```", text)
    if fenced:
        return fenced.group(1).strip()
    # an opening fence without a closing one
    if text.startswith("```"):
        text = text[3:]
        if text.lower().startswith("json"):
            text = text[4:]
    return text.strip()


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


# strategy: the whole response is valid json
def parse_direct(text: str) -> Optional[Dict[str, Any]]:
    return _loads_object(text)


# strategy: valid json object surrounded by prose
def parse_extracted_block(text: str) -> Optional[Dict[str, Any]]:
    match = re.search(r"\{[\s\S]*\}", text)
    if not match:
        return None
    return _loads_object(match.group(0))


# close open strings, braces and brackets at the end of a fragment
def balance_brackets(text: str) -> str:
    stack = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch == "}" and stack and stack[-1] == "{":
            stack.pop()
        elif ch == "]" and stack and stack[-1] == "[":
            stack.pop()

    repaired = text + '"' if in_string else text
    repaired = repaired.rstrip()
    repaired = re.sub(r",\s*$", "", repaired)
    # a key without its value
    if re.search(r":\s*$", repaired):
        repaired += " null"
    for opener in reversed(stack):
        repaired += "}" if opener == "{" else "]"
    return repaired


# insert missing commas and drop trailing ones
def fix_separators(text: str) -> str:
    fixed = re.sub(r",(\s*[}\]])", r"\1", text)
    fixed = re.sub(r"([}\]])(\s*)([{\[])", r"\1,\2\3", fixed)
    fixed = re.sub(r'("|\d|true|false|null|[}\]])(\s*\n\s*)(")', r"\1,\2\3", fixed)
    return fixed


def _from_first_brace(text: str) -> Optional[str]:
    start = text.find("{")
    if start == -1:
        return None
    return text[start:]


# strategy: fix separators and balance brackets
def parse_repaired(text: str) -> Optional[Dict[str, Any]]:
    fragment = _from_first_brace(text)
    if fragment is None:
        return None
    end = fragment.rfind("}")
    candidates = [fragment]
    if end != -1:
        candidates.append(fragment[: end + 1])
    for candidate in candidates:
        parsed = _loads_object(balance_brackets(fix_separators(candidate)))
        if parsed is not None:
            return parsed
    return None


# strategy: cut from the end until a balanced fragment parses
def parse_truncated(text: str) -> Optional[Dict[str, Any]]:
    fragment = _from_first_brace(text)
    if fragment is None:
        return None
    fragment = fix_separators(fragment)

    cut_points = [i for i, ch in enumerate(fragment) if ch in ",}]"]
    attempts = 0
    for index in reversed(cut_points):
        if attempts >= MAX_TRUNCATION_ATTEMPTS:
            break
        attempts += 1
        end = index if fragment[index] == "," else index + 1
        parsed = _loads_object(balance_brackets(fragment[:end]))
        if parsed is not None:
            logger.debug(f"Truncation repair succeeded after {attempts} attempts")
            return parsed
    return None


DEFAULT_STRATEGIES: List[Strategy] = [
    ("direct", parse_direct),
    ("extracted_block", parse_extracted_block),
    ("repaired", parse_repaired),
    ("truncated", parse_truncated),
]


# fill missing required fields with neutral defaults, recursing into nested dicts
def backfill(data: Dict[str, Any], defaults: Dict[str, Any], prefix: str = "") -> List[str]:
    filled = []
    for key, default in defaults.items():
        path = f"{prefix}{key}"
        if key not in data or data[key] is None:
            data[key] = copy.deepcopy(default)
            filled.append(path)
        elif isinstance(default, dict) and default and isinstance(data[key], dict):
            filled.extend(backfill(data[key], default, prefix=f"{path}."))
    return filled


# parse an llm response into a dict using ordered repair strategies
def parse_structured_response(
    text: Optional[str],
    defaults: Optional[Dict[str, Any]] = None,
    strategies: Optional[Sequence[Strategy]] = None,
) -> ParseOutcome:
    """
    Parse structured output from the llm service.

    Markdown fences are stripped first, then each strategy is tried in
    order: direct parse, extracted object, separator and bracket repair,
    truncate-and-retry. Missing required fields are backfilled from
    `defaults`. When every strategy fails a fallback outcome built from
    the defaults is returned instead of raising.
    """
    defaults = defaults or {}
    cleaned = strip_fences(text or "")

    for name, strategy in strategies or DEFAULT_STRATEGIES:
        logger.debug(f"Trying parse strategy: {name}")
        data = strategy(cleaned)
        if data is None:
            continue
        filled = backfill(data, defaults)
        if name != "direct":
            logger.debug(f"✓ Response parsed with repair strategy '{name}'")
        if filled:
            logger.debug(f"Backfilled missing fields: {filled}")
        return ParseOutcome(data=data, strategy=name, backfilled=filled)

    logger.warning("⚠️ Every parse strategy failed, using fallback defaults")
    data = copy.deepcopy(defaults)
    return ParseOutcome(data=data, strategy="fallback", backfilled=list(defaults.keys()))
