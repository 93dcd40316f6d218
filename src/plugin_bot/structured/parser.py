"""Recover a JSON mapping from raw model text.

Strategies run in a fixed order. Each one is a pure ``str -> dict | None``
function that never raises on malformed input, so the cascade can fall
through to the next strategy without exception-driven control flow.
"""

import json
import logging
import re
from typing import Callable, Iterable, Iterator

logger = logging.getLogger(__name__)

ParseStrategy = Callable[[str], "dict | None"]

# String fields whose values carry free text (source files, prose) and are
# the usual source of broken escaping in model output.
LONG_TEXT_FIELDS = (
    "content",
    "reason",
    "fixDescription",
    "expectedOutcome",
    "buildInstructions",
    "description",
)

_FENCE_OPEN_RE = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\r?\n?")
_FENCED_BLOCK_RE = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\r?\n(.*?)\r?\n[ \t]*```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_SINGLE_QUOTED_RE = re.compile(r"([:\[,]\s*)'((?:[^'\\]|\\.)*)'")
_LONG_TEXT_KEY_RE = re.compile(
    r'"(?:' + "|".join(LONG_TEXT_FIELDS) + r')"\s*:\s*"'
)
# What may legitimately follow the closing quote of a string value.
_VALUE_TERMINATOR_RE = re.compile(r'\s*(?:,\s*"[^"\n]*"\s*:|,\s*[{\[]|[}\]]|$)')
_VALID_ESCAPES = frozenset('"\\/bfnrt')
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def _load_mapping(text: str) -> dict | None:
    """json.loads that returns None for anything but a JSON object."""
    if not text:
        return None
    try:
        value = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def strip_code_fences(text: str) -> str:
    """Remove code fences and any prose outside them.

    Text that starts with a fence is cut at the last closing fence, so
    fences inside file contents survive. Otherwise the body of the first
    fenced block is returned when there is one.
    """
    stripped = text.strip()
    if stripped.startswith("```"):
        body = _FENCE_OPEN_RE.sub("", stripped, count=1)
        closing = body.rfind("```")
        if closing != -1:
            body = body[:closing]
        return body.strip()
    match = _FENCED_BLOCK_RE.search(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def find_balanced_span(text: str) -> str | None:
    """Return the first complete ``{...}`` span starting at the first ``{``.

    Braces inside double-quoted string literals are ignored.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def _greedy_span(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def _split_string_literals(text: str) -> list[tuple[bool, str]]:
    """Split text into (is_string_literal, segment) runs."""
    segments: list[tuple[bool, str]] = []
    buffer: list[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            buffer.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                segments.append((True, "".join(buffer)))
                buffer = []
                in_string = False
            continue
        if char == '"':
            if buffer:
                segments.append((False, "".join(buffer)))
            buffer = [char]
            in_string = True
        else:
            buffer.append(char)
    if buffer:
        segments.append((in_string, "".join(buffer)))
    return segments


def _requote_single(match: re.Match) -> str:
    body = match.group(2).replace("\\'", "'").replace('"', '\\"')
    return f'{match.group(1)}"{body}"'


def repair_syntax(text: str) -> str:
    """Apply the fixed set of syntax repairs outside string literals.

    Removes trailing commas before ``}``/``]``, quotes bare identifier keys
    and converts single-quoted values to double-quoted ones.
    """
    repaired: list[str] = []
    for is_literal, segment in _split_string_literals(text):
        if is_literal:
            repaired.append(segment)
            continue
        segment = _TRAILING_COMMA_RE.sub(r"\1", segment)
        segment = _BARE_KEY_RE.sub(r'\1"\2"\3', segment)
        segment = _SINGLE_QUOTED_RE.sub(_requote_single, segment)
        repaired.append(segment)
    return "".join(repaired)


def _escape_value_body(text: str, start: int) -> tuple[str, int] | None:
    """Re-escape one string value body beginning at ``start``.

    Returns the escaped body plus the index of its closing quote, or None
    when no closing quote can be located.
    """
    out: list[str] = []
    index = start
    length = len(text)
    while index < length:
        char = text[index]
        if char == "\\":
            nxt = text[index + 1] if index + 1 < length else ""
            if nxt in _VALID_ESCAPES:
                out.append(char + nxt)
                index += 2
                continue
            code = text[index + 2:index + 6]
            if nxt == "u" and len(code) == 4 and set(code) <= _HEX_DIGITS:
                out.append(text[index:index + 6])
                index += 6
                continue
            out.append("\\\\")
            index += 1
            continue
        if char == '"':
            if _VALUE_TERMINATOR_RE.match(text, index + 1):
                return "".join(out), index
            out.append('\\"')
        elif char == "\n":
            out.append("\\n")
        elif char == "\r":
            out.append("\\r")
        elif char == "\t":
            out.append("\\t")
        elif ord(char) < 0x20:
            out.append(f"\\u{ord(char):04x}")
        else:
            out.append(char)
        index += 1
    return None


def repair_escaping(text: str) -> str | None:
    """Re-escape the values of long-text fields.

    Existing valid escape sequences are kept as they are, so running the
    repair on already-correct JSON returns it unchanged.
    """
    out: list[str] = []
    position = 0
    while True:
        match = _LONG_TEXT_KEY_RE.search(text, position)
        if match is None:
            out.append(text[position:])
            break
        out.append(text[position:match.end()])
        escaped = _escape_value_body(text, match.end())
        if escaped is None:
            return None
        body, closing = escaped
        out.append(body)
        out.append('"')
        position = closing + 1
    return "".join(out)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def direct_parse(raw: str) -> dict | None:
    return _load_mapping(raw.strip())


def fence_stripped_parse(raw: str) -> dict | None:
    return _load_mapping(strip_code_fences(raw))


def greedy_brace_parse(raw: str) -> dict | None:
    span = _greedy_span(raw)
    return _load_mapping(span) if span else None


def balanced_brace_parse(raw: str) -> dict | None:
    span = find_balanced_span(raw)
    return _load_mapping(span) if span else None


def syntax_repair_parse(raw: str) -> dict | None:
    text = strip_code_fences(raw)
    repaired = repair_syntax(text)
    span = find_balanced_span(repaired) or _greedy_span(repaired)
    return _load_mapping(span) if span else None


def _repair_escaped_span(span: str) -> dict | None:
    repaired = repair_escaping(span)
    if repaired is None:
        return None
    result = _load_mapping(repaired)
    if result is None:
        result = _load_mapping(repair_syntax(repaired))
    return result


def escaping_repair_parse(raw: str) -> dict | None:
    text = strip_code_fences(raw)
    # Balanced span first; trailing prose may contain braces.
    balanced = find_balanced_span(text)
    if balanced is not None:
        result = _repair_escaped_span(balanced)
        if result is not None:
            return result
    greedy = _greedy_span(text)
    if greedy is None or greedy == balanced:
        return None
    return _repair_escaped_span(greedy)


PARSE_STRATEGIES: tuple[tuple[str, ParseStrategy], ...] = (
    ("direct", direct_parse),
    ("fence_stripped", fence_stripped_parse),
    ("greedy_brace", greedy_brace_parse),
    ("balanced_brace", balanced_brace_parse),
    ("syntax_repair", syntax_repair_parse),
    ("escaping_repair", escaping_repair_parse),
)


def iter_candidates(
    raw_text: str,
    strategies: Iterable[tuple[str, ParseStrategy]] = PARSE_STRATEGIES,
) -> Iterator[tuple[str, dict]]:
    """Lazily yield ``(strategy_name, candidate)`` in precedence order.

    A strategy runs only when the caller asks for the next candidate, so
    stopping iteration after an accepted candidate skips the rest. A
    candidate equal to one already yielded is not yielded again.
    """
    if not raw_text or not raw_text.strip():
        logger.debug("Empty model output, nothing to parse")
        return

    seen: list[dict] = []
    for name, strategy in strategies:
        candidate = strategy(raw_text)
        if candidate is None:
            logger.debug("Parse strategy %s produced no mapping", name)
            continue
        if candidate in seen:
            continue
        seen.append(candidate)
        logger.debug("Parse strategy %s produced a candidate", name)
        yield name, candidate


def parse_structured_output(raw_text: str) -> dict | None:
    """Return the first mapping any strategy recovers, or None.

    Args:
        raw_text: Raw text returned by the model.

    Returns:
        Parsed JSON object as a dict, or None when every strategy failed.
    """
    for _name, candidate in iter_candidates(raw_text):
        return candidate
    return None
