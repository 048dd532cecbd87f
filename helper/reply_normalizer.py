# helper/reply_normalizer.py
"""
Reshape labelled model output into one of the canonical reply formats.

The model is asked (see helper.prompts_helper.FORMATTING_INSTRUCTION) to start
its answer with exactly one of ``PARAGRAPHS:``, ``POINTS:`` or ``UNCLEAR:``.
Anything else is replaced by a fixed ``UNCLEAR`` fallback, so callers only ever
see one of the shapes below.
"""
import re
from dataclasses import dataclass
from typing import ClassVar, List, Union

FALLBACK_REPLY = 'UNCLEAR: Please provide a clear request (e.g., "write a poem" or "count from 1 to 5").'

# ECMAScript whitespace and line terminators; str.strip() alone misses U+FEFF
# and treats \x1c-\x1f and \x85 as whitespace.
_WS = (
    "\t\n\x0b\x0c\r \u00a0\u1680\u2000\u2001\u2002\u2003\u2004\u2005"
    "\u2006\u2007\u2008\u2009\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"
)

_SENTENCE_OR_LINE = re.compile(r"\. |\n")
# capture group keeps the list markers as their own fragments
_POINT_MARKER = re.compile(f"([0-9]+\\.[{_WS}]|-+[{_WS}])")


@dataclass(frozen=True)
class Paragraphs:
    text: str
    label: ClassVar[str] = "PARAGRAPHS"


@dataclass(frozen=True)
class Points:
    text: str
    label: ClassVar[str] = "POINTS"


@dataclass(frozen=True)
class Unclear:
    text: str
    label: ClassVar[str] = "UNCLEAR"


@dataclass(frozen=True)
class Fallback:
    text: str = FALLBACK_REPLY
    label: ClassVar[str] = "FALLBACK"


NormalizedReply = Union[Paragraphs, Points, Unclear, Fallback]


def _trim(text: str) -> str:
    return text.strip(_WS)


def _clean(fragments: List[str]) -> List[str]:
    return [f for f in (_trim(frag) for frag in fragments) if f]


def _ensure_period(text: str) -> str:
    return text if text.endswith(".") else text + "."


def _strip_label(raw: str, label: str):
    prefix = label + ":"
    if raw[:len(prefix)].upper() == prefix:
        return raw[len(prefix):]
    return None


def _format_paragraphs(body: str) -> str:
    joined = _trim(".\n".join(_clean(_SENTENCE_OR_LINE.split(body))))
    return _ensure_period(joined)


def _format_points(body: str) -> str:
    items = "\n".join(_clean(_POINT_MARKER.split(body)))
    joined = _trim(".\n".join(_clean(items.split(". "))))
    return _ensure_period(joined)


def parse_reply(raw: str) -> NormalizedReply:
    """Classify raw model text and apply the matching split/trim/rejoin rules."""
    raw = raw or ""

    body = _strip_label(raw, Paragraphs.label)
    if body is not None:
        return Paragraphs(_format_paragraphs(body))

    body = _strip_label(raw, Points.label)
    if body is not None:
        return Points(_format_points(body))

    body = _strip_label(raw, Unclear.label)
    if body is not None:
        return Unclear(_trim(body))

    return Fallback()


def normalize_reply(raw: str) -> str:
    return parse_reply(raw).text
