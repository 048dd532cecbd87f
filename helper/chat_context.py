# helper/chat_context.py
from dataclasses import dataclass
from typing import Any, Iterable, List

from langchain_core.messages import AIMessage, HumanMessage

__all__ = ["HistoryEntry", "build_history", "to_langchain_messages"]


@dataclass(frozen=True)
class HistoryEntry:
    sender: str  # "user" | "ai"
    text: str


def build_history(recent_newest_first: Iterable[Any]) -> List[HistoryEntry]:
    """
    Messages arrive newest-first (as loaded for the context window);
    return them oldest-first as {sender, text} pairs.
    """
    rows = list(recent_newest_first)
    return [HistoryEntry(sender=str(_sender_value(m.sender)), text=m.text) for m in reversed(rows)]


def to_langchain_messages(history: Iterable[HistoryEntry]) -> List[Any]:
    out: List[Any] = []
    for entry in history:
        if not entry.text:
            continue
        if entry.sender == "ai":
            out.append(AIMessage(content=entry.text))
        else:
            out.append(HumanMessage(content=entry.text))
    return out


def _sender_value(sender: Any) -> Any:
    return getattr(sender, "value", sender)
