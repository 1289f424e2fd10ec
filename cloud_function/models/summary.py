"""
Summary payload helpers.

A summary payload is the JSON dict persisted for a book. It is either a
structured summary (named sections, detected by a string ``quick_summary``)
or a raw-text summary (``raw_text`` holding one block of prose). Every
consumer branches on ``is_structured_summary`` instead of probing fields.
"""
import json
import re
from typing import Any, Dict, List, Optional

LIST_FIELDS = ("key_ideas", "chapters", "actionable_insights", "quotes")


def is_structured_summary(summary: Any) -> bool:
    return isinstance(summary, dict) and isinstance(summary.get("quick_summary"), str)


def raw_text_of(summary: Any) -> str:
    """Text of a raw-text summary, or the JSON dump of anything else."""
    if isinstance(summary, dict) and isinstance(summary.get("raw_text"), str):
        return summary["raw_text"]
    return json.dumps(summary, ensure_ascii=False)


def _items(summary: Dict[str, Any], key: str) -> List[Any]:
    value = summary.get(key)
    return value if isinstance(value, list) else []


def flatten_summary_text(summary: Any) -> str:
    """Lower-cased single search string for coverage matching."""
    if is_structured_summary(summary):
        parts = [summary["quick_summary"]]
        parts.extend(
            str(idea.get("text", "")) for idea in _items(summary, "key_ideas") if isinstance(idea, dict)
        )
        parts.extend(
            f"{ch.get('title', '')} {ch.get('summary', '')}"
            for ch in _items(summary, "chapters") if isinstance(ch, dict)
        )
        parts.extend(str(item) for item in _items(summary, "actionable_insights"))
        parts.extend(str(item) for item in _items(summary, "quotes"))
        return " ".join(parts).lower()
    return raw_text_of(summary).lower()


def merge_summaries(original: Any, additional: Any) -> Dict[str, Any]:
    """
    Merges a gap-filling summary into the running one.

    Structured + structured appends every list field and joins the quick
    summaries with a blank line. If only one side is structured, that side
    wins. Two raw-text summaries are concatenated.
    """
    if is_structured_summary(original) and is_structured_summary(additional):
        merged = {
            "ai_provider": original.get("ai_provider") or additional.get("ai_provider"),
            "short_summary": original.get("short_summary", ""),
            "quick_summary": f"{original['quick_summary']}\n\n{additional['quick_summary']}",
        }
        for key in LIST_FIELDS:
            merged[key] = _items(original, key) + _items(additional, key)
        return merged

    if is_structured_summary(original):
        return original
    if is_structured_summary(additional):
        return additional

    provider = None
    for candidate in (original, additional):
        if isinstance(candidate, dict) and candidate.get("ai_provider"):
            provider = candidate["ai_provider"]
            break

    return {
        "raw_text": f"{raw_text_of(original)}\n\n{raw_text_of(additional)}".strip(),
        "ai_provider": provider,
    }


def _word_count(text: Any) -> int:
    if not isinstance(text, str):
        return 0
    return len(text.split())


def count_summary_words(summary: Any) -> int:
    if isinstance(summary, dict) and isinstance(summary.get("raw_text"), str):
        return _word_count(summary["raw_text"])
    if not isinstance(summary, dict):
        return 0

    total = _word_count(summary.get("quick_summary"))
    for idea in _items(summary, "key_ideas"):
        if isinstance(idea, dict):
            total += _word_count(idea.get("title")) + _word_count(idea.get("text"))
    for chapter in _items(summary, "chapters"):
        if isinstance(chapter, dict):
            total += _word_count(chapter.get("title")) + _word_count(chapter.get("summary"))
    for item in _items(summary, "actionable_insights") + _items(summary, "quotes"):
        total += _word_count(item)
    return total


def normalize_structured_summary(data: Dict[str, Any], ai_provider: Optional[str] = None) -> Dict[str, Any]:
    """Fills missing sections so downstream code can index list fields safely."""
    summary = dict(data)
    summary.setdefault("short_summary", "")
    for key in LIST_FIELDS:
        if not isinstance(summary.get(key), list):
            summary[key] = []
    summary["key_ideas"] = [
        {"title": str(k.get("title", "")), "text": str(k.get("text", ""))}
        for k in summary["key_ideas"] if isinstance(k, dict)
    ]
    summary["chapters"] = [
        {"title": str(c.get("title", "")), "summary": str(c.get("summary", ""))}
        for c in summary["chapters"] if isinstance(c, dict)
    ]
    summary["actionable_insights"] = [str(i) for i in summary["actionable_insights"]]
    summary["quotes"] = [str(q) for q in summary["quotes"]]
    if ai_provider and not summary.get("ai_provider"):
        summary["ai_provider"] = ai_provider
    return summary


def clean_json_response(response: str) -> str:
    """Strips markdown fences and trims to the outermost JSON object."""
    cleaned = re.sub(r"```json\s*", "", response)
    cleaned = re.sub(r"```\s*$", "", cleaned)
    cleaned = cleaned.strip()

    if not cleaned.startswith("{"):
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start != -1 and end != -1 and end > start:
            cleaned = cleaned[start:end + 1]

    return cleaned


def parse_summary_response(content: str, ai_provider: Optional[str] = None) -> Dict[str, Any]:
    """
    Turns model output into a summary payload.

    JSON objects carrying a string ``quick_summary`` become structured
    summaries; everything else is kept as raw text.
    """
    text = content.strip()
    candidate = clean_json_response(text)
    if candidate.startswith("{"):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            data = None
        if is_structured_summary(data):
            return normalize_structured_summary(data, ai_provider)

    return {"raw_text": text, "ai_provider": ai_provider}
