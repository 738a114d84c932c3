"""Deterministic merge of partial chunk summaries into one minutes document."""

from __future__ import annotations

import re
from collections.abc import Sequence

from src.pipeline_config import Language
from src.summarization.models import MeetingMinutes

# Checked in this order; the first matching heading keyword wins.
SECTION_PATTERNS: dict[str, re.Pattern[str]] = {
    "follow_ups": re.compile(
        r"\b(?:follow[\s-]?ups?|open\s+(?:issues?|questions?|topics?))\b|پیگیری|موضوعات\s+باز",
        re.IGNORECASE,
    ),
    "decisions": re.compile(r"\b(?:decisions?|decided)\b|تصمیم", re.IGNORECASE),
    "action_items": re.compile(r"\b(?:actions?|tasks?|to[\s-]?dos?)\b|اقدام|وظایف|وظیفه", re.IGNORECASE),
}

SECTION_HEADINGS: dict[Language, dict[str, str]] = {
    Language.ENGLISH: {
        "title": "### 📌 Merged Meeting Minutes",
        "decisions": "#### ✅ Decisions Made",
        "action_items": "#### 📝 Action Items",
        "follow_ups": "#### ❓ Open Issues / Follow-ups",
        "part": "#### Part {n}",
        "footer": "*This summary was merged from {n} different meeting sections.*",
    },
    Language.PERSIAN: {
        "title": "### 📌 صورتجلسه ادغام شده",
        "decisions": "#### ✅ تصمیمات گرفته‌شده",
        "action_items": "#### 📝 وظایف و اقدام‌ها",
        "follow_ups": "#### ❓ موضوعات باز / نیازمند پیگیری",
        "part": "#### بخش {n}",
        "footer": "*این خلاصه از {n} بخش مختلف جلسه ادغام شده است.*",
    },
}

_SECTION_ORDER = ("decisions", "action_items", "follow_ups")

_MARKDOWN_HEADING_RE = re.compile(r"^#{1,6}\s+\S")
_BOLD_HEADING_RE = re.compile(r"^(?:\*\*|__)[^*_]+(?:\*\*|__):?$")
_LABEL_HEADING_RE = re.compile(r"^[^\-*•+\d\s].{0,60}:$")
_RULE_RE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")
_BULLET_RE = re.compile(r"^(?:[-*•+]|\d+[.)])\s+(?:\[[ xX]\]\s+)?")


def _is_heading(line: str) -> bool:
    return bool(
        _MARKDOWN_HEADING_RE.match(line) or _BOLD_HEADING_RE.match(line) or _LABEL_HEADING_RE.match(line)
    )


def _classify_heading(line: str) -> str | None:
    for section, pattern in SECTION_PATTERNS.items():
        if pattern.search(line):
            return section
    return None


def _clean_item(line: str) -> str:
    return _BULLET_RE.sub("", line).strip()


def _dedupe_key(item: str) -> str:
    return re.sub(r"\s+", " ", item).strip().rstrip(".;،").casefold()


def extract_sections(summary: str) -> dict[str, list[str]]:
    """Collect bullet items under known section headings of one summary.

    A heading without a known keyword, or a horizontal rule, ends the current
    section.
    """
    sections: dict[str, list[str]] = {name: [] for name in _SECTION_ORDER}
    current: str | None = None
    for raw_line in summary.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if _RULE_RE.match(line):
            current = None
            continue
        if _is_heading(line):
            current = _classify_heading(line)
            continue
        if current is not None:
            item = _clean_item(line)
            if item:
                sections[current].append(item)
    return sections


def collect_minutes(summaries: Sequence[str]) -> MeetingMinutes:
    """Merge sections of every summary into order-preserving, deduplicated lists."""
    minutes = MeetingMinutes(source_count=len(summaries))
    seen: dict[str, set[str]] = {name: set() for name in _SECTION_ORDER}
    for summary in summaries:
        for name, items in extract_sections(summary).items():
            target: list[str] = getattr(minutes, name)
            for item in items:
                key = _dedupe_key(item)
                if key and key not in seen[name]:
                    seen[name].add(key)
                    target.append(item)
    return minutes


def render_minutes(minutes: MeetingMinutes, language: Language | str = Language.PERSIAN) -> str:
    """Emit the canonical document; empty sections are omitted entirely."""
    headings = SECTION_HEADINGS[Language(language)]
    lines = [headings["title"], ""]
    for name in _SECTION_ORDER:
        items: list[str] = getattr(minutes, name)
        if not items:
            continue
        lines.append(headings[name])
        lines.extend(f"- {item}" for item in items)
        lines.append("")
    lines.extend(["---", headings["footer"].format(n=minutes.source_count)])
    return "\n".join(lines)


def _render_parts(summaries: Sequence[str], language: Language) -> str:
    headings = SECTION_HEADINGS[language]
    lines = [headings["title"], ""]
    for n, summary in enumerate(summaries, start=1):
        lines.extend([headings["part"].format(n=n), summary.strip(), ""])
    lines.extend(["---", headings["footer"].format(n=len(summaries))])
    return "\n".join(lines)


def merge_summaries(summaries: Sequence[str], language: Language | str = Language.PERSIAN) -> str:
    """Merge partial summaries into one markdown document.

    A single summary is returned unchanged. When none of the partials has a
    recognisable section, they are kept verbatim under numbered part headings.
    """
    if not summaries:
        return ""
    if len(summaries) == 1:
        return summaries[0]

    language = Language(language)
    minutes = collect_minutes(summaries)
    if minutes.is_empty():
        return _render_parts(summaries, language)
    return render_minutes(minutes, language)
