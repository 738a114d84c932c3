"""Localized prompts for meeting-minutes summarisation."""

from __future__ import annotations

from collections.abc import Sequence

from src.pipeline_config import Language

_INSTRUCTIONS: dict[Language, str] = {
    Language.PERSIAN: (
        "شما یک دستیار هستید که باید از متن پیاده‌سازی شده یک جلسه کاری (به زبان فارسی) "
        "صورتجلسه رسمی و بی‌طرف تهیه کنید.\n\n"
        "متن پیاده‌سازی ممکن است شامل شوخی، سکوت، صحبت‌های بی‌ربط یا تکراری باشد. "
        "فقط بخش‌های مرتبط با مباحث کاری را استخراج کنید و هیچ اطلاعاتی که در متن نیامده اضافه نکنید.\n"
        "بخش‌هایی که با [CHUNK FAILED] مشخص شده‌اند قابل رونویسی نبوده‌اند؛ درباره آن‌ها حدس نزنید."
    ),
    Language.ENGLISH: (
        "You are an assistant that writes formal, neutral meeting minutes from a "
        "meeting transcript.\n\n"
        "The transcript may contain jokes, silence, off-topic or repeated talk. "
        "Extract only the work-related discussion and never add information that is "
        "not in the transcript.\n"
        "Passages marked [CHUNK FAILED] could not be transcribed; do not guess their content."
    ),
}

_DEFAULT_TEMPLATES: dict[Language, str] = {
    Language.PERSIAN: (
        "### 📌 صورتجلسه\n"
        "- **تاریخ جلسه:** [اگر ذکر شد]\n"
        "- **نوع جلسه:** [در صورت تشخیص]\n\n"
        "#### ✅ تصمیمات گرفته‌شده\n"
        "- [هر تصمیم قطعی در یک خط]\n\n"
        "#### 📝 وظایف و اقدام‌ها\n"
        "- [شرح کار، مسئول و ضرب‌العجل در صورت ذکر]\n\n"
        "#### ❓ موضوعات باز / نیازمند پیگیری\n"
        "- [موضوعاتی که نتیجه‌گیری نشد]"
    ),
    Language.ENGLISH: (
        "### 📌 Meeting Minutes\n"
        "- **Date:** [if mentioned]\n"
        "- **Meeting type:** [if identifiable]\n\n"
        "#### ✅ Decisions Made\n"
        "- [one firm decision per line]\n\n"
        "#### 📝 Action Items\n"
        "- [task, owner and deadline when mentioned]\n\n"
        "#### ❓ Open Issues / Follow-ups\n"
        "- [topics left unresolved]"
    ),
}

_FORMAT_HEADERS: dict[Language, str] = {
    Language.PERSIAN: "خروجی را در قالب Markdown زیر ارائه دهید:",
    Language.ENGLISH: "Return the minutes as Markdown in exactly this layout:",
}

_TOPIC_HEADERS: dict[Language, str] = {
    Language.PERSIAN: "به‌ویژه به این موضوعات توجه کنید:",
    Language.ENGLISH: "Pay particular attention to these topics:",
}

_USER_PROMPTS: dict[Language, str] = {
    Language.PERSIAN: "لطفاً رونویسی زیر را به صورت صورتجلسه حرفه‌ای ارائه دهید:\n\n{transcript}",
    Language.ENGLISH: "Please write professional meeting minutes for the following transcript:\n\n{transcript}",
}

_PART_NOTES: dict[Language, str] = {
    Language.PERSIAN: "این بخش {part} از {total} رونویسی جلسه است. فقط همین بخش را خلاصه کنید.\n\n",
    Language.ENGLISH: "This is part {part} of {total} of the meeting transcript. Summarise this part only.\n\n",
}


def build_system_prompt(
    language: Language | str = Language.PERSIAN,
    template: str | None = None,
    topics: Sequence[str] = (),
) -> str:
    """System prompt with instructions, output layout and optional topic focus.

    A caller-supplied *template* replaces the default layout.
    """
    language = Language(language)
    parts = [
        _INSTRUCTIONS[language],
        f"{_FORMAT_HEADERS[language]}\n\n{(template or _DEFAULT_TEMPLATES[language]).strip()}",
    ]
    focus = [topic.strip() for topic in topics if topic.strip()]
    if focus:
        parts.append(_TOPIC_HEADERS[language] + "\n" + "\n".join(f"- {topic}" for topic in focus))
    return "\n\n".join(parts)


def build_user_prompt(
    transcript: str,
    language: Language | str = Language.PERSIAN,
    part: int | None = None,
    total: int | None = None,
) -> str:
    """User prompt wrapping *transcript*; *part*/*total* mark a chunk (1-based)."""
    language = Language(language)
    prompt = _USER_PROMPTS[language].format(transcript=transcript.strip())
    if part is not None and total is not None and total > 1:
        prompt = _PART_NOTES[language].format(part=part, total=total) + prompt
    return prompt
