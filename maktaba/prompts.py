"""System prompts for the text and voice paths.

The text prompt is "zero-history": no earlier turns are included, only the
catalog and the two derived fields of :class:`SessionState`, so the request
size does not grow with the conversation.
"""

from maktaba.catalog import Catalog
from maktaba.session_state import SessionState

USER_LABEL = "User: "

_REPLY_RULES = """قواعد الرد المختصر:
1. ابحث بال ID (مثل A01) → تطابق تام. أو بالعنوان → كلمات مفتاحية.
2. الرد يجب أن يكون مختصراً جداً:
   - إذا وُجد: **✅ متوفر** | 📖 العنوان | 🔖 الرقم: {{id}} | 📂 الرف: {{list}}
   - إذا تعدد: قائمة مختصرة (أقصى 5 نتائج).
   - إذا لم يوجد: "{not_found}"
   - إذا سأل سؤالاً عاماً أو طلب مساعدة: أجب بإيجاز.
3. لغة الرد: {style}.
4. لا تكرر التعليمات أو تشرح نفسك. أجب مباشرة."""

_VOICE_RULES = """القواعد:
1. إذا بحث بـ ID (مثل A05) أو عنوان → ابحث في القائمة.
2. إذا وُجد: اقرأ العنوان والرقم والرف بوضوح.
3. إذا تعدد: اذكر أول 2-3 نتائج.
4. إذا لم يوجد: اقترح المحاولة مرة أخرى.
5. تحدث بـ{style}."""

_DEFAULT_NOT_FOUND = "❌ غير متوفر. جرّب كلمات أخرى."


def _persona(catalog: Catalog) -> str:
    b = catalog.behavior
    return f"أنت {b.persona}.\nشخصيتك: {b.tone}.\nمهمتك: {b.focus}"


def entity_clause(session: SessionState) -> str:
    """Pronoun-resolution hint, empty unless both entity fields are set."""
    if not session.has_entity:
        return ""
    return (
        f'آخر كتاب تم ذكره في هذه الجلسة: ID="{session.last_entity_id}", '
        f'العنوان="{session.last_entity_title}". إذا استخدم المستخدم ضمائر '
        "(هو، منه، الجزء الثاني، أريده) فهي تشير لهذا الكتاب."
    )


def topics_clause(session: SessionState) -> str:
    if not session.preferred_topics:
        return ""
    return f"اهتمامات المستخدم السابقة: {'، '.join(session.preferred_topics)}."


def build_system_prompt(catalog: Catalog, session: SessionState) -> str:
    rules = _REPLY_RULES.format(
        not_found=catalog.templates.not_found or _DEFAULT_NOT_FOUND,
        style=catalog.behavior.style,
    )
    return (
        f"{_persona(catalog)}\n\n"
        f"{entity_clause(session)}\n"
        f"{topics_clause(session)}\n\n"
        "البيانات المتاحة لك (قائمة الكتب بصيغة JSON):\n"
        f"```json\n{catalog.books_json()}\n```\n"
        "الحقول: 'id', 'title', 'list'.\n\n"
        f"{rules}"
    )


def build_user_turn(system_prompt: str, message: str) -> str:
    return f"{system_prompt}\n\n{USER_LABEL}{message}"


def build_live_instruction(catalog: Catalog) -> str:
    return (
        f"{_persona(catalog)}\n\n"
        "أنت مساعد صوتي الآن. اجعل ردودك مختصرة وطبيعية للكلام.\n\n"
        "البيانات المتاحة لك (كتب بصيغة JSON):\n"
        f"{catalog.books_json()}\n\n"
        "الحقول: 'id', 'title', 'list'.\n\n"
        f"{_VOICE_RULES.format(style=catalog.behavior.style)}\n"
    )
