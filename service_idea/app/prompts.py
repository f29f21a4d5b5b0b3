"""
Prompt construction for idea generation and translation requests.
"""

from typing import Any, Optional

SUPPORTED_LANGUAGES = ("ja", "en")
DEFAULT_LANGUAGE = "ja"

DEFAULT_CATEGORY = {
    "ja": "ランダム",
    "en": "random",
}

IDEA_TEMPLATES = {
    "ja": "今すぐやってみたくなる小さなアイデアを、1文で具体的に1つだけ出してください。カテゴリ: {category}",
    "en": "Give exactly one small, concrete idea that makes someone want to try it right now, in a single sentence. Category: {category}",
}

LANGUAGE_NAMES = {
    "ja": "Japanese",
    "en": "English",
}

TRANSLATE_TEMPLATE = (
    "Translate the following {source} sentence into {target}. "
    "Reply with the translated sentence only.\n\n{text}"
)


def pick_first(value: Any) -> Any:
    """Query strings may repeat a parameter; only the first value counts."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def normalize_language(value: Any) -> str:
    value = pick_first(value)
    if isinstance(value, str) and value.strip().lower() in SUPPORTED_LANGUAGES:
        return value.strip().lower()
    return DEFAULT_LANGUAGE


def build_idea_prompt(category: Any, lang: Any = None) -> str:
    language = normalize_language(lang)
    category = pick_first(category)
    if not isinstance(category, str) or not category.strip():
        category = DEFAULT_CATEGORY[language]
    return IDEA_TEMPLATES[language].format(category=category.strip())


def build_translation_prompt(text: str, source: Any, target: Any) -> Optional[str]:
    """Return None when there is nothing to translate or the languages match."""
    text = pick_first(text)
    if not isinstance(text, str) or not text.strip():
        return None
    source_lang = normalize_language(source)
    target_lang = normalize_language(target)
    if source_lang == target_lang:
        return None
    return TRANSLATE_TEMPLATE.format(
        source=LANGUAGE_NAMES[source_lang],
        target=LANGUAGE_NAMES[target_lang],
        text=text.strip(),
    )
