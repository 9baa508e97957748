# In backend/core/podcast.py
#
# Text side of the podcast pipeline: turning an authoring script into
# speech-ready text, estimating how long it will sound, and cutting it into
# provider-sized pieces.

import re
from typing import Dict, List, Optional

WORDS_PER_MINUTE = 150

# Pause tags understood by the speech provider.
PAUSE_MARKERS = {
    "short": '<break time="0.5s"/>',
    "medium": '<break time="1s"/>',
    "long": '<break time="1.5s"/>',
    "section": '<break time="2s"/>',
}

SECTION_TYPES = {
    "INTRO": "intro",
    "HOOK": "hook",
    "CONTENIDO": "content",
    "CONTENT": "content",
    "VALOR": "value",
    "VALUE": "value",
    "CIERRE": "outro",
    "OUTRO": "outro",
}

SECTION_MARKER_RE = re.compile(r"\[(INTRO|HOOK|CONTENIDO|CONTENT|VALOR|VALUE|CIERRE|OUTRO)\]", re.IGNORECASE)

_LINK_RE = re.compile(r"\[([^\]\n]+)\]\([^)\n]*\)")
_STAGE_DIRECTION_RE = re.compile(r"\[[^\]\n]*\]")
_HEADING_RE = re.compile(r"^[ \t]*#{1,6}[ \t]*", re.MULTILINE)
_BULLET_RE = re.compile(r"^[ \t]*[-*+•][ \t]+", re.MULTILINE)
_RULE_RE = re.compile(r"^[ \t]*([-*_])(?:[ \t]*\1){2,}[ \t]*$", re.MULTILINE)
_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC_RE = re.compile(r"\*([^*\n]+)\*")
_BREAK_RE = re.compile(r'\s*<break\s+time="([^"]+)"\s*/?>\s*', re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_SENTENCE_END_RE = re.compile(r"[.!?]\s")
_PARAGRAPH_RE = re.compile(r"\n\s*\n")


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def convert_emphasis_to_uppercase(script: str) -> str:
    """**text** and *text* become TEXT so the voice stresses them instead of reading asterisks."""
    result = _BOLD_RE.sub(lambda m: m.group(1).upper(), script)
    return _ITALIC_RE.sub(lambda m: m.group(1).upper(), result)


def clean_script_for_tts(script: str) -> str:
    """
    Turns an authoring script into plain text for speech synthesis.

    Removes what a TTS engine would otherwise read aloud: section markers and
    other bracketed stage directions, heading markers, bullets, horizontal
    rules and markdown emphasis (converted to upper case). Link text is kept,
    pause tags are normalized, and sentence punctuation is preserved so the
    voice still pauses naturally.

    Args:
        script (str): The raw script as written by the author or the LLM.

    Returns:
        str: Speech-ready text.
    """
    if not script:
        return ""

    result = _LINK_RE.sub(r"\1", script)
    result = _STAGE_DIRECTION_RE.sub("", result)
    result = _RULE_RE.sub("", result)
    result = _HEADING_RE.sub("", result)
    result = _BULLET_RE.sub("", result)
    result = convert_emphasis_to_uppercase(result)
    result = _BREAK_RE.sub(lambda m: f' <break time="{m.group(1)}"/> ', result)

    result = re.sub(r"[ \t]+\n", "\n", result)
    result = re.sub(r"\n{3,}", "\n\n", result)
    result = re.sub(r"[ \t]{2,}", " ", result)
    return result.strip()


def count_words(text: str) -> int:
    """Counts spoken words, ignoring SSML tags."""
    return len(_TAG_RE.sub("", text or "").split())


def estimate_duration(text: str, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    """
    Estimated spoken length in seconds at an average speaking rate.

    The same estimate is used before generation (cost preview) and stored as
    the episode duration afterwards.
    """
    return _round_half_up(count_words(text) / words_per_minute * 60)


def format_duration(seconds: int) -> str:
    """Seconds as M:SS."""
    seconds = int(seconds or 0)
    return f"{seconds // 60}:{seconds % 60:02d}"


def parse_script_sections(script: str, words_per_minute: int = WORDS_PER_MINUTE) -> List[Dict]:
    """
    Splits a script on its [SECTION] markers.

    Returns:
        List[Dict]: One dict per marker with `type`, `content` and `estimatedDuration`.
    """
    matches = list(SECTION_MARKER_RE.finditer(script or ""))
    sections = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(script)
        content = script[match.end():end].strip()
        sections.append({
            "type": SECTION_TYPES.get(match.group(1).upper(), "content"),
            "content": content,
            "estimatedDuration": estimate_duration(content, words_per_minute),
        })
    return sections


def validate_script(script: str, words_per_minute: int = WORDS_PER_MINUTE) -> Dict:
    """
    Checks a script against the show's format before spending credits on it.

    Returns:
        Dict: `isValid`, `warnings`, `errors` and `metrics` (word count,
        estimated duration, section count, pause and emphasis presence).
    """
    warnings: List[str] = []
    errors: List[str] = []

    word_count = count_words(script)
    duration = estimate_duration(script, words_per_minute)
    sections = parse_script_sections(script, words_per_minute)
    has_pauses = "<break" in (script or "")
    has_emphasis = re.search(r"[A-ZÁÉÍÓÚÑ]{3,}", script or "") is not None

    if duration < 180:
        warnings.append("El script es muy corto (menos de 3 minutos)")
    if duration > 900:
        warnings.append("El script es muy largo (más de 15 minutos)")
    if len(sections) < 3:
        warnings.append("El script tiene pocas secciones definidas")
    if not has_pauses:
        warnings.append("El script no tiene marcadores de pausa")
    if not has_emphasis:
        warnings.append("El script no tiene palabras enfatizadas (MAYÚSCULAS)")
    if word_count < 100:
        errors.append("El script es demasiado corto")

    return {
        "isValid": not errors,
        "warnings": warnings,
        "errors": errors,
        "metrics": {
            "wordCount": word_count,
            "estimatedDuration": duration,
            "sectionCount": len(sections),
            "hasPauses": has_pauses,
            "hasEmphasis": has_emphasis,
        },
    }


def inject_intro_outro(script: str, intro: Optional[str] = None, outro: Optional[str] = None) -> str:
    """Adds the show's configured intro/outro when the script does not already have them."""
    result = script
    if intro and "[INTRO]" not in result:
        result = f"[INTRO]\n{PAUSE_MARKERS['short']}\n{intro}\n{PAUSE_MARKERS['medium']}\n\n{result}"
    if outro and "[CIERRE]" not in result and "[OUTRO]" not in result:
        result = f"{result}\n\n[CIERRE]\n{PAUSE_MARKERS['medium']}\n{outro}"
    return result


def _last_whitespace(window: str) -> int:
    return max(window.rfind(" "), window.rfind("\n"), window.rfind("\t"))


def chunk_text(text: str, max_chars: int) -> List[str]:
    """
    Split text into ordered chunks not exceeding max_chars.

    Each cut is made, in order of preference, at a paragraph break in the
    second half of the window, after the last sentence end, or at the last
    whitespace. A cut that would fall inside an SSML tag moves to just before
    the tag. Only a single token longer than max_chars is cut mid-word.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")

    chunks = []
    remaining = (text or "").strip()
    while remaining:
        if len(remaining) <= max_chars:
            chunks.append(remaining)
            break

        window = remaining[:max_chars]
        split_at = None

        paragraphs = [m for m in _PARAGRAPH_RE.finditer(window) if m.start() > max_chars // 2]
        if paragraphs:
            split_at = paragraphs[-1].start()
        else:
            sentences = list(_SENTENCE_END_RE.finditer(window))
            if sentences:
                split_at = sentences[-1].start() + 1
            else:
                last_space = _last_whitespace(window)
                split_at = last_space if last_space > 0 else max_chars

        # Never cut inside a tag such as <break time="1s"/>.
        tag_start = window.rfind("<", 0, split_at)
        if tag_start > 0 and window.rfind(">", 0, split_at) < tag_start:
            split_at = tag_start

        chunks.append(remaining[:split_at].strip())
        remaining = remaining[split_at:].strip()

    return [chunk for chunk in chunks if chunk]


def truncate_at_sentence(text: str, max_length: int) -> str:
    """Cut text to at most max_length characters, ending on a sentence when possible."""
    if len(text) <= max_length:
        return text

    window = text[:max_length]
    sentences = list(_SENTENCE_END_RE.finditer(window))
    if sentences:
        return text[:sentences[-1].start() + 1]

    last_space = _last_whitespace(window)
    return text[:last_space] + "..." if last_space > 0 else window
