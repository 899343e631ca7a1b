"""
Scene Metadata Extraction

The model writes free-form prose followed by a machine-readable footer:

    <SCENE_META>
    emotional_beat: tentative trust building
    tension_threads: secret identity, past trauma
    relationship_progress: +2
    key_moment: she finally says his name
    </SCENE_META>

This module splits that output into narrative body, structured metadata and a
short continuity summary. Nothing here raises on malformed input: a missing or
unclosed block simply means there is no metadata and the whole text is body.
"""

import re
from typing import Dict, List, Optional

from ..models import ParsedScene, SceneMetadata

META_OPEN_TAG = "<SCENE_META>"
META_CLOSE_TAG = "</SCENE_META>"

META_BLOCK_PATTERN = re.compile(r"<SCENE_META>([\s\S]*?)</SCENE_META>", re.IGNORECASE)

# Labels must start a line; [ \t]* keeps an empty value from swallowing the next line
_TEXT_FIELDS = (
    "emotional_beat",
    "tension_threads",
    "key_moment",
    "key_characters",
    "pov_character",
    "setting_location",
)
_FIELD_PATTERNS: Dict[str, re.Pattern] = {
    name: re.compile(rf"^[ \t]*{name}[ \t]*:[ \t]*(.+?)[ \t]*$", re.IGNORECASE | re.MULTILINE)
    for name in _TEXT_FIELDS
}
_PROGRESS_PATTERN = re.compile(
    r"^[ \t]*relationship_progress[ \t]*:[ \t]*([+-]?\d+)", re.IGNORECASE | re.MULTILINE
)

PROGRESS_MIN = -5
PROGRESS_MAX = 5

SUMMARY_SEPARATOR = " | "
FALLBACK_SUMMARY_TAG = "relationship advances subtly"

# Keyword families scanned over the opening sentences, in output order
SUMMARY_KEYWORD_FAMILIES = (
    (("kiss", "touch"), "physical spark grows"),
    (("argu", "tension"), "conflict escalates"),
    (("secret", "reveal"), "partial reveal"),
    (("fear", "anxious", "nervous"), "emotional vulnerability"),
)
SUMMARY_SENTENCE_WINDOW = 6
SUMMARY_MAX_TAGS = 3

_QUOTE_PAIRS = (('"', '"'), ("'", "'"), ("“", "”"), ("‘", "’"))


def _strip_quotes(value: str) -> str:
    trimmed = value.strip()
    for opening, closing in _QUOTE_PAIRS:
        if len(trimmed) >= 2 and trimmed.startswith(opening) and trimmed.endswith(closing):
            return trimmed[1:-1].strip()
    return trimmed


def parse_metadata_block(block: str) -> SceneMetadata:
    """Parse the interior of a metadata block field by field."""
    fields: Dict[str, object] = {}

    for name, pattern in _FIELD_PATTERNS.items():
        match = pattern.search(block)
        if match:
            value = _strip_quotes(match.group(1))
            if value:
                fields[name] = value

    progress = _PROGRESS_PATTERN.search(block)
    if progress:
        fields["relationship_progress"] = max(PROGRESS_MIN, min(PROGRESS_MAX, int(progress.group(1))))

    return SceneMetadata(**fields)


def strip_metadata_blocks(text: str) -> str:
    """Remove every complete metadata block from text."""
    return META_BLOCK_PATTERN.sub("", text)


def heuristic_summary(body: str) -> str:
    """Keyword-driven tags from the scene's opening sentences."""
    normalized = re.sub(r"\s+", " ", body).strip()
    sentences = re.split(r"(?<=[.!?])\s+", normalized)[:SUMMARY_SENTENCE_WINDOW]
    joined = " ".join(sentences).lower()

    tags: List[str] = []
    for keywords, tag in SUMMARY_KEYWORD_FAMILIES:
        if any(keyword in joined for keyword in keywords):
            tags.append(tag)

    if not tags:
        tags.append(FALLBACK_SUMMARY_TAG)

    return SUMMARY_SEPARATOR.join(tags[:SUMMARY_MAX_TAGS])


def summarize(body: str, metadata: Optional[SceneMetadata]) -> str:
    """Summary from metadata when it has usable fields, else the heuristic."""
    if metadata:
        parts = []
        if metadata.emotional_beat:
            parts.append(metadata.emotional_beat)
        if metadata.key_moment:
            parts.append(metadata.key_moment)
        if metadata.tension_threads:
            parts.append(f"tensions: {metadata.tension_threads}")
        if parts:
            return SUMMARY_SEPARATOR.join(parts)

    return heuristic_summary(body)


def extract_scene(raw_text: str) -> ParsedScene:
    """
    Split raw model output into body, metadata and summary.

    Only the first complete block is treated as metadata. Without one the
    entire (trimmed) text is the body and metadata is None.
    """
    raw_text = raw_text or ""
    match = META_BLOCK_PATTERN.search(raw_text)

    if not match:
        body = raw_text.strip()
        return ParsedScene(body=body, metadata=None, summary=summarize(body, None))

    body = (raw_text[:match.start()] + raw_text[match.end():]).strip()
    metadata = parse_metadata_block(match.group(1).strip())

    return ParsedScene(body=body, metadata=metadata, summary=summarize(body, metadata))
