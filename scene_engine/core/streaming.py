"""
Streaming Metadata Filter

Turns an arbitrarily chunked model stream into narrative-only text. The
<SCENE_META> footer is withheld and dropped even when its tags are split
across chunk boundaries.

States:
    SCANNING           plain narrative, nothing tag-like at the tail
    POSSIBLE_TAG_OPEN  the buffer ends with a prefix of the opening tag
    INSIDE_METADATA    an opening tag was seen and no closing tag yet

Everything fed is also accumulated verbatim in ``full_content``; the cached
scene is always extracted from that, never from the emitted fragments.
"""

import re
from enum import Enum
from typing import AsyncIterator, List

from ..models import ParsedScene, StreamEvent
from .metadata import META_CLOSE_TAG, META_OPEN_TAG, extract_scene, strip_metadata_blocks

DEFAULT_LOOKBACK = 200

_OPEN_PATTERN = re.compile(re.escape(META_OPEN_TAG), re.IGNORECASE)
_CLOSE_PATTERN = re.compile(re.escape(META_CLOSE_TAG), re.IGNORECASE)
_OPEN_LOWER = META_OPEN_TAG.lower()


class FilterState(str, Enum):
    SCANNING = "scanning"
    POSSIBLE_TAG_OPEN = "possible_tag_open"
    INSIDE_METADATA = "inside_metadata"


def _partial_open_suffix(text: str) -> int:
    """Length of the longest tail of text that is a proper prefix of the opening tag."""
    longest = min(len(META_OPEN_TAG) - 1, len(text))
    for size in range(longest, 0, -1):
        if text[-size:].lower() == _OPEN_LOWER[:size]:
            return size
    return 0


class MetadataStreamFilter:
    """
    Incremental narrative/metadata splitter.

    ``feed`` returns the fragments that are safe to show now; ``finish``
    returns whatever is left once the upstream stream has ended. The last
    ``lookback`` characters are always held back while scanning so a tag
    split across chunks is seen whole before anything around it is emitted.
    """

    def __init__(self, lookback: int = DEFAULT_LOOKBACK):
        if lookback < len(META_CLOSE_TAG):
            raise ValueError(f"lookback must be at least {len(META_CLOSE_TAG)} characters")
        self.lookback = lookback
        self.state = FilterState.SCANNING
        self._buffer = ""
        self._pending_whitespace = ""
        self._parts: List[str] = []
        self._started = False
        self._finished = False

    @property
    def full_content(self) -> str:
        return "".join(self._parts)

    def feed(self, chunk: str) -> List[str]:
        if self._finished:
            raise RuntimeError("feed() called after finish()")
        if not chunk:
            return []

        self._parts.append(chunk)
        self._buffer += chunk
        emitted: List[str] = []
        self._drain(emitted)
        return emitted

    def finish(self) -> List[str]:
        if self._finished:
            return []
        self._finished = True

        emitted: List[str] = []
        if self.state == FilterState.INSIDE_METADATA:
            # Unclosed block; nothing after the opening tag is narrative
            self._buffer = ""
            return emitted

        remainder = strip_metadata_blocks(self._buffer).rstrip()
        self._buffer = ""
        self.state = FilterState.SCANNING
        self._emit(remainder, emitted)
        return emitted

    def _emit(self, text: str, emitted: List[str]) -> None:
        if not self._started:
            text = text.lstrip()
        if text:
            self._started = True
            emitted.append(text)

    def _drain(self, emitted: List[str]) -> None:
        while True:
            if self.state == FilterState.INSIDE_METADATA:
                close = _CLOSE_PATTERN.search(self._buffer)
                if not close:
                    # Only a split closing tag needs to survive to the next chunk
                    keep = len(META_CLOSE_TAG) - 1
                    if len(self._buffer) > keep:
                        self._buffer = self._buffer[-keep:]
                    return
                self._buffer = self._pending_whitespace + self._buffer[close.end():]
                self._pending_whitespace = ""
                self.state = FilterState.SCANNING
                continue

            opening = _OPEN_PATTERN.search(self._buffer)
            if opening:
                before = self._buffer[:opening.start()]
                narrative = before.rstrip()
                self._emit(narrative, emitted)
                self._pending_whitespace = before[len(narrative):]
                self._buffer = self._buffer[opening.end():]
                self.state = FilterState.INSIDE_METADATA
                continue

            partial = _partial_open_suffix(self._buffer)
            self.state = FilterState.POSSIBLE_TAG_OPEN if partial else FilterState.SCANNING
            holdback = max(self.lookback, partial)
            if len(self._buffer) > holdback:
                self._emit(self._buffer[:-holdback], emitted)
                self._buffer = self._buffer[-holdback:]
            return


class SceneStreamTranscoder:
    """Wraps a model chunk stream and yields content events with the footer removed."""

    def __init__(self, chunks: AsyncIterator[str], lookback: int = DEFAULT_LOOKBACK):
        self._chunks = chunks
        self._filter = MetadataStreamFilter(lookback=lookback)

    @property
    def full_content(self) -> str:
        return self._filter.full_content

    async def events(self) -> AsyncIterator[StreamEvent]:
        async for chunk in self._chunks:
            for fragment in self._filter.feed(chunk):
                yield StreamEvent.text(fragment)

        for fragment in self._filter.finish():
            yield StreamEvent.text(fragment)

    def result(self) -> ParsedScene:
        """Authoritative split of everything the model produced."""
        return extract_scene(self.full_content)
