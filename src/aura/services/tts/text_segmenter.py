"""
Sentence Segmenter for the Streaming Speech Pipeline.

Splits the incremental text of a model response into sentence-sized
segments so speech synthesis can start long before the response ends.

Architecture:
    LLM deltas → SentenceSegmenter.consume() → SpeechPipeline.submit()

Usage:
    segmenter = SentenceSegmenter(min_chars=15)

    # During LLM streaming:
    for delta in stream:
        for segment in segmenter.consume(delta):
            pipeline.submit(segment)

    # After streaming completes:
    tail = segmenter.flush()
    if tail is not None:
        pipeline.submit(tail)
"""

import re
from dataclasses import dataclass
from typing import Iterator, Optional

# Sentence terminal followed by whitespace or the end of the accumulated text
SENTENCE_END_PATTERN = re.compile(r"[.!?](\s|$)")


@dataclass(frozen=True)
class Segment:
    """One sentence-sized unit of text.

    Attributes:
        index: Emission order within the turn, starting at 0
        raw: Exact accumulated text, whitespace included
        final: True for the end-of-stream flush
    """

    index: int
    raw: str
    final: bool = False

    @property
    def text(self) -> str:
        """Text handed to speech synthesis."""
        return self.raw.strip()

    @property
    def speakable(self) -> bool:
        return bool(self.text)


class SentenceSegmenter:
    """
    Stateful segmenter that turns streaming text into sentence segments.

    After every chunk the whole accumulator is emitted once it contains a
    sentence terminal and is longer than ``min_chars``. The length guard
    keeps abbreviations and short interjections ("Oi!") from producing
    choppy, tiny synthesis requests.

    Attributes:
        min_chars: The accumulator must be longer than this to be emitted
            before the end of the stream (default: 15)
    """

    def __init__(self, min_chars: int = 15):
        self.min_chars = min_chars
        self._buffer = ""
        self._next_index = 0

    def consume(self, chunk: str) -> Iterator[Segment]:
        """
        Consume a text chunk and yield a segment when one is complete.

        Args:
            chunk: Text increment from the model stream

        Yields:
            At most one segment holding everything accumulated so far
        """
        if not chunk:
            return

        self._buffer += chunk
        if len(self._buffer) > self.min_chars and SENTENCE_END_PATTERN.search(
            self._buffer
        ):
            yield self._emit(final=False)

    def flush(self) -> Optional[Segment]:
        """
        Flush any remaining buffered text, ignoring the length guard.

        Call this after the stream completes.

        Returns:
            The final segment if any text is left, None otherwise
        """
        if not self._buffer:
            return None
        return self._emit(final=True)

    def _emit(self, *, final: bool) -> Segment:
        segment = Segment(index=self._next_index, raw=self._buffer, final=final)
        self._next_index += 1
        self._buffer = ""
        return segment

