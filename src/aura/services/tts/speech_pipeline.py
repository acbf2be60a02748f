"""
Ordered speech dispatch for one assistant turn.

Synthesis for every segment starts as soon as the segment is submitted, so
several requests can be in flight while the model keeps streaming. A single
dispatcher task then awaits those requests strictly in submission order and
hands each result to the playback scheduler, so segment N+1 is never
scheduled before segment N even when its audio comes back first.

Architecture:
    submit(segment) → synthesis task ─┐
    submit(segment) → synthesis task ─┼→ ordered queue → dispatcher → PlaybackScheduler
    submit(segment) → synthesis task ─┘

Usage:
    pipeline = SpeechPipeline(speech_service, scheduler)
    pipeline.start()
    pipeline.submit(segment)
    ...
    await pipeline.drain()      # normal end of turn
    # or
    await pipeline.abort()      # turn failed
"""

import asyncio
import logging
from contextlib import suppress
from typing import Optional, Protocol

from ...audio import codec
from ...audio.scheduler import PlaybackScheduler, ScheduledSegment
from ...errors import DecodeError, DeviceError, NetworkError
from .text_segmenter import Segment

logger = logging.getLogger(__name__)


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str) -> Optional[str]: ...


class SpeechPipeline:
    """
    Per-turn queue that keeps playback in segment emission order.

    Failures are contained per segment: a network or decode failure skips
    that segment's audio, a device failure is logged, and the turn goes on.

    Attributes:
        scheduled: (segment, placement) pairs in the order they were scheduled
        skipped: Segments whose audio could not be produced or played
    """

    def __init__(self, synthesizer: SpeechSynthesizer, scheduler: PlaybackScheduler):
        self._synthesizer = synthesizer
        self._scheduler = scheduler
        self._queue: asyncio.Queue[tuple[Segment, asyncio.Task] | None] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        self._runner: Optional[asyncio.Task] = None
        self._closed = False
        self.scheduled: list[tuple[Segment, ScheduledSegment]] = []
        self.skipped: list[Segment] = []

    @property
    def finished(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the dispatcher task. Must be called from a running loop."""
        if self._runner is None:
            self._runner = asyncio.create_task(self._dispatch())

    def submit(self, segment: Segment) -> bool:
        """Start synthesis for ``segment``; return False if it is not spoken."""
        if self._closed:
            raise RuntimeError("Speech pipeline is closed")
        if not segment.speakable:
            return False
        self.start()
        task = asyncio.create_task(self._synthesize(segment))
        self._tasks.append(task)
        self._queue.put_nowait((segment, task))
        return True

    async def _synthesize(self, segment: Segment) -> Optional[bytes]:
        logger.info(
            "Synthesizing segment %d (%d chars): %s...",
            segment.index,
            len(segment.text),
            segment.text[:50],
        )
        try:
            payload = await self._synthesizer.synthesize(segment.text)
        except NetworkError as exc:
            logger.warning("Speech synthesis failed for segment %d: %s", segment.index, exc)
            return None
        except Exception as exc:
            logger.error(
                "Unexpected speech error for segment %d: %s", segment.index, exc, exc_info=True
            )
            return None

        if payload is None:
            logger.warning("No audio returned for segment %d", segment.index)
            return None

        try:
            return codec.decode(payload)
        except DecodeError as exc:
            logger.warning("Discarding undecodable audio for segment %d: %s", segment.index, exc)
            return None

    async def _dispatch(self) -> None:
        while True:
            item = await self._queue.get()
            if item is None:
                return
            segment, task = item
            pcm = await task
            if pcm is None:
                self.skipped.append(segment)
                continue
            try:
                placement = self._scheduler.enqueue(pcm)
            except DeviceError as exc:
                logger.error("Audio device error for segment %d: %s", segment.index, exc)
                self.skipped.append(segment)
                continue
            self.scheduled.append((segment, placement))
            logger.debug(
                "Segment %d scheduled at %.3f for %.2fs",
                segment.index,
                placement.start,
                placement.duration,
            )

    async def drain(self) -> None:
        """Wait until every submitted segment has been scheduled or skipped."""
        if self._closed:
            return
        self._closed = True
        if self._runner is None:
            return
        self._queue.put_nowait(None)
        await self._runner

    async def abort(self) -> None:
        """Cancel outstanding synthesis and stop dispatching."""
        self._closed = True
        for task in self._tasks:
            task.cancel()
        if self._runner is not None and not self._runner.done():
            self._runner.cancel()
            with suppress(asyncio.CancelledError):
                await self._runner
        await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("Speech pipeline aborted (%d segment(s) pending)", len(self._tasks))


__all__ = ["SpeechPipeline", "SpeechSynthesizer"]
