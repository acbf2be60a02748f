"""
Speech (TTS) Pipeline Package.

- text_segmenter: Splits streaming LLM text into sentence segments
- speech_pipeline: Ordered per-turn dispatch of segment synthesis

Architecture Overview:

    ┌─────────────┐     ┌───────────────────┐     ┌────────────────┐
    │ LLM Stream  │────▶│ SentenceSegmenter │────▶│ SpeechPipeline │
    └─────────────┘     └───────────────────┘     └────────────────┘
                                                          │ (in order)
                                                          ▼
                                                 ┌───────────────────┐
                                                 │ PlaybackScheduler │
                                                 └───────────────────┘
                                                          │
                                                          ▼
                                                      speakers

Speech for the first sentence starts while the model is still writing the
next one, which keeps time-to-first-audio low.
"""

from .speech_pipeline import SpeechPipeline
from .text_segmenter import Segment, SentenceSegmenter

__all__ = ["Segment", "SentenceSegmenter", "SpeechPipeline"]
