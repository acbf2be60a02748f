"""Conversation orchestration."""

from .orchestrator import ConversationOrchestrator, TurnState, TurnStream

__all__ = ["ConversationOrchestrator", "TurnState", "TurnStream"]
