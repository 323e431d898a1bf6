"""General (free-text) chat with memory-aware prompts."""

from src.chat.assistant import ChatAssistant, generate_title

__all__ = ["ChatAssistant", "generate_title"]
