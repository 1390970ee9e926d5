"""Conversational HR assistant for leave and work-from-home requests."""
