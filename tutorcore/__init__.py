"""Conversation and session orchestration core for the tutoring assistant."""

__version__ = "1.0.0"
