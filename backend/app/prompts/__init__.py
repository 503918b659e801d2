"""Prompt templates for LLM interactions.

Modules:
    tutor: Chat tutor system prompt + handwriting OCR instruction
"""
