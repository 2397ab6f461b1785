"""Prompt templates and rendering."""

from chancery.prompts.decision import build_decision_messages, get_decision_template
from chancery.prompts.loader import (
    PromptLoader,
    PromptTemplate,
    TemplateNotFoundError,
    TemplateParseError,
)

__all__ = [
    "PromptLoader",
    "PromptTemplate",
    "TemplateNotFoundError",
    "TemplateParseError",
    "build_decision_messages",
    "get_decision_template",
]
