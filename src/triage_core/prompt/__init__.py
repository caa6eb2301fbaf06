"""Prompt and notification rendering.

Provides ``PromptManager``, a Jinja2-based template engine that renders the
secondary-assessment prompt and the subject/body of supervisor
notifications.
"""

from triage_core.prompt.manager import PromptManager

__all__ = ["PromptManager"]
