"""AI Module for Groq LLM Integration.

Text generation is OPTIONAL: study answers and practice questions use the
model when GROQ_API_KEY is set and fall back to templated replies otherwise.
"""

from .composer import ResponseComposer
from .reply_schema import Directive, PlainText, parse_reply

__all__ = ["ResponseComposer", "Directive", "PlainText", "parse_reply"]
