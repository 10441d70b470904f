"""Reply Schema - the two shapes a free-form answer can take.

A reply is either PlainText to show the student, or a Directive that opens
the scripted purchase flow at a given step. Callers match on the type, never
on which fields happen to be present.
"""

import json
import logging
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from app.core.categories import is_valid_category

logger = logging.getLogger(__name__)


class Directive(BaseModel):
    """Open a purchase-flow session at `step`."""
    kind: Literal["directive"] = "directive"
    step: Literal["category_selection", "material_selection"]
    query: Optional[str] = None
    category: Optional[str] = None

    @field_validator("query")
    @classmethod
    def clean_query(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        v = v.strip()
        return v[:200] if v else None

    @field_validator("category")
    @classmethod
    def known_category(cls, v: Optional[str]) -> Optional[str]:
        """Unknown categories are dropped rather than rejected."""
        if v and is_valid_category(v.strip()):
            return v.strip()
        return None


class PlainText(BaseModel):
    kind: Literal["text"] = "text"
    text: str


ComposedReply = Annotated[Union[Directive, PlainText], Field(discriminator="kind")]

_reply_adapter = TypeAdapter(ComposedReply)


def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines[0].strip().startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines).strip()
    return text


def parse_reply(raw: str) -> Union[Directive, PlainText]:
    """
    Model output -> ComposedReply.

    Valid JSON in either shape is validated; anything else (prose, broken
    JSON, unknown kind) is shown to the student as-is.
    """
    try:
        data = json.loads(_strip_code_fence(raw))
        return _reply_adapter.validate_python(data)
    except json.JSONDecodeError:
        logger.debug("Model reply was not JSON - using raw text")
    except Exception as e:
        logger.warning(f"Model reply failed schema validation: {e}")
    return PlainText(text=raw.strip())
