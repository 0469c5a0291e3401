"""Pydantic schemas for AI responses."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, Strict, StrictBool, StrictStr


class AITriageOutput(BaseModel):
    """JSON contract the triage model must return; anything else is a parse failure."""

    model_config = ConfigDict(extra="ignore")

    canResolve: StrictBool
    # Strict: JSON numbers only (ints allowed), never "0.9" or true.
    confidence: Annotated[float, Strict(), Field(ge=0.0, le=1.0)]
    response: StrictStr | None = None
