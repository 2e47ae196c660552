"""
API-specific request models for FastAPI endpoints.

Responses are ResponseEnvelope payloads (see call_resilience.formatting).
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

TrainingType = Literal["multiple_choice", "true_false", "case_study"]
Level = Literal["beginner", "intermediate", "advanced"]

REQUIRED_TRAINING_FIELDS = ("training_type", "level", "domain")
OPTIONAL_TRAINING_FIELDS = ("session_id",)


class TrainingQuestionsRequest(BaseModel):
    """Body of POST /training/questions."""

    training_type: TrainingType = Field(description="Kind of training session to generate")
    level: Level = Field(description="Candidate level")
    domain: str = Field(min_length=1, max_length=100, description="Study domain", examples=["administrative_law"])
    session_id: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Client session id; a new one is generated when absent",
    )
