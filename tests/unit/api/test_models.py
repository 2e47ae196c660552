"""
Unit tests for API request models.
"""

import pytest
from pydantic import ValidationError

from call_resilience.api.models import TrainingQuestionsRequest


def test_training_request_minimal():
    """Test TrainingQuestionsRequest with required fields only."""
    request = TrainingQuestionsRequest(
        training_type="multiple_choice",
        level="beginner",
        domain="administrative_law",
    )

    assert request.training_type == "multiple_choice"
    assert request.session_id is None


def test_training_request_with_session():
    request = TrainingQuestionsRequest.model_validate(
        {"training_type": "case_study", "level": "advanced", "domain": "tax", "session_id": "s-1"}
    )

    assert request.session_id == "s-1"


@pytest.mark.parametrize(
    "field,value",
    [
        ("training_type", "essay"),
        ("level", "expert"),
        ("domain", ""),
        ("domain", "x" * 101),
        ("session_id", "s" * 101),
    ],
)
def test_training_request_rejects_invalid_values(field, value):
    payload = {"training_type": "true_false", "level": "intermediate", "domain": "labor_law"}
    payload[field] = value

    with pytest.raises(ValidationError):
        TrainingQuestionsRequest.model_validate(payload)
