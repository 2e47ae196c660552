"""
Training question generation over the resilient LLM path.

Flow:
    1. Pick the prompt template for the training type
    2. Call the LLM through ResilientCaller (provider retry policy, named circuit)
    3. Parse the reply with ResponseFormatter.safe_parse_json
    4. On any failure (circuit open, retries exhausted, unparseable reply)
       return fallback content as a WARNING envelope

Callers always get an envelope; generation never raises except on
cancellation or an unknown training type.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from call_resilience.config import Settings
from call_resilience.formatting.envelope import ResponseEnvelope, utc_timestamp
from call_resilience.formatting.formatter import ResponseFormatter
from call_resilience.guard import ResilientCaller
from call_resilience.llm.base_client import BaseLLMClient
from call_resilience.models.llm_models import ChatCompletionRequest, ChatMessage

logger = structlog.get_logger(__name__)

USER_INSTRUCTION = "Generate the requested content following the JSON format exactly."


@dataclass(frozen=True)
class TrainingTemplate:
    system_prompt: str
    max_tokens: int
    estimated_duration: int  # minutes


TRAINING_TEMPLATES: dict[str, TrainingTemplate] = {
    "multiple_choice": TrainingTemplate(
        system_prompt=(
            "You are an exam preparation expert. Generate EXACTLY 5 multiple-choice "
            "questions for a {level} candidate in {domain}.\n"
            "Strict JSON format:\n"
            '{{"questions": [{{"id": "q1", "question": "...", "options": ["A", "B", "C", "D"], '
            '"correct_answer": 0, "explanation": "...", "difficulty": "{level}"}}]}}'
        ),
        max_tokens=2000,
        estimated_duration=10,
    ),
    "true_false": TrainingTemplate(
        system_prompt=(
            "You are an exam preparation expert. Generate EXACTLY 5 true/false "
            "statements for a {level} candidate in {domain}.\n"
            "Strict JSON format:\n"
            '{{"questions": [{{"id": "tf1", "statement": "...", "is_correct": true, '
            '"explanation": "..."}}]}}'
        ),
        max_tokens=1500,
        estimated_duration=5,
    ),
    "case_study": TrainingTemplate(
        system_prompt=(
            "You are an exam preparation expert. Generate ONE complete case study "
            "for a {level} candidate in {domain}.\n"
            "Strict JSON format:\n"
            '{{"title": "...", "context": "...", "questions": [{{"id": "step1", '
            '"question": "...", "expected_points": ["..."], "time_limit": 15}}]}}'
        ),
        max_tokens=2500,
        estimated_duration=30,
    ),
}


class QuestionGenerator:
    """
    Generates training questions, degrading to fallback content on failure.

    Attributes:
        llm_client: Chat completion client
        caller: Breaker + retry composition
        circuit_name: Circuit guarding the LLM dependency
        model: Model identifier sent to the provider
        temperature: Sampling temperature
    """

    def __init__(
        self,
        llm_client: BaseLLMClient,
        caller: ResilientCaller,
        circuit_name: str = "openai-chat",
        model: str = "gpt-4.1-2025-04-14",
        temperature: float = 0.7,
    ):
        self.llm_client = llm_client
        self.caller = caller
        self.circuit_name = circuit_name
        self.model = model
        self.temperature = temperature

    @classmethod
    def from_settings(
        cls, llm_client: BaseLLMClient, caller: ResilientCaller, settings: Settings
    ) -> "QuestionGenerator":
        return cls(
            llm_client,
            caller,
            circuit_name=settings.LLM_CIRCUIT_NAME,
            model=settings.OPENAI_MODEL,
            temperature=settings.OPENAI_TEMPERATURE,
        )

    def build_request(self, training_type: str, level: str, domain: str) -> ChatCompletionRequest:
        """
        Build the chat request for a training type.

        Raises:
            ValueError: Unknown training type
        """
        template = TRAINING_TEMPLATES.get(training_type)
        if template is None:
            raise ValueError(f"Unknown training type: {training_type}")

        return ChatCompletionRequest(
            messages=[
                ChatMessage(role="system", content=template.system_prompt.format(level=level, domain=domain)),
                ChatMessage(role="user", content=USER_INSTRUCTION),
            ],
            model=self.model,
            max_tokens=template.max_tokens,
            temperature=self.temperature,
            json_mode=True,
        )

    async def generate(
        self,
        training_type: str,
        level: str,
        domain: str,
        session_id: Optional[str] = None,
    ) -> ResponseEnvelope:
        """
        Generate one training session.

        Returns:
            OK envelope with ``questions`` + ``session_info``, or the WARNING
            fallback envelope when the LLM path failed
        """
        session_id = session_id or str(uuid.uuid4())
        request = self.build_request(training_type, level, domain)

        log = logger.bind(training_type=training_type, level=level, session_id=session_id)

        try:
            reply = await self.caller.call_provider(
                self.circuit_name,
                lambda: self.llm_client.chat_completion(request),
                f"generate-{training_type}",
            )
        except Exception as e:
            log.warning("Question generation failed, serving fallback", error=str(e), error_type=type(e).__name__)
            return ResponseFormatter.create_fallback_content(training_type, level, domain, session_id)

        parsed = ResponseFormatter.safe_parse_json(reply.content)
        questions = parsed.data.get("questions") if isinstance(parsed.data, dict) else None
        if not parsed.success or not isinstance(questions, list) or not questions:
            log.warning("Unusable LLM reply, serving fallback", parse_error=parsed.error)
            return ResponseFormatter.create_fallback_content(training_type, level, domain, session_id)

        content: dict[str, Any] = {
            **parsed.data,
            "session_info": {
                "id": session_id,
                "training_type": training_type,
                "level": level,
                "domain": domain,
                "created_at": utc_timestamp(),
                "estimated_duration": TRAINING_TEMPLATES[training_type].estimated_duration,
                "is_error_fallback": False,
            },
        }

        log.info("Questions generated", question_count=len(questions), model=reply.model)
        return ResponseFormatter.success(content, {"model": reply.model})
