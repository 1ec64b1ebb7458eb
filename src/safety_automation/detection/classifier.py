"""
Safety Automation Contextual Classifier - Second-opinion LLM screening.
Asks a chat model whether an ambiguous message is a genuine crisis or active grief.
"""
from __future__ import annotations
import asyncio
from abc import ABC, abstractmethod
from typing import Any
from langchain_anthropic import ChatAnthropic
from langchain_core.prompts import ChatPromptTemplate
import structlog

from ..config import ClassifierSettings
from ..exceptions import ClassifierUnavailableError
from .models import SafetyCategory

logger = structlog.get_logger(__name__)

CRISIS_INSTRUCTIONS = """You are a Christian counselor with theological training. Decide whether the user's message shows a genuine crisis that needs immediate professional intervention.

Context: users of this counseling platform ask spiritual questions and look for Biblical guidance. Questions addressed TO God or ABOUT God are ordinary spiritual inquiry, not emergencies.

Answer true ONLY for:
- Active suicidal ideation with intent or a plan
- Imminent self-harm
- Abuse or violence that is happening now
- Life-threatening addiction needing emergency help
- A severe mental health emergency with immediate danger

Answer false for:
- Prayers or questions directed at God ("God, are you listening?", "Where are you God?")
- Questions about God's existence, nature or will, and spiritual doubt
- Struggles in the past that are now resolved, and historical references to old pain
- Hypothetical, academic or theological discussion of suffering or violence
- Metaphor ("dying inside", "this exam is killing me")

Spiritual desperation is not a crisis. When the message is ambiguous, answer false.

Respond with ONLY the word true or false."""

GRIEF_INSTRUCTIONS = """You are a Christian counselor. Decide whether the user's message shows ACTIVE GRIEF over a RECENT, ACTUAL loss that calls for grief support resources.

Context: spiritual questions, feeling distant from God, or seeking God in hard times are normal on this platform and are not grief.

Answer true ONLY when the message explicitly mentions:
- The death of a loved one (recent) together with distress about it
- A terminal diagnosis together with active processing of the coming death
- Acute bereavement that names who died

Answer false for:
- Prayers or questions directed at God, or feeling spiritually abandoned
- General hardship, loneliness, anxiety or stress with no explicit death or loss
- Theological questions about death, suffering or the afterlife
- A past loss that has been processed
- Metaphorical talk about death or dying

Examples: "Why is God silent?" is false. "I feel so alone" is false. "My mother died last month and I can't cope" is true.

Be very conservative. When in doubt, answer false.

Respond with ONLY the word true or false."""

CATEGORY_INSTRUCTIONS: dict[SafetyCategory, str] = {
    SafetyCategory.CRISIS: CRISIS_INSTRUCTIONS,
    SafetyCategory.GRIEF: GRIEF_INSTRUCTIONS,
}


class ContextualClassifier(ABC):
    """Second-opinion classifier consulted for ambiguous messages."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the classifier can be called at all."""
        pass

    @abstractmethod
    async def classify(self, message: str, category: SafetyCategory) -> bool:
        """Return True when the message is a genuine instance of the category.

        Raises:
            ClassifierUnavailableError: on network, auth, quota or timeout failure.
        """
        pass


class LLMContextualClassifier(ContextualClassifier):
    """
    Contextual classifier backed by a LangChain chat model.

    The model answers with a single word; anything other than "true" counts as
    a negative verdict. The call is bounded by ``timeout_seconds``.
    """

    def __init__(self, settings: ClassifierSettings | None = None, llm: Any | None = None) -> None:
        """
        Args:
            settings: Classifier configuration
            llm: Optional pre-built chat model exposing ``ainvoke``; built from settings when omitted
        """
        self._settings = settings or ClassifierSettings()
        self._llm = llm if llm is not None else self._build_llm()
        self._prompts = {
            category: ChatPromptTemplate.from_messages([
                ("system", instructions),
                ("human", "Message: {message}"),
            ])
            for category, instructions in CATEGORY_INSTRUCTIONS.items()
        }
        logger.info(
            "contextual_classifier_initialized",
            provider=self._settings.provider,
            model=self._settings.model_name,
            configured=self.is_configured,
        )

    def _build_llm(self) -> Any | None:
        if not self._settings.is_configured:
            return None
        return ChatAnthropic(
            model=self._settings.model_name,
            api_key=self._settings.api_key,
            temperature=float(self._settings.temperature),
            max_tokens=self._settings.max_tokens,
            timeout=self._settings.timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return self._llm is not None

    async def classify(self, message: str, category: SafetyCategory) -> bool:
        if self._llm is None:
            raise ClassifierUnavailableError(self._settings.provider, "Contextual classifier is not configured")
        text = message[: self._settings.max_input_chars]
        messages = self._prompts[category].format_messages(message=text)
        try:
            response = await asyncio.wait_for(
                self._llm.ainvoke(messages), timeout=self._settings.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise ClassifierUnavailableError(
                self._settings.provider,
                f"Classifier call exceeded {self._settings.timeout_seconds}s",
                cause=e,
            ) from e
        except Exception as e:
            raise ClassifierUnavailableError(
                self._settings.provider, f"Classifier call failed: {e}", cause=e
            ) from e
        answer = self._extract_text(response).strip().strip(".\"'").lower()
        verdict = answer == "true"
        if answer not in ("true", "false"):
            logger.warning("classifier_unexpected_answer", category=category.value,
                           answer=answer[:20])
        logger.debug("contextual_classification_complete", category=category.value,
                     message_length=len(message), verdict=verdict)
        return verdict

    @staticmethod
    def _extract_text(response: Any) -> str:
        content = getattr(response, "content", response)
        if isinstance(content, list):
            return "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        return str(content)
