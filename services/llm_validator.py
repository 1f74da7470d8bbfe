import re
from typing import Optional

from langchain_openai import ChatOpenAI
from langchain_core.messages import HumanMessage, SystemMessage

from pipeline.utils import get_logger, redact_secrets

logger = get_logger(__name__)

DEFAULT_CONFIDENCE = 0.5
DEFAULT_UNCERTAINTY = 0.25


def _extract_percent(text: str, label: str) -> Optional[float]:
    match = re.search(label + r"[:\s]+(\d+(?:\.\d+)?)\s*(%?)", text or "", re.IGNORECASE)
    if not match:
        return None
    value = float(match.group(1))
    # "confidence: 0.85" and "confidence: 85%" both show up in model output
    if match.group(2) == "%" or value > 1:
        value = value / 100
    return max(0.0, min(1.0, value))


def extract_confidence(text: str, default: Optional[float] = DEFAULT_CONFIDENCE) -> Optional[float]:
    value = _extract_percent(text, "confidence")
    return default if value is None else value


def extract_uncertainty(text: str, default: Optional[float] = DEFAULT_UNCERTAINTY) -> Optional[float]:
    value = _extract_percent(text, "uncertainty")
    return default if value is None else value


def extract_discrepancies(text: str):
    return [
        line.strip() for line in (text or "").split("\n")
        if "discrepancy" in line.lower() or "inconsistency" in line.lower()
    ]


class ChatOpenAIValidator:
    """
    Asks a chat model to cross-check numeric conclusions against prose
    guidance. Output is advisory text only.
    """

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", temperature: float = 0.1, max_tokens: int = 800, timeout: float = 30.0):
        self.llm = ChatOpenAI(model=model, temperature=temperature, max_tokens=max_tokens, api_key=api_key, timeout=timeout)

    @classmethod
    def from_settings(cls, settings) -> Optional["ChatOpenAIValidator"]:
        if not settings.has_llm:
            logger.info("OPENAI_API_KEY not configured, advisory validation disabled")
            return None
        return cls(api_key=settings.openai_api_key, model=settings.openai_model, timeout=settings.call_timeout_seconds)

    def review(self, system_prompt: str, question: str) -> str:
        try:
            response = self.llm.invoke([
                SystemMessage(content=system_prompt),
                HumanMessage(content=question),
            ])
        except Exception as e:
            logger.warning("LLM validation call failed: %s", redact_secrets(str(e)))
            raise
        return response.content
