import logging
from dataclasses import dataclass
from typing import List, Dict, Optional

import openai

from vidhanto.config import GEMINI_API_KEY, GEMINI_MODEL, GEMINI_BASE_URL

logger = logging.getLogger(__name__)

LEGAL_SYSTEM_PROMPT = """You are an AI legal assistant for users of the Indian legal system. You give general legal information and orientation, never advice on a specific case.

Guidelines:
1. Make clear that you are not a lawyer and that your answers are informational only
2. Recommend consulting a qualified advocate for any concrete legal matter
3. Explain Indian statutes, court procedure and general legal concepts in plain language
4. Keep answers clear, accurate and concise
5. When unsure, say so and suggest speaking to a lawyer
6. Common topics include family law, property and tenancy, consumer rights, employment and criminal procedure
7. Cite the relevant Act and section where one applies
8. Do not advise on strategy for ongoing cases or disputes

Your goal is to help users understand the Indian legal system, not to replace professional counsel."""

HISTORY_WINDOW = 10


class AIServiceError(Exception):
    """The model call failed for a reason other than quota."""


class AIQuotaExceeded(AIServiceError):
    """The provider rejected the call for quota or rate limits."""


@dataclass
class AIReply:
    content: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class LegalAssistant:
    """Gemini, called through its OpenAI-compatible chat completions API."""

    def __init__(self, api_key: str = GEMINI_API_KEY, model: str = GEMINI_MODEL, base_url: str = GEMINI_BASE_URL):
        self.model = model
        self.client = None
        if not api_key:
            logger.warning("GEMINI_API_KEY not set; AI chat will fail until configured")
        else:
            self.client = openai.OpenAI(api_key=api_key, base_url=base_url)

    def is_available(self) -> bool:
        return self.client is not None

    def reply(self, message: str, history: Optional[List[Dict[str, str]]] = None) -> AIReply:
        if not self.client:
            raise AIServiceError("AI service is not configured")

        messages = [{"role": "system", "content": LEGAL_SYSTEM_PROMPT}]
        for item in (history or [])[-HISTORY_WINDOW:]:
            messages.append(item)
        messages.append({"role": "user", "content": message})

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=1000,
                temperature=0.3,
            )
        except openai.RateLimitError as e:
            logger.warning(f"AI quota exceeded: {e}")
            raise AIQuotaExceeded(str(e)) from e
        except openai.APIError as e:
            logger.error(f"AI API error: {e}")
            raise AIServiceError(str(e)) from e

        usage = response.usage
        return AIReply(
            content=response.choices[0].message.content or "",
            model=self.model,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )


_assistant: Optional[LegalAssistant] = None


def get_legal_assistant() -> LegalAssistant:
    global _assistant
    if _assistant is None:
        _assistant = LegalAssistant()
    return _assistant
