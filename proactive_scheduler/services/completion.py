"""Language-model completion service used for message classification."""
from abc import ABC, abstractmethod
from typing import Optional
from langchain_openai import ChatOpenAI
from langchain_core.messages import HumanMessage, SystemMessage

from proactive_scheduler.config import settings


class CompletionService(ABC):
    """Returns the raw text a model produced for an instruction and context."""

    @abstractmethod
    def complete(self, instruction: str, context: str) -> str:
        """Run one completion; raise on transport or timeout errors."""


class OpenAICompletionService(CompletionService):
    """Chat completion through LangChain's OpenAI client, in JSON mode."""

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None
    ):
        self.model = model or settings.OPENAI_MODEL
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.temperature = settings.DETECTION_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or settings.DETECTION_MAX_TOKENS
        self.timeout = timeout or settings.DETECTION_TIMEOUT_SECONDS
        self._llm = None

    @property
    def llm(self):
        # Built on first use so the app can start without an API key
        if self._llm is None:
            self._llm = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                max_retries=0,
                api_key=self.api_key
            ).bind(response_format={"type": "json_object"})
        return self._llm

    def complete(self, instruction: str, context: str) -> str:
        response = self.llm.invoke([
            SystemMessage(content=instruction),
            HumanMessage(content=context)
        ])
        return response.content
