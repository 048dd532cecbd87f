# services/generation_client.py
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence

from google import genai
from google.genai import types
from langchain.chat_models import init_chat_model
from langchain_core.messages import HumanMessage

from helper.ai_logging import ai_dbg, ai_err
from helper.chat_context import HistoryEntry, to_langchain_messages
from helper.error_handling import GenerationFailure
from helper.prompts_helper import build_prompt

ChunkCallback = Callable[[str], None]


def describe_provider_error(exc: BaseException) -> str:
    """Short cause that is safe to hand back to API clients."""
    status = getattr(exc, "code", None) or getattr(exc, "status_code", None)
    if status == 429:
        return "AI provider quota exceeded"
    if status in (401, 403):
        return "AI provider rejected the API credentials"
    return "Failed to generate response"


class GenerationClient(ABC):
    """Contract consumed by the message exchange."""

    name: str

    @abstractmethod
    async def generate(
        self,
        prompt_text: str,
        formatting_instruction: str,
        history: Optional[Sequence[HistoryEntry]] = None,
    ) -> str:
        """Return the full reply text; GenerationFailure on provider error or empty reply."""
        ...

    @abstractmethod
    async def generate_stream(
        self,
        prompt_text: str,
        formatting_instruction: str,
        on_chunk: ChunkCallback,
        history: Optional[Sequence[HistoryEntry]] = None,
    ) -> str:
        """Call on_chunk per fragment in arrival order; return the concatenation."""
        ...

    def _finish(self, text: Any) -> str:
        if not text or not isinstance(text, str):
            raise GenerationFailure("Empty response from AI provider")
        ai_dbg(f"{self.name}.raw", {"len": len(text), "preview": text[:140]})
        return text

    def _fail(self, exc: Exception) -> GenerationFailure:
        ai_err(f"{self.name}.error", {"exc": f"{exc.__class__.__name__}: {exc}"})
        return GenerationFailure(describe_provider_error(exc))


class GeminiGenerationClient(GenerationClient):
    name = "gemini"

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", client: Any = None) -> None:
        self.model = model
        self.client = client or genai.Client(api_key=api_key)

    def _build_contents(self, prompt_text, formatting_instruction, history):
        full_prompt = build_prompt(prompt_text, formatting_instruction)
        if not history:
            return full_prompt
        contents: List[types.Content] = []
        for entry in history:
            if not entry.text:
                continue
            role = "model" if entry.sender == "ai" else "user"
            contents.append(types.Content(role=role, parts=[types.Part.from_text(text=entry.text)]))
        contents.append(types.Content(role="user", parts=[types.Part.from_text(text=full_prompt)]))
        return contents

    async def generate(self, prompt_text, formatting_instruction, history=None):
        contents = self._build_contents(prompt_text, formatting_instruction, history)
        try:
            response = await self.client.aio.models.generate_content(model=self.model, contents=contents)
        except Exception as e:
            raise self._fail(e) from e
        return self._finish(response.text)

    async def generate_stream(self, prompt_text, formatting_instruction, on_chunk, history=None):
        contents = self._build_contents(prompt_text, formatting_instruction, history)
        chunks: List[str] = []
        try:
            stream = await self.client.aio.models.generate_content_stream(model=self.model, contents=contents)
            async for chunk in stream:
                if chunk.text:
                    chunks.append(chunk.text)
                    on_chunk(chunk.text)
        except Exception as e:
            raise self._fail(e) from e
        return self._finish("".join(chunks))


def _content_text(content: Any) -> str:
    # LangChain content is either a string or a list of typed parts
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            p.get("text", "") if isinstance(p, dict) else str(p)
            for p in content
        )
    return ""


class OpenAIGenerationClient(GenerationClient):
    name = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", chat_model: Any = None) -> None:
        self.model = model
        self.chat_model = chat_model or init_chat_model(
            model, model_provider="openai", api_key=api_key, temperature=0.2
        )

    def _messages(self, prompt_text, formatting_instruction, history):
        messages = to_langchain_messages(history or [])
        messages.append(HumanMessage(content=build_prompt(prompt_text, formatting_instruction)))
        return messages

    async def generate(self, prompt_text, formatting_instruction, history=None):
        messages = self._messages(prompt_text, formatting_instruction, history)
        try:
            result = await self.chat_model.ainvoke(messages)
        except Exception as e:
            raise self._fail(e) from e
        return self._finish(_content_text(getattr(result, "content", None)))

    async def generate_stream(self, prompt_text, formatting_instruction, on_chunk, history=None):
        messages = self._messages(prompt_text, formatting_instruction, history)
        chunks: List[str] = []
        try:
            async for ev in self.chat_model.astream(messages):
                delta = _content_text(getattr(ev, "content", None))
                if delta:
                    chunks.append(delta)
                    on_chunk(delta)
        except Exception as e:
            raise self._fail(e) from e
        return self._finish("".join(chunks))


def build_generation_client(settings) -> GenerationClient:
    provider = settings.llm_provider
    if provider == "gemini":
        if not settings.gemini_api_key:
            raise RuntimeError("GEMINI_API_KEY is not set")
        return GeminiGenerationClient(settings.gemini_api_key, settings.gemini_model)
    if provider == "openai":
        if not settings.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")
        return OpenAIGenerationClient(settings.openai_api_key, settings.openai_model)
    raise RuntimeError(f"Unknown LLM_PROVIDER: {provider!r}")
