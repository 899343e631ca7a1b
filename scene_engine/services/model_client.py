"""
Model Clients for the Scene Engine
One interface over OpenAI-compatible APIs, Anthropic Claude and Google Gemini.
SDK failures surface as ProviderError; missing credentials as ConfigurationError.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

import anthropic
import openai
from google.api_core import exceptions as google_exceptions

from ..config import LLMProvider, SceneEngineConfiguration
from ..core.errors import ConfigurationError, ProviderError


class SceneModelClient(ABC):
    """Abstract base class for scene text generation."""

    provider: str = ""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Generate the whole response at once."""
        pass

    @abstractmethod
    def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Yield response text fragments as the provider produces them."""
        pass

    async def close(self) -> None:
        pass

    def _require_text(self, text: Optional[str]) -> str:
        if not text:
            raise ProviderError("Model returned an empty response", provider=self.provider)
        return text


class OpenAIClient(SceneModelClient):
    """OpenAI chat completions; also serves OpenRouter and Grok through base_url."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: Optional[float] = None,
        provider: str = LLMProvider.OPENAI.value,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.provider = provider
        self._client = None

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    def _messages(self, system_prompt: str, user_prompt: str):
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        max_tokens: Optional[int] = None,
    ) -> str:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=self._messages(system_prompt, user_prompt),
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as e:
            raise ProviderError(f"{self.provider} request failed: {e}", provider=self.provider) from e

        if not response.choices:
            raise ProviderError("Model returned no choices", provider=self.provider)
        return self._require_text(response.choices[0].message.content)

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=self._messages(system_prompt, user_prompt),
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            async for chunk in response:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except openai.OpenAIError as e:
            raise ProviderError(f"{self.provider} stream failed: {e}", provider=self.provider) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class ClaudeClient(SceneModelClient):
    """Anthropic Claude messages API."""

    provider = LLMProvider.CLAUDE.value

    def __init__(self, api_key: str, model: str, timeout: Optional[float] = None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        max_tokens: Optional[int] = None,
    ) -> str:
        client = self._get_client()
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=max_tokens or 4096,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            )
        except anthropic.AnthropicError as e:
            raise ProviderError(f"claude request failed: {e}", provider=self.provider) from e

        text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        return self._require_text(text)

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        client = self._get_client()
        try:
            async with client.messages.stream(
                model=self.model,
                max_tokens=max_tokens or 4096,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            ) as response:
                async for text in response.text_stream:
                    if text:
                        yield text
        except anthropic.AnthropicError as e:
            raise ProviderError(f"claude stream failed: {e}", provider=self.provider) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class GeminiClient(SceneModelClient):
    """Google Gemini; the system prompt is prepended to the user prompt."""

    provider = LLMProvider.GEMINI.value

    def __init__(self, api_key: str, model: str, timeout: Optional[float] = None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        if self._client is None:
            import google.generativeai as genai
            genai.configure(api_key=self.api_key)
            self._client = genai.GenerativeModel(self.model)
        return self._client

    def _request_options(self):
        return {"timeout": self.timeout} if self.timeout else None

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        max_tokens: Optional[int] = None,
    ) -> str:
        client = self._get_client()
        full_prompt = f"{system_prompt}\n\n---\n\n{user_prompt}"
        try:
            response = await client.generate_content_async(
                full_prompt,
                generation_config={"temperature": temperature, "max_output_tokens": max_tokens},
                request_options=self._request_options(),
            )
            text = response.text
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            # response.text raises ValueError when the candidate was blocked
            raise ProviderError(f"gemini request failed: {e}", provider=self.provider) from e
        return self._require_text(text)

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        client = self._get_client()
        full_prompt = f"{system_prompt}\n\n---\n\n{user_prompt}"
        try:
            response = await client.generate_content_async(
                full_prompt,
                generation_config={"temperature": temperature, "max_output_tokens": max_tokens},
                request_options=self._request_options(),
                stream=True,
            )
            async for chunk in response:
                text = chunk.text
                if text:
                    yield text
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            raise ProviderError(f"gemini stream failed: {e}", provider=self.provider) from e


def create_model_client(config: SceneEngineConfiguration) -> SceneModelClient:
    """Factory function to create the client for the active provider."""
    problems = config.validate_active_provider()
    if problems:
        raise ConfigurationError("; ".join(problems))

    provider = config.active_provider
    provider_config = config.get_provider_config(provider)
    api_key = provider_config.api_key.get_secret_value()
    if not api_key:
        raise ConfigurationError(f"API key for {provider.value} is empty")

    model = config.resolve_model()
    timeout = config.generation.timeout_seconds

    if provider in (LLMProvider.OPENAI, LLMProvider.OPENROUTER, LLMProvider.GROK):
        # OpenRouter and Grok speak the OpenAI wire protocol
        return OpenAIClient(
            api_key=api_key,
            model=model,
            base_url=provider_config.base_url,
            timeout=timeout,
            provider=provider.value,
        )

    elif provider == LLMProvider.CLAUDE:
        return ClaudeClient(api_key=api_key, model=model, timeout=timeout)

    elif provider == LLMProvider.GEMINI:
        return GeminiClient(api_key=api_key, model=model, timeout=timeout)

    else:
        raise ConfigurationError(f"Unsupported provider: {provider}")
