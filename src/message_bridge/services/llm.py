"""LLM API Service - proxies LLM_ messages to a remote model API.

Messages and endpoints:
    LLM_CHAT               POST /chat       {messages, model?, temperature?, maxTokens?}
    LLM_COMPLETE           POST /complete   {prompt, model?, temperature?, maxTokens?}
    LLM_GET_MODELS         GET  /models
    LLM_ANALYZE_SENTIMENT  POST /sentiment  {text}
    LLM_SUMMARIZE          POST /summarize  {text, maxLength?}
    LLM_EXTRACT_KEYWORDS   POST /keywords   {text}
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..protocol.envelope import Response
from .base import RemoteAPIService

DEFAULT_LLM_URL = "http://localhost:3000/llm"


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: int | None = None


class GenerationOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = Field(default=None, alias="maxTokens")


class ChatRequest(GenerationOptions):
    messages: list[ChatMessage]


class CompletionRequest(GenerationOptions):
    prompt: str


class TextRequest(BaseModel):
    text: str


class SummarizeRequest(TextRequest):
    model_config = ConfigDict(populate_by_name=True)

    max_length: int | None = Field(default=None, alias="maxLength")


def _body(request: BaseModel) -> dict[str, Any]:
    return request.model_dump(by_alias=True, exclude_none=True)


class LLMAPIService(RemoteAPIService):
    """Language model operations against ``<base_url>/<endpoint>``."""

    prefix = "LLM_"
    unknown_operation = "Unknown LLM operation: {type}"

    def __init__(self, base_url: str = DEFAULT_LLM_URL, **kwargs: Any) -> None:
        super().__init__(base_url, **kwargs)

    async def _route(self, message_type: str, data: Any) -> Response | None:
        match message_type:
            case "LLM_CHAT":
                request = ChatRequest.model_validate(data or {})
                return await self._request("POST", "/chat", _body(request), "send chat request")

            case "LLM_COMPLETE":
                request = CompletionRequest.model_validate(data or {})
                return await self._request(
                    "POST", "/complete", _body(request), "send completion request"
                )

            case "LLM_GET_MODELS":
                return await self._request("GET", "/models", action="fetch models")

            case "LLM_ANALYZE_SENTIMENT":
                request = TextRequest.model_validate(data or {})
                return await self._request(
                    "POST", "/sentiment", _body(request), "analyze sentiment"
                )

            case "LLM_SUMMARIZE":
                request = SummarizeRequest.model_validate(data or {})
                return await self._request("POST", "/summarize", _body(request), "summarize text")

            case "LLM_EXTRACT_KEYWORDS":
                request = TextRequest.model_validate(data or {})
                return await self._request(
                    "POST", "/keywords", _body(request), "extract keywords"
                )

            case _:
                return None
