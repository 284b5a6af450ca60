"""Gemini API集成模块"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional, Type

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..models.review import ModelResponse, TokenUsage
from ..utils.config import GeminiConfig
from ..utils.errors import (
    MalformedResponse,
    ModelConfigurationError,
    ModelInvocationError,
    ModelTimeout,
    SchemaViolation,
    TransientModelError,
    TransportFailure,
)
from ..utils.helpers import strip_code_fence, truncate_text
from ..utils.logger import ai_logger


class GeminiAPI:
    """
    Gemini API客户端

    每次调用:
    1. 在单次超时内请求 generateContent
    2. 超时、网络错误、非2xx、非法JSON、结构不符均视为可重试失败
    3. 以固定间隔重试，最多 max_retries 次，耗尽后抛出 ModelInvocationError
    """

    def __init__(self, api_key: str, base_url: str = "https://generativelanguage.googleapis.com/v1beta",
                 model: str = "gemini-2.5-flash", timeout: float = 30.0, max_retries: int = 2,
                 retry_delay: float = 1.0, temperature: float = 0.2,
                 http_client: Optional[httpx.AsyncClient] = None,
                 sleep: Optional[Callable[[float], Awaitable[None]]] = None):
        if not api_key:
            raise ModelConfigurationError("GEMINI_API_KEY 未配置")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.temperature = temperature
        self._sleep = sleep or asyncio.sleep

        self.client = http_client or httpx.AsyncClient(timeout=self.timeout)
        self.client.headers.update({
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json"
        })

    @classmethod
    def from_config(cls, config: GeminiConfig, **kwargs) -> "GeminiAPI":
        """根据配置创建客户端"""
        return cls(
            api_key=config.api_key,
            base_url=config.base_url,
            model=config.model,
            timeout=config.timeout,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            temperature=config.temperature,
            **kwargs
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        """关闭HTTP连接池"""
        await self.client.aclose()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def invoke(self, prompt: str, schema: Optional[Type[BaseModel]] = None) -> ModelResponse:
        """
        调用模型并返回解析后的JSON对象

        Args:
            prompt: 提示词
            schema: 可选的输出结构，校验失败同样计入重试

        Returns:
            ModelResponse: 解析结果、Token用量、模型名称与尝试次数

        Raises:
            ModelInvocationError: 重试耗尽，消息中包含最后一次失败原因
        """
        attempts = 0

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries + 1),
                wait=wait_fixed(self.retry_delay),
                retry=retry_if_exception_type(TransientModelError),
                sleep=self._sleep,
                before_sleep=self._log_retry,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    body = await self._send(prompt)
                    data = self._parse_content(body)
                    payload = self._validate(data, schema) if schema else None
        except RetryError as e:
            last_error = e.last_attempt.exception()
            ai_logger.error(f"Gemini API 调用失败，已尝试 {attempts} 次: {last_error}")
            raise ModelInvocationError(attempts, last_error) from last_error

        usage = self._parse_usage(body)
        ai_logger.info(
            f"Gemini API 调用成功: {self.model}, 尝试 {attempts} 次, "
            f"tokens: {usage.input_tokens}/{usage.output_tokens}"
        )

        return ModelResponse(
            data=data,
            usage=usage,
            model_name=self.model,
            attempts=attempts,
            payload=payload
        )

    async def _send(self, prompt: str) -> Dict[str, Any]:
        """发送单次请求"""
        request_body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": self.temperature}
        }

        ai_logger.info(f"发送Gemini API请求: {self.model}")

        try:
            response = await asyncio.wait_for(
                self.client.post(self.endpoint, json=request_body),
                timeout=self.timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ModelTimeout(self.timeout) from e
        except httpx.RequestError as e:
            raise TransportFailure(f"网络请求失败: {str(e)}") from e

        if response.status_code >= 300:
            ai_logger.warning(f"Gemini API HTTP错误: {response.status_code} - {truncate_text(response.text)}")
            raise TransportFailure(f"API请求失败: {response.status_code}", response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(f"响应体不是合法JSON: {str(e)}") from e

    def _parse_content(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """取出首个候选的文本并解析为JSON对象"""
        try:
            parts = body["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise MalformedResponse("响应中没有候选内容") from e

        if not text.strip():
            raise MalformedResponse("模型返回了空内容")

        try:
            data = json.loads(strip_code_fence(text))
        except json.JSONDecodeError as e:
            ai_logger.warning(f"模型输出不是合法JSON: {truncate_text(text)}")
            raise MalformedResponse(f"JSON解析失败: {str(e)}") from e

        if not isinstance(data, dict):
            raise MalformedResponse(f"模型输出不是JSON对象: {type(data).__name__}")

        return data

    def _validate(self, data: Dict[str, Any], schema: Type[BaseModel]) -> BaseModel:
        """按输出结构校验"""
        try:
            return schema.model_validate(data)
        except ValidationError as e:
            raise SchemaViolation(
                f"模型输出不符合 {schema.__name__} 结构",
                {"errors": e.error_count()}
            ) from e

    @staticmethod
    def _parse_usage(body: Dict[str, Any]) -> TokenUsage:
        usage = body.get("usageMetadata") or {}
        return TokenUsage(
            input_tokens=usage.get("promptTokenCount") or 0,
            output_tokens=usage.get("candidatesTokenCount") or 0
        )

    @staticmethod
    def _log_retry(retry_state) -> None:
        error = retry_state.outcome.exception()
        ai_logger.warning(f"Gemini API 第 {retry_state.attempt_number} 次调用失败，准备重试: {error}")
