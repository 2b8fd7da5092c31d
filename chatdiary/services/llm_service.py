"""
大语言模型服务
把统一格式的消息列表转换为服务商请求（OpenAI兼容 / Google Gemini），并提取生成的文本
除模型列表的候选地址外不做任何重试
"""

import re
from typing import List, Dict, Any, Optional
from urllib.parse import urlsplit
import httpx
from pydantic import TypeAdapter, ValidationError
from chatdiary.models.persona import ApiConfig
from chatdiary.models.provider import (
    ProviderResponse, OpenAIShape, GeminiShape, RawArrayShape,
)
from chatdiary.utils.config import settings
from chatdiary.utils.exceptions import ConfigurationError, ProviderHTTPError, ResponseParseError
from chatdiary.utils.logger import logger

DEFAULT_MODEL = "gpt-3.5-turbo"

_DATA_URL = re.compile(r"^data:(.+);base64,(.+)$", re.DOTALL)
_provider_response = TypeAdapter(ProviderResponse)


def openai_base(base_url: str) -> str:
    """去掉末尾的 / 和 /v1，便于统一拼接 /v1/..."""
    base = base_url.rstrip("/")
    if base.endswith("/v1"):
        base = base[:-3]
    return base


def origin_of(base_url: str) -> str:
    """取URL的 scheme://host[:port]，解析失败时返回原值"""
    base = base_url.rstrip("/")
    parts = urlsplit(base)
    if parts.scheme and parts.netloc:
        return f"{parts.scheme}://{parts.netloc}"
    return base


def model_list_candidates(base_url: str) -> List[str]:
    """OpenAI兼容模型列表的候选地址，兼容不同代理的路径"""
    base = openai_base(base_url)
    return [f"{base}/v1/models", f"{base}/models"]


def parse_data_url(url: str) -> Optional[Dict[str, str]]:
    """
    解析 data:<mime>;base64,<data> 格式的图片

    Returns:
        {"mime_type", "data"}，格式不符返回None
    """
    match = _DATA_URL.match(url or "")
    if not match:
        return None
    return {"mime_type": match.group(1), "data": match.group(2)}


def to_gemini_parts(content: Any) -> List[Dict[str, Any]]:
    """OpenAI消息内容 -> Gemini parts"""
    if not isinstance(content, list):
        return [{"text": content}]

    parts = []
    for item in content:
        if item.get("type") == "text":
            parts.append({"text": item.get("text", "")})
        elif item.get("type") == "image_url":
            inline = parse_data_url((item.get("image_url") or {}).get("url", ""))
            if inline:
                parts.append({"inline_data": inline})
            else:
                logger.warning("图片不是有效的data URL，已跳过")
    return parts


def to_gemini_payload(messages: List[Dict[str, Any]], temperature: float) -> Dict[str, Any]:
    """
    构造 generateContent 请求体

    Args:
        messages: 统一格式消息 [{"role", "content"}]
        temperature: 温度参数

    Returns:
        请求体字典
    """
    contents = [
        {
            "role": "user" if msg["role"] == "user" else "model",
            "parts": to_gemini_parts(msg["content"]),
        }
        for msg in messages
        if msg["role"] != "system"
    ]

    body: Dict[str, Any] = {
        "contents": contents,
        "generationConfig": {"temperature": temperature},
    }

    system_msg = next((m for m in messages if m["role"] == "system"), None)
    if system_msg:
        body["system_instruction"] = {"parts": [{"text": system_msg["content"]}]}

    return body


def to_provider_response(payload: Any, google: bool) -> ProviderResponse:
    """按服务商给响应JSON打上kind标签并校验"""
    if isinstance(payload, list):
        tagged = {"kind": "raw_array", "items": payload}
    elif isinstance(payload, dict):
        tagged = {**payload, "kind": "gemini" if google else "openai"}
    else:
        raise ResponseParseError(f"Invalid API response: {str(payload)[:100]}...")

    try:
        return _provider_response.validate_python(tagged)
    except ValidationError as e:
        raise ResponseParseError(f"Invalid API response: {e}") from e


def _openai_text(response: OpenAIShape) -> str:
    if response.choices and response.choices[0].message and response.choices[0].message.content is not None:
        return response.choices[0].message.content
    raise ResponseParseError("Invalid API response: missing choices[0].message.content")


def _gemini_text(response: GeminiShape) -> str:
    try:
        text = response.candidates[0].content.parts[0].text
    except (IndexError, AttributeError):
        text = None
    if text is None:
        raise ResponseParseError("Failed to parse Gemini response.")
    return text


def _raw_array_text(response: RawArrayShape) -> str:
    raise ResponseParseError("Invalid API response: unexpected array body")


_TEXT_EXTRACTORS = {
    "openai": _openai_text,
    "gemini": _gemini_text,
    "raw_array": _raw_array_text,
}


def completion_text(response: ProviderResponse) -> str:
    """从生成结果中取出文本"""
    return _TEXT_EXTRACTORS[response.kind](response)


def _item_id(item: Any) -> Optional[str]:
    if isinstance(item, dict):
        return item.get("id") or item.get("name")
    if isinstance(item, str):
        return item
    return None


def _openai_model_ids(response: OpenAIShape) -> List[str]:
    items = response.data if response.data is not None else response.list_
    if items is None:
        logger.warning("模型列表响应格式未知")
        return []
    return [i for i in (_item_id(item) for item in items) if i]


def _gemini_model_ids(response: GeminiShape) -> List[str]:
    return [m.name.replace("models/", "") for m in response.models or []]


def _raw_array_model_ids(response: RawArrayShape) -> List[str]:
    return [i for i in (_item_id(item) for item in response.items) if i]


_MODEL_EXTRACTORS = {
    "openai": _openai_model_ids,
    "gemini": _gemini_model_ids,
    "raw_array": _raw_array_model_ids,
}


def model_ids(response: ProviderResponse) -> List[str]:
    """从模型列表响应中取出模型ID"""
    return _MODEL_EXTRACTORS[response.kind](response)


def _redact(url: str) -> str:
    return re.sub(r"key=[^&]+", "key=***", url)


class LLMService:
    """大语言模型服务"""

    def __init__(self, temperature: float = None, timeout: Optional[float] = None,
                 transport: httpx.AsyncBaseTransport = None):
        """
        初始化LLM服务

        Args:
            temperature: 温度参数，默认使用配置
            timeout: 请求超时（秒），None表示不设超时
            transport: 自定义httpx传输层，测试时注入
        """
        self.temperature = settings.llm_temperature if temperature is None else temperature
        self.timeout = timeout if timeout is not None else settings.llm_timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    @staticmethod
    def _json(response: httpx.Response, google: bool) -> ProviderResponse:
        try:
            payload = response.json()
        except ValueError as e:
            raise ResponseParseError(f"Invalid JSON from provider: {response.text[:100]}") from e
        return to_provider_response(payload, google)

    async def chat(self, messages: List[Dict[str, Any]], config: ApiConfig) -> str:
        """
        调用LLM生成回复

        Args:
            messages: 消息列表，格式 [{"role": "user", "content": "..."}]
            config: API配置

        Returns:
            生成的文本

        Raises:
            ConfigurationError: 未配置API Key
            ProviderHTTPError: HTTP错误或网络错误
            ResponseParseError: 响应无法解析
        """
        if not config.api_key:
            raise ConfigurationError("API Key is missing. Please check your settings.")

        model = config.model or DEFAULT_MODEL
        if config.is_google:
            return await self._chat_gemini(messages, config, model)
        return await self._chat_openai(messages, config, model)

    async def _chat_openai(self, messages: List[Dict[str, Any]], config: ApiConfig, model: str) -> str:
        url = f"{openai_base(config.base_url)}/v1/chat/completions"
        logger.info(f"调用LLM: {url}, model={model}, 消息数={len(messages)}")

        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    headers={
                        "Authorization": f"Bearer {config.api_key}",
                        "Content-Type": "application/json"
                    },
                    json={
                        "model": model,
                        "messages": messages,
                        "temperature": self.temperature
                    }
                )
        except httpx.HTTPError as e:
            logger.error(f"LLM请求失败: {e}")
            raise ProviderHTTPError(None, str(e)) from e

        if not response.is_success:
            logger.error(f"LLM API错误: {response.status_code} - {response.text[:200]}")
            raise ProviderHTTPError(response.status_code, response.text)

        result = self._json(response, google=False)
        if isinstance(result, OpenAIShape) and result.error:
            error = result.error
            message = error.get("message") if isinstance(error, dict) else None
            raise ProviderHTTPError(response.status_code, message or str(error))

        return completion_text(result)

    async def _chat_gemini(self, messages: List[Dict[str, Any]], config: ApiConfig, model: str) -> str:
        url = f"{origin_of(config.base_url)}/v1beta/models/{model}:generateContent?key={config.api_key}"
        logger.info(f"调用Gemini: {_redact(url)}, 消息数={len(messages)}")

        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    headers={"Content-Type": "application/json"},
                    json=to_gemini_payload(messages, self.temperature)
                )
        except httpx.HTTPError as e:
            logger.error(f"Gemini请求失败: {e}")
            raise ProviderHTTPError(None, str(e), provider="Gemini API") from e

        if not response.is_success:
            logger.error(f"Gemini API错误: {response.status_code} - {response.text[:200]}")
            raise ProviderHTTPError(response.status_code, response.text, provider="Gemini API")

        return completion_text(self._json(response, google=True))

    async def list_models(self, config: ApiConfig) -> List[str]:
        """
        获取可用模型列表

        OpenAI兼容接口依次尝试 /v1/models 和 /models：
        404或网络错误时尝试下一个，其它错误立即抛出

        Args:
            config: API配置

        Returns:
            模型ID列表
        """
        if not config.api_key:
            raise ConfigurationError("API Key is missing. Please check your settings.")

        if config.is_google:
            return await self._list_gemini_models(config)

        last_error: Optional[Exception] = None
        async with self._client() as client:
            for url in model_list_candidates(config.base_url):
                logger.info(f"获取模型列表: {url}")
                try:
                    response = await client.get(
                        url,
                        headers={
                            "Authorization": f"Bearer {config.api_key}",
                            "Content-Type": "application/json"
                        }
                    )
                except httpx.HTTPError as e:
                    logger.warning(f"请求失败 {url}: {e}")
                    last_error = ProviderHTTPError(None, str(e))
                    continue

                if response.is_success:
                    return model_ids(self._json(response, google=False))

                if response.status_code == 404:
                    logger.info(f"404: {url}")
                    last_error = ProviderHTTPError(404, f"Not Found at {url}")
                    continue

                logger.error(f"获取模型列表失败: {response.status_code} - {response.text[:200]}")
                raise ProviderHTTPError(response.status_code, response.text)

        raise last_error or ProviderHTTPError(None, "Failed to fetch models. Please check your URL and Network.")

    async def _list_gemini_models(self, config: ApiConfig) -> List[str]:
        url = f"{origin_of(config.base_url)}/v1beta/models?key={config.api_key}"
        logger.info(f"获取Gemini模型列表: {_redact(url)}")

        try:
            async with self._client() as client:
                response = await client.get(url, headers={"Content-Type": "application/json"})
        except httpx.HTTPError as e:
            raise ProviderHTTPError(None, str(e), provider="Gemini API") from e

        if not response.is_success:
            raise ProviderHTTPError(response.status_code, response.text, provider="Gemini API")

        return model_ids(self._json(response, google=True))
