"""
LLM服务商响应模型
三种响应形态：OpenAI兼容、Gemini、直接返回数组的代理
用 kind 字段区分，每种形态有各自的提取函数
"""

from typing import Annotated, Any, List, Literal, Optional, Union
from pydantic import BaseModel, Field


class OpenAIMessage(BaseModel):
    role: Optional[str] = None
    content: Optional[str] = None


class OpenAIChoice(BaseModel):
    message: Optional[OpenAIMessage] = None


class OpenAIShape(BaseModel):
    """OpenAI兼容响应（chat/completions 与 models 列表）"""

    kind: Literal["openai"] = "openai"
    choices: List[OpenAIChoice] = Field(default_factory=list)
    data: Optional[List[Any]] = None
    list_: Optional[List[Any]] = Field(default=None, alias="list")
    error: Optional[Any] = None

    class Config:
        populate_by_name = True


class GeminiPart(BaseModel):
    text: Optional[str] = None


class GeminiContent(BaseModel):
    role: Optional[str] = None
    parts: List[GeminiPart] = Field(default_factory=list)


class GeminiCandidate(BaseModel):
    content: Optional[GeminiContent] = None


class GeminiModel(BaseModel):
    name: str


class GeminiShape(BaseModel):
    """Gemini generateContent 与 models 列表响应"""

    kind: Literal["gemini"] = "gemini"
    candidates: List[GeminiCandidate] = Field(default_factory=list)
    models: Optional[List[GeminiModel]] = None


class RawArrayShape(BaseModel):
    """部分代理直接返回JSON数组"""

    kind: Literal["raw_array"] = "raw_array"
    items: List[Any] = Field(default_factory=list)


ProviderResponse = Annotated[
    Union[OpenAIShape, GeminiShape, RawArrayShape],
    Field(discriminator="kind"),
]
