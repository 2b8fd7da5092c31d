"""
AI人设与API配置数据模型
"""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator, model_validator


GOOGLE_HOST = "generativelanguage.googleapis.com"


class ReplyStyle(str, Enum):
    """回复风格"""

    WARM = "warm"
    ANALYTICAL = "analytical"
    CONCISE = "concise"
    HUMOROUS = "humorous"


class DiaryPrompts(BaseModel):
    """日记生成的自定义提示词"""

    hide_ai: str = (
        "You are a professional diary writer. Write a personal diary entry based on the "
        "user's conversation history. Write in first-person perspective as if YOU are the user."
    )
    keep_chat: str = (
        "You are an AI assistant summarizing a conversation. "
        "Create a structured log of the discussion."
    )


class DiarySettings(BaseModel):
    """人设的日记生成设置"""

    word_count: str = Field(default="300", alias="wordCount")
    style: str = "Personal"
    prompts: DiaryPrompts = Field(default_factory=DiaryPrompts)

    class Config:
        populate_by_name = True

    @field_validator("word_count", mode="before")
    @classmethod
    def _to_str(cls, v):
        return str(v)


class Persona(BaseModel):
    """AI人设"""

    id: str = ""
    name: str = "New Persona"
    description: str = ""
    reply_style: ReplyStyle = Field(default=ReplyStyle.WARM, alias="replyStyle")
    custom_prompt: str = Field(default="", alias="customPrompt")
    diary_settings: DiarySettings = Field(default_factory=DiarySettings, alias="diarySettings")
    is_default: bool = Field(default=False, alias="isDefault")

    class Config:
        populate_by_name = True

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return "" if v is None else str(v)

    @field_validator("reply_style", mode="before")
    @classmethod
    def _reply_style(cls, v):
        try:
            return ReplyStyle(str(v or "warm").lower())
        except ValueError:
            return ReplyStyle.WARM

    @field_validator("diary_settings", mode="before")
    @classmethod
    def _diary_settings(cls, v):
        return {} if v is None else v

    @field_validator("custom_prompt", "description", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v


class PersonaCreate(BaseModel):
    """新建/更新人设请求模型"""

    name: Optional[str] = None
    description: Optional[str] = None
    reply_style: Optional[ReplyStyle] = Field(default=None, alias="replyStyle")
    custom_prompt: Optional[str] = Field(default=None, alias="customPrompt")
    diary_settings: Optional[DiarySettings] = Field(default=None, alias="diarySettings")

    class Config:
        populate_by_name = True


class ProviderType(str, Enum):
    """LLM服务商"""

    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    GOOGLE = "google"
    CUSTOM = "custom"


PROVIDER_BASE_URLS = {
    ProviderType.OPENAI: "https://api.openai.com/v1",
    ProviderType.DEEPSEEK: "https://api.deepseek.com",
    ProviderType.GOOGLE: f"https://{GOOGLE_HOST}",
    ProviderType.CUSTOM: "",
}


def provider_base_url(provider) -> str:
    """服务商的默认地址，未知服务商返回空字符串"""
    try:
        return PROVIDER_BASE_URLS[ProviderType(provider or ProviderType.OPENAI)]
    except ValueError:
        return ""


class ApiConfig(BaseModel):
    """API配置"""

    id: str = ""
    name: str = ""
    provider: ProviderType = ProviderType.OPENAI
    # 旧版字段：official / custom
    type: str = "official"
    api_key: str = Field(default="", alias="apiKey")
    base_url: str = Field(default="", alias="baseUrl")
    model: Optional[str] = None
    is_default: bool = Field(default=False, alias="isDefault")

    class Config:
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def _legacy_provider(cls, data):
        # 旧数据没有provider字段，按type推断
        if isinstance(data, dict) and not data.get("provider"):
            data = dict(data)
            data["provider"] = "openai" if data.get("type", "official") == "official" else "custom"
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return "" if v is None else str(v)

    @field_validator("api_key", "base_url", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @property
    def is_google(self) -> bool:
        """是否使用 Google Gemini 接口"""
        return self.provider == ProviderType.GOOGLE or GOOGLE_HOST in self.base_url


class ApiConfigCreate(BaseModel):
    """新建/更新API配置请求模型"""

    name: Optional[str] = None
    provider: Optional[ProviderType] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    base_url: Optional[str] = Field(default=None, alias="baseUrl")
    model: Optional[str] = None

    class Config:
        populate_by_name = True


DEFAULT_PERSONA_ID = "default"
DEFAULT_API_CONFIG_ID = "official"


def default_personas() -> List[Persona]:
    """内置默认人设"""
    return [
        Persona(
            id=DEFAULT_PERSONA_ID,
            name="Empathetic Companion",
            description="User-centric, supportive friend who provides emotional value and casual guidance.",
            reply_style=ReplyStyle.WARM,
            custom_prompt=(
                "You are an empathetic and curious AI companion. "
                "提供专业的协助。当用户分享烦恼时，先倾听并给予情感支持，再转向逻辑分析或建议。"
            ),
            is_default=True,
        )
    ]


def default_api_configs(api_key: str = "", base_url: str = "https://api.openai.com/v1",
                        model: Optional[str] = None) -> List[ApiConfig]:
    """内置默认API配置"""
    return [
        ApiConfig(
            id=DEFAULT_API_CONFIG_ID,
            name="Official OpenAI",
            provider=ProviderType.OPENAI,
            type="official",
            api_key=api_key,
            base_url=base_url,
            model=model,
            is_default=True,
        )
    ]
