"""
配置管理模块
管理应用的所有配置信息，包括服务器配置、存储配置、默认LLM配置等
"""

from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """应用配置类"""

    # 服务器配置
    host: str = "0.0.0.0"
    port: int = 8000

    # 存储配置
    database_url: str = "sqlite:///./chatdiary.db"
    # 单个键值的最大字节数，超出时写入失败
    storage_quota_bytes: int = 5 * 1024 * 1024

    # 日志配置
    log_level: str = "INFO"
    log_file: str = "logs/app.log"

    # 默认 LLM 配置（写入默认 API 配置 official）
    llm_api_key: str = ""
    llm_api_base: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-3.5-turbo"
    llm_temperature: float = 0.7
    # 为空表示不设超时
    llm_timeout: Optional[float] = None

    # 应用配置
    app_name: str = "ChatDiary"
    app_version: str = "1.0.0"
    debug: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """
    获取配置实例（单例模式）
    使用lru_cache确保只创建一个配置实例
    """
    return Settings()


# 导出配置实例
settings = get_settings()
