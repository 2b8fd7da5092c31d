"""
接口依赖
服务对象在应用启动时统一创建，保存在 app.state.services 上，路由通过 Depends 获取
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from chatdiary.models.result import Result
from chatdiary.services.assistant_service import AssistantService
from chatdiary.services.backup_service import BackupService
from chatdiary.services.conversation_service import ConversationService, today_str
from chatdiary.services.diary_service import DiaryService
from chatdiary.services.llm_service import LLMService
from chatdiary.services.media_service import MediaService
from chatdiary.services.persona_service import PersonaService
from chatdiary.services.profile_service import ProfileService
from chatdiary.utils.config import settings
from chatdiary.utils.database import KeyValueStore, SqliteStore
from chatdiary.utils.exceptions import HTTP_STATUS_BY_CODE


class ServiceContainer:
    """全部服务对象，共享同一个键值存储"""

    def __init__(self, store: KeyValueStore, llm_service: Optional[LLMService] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                 today: Callable[[], str] = today_str):
        self.store = store
        self.diary = DiaryService(store)
        self.persona = PersonaService(store)
        self.profile = ProfileService(store)
        self.conversation = ConversationService(store, today=today)
        self.llm = llm_service or LLMService()
        self.media = MediaService()
        self.backup = BackupService(self.diary, self.persona, self.profile, self.conversation)
        self.assistant = AssistantService(
            self.diary, self.persona, self.profile, self.conversation, self.llm, sleep=sleep,
        )


def build_services() -> ServiceContainer:
    """按配置创建服务（SQLite存储）"""
    store = SqliteStore(settings.database_url, quota_bytes=settings.storage_quota_bytes)
    return ServiceContainer(store)


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def respond(result: Result) -> JSONResponse:
    """把Result转换为接口响应，失败时按错误码设置状态码"""
    status_code = 200 if result.ok else HTTP_STATUS_BY_CODE.get(result.code, 400)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json", by_alias=True))


def ok(data: Any = None, msg: str = "success") -> JSONResponse:
    return respond(Result.success(data, msg=msg))
