"""
日记接口
日记的增删改查、评论、由聊天生成日记、手动模式保存与润色、草稿
"""

from typing import Optional
from fastapi import APIRouter, Depends
from chatdiary.api.dependencies import ServiceContainer, get_services, ok, respond
from chatdiary.models.diary import (
    AICommentRequest, CommentCreate, DiaryUpdate, Draft, GenerateDiaryRequest,
    ManualSaveRequest, SaveGeneratedRequest,
)
from chatdiary.models.polish import PolishRequest
from chatdiary.utils.exceptions import NotFoundError
from chatdiary.utils.logger import logger

router = APIRouter(prefix="/api/diaries", tags=["diaries"])


@router.get("")
async def list_diaries(services: ServiceContainer = Depends(get_services)):
    """全部日记"""
    return ok(services.diary.list())


@router.get("/date/{date}")
async def get_diaries_by_date(date: str, services: ServiceContainer = Depends(get_services)):
    """某天的全部日记"""
    return ok(services.diary.get_all_by_date(date))


# ---- 生成与保存 ----

@router.post("/generate")
async def generate_diary(body: GenerateDiaryRequest, services: ServiceContainer = Depends(get_services)):
    """根据聊天生成日记（不保存，供用户确认）"""
    logger.info(f"生成日记: {body.date}, style={body.style}")
    return respond(await services.assistant.generate_diary(body.date, body.style))


@router.post("/save")
async def save_generated(body: SaveGeneratedRequest, services: ServiceContainer = Depends(get_services)):
    """保存确认后的生成日记"""
    return respond(services.assistant.save_generated_diary(body.date, body.diary))


@router.post("/manual")
async def save_manual(body: ManualSaveRequest, services: ServiceContainer = Depends(get_services)):
    """保存手动模式日记"""
    return respond(await services.assistant.save_manual_diary(body.date, body.draft))


@router.post("/polish")
async def polish(body: PolishRequest, services: ServiceContainer = Depends(get_services)):
    """手动模式润色助手"""
    return respond(await services.assistant.polish_diary(body.date, body.history))


# ---- 草稿 ----

@router.get("/drafts/{date}")
async def get_draft(date: str, services: ServiceContainer = Depends(get_services)):
    return ok(services.conversation.get_draft(date))


@router.put("/drafts/{date}")
async def save_draft(date: str, body: Draft, services: ServiceContainer = Depends(get_services)):
    return ok(services.conversation.save_draft(date, body))


@router.delete("/drafts/{date}")
async def delete_draft(date: str, services: ServiceContainer = Depends(get_services)):
    services.conversation.remove_draft(date)
    return ok()


# ---- 单篇日记 ----

@router.get("/{diary_id}")
async def get_diary(diary_id: str, services: ServiceContainer = Depends(get_services)):
    return ok(services.diary.require(diary_id))


@router.patch("/{diary_id}")
async def update_diary(diary_id: str, body: DiaryUpdate, services: ServiceContainer = Depends(get_services)):
    """更新日记，只修改请求中出现的字段"""
    updates = body.model_dump(exclude_unset=True)
    return ok(services.diary.update(diary_id, updates))


@router.delete("/{diary_id}")
async def delete_diary(diary_id: str, services: ServiceContainer = Depends(get_services)):
    if not services.diary.delete(diary_id):
        raise NotFoundError(f"日记不存在: {diary_id}")
    return ok()


@router.delete("/{diary_id}/chat")
async def delete_diary_chat(diary_id: str, services: ServiceContainer = Depends(get_services)):
    """删除日记附带的聊天记录"""
    return ok(services.diary.delete_chat_history(diary_id))


@router.post("/{diary_id}/comments")
async def add_comment(diary_id: str, body: CommentCreate, services: ServiceContainer = Depends(get_services)):
    return ok(services.diary.add_comment(diary_id, body.text, author=body.author))


@router.delete("/{diary_id}/comments/{comment_id}")
async def delete_comment(diary_id: str, comment_id: str, services: ServiceContainer = Depends(get_services)):
    if not services.diary.delete_comment(diary_id, comment_id):
        raise NotFoundError(f"评论不存在: {comment_id}")
    return ok()


@router.post("/{diary_id}/comment/ai")
async def generate_ai_comment(diary_id: str, body: Optional[AICommentRequest] = None,
                              services: ServiceContainer = Depends(get_services)):
    """AI回顾评论，生成后保存到日记上"""
    active_date = body.active_date if body else None
    return respond(await services.assistant.generate_comment(diary_id, active_date))
