"""
聊天接口
按日期读写聊天记录，触发AI回复
"""

from typing import List
from fastapi import APIRouter, Depends, Query
from chatdiary.api.dependencies import ServiceContainer, get_services, ok, respond
from chatdiary.models.chat import ChatMessageCreate, ChatMessageUpdate
from chatdiary.utils.logger import logger

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.get("/{date}")
async def get_messages(date: str, services: ServiceContainer = Depends(get_services)):
    """获取某天的聊天记录"""
    return ok(services.conversation.get_messages(date))


@router.post("/{date}/messages")
async def send_message(date: str, body: ChatMessageCreate,
                       services: ServiceContainer = Depends(get_services)):
    """
    发送用户消息

    只保存消息，不触发AI回复；客户端随后调用 /reply，
    这样用户可以连续发送多条消息后再让AI一起回复
    """
    message = services.conversation.add_message(date, "user", body.text, body.attachment)
    return ok(message)


@router.post("/{date}/reply")
async def reply(date: str, services: ServiceContainer = Depends(get_services)):
    """生成AI回复并写入聊天记录"""
    logger.info(f"生成AI回复: {date}")
    return respond(await services.assistant.trigger_ai_response(date))


@router.post("/{date}/reroll")
async def reroll(date: str, services: ServiceContainer = Depends(get_services)):
    """重新生成最后一轮AI回复"""
    return respond(await services.assistant.regenerate_last_response(date))


@router.patch("/{date}/messages/{message_id}")
async def edit_message(date: str, message_id: int, body: ChatMessageUpdate,
                       services: ServiceContainer = Depends(get_services)):
    return ok(services.conversation.edit_message(date, message_id, body.text))


@router.delete("/{date}/messages")
async def delete_messages(date: str, ids: List[int] = Query(...),
                          services: ServiceContainer = Depends(get_services)):
    """删除多条消息，?ids=1&ids=2"""
    deleted = services.conversation.delete_messages(date, ids)
    return ok({"deleted": deleted})


@router.post("/{date}/clear")
async def clear_chat(date: str, services: ServiceContainer = Depends(get_services)):
    return ok(services.conversation.clear(date))
