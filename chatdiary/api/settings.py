"""
设置接口
AI人设、API配置、模型列表、用户档案、数据备份
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Body, Depends
from chatdiary.api.dependencies import ServiceContainer, get_services, ok, respond
from chatdiary.models.persona import ApiConfigCreate, PersonaCreate
from chatdiary.utils.exceptions import NotFoundError

router = APIRouter(prefix="/api/settings", tags=["settings"])


def _fields(body) -> Dict[str, Any]:
    return body.model_dump(by_alias=True, exclude_none=True, mode="json")


# ---- 人设 ----

def _personas(services: ServiceContainer) -> Dict[str, Any]:
    return {
        "personas": services.persona.personas,
        "currentPersonaId": services.persona.current_persona.id,
    }


@router.get("/personas")
async def list_personas(services: ServiceContainer = Depends(get_services)):
    return ok(_personas(services))


@router.post("/personas")
async def create_persona(body: PersonaCreate, services: ServiceContainer = Depends(get_services)):
    return ok(services.persona.add_persona(_fields(body)))


@router.patch("/personas/{persona_id}")
async def update_persona(persona_id: str, body: PersonaCreate,
                         services: ServiceContainer = Depends(get_services)):
    return ok(services.persona.update_persona(persona_id, _fields(body)))


@router.delete("/personas/{persona_id}")
async def delete_persona(persona_id: str, services: ServiceContainer = Depends(get_services)):
    if not services.persona.delete_persona(persona_id):
        raise NotFoundError(f"人设不存在: {persona_id}")
    return ok(_personas(services))


@router.post("/personas/{persona_id}/select")
async def select_persona(persona_id: str, services: ServiceContainer = Depends(get_services)):
    services.persona.select_persona(persona_id)
    return ok(_personas(services))


# ---- API配置 ----

def _api_configs(services: ServiceContainer) -> Dict[str, Any]:
    return {
        "apiConfigs": services.persona.api_configs,
        "currentApiConfigId": services.persona.current_api_config.id,
    }


@router.get("/api-configs")
async def list_api_configs(services: ServiceContainer = Depends(get_services)):
    return ok(_api_configs(services))


@router.post("/api-configs")
async def create_api_config(body: ApiConfigCreate, services: ServiceContainer = Depends(get_services)):
    return ok(services.persona.add_api_config(_fields(body)))


@router.patch("/api-configs/{config_id}")
async def update_api_config(config_id: str, body: ApiConfigCreate,
                            services: ServiceContainer = Depends(get_services)):
    return ok(services.persona.update_api_config(config_id, _fields(body)))


@router.delete("/api-configs/{config_id}")
async def delete_api_config(config_id: str, services: ServiceContainer = Depends(get_services)):
    if not services.persona.delete_api_config(config_id):
        raise NotFoundError(f"API配置不存在: {config_id}")
    return ok(_api_configs(services))


@router.post("/api-configs/{config_id}/select")
async def select_api_config(config_id: str, services: ServiceContainer = Depends(get_services)):
    services.persona.select_api_config(config_id)
    return ok(_api_configs(services))


@router.get("/models")
async def list_models(config_id: Optional[str] = None, services: ServiceContainer = Depends(get_services)):
    """获取可用模型列表，config_id 为空时使用当前配置"""
    return respond(await services.assistant.list_models(config_id))


# ---- 用户档案 ----

@router.get("/profile")
async def get_profile(services: ServiceContainer = Depends(get_services)):
    return ok(services.profile.profile)


@router.patch("/profile")
async def update_profile(updates: Dict[str, Any] = Body(...),
                         services: ServiceContainer = Depends(get_services)):
    """合并更新档案，字段名可用 camelCase 或 snake_case"""
    return ok(services.profile.update(updates))


# ---- 备份 ----

@router.get("/backup")
async def export_backup(services: ServiceContainer = Depends(get_services)):
    return ok(services.backup.export_backup())


@router.post("/backup")
async def import_backup(data: Any = Body(...), services: ServiceContainer = Depends(get_services)):
    """导入备份，只覆盖文档中存在的部分"""
    return ok(services.backup.import_backup(data))
