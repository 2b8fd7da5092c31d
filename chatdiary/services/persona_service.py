"""
人设与API配置服务
管理AI人设列表、API配置列表以及当前选中的ID
"""

from typing import List, Dict, Any, Optional
from pydantic import ValidationError
from chatdiary.models.base import merge_updates
from chatdiary.models.chat import now_ms
from chatdiary.models.persona import (
    ApiConfig, Persona, DEFAULT_API_CONFIG_ID, DEFAULT_PERSONA_ID,
    default_api_configs, default_personas, provider_base_url,
)
from chatdiary.utils.config import settings
from chatdiary.utils.database import KeyValueStore
from chatdiary.utils.exceptions import NotFoundError, ProtectedRecordError, StorageError
from chatdiary.utils.logger import logger

PERSONAS_KEY = "ai_personas"
CURRENT_PERSONA_KEY = "ai_current_persona_id"
API_CONFIGS_KEY = "ai_api_configs"
CURRENT_API_CONFIG_KEY = "ai_current_api_config_id"

_IMMUTABLE_FIELDS = ("id", "is_default")


def _new_id(records) -> str:
    """毫秒时间戳ID，同一毫秒内重复时顺延"""
    taken = {r.id for r in records}
    candidate = now_ms()
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)


class PersonaService:
    """人设与API配置服务"""

    def __init__(self, store: KeyValueStore):
        """
        初始化服务

        Args:
            store: 键值存储
        """
        self.store = store
        self._personas = self._load_list(PERSONAS_KEY, Persona, default_personas)
        self._api_configs = self._load_list(API_CONFIGS_KEY, ApiConfig, self._default_api_configs)
        self.current_persona_id = self.store.get(CURRENT_PERSONA_KEY) or DEFAULT_PERSONA_ID
        self.current_api_config_id = self.store.get(CURRENT_API_CONFIG_KEY) or DEFAULT_API_CONFIG_ID
        self._cleanup_obsolete_defaults()

    @staticmethod
    def _default_api_configs() -> List[ApiConfig]:
        return default_api_configs(
            api_key=settings.llm_api_key,
            base_url=settings.llm_api_base,
            model=settings.llm_model,
        )

    def _load_list(self, key: str, model, defaults) -> list:
        """加载列表，不是数组或校验失败时返回默认值"""
        raw = self.store.get_json(key)
        if not isinstance(raw, list):
            return defaults()
        try:
            return [model.model_validate(item) for item in raw]
        except ValidationError as e:
            logger.error(f"解析 {key} 失败，使用默认值: {e}")
            return defaults()

    def _cleanup_obsolete_defaults(self):
        """移除旧版本遗留的、已不存在的内置人设"""
        valid_ids = {p.id for p in default_personas()}
        kept = [p for p in self._personas if not (p.is_default and p.id not in valid_ids)]
        if len(kept) == len(self._personas):
            return

        current = next((p for p in self._personas if p.id == self.current_persona_id), None)
        self._personas = kept or default_personas()
        if current is not None and current.is_default and current.id not in valid_ids:
            self.current_persona_id = DEFAULT_PERSONA_ID
        logger.info("已清理过期的内置人设")

    def _persist_personas(self):
        try:
            self.store.set_json(PERSONAS_KEY, [p.model_dump(by_alias=True, mode="json") for p in self._personas])
            self.store.set(CURRENT_PERSONA_KEY, self.current_persona_id)
        except StorageError as e:
            logger.error(f"保存人设失败: {e}")
            raise

    def _persist_api_configs(self):
        try:
            self.store.set_json(API_CONFIGS_KEY, [c.model_dump(by_alias=True, mode="json") for c in self._api_configs])
            self.store.set(CURRENT_API_CONFIG_KEY, self.current_api_config_id)
        except StorageError as e:
            logger.error(f"保存API配置失败: {e}")
            raise

    # ---- 人设 ----

    @property
    def personas(self) -> List[Persona]:
        return list(self._personas)

    def get_persona(self, persona_id: str) -> Optional[Persona]:
        return next((p for p in self._personas if p.id == persona_id), None)

    @property
    def current_persona(self) -> Persona:
        """当前人设，选中的ID不存在时返回第一个"""
        return self.get_persona(self.current_persona_id) or self._personas[0]

    def select_persona(self, persona_id: str):
        if self.get_persona(persona_id) is None:
            raise NotFoundError(f"人设不存在: {persona_id}")
        self.current_persona_id = persona_id
        self._persist_personas()

    def add_persona(self, data: Dict[str, Any]) -> Persona:
        """新增人设，返回带新ID的人设"""
        persona = Persona.model_validate({**data, "id": _new_id(self._personas), "isDefault": False})
        self._personas.append(persona)
        self._persist_personas()
        logger.info(f"新增人设: {persona.id} {persona.name}")
        return persona

    def update_persona(self, persona_id: str, updates: Dict[str, Any]) -> Persona:
        """更新人设，内置人设不可修改"""
        persona = self.get_persona(persona_id)
        if persona is None:
            raise NotFoundError(f"人设不存在: {persona_id}")
        if persona.is_default:
            raise ProtectedRecordError("默认人设不可修改")

        updated = merge_updates(persona, updates, exclude=_IMMUTABLE_FIELDS)
        self._personas = [updated if p.id == persona_id else p for p in self._personas]
        self._persist_personas()
        return updated

    def delete_persona(self, persona_id: str) -> bool:
        """删除人设，内置人设不可删除；删除当前人设后回到默认人设"""
        persona = self.get_persona(persona_id)
        if persona is None:
            return False
        if persona.is_default:
            raise ProtectedRecordError("默认人设不可删除")

        self._personas = [p for p in self._personas if p.id != persona_id]
        if self.current_persona_id == persona_id:
            self.current_persona_id = DEFAULT_PERSONA_ID
        self._persist_personas()
        logger.info(f"删除人设: {persona_id}")
        return True

    def replace_personas(self, personas: List[Persona], current_id: Optional[str] = None):
        """整体替换人设（导入备份）"""
        self._personas = list(personas) or default_personas()
        if current_id:
            self.current_persona_id = current_id
        self._persist_personas()

    # ---- API配置 ----

    @property
    def api_configs(self) -> List[ApiConfig]:
        return list(self._api_configs)

    def get_api_config(self, config_id: str) -> Optional[ApiConfig]:
        return next((c for c in self._api_configs if c.id == config_id), None)

    @property
    def current_api_config(self) -> ApiConfig:
        """当前API配置，选中的ID不存在时返回第一个"""
        return self.get_api_config(self.current_api_config_id) or self._api_configs[0]

    def select_api_config(self, config_id: str):
        if self.get_api_config(config_id) is None:
            raise NotFoundError(f"API配置不存在: {config_id}")
        self.current_api_config_id = config_id
        self._persist_api_configs()

    def add_api_config(self, data: Dict[str, Any]) -> ApiConfig:
        """新增API配置，未填写地址时使用服务商的默认地址"""
        if not (data.get("baseUrl") or data.get("base_url")):
            data = {**data, "baseUrl": provider_base_url(data.get("provider"))}
        config = ApiConfig.model_validate({
            **data,
            "id": _new_id(self._api_configs),
            "isDefault": False,
            "type": "custom" if data.get("provider") == "custom" else "official",
        })
        self._api_configs.append(config)
        self._persist_api_configs()
        logger.info(f"新增API配置: {config.id} {config.name}")
        return config

    def update_api_config(self, config_id: str, updates: Dict[str, Any]) -> ApiConfig:
        """更新API配置，id 与 isDefault 不可修改（默认配置也需要能填写 API Key）"""
        config = self.get_api_config(config_id)
        if config is None:
            raise NotFoundError(f"API配置不存在: {config_id}")

        updated = merge_updates(config, updates, exclude=_IMMUTABLE_FIELDS)
        self._api_configs = [updated if c.id == config_id else c for c in self._api_configs]
        self._persist_api_configs()
        return updated

    def delete_api_config(self, config_id: str) -> bool:
        config = self.get_api_config(config_id)
        if config is None:
            return False
        if config.is_default:
            raise ProtectedRecordError("默认API配置不可删除")

        self._api_configs = [c for c in self._api_configs if c.id != config_id]
        if self.current_api_config_id == config_id:
            self.current_api_config_id = DEFAULT_API_CONFIG_ID
        self._persist_api_configs()
        logger.info(f"删除API配置: {config_id}")
        return True

    def replace_api_configs(self, configs: List[ApiConfig], current_id: Optional[str] = None):
        """整体替换API配置（导入备份）"""
        self._api_configs = list(configs) or self._default_api_configs()
        if current_id:
            self.current_api_config_id = current_id
        self._persist_api_configs()
