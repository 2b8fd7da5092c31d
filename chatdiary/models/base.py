"""
模型通用工具
"""

from typing import Any, Dict, Iterable, TypeVar
from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)


def merge_updates(model: M, updates: Dict[str, Any], exclude: Iterable[str] = ()) -> M:
    """
    把更新字段合并进模型并重新校验

    Args:
        model: 原模型
        updates: 更新字段，键可以是字段名或别名
        exclude: 不允许修改的字段名

    Returns:
        新的模型实例
    """
    fields = type(model).model_fields
    data = model.model_dump(by_alias=True)
    for key, value in updates.items():
        name = key if key in fields else next((n for n, f in fields.items() if f.alias == key), None)
        if name is None or name in exclude:
            continue
        data[fields[name].alias or name] = value
    return type(model).model_validate(data)
