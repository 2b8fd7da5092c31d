"""
数据库管理模块
提供键值存储接口，以及基于SQLite和内存的两种实现
所有记录都以JSON字符串保存在键下
"""

import json
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, List, Dict, Any
from .config import settings
from .exceptions import StorageError
from .logger import logger


class KeyValueStore(ABC):
    """键值存储接口"""

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes if quota_bytes is not None else settings.storage_quota_bytes

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """读取键对应的原始字符串，不存在返回None"""

    @abstractmethod
    def _write(self, key: str, value: str):
        """写入键值"""

    @abstractmethod
    def remove(self, key: str):
        """删除键"""

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """列出以prefix开头的键"""

    def set(self, key: str, value: str):
        """
        写入键值

        Args:
            key: 键
            value: 字符串值

        Raises:
            StorageError: 超出配额或写入失败
        """
        size = len(value.encode("utf-8"))
        if self.quota_bytes and size > self.quota_bytes:
            raise StorageError(
                f"存储空间不足: {key} 需要 {size} 字节，配额 {self.quota_bytes} 字节"
            )
        self._write(key, value)

    def get_json(self, key: str, default: Any = None) -> Any:
        """
        读取并解析JSON值，解析失败返回默认值

        Args:
            key: 键
            default: 默认值

        Returns:
            解析后的对象
        """
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"解析存储数据失败 {key}: {e}")
            return default

    def set_json(self, key: str, value: Any):
        """序列化为JSON后写入"""
        self.set(key, json.dumps(value, ensure_ascii=False))


class MemoryStore(KeyValueStore):
    """内存键值存储，主要用于测试"""

    def __init__(self, quota_bytes: Optional[int] = None):
        super().__init__(quota_bytes)
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _write(self, key: str, value: str):
        self._data[key] = value

    def remove(self, key: str):
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class SqliteStore(KeyValueStore):
    """SQLite键值存储"""

    def __init__(self, db_url: str = None, quota_bytes: Optional[int] = None):
        """
        初始化数据库连接

        Args:
            db_url: 数据库连接URL，默认使用配置中的URL
            quota_bytes: 单个值的字节上限
        """
        super().__init__(quota_bytes)
        self.db_url = db_url or settings.database_url
        self.db_path = self._parse_db_path()
        self._init_db()

    def _parse_db_path(self) -> str:
        """解析数据库文件路径"""
        if self.db_url.startswith("sqlite:///"):
            return self.db_url.replace("sqlite:///", "")
        return self.db_url

    def _init_db(self):
        """初始化数据库，创建键值表"""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()
        logger.info(f"数据库初始化完成: {self.db_path}")

    def get_connection(self):
        """获取数据库连接"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def get(self, key: str) -> Optional[str]:
        with self.get_connection() as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else None

    def _write(self, key: str, value: str):
        try:
            with self.get_connection() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)",
                    (key, value)
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"写入失败 {key}: {e}") from e

    def remove(self, key: str):
        try:
            with self.get_connection() as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"删除失败 {key}: {e}") from e

    def keys(self, prefix: str = "") -> List[str]:
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT key FROM kv_store WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
                (prefix.replace("%", r"\%").replace("_", r"\_") + "%",)
            ).fetchall()
            return [row["key"] for row in rows]
