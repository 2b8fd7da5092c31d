"""
日志管理模块
配置和管理应用的日志记录
"""

import logging
import sys
from pathlib import Path
from .config import settings


def setup_logger(name: str = "chatdiary", log_file: str = None) -> logging.Logger:
    """
    设置日志记录器

    Args:
        name: 日志记录器名称
        log_file: 日志文件路径，默认使用配置中的路径

    Returns:
        配置好的日志记录器
    """
    log_file = log_file or settings.log_file
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # 创建日志目录
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # 清除已有的处理器
    logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # 控制台处理器
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # 文件处理器
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


# 创建全局日志记录器
logger = setup_logger()
