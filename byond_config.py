"""
BYOND Topic - 配置管理模块
加载和保存配置文件，管理客户端配置。

功能概述:
本模块提供了配置管理功能，包括：
1. 客户端配置数据类定义与校验
2. 加载和保存 YAML 格式的配置文件
3. 从配置字典构造客户端配置

配置文件格式（config.yaml）:
    client:
      host: 127.0.0.1
      port: 1337
      timeout: 10
      framing: length
      idle_timeout: 2
    logging:
      level: INFO
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from byond_tunnel.base import DEFAULT_TIMEOUT, FRAMING_LENGTH, FRAMING_MODES, LEGACY_IDLE_TIMEOUT

logger = logging.getLogger(__name__)


# ============================================================================
# 配置数据类
# ============================================================================

@dataclass
class TopicConfig:
    """
    客户端配置数据类

    Attributes:
        host: 服务器地址（默认: "127.0.0.1"）
        port: 服务器端口（默认: 1337）
        timeout: 连接与响应超时（秒，默认: 10），None 表示不超时
        framing: 分帧方式，"length" 或 "idle"（默认: "length"）
        idle_timeout: 静默分帧的静默窗口（秒，默认: 2）
    """
    host: str = "127.0.0.1"
    port: int = 1337
    timeout: Optional[float] = DEFAULT_TIMEOUT
    framing: str = FRAMING_LENGTH
    idle_timeout: float = LEGACY_IDLE_TIMEOUT

    def validate(self):
        """
        校验配置

        Raises:
            ValueError: 配置项不合法
        """
        if not self.host:
            raise ValueError("未配置服务器地址")
        if not 0 < self.port < 65536:
            raise ValueError(f"端口超出范围: {self.port}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"超时必须为正数: {self.timeout}")
        if self.framing not in FRAMING_MODES:
            raise ValueError(f"未知的分帧方式: {self.framing}")
        if self.idle_timeout <= 0:
            raise ValueError(f"静默窗口必须为正数: {self.idle_timeout}")


def config_from_dict(config_data: Dict[str, Any]) -> TopicConfig:
    """
    从配置字典的 client 段构造客户端配置

    Args:
        config_data: load_config() 返回的配置字典

    Returns:
        TopicConfig: 客户端配置，缺失的配置项使用默认值

    Raises:
        ValueError: 端口或超时无法转换为数字
        TypeError: 配置项类型不对（例如列表）
    """
    config_data = config_data or {}
    if not isinstance(config_data, dict):
        raise TypeError(f"配置文件顶层必须是映射: {type(config_data).__name__}")
    client_conf = config_data.get('client') or {}
    if not isinstance(client_conf, dict):
        raise TypeError(f"client 段必须是映射: {type(client_conf).__name__}")
    defaults = TopicConfig()

    host = client_conf.get('host', defaults.host)
    timeout = client_conf.get('timeout', defaults.timeout)
    return TopicConfig(
        host=None if host is None else str(host),
        port=int(client_conf.get('port', defaults.port)),
        timeout=None if timeout is None else float(timeout),
        framing=client_conf.get('framing', defaults.framing),
        idle_timeout=float(client_conf.get('idle_timeout', defaults.idle_timeout)),
    )


# ============================================================================
# 配置文件管理函数
# ============================================================================

def load_config(config_file: str) -> Dict[str, Any]:
    """
    加载配置文件

    从 YAML 格式的配置文件中加载配置数据

    Args:
        config_file: 配置文件路径

    Returns:
        Dict[str, Any]: 配置数据字典，如果文件不存在或格式错误则返回空字典
    """
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        logger.warning(f"配置文件格式错误: {e}")
        return {}


def save_config(config_file: str, config_data: Dict[str, Any]) -> bool:
    """
    保存配置文件

    将配置数据保存到 YAML 格式的配置文件中

    Args:
        config_file: 配置文件路径
        config_data: 要保存的配置数据字典

    Returns:
        bool: 保存成功返回 True，失败返回 False
    """
    try:
        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f, default_flow_style=False, allow_unicode=True)
        return True
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"保存配置文件失败: {e}")
        return False
