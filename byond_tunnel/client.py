"""
Topic 客户端模块

提供建立连接的两个入口:
- create_session(): 建立持久连接，用于重复查询
- send_topic(): 建立临时连接，执行一次查询后关闭

以及为旧版对象式 API 保留的已弃用兼容类 TopicShim。
"""

import asyncio
import logging
import socket
import warnings
from typing import Any, Dict, Optional

from byond_protocol import ConnectionFailed, TopicResult

from .base import DEFAULT_TIMEOUT, FRAMING_LENGTH, LEGACY_IDLE_TIMEOUT
from .session import TopicSession

logger = logging.getLogger('byond-topic-client')

# 旧版兼容类的默认超时（秒）
SHIM_TIMEOUT = 2.0


async def create_session(host: str, port: int,
                         timeout: Optional[float] = DEFAULT_TIMEOUT,
                         framing: str = FRAMING_LENGTH,
                         idle_timeout: float = LEGACY_IDLE_TIMEOUT) -> TopicSession:
    """
    连接到 BYOND 服务器并创建会话

    只使用 IPv4，连接建立同样受 timeout 约束。

    Args:
        host: 域名或 IP 地址
        port: 端口
        timeout: 连接与响应超时（秒），None 表示不超时
        framing: 分帧方式，'length'（默认）或 'idle'
        idle_timeout: 静默分帧的静默窗口（秒）

    Returns:
        TopicSession: 已连接的会话

    Raises:
        ConnectionFailed: 无法建立连接
    """
    logger.debug(f"正在连接到 {host}:{port}")
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port, family=socket.AF_INET),
            timeout=timeout
        )
    except asyncio.TimeoutError as e:
        logger.warning(f"连接 {host}:{port} 超时（{timeout}秒）")
        raise ConnectionFailed(f"连接 {host}:{port} 超时") from e
    except OSError as e:
        logger.warning(f"连接 {host}:{port} 失败: {e}")
        raise ConnectionFailed(f"无法连接到 {host}:{port}: {e}") from e

    session = TopicSession(reader, writer, timeout=timeout,
                           framing=framing, idle_timeout=idle_timeout)
    logger.info(f"[{session.session_id}] 已连接到 {host}:{port}")
    return session


async def send_topic(host: str, port: int, topic: str,
                     timeout: Optional[float] = DEFAULT_TIMEOUT,
                     framing: str = FRAMING_LENGTH,
                     idle_timeout: float = LEGACY_IDLE_TIMEOUT) -> TopicResult:
    """
    建立临时连接，执行一次查询后关闭连接

    Args:
        host: 域名或 IP 地址
        port: 端口
        topic: 查询字符串
        timeout: 连接与响应超时（秒）
        framing: 分帧方式
        idle_timeout: 静默分帧的静默窗口（秒）

    Returns:
        TopicResult: None、float 或 str
    """
    session = await create_session(host, port, timeout=timeout,
                                   framing=framing, idle_timeout=idle_timeout)
    try:
        return await session.send(topic)
    finally:
        await session.close()


class TopicShim:
    """
    旧版对象式 API 的兼容类

    .. deprecated::
        请改用 send_topic() 和 create_session()
    """

    def __init__(self, timeout: Optional[float] = SHIM_TIMEOUT):
        warnings.warn(
            "TopicShim 已弃用，请改用 send_topic() 和 create_session()",
            DeprecationWarning,
            stacklevel=2
        )
        self.timeout = timeout

    async def run(self, form: Dict[str, Any]) -> TopicResult:
        """
        执行一次查询

        Args:
            form: 包含 'ip'、'port'、'topic' 的字典
        """
        return await send_topic(form['ip'], int(form['port']), form['topic'], timeout=self.timeout)
