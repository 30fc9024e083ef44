"""
Topic 连接基础类

本模块定义了与 BYOND 服务器通信的底层功能，包括：
- 发送请求帧
- 按选定的分帧方式读取一个完整的响应
- 将底层 I/O 异常转换为 byond_protocol.errors 中的异常
- 关闭传输

会话类通过继承此类，实现请求排队和生命周期管理。
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from byond_protocol import (
    ConnectionFailed,
    FrameAssembler,
    IdleFrameCollector,
    Timeout,
    TopicResult,
    decode_response,
)

logger = logging.getLogger('byond-topic-base')

# 读取数据块的最大字节数
READ_CHUNK_SIZE = 65536
# 默认响应超时（秒）
DEFAULT_TIMEOUT = 10.0
# 旧版静默分帧的静默窗口（秒）
LEGACY_IDLE_TIMEOUT = 2.0

FRAMING_LENGTH = 'length'
FRAMING_IDLE = 'idle'
FRAMING_MODES = (FRAMING_LENGTH, FRAMING_IDLE)


class BaseTopicConnection(ABC):
    """
    Topic 连接基础类

    Attributes:
        reader: 异步流读取器
        writer: 异步流写入器
        timeout: 等待响应的超时时间（秒），None 表示不超时
        framing: 分帧方式，'length' 或 'idle'
        idle_timeout: 静默分帧时视为响应结束的静默时间（秒）
        peer_str: 对端地址字符串（IP:端口）
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                 timeout: Optional[float] = DEFAULT_TIMEOUT,
                 framing: str = FRAMING_LENGTH,
                 idle_timeout: float = LEGACY_IDLE_TIMEOUT):
        """
        初始化连接

        Args:
            reader: 异步流读取器
            writer: 异步流写入器
            timeout: 响应超时（秒）
            framing: 分帧方式
            idle_timeout: 静默窗口（秒）

        Raises:
            ValueError: 分帧方式未知
        """
        if framing not in FRAMING_MODES:
            raise ValueError(f"未知的分帧方式: {framing}")

        self.reader = reader
        self.writer = writer
        self.timeout = timeout
        self.framing = framing
        self.idle_timeout = idle_timeout

        peer = writer.get_extra_info('peername')
        self.peer_str = f"{peer[0]}:{peer[1]}" if peer else "unknown"

        # 同一时刻只有一个请求在途，两个缓冲区在请求之间复用
        self.assembler = FrameAssembler()
        self.collector = IdleFrameCollector()

    async def exchange(self, request: bytes) -> TopicResult:
        """
        发送一个请求帧并读取、解码对应的响应

        Args:
            request: 已编码的请求帧

        Returns:
            TopicResult: 解码后的结果
        """
        await self.send_request(request)
        if self.framing == FRAMING_IDLE:
            body = await self.read_idle_response()
        else:
            body = await self.read_response()
        return decode_response(body)

    async def send_request(self, request: bytes):
        """
        写入请求帧

        Raises:
            ConnectionFailed: 写入失败
        """
        logger.debug(f"发送请求: peer={self.peer_str}, len={len(request)}")
        try:
            self.writer.write(request)
            await self.writer.drain()
        except (OSError, RuntimeError) as e:
            raise ConnectionFailed(f"发送请求失败: {e}") from e

    async def _read_chunk(self, timeout: Optional[float]) -> bytes:
        try:
            return await asyncio.wait_for(self.reader.read(READ_CHUNK_SIZE), timeout=timeout)
        except asyncio.TimeoutError:
            raise
        except OSError as e:
            raise ConnectionFailed(f"套接字出错: {e}") from e

    async def read_response(self) -> bytes:
        """
        按长度前缀读取一个完整的响应帧

        每收到一个数据块就重新计时，收满声明的长度后立即返回。

        Returns:
            bytes: 响应体

        Raises:
            Timeout: 超时时间内没有新数据
            ConnectionFailed: 对端在帧完整之前关闭了连接
            FramingError: 收到的数据多于声明的长度
        """
        assembler = self.assembler
        assembler.reset()
        while not assembler.complete:
            try:
                chunk = await self._read_chunk(self.timeout)
            except asyncio.TimeoutError as e:
                raise Timeout(
                    f"等待响应超时（{self.timeout}秒），已收到 {assembler.bytes_read} 字节"
                ) from e

            if not chunk:
                raise ConnectionFailed(
                    f"连接在响应完整之前关闭，已收到 {assembler.bytes_read} 字节"
                )

            assembler.feed(chunk)
            logger.debug(
                f"收到数据块: {len(chunk)} 字节，"
                f"进度 {assembler.bytes_read}/{assembler.expected_length or '?'}"
            )

        return assembler.body

    async def read_idle_response(self) -> bytes:
        """
        按静默超时读取响应

        第一个数据块受 timeout 约束；此后套接字静默 idle_timeout 秒
        或对端关闭连接，都视为响应结束。

        Returns:
            bytes: 帧头之后的全部数据

        Raises:
            Timeout: 超时时间内没有收到任何数据
            ConnectionFailed: 对端在发送任何数据之前关闭了连接
            FramingError: 数据不足或魔数不匹配
        """
        collector = self.collector
        collector.reset()
        try:
            chunk = await self._read_chunk(self.timeout)
        except asyncio.TimeoutError as e:
            raise Timeout(f"等待响应超时（{self.timeout}秒）") from e
        if not chunk:
            raise ConnectionFailed("连接在收到任何响应之前关闭")
        collector.feed(chunk)

        while True:
            try:
                chunk = await self._read_chunk(self.idle_timeout)
            except asyncio.TimeoutError:
                logger.debug(f"套接字静默 {self.idle_timeout} 秒，视为响应结束")
                break
            if not chunk:
                logger.debug("对端关闭连接，视为响应结束")
                break
            collector.feed(chunk)

        return collector.finish()

    def close_transport(self):
        """关闭底层传输，不等待"""
        if self.writer is None:
            return
        try:
            self.writer.close()
        except (OSError, RuntimeError) as e:
            logger.debug(f"关闭传输时出错: {e}")

    async def wait_closed(self, timeout: float = 2.0):
        """等待底层传输关闭"""
        if self.writer is None:
            return
        try:
            await asyncio.wait_for(self.writer.wait_closed(), timeout=timeout)
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"等待连接关闭时出错: {e!r}")

    @abstractmethod
    async def send(self, topic: str) -> TopicResult:
        """
        发送一个查询并等待结果

        Args:
            topic: 查询字符串
        """
        pass

    @abstractmethod
    def destroy(self):
        """
        销毁连接
        """
        pass
