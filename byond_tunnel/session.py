"""
Topic 会话模块

本模块定义了 TopicSession 类，在一个 TCP 连接上串行执行多个查询。

BYOND 服务器的响应没有请求标识，一个连接上同一时刻只能有一个请求在途，
否则无法把响应对应回请求。TopicSession 用一个显式的先进先出队列和
busy 标志保证这一点:

1. send() 时如果空闲，立即发送；否则排入队列
2. 当前请求完成（成功或失败）后，立即发送队列中的下一个请求
3. 队列为空时清除 busy 标志

失败处理:
- 超时、套接字错误、分帧错误会让当前请求失败并销毁会话，
  队列中的请求随之以 SessionDestroyed 失败
- 无法识别的响应类型只让当前请求失败，帧已完整读出，会话继续可用
- 不做任何自动重试或重连
"""

import asyncio
import itertools
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

from byond_protocol import (
    SessionDestroyed,
    TopicError,
    TopicResult,
    UnrecognizedResponseType,
    encode_request,
)

from .base import BaseTopicConnection

logger = logging.getLogger('byond-topic-session')

_session_ids = itertools.count(1)


@dataclass
class PendingRequest:
    """
    一个等待发送或正在处理的请求

    Attributes:
        topic: 原始查询字符串
        request: 已编码的请求帧
        future: 调用方等待的结果
    """
    topic: str
    request: bytes
    future: asyncio.Future


class TopicSession(BaseTopicConnection):
    """
    Topic 会话 - 在单个连接上串行化查询

    会话是一次性的：一旦销毁，就不再接受新的请求，也不会重连。

    Attributes:
        session_id: 会话编号，用于日志
        queue_length: 等待中的请求数，加上在途的请求（如果有）
        destroyed: 会话是否已经销毁
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, **kwargs):
        """
        初始化会话

        Args:
            reader: 已连接的异步流读取器
            writer: 已连接的异步流写入器
            **kwargs: 传给 BaseTopicConnection（timeout、framing、idle_timeout）
        """
        super().__init__(reader, writer, **kwargs)

        self.session_id = next(_session_ids)
        self._queue: Deque[PendingRequest] = deque()
        self._busy = False
        self._current: Optional[PendingRequest] = None
        self._task: Optional[asyncio.Task] = None
        self._destroyed = False

        logger.debug(f"[{self.session_id}] 创建会话: peer={self.peer_str}, "
                     f"timeout={self.timeout}, framing={self.framing}")

    @property
    def queue_length(self) -> int:
        return len(self._queue) + int(self._busy)

    @property
    def destroyed(self) -> bool:
        if self._destroyed:
            return True
        return self.writer.is_closing()

    async def send(self, topic: str) -> TopicResult:
        """
        发送一个查询并等待结果

        同一会话上的请求严格按提交顺序完成。

        Args:
            topic: 查询字符串

        Returns:
            TopicResult: None、float 或 str

        Raises:
            SessionDestroyed: 会话已销毁，或排队期间被销毁
            QueryTooLarge: 查询过长
            Timeout: 超时时间内没有收到完整响应
            ConnectionFailed: 套接字出错或被关闭
            FramingError: 响应长度不符
            UnrecognizedResponseType: 响应类型未知
        """
        if self.destroyed:
            raise SessionDestroyed()

        request = encode_request(topic)
        pending = PendingRequest(topic, request, asyncio.get_running_loop().create_future())

        if not self._busy:
            self._busy = True
            self._start(pending)
        else:
            self._queue.append(pending)
            logger.debug(f"[{self.session_id}] 请求排队: topic={topic!r}, 队列长度={self.queue_length}")

        return await pending.future

    def _start(self, pending: PendingRequest):
        self._current = pending
        self._task = asyncio.create_task(self._process(pending))

    async def _process(self, pending: PendingRequest):
        """处理在途请求，完成后调度下一个"""
        logger.debug(f"[{self.session_id}] 处理请求: topic={pending.topic!r}")
        try:
            result = await self.exchange(pending.request)
        except UnrecognizedResponseType as e:
            logger.warning(f"[{self.session_id}] {e}: topic={pending.topic!r}")
            self._fail(pending, e)
        except TopicError as e:
            logger.error(f"[{self.session_id}] 请求失败，销毁会话: {e}")
            self._fail(pending, e)
            self._shutdown("在途请求失败")
            return
        except Exception as e:
            logger.error(f"[{self.session_id}] 处理请求时发生意外错误: {e}", exc_info=True)
            self._fail(pending, e)
            self._shutdown("在途请求发生意外错误")
            return
        else:
            logger.debug(f"[{self.session_id}] 请求完成: topic={pending.topic!r}, result={result!r}")
            if not pending.future.done():
                pending.future.set_result(result)

        self._run_next()

    def _run_next(self):
        """发送队列中的下一个请求，队列为空时清除 busy 标志"""
        while self._queue:
            pending = self._queue.popleft()
            # 调用方已取消等待
            if pending.future.done():
                continue
            self._start(pending)
            return

        self._busy = False
        self._current = None
        self._task = None

    @staticmethod
    def _fail(pending: PendingRequest, error: BaseException):
        if not pending.future.done():
            pending.future.set_exception(error)

    def _shutdown(self, reason: str, cancel_task: bool = False):
        """
        终止会话：让所有在途和排队的请求失败并关闭套接字

        Args:
            reason: 终止原因，用于日志
            cancel_task: 是否取消在途请求的任务
        """
        if self._destroyed:
            return
        self._destroyed = True

        failed = 0
        if self._current is not None and not self._current.future.done():
            self._fail(self._current, SessionDestroyed())
            failed += 1
        while self._queue:
            pending = self._queue.popleft()
            if not pending.future.done():
                self._fail(pending, SessionDestroyed())
                failed += 1

        if cancel_task and self._task is not None and not self._task.done():
            self._task.cancel()

        self._busy = False
        self._current = None
        self._task = None

        logger.info(f"[{self.session_id}] 会话已销毁（{reason}），失败的请求: {failed}")
        self.close_transport()

    def destroy(self):
        """
        销毁会话

        关闭套接字，所有排队和在途的请求以 SessionDestroyed 失败。
        之后的 send() 调用立即失败。重复调用无副作用。
        """
        self._shutdown("主动销毁", cancel_task=True)

    async def close(self):
        """销毁会话并等待底层连接关闭"""
        self.destroy()
        await self.wait_closed()

    async def __aenter__(self) -> 'TopicSession':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
