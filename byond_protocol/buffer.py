"""
BYOND Topic - 响应帧缓冲区

TCP 是字节流，一个响应帧可能被拆成任意多个数据块到达，也可能一次到齐。
本模块提供两种判断"响应已经收完"的方式:

FrameAssembler（默认）:
- 依据帧头中声明的体长度拼装响应
- 先收满 4 字节帧头，再按声明长度分配响应体缓冲区
- 收到的字节数正好等于 4 + 体长度时完成
- 多于声明长度时进入 OVERFLOW 状态并抛出 FramingError

IdleFrameCollector（回退方案）:
- 不信任长度字段，累积所有收到的数据
- 由调用方在套接字静默一段时间后调用 finish()
- 校验魔数 0x00 0x83，返回帧头之后的全部数据

状态转换:
    AWAITING_HEADER ──(收满 4 字节)──> AWAITING_BODY ──(收满体长度)──> COMPLETE
           │                                 │                           │
           └────────────(多余字节)───────────┴──────────(多余字节)───────┴──> OVERFLOW
"""

from enum import Enum
from typing import Optional

from .core import HEADER_SIZE, RESPONSE_MAGIC, parse_frame_header
from .errors import FramingError


class FrameState(Enum):
    """帧拼装状态"""
    AWAITING_HEADER = 'awaiting_header'
    AWAITING_BODY = 'awaiting_body'
    COMPLETE = 'complete'
    OVERFLOW = 'overflow'


class FrameAssembler:
    """
    按长度前缀拼装单个响应帧

    Attributes:
        state: 当前状态
        bytes_read: 已消费的字节数（含帧头）
        magic: 帧头中的魔数（收满帧头后有效）
    """

    def __init__(self):
        self._header = bytearray()
        self._body: Optional[bytearray] = None
        self._body_length = 0
        self.bytes_read = 0
        self.magic: Optional[int] = None
        self.state = FrameState.AWAITING_HEADER

    @property
    def expected_length(self) -> Optional[int]:
        """完整帧的总字节数（收满帧头之前为 None）"""
        if self._body is None:
            return None
        return HEADER_SIZE + len(self._body)

    @property
    def complete(self) -> bool:
        return self.state is FrameState.COMPLETE

    @property
    def body(self) -> bytes:
        """
        拼装好的响应体

        Raises:
            FramingError: 帧尚未完成
        """
        if self.state is not FrameState.COMPLETE:
            raise FramingError(f"帧尚未完成: state={self.state.value}")
        return bytes(self._body)

    def feed(self, data: bytes) -> FrameState:
        """
        喂入一个数据块

        Args:
            data: 任意长度的数据块

        Returns:
            FrameState: 喂入后的状态

        Raises:
            FramingError: 收到的数据超过帧声明的长度
        """
        if self.state is FrameState.OVERFLOW:
            raise FramingError("帧已溢出")
        if not data:
            return self.state
        if self.state is FrameState.COMPLETE:
            self._overflow(len(data))

        view = memoryview(data)

        # 还在等待完整帧头
        if self.state is FrameState.AWAITING_HEADER:
            needed = HEADER_SIZE - len(self._header)
            self._header.extend(view[:needed])
            view = view[needed:]
            self.bytes_read = len(self._header)
            if len(self._header) < HEADER_SIZE:
                return self.state

            self.magic, body_length = parse_frame_header(bytes(self._header))
            self._body = bytearray()
            self._body_length = body_length
            self.state = FrameState.AWAITING_BODY

        if len(view):
            remaining = self._body_length - len(self._body)
            if len(view) > remaining:
                self._overflow(len(view) - remaining)
            self._body.extend(view)
            self.bytes_read += len(view)

        if len(self._body) == self._body_length:
            self.state = FrameState.COMPLETE
        return self.state

    def _overflow(self, extra: int):
        self.state = FrameState.OVERFLOW
        raise FramingError(f"收到的数据比声明的长度多 {extra} 字节")

    def reset(self):
        """回到初始状态，准备拼装下一个帧"""
        self._header.clear()
        self._body = None
        self._body_length = 0
        self.bytes_read = 0
        self.magic = None
        self.state = FrameState.AWAITING_HEADER


class IdleFrameCollector:
    """
    静默超时分帧

    旧版服务器有时会漏发或误报长度字段，这时只能把"套接字在一段时间内
    没有新数据"当作响应结束。
    """

    def __init__(self):
        self._buffer = bytearray()

    @property
    def bytes_read(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes):
        """累积一个数据块"""
        self._buffer.extend(data)

    def finish(self) -> bytes:
        """
        结束收集并返回响应体

        Returns:
            bytes: 帧头之后的全部数据

        Raises:
            FramingError: 数据不足或魔数不匹配
        """
        if len(self._buffer) <= HEADER_SIZE:
            raise FramingError(f"静默前收到的数据不足: {len(self._buffer)} 字节")
        if bytes(self._buffer[:2]) != RESPONSE_MAGIC:
            raise FramingError(f"响应魔数不匹配: {bytes(self._buffer[:2]).hex()}")
        return bytes(self._buffer[HEADER_SIZE:])

    def reset(self):
        self._buffer.clear()
