"""
BYOND Topic - 协议定义

定义 BYOND "Topic" 协议的常量、响应类型和帧的编解码函数。

功能概述:
BYOND 游戏服务器在普通 TCP 端口上接受一种逆向工程得到的二进制请求，
客户端发送一段文本查询（topic），服务器返回空值、浮点数或字符串之一。
本模块只做纯粹的字节变换，不涉及任何 I/O。

请求帧格式:
┌───────────┬────────────┬────────────┬─────────────┬──────────┐
│ 魔数      │ 长度       │ 填充       │ 查询        │ 终止符   │
│ 00 83     │ 2 字节     │ 5 字节 00  │ 可变长度    │ 1 字节 00│
└───────────┴────────────┴────────────┴─────────────┴──────────┘

响应帧格式:
┌───────────┬────────────┬──────────┬──────────────────────────┐
│ 魔数      │ 体长度     │ 类型     │   数据                   │
│ 2 字节    │  2 字节    │  1 字节  │   体长度 - 1 字节        │
└───────────┴────────────┴──────────┴──────────────────────────┘

长度字段使用大端序，浮点数使用小端序 IEEE-754 单精度。
"""

import struct
from enum import IntEnum
from typing import Optional, Tuple, Union

from .errors import FramingError, QueryTooLarge, UnrecognizedResponseType


# ============================================================================
# 协议常量
# ============================================================================

REQUEST_MAGIC = b'\x00\x83'
RESPONSE_MAGIC = b'\x00\x83'
HEADER_SIZE = 4
PADDING_SIZE = 5
MAX_BODY_SIZE = 0xFFFF
# 长度字段 = 填充(5) + 查询(n) + 终止符(1)，必须能放进 16 位
MAX_QUERY_SIZE = MAX_BODY_SIZE - PADDING_SIZE - 1

TopicResult = Optional[Union[float, str]]


class ResponseType(IntEnum):
    """
    响应体类型字节

    - NULL: 空值，没有后续数据
    - FLOAT: 4 字节小端序单精度浮点数
    - STRING: 以 0x00 结尾的 UTF-8 字符串
    """
    NULL = 0x00
    FLOAT = 0x2a
    STRING = 0x06


# ============================================================================
# 请求编码
# ============================================================================

def normalize_query(query: str) -> str:
    """如果查询不以 '?' 开头，则补上"""
    if not query.startswith('?'):
        return '?' + query
    return query


def encode_request(query: str) -> bytes:
    """
    将查询编码为请求帧

    Args:
        query: 查询字符串，缺少前导 '?' 时自动补上

    Returns:
        bytes: 完整的请求帧

    Raises:
        QueryTooLarge: 编码后的查询超过 MAX_QUERY_SIZE 字节
    """
    query_bytes = normalize_query(query).encode('utf-8')
    if len(query_bytes) > MAX_QUERY_SIZE:
        raise QueryTooLarge(len(query_bytes), MAX_QUERY_SIZE)

    length = PADDING_SIZE + len(query_bytes) + 1
    return (
        REQUEST_MAGIC
        + struct.pack('>H', length)
        + b'\x00' * PADDING_SIZE
        + query_bytes
        + b'\x00'
    )


# ============================================================================
# 响应编解码
# ============================================================================

def parse_frame_header(header: bytes) -> Tuple[int, int]:
    """
    解析 4 字节响应帧头

    Args:
        header: 至少 4 字节的数据

    Returns:
        Tuple[int, int]: (魔数, 体长度)

    Raises:
        FramingError: 数据不足 4 字节
    """
    if len(header) < HEADER_SIZE:
        raise FramingError(f"帧头不完整: {len(header)}/{HEADER_SIZE} 字节")
    magic, body_length = struct.unpack('>HH', header[:HEADER_SIZE])
    return magic, body_length


def decode_response(body: bytes) -> TopicResult:
    """
    解码响应体

    Args:
        body: 响应体（不含 4 字节帧头）

    Returns:
        TopicResult: None、float 或 str

    Raises:
        FramingError: 响应体为空或浮点数据不完整
        UnrecognizedResponseType: 类型字节未知
    """
    if not body:
        raise FramingError("响应体为空")

    tag = body[0]
    if tag == ResponseType.NULL:
        return None
    if tag == ResponseType.FLOAT:
        if len(body) < 5:
            raise FramingError(f"浮点响应长度不足: {len(body)} 字节")
        return struct.unpack('<f', body[1:5])[0]
    if tag == ResponseType.STRING:
        # 去掉类型字节和结尾的终止符
        return body[1:-1].decode('utf-8', errors='replace')
    raise UnrecognizedResponseType(tag)


def encode_response_body(value: TopicResult) -> bytes:
    """
    将结果编码为响应体，是 decode_response 的逆操作

    Args:
        value: None、数字或字符串

    Returns:
        bytes: 响应体

    Raises:
        ValueError: 字符串中包含 NUL 字符
        TypeError: 不支持的值类型
    """
    if value is None:
        return bytes([ResponseType.NULL])
    if isinstance(value, str):
        if '\x00' in value:
            raise ValueError("字符串响应不能包含 NUL 字符")
        return bytes([ResponseType.STRING]) + value.encode('utf-8') + b'\x00'
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return bytes([ResponseType.FLOAT]) + struct.pack('<f', float(value))
    raise TypeError(f"不支持的响应类型: {type(value).__name__}")


def make_response_frame(value: TopicResult, magic: bytes = RESPONSE_MAGIC) -> bytes:
    """
    构造完整的响应帧（帧头 + 响应体）

    Args:
        value: 要编码的结果
        magic: 2 字节魔数

    Returns:
        bytes: 完整的响应帧

    Raises:
        FramingError: 响应体超过 16 位长度字段
    """
    body = encode_response_body(value)
    if len(body) > MAX_BODY_SIZE:
        raise FramingError(f"响应体过长: {len(body)} 字节")
    return magic + struct.pack('>H', len(body)) + body
