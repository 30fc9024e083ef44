"""
BYOND Topic 协议包

本包提供了 BYOND "Topic" 协议的定义和实现，包括：
- 协议常量和响应类型
- 请求编码、响应解码
- 响应帧拼装（长度前缀 / 静默超时两种方式）
- 异常定义

使用示例：
    from byond_protocol import encode_request, FrameAssembler, decode_response

    # 编码请求
    data = encode_request("status")

    # 拼装并解码响应
    assembler = FrameAssembler()
    if assembler.feed(chunk) is FrameState.COMPLETE:
        result = decode_response(assembler.body)
"""

from .core import (
    # 协议常量
    REQUEST_MAGIC,
    RESPONSE_MAGIC,
    HEADER_SIZE,
    PADDING_SIZE,
    MAX_BODY_SIZE,
    MAX_QUERY_SIZE,

    # 类型
    ResponseType,
    TopicResult,

    # 编解码函数
    normalize_query,
    encode_request,
    parse_frame_header,
    decode_response,
    encode_response_body,
    make_response_frame,
)
from .buffer import FrameState, FrameAssembler, IdleFrameCollector
from .errors import (
    TopicError,
    ConnectionFailed,
    Timeout,
    FramingError,
    UnrecognizedResponseType,
    SessionDestroyed,
    QueryTooLarge,
)
