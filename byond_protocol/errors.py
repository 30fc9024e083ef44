"""
BYOND Topic - 异常定义

所有协议与会话错误都继承自 TopicError，调用方可以只捕获这一个基类。

异常层次:
    TopicError
    ├── ConnectionFailed          连接无法建立，或在收到完整响应前出错/关闭
    ├── Timeout                   在超时窗口内没有收到完整的响应帧
    ├── FramingError              收到的数据与声明的长度不符，或帧头不合法
    ├── UnrecognizedResponseType  响应体的类型字节未知
    ├── SessionDestroyed          会话已销毁后仍尝试操作
    └── QueryTooLarge             查询超出 16 位长度字段的表示范围
"""

import asyncio


class TopicError(Exception):
    """BYOND Topic 客户端错误基类"""


class ConnectionFailed(TopicError):
    """套接字无法建立，或在收到完整响应前出错"""


class Timeout(TopicError, asyncio.TimeoutError):
    """在配置的时间窗口内没有收到完整的响应帧"""


class FramingError(TopicError):
    """收到的字节数超过声明的长度，或帧头不一致"""


class UnrecognizedResponseType(TopicError):
    """
    响应体类型字节不是 0x00、0x2a、0x06 中的任何一个

    Attributes:
        type_tag: 收到的类型字节
    """

    def __init__(self, type_tag: int):
        super().__init__(f"无法识别的响应类型: 0x{type_tag:02x}")
        self.type_tag = type_tag


class SessionDestroyed(TopicError):
    """会话已销毁"""

    def __init__(self, message: str = "会话已销毁"):
        super().__init__(message)


class QueryTooLarge(TopicError, ValueError):
    """
    查询过长，长度字段无法表示

    Attributes:
        size: 编码后的查询字节数
        limit: 允许的最大字节数
    """

    def __init__(self, size: int, limit: int):
        super().__init__(f"查询过长: {size} 字节（最大 {limit} 字节）")
        self.size = size
        self.limit = limit
