"""
BYOND Topic 连接模块

本模块提供了与 BYOND 服务器通信的连接与会话接口。

主要功能包括：
- 请求发送与响应读取
- 单连接上的请求串行化（先进先出）
- 会话生命周期管理
- 一次性查询

使用示例：
    # 一次性查询
    from byond_tunnel import send_topic
    result = await send_topic("127.0.0.1", 1337, "?status")

    # 持久会话
    from byond_tunnel import create_session
    session = await create_session("127.0.0.1", 1337)
    players = await session.send("?players")
    session.destroy()
"""

from .base import BaseTopicConnection


# 延迟导入以避免循环导入
def __getattr__(name):
    if name in ('TopicSession', 'PendingRequest'):
        from . import session
        return getattr(session, name)
    elif name in ('create_session', 'send_topic', 'TopicShim'):
        from . import client
        return getattr(client, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'BaseTopicConnection',
    'PendingRequest',
    'TopicSession',
    'create_session',
    'send_topic',
    'TopicShim',
]
