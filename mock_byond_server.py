"""
模拟 BYOND 服务器（测试用）

解析真实的请求帧，记录收到的查询，并通过可替换的 handler 生成响应。

handler 是一个协程函数: async def handler(query: str) -> Optional[bytes]
返回完整的响应帧；返回 None 表示不响应（用于测试超时）；
抛出 ConnectionError 表示服务器直接关闭连接。
默认 handler 把查询原样作为字符串返回。
"""

import asyncio
import logging
import struct
import threading
from typing import Awaitable, Callable, List, Optional, Set

from byond_protocol import HEADER_SIZE, PADDING_SIZE, make_response_frame

logger = logging.getLogger('byond-topic-mock')

Handler = Callable[[str], Awaitable[Optional[bytes]]]


async def echo_handler(query: str) -> bytes:
    return make_response_frame(query)


class MockByondServer:
    """
    模拟 BYOND 服务器

    Attributes:
        queries: 按到达顺序记录的查询
        connections: 接受的连接数
        closed_connections: 客户端已关闭的连接数
        port: 实际监听的端口（start() 之后有效）
    """

    def __init__(self, handler: Optional[Handler] = None, host: str = '127.0.0.1', port: int = 0,
                 chunk_size: int = 0, chunk_delay: float = 0.0):
        """
        Args:
            handler: 响应生成函数
            host: 监听地址
            port: 监听端口，0 表示随机端口
            chunk_size: 大于 0 时把响应拆成该大小的数据块分别发送
            chunk_delay: 数据块之间的延迟（秒）
        """
        self.handler = handler or echo_handler
        self.host = host
        self.port = port
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay

        self.queries: List[str] = []
        self.connections = 0
        self.closed_connections = 0
        self.server: Optional[asyncio.AbstractServer] = None
        self._writers: Set[asyncio.StreamWriter] = set()

    async def start(self):
        self.server = await asyncio.start_server(self._handle_client, self.host, self.port)
        self.port = self.server.sockets[0].getsockname()[1]
        logger.debug(f"模拟服务器已启动: {self.host}:{self.port}")

    async def stop(self):
        for writer in list(self._writers):
            writer.close()
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

    async def __aenter__(self) -> 'MockByondServer':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    async def _read_query(self, reader: asyncio.StreamReader) -> str:
        header = await reader.readexactly(HEADER_SIZE)
        length = struct.unpack('>H', header[2:4])[0]
        payload = await reader.readexactly(length)
        # 跳过 5 字节填充和结尾的终止符
        return payload[PADDING_SIZE:-1].decode('utf-8')

    async def _send(self, writer: asyncio.StreamWriter, data: bytes):
        if self.chunk_size <= 0:
            writer.write(data)
            await writer.drain()
            return
        for offset in range(0, len(data), self.chunk_size):
            writer.write(data[offset:offset + self.chunk_size])
            await writer.drain()
            if self.chunk_delay:
                await asyncio.sleep(self.chunk_delay)

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.connections += 1
        self._writers.add(writer)
        try:
            while True:
                try:
                    query = await self._read_query(reader)
                except asyncio.IncompleteReadError:
                    break
                self.queries.append(query)
                response = await self.handler(query)
                if response is not None:
                    await self._send(writer, response)
        except (ConnectionError, OSError) as e:
            logger.debug(f"模拟服务器连接出错: {e}")
        finally:
            self.closed_connections += 1
            self._writers.discard(writer)
            writer.close()


class BackgroundServer:
    """
    在后台线程的事件循环中运行 MockByondServer

    用于测试自己调用 asyncio.run() 的同步入口（例如命令行 main()）。
    """

    def __init__(self, server: Optional[MockByondServer] = None):
        self.server = server or MockByondServer()
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._ready = threading.Event()

    @property
    def port(self) -> int:
        return self.server.port

    def _run(self):
        asyncio.set_event_loop(self._loop)
        self._loop.run_until_complete(self.server.start())
        self._ready.set()
        self._loop.run_forever()

    def start(self) -> 'BackgroundServer':
        self._thread.start()
        self._ready.wait(timeout=5.0)
        return self

    def stop(self):
        asyncio.run_coroutine_threadsafe(self.server.stop(), self._loop).result(timeout=5.0)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5.0)
        self._loop.close()

    def __enter__(self) -> 'BackgroundServer':
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
