#!/usr/bin/env python3
"""
BYOND Topic 命令行客户端

向 BYOND 游戏服务器发送一个或多个 topic 查询，每行输出一个结果。

使用示例:
    byond-topic --host 127.0.0.1 --port 1337 status
    byond-topic -c config.yaml ?players ?status
    byond-topic --framing idle --timeout 5 ping

多个查询共享一个会话，按给出的顺序依次执行；只有一个查询时使用一次性连接。

退出码:
    0 全部查询成功
    1 配置错误或任一查询失败
    2 命令行参数错误
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from byond_config import TopicConfig, config_from_dict, load_config
from byond_logger import LoggerManager, add_context
from byond_protocol import TopicError, TopicResult
from byond_tunnel import create_session, send_topic
from byond_tunnel.base import FRAMING_MODES

logger = logging.getLogger('byond-topic-cli')


def format_result(value: TopicResult) -> str:
    """将结果格式化为一行文本，None 输出为 null"""
    if value is None:
        return 'null'
    if isinstance(value, float):
        # 服务器返回的是单精度浮点数
        return f"{value:.7g}"
    return value


async def run_client(config: TopicConfig, topics: List[str]) -> int:
    """
    执行查询并输出结果

    Args:
        config: 客户端配置
        topics: 查询列表

    Returns:
        int: 退出码
    """
    options = dict(timeout=config.timeout, framing=config.framing,
                   idle_timeout=config.idle_timeout)

    if len(topics) == 1:
        try:
            result = await send_topic(config.host, config.port, topics[0], **options)
        except TopicError as e:
            logger.error(f"查询 {topics[0]!r} 失败: {e}")
            return 1
        print(format_result(result))
        return 0

    try:
        session = await create_session(config.host, config.port, **options)
    except TopicError as e:
        logger.error(f"连接失败: {e}")
        return 1

    add_context(session_id=session.session_id)
    exit_code = 0
    try:
        results = await asyncio.gather(
            *(session.send(topic) for topic in topics),
            return_exceptions=True
        )
        for topic, result in zip(topics, results):
            if isinstance(result, TopicError):
                logger.error(f"查询 {topic!r} 失败: {result}")
                exit_code = 1
            elif isinstance(result, BaseException):
                raise result
            else:
                print(format_result(result))
    finally:
        await session.close()
    return exit_code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='BYOND Topic 客户端')
    parser.add_argument('topics', nargs='+', metavar='TOPIC', help='查询字符串（可省略前导 ?）')
    parser.add_argument('--config', '-c', default='config.yaml', help='配置文件路径')
    parser.add_argument('--host', default=None, help='服务器地址')
    parser.add_argument('--port', '-p', type=int, default=None, help='服务器端口')
    parser.add_argument('--timeout', '-t', type=float, default=None, help='连接与响应超时（秒）')
    parser.add_argument('--framing', choices=FRAMING_MODES, default=None,
                        help='分帧方式: length（按长度字段，默认）或 idle（按静默超时）')
    parser.add_argument('--idle-timeout', type=float, default=None, help='静默分帧的静默窗口（秒）')
    parser.add_argument('--repeat', '-r', type=int, default=1, help='每个查询重复的次数')
    parser.add_argument('--debug', '-d', action='store_true', help='启用调试模式')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    主函数 - 解析命令行参数并执行查询

    命令行参数优先于配置文件。
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    manager = LoggerManager()
    manager.initialize(config_file=args.config)
    if args.debug:
        manager.set_level('DEBUG')
        logger.debug("启用调试模式")

    config_data = load_config(args.config)
    if not config_data:
        logger.debug(f"配置文件 {args.config} 未找到或为空，使用默认配置")

    try:
        config = config_from_dict(config_data)
        if args.host is not None:
            config.host = args.host
        if args.port is not None:
            config.port = args.port
        if args.timeout is not None:
            config.timeout = args.timeout
        if args.framing is not None:
            config.framing = args.framing
        if args.idle_timeout is not None:
            config.idle_timeout = args.idle_timeout
        config.validate()
    except (TypeError, ValueError) as e:
        logger.error(f"配置错误: {e}")
        return 1
    if args.repeat < 1:
        logger.error(f"重复次数必须为正数: {args.repeat}")
        return 1

    add_context(host=config.host, port=config.port)
    logger.info(f"客户端配置: 服务器={config.host}:{config.port}, "
                f"超时={config.timeout}, 分帧={config.framing}")

    topics = [topic for topic in args.topics for _ in range(args.repeat)]
    try:
        return asyncio.run(run_client(config, topics))
    except KeyboardInterrupt:
        logger.info("收到键盘中断信号")
        return 1


if __name__ == '__main__':
    sys.exit(main())
