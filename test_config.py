"""
配置与日志管理测试
"""

import logging

import pytest
import yaml

from byond_config import TopicConfig, config_from_dict, load_config, save_config
from byond_logger import (
    ContextFilter,
    LogConfig,
    LogFormatter,
    LoggerManager,
    add_context,
    clear_context,
    get_logger,
)


class TestTopicConfig:
    """客户端配置"""

    def test_defaults(self):
        config = TopicConfig()
        assert config.host == "127.0.0.1"
        assert config.port == 1337
        assert config.timeout == 10.0
        assert config.framing == 'length'
        assert config.idle_timeout == 2.0
        config.validate()

    @pytest.mark.parametrize("changes", [
        {'host': ''},
        {'port': 0},
        {'port': 70000},
        {'timeout': 0},
        {'timeout': -1.0},
        {'framing': 'magic'},
        {'idle_timeout': 0},
    ])
    def test_invalid(self, changes):
        config = TopicConfig(**changes)
        with pytest.raises(ValueError):
            config.validate()

    def test_no_timeout_is_valid(self):
        TopicConfig(timeout=None).validate()

    def test_from_dict(self):
        config = config_from_dict({'client': {'host': 'example.org', 'port': '2506',
                                              'framing': 'idle'}})
        assert config.host == 'example.org'
        assert config.port == 2506
        assert config.framing == 'idle'
        assert config.timeout == 10.0

    @pytest.mark.parametrize("data", [{}, None, {'client': None}, {'logging': {}}])
    def test_from_dict_missing_section(self, data):
        assert config_from_dict(data) == TopicConfig()

    def test_from_dict_coerces_numbers(self):
        config = config_from_dict({'client': {'port': '1337', 'timeout': '2.5',
                                              'idle_timeout': 1, 'host': 10}})
        assert config.port == 1337
        assert config.timeout == 2.5
        assert config.idle_timeout == 1.0
        assert config.host == '10'

    def test_from_dict_keeps_no_timeout(self):
        assert config_from_dict({'client': {'timeout': None}}).timeout is None

    @pytest.mark.parametrize("client", [
        {'port': 'abc'},
        {'timeout': 'fast'},
        {'idle_timeout': 'soon'},
        {'port': [1337]},
        {'timeout': {'seconds': 1}},
    ])
    def test_from_dict_bad_field(self, client):
        """无法转换的值在构造时报错，而不是留到 validate()"""
        with pytest.raises((TypeError, ValueError)):
            config_from_dict({'client': client})

    @pytest.mark.parametrize("data", [['client'], {'client': 'localhost'}])
    def test_from_dict_not_a_mapping(self, data):
        with pytest.raises(TypeError):
            config_from_dict(data)


class TestConfigFile:
    """配置文件读写"""

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "config.yaml"
        data = {'client': {'host': '10.0.0.2', 'port': 1337, 'timeout': 3.5}}
        assert save_config(str(path), data) is True
        assert load_config(str(path)) == data

    def test_missing_file(self, tmp_path):
        assert load_config(str(tmp_path / "absent.yaml")) == {}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding='utf-8')
        assert load_config(str(path)) == {}

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("client: [unclosed\n", encoding='utf-8')
        assert load_config(str(path)) == {}

    def test_save_to_missing_directory(self, tmp_path):
        assert save_config(str(tmp_path / "absent" / "config.yaml"), {}) is False


class TestLoggerManager:
    """日志管理器"""

    def test_singleton(self):
        assert LoggerManager() is LoggerManager()

    def test_config_file_logging_section(self, tmp_path, clean_env):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({'logging': {'level': 'WARNING', 'backup_count': 2}}),
                        encoding='utf-8')
        config = LoggerManager().load_config_from_file(str(path))
        assert config.level == 'WARNING'
        assert config.backup_count == 2
        assert config.enable_file is False

    def test_env_overrides_file(self, tmp_path, clean_env):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({'logging': {'level': 'WARNING'}}), encoding='utf-8')
        clean_env.setenv('LOG_LEVEL', 'ERROR')
        clean_env.setenv('LOG_ENABLE_CONSOLE', 'false')
        config = LoggerManager().load_config_from_file(str(path))
        assert config.level == 'ERROR'
        assert config.enable_console is False

    @pytest.mark.parametrize("content", [
        "logging:\n  max_bytes: huge\n",
        "logging: verbose\n",
        "- just\n- a list\n",
    ])
    def test_bad_logging_section_falls_back(self, tmp_path, clean_env, content):
        path = tmp_path / "config.yaml"
        path.write_text(content, encoding='utf-8')
        assert LoggerManager().load_config_from_file(str(path)) == LogConfig()

    def test_missing_config_file(self, tmp_path, clean_env):
        config = LoggerManager().load_config_from_file(str(tmp_path / "absent.yaml"))
        assert config == LogConfig()

    def test_file_handler_writes_context(self, tmp_path, clean_env, root_logger):
        manager = LoggerManager()
        manager.initialize(LogConfig(level='DEBUG', log_dir=str(tmp_path / "logs"),
                                     enable_console=False, enable_file=True))
        add_context(host='127.0.0.1', port=1337)
        try:
            get_logger('byond-topic-test').info("测试消息")
        finally:
            clear_context()
        for handler in root_logger.handlers:
            handler.flush()

        content = (tmp_path / "logs" / "byond-topic.log").read_text(encoding='utf-8')
        assert "测试消息" in content
        assert "host=127.0.0.1 | port=1337 | session_id=-" in content

    def test_set_level(self, clean_env, root_logger):
        manager = LoggerManager()
        manager.initialize(LogConfig(level='INFO'))
        manager.set_level('DEBUG')
        assert root_logger.level == logging.DEBUG
        assert all(handler.level == logging.DEBUG for handler in root_logger.handlers)


class TestFormatting:
    """上下文过滤器与格式化器"""

    def make_record(self):
        return logging.LogRecord('test', logging.WARNING, __file__, 1, "消息", None, None)

    def test_context_filter(self):
        context_filter = ContextFilter(['host', 'session_id'])
        context_filter.add_context(host='example.org')
        record = self.make_record()
        assert context_filter.filter(record) is True
        assert record.context == "host=example.org | session_id=-"

    def test_formatter_without_context(self):
        formatter = LogFormatter(fmt="%(levelname)s [%(context)s] %(message)s")
        assert formatter.format(self.make_record()) == "WARNING [-] 消息"

    def test_color_does_not_leak_into_record(self):
        formatter = LogFormatter(fmt="%(levelname)s %(message)s", use_color=True)
        record = self.make_record()
        assert '\033[33m' in formatter.format(record)
        assert record.levelname == 'WARNING'
