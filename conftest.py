import logging

import pytest

LOG_ENV_VARS = [
    'LOG_LEVEL', 'LOG_DIR', 'LOG_FILE', 'LOG_MAX_BYTES', 'LOG_BACKUP_COUNT',
    'LOG_ROTATION_TYPE', 'LOG_FORMAT', 'LOG_ENABLE_CONSOLE', 'LOG_ENABLE_FILE',
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in LOG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def root_logger():
    """LoggerManager 会替换根记录器的处理器，测试结束后恢复"""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
