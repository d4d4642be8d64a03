from __future__ import annotations

import sys
import logging
import warnings
from enum import Enum
from types import FrameType
from typing import cast
from itertools import chain

import loguru
from loguru import logger

from core.types import IntEnum
from config.default import ENVIRONMENT, EnvironmentEnum


class LogLevelEnum(IntEnum):
    """日志级别"""

    CRITICAL = (logging.CRITICAL, "CRITICAL")
    ERROR = (logging.ERROR, "ERROR")
    WARNING = (logging.WARNING, "WARNING")
    INFO = (logging.INFO, "INFO")
    DEBUG = (logging.DEBUG, "DEBUG")
    NOTSET = (logging.NOTSET, "NOTSET")


class LoggerNameEnum(str, Enum):
    root = "root"
    httpx = "httpx"
    httpcore = "httpcore"
    openai = "openai"
    anthropic = "anthropic"
    tortoise = "tortoise"


# 连接池层面的日志过于冗长
IgnoredLoggerNames = [
    LoggerNameEnum.httpcore.value,
]


class InterceptHandler(logging.Handler):
    """Logs to loguru from Python logging module"""

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.split(".")[0] in IgnoredLoggerNames:
            return
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:  # noqa: WPS609
            frame = cast(FrameType, frame.f_back)
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level,
            record.getMessage(),
        )


def setup_loguru_logging_intercept(
    level: int = logging.DEBUG,
    modules: tuple | list = (),
) -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=level)  # noqa
    for logger_name in chain(("",), modules):
        mod_logger = logging.getLogger(logger_name)
        mod_logger.handlers = [InterceptHandler(level=level)]
        mod_logger.setLevel(level)
        mod_logger.propagate = False


def edit_record_and_gen_format(record: loguru.Record) -> str:
    extra = record.get("extra") or {}
    if record["level"].no <= 10:
        level_color = "white"
    elif record["level"].no <= 20:
        level_color = "blue"
    elif record["level"].no <= 30:
        level_color = "yellow"
    elif record["level"].no <= 40:
        level_color = "red"
    else:
        level_color = "magenta"

    if ENVIRONMENT in [EnvironmentEnum.local.value]:
        format_s = (
            "<green>[{time:YYYY-MM-DD HH:mm:ss}]</green> | "
            + f"<{level_color}>"
            + "<bold>[{level}]</bold>"
            + f"</{level_color}>"
            + " | <fg 0,75,0><underline>{name}:{line}</underline> >> {function}</fg 0,75,0> | <cyan>{message}</cyan>"
        )
    else:
        format_s = "[{time:YYYY-MM-DD HH:mm:ss}] | [{level}] | {name}:{line} >> {function} | {message}"

    if extra:
        format_s += " | {extra}"

    return format_s + "\n{exception}"


def setup_loguru(
    level: LogLevelEnum = LogLevelEnum.INFO,
) -> None:
    """重置 loguru 输出并接管第三方库的标准 logging

    Args:
        level: 日志级别
    """
    logger.remove()
    logger.add(
        sink=sys.stdout,  # type: ignore
        format=edit_record_and_gen_format,
        level=level.label,
        enqueue=False,
        serialize=False,
        backtrace=True,
        diagnose=ENVIRONMENT in [EnvironmentEnum.local.value],
        colorize=None,
    )

    # SDK 及 ORM 使用标准 logging
    setup_loguru_logging_intercept(
        level=level.value,
        modules=[
            LoggerNameEnum.httpx.value,
            LoggerNameEnum.openai.value,
            LoggerNameEnum.anthropic.value,
            LoggerNameEnum.tortoise.value,
        ],
    )

    logging.getLogger(LoggerNameEnum.root.value).handlers.clear()
    # capture warning
    logging.captureWarnings(True)
    showwarning_ = warnings.showwarning

    def showwarning(message, *args, **kwargs):
        logger.warning(message)
        showwarning_(message, *args, **kwargs)

    warnings.showwarning = showwarning


__all__ = [
    "LogLevelEnum",
    "InterceptHandler",
    "setup_loguru",
    "setup_loguru_logging_intercept",
    "edit_record_and_gen_format",
]
