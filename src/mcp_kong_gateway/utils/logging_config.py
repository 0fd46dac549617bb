"""Logging configuration for gatewaycraft.

Provides configurable logging with:
- File-based logging with rotation
- Console output for real-time debugging
- Performance timing helpers for Admin API calls

Environment Variables:
    GATEWAYCRAFT_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    GATEWAYCRAFT_LOG_FILE: Path to log file (default: ~/.gatewaycraft/gatewaycraft.log)
    GATEWAYCRAFT_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    GATEWAYCRAFT_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from mcp_kong_gateway.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("plan")
    async def plan(self, raw, options):
        ...

    async with timed_section("get_by_name", resource="Service:users"):
        ...
"""
import asyncio
import functools
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("gatewaycraft.perf")

_configured = False


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("GATEWAYCRAFT_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".gatewaycraft" / "gatewaycraft.log"
    path_str = os.environ.get("GATEWAYCRAFT_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging(console_level: Optional[int] = None) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects GATEWAYCRAFT_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger for timing metrics

    Safe to call more than once; only the first call installs handlers.
    """
    global _configured
    if _configured:
        return

    log_level = console_level if console_level is not None else get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("GATEWAYCRAFT_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("GATEWAYCRAFT_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-32s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    perf_log_file = log_file.parent / "gatewaycraft-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    package_logger = logging.getLogger("mcp_kong_gateway")
    package_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    package_logger.addHandler(console_handler)
    package_logger.addHandler(file_handler)

    perf_logger.setLevel(logging.DEBUG)
    perf_logger.propagate = False
    perf_logger.addHandler(perf_handler)

    _configured = True
    package_logger.info(
        f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}"
    )


def _perf_line(operation: str, resource: Optional[str], elapsed: float, status: str) -> str:
    return f"{operation:16s} | {resource or 'N/A':40s} | {elapsed:8.2f}ms | {status}"


def timed(operation: str):
    """Decorator to log execution time of sync/async functions.

    Usage:
        @timed("execute")
        async def execute(self, plan, options):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.info(_perf_line(operation, None, elapsed, "OK"))
                return result
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(_perf_line(operation, None, elapsed, f"FAIL: {e}"))
                raise

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.info(_perf_line(operation, None, elapsed, "OK"))
                return result
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(_perf_line(operation, None, elapsed, f"FAIL: {e}"))
                raise

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, resource: Optional[str] = None, **extra):
    """Async context manager for timing code sections.

    Usage:
        async with timed_section("create", resource="Route:users", attempt=1):
            await client.post(...)
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
        elapsed = (time.perf_counter() - start) * 1000
        msg = _perf_line(operation, resource, elapsed, "OK")
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.info(msg)
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = _perf_line(operation, resource, elapsed, f"FAIL: {e}")
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        raise
