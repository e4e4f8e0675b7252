from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from textfix.core.providers import PROVIDERS, api_key_env


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    provider: str = "openai"
    # Empty means the provider's own default model.
    model: str = ""
    max_tokens: int = 100
    temperature: float = 1.0
    timeout_s: float = 30.0


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


def config_path(base_path: Path) -> Path:
    return Path(base_path) / "config.json"


def load_config(base_path: Path) -> ServerConfig:
    """读取 config.json；缺失或非法的字段逐项回退到默认值。"""

    path = config_path(base_path)
    data: Any = {}
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            data = {}
    if not isinstance(data, dict):
        data = {}

    def get_str(key: str, default: str) -> str:
        raw = data.get(key)
        if raw is None:
            return default
        value = str(raw).strip()
        return value or default

    def get_int(key: str, default: int, lo: int, hi: int) -> int:
        raw = data.get(key)
        if raw is None or isinstance(raw, bool):
            return default
        try:
            value = int(raw)
        except (TypeError, ValueError):
            return default
        if not (lo <= value <= hi):
            return default
        return value

    def get_float(key: str, default: float, lo: float, hi: float) -> float:
        raw = data.get(key)
        if raw is None or isinstance(raw, bool):
            return default
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return default
        if not (lo <= value <= hi):
            return default
        return value

    host = get_str("host", ServerConfig.host)
    port = get_int("port", ServerConfig.port, 1, 65535)
    log_level = get_str("log_level", ServerConfig.log_level).upper()
    if log_level not in _VALID_LOG_LEVELS:
        log_level = ServerConfig.log_level

    provider = get_str("provider", ServerConfig.provider).lower()
    env_provider = (os.environ.get("TEXTFIX_PROVIDER") or "").strip().lower()
    if env_provider in PROVIDERS:
        provider = env_provider
    if provider not in PROVIDERS:
        provider = ServerConfig.provider

    raw_model = data.get("model")
    model = str(raw_model).strip() if raw_model is not None else ServerConfig.model

    return ServerConfig(
        host=host,
        port=port,
        log_level=log_level,
        provider=provider,
        model=model,
        max_tokens=get_int("max_tokens", ServerConfig.max_tokens, 1, 1_000_000),
        temperature=get_float("temperature", ServerConfig.temperature, 0.0, 2.0),
        timeout_s=get_float("timeout_s", ServerConfig.timeout_s, 0.001, 3600.0),
    )


def read_api_key(provider: str) -> Optional[str]:
    """Key for ``provider`` from the environment; blank values count as missing."""

    value = (os.environ.get(api_key_env(provider)) or "").strip()
    return value or None


def resolve_base_path() -> Path:
    """
    解析运行时资源根目录（config.json / .env 所在目录）。

    优先级：
    1) 显式环境变量 TEXTFIX_BASE_PATH
    2) 源码模式：server/ 目录（当前文件位于 server/textfix/ 下）
    """

    env = (os.environ.get("TEXTFIX_BASE_PATH") or "").strip()
    if env:
        return Path(env).expanduser().resolve()

    return Path(__file__).resolve().parents[1]


def load_env(base_path: Path) -> bool:
    """Load ``<base>/.env`` without overriding variables already set."""

    path = Path(base_path) / ".env"
    if not path.is_file():
        return False
    return load_dotenv(path, override=False)
