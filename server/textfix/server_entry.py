from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from textfix.core.providers import PROVIDERS, api_key_env
from textfix.server_config import load_config, load_env, read_api_key, resolve_base_path


def _ensure_base_env(base_path: Path) -> None:
    os.environ["TEXTFIX_BASE_PATH"] = str(base_path)


def _maybe_chdir_base(base_path: Path) -> None:
    """进程工作目录统一到 base_path，logs/ 与相对路径资源都以此为准。"""

    try:
        os.chdir(str(base_path))
    except OSError:
        pass


def _run_uvicorn(*, host: str, port: int) -> int:
    import uvicorn

    uvicorn.run(
        "textfix.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=False,
        access_log=False,
    )
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="TextFix 文本纠错服务入口")
    parser.add_argument("--host", default=None, help="绑定地址（默认读取 config.json / 回退 0.0.0.0）")
    parser.add_argument("--port", default=None, type=int, help="绑定端口（默认读取 config.json / 回退 8000）")
    parser.add_argument(
        "--provider",
        default=None,
        choices=sorted(PROVIDERS),
        help="LLM 服务商（默认读取 config.json / 回退 openai）",
    )
    parser.add_argument("--check", action="store_true", help="只检查配置，不启动服务端")
    args = parser.parse_args(argv)

    base_path = resolve_base_path()
    _ensure_base_env(base_path)
    _maybe_chdir_base(base_path)
    load_env(base_path)

    config = load_config(base_path)
    host = (args.host or "").strip() or config.host
    port = int(args.port) if args.port is not None else int(config.port)
    provider = args.provider or config.provider

    raw_level = (os.environ.get("TEXTFIX_LOG") or "").strip()
    if not raw_level:
        os.environ["TEXTFIX_LOG"] = str(config.log_level)

    if provider != config.provider:
        # create_app() re-reads config.json, so the override travels via env.
        os.environ["TEXTFIX_PROVIDER"] = provider
        config = replace(config, provider=provider)

    if read_api_key(config.provider) is None:
        sys.stderr.write(
            f"警告：未设置 {api_key_env(config.provider)}，纠错请求将返回错误提示。\n"
        )
        if args.check:
            return 2

    if args.check:
        sys.stdout.write(f"ok provider={config.provider} host={host} port={port}\n")
        return 0

    return _run_uvicorn(host=host, port=port)


if __name__ == "__main__":
    raise SystemExit(main())
