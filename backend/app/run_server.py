#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
聊天后端启动脚本

使用方法:
    python -m backend.app.run_server                    # 使用 .env / 环境变量里的 HOST、PORT
    python -m backend.app.run_server --port 8000
    python -m backend.app.run_server --reload           # 开发模式
"""

import argparse
from pathlib import Path

import uvicorn

from backend.app.config.settings import settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='启动聊天后端服务器')
    parser.add_argument(
        '--host',
        type=str,
        default=settings.HOST,
        help=f'服务器绑定的主机地址 (默认: {settings.HOST})'
    )
    parser.add_argument(
        '--port',
        type=int,
        default=settings.PORT,
        help=f'服务器端口 (默认: {settings.PORT})'
    )
    parser.add_argument(
        '--reload',
        action='store_true',
        help='启用自动重载（开发模式）'
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    current_dir = Path(__file__).parent

    print("=" * 60)
    print(f"{settings.APP_NAME} 启动配置")
    print("=" * 60)
    print(f"主机地址: {args.host}")
    print(f"端口: {args.port}")
    print(f"自动重载: {'启用' if args.reload else '禁用'}")
    print(f"Gemini: {'已配置' if settings.GOOGLE_API_KEY else '未配置（本地回复模式）'}")
    print("=" * 60)

    uvicorn.run(
        "backend.app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        reload_dirs=[str(current_dir)] if args.reload else None,
    )


if __name__ == "__main__":
    main()
