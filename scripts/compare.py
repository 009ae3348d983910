#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
向正在运行的 trichat 代理发送一个问题，并打印三个模型各自的回答。

    python scripts/compare.py "介绍一下你自己" --base-url http://127.0.0.1:8000
"""

import argparse
import asyncio
import sys
from pathlib import Path

import httpx

# allow running from a checkout without installing
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from trichat.core.compare import ComparisonSession, PaneState  # noqa: E402
from trichat.storage.memory import InMemoryTranscript  # noqa: E402


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ask doubao, deepseek and wenxin the same question.")
    parser.add_argument("prompt", help="question to send")
    parser.add_argument("--base-url", default="http://127.0.0.1:8000", help="proxy base URL")
    parser.add_argument("--timeout", type=float, default=120.0, help="per-call timeout in seconds")
    parser.add_argument("--live", action="store_true", help="print fragments as they arrive")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    seen: dict = {}

    def on_update(pane: PaneState) -> None:
        if not args.live or not pane.streaming_content:
            return
        # print only what is new since the last update of this pane
        prev = seen.get(pane.provider, 0)
        new = pane.streaming_content[prev:]
        seen[pane.provider] = len(pane.streaming_content)
        if new:
            print(f"[{pane.provider.value}] {new}", flush=True)

    async with httpx.AsyncClient(base_url=args.base_url, timeout=httpx.Timeout(args.timeout)) as client:
        session = ComparisonSession(client, sink=InMemoryTranscript(), on_update=on_update)
        panes = await session.send(args.prompt)

    for pid, pane in panes.items():
        answer = pane.messages[-1].content if pane.messages else ""
        print(f"\n===== {pid.value} =====")
        print(answer)
    return 0


def main() -> int:
    return asyncio.run(run(parse_args()))


if __name__ == "__main__":
    sys.exit(main())
