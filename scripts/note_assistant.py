"""
笔记助手命令行：审阅、漫游与多轮问答。

用法示例：
    python scripts/note_assistant.py audit notes/draft.md --provider gemini --provider deepseek
    python scripts/note_assistant.py roam notes/draft.md --collection papers --provider openai
    python scripts/note_assistant.py chat notes/draft.md --provider gemini

注意：
- 执行模式默认读取 AI_EXECUTION_MODE，可用 --mode 覆盖。
- chat 子命令逐段输出模型回复，输入空行退出。
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from common.ai.errors import GatewayError  # noqa: E402
from common.ai.fanout import FanoutCoordinator, build_audit_request  # noqa: E402
from common.ai.invoker import Invoker  # noqa: E402
from common.ai.note_chat import NOTE_CHAT_GREETING_PREFIX, build_note_chat_request  # noqa: E402
from common.ai.roaming import RoamingWorkflow  # noqa: E402
from common.domain import ALL_PROVIDERS, ChatRole, ChatTurn, ExecutionMode, Provider  # noqa: E402
from common.utils.config import get_settings  # noqa: E402
from common.utils.env import load_env  # noqa: E402
from common.utils.logging_setup import setup_logging  # noqa: E402

CHAT_ERROR_PREFIX = "抱歉，出错了"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="笔记 AI 助手")
    parser.add_argument("--mode", choices=[m.value for m in ExecutionMode], help="执行模式，默认取配置")
    sub = parser.add_subparsers(dest="command", required=True)

    audit = sub.add_parser("audit", help="按审阅清单检查笔记")
    audit.add_argument("path", type=Path)
    audit.add_argument(
        "--provider",
        dest="providers",
        action="append",
        choices=[p.value for p in Provider],
        help="参与审阅的模型，可重复传入；默认全部",
    )
    audit.add_argument("--rule", dest="rules", action="append", help="自定义审阅规则，可重复传入")

    roam = sub.add_parser("roam", help="在知识库中漫游联想")
    roam.add_argument("path", type=Path)
    roam.add_argument("--collection", required=True, help="知识库名称")
    roam.add_argument("--provider", default=Provider.GEMINI.value, choices=[p.value for p in Provider])

    chat = sub.add_parser("chat", help="针对笔记多轮问答")
    chat.add_argument("path", type=Path)
    chat.add_argument("--provider", default=Provider.GEMINI.value, choices=[p.value for p in Provider])
    return parser.parse_args(argv)


def _read_note(path: Path) -> str:
    return path.read_text(encoding="utf-8")


async def _run_audit(invoker: Invoker, args: argparse.Namespace, mode: ExecutionMode) -> int:
    request = build_audit_request(_read_note(args.path), args.rules, execution_mode=mode)
    providers = [Provider(p) for p in args.providers] if args.providers else ALL_PROVIDERS
    results = await FanoutCoordinator(invoker).invoke_all(providers, request)
    for provider, result in results.items():
        print(f"== {provider.value} ==")
        if result.error:
            print(f"  错误：{result.error}")
        if not result.issues and not result.error:
            print("  未发现问题")
        for issue in result.issues:
            print(f"  [{issue.checklist_item}] {issue.problematic_text} -> {issue.suggestion}")
            print(f"      {issue.explanation}")
    return 0


async def _run_roam(invoker: Invoker, args: argparse.Namespace, mode: ExecutionMode) -> int:
    workflow = RoamingWorkflow(invoker)
    result = await workflow.run(_read_note(args.path), args.collection, Provider(args.provider), mode)
    if result.message:
        print(result.message)
    for item in result.items:
        print(json.dumps(item.model_dump(by_alias=True), ensure_ascii=False, indent=2))
    return 0


async def _run_chat(invoker: Invoker, args: argparse.Namespace, mode: ExecutionMode) -> int:
    note = _read_note(args.path)
    greeting = f"{NOTE_CHAT_GREETING_PREFIX}，输入空行结束。"
    print(greeting)
    transcript: List[ChatTurn] = [ChatTurn(role=ChatRole.MODEL, text=greeting)]
    while True:
        try:
            question = input("> ").strip()
        except EOFError:
            break
        if not question:
            break
        request = build_note_chat_request(
            note, transcript, question, provider=Provider(args.provider), execution_mode=mode
        )
        chunks: List[str] = []
        try:
            async for chunk in invoker.invoke_stream(request):
                chunks.append(chunk)
                sys.stdout.write(chunk)
                sys.stdout.flush()
            reply = "".join(chunks)
        except GatewayError as exc:
            # 单轮失败只替换本轮回复，对话继续
            if chunks:
                sys.stdout.write("\n")
            reply = f"{CHAT_ERROR_PREFIX}: {exc.message}"
            sys.stdout.write(reply)
        sys.stdout.write("\n")
        transcript.append(ChatTurn(role=ChatRole.USER, text=question))
        transcript.append(ChatTurn(role=ChatRole.MODEL, text=reply))
    return 0


_COMMANDS = {"audit": _run_audit, "roam": _run_roam, "chat": _run_chat}


async def _dispatch(args: argparse.Namespace) -> int:
    settings = get_settings()
    mode = ExecutionMode(args.mode or settings.ai_execution_mode)
    async with Invoker(settings) as invoker:
        return await _COMMANDS[args.command](invoker, args, mode)


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file_path)
    try:
        return asyncio.run(_dispatch(args))
    except GatewayError as exc:
        print(exc.message, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
