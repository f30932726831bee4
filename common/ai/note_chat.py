"""笔记多轮问答：把界面对话记录整理成流式调用请求。"""

from __future__ import annotations

from typing import Iterable, List

from common.ai.prompts import note_chat_system_prompt
from common.domain import ChatRole, ChatTurn, ExecutionMode, InvocationRequest, Provider

# 界面首条欢迎语只用于展示，不发送给模型
NOTE_CHAT_GREETING_PREFIX = "您好！您可以针对这篇笔记进行提问"


def prior_turns_for_api(transcript: Iterable[ChatTurn]) -> List[ChatTurn]:
    return [
        turn
        for turn in transcript
        if not (turn.role is ChatRole.MODEL and turn.text.startswith(NOTE_CHAT_GREETING_PREFIX))
    ]


def build_note_chat_request(
    note_text: str,
    transcript: Iterable[ChatTurn],
    question: str,
    *,
    provider: Provider,
    execution_mode: ExecutionMode = ExecutionMode.BACKEND,
) -> InvocationRequest:
    """transcript 为本次提问之前的对话，question 作为新的用户输入。"""

    return InvocationRequest(
        provider=provider,
        execution_mode=execution_mode,
        system_instruction=note_chat_system_prompt(note_text),
        user_prompt=question,
        prior_turns=prior_turns_for_api(transcript),
    )
