from common.ai.note_chat import NOTE_CHAT_GREETING_PREFIX, build_note_chat_request, prior_turns_for_api
from common.domain import ChatRole, ChatTurn, ExecutionMode, Provider


def test_greeting_is_not_sent_to_the_model():
    transcript = [
        ChatTurn(role=ChatRole.MODEL, text=f"{NOTE_CHAT_GREETING_PREFIX}，比如总结要点。"),
        ChatTurn(role=ChatRole.USER, text="这篇讲了什么？"),
        ChatTurn(role=ChatRole.MODEL, text="讲了缓存。"),
    ]
    assert [turn.text for turn in prior_turns_for_api(transcript)] == ["这篇讲了什么？", "讲了缓存。"]


def test_build_note_chat_request_embeds_note():
    request = build_note_chat_request(
        "笔记正文",
        [ChatTurn(role=ChatRole.USER, text="上一问")],
        "新问题",
        provider=Provider.ALI,
        execution_mode=ExecutionMode.FRONTEND,
    )
    assert request.provider is Provider.ALI
    assert request.execution_mode is ExecutionMode.FRONTEND
    assert request.user_prompt == "新问题"
    assert "--- NOTE START ---\n笔记正文\n--- NOTE END ---" in request.system_instruction
    assert [turn.text for turn in request.prior_turns] == ["上一问"]
    assert not request.want_json
