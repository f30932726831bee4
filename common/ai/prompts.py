"""审阅、漫游、笔记问答使用的系统提示词"""

from __future__ import annotations

from typing import Iterable

AUDIT_SYSTEM_PROMPT = (
    "You are a professional editor. Analyze the provided text based ONLY on the rules in the following "
    "checklist. For each issue you find, return a JSON object with \"problematicText\" (the exact, verbatim "
    "text segment from the original), \"suggestion\" (your proposed improvement), \"checklistItem\" (the "
    "specific rule from the checklist that was violated), and \"explanation\" (a brief explanation of why "
    "it's a problem). Your entire response MUST be a single JSON array of these objects, or an empty array "
    "[] if no issues are found."
)

ROAMING_SYSTEM_PROMPT = (
    "You are an AI assistant skilled at synthesizing information. Based on a user's note and a relevant "
    "passage from their knowledge base, create an \"Associative Conclusion\" connecting the two ideas. Your "
    "entire response must be a JSON object with one key: \"conclusion\" (your generated associative summary)."
)

NOTE_CHAT_SYSTEM_PROMPT = (
    "You are a helpful assistant. The user has just organized a note and wants to discuss it. The note's "
    "organized content is provided below. Your role is to answer questions, help refine the text, or "
    "brainstorm ideas based on this note. Be helpful and conversational."
)

DEFAULT_CHECKLIST = [
    "全文错别字",
    "全文中文语法问题",
    "文中逻辑不合理的地方",
    "学术名词是否前后一致",
]


def audit_system_prompt(checklist: Iterable[str]) -> str:
    items = [item.strip() for item in checklist if item and item.strip()]
    return f"{AUDIT_SYSTEM_PROMPT}\n\n[Checklist]:\n- " + "\n- ".join(items) + "\n"


def audit_user_prompt(text: str) -> str:
    return f"[Text to Audit]:\n\n{text}"


def roaming_user_prompt(passage: str, note: str) -> str:
    return f"[Relevant Passage from Knowledge Base]:\n{passage}\n\n[User's Original Note]:\n{note}"


def note_chat_system_prompt(note: str) -> str:
    return f"{NOTE_CHAT_SYSTEM_PROMPT}\n\n--- NOTE START ---\n{note}\n--- NOTE END ---"


__all__ = [
    "AUDIT_SYSTEM_PROMPT",
    "DEFAULT_CHECKLIST",
    "NOTE_CHAT_SYSTEM_PROMPT",
    "ROAMING_SYSTEM_PROMPT",
    "audit_system_prompt",
    "audit_user_prompt",
    "note_chat_system_prompt",
    "roaming_user_prompt",
]
