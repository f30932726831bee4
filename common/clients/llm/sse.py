"""流式响应解码：按行重组事件流，或把原始字节增量解码为文本。"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Optional

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class EventLineDecoder:
    """
    把任意切分的字节块还原成完整的行。

    只有遇到换行符的行才会返回；末尾不完整的部分留在缓冲区，
    与下一次读取的数据拼接。多字节 UTF-8 字符跨块时同样能正确还原。
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[str]:
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return [line.rstrip("\r") for line in lines]

    @property
    def pending(self) -> str:
        return self._buffer


@dataclass
class StreamEvent:
    payload: Any = None
    done: bool = False


def parse_event_line(line: str) -> Optional[StreamEvent]:
    """解析单行事件；非 data 行或无法解析的 JSON 返回 None。"""

    stripped = line.strip()
    if not stripped.startswith(DATA_PREFIX):
        return None
    data = stripped[len(DATA_PREFIX):].strip()
    if data == DONE_SENTINEL:
        return StreamEvent(done=True)
    try:
        return StreamEvent(payload=json.loads(data))
    except ValueError:
        logger.warning("流式数据块解析失败: %s", data[:200])
        return None


async def iter_events(byte_chunks: AsyncIterator[bytes]) -> AsyncIterator[StreamEvent]:
    """逐块读取并产出完整事件，遇到 [DONE] 即停止。"""

    decoder = EventLineDecoder()
    async for chunk in byte_chunks:
        for line in decoder.feed(chunk):
            event = parse_event_line(line)
            if event is None:
                continue
            yield event
            if event.done:
                return
    if decoder.pending.strip():
        logger.debug("流结束时丢弃未完成的行: %s", decoder.pending[:200])


async def iter_raw_text(byte_chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """原始字节流按到达顺序解码转发。"""

    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    async for chunk in byte_chunks:
        text = decoder.decode(chunk)
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


def openai_delta_text(payload: Any) -> str:
    """取 choices[0].delta.content，结构不符时返回空串。"""

    try:
        content = payload["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""
    return content if isinstance(content, str) else ""


__all__ = [
    "DONE_SENTINEL",
    "EventLineDecoder",
    "StreamEvent",
    "iter_events",
    "iter_raw_text",
    "openai_delta_text",
    "parse_event_line",
]
