import orjson
from typing import Any, Optional


def _data_lines(data: Any) -> list:
    if not isinstance(data, str):
        data = orjson.dumps(data).decode()
    # SSE has no escaping: a multi-line payload is one "data:" field per line
    return data.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def format_sse(event: str, data: Any, id: Optional[str] = None) -> str:
    """Format data as SSE event"""
    lines = [f"event: {event}"]
    lines.extend(f"data: {line}" for line in _data_lines(data))
    if id is not None:
        lines.append(f"id: {id}")
    return "\n".join(lines) + "\n\n"


def format_server_event(frame) -> str:
    """Format a ServerEvent frame as SSE event"""
    return format_sse(frame.event, frame.data, frame.id)
