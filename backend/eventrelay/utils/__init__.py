from eventrelay.utils.sse import format_server_event, format_sse

__all__ = ["format_server_event", "format_sse"]
