"""Event log with resumable server-sent event streaming."""
