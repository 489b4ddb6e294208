import json
from pathlib import Path

import pytest

from codetok.config import _clear_config_cache


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the real home directory and config file."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("CODETOK_CONFIG", str(tmp_path / "missing-config.toml"))
    monkeypatch.delenv("CODETOK_WORKERS", raising=False)
    _clear_config_cache()
    yield
    _clear_config_cache()


@pytest.fixture
def write_jsonl():
    """Return a helper that writes events as JSONL, creating parent dirs."""

    def _write(path: Path, events: list) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            for event in events:
                if isinstance(event, str):
                    f.write(event + "\n")
                else:
                    f.write(json.dumps(event) + "\n")
        return path

    return _write


@pytest.fixture
def claude_events():
    """A small Claude Code session with one streamed assistant message."""
    return [
        {
            "type": "user",
            "userType": "external",
            "sessionId": "claude-session-1",
            "timestamp": "2026-02-15T10:00:00.000Z",
            "message": {"role": "user", "content": "Refactor the parser"},
        },
        {
            "type": "assistant",
            "sessionId": "claude-session-1",
            "requestId": "req_1",
            "timestamp": "2026-02-15T10:00:05.000Z",
            "message": {
                "id": "msg_1",
                "model": "claude-sonnet-4-5",
                "usage": {
                    "input_tokens": 10,
                    "output_tokens": 5,
                    "cache_read_input_tokens": 100,
                    "cache_creation_input_tokens": 20,
                },
            },
        },
        {
            "type": "assistant",
            "sessionId": "claude-session-1",
            "requestId": "req_1",
            "timestamp": "2026-02-15T10:00:09.000Z",
            "message": {
                "id": "msg_1",
                "model": "claude-sonnet-4-5",
                "usage": {
                    "input_tokens": 10,
                    "output_tokens": 30,
                    "cache_read_input_tokens": 100,
                    "cache_creation_input_tokens": 20,
                },
            },
        },
    ]


@pytest.fixture
def codex_events():
    """A Codex rollout with two cumulative token_count checkpoints."""
    return [
        {
            "timestamp": "2026-02-15T10:00:01.000Z",
            "type": "session_meta",
            "payload": {"id": "codex-session-1", "timestamp": "2026-02-15T10:00:00.000Z"},
        },
        {
            "timestamp": "2026-02-15T10:00:02.000Z",
            "type": "turn_context",
            "payload": {"model": "gpt-5-codex", "cwd": "/work"},
        },
        {
            "timestamp": "2026-02-15T10:00:03.000Z",
            "type": "event_msg",
            "payload": {"type": "user_message", "message": "Add a retry loop"},
        },
        {
            "timestamp": "2026-02-15T10:00:10.000Z",
            "type": "event_msg",
            "payload": {
                "type": "token_count",
                "info": {
                    "total_token_usage": {
                        "input_tokens": 500,
                        "cached_input_tokens": 200,
                        "output_tokens": 100,
                    }
                },
            },
        },
        {
            "timestamp": "2026-02-15T10:05:00.000Z",
            "type": "event_msg",
            "payload": {
                "type": "token_count",
                "info": {
                    "total_token_usage": {
                        "input_tokens": 3000,
                        "cached_input_tokens": 2000,
                        "output_tokens": 800,
                    }
                },
            },
        },
    ]


# 2026-02-15T10:00:00Z
KIMI_START_TS = 1771149600.0


@pytest.fixture
def kimi_events():
    """A Kimi wire stream with three StatusUpdate deltas."""
    deltas = [(100, 50, 200, 10), (150, 75, 300, 20), (200, 100, 400, 30)]
    events = [{"timestamp": KIMI_START_TS, "message": {"type": "TurnBegin", "payload": {}}}]
    for i, (other, output, read, creation) in enumerate(deltas, start=1):
        events.append(
            {
                "timestamp": KIMI_START_TS + i,
                "message": {
                    "type": "StatusUpdate",
                    "payload": {
                        "token_usage": {
                            "input_other": other,
                            "output": output,
                            "input_cache_read": read,
                            "input_cache_creation": creation,
                        }
                    },
                },
            }
        )
    events.append({"timestamp": KIMI_START_TS + 60, "message": {"type": "TurnEnd", "payload": {}}})
    return events
