"""Wire-level integration tests for the MCP stdio contract."""

from __future__ import annotations

import json
import sqlite3
import subprocess
import sys
from contextlib import closing
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

ISBN = "9780306406157"
SOURCES = ["Open Library WorkEditions", "Open Library Search", "LibraryThing ThingISBN"]

_INITIALIZE = [
    {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "initialize",
        "params": {
            "protocolVersion": "2025-11-25",
            "capabilities": {},
            "clientInfo": {"name": "pytest", "version": "0"},
        },
    },
    {"jsonrpc": "2.0", "method": "notifications/initialized"},
]


def _run_mcp_exchange(env: dict[str, str], messages: list[dict]) -> list[dict]:
    proc = subprocess.Popen(
        [sys.executable, "-m", "isbnexport.server"],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        env=env,
    )

    assert proc.stdin is not None
    assert proc.stdout is not None
    assert proc.stderr is not None

    for message in messages:
        proc.stdin.write(json.dumps(message) + "\n")
    proc.stdin.flush()

    # Keep stdin open until every request has been answered: closing it early
    # ends the stdio receive loop and drops in-flight tool responses.
    expected_ids = frozenset(msg["id"] for msg in messages if "id" in msg)
    responses: list[dict] = []
    seen_ids: set = set()
    while seen_ids < expected_ids:
        line = proc.stdout.readline()
        if not line:  # server exited before answering all requests
            break
        stripped = line.strip()
        if stripped:
            resp = json.loads(stripped)
            responses.append(resp)
            rid = resp.get("id")
            if rid is not None:
                seen_ids.add(rid)

    proc.stdin.close()
    proc.stderr.read()  # drain for reliable process shutdown
    proc.wait(timeout=10)
    proc.stdout.close()
    proc.stderr.close()

    return responses


def _tool_call(name: str, arguments: dict) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": 2,
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments},
    }


def _seed_snapshots(tmp_path: Path, result: dict) -> None:
    """Save the same complete result for ISBN under every source."""
    payload = json.dumps([[ISBN, result]])
    with closing(sqlite3.connect(tmp_path / "cache.db")) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS coordinator_snapshots (
                name      TEXT PRIMARY KEY,
                payload   TEXT NOT NULL,
                saved_at  TEXT NOT NULL
            )
            """
        )
        for name in SOURCES:
            conn.execute(
                "INSERT OR REPLACE INTO coordinator_snapshots (name, payload, saved_at) "
                "VALUES (?, ?, ?)",
                (name, payload, datetime.now(UTC).isoformat()),
            )
        conn.commit()


def test_initialize_and_tools_list_contract(subprocess_env: dict[str, str]) -> None:
    responses = _run_mcp_exchange(
        subprocess_env,
        [*_INITIALIZE, {"jsonrpc": "2.0", "id": 2, "method": "tools/list", "params": {}}],
    )

    init_response = next(response for response in responses if response.get("id") == 1)
    init_result = init_response["result"]
    assert init_result["serverInfo"]["name"] == "isbnexport"
    assert "tools" in init_result["capabilities"]

    tools_response = next(response for response in responses if response.get("id") == 2)
    tools_by_name = {tool["name"]: tool for tool in tools_response["result"]["tools"]}

    assert set(tools_by_name) == {"find_other_editions", "check_for_updates", "clear_cache"}

    find_schema = tools_by_name["find_other_editions"]["inputSchema"]
    assert find_schema["type"] == "object"
    assert find_schema["required"] == ["isbns"]
    assert find_schema["properties"]["both_isbns"]["type"] == "boolean"


def test_find_other_editions_wire_success_from_saved_cache(
    tmp_path: Path, subprocess_env: dict[str, str]
) -> None:
    _seed_snapshots(
        tmp_path,
        {
            "identifiers": ["0306406152", ISBN],
            "warnings": ["saved warning"],
            "temporary_faults": [],
            "cache_until": None,
        },
    )

    responses = _run_mcp_exchange(
        subprocess_env,
        [*_INITIALIZE, _tool_call("find_other_editions", {"isbns": ["0-306-40615-2"]})],
    )

    tool_response = next(response for response in responses if response.get("id") == 2)
    assert tool_response["result"]["isError"] is False

    payload = json.loads(tool_response["result"]["content"][0]["text"])
    assert payload["isbns"] == [ISBN]
    assert payload["warnings"] == ["saved warning"] * 3
    assert payload["temporary_faults"] == []
    assert all(stats["fetches"] == 0 for stats in payload["sources"].values())
    assert all(stats["cache_hits"] == 1 for stats in payload["sources"].values())


def test_invalid_input_serializes_to_structured_tool_error(subprocess_env: dict[str, str]) -> None:
    responses = _run_mcp_exchange(
        subprocess_env,
        [*_INITIALIZE, _tool_call("find_other_editions", {"isbns": []})],
    )

    tool_response = next(response for response in responses if response.get("id") == 2)
    assert tool_response["result"]["isError"] is True

    text_payload = tool_response["result"]["content"][0]["text"]
    assert "Error executing tool" not in text_payload

    parsed = json.loads(text_payload)
    assert parsed["error"]["code"] == "INVALID_INPUT"
    assert parsed["error"]["recoverable"] is False
    assert "isbns" in parsed["error"]["message"]


def test_check_for_updates_not_configured(subprocess_env: dict[str, str]) -> None:
    responses = _run_mcp_exchange(
        subprocess_env,
        [*_INITIALIZE, _tool_call("check_for_updates", {})],
    )

    tool_response = next(response for response in responses if response.get("id") == 2)
    assert tool_response["result"]["isError"] is True

    parsed = json.loads(tool_response["result"]["content"][0]["text"])
    assert parsed["error"]["code"] == "UPDATES_NOT_CONFIGURED"
