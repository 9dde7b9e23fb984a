"""
LD Clash terminal client.

Talks to a running LD Clash server over HTTP and keeps a local history of
exchanges (capped, newest first) in ~/.ldclash/history.json.

USAGE:
    ldclash-client --url http://localhost:8000

    Set BASIC_AUTH_USER / BASIC_AUTH_PASS if the server is behind the gate.

COMMANDS:
    /mode <name>   switch coaching mode (coach, drill, rebuttal, cx, flow, envision)
    /history       list saved exchanges
    /export        print history as JSON
    /delete <id>   remove one saved exchange
    /clear         wipe saved history
    /quit          exit
"""
import argparse
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import requests

from ldclash.history import ChatHistory, JsonFileStorage
from ldclash.modes import DEFAULT_MODE, mode_choices

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_HISTORY_PATH = Path.home() / ".ldclash" / "history.json"
REQUEST_TIMEOUT_SECONDS = 90


class ClientError(Exception):
    """The server rejected the request or could not be reached."""


class LDClashClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        auth: Optional[Tuple[str, str]] = None,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        if auth:
            self.session.auth = auth
        self.timeout = timeout

    def chat(self, message: str, mode: str = DEFAULT_MODE.value, envision: Optional[Dict[str, Any]] = None) -> str:
        payload: Dict[str, Any] = {"message": message, "mode": mode}
        if envision:
            payload["envision"] = envision
        try:
            response = self.session.post(f"{self.base_url}/api/chat", json=payload, timeout=self.timeout)
        except requests.exceptions.ConnectionError:
            raise ClientError(f"Cannot connect to {self.base_url}. Is the server running?")
        except requests.exceptions.Timeout:
            raise ClientError("Request timed out.")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200:
            raise ClientError(_describe_error(response.status_code, data, response.text))
        return data.get("text") or "(empty)"


def _describe_error(status_code: int, data: Any, fallback: str) -> str:
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        messages = list(error.get("formErrors") or [])
        for field, field_messages in (error.get("fieldErrors") or {}).items():
            messages += [f"{field}: {msg}" for msg in field_messages]
        if messages:
            return "; ".join(messages)
    return f"Error: {status_code} - {fallback}"


def format_history(history: ChatHistory) -> str:
    entries = history.entries()
    if not entries:
        return "No saved exchanges."
    lines = [f"{len(entries)} saved exchanges (newest first):"]
    for entry in entries:
        preview = entry.input.replace("\n", " ")[:60]
        lines.append(f"  {entry.id[:8]}  {entry.timestamp[:19]}  [{entry.mode}]  {preview}")
    return "\n".join(lines)


def _resolve_id(history: ChatHistory, prefix: str) -> Optional[str]:
    matches = [entry.id for entry in history.entries() if entry.id.startswith(prefix)]
    return matches[0] if len(matches) == 1 else None


def run_repl(client: LDClashClient, history: ChatHistory, mode: str = DEFAULT_MODE.value) -> None:
    print(f"LD Clash. Mode: {mode}. Type /quit to exit.")
    while True:
        try:
            line = input("\nYou: ").strip()
        except (KeyboardInterrupt, EOFError):
            print()
            break
        if not line:
            continue

        if line in ("/quit", "/exit"):
            break
        if line.startswith("/mode"):
            _, _, name = line.partition(" ")
            name = name.strip().lower()
            if name not in mode_choices():
                print(f"Unknown mode. Choose one of: {', '.join(mode_choices())}")
            else:
                mode = name
                print(f"Mode: {mode}")
            continue
        if line == "/history":
            print(format_history(history))
            continue
        if line == "/export":
            print(history.export_json())
            continue
        if line.startswith("/delete"):
            _, _, prefix = line.partition(" ")
            entry_id = _resolve_id(history, prefix.strip()) if prefix.strip() else None
            if entry_id and history.delete(entry_id):
                print("Deleted.")
            else:
                print("No single exchange matches that id.")
            continue
        if line == "/clear":
            history.clear()
            print("History cleared.")
            continue
        if line.startswith("/"):
            print(f"Unknown command: {line}")
            continue

        try:
            text = client.chat(line, mode)
        except ClientError as e:
            print(f"Error: {e}")
            continue
        history.add(mode, line, text)
        print(f"\nCoach ({mode}):\n{text}")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="LD Clash terminal client")
    parser.add_argument("--url", default=os.getenv("LDCLASH_URL", DEFAULT_BASE_URL))
    parser.add_argument("--mode", default=DEFAULT_MODE.value, choices=mode_choices())
    parser.add_argument("--history-file", type=Path, default=DEFAULT_HISTORY_PATH)
    args = parser.parse_args(argv)

    user = os.getenv("BASIC_AUTH_USER", "")
    password = os.getenv("BASIC_AUTH_PASS", "")
    client = LDClashClient(args.url, auth=(user, password) if user and password else None)
    history = ChatHistory(JsonFileStorage(args.history_file))
    run_repl(client, history, args.mode)


if __name__ == "__main__":
    main()
