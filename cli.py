# Role: Local developer CLI to walk through a renewal without a web client.
# Local mode runs FlowController in-process (DEBUG traces print here); --remote talks to a running API.

from __future__ import annotations

import sys
from typing import Any, Dict, List, Optional

import requests

import renewal.config
renewal.config.load_env()

from renewal.core.flow_controller import FlowController


class LocalSession:
    def __init__(self) -> None:
        self.flow = FlowController()

    def send(self, messages: List[Dict[str, Any]], state: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        result = self.flow.handle_turn(messages, client_state=state)
        return {"assistant_message": result.assistant_message, "state": result.state, "error": result.error}


class RemoteSession:
    def __init__(self, base_url: str) -> None:
        self.base_url = base_url

    def send(self, messages: List[Dict[str, Any]], state: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        resp = requests.post(
            f"{self.base_url}/chat",
            json={"messages": messages, "state": state},
            timeout=60,
        )
        resp.raise_for_status()
        return resp.json()


def main() -> None:
    # 1) Pick local or remote mode
    # 2) Keep the transcript and the returned state across turns (the server holds neither)
    # 3) Route user input -> session -> print assistant output
    remote = "--remote" in sys.argv[1:]
    session = RemoteSession(renewal.config.backend_url()) if remote else LocalSession()

    print("Car Insurance Renewal CLI" + (" (remote)" if remote else ""))
    print("Commands: /new (restart), /state (show state), /exit")
    print("-" * 50)

    messages: List[Dict[str, Any]] = []
    state: Optional[Dict[str, Any]] = None

    while True:
        try:
            user_message = input("\nYou: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nBye!")
            return

        if not user_message:
            continue

        cmd = user_message.lower()

        if cmd in {"/exit", "exit", "quit", "/quit"}:
            print("Bye!")
            return

        if cmd in {"/new", "new"}:
            messages, state = [], None
            print("Started a new renewal.")
            continue

        if cmd in {"/state", "state"}:
            print(state or "(no state yet)")
            continue

        messages.append({"role": "user", "content": user_message})
        try:
            result = session.send(messages, state)
        except requests.RequestException as e:
            messages.pop()
            print(f"\nCouldn't reach the backend at {renewal.config.backend_url()}: {e}")
            continue

        state = result.get("state") or state
        assistant_text = result.get("assistant_message", "")
        if result.get("error"):
            # Key line: a failed turn is not added to the transcript, so resending repeats it cleanly.
            messages.pop()
        else:
            messages.append({"role": "assistant", "content": assistant_text})
        print(f"\nAssistant: {assistant_text}")


if __name__ == "__main__":
    main()
