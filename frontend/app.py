"""Calendar Assistant - Streamlit Chat Interface.

Thin client for the calendar assistant API. All business logic lives in the
FastAPI backend. This file handles:
  - Conversation state (st.session_state) with a 30-minute inactivity timeout
  - POST /api/chat requests, or GET /api/chat SSE when streaming is enabled
  - A single pending calendar action, confirmed or rejected by the user
  - Calendar service health in the sidebar
"""

import json
import os
import time
from datetime import datetime, timezone
from uuid import uuid4

import requests
import streamlit as st

# Config
API_URL = os.environ.get("API_URL", "http://localhost:8000")
CHAT_ENDPOINT = f"{API_URL}/api/chat"
CONFIRM_ENDPOINT = f"{API_URL}/api/calendar/confirm"

SESSION_TIMEOUT_S = 30 * 60

st.set_page_config(
    page_title="Calendar Assistant",
    layout="centered",
)


def new_message(role: str, content: str, response_id: str | None = None, error: bool = False) -> dict:
    """Build a ChatMessage dict. Messages are never mutated once appended."""
    return {
        "id": str(uuid4()),
        "role": role,
        "content": content,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "responseId": response_id,
        "error": error,
    }


def reset_conversation():
    st.session_state.messages = []
    st.session_state.pending_action = None
    st.session_state.last_activity = time.time()


def is_session_valid(last_activity: float) -> bool:
    return time.time() - last_activity < SESSION_TIMEOUT_S


def init_session():
    """Initialize session state on first load and expire idle conversations."""
    if "messages" not in st.session_state:
        reset_conversation()
    if "streaming" not in st.session_state:
        st.session_state.streaming = False

    if not is_session_valid(st.session_state.last_activity):
        reset_conversation()
        st.toast("Your previous conversation expired. Starting a new one.")


def previous_response_id() -> str | None:
    for msg in reversed(st.session_state.messages):
        if msg["role"] == "assistant" and msg.get("responseId"):
            return msg["responseId"]
    return None


def error_text(resp: requests.Response) -> str:
    try:
        return resp.json().get("detail", f"Server error ({resp.status_code}).")
    except ValueError:
        return f"Server error ({resp.status_code}). Please try again."


def render_message(msg: dict):
    with st.chat_message(msg["role"]):
        if msg.get("error"):
            st.error(msg["content"])
        else:
            st.markdown(msg["content"])


def send_message(user_input: str):
    """POST the message and store the reply plus any pending action."""
    with st.chat_message("assistant"):
        with st.spinner("Thinking..."):
            try:
                resp = requests.post(
                    CHAT_ENDPOINT,
                    json={"message": user_input, "previousResponseId": previous_response_id()},
                    timeout=60,
                )
            except requests.Timeout:
                st.session_state.messages.append(new_message(
                    "assistant", "[TIMEOUT] Request timed out. Please try again.", error=True))
                return
            except requests.ConnectionError:
                st.session_state.messages.append(new_message(
                    "assistant", "[DISCONNECT] Cannot connect to the backend. Is the API server running?",
                    error=True))
                return

    if resp.status_code != 200:
        st.session_state.messages.append(new_message("assistant", error_text(resp), error=True))
        return

    data = resp.json()
    if "id" not in data or "message" not in data:
        st.session_state.messages.append(new_message(
            "assistant", "Received an incomplete response. Please retry.", error=True))
        return

    st.session_state.messages.append(new_message("assistant", data["message"], response_id=data["id"]))

    if data.get("requiresConfirmation"):
        # None here means the model proposed a change without actionable details
        st.session_state.pending_action = data.get("calendarAction")


def stream_message(user_input: str):
    """Consume the SSE endpoint and render text as it arrives."""
    chunks: list[str] = []
    failed = None

    with st.chat_message("assistant"):
        placeholder = st.empty()
        try:
            params = {"message": user_input}
            if previous_response_id():
                params["previousResponseId"] = previous_response_id()
            resp = requests.get(CHAT_ENDPOINT, params=params, timeout=60, stream=True)
            if resp.status_code != 200:
                failed = error_text(resp)
            else:
                for line in resp.iter_lines():
                    if not line:
                        continue
                    decoded = line.decode("utf-8")
                    if not decoded.startswith("data: "):
                        continue
                    raw = decoded[6:]
                    if raw == "[DONE]":
                        break
                    try:
                        data = json.loads(raw)
                    except json.JSONDecodeError:
                        continue
                    if "error" in data:
                        failed = data["error"]
                        break
                    chunks.append(data.get("content", ""))
                    placeholder.markdown("".join(chunks))
        except requests.RequestException:
            failed = "[DISCONNECT] Cannot connect to the backend. Is the API server running?"

    if chunks:
        st.session_state.messages.append(new_message("assistant", "".join(chunks)))
    if failed:
        st.session_state.messages.append(new_message("assistant", failed, error=True))


def submit_decision(decision: str):
    """Send accept/reject for the pending action, then clear it."""
    action = st.session_state.pending_action
    st.session_state.pending_action = None

    try:
        resp = requests.post(
            CONFIRM_ENDPOINT,
            json={
                "confirmationId": action["confirmationId"],
                "action": decision,
                "calendarAction": action,
            },
            timeout=60,
        )
    except requests.RequestException:
        st.session_state.messages.append(new_message(
            "assistant", "[DISCONNECT] Could not reach the calendar service.", error=True))
        return

    if resp.status_code == 200:
        st.session_state.messages.append(new_message("assistant", resp.json().get("message", "Done.")))
    else:
        st.session_state.messages.append(new_message("assistant", error_text(resp), error=True))


def render_pending_action():
    """Confirmation panel for the single outstanding action."""
    action = st.session_state.pending_action
    if action is None:
        return

    event = action.get("event", {})
    with st.container(border=True):
        st.markdown(f"**Confirm {action.get('type', 'calendar')} action**")
        st.markdown(f"**{event.get('title') or 'Untitled event'}**")
        if event.get("startTime"):
            st.caption(f"{event.get('startTime')} → {event.get('endTime', '')}")
        if event.get("location"):
            st.caption(f"Location: {event['location']}")
        if event.get("attendees"):
            st.caption(f"Attendees: {', '.join(event['attendees'])}")

        accept_col, reject_col = st.columns(2)
        if accept_col.button("Accept", type="primary", use_container_width=True):
            submit_decision("accept")
            st.rerun()
        if reject_col.button("Reject", use_container_width=True):
            submit_decision("reject")
            st.rerun()


def render_sidebar():
    with st.sidebar:
        st.markdown("### Calendar Service")
        try:
            health = requests.get(CONFIRM_ENDPOINT, timeout=3).json()
            mcp_status = health.get("mcp_status", "unknown")
        except (requests.RequestException, ValueError):
            mcp_status = "offline"

        if mcp_status == "connected":
            st.success("Calendar connected")
        else:
            st.warning(f"Calendar {mcp_status}")

        st.divider()
        st.session_state.streaming = st.toggle(
            "Stream responses", value=st.session_state.streaming,
            help="Streaming replies cannot propose calendar changes.",
        )

        st.divider()
        if st.button("New Conversation", use_container_width=True):
            reset_conversation()
            st.rerun()


def main():
    """Run the Streamlit chat application."""
    init_session()

    st.title("Calendar Assistant")
    st.caption("Ask about your schedule or plan new events. Changes always need your confirmation.")

    render_sidebar()

    for msg in st.session_state.messages:
        render_message(msg)

    render_pending_action()

    pending = st.session_state.pending_action is not None
    placeholder = "Confirm or reject the pending action first..." if pending else "Ask about your calendar..."
    if user_input := st.chat_input(placeholder, disabled=pending):
        user_input = user_input.strip()
        if not user_input:
            return
        st.session_state.last_activity = time.time()
        st.session_state.messages.append(new_message("user", user_input))
        render_message(st.session_state.messages[-1])

        if st.session_state.streaming:
            stream_message(user_input)
        else:
            send_message(user_input)
        st.rerun()


if __name__ == "__main__":
    main()
