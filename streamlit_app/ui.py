"""
Streamlit UI components and logic for the Nursing Knowledge Chatbot

This module provides a staff test console with:
- Chat interface that renders the bot's reply messages
- Conversation reset and new-user simulation
- Keyword index and document search
- Knowledge base system check
"""

import streamlit as st
import requests
import uuid
from datetime import datetime
from typing import Dict, List, Optional

# API Configuration
API_BASE_URL = "http://localhost:8000/api/v1"


def init_session_state():
    """Initialize Streamlit session state variables."""
    if 'user_id' not in st.session_state:
        st.session_state.user_id = f"console-{uuid.uuid4()}"

    if 'messages' not in st.session_state:
        st.session_state.messages = []

    if 'pending_text' not in st.session_state:
        st.session_state.pending_text = None


def make_api_request(endpoint: str, method: str = "GET", data: Dict = None, params: Dict = None) -> Optional[Dict]:
    """
    Make API request to the backend.

    Args:
        endpoint: API endpoint
        method: HTTP method
        data: Request data for POST requests
        params: Query parameters

    Returns:
        API response data or None if failed
    """
    try:
        url = f"{API_BASE_URL}{endpoint}"

        if method.upper() == "POST":
            response = requests.post(url, json=data, timeout=30)
        elif method.upper() == "GET":
            response = requests.get(url, params=params, timeout=30)
        elif method.upper() == "DELETE":
            response = requests.delete(url, timeout=30)
        else:
            st.error(f"Unsupported HTTP method: {method}")
            return None

        if response.status_code == 200:
            return response.json()
        else:
            st.error(f"API Error {response.status_code}: {response.text}")
            return None

    except requests.exceptions.ConnectionError:
        st.error("❌ Cannot connect to the API server. Please ensure the backend is running on localhost:8000")
        return None
    except requests.exceptions.Timeout:
        st.error("⏱️ Request timed out. Please try again.")
        return None
    except Exception as e:
        st.error(f"Request failed: {str(e)}")
        return None


def send_message(text: str) -> Optional[Dict]:
    """
    Send a text message to the chatbot.

    Args:
        text: User message

    Returns:
        Chat response or None if failed
    """
    request_data = {
        "user_id": st.session_state.user_id,
        "text": text,
    }

    return make_api_request("/chat", "POST", request_data)


def clear_session() -> bool:
    """
    Clear the current user's conversation on the server.

    Returns:
        True if successful, False otherwise
    """
    response = make_api_request(f"/sessions/{st.session_state.user_id}", "DELETE")
    return response is not None


def display_reply_messages(messages: List[Dict], key_prefix: str) -> None:
    """
    Render the bot's reply messages.

    Args:
        messages: Reply message objects returned by the API
        key_prefix: Prefix keeping button keys unique per reply
    """
    for i, message in enumerate(messages):
        message_type = message.get("type")

        if message_type == "text":
            st.write(message.get("text", ""))

        elif message_type == "image":
            st.image(message.get("originalContentUrl"))

        elif message_type == "video":
            st.video(message.get("originalContentUrl"))

        elif message_type == "buttons":
            st.markdown(f"**{message.get('title', '')}**")
            st.caption(message.get("text", ""))
            for j, action in enumerate(message.get("actions", [])):
                if st.button(action["label"], key=f"{key_prefix}-{i}-{j}", help=action["text"]):
                    st.session_state.pending_text = action["text"]
                    st.rerun()


def chat_turn(text: str) -> None:
    """Send ``text`` and append both sides of the exchange to the transcript."""
    st.session_state.messages.append({
        "role": "user",
        "messages": [{"type": "text", "text": text}],
        "timestamp": datetime.now().strftime("%H:%M:%S"),
    })

    with st.spinner("Looking up the knowledge base..."):
        response = send_message(text)

    if response:
        st.session_state.messages.append({
            "role": "assistant",
            "messages": response.get("messages", []),
            "timestamp": datetime.now().strftime("%H:%M:%S"),
            "matched": response.get("matched", False),
            "response_time_ms": response.get("response_time_ms"),
        })
    else:
        st.error("Failed to get response from the chatbot. Please try again.")


def chat_interface():
    """Main chat interface."""
    st.header("💬 Nursing Knowledge Assistant")

    col1, col2, col3 = st.columns([2, 1, 1])

    with col1:
        st.caption(f"User ID: {st.session_state.user_id[:16]}...")

    with col2:
        if st.button("🗑️ Clear Chat", help="Clear conversation history"):
            clear_session()
            st.session_state.messages = []
            st.success("Chat cleared!")
            st.rerun()

    with col3:
        if st.button("🔄 New User", help="Chat as a new user"):
            st.session_state.user_id = f"console-{uuid.uuid4()}"
            st.session_state.messages = []
            st.success("New user started!")
            st.rerun()

    for index, entry in enumerate(st.session_state.messages):
        with st.chat_message(entry["role"]):
            display_reply_messages(entry["messages"], key_prefix=f"reply-{index}")
            caption = f"🕒 {entry['timestamp']}"
            if entry["role"] == "assistant":
                caption += " · 📚 knowledge base" if entry.get("matched") else " · 💬 generic reply"
                if entry.get("response_time_ms") is not None:
                    caption += f" · ⚡ {entry['response_time_ms']}ms"
            st.caption(caption)

    if st.session_state.pending_text:
        text = st.session_state.pending_text
        st.session_state.pending_text = None
        chat_turn(text)
        st.rerun()

    if prompt := st.chat_input("Type a department code (ICU, ER, OR...) or a keyword such as CVVH"):
        chat_turn(prompt)
        st.rerun()


def search_interface():
    """Keyword index and document search interface."""
    st.header("🔍 Search the Knowledge Base")

    search_query = st.text_input(
        "Search keywords and documents",
        placeholder="Enter a keyword, department code or phrase...",
        help="Keyword search matches in both directions; document search scans titles, text and keywords",
    )

    if search_query and st.button("🔍 Search", type="primary"):
        with st.spinner("Searching..."):
            keywords = make_api_request("/search", params={"q": search_query})
            documents = make_api_request("/search/documents", params={"q": search_query})

        if keywords:
            st.subheader("Keyword index")
            if keywords.get("departments"):
                st.markdown("**Departments**")
                st.json(keywords["departments"])
            if keywords.get("matches"):
                st.markdown("**Keywords**")
                st.json(keywords["matches"])
            if not keywords.get("departments") and not keywords.get("matches"):
                st.warning("No keyword matched.")

        if documents:
            st.subheader(f"Documents ({documents.get('total_results', 0)})")
            for result in documents.get("results", []):
                with st.expander(f"{result['title']} ({result['id']})", expanded=False):
                    st.write(result.get("shortDescription", ""))


def system_status_interface():
    """Knowledge base system check interface."""
    st.header("📊 System Check")

    if st.button("🔄 Refresh Status"):
        st.rerun()

    status = make_api_request("/system-check")

    if status:
        if status.get("status") == "healthy":
            st.success(f"✅ Status: {status.get('status', 'unknown').title()} ({status.get('environment')})")
        else:
            st.warning(f"⚠️ Status: {status.get('status', 'unknown').title()} ({status.get('environment')})")

        col1, col2 = st.columns(2)

        with col1:
            st.subheader("🔧 Components")
            components = {
                "Knowledge store": status.get("store_configured", False),
                "Keyword index": status.get("keyword_index_exists", False),
            }
            for component, is_healthy in components.items():
                if is_healthy:
                    st.success(f"✅ {component}")
                else:
                    st.error(f"❌ {component}")

        with col2:
            st.subheader("📈 Statistics")
            st.metric("Knowledge entries", status.get("knowledge_entries_count", 0))
            for department, count in status.get("department_entries", {}).items():
                st.metric(department.upper(), count)

        if status.get("index_contents"):
            with st.expander("Keyword index sample", expanded=False):
                st.json(status["index_contents"])

        st.caption(f"Last updated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    else:
        st.error("❌ Failed to retrieve system status")


def main():
    """Main Streamlit application."""
    st.set_page_config(
        page_title="Nursing Knowledge Assistant",
        page_icon="🏥",
        layout="wide",
        initial_sidebar_state="expanded",
    )

    init_session_state()

    st.sidebar.title("🏥 Nursing Knowledge Assistant")
    st.sidebar.markdown("---")

    page = st.sidebar.selectbox(
        "Navigate",
        ["💬 Chat", "🔍 Search", "📊 System Check"],
        index=0,
    )

    if page == "💬 Chat":
        chat_interface()
    elif page == "🔍 Search":
        search_interface()
    elif page == "📊 System Check":
        system_status_interface()

    st.sidebar.markdown("---")
    st.sidebar.markdown("""
    ### ℹ️ About
    Type a department code to list its teaching material:
    - ICU, ER, Ward, OR, OPD, Nurse

    Or type a keyword such as **CVVH** to open a single guide.
    """)

    st.sidebar.markdown("---")
    st.sidebar.caption("Staff test console")


if __name__ == "__main__":
    main()
