"""
frontend/auth.py
Session-scoped authentication state for the Teamboard client.

Streamlit reruns the script on every interaction, so the bearer token and
the signed-in user live in st.session_state. init_auth_state() runs at the
top of every rerun; pages call require_auth() before rendering.
"""

from typing import Any, Dict, Optional

import streamlit as st

TOKEN_KEY = "auth_token"
USER_KEY = "current_user"
FLAG_KEY = "is_authenticated"


def init_auth_state() -> None:
    """Create the auth keys if missing and resync the flag with the token."""
    ss = st.session_state
    for key in (TOKEN_KEY, USER_KEY):
        ss.setdefault(key, None)
    ss[FLAG_KEY] = bool(ss[TOKEN_KEY])


def set_auth(auth_token: str, current_user: Dict[str, Any]) -> None:
    """Store the token and user (id, name, email, role) from login/register."""
    st.session_state.update({TOKEN_KEY: auth_token, USER_KEY: current_user, FLAG_KEY: True})


def clear_auth() -> None:
    st.session_state.update({TOKEN_KEY: None, USER_KEY: None, FLAG_KEY: False})


def get_token() -> Optional[str]:
    return st.session_state.get(TOKEN_KEY)


def is_authenticated() -> bool:
    return bool(get_token())


def get_current_user() -> Optional[Dict[str, Any]]:
    return st.session_state.get(USER_KEY)


def get_auth_header() -> Dict[str, str]:
    """Bearer header for API calls; empty when signed out."""
    token = get_token()
    return {"Authorization": f"Bearer {token}"} if token else {}


def require_auth() -> bool:
    """
    Page guard. Renders a sign-in prompt and returns False when signed out:

        if not require_auth():
            return
    """
    if is_authenticated():
        return True
    st.warning("Please sign in to see this page.")
    if st.button("Sign in", type="primary"):
        st.session_state["nav_page"] = "Login"
        st.rerun()
    return False
