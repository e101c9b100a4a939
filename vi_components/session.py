"""
FieldWatch VI - Session Helpers
===============================
Mounts one engine per Streamlit session and field view, and runs engine
coroutines from the synchronous script.
"""

import asyncio
from typing import Any, Awaitable, MutableMapping, Optional

import streamlit as st

from vi_engine import FieldViewEngine, FoliumMapHandle, RemoteDataGateway, Settings

ENGINE_KEY = "fieldwatch_engine"
ENGINE_VIEW_KEY = "fieldwatch_engine_view"
FIELD_ATTEMPT_KEY = "fieldwatch_field_attempt"


def run(coro: Awaitable[Any]) -> Any:
    """Run an engine coroutine to completion."""
    return asyncio.run(coro)


def mount_engine(view: str, settings: Settings) -> FieldViewEngine:
    """
    Return the engine of ``view``, creating it on first use.

    Switching to another view closes the previous engine so its map handle
    and layers are released.

    Args:
        view: Name of the detail view (e.g. ``health``)
        settings: Engine settings

    Returns:
        FieldViewEngine bound to this session
    """
    engine: Optional[FieldViewEngine] = st.session_state.get(ENGINE_KEY)
    if engine is not None and st.session_state.get(ENGINE_VIEW_KEY) == view:
        return engine

    if engine is not None:
        engine.close()

    engine = FieldViewEngine(FoliumMapHandle(), RemoteDataGateway(settings), settings)
    st.session_state[ENGINE_KEY] = engine
    st.session_state[ENGINE_VIEW_KEY] = view
    return engine


def unmount_engine() -> None:
    engine = st.session_state.pop(ENGINE_KEY, None)
    st.session_state.pop(ENGINE_VIEW_KEY, None)
    st.session_state.pop(FIELD_ATTEMPT_KEY, None)
    if engine is not None:
        engine.close()


def open_field_once(engine: FieldViewEngine, field_id: str,
                    state: Optional[MutableMapping[str, Any]] = None) -> bool:
    """
    Open ``field_id`` unless it is already active or was the last id tried.

    A failed load is not repeated on every rerun; entering another id (or
    clearing the box) allows a new attempt.

    Returns:
        True when a load was attempted on this run
    """
    state = st.session_state if state is None else state
    if not field_id:
        state.pop(FIELD_ATTEMPT_KEY, None)
        return False
    if engine.field is not None and engine.field.id == field_id:
        return False
    if state.get(FIELD_ATTEMPT_KEY) == field_id:
        return False

    state[FIELD_ATTEMPT_KEY] = field_id
    run(engine.open_field(field_id))
    return True


def show_notices(engine: FieldViewEngine) -> None:
    """Render and drain the engine's notices."""
    for notice in engine.pop_notices():
        if notice.level == "error":
            st.error(f"❌ {notice.message}")
        elif notice.level == "warning":
            st.warning(f"⚠️ {notice.message}")
        else:
            st.info(notice.message)
