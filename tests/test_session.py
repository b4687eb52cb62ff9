"""Tests for vegaview.session: placeholder specs and the slot state machine."""

import json

import pytest

from vegaview._types import SessionState
from vegaview.errors import DocumentEncodingError
from vegaview.session import (
    LOADING_SPEC,
    LOADING_TEXT,
    READY_SPEC,
    READY_TEXT,
    SessionStateMachine,
)

_DOC = {"mark": "bar", "data": {"values": [{"a": 1}]}}


class TestPlaceholders:
    def test_ready_spec(self):
        assert READY_SPEC["title"]["text"] == "vegaview"
        assert "Waiting" in READY_SPEC["title"]["subtitle"]
        assert json.loads(READY_TEXT) == READY_SPEC

    def test_loading_spec(self):
        assert LOADING_SPEC["title"]["text"] == "Loading next spec..."
        assert "last_spec()" in LOADING_SPEC["title"]["subtitle"]
        assert json.loads(LOADING_TEXT) == LOADING_SPEC

    def test_loading_does_not_alias_ready(self):
        assert READY_SPEC["title"]["text"] == "vegaview"
        assert LOADING_SPEC["title"] is not READY_SPEC["title"]


class TestShowReady:
    def test_sends_ready(self, make_channel):
        sm = SessionStateMachine()
        ch = make_channel()
        assert sm.show_ready(ch)
        assert ch.sent == [READY_TEXT]
        assert sm.state == SessionState.READY

    def test_without_channel(self):
        assert not SessionStateMachine().show_ready(None)


class TestDispatch:
    def test_loading_then_document(self, make_channel):
        sm = SessionStateMachine()
        ch = make_channel()
        assert sm.dispatch(ch, _DOC)
        assert ch.sent == [LOADING_TEXT, json.dumps(_DOC, separators=(",", ":"))]
        assert sm.state == SessionState.SERVED

    def test_caches_last_document(self, make_channel):
        sm = SessionStateMachine()
        sm.dispatch(make_channel(), _DOC)
        assert sm.last_document is _DOC
        assert json.loads(sm.last_spec) == _DOC

    def test_caches_even_when_send_fails(self, make_channel):
        sm = SessionStateMachine()
        assert not sm.dispatch(make_channel(fail=True), _DOC)
        assert sm.last_document is _DOC
        assert sm.state == SessionState.SERVED

    def test_no_channel(self):
        sm = SessionStateMachine()
        assert not sm.dispatch(None, _DOC)
        assert sm.last_document is _DOC

    def test_closed_channel(self, make_channel):
        ch = make_channel()
        ch.close()
        assert not SessionStateMachine().dispatch(ch, _DOC)
        assert ch.sent == []

    def test_encoding_error_leaves_state(self, make_channel):
        sm = SessionStateMachine()
        sm.dispatch(make_channel(), _DOC)
        ch = make_channel()
        with pytest.raises(DocumentEncodingError):
            sm.dispatch(ch, {"bad": object()})
        assert ch.sent == []
        assert sm.last_document is _DOC
        assert sm.state == SessionState.SERVED

    def test_every_document_preceded_by_loading(self, make_channel):
        sm = SessionStateMachine()
        ch = make_channel()
        docs = [{"n": i} for i in range(3)]
        for doc in docs:
            sm.dispatch(ch, doc)
        assert ch.sent[0::2] == [LOADING_TEXT] * 3
        assert [json.loads(t) for t in ch.sent[1::2]] == docs


class TestTransitions:
    def test_callbacks_see_each_transition(self, make_channel):
        sm = SessionStateMachine()
        seen = []
        sm.on_transition(lambda old, new: seen.append((old, new)))
        ch = make_channel()
        sm.dispatch(ch, _DOC)
        sm.show_ready(ch)
        assert seen == [
            (SessionState.READY, SessionState.LOADING),
            (SessionState.LOADING, SessionState.SERVED),
            (SessionState.SERVED, SessionState.READY),
        ]

    def test_callback_errors_do_not_break_dispatch(self, make_channel):
        sm = SessionStateMachine()

        def boom(old, new):
            raise RuntimeError("callback failed")

        sm.on_transition(boom)
        assert sm.dispatch(make_channel(), _DOC)
        assert sm.state == SessionState.SERVED
