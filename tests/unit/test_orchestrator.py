"""
Tests for the helpdesk turn pipeline: routing, streaming, cancellation,
handoff policy, attachments, grounding and transcript persistence.
"""

import json
import threading

import httpx
import pytest
from langchain_core.messages import AIMessageChunk

from agents.categories import AUTO
from agents.orchestrator import (
    EMPTY_ANSWER_MESSAGE,
    MODEL_ERROR_MESSAGE,
    ConversationBusyError,
    HelpdeskOrchestrator,
    chunk_text,
)
from agents.router import MANUAL_CONFIDENCE
from agents.tools.handoff_tool import HandoffTool
from infrastructure.config import ContactConfig
from memory.schemas import ChatMessage, TranscriptStore
from services.attachment_service import AttachmentTray


class FakeWebTool:
    def __init__(self, results="Web sources:\n  1. Registrar calendar"):
        self.results = results
        self.queries = []

    def search(self, query):
        self.queries.append(query)
        return self.results


@pytest.fixture
def build(router, store, make_llm):
    def _build(chunks=("Hello", " there"), **kwargs):
        llm = kwargs.pop("llm", None) or make_llm(chunks)
        return HelpdeskOrchestrator(
            llm_chat=llm,
            router=router,
            store=kwargs.pop("store", store),
            **kwargs,
        )
    return _build


class TestChatTurn:
    """Happy-path turns"""

    def test_streams_tokens_and_returns_answer(self, build):
        agent = build(["Pay ", "at the ", "bursar."])
        pieces = []

        result = agent.chat("When is tuition due?", on_token=pieces.append)

        assert pieces == ["Pay ", "at the ", "bursar."]
        assert result.answer == "Pay at the bursar."
        assert result.category_id == "fees"
        assert result.confidence == 1
        assert not result.show_handoff
        assert result.error is None

    def test_transcript_records_turn(self, build, store):
        agent = build(["Sure."])
        agent.chat("  dorm move-in date?  ")

        roles = [m.role for m in agent.messages]
        assert roles == ["assistant", "user", "assistant"]
        assert agent.messages[1].text == "dorm move-in date?"
        assert store.data["campushelp.chat.v1"][-1].text == "Sure."

    def test_blank_input_is_ignored(self, build, store):
        agent = build()
        assert agent.chat("   ") is None
        assert agent.llm_chat.calls == []
        assert store.saves == 0

    def test_model_input_shape(self, build, router):
        agent = build(["ok"])
        agent.chat("exam timetable please")

        sent = agent.llm_chat.calls[0]
        assert sent[0]["role"] == "system"
        assert sent[0]["content"] == router.build_system_instruction("timetable")
        assert sent[-1]["role"] == "user"
        assert sent[-1]["content"] == router.augment_user_text("timetable", "exam timetable please")

    def test_history_excludes_error_messages(self, build, make_store):
        preset = make_store({
            "campushelp.chat.v1": [
                ChatMessage(role="assistant", text="Welcome"),
                ChatMessage(role="user", text="first question"),
                ChatMessage(role="error", text="A connection or API error occurred."),
                ChatMessage(role="assistant", text="first answer"),
            ]
        })
        agent = build(["ok"], store=preset)
        agent.chat("second question")

        sent = agent.llm_chat.calls[0]
        history = [(m["role"], m["content"]) for m in sent[1:-1]]
        assert history == [
            ("assistant", "Welcome"),
            ("user", "first question"),
            ("assistant", "first answer"),
        ]

    def test_manual_override(self, build):
        agent = build(["ok"])
        result = agent.chat("hello", manual_override="housing")

        assert result.category_id == "housing"
        assert result.confidence == MANUAL_CONFIDENCE
        assert result.manual
        assert not result.show_handoff
        assert agent.last_selected == "housing"

    def test_list_content_chunks(self, build):
        agent = build([AIMessageChunk(content=[{"type": "text", "text": "Grant "}]), "deadline"])
        assert agent.chat("grant").answer == "Grant deadline"


class TestHandoffPolicy:
    """When the human-contact offer is shown"""

    def test_zero_confidence_shows_handoff(self, build):
        result = build(["We serve pasta."]).chat("What's for lunch today?")
        assert result.category_id == AUTO
        assert result.confidence == 0
        assert result.show_handoff
        assert result.error is None

    def test_empty_answer_adds_error_and_handoff(self, build):
        agent = build(["", ""])
        result = agent.chat("tuition payment")

        assert result.answer == ""
        assert result.error == EMPTY_ANSWER_MESSAGE
        assert result.show_handoff
        assert agent.messages[-1] == ChatMessage(role="error", text=EMPTY_ANSWER_MESSAGE, ts=agent.messages[-1].ts)

    def test_model_error_adds_error_and_handoff(self, build, make_llm):
        agent = build(llm=make_llm(error=ConnectionError("boom")))
        result = agent.chat("tuition payment")

        assert result.error == MODEL_ERROR_MESSAGE
        assert result.show_handoff
        assert [m.role for m in agent.messages][-2:] == ["user", "error"]

    def test_partial_answer_kept_when_stream_fails(self, build, make_llm):
        agent = build(llm=make_llm(["Your tuition is due "], error=ConnectionError("reset by peer")))
        pieces = []

        result = agent.chat("tuition", on_token=pieces.append)

        assert pieces == ["Your tuition is due "]
        assert result.answer == "Your tuition is due "
        assert result.error == MODEL_ERROR_MESSAGE
        assert result.show_handoff
        assert [(m.role, m.text) for m in agent.messages[-3:]] == [
            ("user", "tuition"),
            ("assistant", "Your tuition is due "),
            ("error", MODEL_ERROR_MESSAGE),
        ]

        agent.llm_chat.error = None
        agent.chat("fee")
        history = agent.llm_chat.calls[-1][1:-1]
        assert {"role": "assistant", "content": "Your tuition is due "} in history

    def test_next_confident_turn_clears_handoff(self, build):
        agent = build(["ok"])
        agent.chat("What's for lunch today?")
        assert agent.show_handoff
        agent.chat("dorm lease")
        assert not agent.show_handoff


class TestStreamingControl:
    """Cancellation and single-stream guard"""

    def test_stop_cancels_between_chunks(self, build, make_llm):
        holder = {}

        def _stop_after_first(idx):
            if idx == 0:
                holder["agent"].stop()

        agent = build(llm=make_llm(["Part one. ", "Part two."], on_chunk=_stop_after_first))
        holder["agent"] = agent

        result = agent.chat("exam schedule")

        assert result.cancelled
        assert result.answer == "Part one. "
        assert result.error is None
        assert agent.messages[-1].text == "Part one. "

    def test_stop_before_any_text_counts_as_empty_answer(self, build, make_llm):
        holder = {}
        agent = build(llm=make_llm(["", "Too late."], on_chunk=lambda idx: holder["agent"].stop()))
        holder["agent"] = agent

        result = agent.chat("exam schedule")

        assert result.cancelled
        assert result.answer == ""
        assert result.error == EMPTY_ANSWER_MESSAGE
        assert result.show_handoff
        assert [m.role for m in agent.messages][-2:] == ["user", "error"]

    def test_cancel_flag_resets_after_turn(self, build, make_llm):
        holder = {}
        agent = build(llm=make_llm(["a", "b"], on_chunk=lambda idx: holder["agent"].stop()))
        holder["agent"] = agent
        agent.chat("exam")

        agent.llm_chat.on_chunk = None
        assert agent.chat("exam").answer == "ab"

    def test_second_turn_while_streaming_is_rejected(self, build, make_llm):
        started = threading.Event()
        release = threading.Event()

        def _block(idx):
            started.set()
            release.wait(timeout=5)

        agent = build(llm=make_llm(["slow"], on_chunk=_block))
        worker = threading.Thread(target=agent.chat, args=("housing",))
        worker.start()
        assert started.wait(timeout=5)

        assert agent.is_streaming
        with pytest.raises(ConversationBusyError):
            agent.chat("another question")
        with pytest.raises(ConversationBusyError):
            agent.reset()

        release.set()
        worker.join(timeout=5)
        assert not agent.is_streaming

    def test_stop_when_idle_is_harmless(self, build):
        agent = build(["ok"])
        agent.stop()
        assert agent.chat("fee").answer == "ok"


class TestAttachmentsAndGrounding:
    """Attachment parts and web search context"""

    def test_attachments_go_before_text(self, build, tmp_path):
        pdf = tmp_path / "invoice.pdf"
        pdf.write_bytes(b"%PDF-1.4 fake")
        tray = AttachmentTray()
        tray.add_files([pdf])

        agent = build(["ok"], tray=tray)
        agent.chat("What does this invoice say?")

        content = agent.llm_chat.calls[0][-1]["content"]
        assert content[0]["type"] == "file"
        assert content[0]["file"]["filename"] == "invoice.pdf"
        assert content[-1]["type"] == "text"
        assert content[-1]["text"].startswith("\n\nWhat does this invoice say?")

    def test_web_results_extend_system_instruction(self, build):
        web = FakeWebTool()
        agent = build(["ok"], web_tool=web)
        result = agent.chat("exam calendar")

        assert web.queries == ["exam calendar"]
        assert result.web_grounded
        system = agent.llm_chat.calls[0][0]["content"]
        assert "[Web Search Results]" in system
        assert "Registrar calendar" in system

    def test_failed_web_search_leaves_turn_ungrounded(self, build):
        agent = build(["ok"], web_tool=FakeWebTool(results=None))
        result = agent.chat("exam calendar")

        assert not result.web_grounded
        assert "[Web Search Results]" not in agent.llm_chat.calls[0][0]["content"]


class TestConversationState:
    """Reset, preview, persistence failures and contact actions"""

    def test_reset(self, build, store, tmp_path):
        img = tmp_path / "room.png"
        img.write_bytes(b"\x89PNG fake")
        agent = build(["ok"])
        agent.tray.add_files([img])
        agent.chat("What's for lunch today?")

        agent.reset()

        assert [m.text for m in agent.messages] == [store.initial()[0].text]
        assert len(agent.tray) == 0
        assert not agent.show_handoff
        assert agent.last_confidence == 0

    def test_reset_on_a_store_written_to_the_protocol(self, build):
        class MinimalStore:
            def __init__(self):
                self.saved = {}

            def initial(self):
                return [ChatMessage(role="assistant", text="Fresh start.")]

            def load(self, key):
                return list(self.saved.get(key) or self.initial())

            def save(self, key, messages):
                self.saved[key] = list(messages)

            def clear(self, key):
                self.saved.pop(key, None)

        minimal = MinimalStore()
        assert isinstance(minimal, TranscriptStore)

        agent = build(["ok"], store=minimal)
        agent.chat("fee")
        agent.reset()

        assert [m.text for m in agent.messages] == ["Fresh start."]
        assert [m.text for m in minimal.saved[agent.conversation_key]] == ["Fresh start."]

    def test_store_without_initial_is_not_a_transcript_store(self):
        class LoadSaveClearOnly:
            def load(self, key):
                return []

            def save(self, key, messages):
                pass

            def clear(self, key):
                pass

        assert not isinstance(LoadSaveClearOnly(), TranscriptStore)

    def test_transcript_preview_is_bounded(self, build):
        agent = build()
        agent.messages = [ChatMessage(role="user", text=f"m{i}") for i in range(10)]
        assert agent.transcript_preview() == "\n".join(f"USER: m{i}" for i in range(4, 10))

        agent.messages = [ChatMessage(role="user", text="x" * 5000)]
        assert len(agent.transcript_preview()) == 1800

    def test_save_failure_does_not_break_turn(self, build, make_store):
        agent = build(["ok"], store=make_store(fail_save=True))
        assert agent.chat("fee").answer == "ok"

    def test_contact_without_handoff_tool(self, build):
        notice = build().contact("email")
        assert not notice.ok

    def test_ticket_carries_routing_state(self, build):
        received = {}

        def handler(request):
            received.update(json.loads(request.content))
            return httpx.Response(201)

        handoff = HandoffTool(
            ContactConfig(webhook="https://helpdesk.example.edu/tickets"),
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        agent = build(["We serve pasta."], handoff=handoff)
        agent.chat("What's for lunch today?")

        notice = agent.contact("ticket")

        assert notice.ok
        assert notice.message == "Ticket submitted."
        assert received["source"] == "CampusHelp"
        assert received["lastMessage"] == "We serve pasta."
        assert received["intent"] == {"selected": AUTO, "detected": AUTO, "confidence": 0}
        assert "USER: What's for lunch today?" in received["transcript"]

    def test_unknown_contact_channel(self, build):
        agent = build(handoff=HandoffTool(ContactConfig(email="help@example.edu")))
        assert not agent.contact("fax").ok


class TestChunkText:
    def test_variants(self):
        assert chunk_text(AIMessageChunk(content="hi")) == "hi"
        assert chunk_text(AIMessageChunk(content=[{"type": "text", "text": "a"}, "b"])) == "ab"
        assert chunk_text(AIMessageChunk(content=[{"type": "image_url", "image_url": {}}])) == ""
        assert chunk_text(None) == ""
