"""
Helpdesk Orchestrator - one chat turn, end to end.

Flow:
  1. Route the student's text (IntentRouter → category + confidence).
  2. Decide whether to offer human handoff (confidence == 0).
  3. Ground the turn with web search results (optional).
  4. Build the model input: routed system instruction, transcript
     history, attachments and the augmented user text.
  5. Stream the answer; ``stop()`` cancels between chunks.
  6. Empty answer or model error → error notice + handoff offer; text
     streamed before a failure is kept.
  7. Persist the transcript.

The orchestrator owns the conversation state (transcript, attachments,
handoff flag); the router it calls stays pure.
"""

from loguru import logger
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from agents.categories import AUTO
from agents.prompts.agent_prompts import with_web_results
from agents.router import IntentRouter
from agents.tools.handoff_tool import (
    HandoffTool,
    build_ticket_payload,
    whatsapp_message,
)
from infrastructure.llm import model_name
from infrastructure.observability import (
    observe,
    update_current_trace,
    update_current_observation,
)
from memory.schemas import HISTORY_ROLES, ChatMessage, TranscriptStore
from services.attachment_service import AttachmentTray
from services.notices import Notice

EMPTY_ANSWER_MESSAGE = (
    "The model returned empty text for this request. "
    "Try rephrasing or asking a more specific question."
)
MODEL_ERROR_MESSAGE = (
    "A connection or API error occurred. Please try again or rephrase the question."
)

PREVIEW_MESSAGES = 6
PREVIEW_CHARS = 1800


class ConversationBusyError(RuntimeError):
    """Raised when a new turn starts while another is still streaming."""


@dataclass
class TurnResult:
    """
    Outcome of one helpdesk turn.

    Attributes:
        answer: Streamed assistant text (possibly partial if cancelled).
        category_id: Routed category.
        confidence: Keyword hits, or the manual-override constant.
        manual: True when the category came from a manual selection.
        show_handoff: Whether the caller should offer human contact.
        cancelled: The stream was stopped by the student.
        error: Error notice appended to the transcript, if any.
        web_grounded: Web search results were attached.
        latency_ms: End-to-end processing time.
    """

    answer: str
    category_id: str = AUTO
    confidence: int = 0
    manual: bool = False
    show_handoff: bool = False
    cancelled: bool = False
    error: Optional[str] = None
    web_grounded: bool = False
    latency_ms: int = 0


def chunk_text(chunk: Any) -> str:
    """Text carried by one streamed chunk (string or content-part list)."""
    content = getattr(chunk, "content", chunk)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces = []
        for part in content:
            if isinstance(part, str):
                pieces.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                pieces.append(part.get("text") or "")
        return "".join(pieces)
    return ""


class HelpdeskOrchestrator:
    """
    Ties routing, grounding, attachments, streaming and handoff together.

    Dependencies (injected via '__init__'):
        llm_chat    - LangChain chat model with ``.stream()``
        router      - IntentRouter
        store       - transcript store (load / save / clear)
        tray        - AttachmentTray
        web_tool    - WebSearchTool (optional - None disables grounding)
        handoff     - HandoffTool (optional - None if no contact channel)
    """

    def __init__(
        self,
        llm_chat: Any,
        router: IntentRouter,
        store: TranscriptStore,
        tray: Optional[AttachmentTray] = None,
        web_tool: Optional[Any] = None,
        handoff: Optional[HandoffTool] = None,
        conversation_key: str = "campushelp.chat.v1",
    ) -> None:
        self.llm_chat = llm_chat
        self.router = router
        self.store = store
        self.tray = tray if tray is not None else AttachmentTray()
        self.web_tool = web_tool
        self.handoff = handoff
        self.conversation_key = conversation_key

        self.messages: List[ChatMessage] = store.load(conversation_key)
        self.show_handoff = False
        self.last_detected = AUTO
        self.last_confidence = 0
        self.last_selected = AUTO

        self._turn_lock = threading.Lock()
        self._cancel = threading.Event()

    @property
    def is_streaming(self) -> bool:
        return self._turn_lock.locked()

    # public entry point

    @observe(name="helpdesk_turn")
    def chat(
        self,
        text: str,
        manual_override: Optional[str] = None,
        on_token: Optional[Callable[[str], None]] = None,
    ) -> Optional[TurnResult]:
        """
        Process a single student message.

        Returns None for blank input.  Raises ``ConversationBusyError``
        if a previous turn is still streaming.
        """
        trimmed = (text or "").strip()
        if not trimmed:
            return None
        if not self._turn_lock.acquire(blocking=False):
            raise ConversationBusyError("A response is still streaming.")

        try:
            return self._run_turn(trimmed, manual_override, on_token)
        finally:
            self._cancel.clear()
            self._turn_lock.release()

    def stop(self) -> None:
        """Cancel the in-flight stream at the next chunk boundary."""
        if self.is_streaming:
            logger.info("Stopping response stream")
            self._cancel.set()

    def reset(self) -> None:
        """Clear the conversation back to the welcome message."""
        if self.is_streaming:
            raise ConversationBusyError("Cannot reset while a response is streaming.")
        self.messages = self.store.initial()
        self.tray.clear()
        self.show_handoff = False
        self.last_detected = AUTO
        self.last_confidence = 0
        self.last_selected = AUTO
        self._persist()
        logger.info("Conversation reset")

    # human handoff

    def last_message_text(self) -> str:
        return self.messages[-1].text if self.messages else ""

    def transcript_preview(self) -> str:
        """Last few transcript lines for staff, capped in length."""
        recent = self.messages[-PREVIEW_MESSAGES:]
        joined = "\n".join(f"{m.role.upper()}: {m.text}" for m in recent)
        return joined[:PREVIEW_CHARS]

    def contact(self, channel: str) -> Notice:
        """Run one handoff action: ``email``, ``whatsapp`` or ``ticket``."""
        if self.handoff is None:
            return Notice.error("Helpdesk contact is not configured.")

        if channel == "email":
            return self.handoff.copy_email()
        if channel == "whatsapp":
            text = whatsapp_message(self.last_message_text(), self.transcript_preview())
            return self.handoff.open_whatsapp(text)
        if channel == "ticket":
            payload = build_ticket_payload(
                last_message=self.last_message_text(),
                transcript=self.transcript_preview(),
                selected=self.last_selected,
                detected=self.last_detected,
                confidence=self.last_confidence,
            )
            return self.handoff.create_ticket(payload)
        return Notice.error(f"Unknown contact channel: {channel}")

    # internal steps

    def _run_turn(
        self,
        text: str,
        manual_override: Optional[str],
        on_token: Optional[Callable[[str], None]],
    ) -> TurnResult:
        t0 = time.time()

        # Step 1: Route
        routed = self.router.route(text, manual_override)
        self.last_selected = manual_override if routed.manual else AUTO
        self.last_detected = routed.category_id
        self.last_confidence = routed.confidence
        logger.info(
            "Route: {} (conf={}, manual={})",
            routed.category_id,
            routed.confidence,
            routed.manual,
        )

        # Step 2: Handoff policy
        self.show_handoff = routed.confidence == 0

        # Step 3: Grounding
        system_instruction = routed.system_instruction
        web_results = self._ground(text)
        if web_results:
            system_instruction = with_web_results(system_instruction, web_results)

        # Step 4: Model input
        history = self._history()
        self.messages.append(ChatMessage(role="user", text=text))
        model_input = self._build_messages(system_instruction, history, routed.augmented_text)

        # Step 5: Stream
        error: Optional[str] = None
        answer, cancelled, failure = self._stream(model_input, on_token)
        if failure is not None:
            logger.error("Chat model call failed: {}", failure)
            error = MODEL_ERROR_MESSAGE

        # Step 6: Outcome
        if answer:
            self.messages.append(ChatMessage(role="assistant", text=answer))
        if error is None and not answer:
            error = EMPTY_ANSWER_MESSAGE
        if error:
            self.messages.append(ChatMessage(role="error", text=error))
            self.show_handoff = True

        # Step 7: Persist
        self._persist()

        latency_ms = int((time.time() - t0) * 1000)
        update_current_trace(
            session_id=self.conversation_key,
            metadata={
                "category": routed.category_id,
                "confidence": routed.confidence,
                "manual": routed.manual,
                "show_handoff": self.show_handoff,
                "cancelled": cancelled,
                "latency_ms": latency_ms,
            },
        )

        return TurnResult(
            answer=answer,
            category_id=routed.category_id,
            confidence=routed.confidence,
            manual=routed.manual,
            show_handoff=self.show_handoff,
            cancelled=cancelled,
            error=error,
            web_grounded=bool(web_results),
            latency_ms=latency_ms,
        )

    def _ground(self, text: str) -> Optional[str]:
        if self.web_tool is None:
            return None
        return self.web_tool.search(text)

    def _history(self) -> List[Dict[str, str]]:
        """Prior user/assistant turns in model format."""
        return [
            {"role": m.role, "content": m.text}
            for m in self.messages
            if m.role in HISTORY_ROLES and m.text
        ]

    def _build_messages(
        self,
        system_instruction: str,
        history: List[Dict[str, str]],
        augmented_text: str,
    ) -> List[Dict[str, Any]]:
        parts = self.tray.content_parts()
        user_content: Union[str, List[Dict[str, Any]]] = augmented_text
        if parts:
            user_content = parts + [{"type": "text", "text": "\n\n" + augmented_text}]

        return (
            [{"role": "system", "content": system_instruction}]
            + history
            + [{"role": "user", "content": user_content}]
        )

    @observe(name="chat_stream", as_type="generation")
    def _stream(
        self,
        model_input: List[Dict[str, Any]],
        on_token: Optional[Callable[[str], None]],
    ) -> Tuple[str, bool, Optional[Exception]]:
        """
        Stream the answer; returns (text, cancelled, failure).

        ``text`` holds everything streamed so far even when the model
        call fails part-way.
        """
        update_current_observation(
            input=str(model_input[-1]["content"])[:1000],
            model=model_name(self.llm_chat),
        )

        full = ""
        cancelled = False
        failure: Optional[Exception] = None
        try:
            for chunk in self.llm_chat.stream(model_input):
                if self._cancel.is_set():
                    cancelled = True
                    break
                piece = chunk_text(chunk)
                if not piece:
                    continue
                full += piece
                if on_token is not None:
                    on_token(piece)
        except Exception as exc:
            failure = exc

        update_current_observation(output=full[:1000])
        return full, cancelled, failure

    def _persist(self) -> None:
        try:
            self.store.save(self.conversation_key, self.messages)
        except Exception as exc:
            logger.warning("Transcript not saved: {}", exc)


# Factory: build a fully-wired orchestrator from config


def build_agent(
    cfg: Optional[Any] = None,
    enable_web: Optional[bool] = None,
) -> HelpdeskOrchestrator:
    """
    Convenience factory that constructs and wires all components.

    Reads config / env for API keys, contact endpoints and the
    transcript database.

    Args:
        cfg: ``HelpdeskConfig``; defaults to ``load_config()``.
        enable_web: Override the web-search setting from param.yaml.

    Returns:
        A fully initialised ``HelpdeskOrchestrator``.
    """
    from dotenv import load_dotenv

    load_dotenv()

    from infrastructure.config import load_config
    from infrastructure.observability import get_langfuse

    cfg = cfg or load_config()

    # Eagerly init LangFuse so the persona prompt and child spans resolve
    get_langfuse()

    from agents.categories import CategoryTable
    from agents.prompts import resolve_persona
    from infrastructure.db import get_session_factory
    from infrastructure.llm import get_chat_llm
    from memory.transcript_store import SQLTranscriptStore

    if cfg.categories_file:
        categories = CategoryTable.from_yaml(cfg.categories_file)
        logger.info("Category table loaded from {}", cfg.categories_file)
    else:
        categories = CategoryTable()
    router = IntentRouter(categories, persona=resolve_persona())

    llm_chat = get_chat_llm(
        model=cfg.chat_model,
        provider=cfg.provider,
        temperature=cfg.temperature,
        max_tokens=cfg.max_tokens,
    )
    logger.info("Chat model: {}", model_name(llm_chat))

    store = SQLTranscriptStore(get_session_factory(cfg.transcript_db_url))
    tray = AttachmentTray(max_bytes=cfg.upload_max_bytes)

    use_web = cfg.web_search if enable_web is None else enable_web
    web_tool = None
    if use_web:
        try:
            from agents.tools import WebSearchTool

            web_tool = WebSearchTool(
                max_results=cfg.web_search_max_results,
                search_depth=cfg.web_search_depth,
            )
            logger.info("Web search grounding enabled")
        except Exception as exc:
            logger.warning("Web search unavailable: {}", exc)

    handoff = HandoffTool(cfg.contact)
    if not handoff.available:
        logger.warning("No helpdesk contact channel configured (email / WhatsApp / webhook)")

    return HelpdeskOrchestrator(
        llm_chat=llm_chat,
        router=router,
        store=store,
        tray=tray,
        web_tool=web_tool,
        handoff=handoff,
        conversation_key=cfg.transcript_key,
    )
