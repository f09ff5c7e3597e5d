"""
Agent tools - web search grounding and human handoff.
"""

from .handoff_tool import HandoffTool, build_ticket_payload, whatsapp_message
from .web_search_tool import WebSearchTool

__all__ = [
    "HandoffTool",
    "WebSearchTool",
    "build_ticket_payload",
    "whatsapp_message",
]
