"""
Stream events produced by the orchestrator and consumed by the SSE relay.
"""

from dataclasses import dataclass

TEXT = "text"
TOOL_CALL = "tool_call"
TOOL_RESULT_BEGIN = "tool_result_begin"
TOOL_RESULT = "tool_result"
TOOL_RESULT_END = "tool_result_end"
ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    kind: str
    text: str

    @classmethod
    def of_text(cls, text: str) -> "StreamEvent":
        return cls(TEXT, text)

    def to_frame_text(self) -> str:
        """Wire payload for this event (before JSON/SSE framing)."""
        if self.kind == TOOL_CALL:
            return f"[TOOL_CALL] {self.text}"
        if self.kind == TOOL_RESULT_BEGIN:
            return f"[TOOL_RESULT_BEGIN] {self.text}"
        if self.kind == TOOL_RESULT_END:
            return f"[TOOL_RESULT_END] {self.text}"
        if self.kind == ERROR:
            return f"[ERROR] {self.text}"
        # text and tool_result payloads go out verbatim
        return self.text
