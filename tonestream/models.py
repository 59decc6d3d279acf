"""Pure dataclasses and enums for the streaming chat core. No I/O."""

from dataclasses import dataclass, replace
from enum import Enum


class Status(str, Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (Status.COMPLETED, Status.ERROR, Status.CANCELLED)


class Variant(str, Enum):
    A = "A"  # sole variant in single mode
    B = "B"


@dataclass(frozen=True)
class StreamRequest:
    message: str
    tone: str | None = None
    num_results: int = 5

    def to_payload(self) -> dict:
        payload: dict = {"message": self.message, "numResults": self.num_results}
        if self.tone is not None:
            payload["tone"] = self.tone
        return payload


@dataclass(frozen=True)
class Query:
    prompt: str
    status: Status = Status.PENDING
    is_dual: bool = False
    response: str | None = None
    response_b: str | None = None   # dual mode only
    error: str | None = None        # "Error: <message>" when status is ERROR
    selected_response: str | None = None
    selected_tone: str | None = None
    selected_variant: Variant | None = None

    def text_for(self, variant: Variant) -> str | None:
        return self.response if variant is Variant.A else self.response_b

    def with_text(self, variant: Variant, text: str) -> "Query":
        """Return a copy with only the field owned by ``variant`` replaced."""
        if variant is Variant.A:
            return replace(self, response=text)
        return replace(self, response_b=text)

    @property
    def dual_ready(self) -> bool:
        """True once both variants have text to compare side by side."""
        return self.is_dual and self.response is not None and self.response_b is not None

    @property
    def display_text(self) -> str:
        if self.status is Status.ERROR and self.error:
            return self.error
        if self.selected_variant is not None:
            return self.selected_response or ""
        return self.response or ""
