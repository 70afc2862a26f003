"""Tool call results and output bounding.

Every textual gadget result handed to a caller goes through wrap_output(),
which caps the payload at MAX_RESULT_BYTES and flags truncation so the caller
knows to narrow its filters.
"""

from typing import Optional

from pydantic import BaseModel

MAX_RESULT_BYTES = 64 * 1024
ELLIPSIS = "…"
TRUNCATION_HINT = (
    "Output was truncated. Use gadget parameters to filter the data "
    "(e.g. namespace, pod name) or a shorter timeout to get complete results."
)


class ToolResult(BaseModel):
    """Outcome of one tool invocation. Errors are results, not exceptions."""

    text: str
    is_error: bool = False

    @classmethod
    def ok(cls, text: str) -> "ToolResult":
        return cls(text=text)

    @classmethod
    def error(cls, text: str) -> "ToolResult":
        return cls(text=text, is_error=True)


class GadgetOutput(BaseModel):
    """Envelope around raw gadget output."""

    truncated: bool = False
    data: str
    hint: Optional[str] = None


def wrap_output(raw: str) -> str:
    """Wrap raw gadget output, truncating it past MAX_RESULT_BYTES of UTF-8."""
    encoded = raw.encode("utf-8")
    if len(encoded) > MAX_RESULT_BYTES:
        # errors="ignore" drops a code point cut in half at the boundary
        head = encoded[:MAX_RESULT_BYTES].decode("utf-8", errors="ignore")
        envelope = GadgetOutput(truncated=True, data=head + ELLIPSIS, hint=TRUNCATION_HINT)
    else:
        envelope = GadgetOutput(data=raw)
    return envelope.model_dump_json(exclude_none=True)
