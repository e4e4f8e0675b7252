from dataclasses import dataclass
from typing import Protocol

EMPTY_INPUT_MESSAGE = "Please enter some text to correct"


@dataclass(frozen=True)
class CorrectionResult:
    original_text: str
    corrected_text: str


class CorrectionEngine(Protocol):
    async def handle(self, text: str, *, trace_id: str = "") -> CorrectionResult: ...


class StubCorrectionEngine:
    async def handle(self, text: str, *, trace_id: str = "") -> CorrectionResult:
        text = (text or "").strip()
        if not text:
            return CorrectionResult(original_text="", corrected_text=EMPTY_INPUT_MESSAGE)
        return CorrectionResult(original_text=text, corrected_text=text)
