from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx

from textfix.core.llm import EMPTY_INPUT_MESSAGE, CorrectionResult
from textfix.core.providers import Errored, Malformed, ProviderConfig, outcome_text
from textfix.logging_config import get_logger, setup_logging, with_trace

setup_logging()
log = get_logger("correct")

GENERIC_ERROR_MESSAGE = "Error. Please try again."


def missing_key_message(provider: ProviderConfig) -> str:
    return f"Server error: {provider.display_name} API key is missing."


class CorrectionHandler:
    """Sends one piece of text to a provider and turns any outcome into a result.

    Every path returns a ``CorrectionResult``: empty input and a missing key
    short-circuit before the network, and any failure while calling the
    provider or reading its body collapses into ``GENERIC_ERROR_MESSAGE``.
    The HTTP status is not inspected; a JSON error body goes through the
    provider's extraction like any other body.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        client: httpx.AsyncClient,
        *,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.provider = provider
        self._client = client
        self._timeout_s = timeout_s

    async def handle(self, text: str, *, trace_id: str = "") -> CorrectionResult:
        tlog = with_trace(log, trace_id)
        text = (text or "").strip()
        if not text:
            tlog.debug("输入为空 | Empty input; skipping provider call")
            return CorrectionResult(original_text="", corrected_text=EMPTY_INPUT_MESSAGE)

        provider = self.provider
        if not provider.api_key:
            tlog.error("缺少API密钥 | API key missing | provider={provider}", provider=provider.name)
            return CorrectionResult(original_text=text, corrected_text=missing_key_message(provider))

        request = provider.build_request(text)
        kwargs: Dict[str, Any] = {"json": request.payload}
        if request.headers:
            kwargs["headers"] = request.headers
        if request.params:
            kwargs["params"] = request.params
        if self._timeout_s is not None:
            kwargs["timeout"] = self._timeout_s

        tlog.info(
            "请求纠错 | Requesting correction | provider={provider} text_len={len}",
            provider=provider.name,
            len=len(text),
        )
        t0 = time.perf_counter()
        try:
            resp = await self._client.post(request.url, **kwargs)
            data = resp.json()
            outcome = provider.extract(data)
            corrected = outcome_text(outcome)
        except Exception as exc:
            tlog.exception(
                "纠错请求失败 | Correction request failed | provider={provider} error={error}",
                provider=provider.name,
                error=type(exc).__name__,
            )
            return CorrectionResult(original_text=text, corrected_text=GENERIC_ERROR_MESSAGE)

        elapsed_ms = (time.perf_counter() - t0) * 1000.0
        if isinstance(outcome, Errored):
            tlog.warning(
                "服务端返回错误 | Provider reported error | status={status} message={message}",
                status=resp.status_code,
                message=outcome.message,
            )
        elif isinstance(outcome, Malformed):
            tlog.warning(
                "响应无法解析 | No correction in response | status={status} reason={reason}",
                status=resp.status_code,
                reason=outcome.reason,
            )
        else:
            tlog.info(
                "纠错完成 | Correction received | status={status} text_len={len} time_ms={ms:.0f}",
                status=resp.status_code,
                len=len(corrected),
                ms=elapsed_ms,
            )
        return CorrectionResult(original_text=text, corrected_text=corrected)
