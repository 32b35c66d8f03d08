"""Async client for an external emotion classifier service."""

from __future__ import annotations

import math

import httpx

from emotion_mirror.inference.signals import (
    ClassifierError,
    ClassifierResult,
    normalize_label,
)


class ClassifierClient:
    """Minimal async wrapper around the classifier `/health` + `/emotion`.

    ``/emotion`` returns either ``{"label": ..., "score": ...}`` or
    ``{"predictions": [{"label": ..., "score": ...}, ...]}``; the
    top-scoring prediction wins.
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 2.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout_s,
                transport=self._transport,
            )

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def health_check(self) -> bool:
        client = self._require_client()
        try:
            resp = await client.get("/health")
        except httpx.HTTPError:
            return False
        return resp.status_code == 200

    async def classify(self) -> ClassifierResult:
        client = self._require_client()
        try:
            resp = await client.get("/emotion")
        except httpx.HTTPError as e:
            msg = str(e).strip() or e.__class__.__name__
            raise ClassifierError(f"request failed: {msg}") from e

        if resp.status_code != 200:
            detail = self._extract_error(resp)
            raise ClassifierError(f"/emotion returned {resp.status_code}: {detail}")

        try:
            body = resp.json()
        except ValueError as e:
            raise ClassifierError("invalid JSON response from /emotion") from e
        if not isinstance(body, dict):
            raise ClassifierError("invalid /emotion payload: expected an object")

        predictions = body.get("predictions")
        if predictions is None:
            return self._parse_prediction(body)
        if not isinstance(predictions, list) or not predictions:
            raise ClassifierError("invalid /emotion payload: empty predictions")
        # Labels outside the category set (e.g. "contempt") are skipped.
        parsed: list[ClassifierResult] = []
        for item in predictions:
            try:
                parsed.append(self._parse_prediction(item))
            except ClassifierError:
                continue
        if not parsed:
            raise ClassifierError("invalid /emotion payload: no usable predictions")
        return max(parsed, key=lambda r: r.score)

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("classifier client not started")
        return self._client

    @staticmethod
    def _parse_prediction(item: object) -> ClassifierResult:
        if not isinstance(item, dict):
            raise ClassifierError("invalid /emotion payload: prediction is not an object")
        label = item.get("label")
        score = item.get("score")
        if not isinstance(label, str):
            raise ClassifierError("invalid /emotion payload: missing label")
        category = normalize_label(label)
        if category is None:
            raise ClassifierError(f"unknown emotion label: {label!r}")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise ClassifierError("invalid /emotion payload: missing score")
        score = float(score)
        if not math.isfinite(score) or not 0.0 <= score <= 1.0:
            raise ClassifierError(f"score out of range: {score!r}")
        return ClassifierResult(label=category, score=score)

    @staticmethod
    def _extract_error(resp: httpx.Response) -> str:
        """Best-effort message from a classifier error body.

        Understands ``{"detail": str}``, FastAPI validation lists
        ``{"detail": [{"msg": str}, ...]}``, ``{"error": str}`` and
        ``{"error": {"message": str}}``; otherwise the raw text.
        """
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            detail = data.get("detail")
            if isinstance(detail, str) and detail:
                return detail
            if isinstance(detail, list):
                msgs = [d["msg"] for d in detail if isinstance(d, dict) and d.get("msg")]
                if msgs:
                    return "; ".join(str(m) for m in msgs)
            error = data.get("error")
            if isinstance(error, dict):
                error = error.get("message")
            if isinstance(error, str) and error:
                return error
        text = resp.text.strip()
        return text[:160] if text else f"HTTP {resp.status_code}"
