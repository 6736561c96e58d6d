"""HTTP text generator for goals and magazine snippets.

The service receives the session context as JSON and answers with a JSON
object; replies are validated with pydantic before they reach the engine.

    POST {endpoint}/goal     -> {"description", "metric", "target_value",
                                 "target_furniture"?, "reward", "title"?}
    POST {endpoint}/snippet  -> {"text", "category"}
"""
from __future__ import annotations

import logging
import random
import time
import uuid
from typing import Any, Callable, Dict, Literal, Optional

import requests
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from dreamdecor.config import RemoteGeneratorConfig
from dreamdecor.errors import GenerationError
from dreamdecor.news import Snippet

from .models import Goal, GoalContext, GoalMetric

logger = logging.getLogger(__name__)

RETRY_STATUSES = {429, 503}

_METRIC_ALIASES = {
    "style": GoalMetric.STYLE_TOTAL.value,
    "style_total": GoalMetric.STYLE_TOTAL.value,
    "furniture_count": GoalMetric.FURNITURE_COUNT.value,
}


class GoalPayload(BaseModel):
    """Goal reply from the text service."""

    description: str = Field(..., min_length=1, description="Design suggestion shown to the player")
    metric: Literal["style_total", "furniture_count"] = Field(..., description="Metric to track")
    target_value: int = Field(..., ge=1, description="Target value to reach")
    target_furniture: Optional[str] = Field(default=None, description="Furniture id for furniture_count goals")
    reward: int = Field(..., ge=0, description="Budget reward")
    title: str = Field("", description="Short heading")

    @field_validator("metric", mode="before")
    @classmethod
    def normalize_metric(cls, v: Any) -> Any:
        # The service may use the short "style" name
        if isinstance(v, str):
            return _METRIC_ALIASES.get(v.strip().lower(), v)
        return v

    @model_validator(mode="after")
    def require_target_furniture(self) -> "GoalPayload":
        if self.metric == GoalMetric.FURNITURE_COUNT.value and not self.target_furniture:
            raise ValueError("target_furniture is required for furniture_count goals")
        return self

    def to_goal(self) -> Goal:
        return Goal(
            goal_id=f"goal_{uuid.uuid4().hex[:8]}",
            title=self.title,
            description=self.description,
            metric=GoalMetric(self.metric),
            target_value=self.target_value,
            target_furniture=self.target_furniture,
            reward=self.reward,
        )


class SnippetPayload(BaseModel):
    text: str = Field(..., min_length=1)
    category: Literal["trend", "critique", "tip"] = "tip"


class RemoteTextGenerator:
    """Goal and snippet generator backed by an HTTP JSON service.

    Retries rate-limited (429) and unavailable (503) answers with exponential
    backoff plus jitter; any other failure raises GenerationError.
    """

    def __init__(
        self,
        config: RemoteGeneratorConfig,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        catalog_ids: Optional[set] = None,
    ) -> None:
        if not config.endpoint:
            raise ValueError("A remote generator endpoint is required")
        self.config = config
        self._endpoint = config.endpoint.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json", "User-Agent": "dreamdecor/0.1"})
        if config.api_key:
            self._session.headers["Authorization"] = f"Bearer {config.api_key}"
        self._sleep = sleep
        self._catalog_ids = catalog_ids

    # ---------------------- Public API ----------------------
    def generate_goal(self, context: GoalContext) -> Goal:
        data = self._post("goal", self._context_payload(context))
        try:
            payload = GoalPayload.model_validate(data)
        except ValidationError as exc:
            raise GenerationError(f"Invalid goal reply: {exc.errors()}") from exc
        if self._catalog_ids is not None and payload.target_furniture is not None:
            if payload.target_furniture not in self._catalog_ids:
                raise GenerationError(f"Goal targets unknown furniture '{payload.target_furniture}'")
        goal = payload.to_goal()
        logger.info("Remote goal generated: %s", goal.description)
        return goal

    def generate_snippet(self, context: GoalContext) -> Optional[Snippet]:
        """Best effort: failures are logged and yield None."""
        try:
            data = self._post("snippet", self._context_payload(context))
            payload = SnippetPayload.model_validate(data)
        except (GenerationError, ValidationError) as exc:
            logger.debug("Remote snippet unavailable: %s", exc)
            return None
        return Snippet(snippet_id=uuid.uuid4().hex[:9], text=payload.text, category=payload.category)

    # ---------------------- Internal ----------------------
    @staticmethod
    def _context_payload(context: GoalContext) -> Dict[str, Any]:
        return {
            "phase": context.phase,
            "budget": context.budget,
            "style": context.total_style,
            "inventory": dict(context.counts),
        }

    def _post(self, path: str, body: Dict[str, Any]) -> Any:
        url = f"{self._endpoint}/{path}"
        retries = max(0, self.config.max_retries)
        for attempt in range(retries + 1):
            try:
                resp = self._session.post(url, json=body, timeout=self.config.timeout)
            except requests.RequestException as exc:
                raise GenerationError(f"Request to {url} failed: {exc}") from exc

            if resp.status_code in RETRY_STATUSES and attempt < retries:
                delay = self.config.backoff * (2 ** attempt) + random.random() * 0.5 * self.config.backoff
                logger.warning(
                    "Text service busy (status %d, attempt %d/%d). Retrying in %.2fs",
                    resp.status_code,
                    attempt + 1,
                    retries + 1,
                    delay,
                )
                self._sleep(delay)
                continue

            if not 200 <= resp.status_code < 300:
                raise GenerationError(f"Text service {path} failed: {resp.status_code} {resp.text[:200]}")
            try:
                return resp.json()
            except ValueError as exc:
                raise GenerationError(f"Text service {path} returned invalid JSON") from exc
        raise GenerationError(f"Text service {path} kept failing after {retries + 1} attempts")
