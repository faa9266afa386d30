"""
toolbridge.integrations.oura

Purpose:
    Read daily stress/recovery summaries from the Oura v2 API over a trailing
    window of days ending today.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import BaseModel

from toolbridge.config.credentials import ENV_OURA_API_TOKEN, ExternalCredential
from toolbridge.config.defaults import OURA_API_URL, OURA_MAX_DAYS
from toolbridge.errors import ConfigurationError
from toolbridge.integrations.http import raise_for_upstream
from toolbridge.utils.logging import get_logger

logger = get_logger(__name__)

PROVIDER = "OURA"


class StressRecoveryDay(BaseModel):
    date: str
    stress_high: Optional[int] = None
    recovery_high: Optional[int] = None
    summary: Optional[str] = None


@dataclass(frozen=True)
class StressRecoveryWindow:
    start_date: date
    end_date: date
    days: List[StressRecoveryDay]

    @property
    def period(self) -> str:
        return f"{self.start_date.isoformat()} to {self.end_date.isoformat()}"


class OuraAdapter:
    def __init__(
        self,
        client: httpx.AsyncClient,
        credential: ExternalCredential | None,
        *,
        base_url: str = OURA_API_URL,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._client = client
        self._credential = credential
        self._base_url = base_url.rstrip("/")
        self._today = today

    async def read_stress_recovery(self, day_count: int) -> StressRecoveryWindow:
        if self._credential is None:
            raise ConfigurationError(ENV_OURA_API_TOKEN)
        if day_count < 1 or day_count > OURA_MAX_DAYS:
            raise ValueError(f"day_count must be between 1 and {OURA_MAX_DAYS}, got {day_count}")

        end = self._today()
        start = end - timedelta(days=day_count)

        response = await self._client.get(
            f"{self._base_url}/v2/usercollection/daily_stress",
            params={"start_date": start.isoformat(), "end_date": end.isoformat()},
            headers={"Authorization": self._credential.bearer()},
        )
        raise_for_upstream(response, provider=PROVIDER)

        payload: Dict[str, Any] = response.json() or {}
        days = [
            StressRecoveryDay(
                date=entry.get("day") or "",
                stress_high=entry.get("stress_high"),
                recovery_high=entry.get("recovery_high"),
                summary=entry.get("day_summary"),
            )
            for entry in payload.get("data") or []
        ]
        logger.info("oura daily_stress %s..%s entries=%s", start, end, len(days))
        return StressRecoveryWindow(start_date=start, end_date=end, days=days)
