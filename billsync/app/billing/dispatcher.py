"""Concurrent fan-out of best-effort billing side effects."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Sequence

from .models import EffectFailure, EffectKind, EffectReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Effect:
    """A named unit of work that must not affect the committed plan state."""

    kind: EffectKind
    target: str
    run: Callable[[], object]

    @property
    def name(self) -> str:
        return f"{self.kind.value}:{self.target}"


class EffectDispatcher:
    """Runs effects concurrently and waits for every one of them to settle."""

    def __init__(self, *, max_workers: int = 4) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._max_workers = max_workers

    def dispatch(self, effects: Sequence[Effect]) -> EffectReport:
        report = EffectReport()
        if not effects:
            return report

        workers = min(self._max_workers, len(effects))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="billing-effect") as executor:
            future_map = {executor.submit(effect.run): effect for effect in effects}
            for future in as_completed(future_map):
                effect = future_map[future]
                try:
                    future.result()
                except Exception as exc:  # noqa: BLE001
                    logger.warning("Billing side effect %s failed", effect.name, exc_info=True)
                    report.failed.append(EffectFailure(name=effect.name, error=str(exc)))
                else:
                    report.succeeded.append(effect.name)

        if report.failed:
            logger.warning(
                "%s of %s billing side effects failed", len(report.failed), report.total
            )
        return report


__all__ = ["Effect", "EffectDispatcher"]
