from __future__ import annotations

from typing import Any, Callable

from flask import current_app


class Saga:
    """Ordered forward steps, each paired with the step undoing it.

    Used as a context manager: when the block raises, the compensations of the
    steps already done run newest first. A failing compensation is logged and
    skipped so the original error is the one the caller sees.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._compensations: list[tuple[str, Callable[[], Any]]] = []

    def __enter__(self) -> "Saga":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            current_app.logger.info("%s failed (%s), undoing %s step(s)", self.name, exc, len(self._compensations))
            self.compensate()
        return False

    def step(
        self,
        label: str,
        action: Callable[[], Any],
        compensation: Callable[[Any], Any] | None = None,
    ) -> Any:
        result = action()
        if compensation is not None:
            self._compensations.append((label, lambda: compensation(result)))
        return result

    def compensate(self) -> None:
        while self._compensations:
            label, undo = self._compensations.pop()
            try:
                undo()
            except Exception:
                current_app.logger.exception("Compensation '%s' of %s failed", label, self.name)
