from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

from .errors import CaptureError

if TYPE_CHECKING:
    from .run_log import RunLogger


@dataclass(frozen=True)
class Diagnostic:
    kind: str
    message: str
    provenance: str | None = None
    url: str | None = None
    post_id: str | None = None


class Diagnostics:
    """
    Per-run sink for non-fatal errors.

    Every recorded error is kept in arrival order and, when a logger is attached,
    written as a WARN `capture_diagnostic` event.
    """

    def __init__(self, logger: RunLogger | None = None) -> None:
        self._logger = logger
        self._items: list[Diagnostic] = []

    def record(
        self,
        exc: CaptureError,
        *,
        provenance: str | None = None,
        url: str | None = None,
        post_id: str | None = None,
    ) -> Diagnostic:
        item = Diagnostic(
            kind=type(exc).__name__,
            message=str(exc) or type(exc).__name__,
            provenance=provenance,
            url=url,
            post_id=post_id,
        )
        self._items.append(item)

        if self._logger is not None:
            self._logger.warning(
                "capture_diagnostic",
                url=url,
                kind=item.kind,
                message=item.message,
                provenance=provenance,
                post_id=post_id,
            )
        return item

    def kinds(self) -> list[str]:
        return [d.kind for d in self._items]

    def snapshot(self) -> tuple[Diagnostic, ...]:
        return tuple(self._items)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)
