"""Usage collector — sums token usage across the phases of one request."""

from __future__ import annotations

from tandem.llm.contracts import Usage


class UsageCollector:
    """Pure accumulator. The pricing side reads summary() when a request ends."""

    def __init__(self) -> None:
        self._phases: dict[str, Usage] = {}
        self._providers: dict[str, str] = {}

    def add(self, phase: str, usage: Usage | None, provider: str = "") -> None:
        if provider:
            self._providers[phase] = provider
        if usage is None:
            return
        self._phases[phase] = self._phases.get(phase, Usage()) + usage

    def by_phase(self) -> dict[str, Usage]:
        return dict(self._phases)

    def finalize(self) -> Usage:
        total = Usage()
        for usage in self._phases.values():
            total = total + usage
        return total

    def summary(self) -> dict:
        phases = list(self._providers)
        phases += [p for p in self._phases if p not in self._providers]
        return {
            "total": self.finalize().to_dict(),
            "phases": {
                phase: {
                    "provider": self._providers.get(phase, ""),
                    **self._phases.get(phase, Usage()).to_dict(),
                }
                for phase in phases
            },
        }
