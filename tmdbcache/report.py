from dataclasses import dataclass, field
from typing import List


@dataclass
class FetchReport:
    """Outcome of one fetcher run. `failed` is the end-of-run manifest."""

    kind: str
    planned: int = 0
    fetched: int = 0
    skipped: int = 0
    failed: List[str] = field(default_factory=list)
    malformed: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when nothing was lost to fetch or parse failures."""
        return not self.failed and not self.malformed

    def summary(self) -> str:
        return (
            f"{self.kind}: planned={self.planned} fetched={self.fetched} "
            f"skipped={self.skipped} failed={len(self.failed)} malformed={len(self.malformed)}"
        )
