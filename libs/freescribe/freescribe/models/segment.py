"""Transcript segment models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ProcessedSegment:
    """One timestamped transcript line, times in whole seconds."""

    index: int
    text: str
    start: int
    end: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "text": self.text,
            "start": self.start,
            "end": self.end,
        }

    @classmethod
    def from_dict(cls, item: dict[str, Any]) -> "ProcessedSegment":
        return cls(
            index=int(item["index"]),
            text=str(item["text"]),
            start=int(item["start"]),
            end=int(item["end"]),
        )


@dataclass(frozen=True)
class PartialResult:
    """Best-beam text decoded while a chunk is still generating."""

    text: str
    start: int
    end: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, item: dict[str, Any]) -> "PartialResult":
        end = item.get("end")
        return cls(
            text=str(item["text"]),
            start=int(item.get("start") or 0),
            end=int(end) if end is not None else None,
        )
