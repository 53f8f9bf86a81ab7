"""
Strategic Context

Business intent supplied by the caller and rendered into the content-gap,
deep analysis and topical authority prompts.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class StrategicContext:
    source_context: str
    central_intent: str
    geographic_focus: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["StrategicContext"]:
        if not data:
            return None
        return cls(
            source_context=str(data.get("source_context") or ""),
            central_intent=str(data.get("central_intent") or ""),
            geographic_focus=data.get("geographic_focus") or None,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.source_context.strip() and self.central_intent.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_context": self.source_context,
            "central_intent": self.central_intent,
            "geographic_focus": self.geographic_focus,
        }
