"""
Content Collector Data Models
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Page:
    """A published document on the analysed site.

    Created once per collection sweep and never mutated during a run.
    `body` is the rendered HTML of the document.
    """
    url: str
    title: str
    body: str = ""

    def excerpt(self, length: int = 300) -> str:
        """Whitespace-collapsed prefix of the body, used in prompts."""
        return " ".join(self.body[:length * 2].split())[:length]

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "title": self.title}
