"""Result types for Git synchronization operations."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class UpdateResult:
    """Result of a safe update."""
    up_to_date: bool
    output: str
    branch: str
    remote: str
    stashed: bool = False
    switched_branch: bool = False
    states: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.up_to_date:
            return "up-to-date"
        return self.output

    def to_dict(self) -> Dict[str, Any]:
        return {
            "up_to_date": self.up_to_date,
            "message": self.message,
            "output": self.output,
            "branch": self.branch,
            "remote": self.remote,
            "stashed": self.stashed,
            "switched_branch": self.switched_branch,
            "states": list(self.states),
        }
