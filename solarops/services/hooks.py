"""
Post-commit hooks.
Side effects that run after the primary write has been committed.
Each hook is isolated: a failure is logged and recorded, never raised, and earlier writes stay committed.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional

import structlog
from sqlalchemy.orm import Session

logger = structlog.get_logger(__name__)


@dataclass
class HookOutcome:
    name: str
    ok: bool
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {"name": self.name, "ok": self.ok, "error": self.error}


class PostCommitHooks:
    def __init__(self, db: Optional[Session] = None):
        self.db = db
        self._hooks: List[tuple] = []

    def add(self, name: str, fn: Callable, *args, **kwargs) -> None:
        self._hooks.append((name, fn, args, kwargs))

    @property
    def names(self) -> List[str]:
        return [h[0] for h in self._hooks]

    def __len__(self) -> int:
        return len(self._hooks)

    def run(self) -> List[HookOutcome]:
        outcomes = []
        for name, fn, args, kwargs in self._hooks:
            try:
                fn(*args, **kwargs)
                if self.db is not None:
                    self.db.commit()
                outcomes.append(HookOutcome(name=name, ok=True))
            except Exception as e:
                if self.db is not None:
                    self.db.rollback()
                logger.warning("post_commit_hook_failed", hook=name, error=str(e))
                outcomes.append(HookOutcome(name=name, ok=False, error=str(e)))
        self._hooks = []
        return outcomes
