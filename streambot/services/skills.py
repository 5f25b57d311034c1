from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass
class SkillResult:
    handled: bool
    response: str = ""
    skill: str = ""
    meta: dict[str, Any] = field(default_factory=dict)


class Skill(Protocol):
    name: str

    def can_handle(self, text: str) -> bool:
        ...

    async def handle(self, text: str) -> SkillResult:
        ...


class SkillRegistry:
    """Handlers sem LLM que podem interceptar uma mensagem antes do modelo."""

    def __init__(self, skills: Optional[list[Skill]] = None) -> None:
        self._skills: list[Skill] = list(skills or [])

    def register(self, skill: Skill) -> None:
        self._skills.append(skill)

    @property
    def names(self) -> list[str]:
        return [skill.name for skill in self._skills]

    async def dispatch(self, text: str) -> Optional[SkillResult]:
        for skill in self._skills:
            try:
                if not skill.can_handle(text):
                    continue
                result = await skill.handle(text)
            except Exception:
                logger.exception("Skill %s failed, falling through", getattr(skill, "name", skill))
                continue
            if result is not None and result.handled:
                if not result.skill:
                    result.skill = skill.name
                return result
        return None
