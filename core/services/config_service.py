"""Manage the stored generation configuration the request assembler reads."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from core.errors import NotFoundError
from core.models import (
    AiRole,
    GenerationPrompt,
    MustHaves,
    PromptInstruction,
    ReturnFormat,
    RuleSet,
    RuleSetItem,
    RuleSetTopic,
)
from core.repository import PlanRepository
from core.services.prompt_assembler import PromptComponents, assemble_template

logger = logging.getLogger(__name__)


class ConfigService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = PlanRepository(session)

    def _get(self, model, item_id: Optional[int], field: str):
        if item_id is None:
            return None
        item = self.session.get(model, item_id)
        if item is None:
            raise NotFoundError(f"{model.__name__} {item_id} not found", field=field, value=item_id)
        return item

    def _list(self, model) -> Sequence[Any]:
        return self.session.execute(select(model).order_by(model.id)).scalars().all()

    def _save(self, item, event: str):
        self.session.add(item)
        self.session.commit()
        logger.info(event, extra={"id": item.id})
        return item

    # -- Building blocks --

    def list_ai_roles(self) -> Sequence[AiRole]:
        return self._list(AiRole)

    def create_ai_role(self, name: str, content: str) -> AiRole:
        return self._save(AiRole(name=name, content=content), "ai_role_created")

    def list_must_haves(self) -> Sequence[MustHaves]:
        return self._list(MustHaves)

    def create_must_haves(self, name: str, fields: dict[str, Any]) -> MustHaves:
        return self._save(MustHaves(name=name, fields=fields), "must_haves_created")

    def list_return_formats(self) -> Sequence[ReturnFormat]:
        return self._list(ReturnFormat)

    def create_return_format(
        self, name: str, schema_json: dict[str, Any], example_json: Optional[dict[str, Any]] = None
    ) -> ReturnFormat:
        return self._save(
            ReturnFormat(name=name, schema_json=schema_json, example_json=example_json), "return_format_created"
        )

    def list_rule_sets(self) -> Sequence[RuleSet]:
        return (
            self.session.execute(
                select(RuleSet).options(selectinload(RuleSet.topics).selectinload(RuleSetTopic.rules)).order_by(RuleSet.id)
            )
            .scalars()
            .all()
        )

    def create_rule_set(self, name: str, topics: Sequence[tuple[str, Sequence[str]]]) -> RuleSet:
        """Create a rule set from ``(topic name, rules)`` pairs, keeping their order."""
        rule_set = RuleSet(name=name)
        for topic_position, (topic_name, rules) in enumerate(topics):
            topic = RuleSetTopic(name=topic_name, position=topic_position)
            topic.rules = [RuleSetItem(text=text, position=i) for i, text in enumerate(rules)]
            rule_set.topics.append(topic)
        return self._save(rule_set, "rule_set_created")

    # -- Prompts --

    def list_prompts(self, kind: Optional[str] = None) -> Sequence[GenerationPrompt]:
        return self.repo.list_prompts(kind)

    def get_prompt(self, prompt_id: int) -> GenerationPrompt:
        return self.repo.get_prompt(prompt_id)

    def _clear_default(self, kind: str) -> None:
        self.session.execute(update(GenerationPrompt).where(GenerationPrompt.kind == kind).values(is_default=False))

    def create_prompt(
        self,
        *,
        name: str,
        kind: str,
        instructions: Sequence[tuple[str, str]] = (),
        ai_role_id: Optional[int] = None,
        must_haves_id: Optional[int] = None,
        rule_set_id: Optional[int] = None,
        return_format_id: Optional[int] = None,
        is_default: bool = False,
    ) -> GenerationPrompt:
        """Store a prompt; a default prompt replaces the previous default of its kind."""
        references = dict(
            ai_role=self._get(AiRole, ai_role_id, "ai_role_id"),
            must_haves=self._get(MustHaves, must_haves_id, "must_haves_id"),
            rule_set=self._get(RuleSet, rule_set_id, "rule_set_id"),
            return_format=self._get(ReturnFormat, return_format_id, "return_format_id"),
        )
        if is_default:
            self._clear_default(kind)
        prompt = GenerationPrompt(
            name=name,
            kind=kind,
            is_default=is_default,
            **references,
        )
        prompt.instructions = [
            PromptInstruction(title=title, content=content, position=position)
            for position, (title, content) in enumerate(instructions)
        ]
        self._save(prompt, "generation_prompt_created")
        return self.repo.get_prompt(prompt.id)

    def set_default_prompt(self, prompt_id: int) -> GenerationPrompt:
        prompt = self.repo.get_prompt(prompt_id)
        self._clear_default(prompt.kind)
        prompt.is_default = True
        self.session.commit()
        logger.info("generation_prompt_default_set", extra={"prompt_id": prompt.id, "kind": prompt.kind})
        return prompt

    def render_template(self, prompt_id: int) -> str:
        """The assembled template with its placeholders left in place."""
        return assemble_template(PromptComponents.from_prompt(self.repo.get_prompt(prompt_id)))
