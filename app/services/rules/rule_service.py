# app/services/rules/rule_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from app.core.errors import NotFoundError, ValidationError
from app.services.rules.condition_models import get_llm_conditions, has_llm_conditions
from app.services.rules.reward_store import RuleStore
from app.services.rules.rule_models import CreateRuleRequest, Rule, UpdateRuleRequest

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class RuleService:
    """
    Reward rule administration.
    - delete is soft (active=false); grants already paid are never revoked
    - payloads are schema-validated before they get here
    """

    def __init__(self, store: RuleStore):
        self.store = store

    def create_rule(self, payload: CreateRuleRequest) -> Rule:
        rule = self.store.create_rule(payload.model_dump(mode="json"))
        logger.info("rule created id=%s name=%s points=%d", rule.id, rule.name, rule.points)
        return rule

    def list_rules(
        self,
        *,
        active: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", {"limit": limit})
        if offset < 0:
            raise ValidationError("offset must be >= 0", {"offset": offset})

        rules, total = self.store.list_rules(active=active, limit=limit, offset=offset)
        return {
            "data": rules,
            "meta": {"total": total, "limit": limit, "offset": offset},
        }

    def get_rule(self, rule_id: str) -> Rule:
        rule = self.store.get_rule(rule_id)
        if rule is None:
            raise NotFoundError("Rule", rule_id)
        return rule

    def update_rule(self, rule_id: str, payload: UpdateRuleRequest) -> Rule:
        self.get_rule(rule_id)

        changes = payload.model_dump(mode="json", exclude_unset=True)
        if not changes:
            return self.get_rule(rule_id)

        updated = self.store.update_rule(rule_id, changes)
        if updated is None:
            raise NotFoundError("Rule", rule_id)
        logger.info("rule updated id=%s fields=%s", rule_id, sorted(changes))
        return updated

    def deactivate_rule(self, rule_id: str) -> Rule:
        self.get_rule(rule_id)
        updated = self.store.update_rule(rule_id, {"active": False})
        if updated is None:
            raise NotFoundError("Rule", rule_id)
        logger.info("rule deactivated id=%s", rule_id)
        return updated

    def llm_conditions(self, rule_id: str) -> Dict[str, Any]:
        """AI-judged conditions of a rule, for callers deciding on AI affordances."""
        rule = self.get_rule(rule_id)
        conditions: List[Any] = get_llm_conditions(rule.conditions)
        return {
            "rule_id": rule.id,
            "has_llm_conditions": has_llm_conditions(rule.conditions),
            "llm_conditions": conditions,
        }
