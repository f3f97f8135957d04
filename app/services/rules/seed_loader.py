# app/services/rules/seed_loader.py
import logging
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field

from app.services.rules.rule_models import Employee, Event, Rule

logger = logging.getLogger(__name__)


class SeedBundle(BaseModel):
    """Employees, shift events and rules for the in-process store."""
    employees: List[Employee] = Field(default_factory=list)
    events: List[Event] = Field(default_factory=list)
    rules: List[Rule] = Field(default_factory=list)


def load_seed_from_file(path: str) -> SeedBundle:

    p = Path(path)

    if not p.exists():
        raise RuntimeError(f"Seed file not found: {path}")

    with open(p, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return SeedBundle(**raw)


def apply_seed(store, bundle: SeedBundle) -> None:
    for employee in bundle.employees:
        store.add_employee(employee)
    for event in bundle.events:
        store.add_event(event)
    for rule in bundle.rules:
        store.add_rule(rule)

    logger.info(
        "seed loaded employees=%d events=%d rules=%d",
        len(bundle.employees),
        len(bundle.events),
        len(bundle.rules),
    )
