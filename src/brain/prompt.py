"""Render a MaterializedBrain into a budgeted system-prompt section."""

import math
from datetime import datetime, timezone
from typing import Optional

from .models import LearningEntry, MaterializedBrain

DEFAULT_BUDGET = 2000

SECTION_WEIGHTS = {
    "behavior": 0.15,
    "preferences": 0.20,
    "context": 0.25,
    "learnings": 0.40,
}

MEMORY_HEADER = "## Memory\n\n"


def approx_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def _parse_ts(value: str) -> Optional[datetime]:
    try:
        ts = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def days_since(iso_date: str, now: Optional[datetime] = None) -> int:
    then = _parse_ts(iso_date)
    if then is None:
        return 0
    now = now or datetime.now(timezone.utc)
    return max(0, (now - then).days)


def score_learning(learning: LearningEntry, cwd: str, now: Optional[datetime] = None) -> int:
    """Recency (decays weekly), project-scope match, and manual-source boosts."""
    recency = max(0, 10 - days_since(learning.created, now) // 7)
    scope_boost = (
        5
        if learning.scope == "project" and learning.project_path and cwd.startswith(learning.project_path)
        else 0
    )
    manual_boost = 2 if learning.source == "manual" else 0
    return recency + scope_boost + manual_boost


def rank_learnings(brain: MaterializedBrain, cwd: str, now: Optional[datetime] = None) -> list[LearningEntry]:
    # Newest first, then a stable sort by score keeps newest-first on ties
    by_created = sorted(brain.learnings, key=lambda l: l.created, reverse=True)
    return sorted(by_created, key=lambda l: score_learning(l, cwd, now), reverse=True)


def best_context(brain: MaterializedBrain, cwd: str):
    """Longest-prefix context whose path contains ``cwd``."""
    matching = [c for c in brain.contexts if cwd.startswith(c.path)]
    return max(matching, key=lambda c: len(c.path), default=None)


def _take_until_budget(lines: list[str], budget: int) -> tuple[list[str], int]:
    taken: list[str] = []
    used = 0
    for line in lines:
        t = approx_tokens(line + "\n")
        if used + t > budget and taken:
            return taken, len(lines) - len(taken)
        taken.append(line)
        used += t
    return taken, 0


def _section(header: str, lines: list[str], budget: int) -> str:
    taken, omitted = _take_until_budget(lines, budget - approx_tokens(header + "\n"))
    out = [header, *taken]
    if omitted:
        out.append(f"(…{omitted} more omitted)")
    return "\n".join(out)


def _behavior_lines(brain: MaterializedBrain) -> list[str]:
    lines = []
    for category, label in (("do", "Do"), ("dont", "Don't"), ("value", "Values")):
        texts = [b.text for b in brain.behaviors if b.category == category]
        if texts:
            lines.append(f"**{label}:** {'. '.join(texts)}")
    return lines


def _preference_lines(brain: MaterializedBrain) -> list[str]:
    by_category: dict[str, list[str]] = {}
    for p in brain.preferences:
        by_category.setdefault(p.category, []).append(p.text)
    return [f"**{cat}:** {'. '.join(items)}" for cat, items in sorted(by_category.items())]


def _keyed_section(header: str, values: dict[str, str]) -> Optional[str]:
    if not values:
        return None
    return "\n".join([header, *(f"- {k}: {v}" for k, v in values.items())])


def build_prompt(
    brain: MaterializedBrain,
    cwd: str = "",
    budget: int = DEFAULT_BUDGET,
    now: Optional[datetime] = None,
) -> str:
    """Render the snapshot as markdown for an LLM system prompt.

    Sections get a share of ``budget`` (in approximate tokens); whatever a
    section leaves unused flows to learnings. Returns "" when there is nothing
    to say. Pure: never touches the log.
    """
    context = best_context(brain, cwd)
    if not (
        brain.behaviors
        or brain.preferences
        or context
        or brain.learnings
        or brain.identity
        or brain.user
    ):
        return ""

    sections: list[str] = []
    remaining = budget - approx_tokens(MEMORY_HEADER)

    for header, values in (("## Identity", brain.identity_values()), ("## User", brain.user_values())):
        rendered = _keyed_section(header, values)
        if rendered:
            sections.append(rendered)
            remaining -= approx_tokens(rendered)

    remaining = max(0, remaining)
    shares = {name: math.floor(remaining * w) for name, w in SECTION_WEIGHTS.items()}
    learnings_budget = shares["learnings"]

    def spend(header: str, lines: list[str], share: int) -> None:
        nonlocal learnings_budget
        if not lines:
            learnings_budget += share
            return
        rendered = _section(header, lines, share)
        sections.append(rendered)
        learnings_budget += max(0, share - approx_tokens(rendered))

    spend("## Behavior", _behavior_lines(brain), shares["behavior"])
    spend("## Preferences", _preference_lines(brain), shares["preferences"])
    if context:
        spend(f"## Project: {context.project}", context.content.split("\n"), shares["context"])
    else:
        learnings_budget += shares["context"]

    if brain.learnings:
        lines = [f"- {l.text}" for l in rank_learnings(brain, cwd, now)]
        sections.append(_section("## Learnings", lines, learnings_budget))

    return MEMORY_HEADER + "\n\n".join(sections)


def injected_ids(
    brain: MaterializedBrain,
    cwd: str = "",
    budget: int = DEFAULT_BUDGET,
    now: Optional[datetime] = None,
) -> set[str]:
    """Ids of entries that build_prompt would include for the same inputs."""
    ids: set[str] = set()
    if not build_prompt(brain, cwd, budget, now):
        return ids

    ids.update(e.id for e in brain.identity.values())
    ids.update(e.id for e in brain.user.values())

    remaining = budget - approx_tokens(MEMORY_HEADER)
    for header, values in (("## Identity", brain.identity_values()), ("## User", brain.user_values())):
        rendered = _keyed_section(header, values)
        if rendered:
            remaining -= approx_tokens(rendered)
    remaining = max(0, remaining)
    shares = {name: math.floor(remaining * w) for name, w in SECTION_WEIGHTS.items()}
    learnings_budget = shares["learnings"]

    if brain.behaviors:
        used = approx_tokens("## Behavior\n")
        for b in brain.behaviors:
            t = approx_tokens(b.text + "\n")
            if used + t > shares["behavior"] and ids:
                break
            ids.add(b.id)
            used += t
        learnings_budget += max(0, shares["behavior"] - used)
    else:
        learnings_budget += shares["behavior"]

    if brain.preferences:
        used = approx_tokens("## Preferences\n")
        by_category: dict[str, list] = {}
        for p in brain.preferences:
            by_category.setdefault(p.category, []).append(p)
        for cat, prefs in sorted(by_category.items()):
            t = approx_tokens(f"**{cat}:** {'. '.join(p.text for p in prefs)}\n")
            if used + t > shares["preferences"]:
                break
            ids.update(p.id for p in prefs)
            used += t
        learnings_budget += max(0, shares["preferences"] - used)
    else:
        learnings_budget += shares["preferences"]

    context = best_context(brain, cwd)
    if context:
        ids.add(context.id)
        used = approx_tokens(f"## Project: {context.project}\n{context.content}")
        learnings_budget += max(0, shares["context"] - used)
    else:
        learnings_budget += shares["context"]

    used = approx_tokens("## Learnings\n")
    for l in rank_learnings(brain, cwd, now):
        t = approx_tokens(f"- {l.text}\n")
        if used + t > learnings_budget and ids:
            break
        ids.add(l.id)
        used += t

    return ids
