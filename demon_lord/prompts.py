"""Handlebars prompt rendering for the content generators."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pybars

from demon_lord.models import MAX_DAYS, GameState

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}} — iterate over the last N items."""
    result = []
    for item in list(items)[-int(count):]:
        result.extend(options["fn"](item))
    return result


def _helper_signed(this, value):
    """{{signed n}} — render an integer with an explicit sign."""
    n = int(value)
    return f"+{n}" if n > 0 else str(n)


_HELPERS: dict[str, Callable] = {
    "last": _helper_last,
    "signed": _helper_signed,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def build_context(state: GameState, **extra: Any) -> dict[str, Any]:
    """Assemble template variables from the game state.

    `player`, `stats` and `day` are always present; anything passed in
    `extra` (action, narrative, npc, query, ...) is added on top.
    """
    stats = state.stats
    ctx: dict[str, Any] = {
        "day": state.current_day,
        "max_days": MAX_DAYS,
        "days_left": MAX_DAYS - state.current_day,
        "player": {
            "name": state.player_name,
            "role": state.player_role,
            "location": state.location,
        },
        "stats": stats.model_dump(),
        "inventory": [item.name for item in state.inventory],
        "flags": [name for name, on in state.flags.items() if on],
        "allies": list(stats.allies),
    }
    ctx.update(extra)
    return ctx


# ── Default templates ────────────────────────────────────

NARRATOR_PROMPT = """\
You are the narrator of a Japanese fantasy game. A demon lord will attack \
the village in {{max_days}} days; today is day {{day}} ({{days_left}} days left).

## Player
{{player.name}} ({{player.role}}) at {{player.location}}
Level {{stats.level}} / HP {{stats.health}} / STR {{stats.strength}} / \
KNW {{stats.knowledge}} / REP {{signed stats.reputation}} / {{stats.wealth}}G
{{#if inventory}}
Carrying: {{#last inventory 5}}{{this}} {{/last}}
{{/if}}
{{#if flags}}
Known facts: {{#each flags}}{{this}} {{/each}}
{{/if}}

## Action
{{{action}}}

Describe the outcome of this action in 2-4 short paragraphs of Japanese \
prose. Reflect the growing dread as the day count rises. Return only the \
narrative text.\
"""

CHOICES_PROMPT = """\
Day {{day}} of {{max_days}}. The player {{player.name}} ({{player.role}}) \
has just experienced:

{{{narrative}}}

Suggest 3 or 4 next actions in Japanese. Return JSON only:
{"choices": ["<action>", ...]}
Each entry may instead be an object:
{"id": "<slug>", "text": "<action>", "dayAdvance": <0-2>}\
"""

SPECIAL_EVENT_PROMPT = """\
Day {{day}} of {{max_days}}: {{title}}.
The player {{player.name}} ({{player.role}}) is in the village.

Write the announcement of this event in 2-3 sentences of Japanese. Return \
only the text.\
"""

NPC_PROMPT = """\
You are {{npc.name}}, {{npc.description}}
Speaking style: {{npc.style}}
Your relationship with {{player.name}} ({{player.role}}): \
affinity {{npc.affinity}}, trust {{npc.trust}}.
Day {{day}} of {{max_days}}; the demon lord arrives in {{days_left}} days.

The player says or does: {{{action}}}

Answer in character, in Japanese. Return JSON only:
{"response": "<your reply>",
 "stateChanges": {"reputation": <int>, "wealth": <int>, "strength": <int>, \
"knowledge": <int>, "flags": {"<flag>": true} },
 "relationship": {"affinity": <int delta>, "trust": <int delta>},
 "information": ["<fact the player learned>"]}
Omit keys that do not change.\
"""

SEARCH_PROMPT = """\
Research the following for a village preparing for a demon lord attack \
(day {{day}} of {{max_days}}):

{{{query}}}

Summarise the most useful findings in 3-5 bullet points.\
"""

SEARCH_INTEGRATION_PROMPT = """\
Day {{day}}. The mood in the village is {{mood}}.
Findings:
{{{findings}}}

Rewrite these findings as 1-2 sentences of in-world Japanese narration \
that the player {{player.name}} discovers. Return only the text.\
"""
