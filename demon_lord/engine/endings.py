"""Ending selection once the demon lord has arrived."""

from __future__ import annotations

from demon_lord.models import Ending, GameState

ENDINGS: dict[str, Ending] = {
    "hero": Ending(
        key="hero",
        title="英雄の凱旋",
        description="伝説の武器と村人の信頼を手に、あなたは魔王を退けた。",
    ),
    "sage": Ending(
        key="sage",
        title="賢者の勝利",
        description="鍛え上げた力と集めた知識が、魔王の弱点を暴いた。",
    ),
    "traitor": Ending(
        key="traitor",
        title="裏切り者の末路",
        description="村を欺いた者に、居場所は残されていなかった。",
    ),
    "deserter": Ending(
        key="deserter",
        title="逃亡者",
        description="何の備えもしないまま、あなたは村を後にした。",
    ),
    "resistance": Ending(
        key="resistance",
        title="村人の抵抗",
        description="村人たちと肩を並べ、最後まで抗い続けた。",
    ),
}


def determine_ending(state: GameState) -> Ending:
    """Pick the ending from story flags and reputation; first rule that holds wins."""
    flags = state.flags
    reputation = state.stats.reputation
    if flags.get("found_weapon") and reputation > 50:
        return ENDINGS["hero"]
    if flags.get("trained") and flags.get("gathered_info"):
        return ENDINGS["sage"]
    if reputation < -20:
        return ENDINGS["traitor"]
    if not flags.get("talked_to_elder") and not flags.get("searched_weapons"):
        return ENDINGS["deserter"]
    return ENDINGS["resistance"]
