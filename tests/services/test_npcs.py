"""Tests for demon_lord.services.npcs."""

from unittest.mock import AsyncMock

import pytest

from demon_lord.engine.state import StateStore
from demon_lord.errors import GenerationError
from demon_lord.services.npcs import NPC_PROFILES, LLMNPCGenerator


@pytest.fixture
def state():
    return StateStore().new_game("Mia", "merchant")


def test_profiles_cover_routed_npcs():
    assert set(NPC_PROFILES) == {"Elder_Morgan", "Merchant_Grom", "Elara_Sage"}


async def test_prompt_includes_profile_and_relationship(state):
    llm = AsyncMock(return_value='{"response": "いらっしゃい"}')
    reply = await LLMNPCGenerator(llm)("Merchant_Grom", "剣を買いたい", state)

    assert reply == '{"response": "いらっしゃい"}'
    stage, prompt = llm.call_args[0]
    assert stage == "npc"
    assert "商人兼鍛冶屋グロム" in prompt
    assert "剣を買いたい" in prompt
    assert "trust 40" in prompt


async def test_unknown_npc_raises(state):
    llm = AsyncMock()
    with pytest.raises(GenerationError):
        await LLMNPCGenerator(llm)("Nobody", "hi", state)
    llm.assert_not_awaited()
