import asyncio

import pytest

from conftest import make_match, make_message, settle, ts

from matchchat.schemas.conversation import MatchStatus
from matchchat.services.conversation_builder import build_conversation, build_conversations, sort_conversations


@pytest.mark.asyncio
async def test_build_conversation_joins_profile_message_and_unread(fetcher):
    match = make_match("m1", a="U", b="X", created=5)
    fetcher.last_messages["m1"] = make_message("m1", created=10)
    fetcher.unread["m1"] = 3

    convo = await build_conversation(match, "U", fetcher)

    assert convo.match_id == "m1"
    assert convo.user_id == "X"
    assert convo.user.display_name == "Xena"
    assert convo.user.photo_url == "https://cdn.example.com/x.jpg"
    assert convo.last_message.id == "m1-msg-10"
    assert convo.unread_count == 3
    assert convo.updated_at == ts(10)


@pytest.mark.asyncio
async def test_counterpart_is_resolved_from_either_side(fetcher):
    match = make_match("m1", a="X", b="U")

    convo = await build_conversation(match, "U", fetcher)

    assert convo.user_id == "X"
    assert ("unread", "m1") in fetcher.calls


@pytest.mark.asyncio
async def test_no_messages_uses_match_creation_time(fetcher):
    convo = await build_conversation(make_match("m2", created=5), "U", fetcher)

    assert convo.last_message is None
    assert convo.updated_at == ts(5)
    assert convo.preview == "Start a conversation!"


@pytest.mark.asyncio
async def test_failed_profile_read_falls_back_to_unknown(fetcher):
    fetcher.failures[("user", "X")] = RuntimeError("profile service down")

    convo = await build_conversation(make_match("m2"), "U", fetcher)

    assert convo.user.id == "X"
    assert convo.user.display_name == "Unknown"
    assert convo.user.photo_url is None


@pytest.mark.asyncio
async def test_missing_profile_falls_back_to_unknown(fetcher):
    convo = await build_conversation(make_match("m3", b="ghost"), "U", fetcher)

    assert convo.user.display_name == "Unknown"
    assert convo.user.photo_url is None


@pytest.mark.asyncio
async def test_failed_last_message_read_leaves_it_empty(fetcher):
    fetcher.failures[("last_message", "m1")] = TimeoutError()

    convo = await build_conversation(make_match("m1", created=7), "U", fetcher)

    assert convo.last_message is None
    assert convo.updated_at == ts(7)


@pytest.mark.asyncio
async def test_failed_unread_read_defaults_to_zero(fetcher):
    fetcher.unread["m1"] = 4
    fetcher.failures[("unread", "m1")] = ConnectionError("lost")

    convo = await build_conversation(make_match("m1"), "U", fetcher)

    assert convo.unread_count == 0


@pytest.mark.asyncio
async def test_negative_unread_count_is_clamped_to_zero(fetcher):
    fetcher.unread["m1"] = -2

    convo = await build_conversation(make_match("m1"), "U", fetcher)

    assert convo.unread_count == 0


@pytest.mark.asyncio
async def test_rejects_match_that_is_not_matched(fetcher):
    with pytest.raises(ValueError):
        await build_conversation(make_match("m1", status=MatchStatus.pending), "U", fetcher)
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_rejects_observer_outside_the_match(fetcher):
    with pytest.raises(ValueError):
        await build_conversation(make_match("m1", a="X", b="Y"), "U", fetcher)


@pytest.mark.asyncio
async def test_reads_fan_out_across_fields_and_matches(fetcher):
    fetcher.gate = asyncio.Event()
    matches = [make_match(f"m{i}", b="X") for i in range(4)]

    task = asyncio.create_task(build_conversations(matches, "U", fetcher))
    await settle()

    # every read is in flight before any of them completes
    assert len(fetcher.calls) == 12
    assert not task.done()

    fetcher.gate.set()
    result = await task
    assert len(result) == 4


@pytest.mark.asyncio
async def test_build_conversations_skips_unrelated_and_unmatched(fetcher):
    matches = [
        make_match("m1", a="U", b="X"),
        make_match("m2", a="X", b="Y"),
        make_match("m3", a="U", b="Z", status=MatchStatus.unmatched),
    ]

    result = await build_conversations(matches, "U", fetcher)

    assert [c.match_id for c in result] == ["m1"]


@pytest.mark.asyncio
async def test_build_conversations_orders_by_activity(fetcher):
    # match m1 has a message at t=10, m2 has none and was created at t=5
    fetcher.last_messages["m1"] = make_message("m1", created=10)
    matches = [make_match("m2", b="Y", created=5), make_match("m1", b="X", created=1)]

    result = await build_conversations(matches, "U", fetcher)

    assert [(c.match_id, c.updated_at) for c in result] == [("m1", ts(10)), ("m2", ts(5))]


@pytest.mark.asyncio
async def test_build_is_deterministic(fetcher):
    fetcher.last_messages["b"] = make_message("b", created=3)
    matches = [make_match("c", created=3), make_match("a", created=3), make_match("b", created=1)]

    first = await build_conversations(matches, "U", fetcher)
    second = await build_conversations(list(reversed(matches)), "U", fetcher)

    assert first == second


@pytest.mark.asyncio
async def test_sort_breaks_ties_by_match_id(fetcher):
    convos = [
        await build_conversation(make_match(mid, created=created), "U", fetcher)
        for mid, created in [("m3", 5), ("m1", 5), ("m2", 9), ("m0", 1)]
    ]

    ordered = sort_conversations(convos)

    assert [c.match_id for c in ordered] == ["m2", "m1", "m3", "m0"]
    for earlier, later in zip(ordered, ordered[1:]):
        assert earlier.updated_at >= later.updated_at
