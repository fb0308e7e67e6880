"""
Tests for parsing model output into a decision.
"""

import pytest

from services.bot_decisions import (
    PARSE_FALLBACK_TEXT,
    ActionType,
    CreatePostAction,
    PollDraft,
    RemoveContentAction,
    ReplyAction,
    VotePollAction,
    extract_json_object,
    parse_decision,
)
from services.bot_errors import ParseError


def test_extracts_object_from_fenced_output():
    raw = 'Sure!\n```json\n{"action": "REPLY", "reply_text": "Hi {there}"}\n```\nDone.'
    assert extract_json_object(raw) == {"action": "REPLY", "reply_text": "Hi {there}"}


@pytest.mark.parametrize("raw", ["", "no json here", "{not: valid}", "[1, 2]"])
def test_extract_rejects_non_objects(raw):
    with pytest.raises(ParseError):
        extract_json_object(raw)


def test_malformed_output_becomes_fallback_reply():
    decision = parse_decision("I think you should vote for Red")
    assert decision == ReplyAction(PARSE_FALLBACK_TEXT)
    assert decision.action_type == ActionType.REPLY


def test_reply_without_text_uses_fallback():
    assert parse_decision('{"action": "REPLY"}') == ReplyAction(PARSE_FALLBACK_TEXT)


def test_unknown_action_is_a_reply():
    decision = parse_decision('{"action": "DANCE", "reply_text": "💃"}')
    assert decision == ReplyAction("💃")


def test_create_post_with_poll():
    decision = parse_decision("""{
        "action": "create_post",
        "reply_text": "Made it!",
        "post_data": {"title": "Best editor?", "content": "Let us know.", "tags": ["tools", null]},
        "poll_data": {"options": ["Vim", "", "VS Code"]}
    }""")
    assert isinstance(decision, CreatePostAction)
    assert decision.title == "Best editor?"
    assert decision.tags == ("tools",)
    assert decision.reply_text == "Made it!"
    # Question defaults to the title
    assert decision.poll == PollDraft("Best editor?", ("Vim", "VS Code"))


def test_create_post_without_content_is_a_reply():
    decision = parse_decision('{"action": "CREATE_POST", "reply_text": "ok", "post_data": {"title": "T"}}')
    assert decision == ReplyAction("ok")


def test_vote_option_id_coercion():
    assert parse_decision('{"action": "VOTE_POLL", "poll_vote_option_id": "12"}').option_id == 12
    assert parse_decision('{"action": "VOTE_POLL", "poll_vote_option_id": 12.0}').option_id == 12
    assert parse_decision('{"action": "VOTE_POLL", "poll_vote_option_id": true}').option_id is None
    assert parse_decision('{"action": "VOTE_POLL", "poll_vote_option_id": "twelve"}').option_id is None


def test_vote_and_remove_variants():
    vote = parse_decision('{"action": "VOTE_POLL", "poll_vote_option_id": 3, "poll_vote_comment": "Red!"}')
    assert vote == VotePollAction(option_id=3, comment="Red!")
    remove = parse_decision('{"action": "REMOVE_CONTENT", "reply_text": "Removed spam."}')
    assert remove == RemoveContentAction(reply_text="Removed spam.")
