"""Stylist matcher."""

import pytest

from src.domain.salon import Stylist
from src.nlu.stylists import match_stylist

ROSTER = [Stylist(id="s1", name="Aisha Rahman"), Stylist(id="s2", name="Ben Carter")]


@pytest.mark.parametrize("message", [
    "anyone is fine", "no preference", "it doesn't matter", "whoever", "any stylist",
])
def test_any_stylist_marker(message):
    result = match_stylist(message, ROSTER)
    assert result.any_stylist
    assert result.stylist_id is None


def test_with_name():
    result = match_stylist("haircut with Ben please", ROSTER)
    assert (result.stylist_id, result.stylist_name) == ("s2", "Ben Carter")
    assert not result.auto_assigned


def test_full_name():
    assert match_stylist("can Aisha Rahman do it", ROSTER).stylist_id == "s1"


def test_first_name_whole_word_only():
    assert match_stylist("aisha", ROSTER).stylist_id == "s1"
    assert match_stylist("benefit", ROSTER) is None


def test_unknown_name_is_unspecified():
    assert match_stylist("with Carla", ROSTER) is None


def test_nothing_said():
    assert match_stylist("a haircut tomorrow", ROSTER) is None


def test_single_stylist_is_auto_assigned():
    result = match_stylist("a haircut tomorrow", [Stylist(id="solo", name="Dana")])
    assert result.stylist_id == "solo"
    assert result.auto_assigned


def test_any_beats_auto_assignment():
    assert match_stylist("anyone", [Stylist(id="solo", name="Dana")]).any_stylist
