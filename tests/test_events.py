import pytest

from relystore.events import (
    Event,
    Filter,
    event_matches_filter,
    is_addressable_kind,
    is_ephemeral_kind,
    is_replaceable_kind,
)


def make_event(**overrides):
    fields = dict(
        id="abcdef" + "0" * 58,
        pubkey="123456" + "f" * 58,
        created_at=1000,
        kind=1,
        tags=[["e", "test-tag"], ["p", "someone"]],
        content="hello",
        sig="s",
    )
    fields.update(overrides)
    return Event(**fields)


def test_event_dict_round_trip():
    event = make_event()
    assert Event.from_dict(event.to_dict()) == event


def test_event_tags_become_lists_in_dict():
    data = make_event().to_dict()
    assert data["tags"] == [["e", "test-tag"], ["p", "someone"]]
    assert data["kind"] == 1


def test_event_tags_are_normalised_to_tuples():
    event = make_event()
    assert event.tags == (("e", "test-tag"), ("p", "someone"))


def test_filter_from_dict_reads_tag_keys():
    flt = Filter.from_dict(
        {"ids": ["ab"], "kinds": [1, 2], "#e": ["x"], "since": 5, "limit": 3}
    )
    assert flt.ids == ("ab",)
    assert flt.kinds == (1, 2)
    assert flt.tags == {"e": ("x",)}
    assert flt.since == 5
    assert flt.until is None
    assert flt.limit == 3


def test_empty_filter_matches_everything():
    assert Filter().matches(make_event())


def test_id_prefix_matches():
    event = make_event()
    assert event_matches_filter(event, Filter(ids=["abc"]))
    assert not event_matches_filter(event, Filter(ids=["abd"]))
    assert event_matches_filter(event, Filter(ids=[event.id]))


def test_author_prefix_matches():
    event = make_event()
    assert event_matches_filter(event, Filter(authors=["1234"]))
    assert not event_matches_filter(event, Filter(authors=["9999"]))


def test_full_length_non_equal_id_does_not_match_as_prefix():
    event = make_event(id="a" * 70)
    assert not event_matches_filter(event, Filter(ids=["a" * 64]))


def test_kinds_filter():
    event = make_event(kind=7)
    assert Filter(kinds=[3, 7]).matches(event)
    assert not Filter(kinds=[3, 5]).matches(event)


def test_tag_filter():
    event = make_event()
    assert Filter(tags={"e": ["test-tag"]}).matches(event)
    assert not Filter(tags={"e": ["other"]}).matches(event)
    assert not Filter(tags={"t": ["test-tag"]}).matches(event)
    assert Filter(tags={"t": []}).matches(event)


def test_time_window():
    event = make_event(created_at=1000)
    assert Filter(since=1000, until=1000).matches(event)
    assert not Filter(since=1001).matches(event)
    assert not Filter(until=999).matches(event)


def test_tag_without_value_is_ignored():
    event = make_event(tags=[["e"]])
    assert not Filter(tags={"e": ["e"]}).matches(event)


@pytest.mark.parametrize("kind,expected", [(19999, False), (20000, True), (29999, True), (30000, False)])
def test_ephemeral_kind_bounds(kind, expected):
    assert is_ephemeral_kind(kind) is expected


@pytest.mark.parametrize("kind,expected", [(0, True), (1, False), (3, True), (10000, True), (20000, False)])
def test_replaceable_kinds(kind, expected):
    assert is_replaceable_kind(kind) is expected


@pytest.mark.parametrize("kind,expected", [(29999, False), (30000, True), (39999, True), (40000, False)])
def test_addressable_kind_bounds(kind, expected):
    assert is_addressable_kind(kind) is expected