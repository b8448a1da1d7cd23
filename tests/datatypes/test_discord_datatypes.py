import pytest

from modshield.datatypes.discord_datatypes import (
    UserID,
    GuildID,
    ChannelID,
    MessageID,
)


class DummyObj:
    def __init__(self, id_val=None):
        self.id = id_val


def test_userid_from_int_and_str_equality_and_hash():
    u1 = UserID(12345)
    assert u1.to_int() == 12345
    assert str(u1) == "12345"

    u2 = UserID("12345")
    assert u1 == u2
    assert hash(u1) == hash(u2)
    assert {u1: "a"}[u2] == "a"

    # from_user helper
    u3 = UserID.from_user(DummyObj(id_val=111))  # type: ignore
    assert u3.to_int() == 111

    # equality with raw types
    assert u3 == 111
    assert u3 == "111"
    assert u3 != 112


def test_different_snowflake_types_never_compare_equal():
    assert UserID(1) != GuildID(1)
    assert ChannelID(5) != MessageID(5)


def test_copy_constructor_and_whitespace():
    original = ChannelID(" 987 ")
    assert ChannelID(original) == original
    assert repr(original) == "ChannelID('987')"


@pytest.mark.parametrize("bad", ["abc", "", 1.5, None, True])
def test_invalid_values_raise_value_error(bad):
    with pytest.raises(ValueError):
        UserID(bad)


@pytest.mark.parametrize("raw", ["123", "<@123>", "<@!123>", " <@123> "])
def test_parse_mention_accepts_ids_and_mentions(raw):
    assert UserID.parse_mention(raw) == UserID(123)


def test_parse_mention_rejects_garbage():
    with pytest.raises(ValueError):
        UserID.parse_mention("<@someone>")


def test_mention_format():
    assert UserID(42).mention == "<@42>"


def test_guild_from_guild():
    assert GuildID.from_guild(DummyObj(id_val=7)) == GuildID(7)  # type: ignore
