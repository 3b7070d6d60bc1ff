import math

import pytest

from cmcd_client.cmcd_parser import decode_cmcd, parse_cmcd_from_query_string, parse_cmcd_value
from cmcd_client.models import CmcdData, ObjectType, StreamingFormat, StreamType
from cmcd_client.serializer import append_query_to_uri, serialize, to_headers, to_query


FULL = CmcdData(
    sid="abc",
    br=3200,
    bl=12345,
    ot=ObjectType.MUXED,
    mtp=25400,
    su=True,
    d=4004.4,
    tb=6000,
    cid="movie",
    sf=StreamingFormat.DASH,
    st=StreamType.VOD,
    pr=1.5,
    v=2,
    bs=True,
)


def test_serialize_full_payload() -> None:
    assert serialize(FULL) == (
        'bl=12300,br=3200,bs,cid="movie",d=4004,mtp=25400,ot=av,pr=1.5,'
        'sf=d,sid="abc",st=v,su,tb=6000,v=2'
    )


def test_serialize_keys_sorted() -> None:
    keys = [token.split("=", 1)[0] for token in serialize(FULL).split(",")]
    assert keys == sorted(keys)


def test_serialize_drops_defaults() -> None:
    assert serialize({"v": 1, "pr": 1, "br": 500}) == "br=500"


def test_serialize_token_and_flag() -> None:
    assert serialize({"ot": "v", "su": True}) == "ot=v,su"
    assert serialize(CmcdData(ot=ObjectType.VIDEO, su=True)) == "ot=v,su"


def test_serialize_unknown_tokens_pass_through() -> None:
    assert serialize({"ot": "x", "sf": "z", "st": "l"}) == "ot=x,sf=z,st=l"
    assert to_headers({"ot": "x"}) == {"CMCD-Object": "ot=x"}


def test_serialize_drops_non_finite_numbers() -> None:
    data = CmcdData(br=math.inf, bl=-math.inf, mtp=math.inf, d=4000, sid="x")
    assert serialize(data) == 'd=4000,sid="x"'


def test_serialize_drops_invalid_values() -> None:
    data = CmcdData(br=math.nan, cid="", su=False, bs=None, sid="x")
    assert serialize(data) == 'sid="x"'
    assert serialize(None) == ""


def test_serialize_rounding() -> None:
    # half up, not half to even
    assert serialize(CmcdData(br=2.5)) == "br=3"
    assert serialize(CmcdData(bl=150)) == "bl=200"
    assert serialize(CmcdData(mtp=249.99)) == "mtp=200"
    assert serialize(CmcdData(d=4000.0)) == "d=4000"


def test_serialize_playback_rate() -> None:
    assert serialize(CmcdData(pr=0)) == "pr=0"
    assert serialize(CmcdData(pr=2.0)) == "pr=2"
    assert serialize(CmcdData(pr=1.0)) == ""


def test_serialize_escapes_quotes() -> None:
    assert serialize(CmcdData(cid='a"b')) == 'cid="a\\"b"'


def test_serialize_url_encodes_next_object() -> None:
    assert serialize(CmcdData(nor="../seg 2.m4s")) == 'nor="..%2Fseg%202.m4s"'


def test_serialize_custom_keys() -> None:
    data = CmcdData.from_dict({"com.example-flag": True, "com.example-name": "x", "com.example-n": 7})
    assert data.custom == {"com.example-flag": True, "com.example-name": "x", "com.example-n": 7}
    assert serialize(data) == 'com.example-flag,com.example-n=7,com.example-name="x"'


def test_to_headers_groups() -> None:
    data = CmcdData(
        br=3200, d=4000, ot=ObjectType.VIDEO, tb=6000,
        bl=5000, mtp=25400, su=True,
        cid="c", sid="s", sf=StreamingFormat.DASH, st=StreamType.VOD, pr=1, v=1,
        bs=True,
    )
    assert to_headers(data) == {
        "CMCD-Object": "br=3200,d=4000,ot=v,tb=6000",
        "CMCD-Request": "bl=5000,mtp=25400,su",
        "CMCD-Session": 'cid="c",sf=d,sid="s",st=v',
        "CMCD-Status": "bs",
    }


def test_to_headers_skips_empty_groups() -> None:
    assert to_headers(CmcdData(v=1, pr=1, su=False)) == {}
    assert to_headers(CmcdData(ot=ObjectType.MANIFEST)) == {"CMCD-Object": "ot=m"}


def test_to_headers_custom_keys_go_to_request() -> None:
    data = CmcdData.from_dict({"com.example-id": "x", "br": 100})
    assert to_headers(data) == {
        "CMCD-Object": "br=100",
        "CMCD-Request": 'com.example-id="x"',
    }


def test_to_query() -> None:
    data = CmcdData(ot=ObjectType.VIDEO, sid="abc", su=True)
    assert to_query(data) == "CMCD=ot%3Dv%2Csid%3D%22abc%22%2Csu"


def test_to_query_decodes_to_serialized_pairs() -> None:
    query = to_query(FULL)
    decoded = decode_cmcd(parse_cmcd_from_query_string(query))
    assert decoded == decode_cmcd(parse_cmcd_value(serialize(FULL)))
    assert decoded["bl"] == 12300
    assert decoded["sid"] == "abc"
    assert decoded["su"] is True
    assert decoded["pr"] == 1.5


@pytest.mark.parametrize(
    "uri, query, expected",
    [
        ("http://a/b?x=1", "CMCD=foo", "http://a/b?x=1&CMCD=foo"),
        ("http://a/b", "CMCD=foo", "http://a/b?CMCD=foo"),
        ("http://a/b", "", "http://a/b"),
        ("offline:ABCD/1234", "CMCD=foo", "offline:ABCD/1234"),
    ],
)
def test_append_query_to_uri(uri: str, query: str, expected: str) -> None:
    assert append_query_to_uri(uri, query) == expected
