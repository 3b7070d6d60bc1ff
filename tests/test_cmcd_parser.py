from cmcd_client.cmcd_parser import (
    decode_cmcd,
    decode_value,
    parse_cmcd_from_headers,
    parse_cmcd_from_path,
    parse_cmcd_from_query_string,
    parse_cmcd_value,
)


def test_single_query_param() -> None:
    qs = "foo=1&CMCD=br%3D3200%2Cot%3Dv%2Csu"
    assert parse_cmcd_from_query_string(qs) == {"br": "3200", "ot": "v", "su": ""}


def test_prefixed_query_params() -> None:
    assert parse_cmcd_from_query_string("cmcd.br=3200&cmcd.ot=v") == {"br": "3200", "ot": "v"}


def test_empty_query() -> None:
    assert parse_cmcd_from_query_string("") == {}
    assert parse_cmcd_from_query_string("a=1") == {}


def test_path_and_url() -> None:
    assert parse_cmcd_from_path("/vod/seg.m4s?CMCD=ot%3Dv") == {"ot": "v"}
    assert parse_cmcd_from_path("https://cdn.example/seg.m4s?x=1&CMCD=bl%3D2000") == {"bl": "2000"}
    assert parse_cmcd_from_path("/vod/seg.m4s") == {}


def test_quoted_value_with_comma() -> None:
    pairs = parse_cmcd_value('cid="a,b",br=10')
    assert pairs == {"cid": '"a,b"', "br": "10"}
    assert decode_cmcd(pairs) == {"cid": "a,b", "br": 10}


def test_headers() -> None:
    headers = {
        "CMCD-Object": "br=3200,ot=v",
        "cmcd-request": "su",
        "CMCD-Session": 'sid="abc"',
        "Content-Type": "video/mp4",
    }
    assert parse_cmcd_from_headers(headers) == {"br": "3200", "ot": "v", "su": "", "sid": '"abc"'}


def test_decode_value() -> None:
    assert decode_value("") is True
    assert decode_value('"a\\"b"') == 'a"b'
    assert decode_value("1.5") == 1.5
    assert decode_value("3200") == 3200
    assert decode_value("av") == "av"
