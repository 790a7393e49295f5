import pytest
from hypothesis import given
from hypothesis import strategies as st

from rpcconnect.header import (
    add_header,
    decode_binary_header,
    del_header,
    encode_binary_header,
    get_header,
    merge_headers,
    set_header,
)


@given(st.binary())
def test_binary_encoding_round_trip(data):
    encoded = encode_binary_header(data)
    assert "=" not in encoded
    assert decode_binary_header(encoded) == data


def test_encode_is_unpadded():
    assert encode_binary_header(b"hello") == "aGVsbG8"


def test_decode_accepts_padded_and_unpadded():
    assert decode_binary_header("aGVsbG8=") == b"hello"
    assert decode_binary_header("aGVsbG8") == b"hello"


@pytest.mark.parametrize("bad", ["a", "aGVs=G8", "!!!!", "aGVsbG8=="])
def test_decode_rejects_invalid(bad):
    with pytest.raises(ValueError):
        decode_binary_header(bad)


def test_header_merge():
    header = {"Foo": ["one"]}
    merge_headers(header, {"Foo": ["two"], "Bar": ["one"], "Baz": None})
    assert header == {"Foo": ["one", "two"], "Bar": ["one"], "Baz": []}


def test_merge_does_not_alias_source():
    source = {"Foo": ["a"]}
    into = {}
    merge_headers(into, source)
    into["Foo"].append("b")
    assert source == {"Foo": ["a"]}


def test_get_header():
    assert get_header(None, "Foo") == ""
    assert get_header({}, "Foo") == ""
    assert get_header({"Foo": []}, "Foo") == ""
    assert get_header({"Foo": ["x", "y"]}, "Foo") == "x"


def test_set_add_del():
    headers = {}
    add_header(headers, "Foo", "a")
    add_header(headers, "Foo", "b")
    assert headers == {"Foo": ["a", "b"]}
    set_header(headers, "Foo", "c")
    assert headers == {"Foo": ["c"]}
    del_header(headers, "Foo")
    del_header(headers, "Missing")
    assert headers == {}