"""
协议编解码测试
"""

import struct

import pytest

from byond_protocol import (
    MAX_QUERY_SIZE,
    FramingError,
    QueryTooLarge,
    ResponseType,
    TopicError,
    UnrecognizedResponseType,
    decode_response,
    encode_request,
    encode_response_body,
    make_response_frame,
    normalize_query,
    parse_frame_header,
)


class TestEncodeRequest:
    """请求编码"""

    def test_status_exact_bytes(self):
        """?status 编码为逐字节确定的请求帧"""
        expected = bytes([
            0x00, 0x83,                    # 魔数
            0x00, 0x0D,                    # 5 + 7 + 1 = 13
            0x00, 0x00, 0x00, 0x00, 0x00,  # 填充
            0x3F, 0x73, 0x74, 0x61, 0x74, 0x75, 0x73,  # ?status
            0x00,                          # 终止符
        ])
        assert encode_request("?status") == expected

    @pytest.mark.parametrize("query", ["status", "players", "ping&key=abc", "", "a?b"])
    def test_missing_question_mark_is_prepended(self, query):
        assert encode_request(query) == encode_request("?" + query)

    def test_leading_question_mark_is_not_doubled(self):
        assert normalize_query("?status") == "?status"
        assert normalize_query("status") == "?status"

    def test_empty_query(self):
        assert encode_request("") == b'\x00\x83\x00\x07' + b'\x00' * 5 + b'?\x00'

    def test_length_counts_utf8_bytes(self):
        data = encode_request("?名字")
        query_bytes = "?名字".encode('utf-8')
        assert struct.unpack('>H', data[2:4])[0] == 5 + len(query_bytes) + 1
        assert data[9:-1] == query_bytes
        assert len(data) == 10 + len(query_bytes)

    def test_largest_query_fills_length_field(self):
        query = "?" + "a" * (MAX_QUERY_SIZE - 1)
        data = encode_request(query)
        assert struct.unpack('>H', data[2:4])[0] == 0xFFFF

    def test_query_too_large(self):
        """超过长度字段的查询报错，而不是截断长度"""
        query = "?" + "a" * MAX_QUERY_SIZE
        with pytest.raises(QueryTooLarge) as exc_info:
            encode_request(query)
        assert exc_info.value.size == MAX_QUERY_SIZE + 1
        assert isinstance(exc_info.value, TopicError)
        assert isinstance(exc_info.value, ValueError)


class TestDecodeResponse:
    """响应解码"""

    def test_string(self):
        assert decode_response(bytes([0x06, 0x68, 0x69, 0x00])) == "hi"

    def test_float(self):
        assert decode_response(b'\x2a' + struct.pack('<f', 1.5)) == 1.5

    def test_null(self):
        assert decode_response(b'\x00') is None

    def test_empty_string(self):
        assert decode_response(b'\x06\x00') == ""

    def test_utf8_string(self):
        body = b'\x06' + "Ünïcode 漢字".encode('utf-8') + b'\x00'
        assert decode_response(body) == "Ünïcode 漢字"

    def test_unrecognized_type(self):
        with pytest.raises(UnrecognizedResponseType) as exc_info:
            decode_response(b'\x01abc')
        assert exc_info.value.type_tag == 0x01

    def test_empty_body(self):
        with pytest.raises(FramingError):
            decode_response(b'')

    def test_truncated_float(self):
        with pytest.raises(FramingError):
            decode_response(b'\x2a\x00\x00')


class TestRoundTrip:
    """encode_response_body 与 decode_response 互逆"""

    @pytest.mark.parametrize("value", [None, 1.5, -0.25, 0.0, 3.0, 65536.0])
    def test_float_representable_values(self, value):
        assert decode_response(encode_response_body(value)) == value

    @pytest.mark.parametrize("value", ["", "hi", "a=1&b=2", "Ünïcode 漢字 😀"])
    def test_strings(self, value):
        assert decode_response(encode_response_body(value)) == value

    def test_string_with_nul_rejected(self):
        with pytest.raises(ValueError):
            encode_response_body("a\x00b")

    def test_unsupported_type_rejected(self):
        with pytest.raises(TypeError):
            encode_response_body(b"bytes")

    def test_tags(self):
        assert encode_response_body(None)[0] == ResponseType.NULL
        assert encode_response_body(1.0)[0] == ResponseType.FLOAT
        assert encode_response_body("x")[0] == ResponseType.STRING


class TestFrameHeader:
    """响应帧头"""

    def test_make_response_frame(self):
        frame = make_response_frame("hi")
        assert frame == b'\x00\x83\x00\x04\x06hi\x00'

    def test_parse_frame_header(self):
        assert parse_frame_header(b'\x00\x83\x01\x02') == (0x0083, 0x0102)

    def test_parse_short_header(self):
        with pytest.raises(FramingError):
            parse_frame_header(b'\x00\x83\x00')

    def test_oversized_body(self):
        with pytest.raises(FramingError):
            make_response_frame("a" * 0xFFFF)
