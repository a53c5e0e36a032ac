"""
Relay wire message tests.
"""

import json

import pytest

from nostr_identity.codec.messages import (
    ClosedMessage,
    EoseMessage,
    NoticeMessage,
    OkMessage,
    UnknownMessage,
    check_ok,
    encode_message,
    event_message,
    parse_relay_message,
)
from nostr_identity.runtime.errors import ProtocolError

from helpers import mk_keypair, mk_signed


class TestClientFrames:

    def test_event_frame(self):
        signed = mk_signed(mk_keypair(1))
        frame = event_message(signed)
        assert frame[0] == "EVENT"
        assert frame[1] == signed.to_dict()

    def test_encoded_frame_is_compact(self):
        signed = mk_signed(mk_keypair(1))
        text = encode_message(event_message(signed))
        assert text.startswith('["EVENT",{"id":"')
        assert json.loads(text)[1]["sig"] == signed.sig


class TestParseRelayMessage:

    def test_ok_accepted(self):
        ok = parse_relay_message('["OK","abcd",true,""]')
        assert ok == OkMessage(event_id="abcd", accepted=True, message="")

    def test_ok_rejected_with_reason(self):
        ok = parse_relay_message('["OK","abcd",false,"duplicate: already have this event"]')
        assert not ok.accepted
        assert ok.reason == "duplicate"

    def test_reason_empty_without_prefix(self):
        assert OkMessage("abcd", False, "no prefix here").reason == ""

    def test_notice(self):
        assert parse_relay_message('["NOTICE","hello"]') == NoticeMessage("hello")

    def test_eose(self):
        assert parse_relay_message('["EOSE","sub1"]') == EoseMessage("sub1")

    def test_closed(self):
        assert parse_relay_message('["CLOSED","sub1","error: shutting down"]') == ClosedMessage(
            "sub1", "error: shutting down"
        )
        assert parse_relay_message('["CLOSED","sub1"]') == ClosedMessage("sub1")

    def test_bytes_input(self):
        assert parse_relay_message(b'["NOTICE","x"]') == NoticeMessage("x")

    def test_unknown_label_is_passed_through(self):
        message = parse_relay_message('["AUTH","challenge"]')
        assert message == UnknownMessage("AUTH", ["AUTH", "challenge"])

    def test_subscription_event_is_passed_through(self):
        message = parse_relay_message('["EVENT","sub1",{"id":"abcd"}]')
        assert isinstance(message, UnknownMessage)
        assert message.label == "EVENT"

    @pytest.mark.parametrize("text", [
        "not json",
        "{}",
        "[]",
        "[1]",
        '["OK","abcd",true]',
        '["OK","abcd","true",""]',
        '["OK",5,true,""]',
        '["OK","abcd",true,""," extra"]',
        '["NOTICE"]',
        '["NOTICE",5]',
        '["EOSE"]',
    ])
    def test_malformed(self, text):
        with pytest.raises(ProtocolError):
            parse_relay_message(text)


class TestCheckOk:

    def test_matching_id(self):
        ok = OkMessage("AbCd", True)
        assert check_ok(ok, "abcd") is ok

    def test_mismatched_id(self):
        with pytest.raises(ProtocolError) as exc_info:
            check_ok(OkMessage("abcd", True), "ef01")
        assert exc_info.value.details == {"expected": "ef01", "received": "abcd"}
