from datetime import timedelta

import pytest

from errors import TooSoon
from otp import ALPHABET, CODE_LENGTH, utcnow


def test_generate_code_format(issuer):
    for _ in range(50):
        code, expires_at = issuer.generate()
        assert len(code) == CODE_LENGTH
        assert set(code) <= set(ALPHABET)


def test_alphabet_has_no_confusable_characters():
    for ch in "IO01":
        assert ch not in ALPHABET


def test_generate_expires_one_hour_from_now(issuer, clock):
    issued = issuer.generate()
    code, expiry = issued
    assert len(code) == CODE_LENGTH
    assert expiry == clock.now + timedelta(hours=1)
    assert issuer.issued_at(issued) == clock.now


def test_utcnow_is_timezone_aware():
    assert utcnow().utcoffset() == timedelta(0)


def test_reissue_inside_cooldown_is_too_soon(issuer, clock):
    first = issuer.generate()
    clock.advance(seconds=10)
    with pytest.raises(TooSoon) as info:
        issuer.reissue(issuer.issued_at(first))
    assert info.value.retry_after == 20


def test_reissue_after_cooldown(issuer, clock):
    first = issuer.generate()
    clock.advance(seconds=30)
    second = issuer.reissue(issuer.issued_at(first))
    assert issuer.issued_at(second) == clock.now
    assert second.expires_at == clock.now + timedelta(hours=1)


def test_reissue_without_previous_issue(issuer, clock):
    assert issuer.issued_at(issuer.reissue(None)) == clock.now
