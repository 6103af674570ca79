"""Unit tests for identifier-space classification."""

import pytest

from reconciliation.identity import ACCOUNT_ID_PREFIX, is_account_id


@pytest.mark.parametrize("key", ["t2_abc", "t2_1q2w3e", "t2_"])
def test_t2_prefix_is_account_id(key):
    assert is_account_id(key) is True


@pytest.mark.parametrize("key", ["spez", "T2_abc", "xt2_abc", "t2abc", "t3_abc", ""])
def test_everything_else_is_username(key):
    """Prefix match is literal and case-sensitive; no normalization."""
    assert is_account_id(key) is False


def test_custom_prefix():
    assert is_account_id("acct-42", prefix="acct-") is True
    assert is_account_id("t2_abc", prefix="acct-") is False


def test_default_prefix():
    assert ACCOUNT_ID_PREFIX == "t2_"
