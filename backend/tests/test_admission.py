from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest

from trackfinder.core.errors import TokenAlreadyUsed, TokenInvalid, ValidationError
from trackfinder.services.admission import AdmissionControl


def test_admit_then_consume_then_second_admit_fails(services):
    services.tokens.insert("a@x.com", "ABC123")

    token = services.admission.admit("a@x.com", "ABC123")
    assert token.used is False

    services.admission.consume(token)

    with pytest.raises(TokenAlreadyUsed):
        services.admission.admit("a@x.com", "ABC123")

    stored = services.tokens.get(token.id)
    assert stored.used is True
    assert stored.used_at is not None


@pytest.mark.parametrize(
    "identity,secret",
    [
        ("a@x.com", "abc123"),  # secret is case-sensitive
        ("A@x.com", "ABC123"),  # identity is not normalized
        ("a@x.com ", "ABC123"),
        ("b@x.com", "ABC123"),
        ("", "ABC123"),
        ("a@x.com", ""),
    ],
)
def test_admit_requires_exact_match(services, identity, secret):
    services.tokens.insert("a@x.com", "ABC123")
    with pytest.raises(TokenInvalid):
        services.admission.admit(identity, secret)


def test_failed_admission_does_not_mutate_token(services):
    token = services.tokens.insert("a@x.com", "ABC123")
    with pytest.raises(TokenInvalid):
        services.admission.admit("a@x.com", "WRONG")
    assert services.tokens.get(token.id).used is False


def test_consume_is_single_winner_under_concurrency(services):
    token = services.tokens.insert("a@x.com", "ABC123")
    admitted = [services.admission.admit("a@x.com", "ABC123") for _ in range(8)]

    def attempt(t):
        try:
            services.admission.consume(t)
            return True
        except TokenAlreadyUsed:
            return False

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, admitted))

    assert results.count(True) == 1
    assert services.tokens.get(token.id).used is True


def test_issue_creates_unused_token_and_notifies(services):
    notifier = Mock()
    admission = AdmissionControl(services.tokens, notifier)

    token = admission.issue(" artist@example.com ")

    assert token.owner_identity == "artist@example.com"
    assert token.used is False
    assert len(token.secret) >= 16
    notifier.send_upload_token.assert_called_once_with(token)
    assert admission.admit("artist@example.com", token.secret).id == token.id


def test_issue_rejects_blank_identity(services):
    with pytest.raises(ValidationError):
        services.admission.issue("   ")
