"""Log sanitizer: secrets and PII never reach log output."""

from insight_api.utils.sanitize import MAX_STR_LOG, is_sensitive_key, sanitize_obj, sanitize_str


def test_bearer_tokens_are_redacted():
    assert sanitize_str("Authorization: Bearer eyJhbGciOi.xyz") == "Authorization: [REDACTED]"


def test_key_value_secrets_are_redacted():
    out = sanitize_str("retry with api_key=Ab12Cd34 and token=zzz")
    assert "Ab12Cd34" not in out
    assert "zzz" not in out


def test_long_strings_are_truncated_with_digest():
    out = sanitize_str("x" * (MAX_STR_LOG + 1))
    assert out.startswith("[TRUNCATED len=")


def test_nested_sensitive_keys_are_redacted():
    data = {"project": {"api_key": "secret", "name": "Site"}, "emails": [{"email": "a@b.c"}]}
    out = sanitize_obj(data)
    assert out["project"]["api_key"] == "[REDACTED]"
    assert out["project"]["name"] == "Site"
    assert out["emails"][0]["email"] == "[REDACTED]"


def test_sensitive_key_lookup_is_case_insensitive():
    assert is_sensitive_key("Authorization")
    assert is_sensitive_key("billing_email")
    assert not is_sensitive_key("org_id")
