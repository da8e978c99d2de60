"""Unit tests for API errors and input validation."""

import pytest

from app.errors import (
    ApiError,
    AuditExpired,
    MissingParameter,
    RateLimitExceeded,
    client_id_from_headers,
    internal_error_body,
    is_valid_email,
    is_valid_profile_url,
    mask_email,
    validate_required,
)


class TestApiError:
    def test_envelope(self):
        assert RateLimitExceeded().to_dict() == {
            "error": {
                "code": "RATE_LIMIT_EXCEEDED",
                "message": "Rate limit exceeded. You can only perform 3 audits per day.",
                "statusCode": 429,
            }
        }

    def test_custom_message(self):
        err = AuditExpired("gone")
        assert err.message == "gone"
        assert err.status_code == 410

    def test_internal_error_body(self):
        assert internal_error_body()["error"]["code"] == "INTERNAL_ERROR"
        assert ApiError().status_code == 500

    def test_validate_required_names_first_missing_field(self):
        with pytest.raises(MissingParameter) as exc_info:
            validate_required({"profileUrl": "x", "userEmail": ""}, ["profileUrl", "userEmail"])
        assert exc_info.value.message == "Missing required parameter: userEmail"


class TestProfileUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "https://www.psychologytoday.com/us/therapists/jane-doe",
            "https://www.psychologytoday.com/us/therapists/jane-doe-austin-tx/123456",
            "http://psychologytoday.com/profile/123456",
            "https://WWW.PsychologyToday.com/ca/therapists/john-roe",
        ],
    )
    def test_accepts_profile_pages(self, url: str):
        assert is_valid_profile_url(url)

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.psychologytoday.com/",
            "https://www.psychologytoday.com/us/therapists/",
            "https://psychologytoday.com.evil.example/us/therapists/jane-doe",
            "https://notpsychologytoday.com/us/therapists/jane-doe",
            "javascript:alert(1)",
            "",
        ],
    )
    def test_rejects_other_urls(self, url: str):
        assert not is_valid_profile_url(url)


class TestEmail:
    @pytest.mark.parametrize("email", ["jane@example.com", "j.d+audit@mail.example.co.uk"])
    def test_valid(self, email: str):
        assert is_valid_email(email)

    @pytest.mark.parametrize("email", ["", "jane", "jane@example", "jane doe@example.com", "@example.com"])
    def test_invalid(self, email: str):
        assert not is_valid_email(email)

    def test_mask(self):
        assert mask_email("jane@example.com") == "ja***@example.com"
        assert mask_email(None) is None


class TestClientId:
    def test_forwarded_for_first_hop(self):
        headers = {"x-forwarded-for": "203.0.113.7, 10.0.0.1", "x-real-ip": "10.0.0.2"}
        assert client_id_from_headers(headers, "127.0.0.1") == "203.0.113.7"

    def test_real_ip_then_peer(self):
        assert client_id_from_headers({"x-real-ip": " 10.0.0.2 "}, "127.0.0.1") == "10.0.0.2"
        assert client_id_from_headers({}, "127.0.0.1") == "127.0.0.1"
        assert client_id_from_headers({}, None) == "unknown"
