"""Tests for log sanitization."""

from __future__ import annotations

from bankidkit.logging.sanitize import mask_personal_number, sanitize_for_logs


class TestMaskPersonalNumber:
    def test_last_four_masked(self):
        assert mask_personal_number("199001011234") == "19900101****"

    def test_short_value(self):
        assert mask_personal_number("123") == "****"


class TestSanitizeForLogs:
    def test_start_request(self):
        payload = {
            "endUserIp": "192.0.2.10",
            "personalNumber": "199001011234",
            "userVisibleData": "UGF5IDEwMCBTRUs=",
            "userNonVisibleData": "aGlkZGVu",
            "requirement": {"cardReader": "class1"},
        }
        out = sanitize_for_logs(payload)
        assert out == {
            "endUserIp": "192.0.2.10",
            "personalNumber": "19900101****",
            "userVisibleData": "[REDACTED]",
            "userNonVisibleData": "[REDACTED]",
            "requirement": {"cardReader": "class1"},
        }
        assert payload["personalNumber"] == "199001011234"

    def test_start_response_secrets(self):
        out = sanitize_for_logs(
            {
                "orderRef": "ref-1",
                "autoStartToken": "ast",
                "qrStartToken": "qst",
                "qrStartSecret": "qss",
            }
        )
        assert out["orderRef"] == "ref-1"
        assert {out[k] for k in ("autoStartToken", "qrStartToken", "qrStartSecret")} == {
            "[REDACTED]"
        }

    def test_nested_completion_data(self):
        out = sanitize_for_logs(
            {
                "completionData": {
                    "user": {"personalNumber": "190000000000", "name": "Karl"},
                    "signature": "PD94bWw=",
                    "ocspResponse": "MIIH",
                }
            }
        )
        data = out["completionData"]
        assert data["user"] == {"personalNumber": "19000000****", "name": "Karl"}
        assert data["signature"] == "[REDACTED]"
        assert data["ocspResponse"] == "[REDACTED]"

    def test_empty_secret_left_alone(self):
        assert sanitize_for_logs({"userVisibleData": ""}) == {"userVisibleData": ""}

    def test_free_text_numbers_masked(self):
        assert sanitize_for_logs("user 199001011234 signed") == "user 19900101**** signed"

    def test_longer_digit_runs_untouched(self):
        assert sanitize_for_logs("ref 1234567890123") == "ref 1234567890123"

    def test_lists_and_scalars(self):
        assert sanitize_for_logs([{"qrStartSecret": "x"}, 5, None]) == [
            {"qrStartSecret": "[REDACTED]"},
            5,
            None,
        ]
