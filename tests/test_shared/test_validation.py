"""Tests for shared validation utilities."""
import pytest
from datetime import date, datetime
from shared.validation import Validator, ValidationError


class TestValidator:
    """Test validation utilities."""

    def test_validate_required_success(self):
        """Test successful required field validation."""
        assert Validator.validate_required("test", "test_field") == "test"
        assert Validator.validate_required(123, "test_field") == 123

    def test_validate_required_failure(self):
        """Test required field validation failures."""
        with pytest.raises(ValidationError, match="test_field is required"):
            Validator.validate_required("", "test_field")

        with pytest.raises(ValidationError, match="test_field is required"):
            Validator.validate_required(None, "test_field")

        with pytest.raises(ValidationError, match="test_field is required"):
            Validator.validate_required("   ", "test_field")

    def test_validate_string_length(self):
        assert Validator.validate_string_length("  test ", "field", 1, 10) == "test"

        with pytest.raises(ValidationError, match="at least 5 characters"):
            Validator.validate_string_length("abc", "field", 5)

        with pytest.raises(ValidationError, match="no more than 3 characters"):
            Validator.validate_string_length("abcd", "field", 0, 3)

        with pytest.raises(ValidationError, match="must be a string"):
            Validator.validate_string_length(42, "field")

    def test_validate_choice(self):
        assert Validator.validate_choice("click", "action", ["click", "complete"]) == "click"
        with pytest.raises(ValidationError, match="action must be one of: click, complete"):
            Validator.validate_choice("share", "action", ["click", "complete"])

    def test_email(self):
        assert Validator.is_valid_email("pat@example.com")
        assert Validator.is_valid_email(" pat@example.com ")
        assert not Validator.is_valid_email("pat@example")
        assert not Validator.is_valid_email("pat example@x.com")
        assert not Validator.is_valid_email(None)

    def test_ids(self):
        assert Validator.is_valid_id("3f2b8c4e-1d2a-4b5c-9e8f-0a1b2c3d4e5f")
        assert Validator.is_valid_id("abc123XYZ")
        assert not Validator.is_valid_id("short")
        assert not Validator.is_valid_id("has spaces in it")
        assert not Validator.is_valid_id(12345678)

    def test_urls(self):
        assert Validator.is_valid_url("https://portal.example.com/project/abc")
        assert not Validator.is_valid_url("ftp://example.com/file")
        assert not Validator.is_valid_url("portal.example.com")


class TestPhoneNumbers:
    """Phone normalization to 10 US digits."""

    def test_ten_digits(self):
        assert Validator.normalize_phone("(555) 123-4567") == "5551234567"

    def test_country_code_is_stripped(self):
        assert Validator.normalize_phone("+1 555 123 4567") == "5551234567"

    def test_invalid_numbers(self):
        assert Validator.normalize_phone("555-1234") is None
        assert Validator.normalize_phone("25551234567") is None
        assert Validator.normalize_phone("") is None


class TestAccessCodes:
    def test_normalized(self):
        assert Validator.normalize_access_code("  ABCD-1234 ") == "abcd-1234"

    def test_length_band(self):
        with pytest.raises(ValidationError, match="Invalid token format"):
            Validator.normalize_access_code("abc")
        with pytest.raises(ValidationError, match="Invalid token format"):
            Validator.normalize_access_code("x" * 33)
        assert Validator.normalize_access_code("x" * 32) == "x" * 32

    def test_missing(self):
        with pytest.raises(ValidationError, match="Access token is required"):
            Validator.normalize_access_code(None)


class TestUploadInputs:
    def test_folder_default(self):
        assert Validator.validate_folder(None) == "uploads"
        assert Validator.validate_folder(" /projects/RV-1/ ") == "projects/RV-1"

    def test_folder_traversal(self):
        for folder in ("../etc", "a/../b", "a//b", "./x"):
            with pytest.raises(ValidationError):
                Validator.validate_folder(folder)

    def test_folder_dangerous_characters(self):
        with pytest.raises(ValidationError, match="Invalid characters in folder"):
            Validator.validate_folder("a;rm")

    def test_decode_base64(self):
        assert Validator.decode_base64("aGVsbG8=") == b"hello"
        assert Validator.decode_base64("data:text/plain;base64,aGVsbG8=") == b"hello"

        with pytest.raises(ValidationError, match="Invalid base64 fileData"):
            Validator.decode_base64("not base64!")
        with pytest.raises(ValidationError, match="must be a base64 string"):
            Validator.decode_base64(None)


class TestDatesAndText:
    def test_parse_date(self):
        assert Validator.parse_date("2025-03-14", "d") == date(2025, 3, 14)
        assert Validator.parse_date("2025-03-14T10:00:00Z", "d") == date(2025, 3, 14)
        assert Validator.parse_date(None, "d") is None
        with pytest.raises(ValidationError, match="d must be a date"):
            Validator.parse_date("March 14", "d")

    def test_parse_datetime(self):
        parsed = Validator.parse_datetime("2025-03-14T10:00:00Z", "ts")
        assert parsed == datetime.fromisoformat("2025-03-14T10:00:00+00:00")
        with pytest.raises(ValidationError, match="ts must be an ISO 8601 timestamp"):
            Validator.parse_datetime("yesterday", "ts")

    def test_sanitize_text(self):
        assert Validator.sanitize_text("plain text") == "plain text"
        assert Validator.sanitize_text("<b>bold</b> move") == "bold move"
        assert Validator.sanitize_text(None) is None
