"""Input validation utilities."""
import re
import binascii
import base64
from datetime import date, datetime
from urllib.parse import urlparse
import bleach


class ValidationError(Exception):
    """Raised when input validation fails."""
    pass


class Validator:
    """Input validation utilities."""

    EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
    UUID_PATTERN = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE)
    SHORT_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{8,32}$')
    NON_DIGIT_PATTERN = re.compile(r'\D')

    ACCESS_CODE_MIN_LENGTH = 8
    ACCESS_CODE_MAX_LENGTH = 32

    @staticmethod
    def is_non_empty_string(value):
        return isinstance(value, str) and bool(value.strip())

    @staticmethod
    def is_valid_email(email):
        if not Validator.is_non_empty_string(email):
            return False
        return bool(Validator.EMAIL_PATTERN.match(email.strip()))

    @staticmethod
    def is_valid_id(value):
        """Accept a UUID or a short 8-32 character alphanumeric id."""
        if not isinstance(value, str):
            return False
        return bool(Validator.UUID_PATTERN.match(value) or Validator.SHORT_ID_PATTERN.match(value))

    @staticmethod
    def is_valid_url(url):
        if not Validator.is_non_empty_string(url):
            return False
        parsed = urlparse(url)
        return parsed.scheme in ('http', 'https') and bool(parsed.netloc)

    @staticmethod
    def phone_digits(phone):
        return Validator.NON_DIGIT_PATTERN.sub('', phone or '')

    @staticmethod
    def normalize_phone(phone):
        """Return a 10-digit US phone number, or None when the input is not one.

        Eleven digits with a leading country code of 1 are accepted and the
        1 is stripped.
        """
        if not Validator.is_non_empty_string(phone):
            return None
        digits = Validator.phone_digits(phone)
        if len(digits) == 10:
            return digits
        if len(digits) == 11 and digits.startswith('1'):
            return digits[1:]
        return None

    @staticmethod
    def normalize_access_code(code):
        """Trim and lower-case an access code, enforcing the 8-32 length band.

        Raises:
            ValidationError: If the code is not a string or is outside the band
        """
        if not isinstance(code, str):
            raise ValidationError("Access token is required")
        cleaned = code.strip().lower()
        if not Validator.ACCESS_CODE_MIN_LENGTH <= len(cleaned) <= Validator.ACCESS_CODE_MAX_LENGTH:
            raise ValidationError("Invalid token format")
        return cleaned

    @staticmethod
    def validate_required(value, field_name):
        """Validate that a required field is not empty."""
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{field_name} is required")
        return value

    @staticmethod
    def validate_string_length(value, field_name, min_length=0, max_length=None):
        """Validate string length constraints."""
        if not isinstance(value, str):
            raise ValidationError(f"{field_name} must be a string")

        value = value.strip()
        if len(value) < min_length:
            raise ValidationError(f"{field_name} must be at least {min_length} characters")

        if max_length and len(value) > max_length:
            raise ValidationError(f"{field_name} must be no more than {max_length} characters")

        return value

    @staticmethod
    def validate_choice(value, field_name, valid_choices):
        """Validate that value is in list of valid choices."""
        if value not in valid_choices:
            raise ValidationError(f"{field_name} must be one of: {', '.join(str(c) for c in valid_choices)}")
        return value

    @staticmethod
    def validate_folder(folder):
        """Normalize an upload folder and refuse traversal segments."""
        folder = (folder or '').strip().strip('/')
        if not folder:
            return 'uploads'
        segments = folder.split('/')
        if any(segment in ('', '.', '..') for segment in segments):
            raise ValidationError("Invalid folder")
        dangerous_chars = ['<', '>', '|', '&', ';', '$', '`', '\\']
        if any(char in folder for char in dangerous_chars):
            raise ValidationError("Invalid characters in folder")
        return folder

    @staticmethod
    def decode_base64(data, field_name='fileData'):
        """Decode a base64 payload, accepting an optional data-URL prefix."""
        if not isinstance(data, str):
            raise ValidationError(f"{field_name} must be a base64 string")
        if data.startswith('data:') and ',' in data:
            data = data.split(',', 1)[1]
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError(f"Invalid base64 {field_name}")

    @staticmethod
    def parse_date(value, field_name):
        if value is None or (isinstance(value, date) and not isinstance(value, datetime)):
            return value
        if isinstance(value, datetime):
            return value.date()
        try:
            return date.fromisoformat(str(value)[:10])
        except ValueError:
            raise ValidationError(f"{field_name} must be a date (YYYY-MM-DD)")

    @staticmethod
    def parse_datetime(value, field_name):
        if value is None or isinstance(value, datetime):
            return value
        try:
            return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f"{field_name} must be an ISO 8601 timestamp")

    @staticmethod
    def sanitize_text(text):
        """Strip all markup from free text.

        Skips parsing when there is nothing HTML-like in the input.
        """
        if not text:
            return text
        if '<' not in text and '>' not in text and '&' not in text:
            return text
        return bleach.clean(text, tags=[], attributes={}, strip=True)
