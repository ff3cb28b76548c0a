# ballotbox/security/input_validator.py

import re
import base64
import binascii
import bleach
from datetime import date, datetime
from typing import Dict, Optional

from ballotbox.election.errors import NoSelection, ValidationError

# Input validation and sanitization for election requests. Everything here
# runs before the store is touched and raises ValidationError on bad input.

class InputValidator:
    def __init__(self, max_photo_bytes=2 * 1024 * 1024):
        self.allowed_html_tags = ['b', 'i', 'em', 'strong', 'p', 'br']
        self.allowed_html_attributes = {}
        self.max_photo_bytes = max_photo_bytes

        self.patterns = {
            'date': re.compile(r'^\d{4}-\d{2}-\d{2}$'),
            'integer': re.compile(r'^[+-]?\d+$'),
            'xss_script': re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL),
            'xss_event': re.compile(r'\bon\w+\s*=', re.IGNORECASE)
        }

    def clean_text(self, input_str, field='value', max_length=255):
        # Plain-text fields are stored as given; queries are parameterised.
        if not isinstance(input_str, str):
            raise ValidationError(f"{field} must be a string")
        input_str = input_str.strip()
        if len(input_str) > max_length:
            raise ValidationError(f"{field} must be at most {max_length} characters")
        return input_str

    def sanitize_string(self, input_str, field='value', max_length=255, allow_html=False):
        input_str = self.clean_text(input_str, field=field, max_length=max_length)
        sanitized = re.sub(self.patterns['xss_script'], '', input_str)
        sanitized = re.sub(self.patterns['xss_event'], '', sanitized)
        tags = self.allowed_html_tags if allow_html else []
        sanitized = bleach.clean(sanitized, tags=tags, attributes=self.allowed_html_attributes, strip=True)
        sanitized = sanitized.strip()
        if len(sanitized) > max_length:
            raise ValidationError(f"{field} must be at most {max_length} characters")
        return sanitized

    def require_string(self, input_str, field, max_length=255):
        value = self.clean_text(input_str, field=field, max_length=max_length)
        if not value:
            raise ValidationError(f"{field} cannot be empty")
        return value

    def validate_position_name(self, name):
        if name is None:
            raise ValidationError("Position name cannot be empty")
        return self.require_string(name, 'Position name')

    def validate_password(self, password):
        # Passwords are stored and compared as given; only presence is checked.
        if not isinstance(password, str) or not password:
            raise ValidationError("Password cannot be empty")
        if len(password) > 200:
            raise ValidationError("Password must be at most 200 characters")
        return password

    def parse_int(self, value, field):
        if isinstance(value, bool):
            raise ValidationError(f"Invalid {field}")
        if isinstance(value, int):
            return value
        if isinstance(value, str) and self.patterns['integer'].match(value.strip()):
            return int(value.strip())
        raise ValidationError(f"Invalid {field}")

    def parse_id(self, value, field='id'):
        parsed = self.parse_int(value, field)
        if parsed <= 0:
            raise ValidationError(f"Invalid {field}")
        return parsed

    def parse_age(self, value):
        age = self.parse_int(value, 'age')
        if age <= 0 or age > 150:
            raise ValidationError("Invalid age")
        return age

    def parse_date(self, value, field='date of birth'):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if not isinstance(value, str) or not self.patterns['date'].match(value.strip()):
            raise ValidationError(f"Invalid {field}, expected YYYY-MM-DD")
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"Invalid {field}, expected YYYY-MM-DD")

    def parse_bool(self, value, field):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ('true', '1', 'yes'):
            return True
        if isinstance(value, str) and value.strip().lower() in ('false', '0', 'no'):
            return False
        raise ValidationError(f"Invalid {field}, expected true or false")

    def validate_photo(self, photo: Optional[bytes]) -> Optional[bytes]:
        if photo is None:
            return None
        if not isinstance(photo, (bytes, bytearray)):
            raise ValidationError("Photo must be bytes")
        if not photo:
            raise ValidationError("Photo cannot be empty")
        if len(photo) > self.max_photo_bytes:
            raise ValidationError(f"Photo exceeds {self.max_photo_bytes} bytes")
        return bytes(photo)

    def decode_photo(self, encoded):
        if encoded is None:
            return None
        if not isinstance(encoded, str):
            raise ValidationError("Photo must be base64 encoded")
        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("Photo must be base64 encoded")
        return self.validate_photo(raw)

    def validate_selections(self, selections) -> Dict[str, int]:
        """Normalise a ballot into {position name: candidate id}."""
        if selections is None:
            raise NoSelection()
        if not isinstance(selections, dict):
            raise ValidationError("Selections must map positions to candidate ids")

        ballot = {}
        for position, candidate_id in selections.items():
            # An unselected position is allowed and simply skipped.
            if candidate_id is None:
                continue
            name = self.validate_position_name(position)
            if name in ballot:
                raise ValidationError(f"More than one candidate selected for {name}")
            ballot[name] = self.parse_id(candidate_id, 'candidate id')
        if not ballot:
            raise NoSelection()
        return ballot
