"""
Input Validation Utilities

Validation for user inputs:
- Phone number validation (Indian mobile format)
- Name and category normalization
- Monetary amounts (2 decimal places, Decimal based)
- Text sanitization for injection prevention
"""
import re
from decimal import Decimal, InvalidOperation


class ValidationPatterns:
    """Regex patterns for validation"""

    # Indian mobile numbers: 10 digits starting 6-9, optional +91 / 91 / 0 prefix
    PHONE_INDIA = re.compile(r"^(?:\+91|91|0)?[6-9]\d{9}$")

    # International phone (E.164 format)
    PHONE_INTERNATIONAL = re.compile(r"^\+[1-9]\d{6,14}$")

    NAME = re.compile(r"^[\w\s\-\'\.&]{2,100}$", re.UNICODE)

    # קטגוריות שירות: אותיות, ספרות, רווח, מקף וקו תחתון
    CATEGORY = re.compile(r"^[a-z0-9][a-z0-9 _\-]{0,49}$")

    SQL_INJECTION_PATTERNS = [
        re.compile(r"--\s*$|/\*|\*/", re.IGNORECASE),
        re.compile(r"['\"]\s*(OR|AND)\s+['\"]?\w*['\"]?\s*=", re.IGNORECASE),
        re.compile(r";\s*(SELECT|INSERT|UPDATE|DELETE|DROP|ALTER|CREATE|TRUNCATE)\b", re.IGNORECASE),
        re.compile(r"\bUNION\s+(ALL\s+)?SELECT\b", re.IGNORECASE),
    ]

    XSS_PATTERNS = [
        re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
        re.compile(r"javascript:", re.IGNORECASE),
        re.compile(r"\bon\w+=", re.IGNORECASE),
        re.compile(r"<iframe", re.IGNORECASE),
    ]


class PhoneNumberValidator:
    """Phone number validation and normalization"""

    @staticmethod
    def validate(phone: str, allow_international: bool = True) -> bool:
        """
        Validate phone number format.

        Args:
            phone: Phone number to validate
            allow_international: Allow E.164 numbers outside India

        Returns:
            True if valid, False otherwise
        """
        if not phone:
            return False

        cleaned = re.sub(r"[\s\-]", "", phone)

        if ValidationPatterns.PHONE_INDIA.match(cleaned):
            return True

        if allow_international and ValidationPatterns.PHONE_INTERNATIONAL.match(cleaned):
            return True

        return False

    @staticmethod
    def normalize(phone: str) -> str:
        """Normalize to +91XXXXXXXXXX (international numbers are left as is)"""
        cleaned = re.sub(r"[^\d+]", "", phone)

        if cleaned.startswith("+"):
            return cleaned
        if len(cleaned) == 10:
            return "+91" + cleaned
        if len(cleaned) == 11 and cleaned.startswith("0"):
            return "+91" + cleaned[1:]
        if len(cleaned) == 12 and cleaned.startswith("91"):
            return "+" + cleaned
        return cleaned

    @staticmethod
    def mask(phone: str) -> str:
        """Mask phone number for logging (privacy)"""
        if len(phone) < 4:
            return "****"
        return phone[:-4] + "****"


class TextSanitizer:
    """Text sanitization for security"""

    @staticmethod
    def sanitize(text: str, max_length: int = 1000) -> str:
        """
        Sanitize text input for safe storage.

        Trims whitespace, enforces max length, removes null bytes and
        collapses repeated spaces. Does NOT HTML escape.
        """
        if not text:
            return ""

        sanitized = text.strip()[:max_length]
        sanitized = sanitized.replace("\x00", "")
        return re.sub(r" +", " ", sanitized)

    @staticmethod
    def check_for_injection(text: str) -> tuple[bool, str | None]:
        """
        Check text for potential injection attacks.

        Returns:
            Tuple of (is_safe, detected_pattern)
        """
        if not text:
            return True, None

        for pattern in ValidationPatterns.SQL_INJECTION_PATTERNS:
            if pattern.search(text):
                return False, "SQL injection pattern detected"

        for pattern in ValidationPatterns.XSS_PATTERNS:
            if pattern.search(text):
                return False, "XSS pattern detected"

        return True, None


class NameValidator:
    """Name validation utilities"""

    MIN_LENGTH = 2
    MAX_LENGTH = 100

    @staticmethod
    def validate(name: str) -> tuple[bool, str | None]:
        """
        Validate name format.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not name:
            return False, "Name is required"

        name = name.strip()

        if len(name) < NameValidator.MIN_LENGTH:
            return False, f"Name too short (minimum {NameValidator.MIN_LENGTH} characters)"

        if len(name) > NameValidator.MAX_LENGTH:
            return False, f"Name too long (maximum {NameValidator.MAX_LENGTH} characters)"

        if not ValidationPatterns.NAME.match(name):
            return False, "Name contains invalid characters"

        return True, None


class CategoryValidator:
    """Service category keys: משמשים גם כמפתח לטבלת המחירים"""

    @staticmethod
    def normalize(category: str) -> str:
        return re.sub(r"\s+", " ", (category or "").strip().lower())

    @staticmethod
    def validate(category: str) -> tuple[bool, str | None]:
        normalized = CategoryValidator.normalize(category)
        if not normalized:
            return False, "Category is required"
        if not ValidationPatterns.CATEGORY.match(normalized):
            return False, "Category contains invalid characters"
        return True, None


class AmountValidator:
    """Monetary amount validation"""

    CENT = Decimal("0.01")

    @staticmethod
    def to_decimal(amount: Decimal | float | int | str) -> Decimal:
        """המרה ל-Decimal דרך str"""
        if isinstance(amount, Decimal):
            return amount
        try:
            return Decimal(str(amount))
        except InvalidOperation as exc:
            raise ValueError(f"Not a valid amount: {amount!r}") from exc

    @staticmethod
    def validate(
        amount: Decimal,
        min_value: Decimal = Decimal("0.01"),
        max_value: Decimal = Decimal("100000.00")
    ) -> tuple[bool, str | None]:
        """
        Validate monetary amount.

        Args:
            amount: Amount to validate
            min_value: Minimum allowed value
            max_value: Maximum allowed value

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not amount.is_finite():
            return False, "Amount must be a finite number"

        if amount < min_value:
            return False, f"Amount must be at least {min_value}"

        if amount > max_value:
            return False, f"Amount cannot exceed {max_value}"

        if amount != amount.quantize(AmountValidator.CENT):
            return False, "Amount cannot have more than 2 decimal places"

        return True, None


# Pydantic field validators for reuse
def phone_validator(v: str | None) -> str | None:
    """Pydantic field validator for phone numbers"""
    if v is None:
        return None
    if not PhoneNumberValidator.validate(v):
        raise ValueError("Invalid phone number format")
    return PhoneNumberValidator.normalize(v)


def name_validator(v: str | None) -> str | None:
    """Pydantic field validator for names"""
    if v is None:
        return None
    is_valid, error = NameValidator.validate(v)
    if not is_valid:
        raise ValueError(error)
    return TextSanitizer.sanitize(v.strip(), max_length=NameValidator.MAX_LENGTH)


def category_validator(v: str) -> str:
    """Pydantic field validator for service categories"""
    is_valid, error = CategoryValidator.validate(v)
    if not is_valid:
        raise ValueError(error)
    return CategoryValidator.normalize(v)


def sanitized_text_validator(v: str | None, max_length: int = 1000) -> str | None:
    """Pydantic field validator for sanitized text"""
    if v is None:
        return None
    is_safe, pattern = TextSanitizer.check_for_injection(v)
    if not is_safe:
        raise ValueError(f"Invalid input: {pattern}")
    return TextSanitizer.sanitize(v, max_length)
