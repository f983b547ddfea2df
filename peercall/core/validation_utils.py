"""
Validation utilities for signaling request bodies.
"""

from typing import Dict, Any, List, Optional

from .exceptions import ValidationError


class ValidationUtils:
    """Common validation utilities."""

    @staticmethod
    def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> Optional[str]:
        """Validate that all required fields are present in the data."""
        missing_fields = [field for field in required_fields if field not in data or data[field] is None]
        if missing_fields:
            return f"Missing required fields: {', '.join(missing_fields)}"
        return None

    @staticmethod
    def validate_string_fields(data: Dict[str, Any], fields: List[str]) -> Optional[str]:
        """Validate that the given fields hold strings."""
        wrong = [field for field in fields if not isinstance(data.get(field), str)]
        if wrong:
            return f"Fields must be strings: {', '.join(wrong)}"
        return None

    @classmethod
    def require(cls, data: Any, required_fields: List[str]) -> Dict[str, str]:
        """Return the required string fields of a request body or raise ValidationError."""
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")

        error = cls.validate_required_fields(data, required_fields)
        if error is None:
            error = cls.validate_string_fields(data, required_fields)
        if error:
            raise ValidationError(error, {"fields": required_fields})

        return {field: data[field] for field in required_fields}
