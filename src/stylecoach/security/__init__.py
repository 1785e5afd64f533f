"""Security utilities -- prompt injection detection, input validation at the store boundary."""
from .prompt_guard import detect_injection_attempt, sanitize_for_prompt
from .validators import (
    ValidationError,
    validate_category_name,
    validate_in_choices,
    validate_length,
    validate_not_empty,
    validate_string_list,
)
