"""Validation of relevance queries before any external call is made.

Two layers:

* **Shape** -- a non-empty topic, at least one non-blank document id, no
  duplicate ids, sane term counts.
* **Safety** -- free-text instructions are screened for script tags,
  injection fragments, shell commands, fenced code blocks and clusters of
  security-related vocabulary.  Instructions are later embedded and shown
  to an LLM, so anything resembling executable content is rejected.

A failed check raises :class:`~src.utils.errors.QueryValidationError`
with a message suitable for showing to the end user.
"""

from __future__ import annotations

import re

import structlog

from src.models.retrieval import RelevanceQuery
from src.utils.errors import QueryValidationError

logger = structlog.get_logger(logger_name=__name__)

MAX_INSTRUCTIONS_LENGTH = 1000
MAX_TOPIC_LENGTH = 500
MAX_SUBJECT_TERMS = 50
_SUSPICIOUS_KEYWORD_LIMIT = 3

_UNSAFE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        # Script tags and executable code
        r"<script.*?>.*?</script>",
        r"</?script>",
        r"eval\s*\(",
        r"exec\s*\(",
        r"function\s*\(",
        r"setTimeout\s*\(",
        r"setInterval\s*\(",
        # SQL injection
        r"'\s*OR\s*'1'\s*=\s*'1",
        r"'\s*;\s*DROP\s+TABLE",
        r"'\s*;\s*DELETE\s+FROM",
        r"'\s*;\s*INSERT\s+INTO",
        # Shell commands
        r"\bshell\s*\.",
        r"\brm\s+-rf",
        r"\bdel\s+/[a-z]",
        r"\bformat\s+[a-z]:",
        # Runtime escapes
        r"\bnewFunction\s*\(",
        r"\bObject\s*\.\s*constructor\s*\.\s*constructor",
        r"\b(fetch|import|require)\s*\(",
        r"\bprocess\s*\.\s*env",
        r"\bdocument\s*\.\s*(write|cookie)",
        r"\bwindow\s*\.\s*(location|open)",
    )
)

_CODE_FENCES = (
    "```js",
    "```javascript",
    "```php",
    "```python",
    "```ruby",
    "```bash",
    "```sh",
    "```sql",
    "```java",
    "```c",
    "```cpp",
    "```csharp",
    "```go",
)

# Each may be legitimate on its own (e.g. a security course); several
# together are treated as an attempt to steer the model.
_SUSPICIOUS_KEYWORDS = (
    "hack",
    "exploit",
    "bypass",
    "inject",
    "malicious",
    "vulnerability",
    "attack",
    "trojan",
    "virus",
    "worm",
    "backdoor",
    "rootkit",
    "keylogger",
    "ransomware",
    "ssh",
    "sudo",
    "chmod",
    "chown",
    "passwd",
    "token",
    "firebase",
    "api key",
    "secret key",
    "password",
    "authorization",
    "bearer",
    "credential",
)

UNSAFE_PATTERN_MESSAGE = "Instructions contain potentially unsafe code patterns."
CODE_BLOCK_MESSAGE = "Instructions should not contain code blocks."
SUSPICIOUS_TERMS_MESSAGE = "Instructions contain multiple suspicious security-related terms."
TOO_LONG_MESSAGE = (
    f"Instructions are too long. Please limit to {MAX_INSTRUCTIONS_LENGTH} characters."
)


def check_instructions(instructions: str | None) -> str | None:
    """Screen free-text instructions.

    Returns ``None`` when they are acceptable (empty input included),
    otherwise the user-facing rejection message.
    """
    if not instructions or not instructions.strip():
        return None

    for pattern in _UNSAFE_PATTERNS:
        if pattern.search(instructions):
            return UNSAFE_PATTERN_MESSAGE

    lowered = instructions.lower()
    if any(fence in lowered for fence in _CODE_FENCES):
        return CODE_BLOCK_MESSAGE

    suspicious = sum(1 for kw in _SUSPICIOUS_KEYWORDS if kw in lowered)
    if suspicious >= _SUSPICIOUS_KEYWORD_LIMIT:
        return SUSPICIOUS_TERMS_MESSAGE

    if len(instructions) > MAX_INSTRUCTIONS_LENGTH:
        return TOO_LONG_MESSAGE

    return None


def validate_instructions(instructions: str | None) -> None:
    """Raise :class:`QueryValidationError` if *instructions* are unsafe."""
    message = check_instructions(instructions)
    if message is not None:
        logger.warning("instructions_rejected", reason=message)
        raise QueryValidationError(message=message)


def validate_query(query: RelevanceQuery) -> RelevanceQuery:
    """Validate *query* and return it with ids and terms tidied.

    Raises
    ------
    QueryValidationError
        On a malformed scope or unsafe instructions.
    """
    topic = query.topic.strip()
    if not topic:
        raise QueryValidationError(message="A topic is required.")
    if len(topic) > MAX_TOPIC_LENGTH:
        raise QueryValidationError(
            message=f"Topic is too long. Please limit to {MAX_TOPIC_LENGTH} characters."
        )

    if not query.document_ids:
        raise QueryValidationError(message="At least one document must be selected.")
    document_ids = [d.strip() for d in query.document_ids]
    if any(not d for d in document_ids):
        raise QueryValidationError(message="Document ids must not be blank.")
    if len(set(document_ids)) != len(document_ids):
        raise QueryValidationError(message="Document ids must be unique.")

    subject_terms = [s.strip() for s in query.subject_terms if s and s.strip()]
    if len(subject_terms) > MAX_SUBJECT_TERMS:
        raise QueryValidationError(
            message=f"Too many subjects selected (maximum {MAX_SUBJECT_TERMS})."
        )

    validate_instructions(query.instructions)

    return query.model_copy(
        update={
            "topic": topic,
            "document_ids": document_ids,
            "subject_terms": subject_terms,
        }
    )


def validate_subject_ids(subject_ids: list[str]) -> list[str]:
    """Check stored-subject ids before they are looked up; return them stripped."""
    cleaned = [s.strip() for s in subject_ids]
    if any(not s for s in cleaned):
        raise QueryValidationError(message="Subject ids must not be blank.")
    if len(set(cleaned)) != len(cleaned):
        raise QueryValidationError(message="Subject ids must be unique.")
    if len(cleaned) > MAX_SUBJECT_TERMS:
        raise QueryValidationError(
            message=f"Too many subjects selected (maximum {MAX_SUBJECT_TERMS})."
        )
    return cleaned
