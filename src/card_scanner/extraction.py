"""Regex extraction of contact channels from recognized text."""

import re
from collections.abc import Iterable

from card_scanner.validation import is_valid_email_format

# ASCII word boundaries, so addresses run into CJK text still match.
EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b", re.ASCII)
# Any run of 7+ digits and separators; filtered by digit count below.
PHONE_PATTERN = re.compile(r"\+?[0-9\s\-()]{7,}")
MIN_PHONE_DIGITS = 7


def extract_emails(text: str) -> list[str]:
    """
    Extract email addresses from text.

    Args:
        text: Free text, typically OCR output.

    Returns:
        Sorted, de-duplicated list of addresses that also pass the
        structural email check.
    """
    if not text:
        return []
    return sorted(
        {m.group(0) for m in EMAIL_PATTERN.finditer(text) if is_valid_email_format(m.group(0))}
    )


def extract_phone_numbers(text: str) -> list[str]:
    """
    Extract candidate phone numbers from text.

    This is a heuristic: long unrelated digit runs also match.

    Args:
        text: Free text, typically OCR output.

    Returns:
        Sorted, de-duplicated list of trimmed matches with at least
        seven digits.
    """
    if not text:
        return []
    numbers = set()
    # per line, so numbers on adjacent lines are not joined
    for line in text.splitlines():
        for match in PHONE_PATTERN.finditer(line):
            candidate = match.group(0).strip()
            if sum(ch.isdigit() for ch in candidate) >= MIN_PHONE_DIGITS:
                numbers.add(candidate)
    return sorted(numbers)


def extract_emails_from_texts(texts: Iterable[str]) -> list[str]:
    """Run extract_emails over several strings and merge the results."""
    found: set[str] = set()
    for text in texts:
        found.update(extract_emails(text))
    return sorted(found)


def extract_phone_numbers_from_texts(texts: Iterable[str]) -> list[str]:
    """Run extract_phone_numbers over several strings and merge the results."""
    found: set[str] = set()
    for text in texts:
        found.update(extract_phone_numbers(text))
    return sorted(found)
