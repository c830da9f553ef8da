"""Recognize X12 content and its transaction set before parsing."""

from edi_parser import MIN_DOCUMENT_LENGTH, detect_delimiters, remove_crlf


def detect_format(content):
    """Return 'x12' when the content opens with an ISA header, else None."""
    if not content or not content.strip():
        return None

    stripped = content.lstrip("\ufeff").strip()
    if stripped[:3].upper() == "ISA" and len(stripped) >= MIN_DOCUMENT_LENGTH:
        return "x12"
    return None


def detect_x12_type(content):
    """For X12 content, return the ST01 transaction set code (e.g. '855') or None."""
    stripped = remove_crlf(content.lstrip("\ufeff").strip())
    if len(stripped) < MIN_DOCUMENT_LENGTH:
        return None

    delimiters = detect_delimiters(stripped)
    for seg in stripped.split(delimiters.segment):
        parts = seg.strip().split(delimiters.field)
        if parts[0].upper() == "ST" and len(parts) > 1:
            return parts[1]
    return None
