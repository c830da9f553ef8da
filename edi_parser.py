"""Base EDI X12 primitives: delimiter detection, segment scanning and field tokenizing.

The ISA segment is fixed width, so the delimiters are read from fixed offsets
first; everything after that is parsed as a delimited token stream.
"""

from dataclasses import dataclass

# ISA segment is always exactly 106 characters (positions 0-105):
#   Position 3:   element separator
#   Position 105: segment terminator
FIELD_DELIMITER_OFFSET = 3
SEGMENT_DELIMITER_OFFSET = 105
MIN_DOCUMENT_LENGTH = SEGMENT_DELIMITER_OFFSET + 1


class X12ParseError(ValueError):
    """Base class for errors that abort the parse of one X12 document."""


class FormatError(X12ParseError):
    """The document cannot be read as X12 at all."""

    TOO_SHORT = "TOO_SHORT"

    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind


class MissingSegmentError(X12ParseError):
    """A segment required for the current transaction type was not found."""

    def __init__(self, tag, context=None):
        message = f"No {tag} segment found"
        if context is not None:
            message += f" (context: {context!r})"
        super().__init__(message)
        self.tag = tag
        self.context = context


class IncompleteSegmentError(X12ParseError):
    """A segment was found but carries fewer fields than required."""

    def __init__(self, tag, expected, found):
        super().__init__(
            f"Not enough fields in the {tag} segment: expected at least {expected}, found {found}"
        )
        self.tag = tag
        self.expected = expected
        self.found = found


@dataclass(frozen=True)
class DelimiterSet:
    field: str
    segment: str


def remove_crlf(content):
    """Strip every carriage return and line feed from the document."""
    return content.replace("\r", "").replace("\n", "")


def detect_delimiters(content):
    """Read the field and segment delimiters from the fixed-width ISA header."""
    if len(content) < MIN_DOCUMENT_LENGTH:
        raise FormatError(
            FormatError.TOO_SHORT,
            f"Document is too short to contain an ISA segment "
            f"({len(content)} characters, need {MIN_DOCUMENT_LENGTH})",
        )
    return DelimiterSet(
        field=content[FIELD_DELIMITER_OFFSET],
        segment=content[SEGMENT_DELIMITER_OFFSET],
    )


def find_segment(content, tag, delimiters, start=0, end=None):
    """Return the index of the first field of the next ``tag`` segment, or None.

    Looks for ``segment + tag + field`` at or after ``start``. A segment that
    opens the document (ISA) has no preceding segment delimiter and is matched
    only when scanning from the very beginning.
    """
    opener = tag + delimiters.field
    if start == 0 and content.startswith(opener):
        if end is None or len(opener) <= end:
            return len(opener)

    needle = delimiters.segment + opener
    if end is None:
        idx = content.find(needle, start)
    else:
        idx = content.find(needle, start, end)
    if idx == -1:
        return None
    return idx + len(needle)


def segment_end(content, start, delimiters):
    """Index of the segment delimiter terminating the segment that holds ``start``."""
    idx = content.find(delimiters.segment, start)
    return len(content) if idx == -1 else idx


def tokenize(content, start, delimiters):
    """Split one segment into its fields, starting just past the tag.

    Empty fields are kept: ``B||D`` yields ``["B", "", "D"]``.
    """
    return content[start:segment_end(content, start, delimiters)].split(delimiters.field)


def require_fields(tag, fields, minimum):
    if len(fields) < minimum:
        raise IncompleteSegmentError(tag, minimum, len(fields))
    return fields


def field_at(fields, index):
    """Return ``fields[index]`` or None when the segment is shorter."""
    return fields[index] if index < len(fields) else None


def safe_float(val, default=0.0):
    """Convert string to float, returning default on failure."""
    try:
        return float(val) if val else default
    except (ValueError, TypeError):
        return default


def format_edi_date(date_str):
    """Convert CCYYMMDD or YYMMDD date string to MM/DD/YYYY."""
    if not date_str:
        return ""
    date_str = date_str.strip()
    if len(date_str) == 8:
        return f"{date_str[4:6]}/{date_str[6:8]}/{date_str[0:4]}"
    elif len(date_str) == 6:
        year = int(date_str[0:2])
        century = "20" if year < 50 else "19"
        return f"{date_str[2:4]}/{date_str[4:6]}/{century}{date_str[0:2]}"
    return date_str
