"""Parser for EDI 855 (Purchase Order Acknowledgment).

Header segments (ISA, GS, ST, BCT, BAK, REF, N1) are parsed in document order
into a TransactionHeader, then every PO1/ACK pair becomes a TransactionLine.
Each step takes the current ParseState and returns its value together with the
cursor at which the next step resumes.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from edi_parser import (
    MissingSegmentError,
    detect_delimiters,
    field_at,
    find_segment,
    remove_crlf,
    require_fields,
    segment_end,
    tokenize,
)

logger = logging.getLogger(__name__)

PURCHASE_ORDER_GROUP = "PR"
PRICE_CATALOG = "832"
PO_ACKNOWLEDGMENT = "855"
FUNCTIONAL_ACKNOWLEDGMENT = "997"

# N101 entity qualifiers
SELLING_PARTY = "SE"
BUYING_PARTY = "BY"
SHIP_TO = "ST"

# Product/service ID qualifiers
VENDOR_ITEM = "VN"
NDC_11 = "N4"

# Positions of the first qualifier of each qualifier/value pair
PO1_PAIR_POSITIONS = (5, 7, 9)
ACK_PAIR_POSITIONS = (6, 8, 10)

CTT_CONTEXT_LENGTH = 20


@dataclass(frozen=True)
class ParseState:
    content: str
    delimiters: object
    cursor: int = 0

    def at(self, cursor):
        return replace(self, cursor=cursor)

    def find(self, tag, start=None, end=None):
        return find_segment(
            self.content, tag, self.delimiters,
            self.cursor if start is None else start, end,
        )

    def fields(self, start):
        return tokenize(self.content, start, self.delimiters)

    def end_of(self, start):
        return segment_end(self.content, start, self.delimiters)


@dataclass
class TransactionHeader:
    isa05: Optional[str] = None
    isa06: Optional[str] = None
    isa07: Optional[str] = None
    isa08: Optional[str] = None
    isa13: Optional[str] = None
    isa15: Optional[str] = None
    gs01: Optional[str] = None
    gs02: Optional[str] = None
    gs03: Optional[str] = None
    st01: Optional[str] = None
    st02: Optional[str] = None
    ref02: Optional[str] = None
    bct06: Optional[str] = None
    bct10: Optional[str] = None
    bak03: Optional[str] = None
    bak04: Optional[str] = None
    selling_n104: Optional[str] = None
    buying_n104: Optional[str] = None
    ship_to_n104: Optional[str] = None
    ctt01: Optional[str] = None

    @property
    def account_number(self):
        """Account used for reporting: the buyer, falling back to ship-to."""
        return self.buying_n104 if self.buying_n104 is not None else self.ship_to_n104


@dataclass
class TransactionLine:
    po101: Optional[str] = None
    ordered_qty: Optional[str] = None
    ordered_item: Optional[str] = None
    ordered_ndc: Optional[str] = None
    ack_status: Optional[str] = None
    shipped_qty: Optional[str] = None
    shipped_item: Optional[str] = None
    shipped_ndc: Optional[str] = None


@dataclass
class Transaction:
    header: TransactionHeader
    lines: List[TransactionLine] = field(default_factory=list)


def parse_transaction(content):
    """Parse one 855 document into a Transaction.

    Raises an X12ParseError subclass when the document is unusable; there is
    no partial result.
    """
    content = remove_crlf(content)
    state = ParseState(content, detect_delimiters(content))
    header = TransactionHeader()

    state = _parse_isa(state, header)
    state = _parse_gs(state, header)
    if header.gs01 != PURCHASE_ORDER_GROUP:
        # Not a purchase-order functional group: nothing further to extract
        return Transaction(header)

    state = _parse_st(state, header)
    state = _parse_bct(state, header)
    state = _parse_bak(state, header)
    state = _parse_ref(state, header)
    state = _parse_n1s(state, header)
    lines, state = parse_line_items(state)
    _parse_ctt(state, header)
    return Transaction(header, lines)


def _locate(state, tag, minimum):
    start = state.find(tag)
    if start is None:
        raise MissingSegmentError(tag)
    return start, require_fields(tag, state.fields(start), minimum)


def _parse_isa(state, header):
    start, fields = _locate(state.at(0), "ISA", 14)
    header.isa05 = fields[4]
    header.isa06 = fields[5].strip()
    header.isa07 = fields[6]
    header.isa08 = fields[7].strip()
    header.isa13 = fields[12]
    header.isa15 = field_at(fields, 14)
    return state.at(state.end_of(start))


def _parse_gs(state, header):
    start, fields = _locate(state, "GS", 3)
    header.gs01, header.gs02, header.gs03 = fields[0], fields[1], fields[2]
    return state.at(state.end_of(start))


def _parse_st(state, header):
    start, fields = _locate(state, "ST", 2)
    header.st01, header.st02 = fields[0], fields[1]
    return state.at(state.end_of(start))


def _parse_bct(state, header):
    if header.st01 != PRICE_CATALOG:
        return state
    start, fields = _locate(state, "BCT", 10)
    header.bct06 = fields[5]
    header.bct10 = fields[9]
    return state.at(state.end_of(start))


def _parse_bak(state, header):
    if header.st01 != PO_ACKNOWLEDGMENT:
        return state
    start, fields = _locate(state, "BAK", 3)
    header.bak03 = fields[2]
    header.bak04 = field_at(fields, 3)
    return state.at(state.end_of(start))


def _next_segment_boundary(state, tag, start=None):
    """Index of the delimiter opening the next ``tag`` segment, or None."""
    found = state.find(tag, start=start)
    if found is None:
        return None
    return found - len(state.delimiters.segment + tag + state.delimiters.field)


def _parse_ref(state, header):
    # Only a header-level REF counts; line items may carry their own
    start = state.find("REF", end=_next_segment_boundary(state, "PO1"))
    if start is None:
        return state
    fields = state.fields(start)
    if len(fields) >= 2:
        header.ref02 = fields[1]
    return state.at(state.end_of(start))


def _parse_n1s(state, header):
    """Record the N104 account number of every SE/BY/ST party.

    The cursor is left where it was: N1 lookups run ahead of the line items.
    """
    start = state.find("N1")
    while start is not None:
        fields = state.fields(start)
        if len(fields) >= 4:
            _assign_party(header, fields[0].upper(), fields[3])
        start = state.find("N1", start=state.end_of(start))
    return state


def _assign_party(header, qualifier, account):
    attr = {
        SELLING_PARTY: "selling_n104",
        BUYING_PARTY: "buying_n104",
        SHIP_TO: "ship_to_n104",
    }.get(qualifier)
    if attr is None:
        return
    previous = getattr(header, attr)
    if previous is not None and previous != account:
        logger.debug("N1 %s repeated: %s replaces %s", qualifier, account, previous)
    setattr(header, attr, account)


def _parse_ctt(state, header):
    if header.st01 == FUNCTIONAL_ACKNOWLEDGMENT:
        # 997s carry no CTT segment
        header.ctt01 = "1"
        return state
    start = state.find("CTT")
    if start is None:
        context = state.content[state.cursor:state.cursor + CTT_CONTEXT_LENGTH]
        raise MissingSegmentError("CTT", context=context)
    fields = require_fields("CTT", state.fields(start), 1)
    header.ctt01 = fields[0]
    return state.at(state.end_of(start))


# ---------------------------------------------------------------------------
# PO1/ACK line items
# ---------------------------------------------------------------------------

def parse_line_items(state):
    """Parse every PO1/ACK pair from the cursor on, in document order."""
    lines = []
    start = state.find("PO1")
    while start is not None:
        lines.append(parse_line_item(state, start))
        state = state.at(state.end_of(start))
        start = state.find("PO1")
    return lines, state


def parse_line_item(state, start):
    """Build one TransactionLine from the PO1 whose first field is at ``start``."""
    line = TransactionLine()

    fields = state.fields(start)
    line.po101 = fields[0]
    line.ordered_qty = field_at(fields, 1)
    line.ordered_item, line.ordered_ndc = scan_product_ids(fields, PO1_PAIR_POSITIONS)

    # An ACK belongs to this line only if it comes before the next PO1
    ack_start = state.find("ACK", start=start, end=_next_segment_boundary(state, "PO1", start))
    if ack_start is not None:
        ack = state.fields(ack_start)
        if len(ack) >= 2:
            line.ack_status = ack[0]
            line.shipped_qty = ack[1]
            line.shipped_item, line.shipped_ndc = scan_product_ids(ack, ACK_PAIR_POSITIONS)

    # Whatever the ACK did not report was shipped as ordered
    if line.shipped_item is None:
        line.shipped_item = line.ordered_item
    if line.shipped_ndc is None:
        line.shipped_ndc = line.ordered_ndc
    if line.shipped_qty is None:
        line.shipped_qty = line.ordered_qty
    return line


def scan_product_ids(fields, positions):
    """Return (vendor item, NDC) from the qualifier/value pairs at ``positions``.

    A pair is only read when its value slot exists. Later pairs with the same
    qualifier replace earlier ones.
    """
    item = ndc = None
    for pos in positions:
        if pos + 1 >= len(fields):
            break
        qualifier, value = fields[pos], fields[pos + 1]
        if qualifier == VENDOR_ITEM:
            item = value
        elif qualifier == NDC_11:
            ndc = value
    return item, ndc
