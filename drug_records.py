"""Flatten a parsed 855 Transaction into one OrderedDrugRecord per line."""

import json
from dataclasses import asdict, dataclass, fields
from typing import Optional

# Record attribute -> JSON key
JSON_KEYS = {
    "isa_sender_id": "isaSenderId",
    "account_number": "accountNumber",
    "order_date": "orderDate",
    "purchase_order_number": "purchaseOrderNumber",
    "ordered_item": "orderedItem",
    "ordered_ndc": "orderedNDC",
    "ordered_quantity": "orderedQuantity",
    "shipped_item": "shippedItem",
    "shipped_ndc": "shippedNDC",
    "shipped_quantity": "shippedQuantity",
    "ack_status_code": "ackStatusCode",
    "account_state_code": "accountStateCode",
    "account_zip_code": "accountZipCode",
    "ordered_ndc_schedule": "orderedNDCSchedule",
    "ordered_ndc_opioid_flag": "orderedNDCOpioidFlag",
    "shipped_ndc_schedule": "shippedNDCSchedule",
    "shipped_ndc_opioid_flag": "shippedNDCOpioidFlag",
}
ATTRIBUTES = {key: attr for attr, key in JSON_KEYS.items()}


@dataclass(frozen=True)
class OrderedDrugRecord:
    isa_sender_id: Optional[str] = None
    account_number: Optional[str] = None
    order_date: Optional[str] = None
    purchase_order_number: Optional[str] = None
    ordered_item: Optional[str] = None
    ordered_ndc: Optional[str] = None
    ordered_quantity: Optional[str] = None
    shipped_item: Optional[str] = None
    shipped_ndc: Optional[str] = None
    shipped_quantity: Optional[str] = None
    ack_status_code: Optional[str] = None


@dataclass(frozen=True)
class EnrichedDrugRecord(OrderedDrugRecord):
    account_state_code: Optional[str] = None
    account_zip_code: Optional[str] = None
    ordered_ndc_schedule: Optional[str] = None
    ordered_ndc_opioid_flag: Optional[bool] = None
    shipped_ndc_schedule: Optional[str] = None
    shipped_ndc_opioid_flag: Optional[bool] = None


def build_ordered_drugs(transaction):
    """Return one OrderedDrugRecord per PO1/ACK line, in document order."""
    if transaction is None:
        return []
    header = transaction.header
    return [
        OrderedDrugRecord(
            isa_sender_id=header.isa06,
            account_number=header.account_number,
            order_date=header.bak04,
            purchase_order_number=header.bak03,
            ordered_item=line.ordered_item,
            ordered_ndc=line.ordered_ndc,
            ordered_quantity=line.ordered_qty,
            shipped_item=line.shipped_item,
            shipped_ndc=line.shipped_ndc,
            shipped_quantity=line.shipped_qty,
            ack_status_code=line.ack_status,
        )
        for line in transaction.lines
    ]


def record_to_dict(record):
    return {JSON_KEYS[name]: value for name, value in asdict(record).items()}


def record_from_dict(data):
    """Rebuild a record from its JSON form; enrichment keys select EnrichedDrugRecord."""
    values = {ATTRIBUTES[key]: value for key, value in data.items() if key in ATTRIBUTES}
    base = {f.name for f in fields(OrderedDrugRecord)}
    cls = EnrichedDrugRecord if set(values) - base else OrderedDrugRecord
    return cls(**values)


def drugs_to_json(records):
    return json.dumps({"orderedDrugs": [record_to_dict(r) for r in records]})


def drugs_from_json(payload):
    data = json.loads(payload)
    return [record_from_dict(item) for item in data.get("orderedDrugs") or []]
