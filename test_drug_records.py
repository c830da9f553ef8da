"""Tests for flattening transactions into ordered-drug records."""

import dataclasses
import json

import pytest

from drug_records import (
    EnrichedDrugRecord,
    OrderedDrugRecord,
    build_ordered_drugs,
    drugs_from_json,
    drugs_to_json,
    record_to_dict,
)
from parser_855 import Transaction, TransactionHeader, parse_transaction


def test_one_record_per_line_sharing_header(buyer_855):
    records = build_ordered_drugs(parse_transaction(buyer_855))
    assert len(records) == 2
    first, second = records

    for record in records:
        assert record.isa_sender_id == "987654321"
        assert record.account_number == "ACCT001"
        assert record.purchase_order_number == "PO12345"
        assert record.order_date == "20230115"

    assert first == OrderedDrugRecord(
        isa_sender_id="987654321",
        account_number="ACCT001",
        order_date="20230115",
        purchase_order_number="PO12345",
        ordered_item="2018646",
        ordered_ndc="50458014030",
        ordered_quantity="4",
        shipped_item="2018646",
        shipped_ndc="50458014030",
        shipped_quantity="4",
        ack_status_code="IA",
    )
    assert (second.ordered_ndc, second.shipped_ndc, second.ack_status_code) == (
        "00093573201", "12345678901", "IS",
    )


def test_ship_to_used_when_no_buyer(sample_855):
    records = build_ordered_drugs(parse_transaction(sample_855))
    assert {r.account_number for r in records} == {"0008111575"}
    assert [r.ordered_item for r in records] == ["5197983", "3300365"]


def test_no_lines_no_records():
    assert build_ordered_drugs(Transaction(TransactionHeader())) == []
    assert build_ordered_drugs(None) == []


def test_records_are_immutable(buyer_855):
    record = build_ordered_drugs(parse_transaction(buyer_855))[0]
    with pytest.raises(dataclasses.FrozenInstanceError):
        record.account_number = "OTHER"


def test_json_envelope_uses_record_field_names(buyer_855):
    records = build_ordered_drugs(parse_transaction(buyer_855))
    payload = json.loads(drugs_to_json(records))
    assert list(payload) == ["orderedDrugs"]
    first = payload["orderedDrugs"][0]
    assert first["isaSenderId"] == "987654321"
    assert first["orderedNDC"] == "50458014030"
    assert first["ackStatusCode"] == "IA"
    assert "accountStateCode" not in first


def test_json_restores_record_types(buyer_855):
    records = build_ordered_drugs(parse_transaction(buyer_855))
    enriched = EnrichedDrugRecord(
        **dataclasses.asdict(records[0]),
        account_state_code="OH",
        ordered_ndc_opioid_flag=True,
    )
    restored = drugs_from_json(drugs_to_json([records[1], enriched]))
    assert restored == [records[1], enriched]
    assert type(restored[0]) is OrderedDrugRecord
    assert type(restored[1]) is EnrichedDrugRecord


def test_drugs_from_json_empty():
    assert drugs_from_json('{"orderedDrugs": null}') == []
    assert record_to_dict(OrderedDrugRecord())["shippedQuantity"] is None
