"""Shared sample documents for the 855 parser tests."""

import sqlite3

import pytest


def make_isa(field="*", segment="~", sender="987654321", receiver="CUSTABCD", component=">"):
    """Build a fixed-width (106 character) ISA segment."""
    elements = [
        "ISA", "00", " " * 10, "00", " " * 10,
        "ZZ", sender.ljust(15), "ZZ", receiver.ljust(15),
        "180207", "0611", "U", "00401", "000014493", "0", "P", component,
    ]
    return field.join(elements) + segment


def make_document(*segments, field="*", segment="~", gs01="PR"):
    """ISA + GS + the given segments, joined with the chosen delimiters."""
    gs = field.join(["GS", gs01, "987654321", "CUSTABCD", "20180207", "0611", "14493", "X", "004010"])
    body = [gs] + [s.replace("*", field) for s in segments]
    return make_isa(field, segment) + segment.join(body) + segment


SAMPLE_855_SEGMENTS = (
    "ST*855*144930001",
    "BAK*06*AC*00002720*20180206",
    "N1*ST**91*0008111575",
    "N1*SE**91*987654321C",
    "PO1*1*1*UN*565.61**VN*5197983*N4*00093573201",
    "ACK*IQ*0*UN****VN*5197983*N4*00093573201",
    "PO1*2*1*UN*683.8**VN*3300365*N4*54092038301",
    "ACK*IA*1*UN****VN*3300365*N4*54092038301",
    "CTT*2",
    "SE*10*144930001",
    "GE*1*14493",
    "IEA*1*000014493",
)

BUYER_855_SEGMENTS = (
    "ST*855*0001",
    "BAK*00*AC*PO12345*20230115",
    "REF*IA*VENDOR42",
    "N1*BY**91*ACCT001",
    "PO1*1*4*UN*328.27**VN*2018646*N4*50458014030",
    "ACK*IA*4*UN****VN*2018646*N4*50458014030",
    "PO1*2*10*UN*12.50**N4*00093573201*VN*5197983",
    "ACK*IS*8*UN****N4*12345678901*VN*1234567",
    "CTT*2",
    "SE*10*0001",
    "GE*1*1",
    "IEA*1*000000001",
)


@pytest.fixture
def sample_855():
    return make_document(*SAMPLE_855_SEGMENTS)


@pytest.fixture
def buyer_855():
    return make_document(*BUYER_855_SEGMENTS)


@pytest.fixture
def catalog_db(tmp_path):
    """SQLite database holding the account and NDC tables used for enrichment."""
    db_path = tmp_path / "catalog.db"
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE account (account_number TEXT, state_code TEXT, zip_code TEXT);
        CREATE TABLE ndc_product (product_id TEXT, pharmaceutical_classes TEXT, dea_schedule TEXT);
        CREATE TABLE ndc_package (ndc_11digit TEXT, product_id TEXT);

        INSERT INTO account VALUES ('ACCT001', 'OH', '43215');
        INSERT INTO account VALUES ('0008111575', 'TX', '75001');

        INSERT INTO ndc_product VALUES ('P1', 'Opioid Agonist [EPC],Opioid Agonists [MoA]', 'CII');
        INSERT INTO ndc_product VALUES ('P2', 'Statin [EPC]', NULL);
        INSERT INTO ndc_product VALUES ('P3', 'Full Opioid Agonists [MoA]', 'CIII');

        INSERT INTO ndc_package VALUES ('50458014030', 'P1');
        INSERT INTO ndc_package VALUES ('00093573201', 'P2');
        INSERT INTO ndc_package VALUES ('12345678901', 'P3');
        INSERT INTO ndc_package VALUES ('54092038301', 'P2');
    """)
    conn.commit()
    conn.close()
    return db_path
