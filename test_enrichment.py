"""Tests for merging account and drug data into ordered-drug records."""

from drug_records import EnrichedDrugRecord, OrderedDrugRecord, build_ordered_drugs
from enrichment import DrugCatalog, SqliteDrugCatalog, is_opioid, merge_drug_info
from parser_855 import parse_transaction


class FakeCatalog(DrugCatalog):

    def __init__(self, accounts=None, drugs=None):
        self.accounts = accounts or {}
        self.drugs = drugs or {}
        self.account_calls = []
        self.drug_calls = []

    def account_demographics(self, account_number):
        self.account_calls.append(account_number)
        return self.accounts.get(account_number)

    def drug_info(self, ndc):
        self.drug_calls.append(ndc)
        return self.drugs.get(ndc)


def _record(ordered_ndc, shipped_ndc, account="ACCT001"):
    return OrderedDrugRecord(account_number=account, ordered_ndc=ordered_ndc, shipped_ndc=shipped_ndc)


def test_is_opioid():
    assert is_opioid("Opioid Agonist [EPC]")
    assert is_opioid("full OPIOID agonists [MoA]")
    assert not is_opioid("Statin [EPC]")
    assert not is_opioid(None)
    assert not is_opioid("")


def test_account_looked_up_once_for_all_records():
    catalog = FakeCatalog(accounts={"ACCT001": ("OH", "43215")})
    merged = merge_drug_info([_record("1", "1"), _record("2", "2")], catalog)
    assert catalog.account_calls == ["ACCT001"]
    assert all(isinstance(r, EnrichedDrugRecord) for r in merged)
    assert {(r.account_state_code, r.account_zip_code) for r in merged} == {("OH", "43215")}


def test_drug_data_merged_and_reused_for_same_ndc():
    catalog = FakeCatalog(
        accounts={"ACCT001": ("OH", "43215")},
        drugs={"50458014030": ("Opioid Agonist [EPC]", "CII")},
    )
    merged = merge_drug_info([_record("50458014030", "50458014030")], catalog)[0]
    assert catalog.drug_calls == ["50458014030"]
    assert merged.ordered_ndc_opioid_flag is True
    assert merged.ordered_ndc_schedule == "CII"
    assert merged.shipped_ndc_opioid_flag is True
    assert merged.shipped_ndc_schedule == "CII"


def test_substituted_drug_looked_up_separately():
    catalog = FakeCatalog(
        accounts={"ACCT001": ("OH", "43215")},
        drugs={"111": ("Statin [EPC]", None), "222": ("Opioid Agonist [EPC]", "CIII")},
    )
    merged = merge_drug_info([_record("111", "222")], catalog)[0]
    assert catalog.drug_calls == ["111", "222"]
    assert merged.ordered_ndc_opioid_flag is False
    assert merged.shipped_ndc_opioid_flag is True
    assert merged.shipped_ndc_schedule == "CIII"


def test_unknown_account_skips_drug_lookup():
    catalog = FakeCatalog(drugs={"111": ("Opioid", "CII")})
    merged = merge_drug_info([_record("111", "111", account="NOPE")], catalog)[0]
    assert catalog.drug_calls == []
    assert merged.account_state_code is None
    assert merged.ordered_ndc_opioid_flag is None
    assert merged.ordered_ndc == "111"


def test_unknown_ndc_leaves_flags_unset():
    catalog = FakeCatalog(accounts={"ACCT001": ("OH", "43215")})
    merged = merge_drug_info([_record("999", None)], catalog)[0]
    assert merged.ordered_ndc_opioid_flag is None
    assert merged.shipped_ndc_opioid_flag is None


def test_empty_input():
    assert merge_drug_info([], FakeCatalog()) == []


def test_sqlite_catalog(catalog_db):
    catalog = SqliteDrugCatalog(catalog_db)
    assert catalog.account_demographics("ACCT001") == ("OH", "43215")
    assert catalog.account_demographics("missing") is None
    assert catalog.account_demographics(None) is None
    assert catalog.drug_info("50458014030") == ("Opioid Agonist [EPC],Opioid Agonists [MoA]", "CII")
    assert catalog.drug_info(" 00093573201 ") == ("Statin [EPC]", None)
    assert catalog.drug_info("00000000000") is None


def test_merge_with_sqlite_catalog(catalog_db, buyer_855):
    records = build_ordered_drugs(parse_transaction(buyer_855))
    merged = merge_drug_info(records, SqliteDrugCatalog(catalog_db))
    first, second = merged
    assert first.account_state_code == "OH"
    assert first.ordered_ndc_opioid_flag is True
    assert second.ordered_ndc_opioid_flag is False
    assert second.shipped_ndc_opioid_flag is True
    assert second.shipped_ndc_schedule == "CIII"
