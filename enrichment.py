"""Merge account demographics and drug product data into ordered-drug records."""

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import asdict

from drug_records import EnrichedDrugRecord

logger = logging.getLogger(__name__)

OPIOID_SEARCH_STR = "opioid"

ACCOUNT_QUERY = "SELECT state_code, zip_code FROM account WHERE account_number = ?"

NDC_QUERY = (
    "SELECT npd.pharmaceutical_classes, npd.dea_schedule "
    "FROM ndc_package npk "
    "INNER JOIN ndc_product npd ON npd.product_id = npk.product_id "
    "WHERE npk.ndc_11digit = ?"
)


def is_opioid(pharmaceutical_classes):
    return bool(pharmaceutical_classes) and OPIOID_SEARCH_STR in pharmaceutical_classes.lower()


class DrugCatalog:
    """Lookups the merge step depends on. Subclasses implement both methods."""

    def account_demographics(self, account_number):
        """Return (state_code, zip_code) for the account, or None."""
        raise NotImplementedError

    def drug_info(self, ndc):
        """Return (pharmaceutical_classes, dea_schedule) for an 11-digit NDC, or None."""
        raise NotImplementedError


class SqliteDrugCatalog(DrugCatalog):
    """DrugCatalog backed by the account / ndc_package / ndc_product tables."""

    def __init__(self, db_path):
        self.db_path = str(db_path)

    @contextmanager
    def _get_connection(self):
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        try:
            yield conn
        finally:
            conn.close()

    def account_demographics(self, account_number):
        if not account_number:
            return None
        with self._get_connection() as conn:
            row = conn.execute(ACCOUNT_QUERY, (account_number.strip(),)).fetchone()
        return tuple(row) if row else None

    def drug_info(self, ndc):
        if not ndc:
            return None
        with self._get_connection() as conn:
            row = conn.execute(NDC_QUERY, (ndc.strip(),)).fetchone()
        return tuple(row) if row else None


def merge_drug_info(records, catalog):
    """Return enriched copies of ``records``.

    All records come from one purchase order, so the account is looked up once.
    Drug data is only fetched when the account resolved.
    """
    if not records:
        return []

    first = records[0]
    demographics = catalog.account_demographics(first.account_number)
    if demographics is None:
        logger.info(
            "No account demographic data found for ISA sender %s, account %s",
            first.isa_sender_id, first.account_number,
        )
        return [EnrichedDrugRecord(**asdict(r)) for r in records]

    state_code, zip_code = demographics
    return [_merge_record(r, state_code, zip_code, catalog) for r in records]


def _merge_record(record, state_code, zip_code, catalog):
    values = asdict(record)
    values.update(account_state_code=state_code, account_zip_code=zip_code)

    ordered = _lookup(catalog, record.ordered_ndc)
    if ordered is not None:
        values["ordered_ndc_opioid_flag"], values["ordered_ndc_schedule"] = ordered

    if record.shipped_ndc is not None:
        if record.ordered_ndc is not None and record.shipped_ndc.lower() == record.ordered_ndc.lower():
            shipped = ordered
        else:
            shipped = _lookup(catalog, record.shipped_ndc)
        if shipped is not None:
            values["shipped_ndc_opioid_flag"], values["shipped_ndc_schedule"] = shipped

    return EnrichedDrugRecord(**values)


def _lookup(catalog, ndc):
    """Return (opioid flag, DEA schedule) for ``ndc`` or None if unknown."""
    if ndc is None:
        return None
    info = catalog.drug_info(ndc)
    if info is None:
        logger.debug("No drug data found for NDC %s", ndc)
        return None
    classes, schedule = info
    return is_opioid(classes), schedule
