"""Generate readable Excel files from parsed 855 ordered-drug records."""

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from edi_parser import format_edi_date, safe_float


# Styling constants
HEADER_FONT = Font(name="Calibri", bold=True, color="FFFFFF", size=11)
HEADER_FILL = PatternFill(start_color="2B5797", end_color="2B5797", fill_type="solid")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)
QUANTITY_FORMAT = '#,##0.###'
THIN_BORDER = Border(
    left=Side(style="thin", color="D0D0D0"),
    right=Side(style="thin", color="D0D0D0"),
    top=Side(style="thin", color="D0D0D0"),
    bottom=Side(style="thin", color="D0D0D0"),
)
ALT_ROW_FILL = PatternFill(start_color="EBF1F8", end_color="EBF1F8", fill_type="solid")
OPIOID_FONT = Font(name="Calibri", bold=True, color="9C0006")

DRUG_HEADERS = [
    "Source File", "ISA Sender ID", "Account Number", "PO Number", "Order Date",
    "Ack Status", "Ordered Item", "Ordered NDC", "Ordered Qty",
    "Shipped Item", "Shipped NDC", "Shipped Qty", "Substituted",
]
ENRICHED_HEADERS = [
    "State", "Zip", "Ordered Schedule", "Ordered Opioid",
    "Shipped Schedule", "Shipped Opioid",
]
QUANTITY_COLS = [9, 12]


def style_header(ws, num_cols):
    """Apply header styling to the first row."""
    for col in range(1, num_cols + 1):
        cell = ws.cell(row=1, column=col)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        cell.border = THIN_BORDER


def style_data(ws, num_rows, num_cols, quantity_cols=None):
    """Apply data styling: alternating rows, borders, quantity formatting."""
    quantity_cols = quantity_cols or []
    for row in range(2, num_rows + 1):
        for col in range(1, num_cols + 1):
            cell = ws.cell(row=row, column=col)
            cell.border = THIN_BORDER
            cell.alignment = Alignment(vertical="center")
            if (row % 2) == 0:
                cell.fill = ALT_ROW_FILL
            if col in quantity_cols:
                cell.number_format = QUANTITY_FORMAT


def auto_width(ws, num_cols, max_width=50):
    """Auto-size column widths based on content."""
    for col in range(1, num_cols + 1):
        max_len = 0
        for row in ws.iter_rows(min_col=col, max_col=col, values_only=False):
            for cell in row:
                val = str(cell.value) if cell.value is not None else ""
                max_len = max(max_len, len(val))
        adjusted = min(max_len + 3, max_width)
        ws.column_dimensions[get_column_letter(col)].width = max(adjusted, 10)


def write_sheet(ws, headers, rows, quantity_cols=None):
    """Write a complete sheet with headers, data, and styling."""
    for col_idx, header in enumerate(headers, 1):
        ws.cell(row=1, column=col_idx, value=header)

    for row_idx, row_data in enumerate(rows, 2):
        for col_idx, value in enumerate(row_data, 1):
            ws.cell(row=row_idx, column=col_idx, value=value)

    num_cols = len(headers)
    num_rows = len(rows) + 1
    style_header(ws, num_cols)
    style_data(ws, num_rows, num_cols, quantity_cols)
    auto_width(ws, num_cols)
    ws.freeze_panes = "A2"


def _yes_no(flag):
    if flag is None:
        return ""
    return "Yes" if flag else "No"


def _quantity(value):
    """Numeric quantity for the sheet; a missing quantity stays blank."""
    if value is None or value == "":
        return None
    return safe_float(value, default=value)


def is_substitution(record):
    """True when the supplier shipped a different NDC than was ordered."""
    return (
        record.shipped_ndc is not None
        and record.ordered_ndc is not None
        and record.shipped_ndc != record.ordered_ndc
    )


def drug_row(filename, record, enriched=False):
    """One worksheet row for an ordered-drug record."""
    row = [
        filename,
        record.isa_sender_id, record.account_number,
        record.purchase_order_number, format_edi_date(record.order_date),
        record.ack_status_code,
        record.ordered_item, record.ordered_ndc, _quantity(record.ordered_quantity),
        record.shipped_item, record.shipped_ndc, _quantity(record.shipped_quantity),
        "Yes" if is_substitution(record) else "",
    ]
    if enriched:
        row += [
            getattr(record, "account_state_code", None),
            getattr(record, "account_zip_code", None),
            getattr(record, "ordered_ndc_schedule", None),
            _yes_no(getattr(record, "ordered_ndc_opioid_flag", None)),
            getattr(record, "shipped_ndc_schedule", None),
            _yes_no(getattr(record, "shipped_ndc_opioid_flag", None)),
        ]
    return row


def write_ordered_drugs_excel(all_855, output_path, errors=None):
    """Write ordered-drug records from one or more 855 files into one workbook.

    Args:
        all_855: list of (filename, records) tuples
        output_path: file path for the output Excel file
        errors: optional list of (filename, message) tuples for files that failed
    """
    wb = Workbook()
    enriched = any(
        hasattr(r, "account_state_code") for _, records in all_855 for r in records
    )

    # --- Ordered Drugs ---
    ws_drugs = wb.active
    ws_drugs.title = "855 Ordered Drugs"
    headers = DRUG_HEADERS + (ENRICHED_HEADERS if enriched else [])
    rows = [
        drug_row(filename, record, enriched)
        for filename, records in all_855
        for record in records
    ]
    write_sheet(ws_drugs, headers, rows, quantity_cols=QUANTITY_COLS)
    if enriched:
        opioid_cols = [headers.index("Ordered Opioid") + 1, headers.index("Shipped Opioid") + 1]
        for row_idx in range(2, len(rows) + 2):
            for col in opioid_cols:
                cell = ws_drugs.cell(row=row_idx, column=col)
                if cell.value == "Yes":
                    cell.font = OPIOID_FONT

    # --- Purchase Orders (one row per file/PO) ---
    ws_po = wb.create_sheet("855 Purchase Orders")
    po_headers = ["Source File", "PO Number", "Order Date", "Account Number", "Lines", "Substitutions"]
    po_rows = []
    for filename, records in all_855:
        if not records:
            continue
        first = records[0]
        substitutions = sum(1 for r in records if is_substitution(r))
        po_rows.append([
            filename, first.purchase_order_number, format_edi_date(first.order_date),
            first.account_number, len(records), substitutions,
        ])
    write_sheet(ws_po, po_headers, po_rows)

    if errors:
        ws_err = wb.create_sheet("Errors")
        write_sheet(ws_err, ["Source File", "Error"], [list(e) for e in errors])

    wb.save(output_path)
