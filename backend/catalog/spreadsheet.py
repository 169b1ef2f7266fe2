"""
Spreadsheet (.xlsx) import and export for the bulk product editor
"""
import io
import logging
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils.exceptions import InvalidFileException

logger = logging.getLogger('backend.catalog')

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# (sheet header, field name)
PRODUCT_COLUMNS = [
    ('barCode', 'bar_code'),
    ('name', 'name'),
    ('itemDesc', 'item_desc'),
    ('price', 'price'),
    ('categoryId', 'category_id'),
    ('colorId', 'color_id'),
    ('sizeId', 'size_id'),
    ('uomId', 'uom_id'),
    ('isFeatured', 'is_featured'),
    ('isArchived', 'is_archived'),
]

HEADER_ALIASES = {}
for header, field in PRODUCT_COLUMNS:
    HEADER_ALIASES[header.lower()] = field
    HEADER_ALIASES[field] = field

TEXT_FIELDS = {'bar_code', 'name', 'item_desc'}
BOOLEAN_FIELDS = {'is_featured', 'is_archived'}


class SpreadsheetError(Exception):
    """Raised when an uploaded file is not a readable workbook"""


def _normalize_number(value):
    # Excel stores long barcodes and ids as floats
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def parse_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ('true', '1', 'yes', 'y')


def _clean_cell(field, value):
    value = _normalize_number(value)
    if field in BOOLEAN_FIELDS:
        return parse_bool(value)
    if value is None:
        return None
    if field in TEXT_FIELDS:
        return str(value).strip()
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def read_product_rows(file_obj):
    """
    Read product rows from the first sheet of a workbook.

    The first row holds the headers; unknown columns are ignored and fully
    empty rows are skipped. Returns a list of dicts keyed by field name.
    """
    try:
        workbook = load_workbook(filename=file_obj, read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError) as e:
        logger.warning(f"Unreadable product spreadsheet: {str(e)}")
        raise SpreadsheetError('Invalid spreadsheet file') from e

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header_row = next(rows, None)
        if not header_row:
            raise SpreadsheetError('Spreadsheet is empty')

        columns = []
        for header in header_row:
            key = str(header).strip() if header is not None else ''
            columns.append(HEADER_ALIASES.get(key.lower()))
        if not any(columns):
            raise SpreadsheetError('No product columns found in header row')

        products = []
        for values in rows:
            if values is None or all(v is None or (isinstance(v, str) and not v.strip()) for v in values):
                continue
            row = {}
            for field, value in zip(columns, values):
                if field:
                    row[field] = _clean_cell(field, value)
            products.append(row)
        return products
    finally:
        workbook.close()


def build_workbook(title, headers, rows, money_columns=()):
    """Write headers and rows to a single-sheet workbook and return it as bytes"""
    wb = Workbook()
    ws = wb.active
    ws.title = title

    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_font = Font(color="FFFFFF", bold=True)

    for col_num, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_num, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center', vertical='center')
        ws.column_dimensions[cell.column_letter].width = max(14, len(header) + 4)

    for row_num, values in enumerate(rows, 2):
        for col_num, value in enumerate(values, 1):
            cell = ws.cell(row=row_num, column=col_num, value=value)
            if col_num in money_columns:
                cell.number_format = '#,##0.00'

    ws.freeze_panes = 'A2'

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def build_products_workbook(products):
    """Export products in the same column layout the import reads"""
    headers = [header for header, _ in PRODUCT_COLUMNS]
    rows = []
    for product in products:
        rows.append([
            product.bar_code,
            product.name,
            product.item_desc,
            float(product.price),
            product.category_id,
            product.color_id,
            product.size_id,
            product.uom_id,
            product.is_featured,
            product.is_archived,
        ])
    return build_workbook('Products', headers, rows, money_columns=(4,))
