"""
Offer item sheet import.

Sheets are CSV files or Excel (.xlsx) workbooks with a header row followed by
one row per item, in the proforma-invoice column order used by traders:

    NO, IMAGE, ITEM NO., DESCRIPTION, COLOUR, SPEC., QUANTITY, UNIT, UNIT PRICE,
    CURRENCY, AMOUNT, PACKING, PACKAGE QUANTITY (CTN), UNIT G.W., TOTAL G.W.,
    LENGTH, WIDTH, HEIGHT, TOTAL CBM

Only the first worksheet of a workbook is read.
"""
import csv
import io
import zipfile
from decimal import Decimal, InvalidOperation

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

CM3_PER_M3 = Decimal('1000000')
CBM_PLACES = Decimal('0.0001')
ALLOWED_CONTENT_TYPES = {
    'text/csv',
    'application/csv',
    'text/plain',
    'application/vnd.ms-excel',
    'application/octet-stream',
}
XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
IMAGE_PREFIXES = ('http', '/uploads', 'uploads')

# Largest values the item columns can store
MAX_COUNT = 2147483647
DECIMAL_LIMITS = {
    'unit_price': Decimal('1e12'),
    'amount': Decimal('1e14'),
    'unit_gw': Decimal('1e9'),
    'total_gw': Decimal('1e11'),
    'carton_length': Decimal('1e8'),
    'carton_width': Decimal('1e8'),
    'carton_height': Decimal('1e8'),
    'total_cbm': Decimal('1e10'),
}


class OfferUploadError(Exception):
    """Raised when an uploaded item sheet cannot be used"""


def to_decimal(value):
    if value is None:
        return None
    text = str(value).strip().replace(',', '')
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def to_int(value):
    number = to_decimal(value)
    if number is None or number < 0:
        return 0
    return int(number)


def carton_cbm(length, width, height, cartons):
    """Cargo volume in m3 of ``cartons`` cartons measuring L x W x H cm."""
    if not (length and width and height and cartons):
        return Decimal('0')
    per_carton = (Decimal(length) * Decimal(width) * Decimal(height)) / CM3_PER_M3
    return (per_carton * cartons).quantize(CBM_PLACES)


def _cell(row, index):
    return row[index].strip() if index < len(row) and row[index] is not None else ''


def _within(value, field, line):
    """``value`` unless it does not fit the item column ``field``"""
    limit = DECIMAL_LIMITS.get(field, MAX_COUNT + 1)
    if value is not None and abs(value) >= limit:
        raise OfferUploadError(f"Row {line}: {field.replace('_', ' ')} is out of range")
    return value


def _number(row, index, field, line):
    return _within(to_decimal(_cell(row, index)), field, line)


def parse_item_row(row, position, line=None):
    """
    Turn one sheet row into OfferItem field values, or None when the row is not an item.

    ``line`` is the sheet row number used in error messages; values too large
    for their column raise OfferUploadError.
    """
    line = line or position
    item_no = _cell(row, 2)
    description = _cell(row, 3)
    product_name = description or item_no
    quantity = to_int(_number(row, 6, 'quantity', line))
    if not product_name or quantity == 0:
        return None

    unit_price = _number(row, 8, 'unit_price', line) or Decimal('0')
    package_quantity = to_int(_number(row, 12, 'package_quantity', line))
    length = _number(row, 15, 'carton_length', line)
    width = _number(row, 16, 'carton_width', line)
    height = _number(row, 17, 'carton_height', line)
    sheet_cbm = _number(row, 18, 'total_cbm', line)
    if sheet_cbm:
        total_cbm = sheet_cbm.quantize(CBM_PLACES)
    else:
        try:
            total_cbm = carton_cbm(length, width, height, package_quantity)
        except InvalidOperation:
            raise OfferUploadError(f'Row {line}: total cbm is out of range')

    image_cell = _cell(row, 1)
    images = []
    if image_cell.startswith(IMAGE_PREFIXES):
        images = [url.strip() for url in image_cell.split(',') if url.strip()]

    return {
        'item_no': item_no[:100],
        'product_name': product_name[:255],
        'description': description or None,
        'colour': _cell(row, 4)[:100],
        'spec': _cell(row, 5)[:255],
        'quantity': quantity,
        'unit': (_cell(row, 7) or 'SET')[:20],
        'unit_price': unit_price,
        'currency': (_cell(row, 9) or 'USD')[:3].upper(),
        'amount': _within(_number(row, 10, 'amount', line) or (unit_price * quantity), 'amount', line),
        'packing': _cell(row, 11)[:255],
        'package_quantity': package_quantity,
        'unit_gw': _number(row, 13, 'unit_gw', line),
        'total_gw': _number(row, 14, 'total_gw', line),
        'carton_length': length,
        'carton_width': width,
        'carton_height': height,
        'total_cbm': _within(total_cbm, 'total_cbm', line),
        'images': images,
        'display_order': position,
    }


def _sheet_text(value):
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _csv_rows(raw):
    try:
        text = raw.decode('utf-8-sig')
    except UnicodeDecodeError:
        raise OfferUploadError('Item sheet must be UTF-8 encoded')
    return list(csv.reader(io.StringIO(text)))


def _xlsx_rows(raw):
    try:
        workbook = load_workbook(io.BytesIO(raw), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError) as e:
        raise OfferUploadError('Item sheet is not a valid Excel workbook') from e
    try:
        return [[_sheet_text(value) for value in row] for row in workbook.active.iter_rows(values_only=True)]
    finally:
        workbook.close()


def read_item_sheet(uploaded_file, max_bytes):
    """Validate and parse an uploaded sheet. Returns a list of item field dicts."""
    if uploaded_file is None:
        raise OfferUploadError('Please upload an item sheet')
    if uploaded_file.size > max_bytes:
        raise OfferUploadError(f'File too large. Maximum size is {max_bytes // (1024 * 1024)} MB')
    name = uploaded_file.name.lower()
    content_type = (getattr(uploaded_file, 'content_type', '') or '').split(';')[0].strip().lower()
    if name.endswith('.xlsx') or content_type == XLSX_CONTENT_TYPE:
        reader = _xlsx_rows
    elif name.endswith('.csv') or content_type in ALLOWED_CONTENT_TYPES:
        reader = _csv_rows
    else:
        raise OfferUploadError('Only CSV and Excel (.xlsx) item sheets are supported')

    rows = reader(uploaded_file.read())
    if len(rows) < 2:
        raise OfferUploadError('Item sheet is empty')

    items = []
    for line, row in enumerate(rows[1:], start=2):
        parsed = parse_item_row(row, len(items) + 1, line=line)
        if parsed is not None:
            items.append(parsed)
    if not items:
        raise OfferUploadError('No valid items found in the sheet')
    if sum(item['package_quantity'] for item in items) > MAX_COUNT:
        raise OfferUploadError('Total carton count of the sheet is out of range')
    return items
