"""
Board-review spreadsheet parser.

Turns a survey export workbook into a hierarchical JSON document:
client -> reports -> questions -> responses, plus a respondee roster.

Handles:
  - Header names that vary between files ("Q#", "Question Number", "Q No", ...)
  - A metadata sheet (sheet 0) with "Client Name" / "Created" rows
  - One report per data sheet, named from the sheet identifier
  - Sparse question cells carried forward across a question block
  - Sub-questions inherited within a block, reset on a new question
  - A "Response" column holding either a numeric score or free text
  - Respondents repeated across sheets (one roster entry per name)
  - Headers that map to nothing (reported, never fatal)
"""

import logging
import math
import os
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from io import BytesIO
from typing import Optional

from review_schema import validate_document

log = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('.xlsx', '.xlsm')

CLIENT_NAME_LABEL = 'Client Name'
CREATED_LABEL = 'Created'

# Known header variants. Order matters: the substring fallback in map_header
# walks this table top to bottom and the first hit wins.
RAW_HEADER_MAP = [
    ('Client Name', 'client_name'),
    ('Created', 'created_date'),
    ('Question Text', 'question_text'),
    ('Question #', 'question_number'),
    ('Question Number', 'question_number'),
    ('Q Number', 'question_number'),
    ('Q No', 'question_number'),
    ('Q#', 'question_number'),
    ('Sub-Question', 'sub_question_text'),
    ('Sub Question', 'sub_question_text'),
    ('Category', 'category'),
    ('Respondent', 'respondent'),
    ('Position', 'position'),
    ('Text Response', 'response'),
    # Score or free text depending on the cell
    ('Response', 'score'),
    ('Comment', 'comment'),
    ('Skip Reason', 'skip_reason'),
]

DATE_FORMATS = (
    '%Y-%m-%d',
    '%Y/%m/%d',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d %H:%M',
    '%m/%d/%Y',
    '%m-%d-%Y',
    '%B %d, %Y',
    '%b %d, %Y',
    '%d %B %Y',
    '%d %b %Y',
    '%Y',
)

BRACKET_TOKEN_RE = re.compile(r'\[[a-zA-Z0-9_]+\]')
LEADING_INT_RE = re.compile(r'^\s*([+-]?\d+)')
# Text a spreadsheet tool would coerce to a number ("inf" and "1_000" stay text)
NUMERIC_TEXT_RE = re.compile(
    r'^(?:[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|Infinity)'
    r'|0[xX][0-9a-fA-F]+|0[bB][01]+|0[oO][0-7]+)$'
)


class StructuralError(ValueError):
    """The workbook lacks the sheets or metadata every document needs."""


def normalize_header(header):
    """Lower-case a header and drop everything outside [a-z0-9]."""
    return re.sub(r'[^a-z0-9]', '', str(header).lower())


HEADER_MAP = {}
for _variant, _field in RAW_HEADER_MAP:
    HEADER_MAP[normalize_header(_variant)] = _field


def map_header(header):
    """
    Map a raw column header to a field name.

    Exact match on the normalized header first, then the first table key
    contained in it. Returns None when nothing matches.
    """
    norm = normalize_header(header)
    if norm in HEADER_MAP:
        return HEADER_MAP[norm]
    for key, field_name in HEADER_MAP.items():
        if key in norm:
            return field_name
    return None


def _cell_str(val):
    """Convert cell value to stripped string."""
    if val is None:
        return ''
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val).strip()


def _parse_int(val):
    """Leading-integer parse of a cell. None when the cell holds no integer."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val
    if isinstance(val, float):
        if math.isnan(val) or math.isinf(val):
            return None
        return int(val)
    m = LEADING_INT_RE.match(str(val))
    if m:
        return int(m.group(1))
    return None


def _parse_score(val):
    """
    Interpret the overloaded response cell.

    Returns (score, text): a numeric cell gives (int, ''), anything else
    gives (None, text). A number without a leading integer scores 0.
    """
    if isinstance(val, bool):
        return None, _cell_str(val)
    if isinstance(val, (int, float)):
        if isinstance(val, float) and math.isnan(val):
            return None, _cell_str(val)
        parsed = _parse_int(val)
        return (parsed if parsed is not None else 0), ''
    text = _cell_str(val)
    if not NUMERIC_TEXT_RE.match(text):
        return None, text
    parsed = _parse_int(text)
    return (parsed if parsed is not None else 0), ''


def format_date(value):
    """Format a metadata date as YYYY-MM-DD, or pass the text through."""
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        from openpyxl.utils.datetime import from_excel
        try:
            converted = from_excel(value)
        except (ValueError, OverflowError, TypeError):
            return _cell_str(value)
        if isinstance(converted, datetime):
            return converted.date().isoformat()
        if isinstance(converted, date):
            return converted.isoformat()
        return _cell_str(value)
    raw = _cell_str(value)
    try:
        parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
    except ValueError:
        pass
    else:
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc)
        return parsed.date().isoformat()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date().isoformat()
        except ValueError:
            continue
    return raw


def make_report_name(sheet_name):
    """'BoardEffectivenessQ1' -> 'Board Effectiveness Q1'."""
    s = re.sub(r'([a-z])([A-Z0-9])', r'\1 \2', str(sheet_name))
    s = re.sub(r'([A-Z])([A-Z][a-z])', r'\1 \2', s)
    return s.strip()


# ── Workbook splitting ──

@dataclass(frozen=True)
class Sheet:
    """One decoded sheet: its name and its rows of primitive cell values."""

    name: str
    rows: list = field(default_factory=list)


def read_metadata(rows):
    """
    Scan the metadata sheet for client name and creation date.

    Rows are (label, value) pairs in the first two columns. Later rows with
    the same label override earlier ones.
    """
    client_name = ''
    created_date = ''
    for row in rows:
        if len(row) < 2:
            continue
        label = _cell_str(row[0])
        value = row[1]
        if label == CLIENT_NAME_LABEL:
            client_name = _cell_str(value)
        elif label == CREATED_LABEL:
            created_date = format_date(value)
    if not client_name or not created_date:
        raise StructuralError(
            'Could not extract client_name or created_date from details sheet'
        )
    return client_name, created_date


def split_workbook(sheets):
    """
    Split a workbook into metadata and data sheets.

    Returns (client_name, created_date, data_sheets).
    """
    if len(sheets) < 2:
        raise StructuralError(
            'Workbook must contain at least a details sheet and one data sheet '
            f'(found {len(sheets)})'
        )
    client_name, created_date = read_metadata(sheets[0].rows)
    return client_name, created_date, list(sheets[1:])


# ── Row reconstruction ──

@dataclass(frozen=True)
class RowState:
    """Values carried forward from earlier rows of the same data sheet."""

    question_number: Optional[int] = None
    question_text: str = ''
    sub_question_text: str = ''


@dataclass(frozen=True)
class ReviewRow:
    """A data row with its carried-forward question context resolved."""

    question_number: Optional[int]
    question_text: str
    sub_question_text: str
    respondent: str
    position: str = ''
    score: Optional[int] = None
    response: str = ''
    comment: str = ''
    skip_reason: str = ''


def _row_value(row, ci):
    return row[ci] if ci < len(row) else None


def reduce_row(state, fields, row):
    """
    Apply one data row to the carry-forward state.

    `fields` is the mapped field name per column (None for unmapped columns).
    Returns (new_state, ReviewRow or None); rows without a respondent still
    update the state but produce no ReviewRow.
    """
    question_text = state.question_text
    sub_question_text = state.sub_question_text
    respondent = ''
    position = ''
    score = None
    comment = ''
    skip_reason = ''
    response = ''
    new_question_text = False
    found_question_number = None

    for ci, field_name in enumerate(fields):
        if not field_name:
            continue
        value = _row_value(row, ci)

        if field_name == 'question_number':
            parsed = _parse_int(value)
            if parsed is not None:
                found_question_number = parsed

        elif field_name == 'question_text':
            text = _cell_str(value)
            if text:
                cleaned = BRACKET_TOKEN_RE.sub('', text).strip()
                if cleaned != question_text:
                    question_text = cleaned
                    # A new question only keeps a sub-question given on this row
                    sub_idx = fields.index('sub_question_text') if 'sub_question_text' in fields else -1
                    sub_value = _cell_str(_row_value(row, sub_idx)) if sub_idx != -1 else ''
                    sub_question_text = sub_value
                    new_question_text = True

        elif field_name == 'sub_question_text':
            text = _cell_str(value)
            if text:
                sub_question_text = text

        elif field_name == 'respondent':
            respondent = _cell_str(value)
        elif field_name == 'position':
            position = _cell_str(value)
        elif field_name == 'comment':
            comment = _cell_str(value)
        elif field_name == 'skip_reason':
            skip_reason = _cell_str(value)

        elif field_name == 'score':
            if _cell_str(value):
                parsed_score, text = _parse_score(value)
                if parsed_score is not None:
                    score = parsed_score
                    response = ''
                else:
                    response = text

        elif field_name == 'response':
            if response == '':
                response = _cell_str(value)

    # A new question resets the number unless this row gives one
    if new_question_text or found_question_number is not None:
        question_number = found_question_number
    else:
        question_number = state.question_number

    new_state = RowState(
        question_number=question_number,
        question_text=question_text,
        sub_question_text=sub_question_text,
    )
    if not respondent:
        return new_state, None
    return new_state, ReviewRow(
        question_number=question_number,
        question_text=question_text,
        sub_question_text=sub_question_text,
        respondent=respondent,
        position=position,
        score=score,
        response=response,
        comment=comment,
        skip_reason=skip_reason,
    )


def header_fields(header_row):
    """Map each header cell to its field name (None when unmapped or blank)."""
    fields = []
    for h in header_row:
        if _cell_str(h) == '':
            fields.append(None)
        else:
            fields.append(map_header(h))
    return fields


def reconstruct_rows(rows):
    """Yield a ReviewRow for every data row that names a respondent."""
    if len(rows) < 2:
        return
    fields = header_fields(rows[0])
    state = RowState()
    for ri, row in enumerate(rows[1:], start=2):
        state, review_row = reduce_row(state, fields, row)
        if review_row is None:
            if any(_cell_str(c) for c in row):
                log.debug('Row %d has no respondent, dropped', ri)
            continue
        yield review_row


# ── Document assembly ──

def _question_entry(review_row):
    question = {
        'question_number': review_row.question_number,
        'question_text': review_row.question_text,
    }
    if review_row.sub_question_text:
        question['sub_question_text'] = review_row.sub_question_text
    question['responses'] = []
    return question


def _response_entry(review_row):
    response = {'respondent': review_row.respondent}
    if review_row.score is not None:
        response['score'] = review_row.score
    if review_row.response:
        response['response'] = review_row.response
    if review_row.comment:
        response['comment'] = review_row.comment
    if review_row.skip_reason:
        response['skip_reason'] = review_row.skip_reason
    return response


def build_report(sheet, respondees):
    """
    Build one report from a data sheet.

    `respondees` (name -> entry) is shared across the document; the first
    row naming a respondent fixes their position.
    Returns None for a sheet without data rows.
    """
    if len(sheet.rows) < 2:
        log.debug('Sheet %r has no data rows, skipped', sheet.name)
        return None

    questions = {}
    for review_row in reconstruct_rows(sheet.rows):
        if review_row.respondent not in respondees:
            entry = {'name': review_row.respondent}
            if review_row.position:
                entry['position'] = review_row.position
            respondees[review_row.respondent] = entry

        key = (
            review_row.question_number,
            review_row.question_text,
            review_row.sub_question_text,
        )
        if key not in questions:
            questions[key] = _question_entry(review_row)
        questions[key]['responses'].append(_response_entry(review_row))

    report_name = make_report_name(sheet.name)
    log.debug('Sheet %r -> report %r (%d questions)', sheet.name, report_name, len(questions))
    return {
        'report_name': report_name,
        'questions': list(questions.values()),
    }


def find_unmatched_headers(data_sheets):
    """Headers across the data sheets that map to no field, first-seen order."""
    unmatched = []
    for sheet in data_sheets:
        if not sheet.rows:
            continue
        for h in sheet.rows[0]:
            raw = _cell_str(h)
            if not raw or map_header(h) is not None:
                continue
            if raw not in unmatched:
                unmatched.append(raw)
    return unmatched


def assemble_document(client_name, created_date, data_sheets):
    """Group the reconstructed rows of every data sheet into one document."""
    respondees = {}
    reports = []
    for sheet in data_sheets:
        report = build_report(sheet, respondees)
        if report is not None:
            reports.append(report)

    document = {
        'client_name': client_name,
        'created_date': created_date,
        'reports': reports,
        'respondees': list(respondees.values()),
    }
    unmatched = find_unmatched_headers(data_sheets)
    if unmatched:
        document['unmatched_headers'] = unmatched
    return document


def parse_workbook(sheets):
    """
    Parse a decoded workbook into a validated document.

    Raises StructuralError for a missing data sheet or metadata and
    SchemaError when the assembled document breaks the output contract.
    """
    client_name, created_date, data_sheets = split_workbook(sheets)
    document = assemble_document(client_name, created_date, data_sheets)
    return validate_document(document)


# ── Decoding and entry points ──

def load_workbook_bytes(data):
    """Decode .xlsx bytes into Sheets, in workbook order.

    Each sheet is read from its used range, so a table starting at B2
    yields the same rows as one starting at A1.
    """
    from openpyxl import load_workbook
    wb = load_workbook(BytesIO(data), data_only=True)
    try:
        return [
            Sheet(ws.title, [
                list(row)
                for row in ws.iter_rows(min_row=ws.min_row, min_col=ws.min_column, values_only=True)
            ])
            for ws in wb.worksheets
        ]
    finally:
        wb.close()


def parse_bytes(data):
    """Parse an in-memory .xlsx file."""
    return parse_workbook(load_workbook_bytes(data))


def parse_file(filepath):
    """Parse a board-review spreadsheet file and return the document."""
    ext = os.path.splitext(filepath)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValueError(
            f"Unsupported file format: {ext or '(none)'}. Use .xlsx or .xlsm"
        )
    if not os.path.exists(filepath):
        raise FileNotFoundError(f'File not found: {filepath}')
    with open(filepath, 'rb') as f:
        data = f.read()
    return parse_bytes(data)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of one file in a batch: a document or the error that stopped it."""

    path: str
    document: Optional[dict] = None
    error: Optional[Exception] = None

    @property
    def ok(self):
        return self.error is None


def _parse_one(path):
    try:
        return ParseResult(path, document=parse_file(path))
    except Exception as e:
        log.warning('Failed to parse %s: %s', path, e)
        return ParseResult(path, error=e)


def parse_files(paths, workers=1):
    """
    Parse several files, isolating failures per file.

    Results come back in input order whatever the worker count.
    """
    paths = [str(p) for p in paths]
    if workers <= 1 or len(paths) <= 1:
        return [_parse_one(p) for p in paths]
    with ThreadPoolExecutor(max_workers=workers) as ex:
        return list(ex.map(_parse_one, paths))
