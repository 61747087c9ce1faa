#!/usr/bin/env python3
"""
Board-review CLI — convert survey export workbooks into JSON documents.

Usage:
    python review_cli.py                                  # Every workbook in data/reports
    python review_cli.py a.xlsx b.xlsx                    # Specific files
    python review_cli.py a.xlsx --question 4 --outdir out # Only question 4
    python review_cli.py --summaries --csv                # Also write rollups and CSV tables
    python review_cli.py --serve                          # Serve the parsed documents as JSON
"""

import argparse
import logging
import os
import sys
from dataclasses import replace

from review_parser import SUPPORTED_EXTENSIONS, parse_files
from review_summary import filter_questions


# Spreadsheet formats other tools export that this parser cannot read
UNSUPPORTED_SPREADSHEETS = ('.xls', '.csv')


def _discover(data_dir):
    """
    List spreadsheet files directly inside data_dir, sorted by name.

    Returns (workbooks, skipped) where skipped holds .xls/.csv files that
    cannot be converted.
    """
    workbooks, skipped = [], []
    for name in sorted(os.listdir(data_dir)):
        path = os.path.join(data_dir, name)
        if not os.path.isfile(path):
            continue
        ext = os.path.splitext(name)[1].lower()
        if ext in SUPPORTED_EXTENSIONS:
            workbooks.append(path)
        elif ext in UNSUPPORTED_SPREADSHEETS:
            skipped.append(path)
    return workbooks, skipped


def build_arg_parser():
    ap = argparse.ArgumentParser(
        description='Board review — convert survey spreadsheets into structured JSON'
    )
    ap.add_argument(
        'files',
        nargs='*',
        help='Workbooks to convert (default: every .xlsx in the data directory)'
    )
    ap.add_argument(
        '--data-dir',
        default=os.environ.get('REVIEW_DATA_DIR', 'data/reports'),
        help='Directory scanned when no files are given (default: data/reports)'
    )
    ap.add_argument(
        '--outdir', '-o',
        default=os.environ.get('REVIEW_OUTDIR', 'context/reports'),
        help='Output directory for JSON documents (default: context/reports)'
    )
    ap.add_argument(
        '--question', '-q',
        type=int,
        default=None,
        help='Keep only questions with this number'
    )
    ap.add_argument(
        '--summaries',
        action='store_true',
        help='Also write clients.json and questions.json rollups'
    )
    ap.add_argument(
        '--csv',
        action='store_true',
        help='Also write Respondees.csv and Responses.csv'
    )
    ap.add_argument(
        '--workers', '-w',
        type=int,
        default=1,
        help='Parse this many workbooks in parallel (default: 1)'
    )
    ap.add_argument(
        '--serve',
        action='store_true',
        help='Serve the parsed documents over HTTP after converting'
    )
    ap.add_argument(
        '--port', '-p',
        type=int,
        default=int(os.environ.get('PORT', 8080)),
        help='Server port (default: 8080)'
    )
    ap.add_argument(
        '--host',
        default=os.environ.get('HOST', '127.0.0.1'),
        help='Server host (default: 127.0.0.1)'
    )
    ap.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Debug logging'
    )
    return ap


def main(argv=None):
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s',
    )

    filepaths = list(args.files)
    if not filepaths:
        if not os.path.isdir(args.data_dir):
            print(f"Error: Data directory '{args.data_dir}' not found", file=sys.stderr)
            return 1
        filepaths, skipped = _discover(args.data_dir)
        print(f"No input files specified, processing all workbooks in '{args.data_dir}'")
        if skipped:
            print(
                f'Warning: skipping {len(skipped)} file(s) not in .xlsx/.xlsm format '
                '(re-save them as .xlsx to convert):',
                file=sys.stderr
            )
            for fp in skipped:
                print(f'    - {os.path.basename(fp)}', file=sys.stderr)
    if not filepaths:
        print('No files to process.')
        return 0

    results = parse_files(filepaths, workers=args.workers)

    converted = []
    failed = 0
    for result in results:
        if not result.ok:
            failed += 1
            print(f'Error processing {result.path}: {result.error}', file=sys.stderr)
            continue
        if args.question is not None:
            result = replace(result, document=filter_questions(result.document, args.question))
        converted.append(result)

    from review_export import export_csv, export_documents, export_summaries

    written = export_documents(converted, args.outdir)
    print(f'\n  Converted {len(written)} of {len(filepaths)} file(s) into {args.outdir}/')

    unmatched = [r for r in converted if r.document.get('unmatched_headers')]
    if unmatched:
        print('\n  [UNMATCHED HEADERS] The following headers were not mapped:')
        for r in unmatched:
            print(f'\n  File: {r.path}')
            for h in r.document['unmatched_headers']:
                print(f'    - {h}')

    documents = [r.document for r in converted]
    if args.summaries:
        for fp in export_summaries(documents, args.outdir):
            print(f'  Summary written: {fp}')
    if args.csv:
        for fp in export_csv(documents, args.outdir):
            print(f'  CSV written: {fp}')

    if args.serve:
        from review_server import run_server
        print(f'\n  Serving documents at http://{args.host}:{args.port}/api/documents')
        print('  Press Ctrl+C to stop\n')
        run_server(
            {os.path.basename(r.path): r.document for r in converted},
            host=args.host,
            port=args.port,
        )

    return 1 if failed else 0


if __name__ == '__main__':
    sys.exit(main())
