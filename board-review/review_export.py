"""
Export modules: per-workbook JSON documents, summary rollups and flat CSV tables.
"""

import csv
import json
import os

from review_summary import compile_client_summary, compile_question_summary


def write_json(data, output_path):
    """Write data as indented UTF-8 JSON, creating the parent directory."""
    parent = os.path.dirname(output_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write('\n')
    return output_path


def export_documents(results, output_dir):
    """
    Write <stem>.json for every successfully parsed result.

    `results` are ParseResult-like objects with `path` and `document`.
    Returns the written paths.
    """
    written = []
    for result in results:
        if result.document is None:
            continue
        stem = os.path.splitext(os.path.basename(result.path))[0]
        written.append(write_json(result.document, os.path.join(output_dir, f'{stem}.json')))
    return written


def export_summaries(documents, output_dir):
    """Write clients.json and questions.json rollups over the documents."""
    documents = list(documents)
    clients_path = write_json(
        compile_client_summary(documents), os.path.join(output_dir, 'clients.json')
    )
    questions_path = write_json(
        compile_question_summary(documents), os.path.join(output_dir, 'questions.json')
    )
    return [clients_path, questions_path]


def export_csv(documents, output_dir):
    """
    Export flat tables for spreadsheet or BI tools.

    Creates:
      - Respondees.csv — one row per client/respondee pair
      - Responses.csv  — one row per response, with its report and question
    """
    os.makedirs(output_dir, exist_ok=True)
    documents = list(documents)

    # ── Respondees.csv ──
    respondees_path = os.path.join(output_dir, 'Respondees.csv')
    with open(respondees_path, 'w', newline='', encoding='utf-8-sig') as f:
        w = csv.writer(f)
        w.writerow(['Client', 'Created', 'Respondent', 'Position'])
        for doc in documents:
            for r in doc['respondees']:
                w.writerow([doc['client_name'], doc['created_date'], r['name'], r.get('position', '')])

    # ── Responses.csv ──
    responses_path = os.path.join(output_dir, 'Responses.csv')
    with open(responses_path, 'w', newline='', encoding='utf-8-sig') as f:
        w = csv.writer(f)
        w.writerow([
            'Client', 'Created', 'Report', 'QuestionNumber', 'Question',
            'SubQuestion', 'Respondent', 'Position', 'Score', 'Response',
            'Comment', 'SkipReason',
        ])
        for doc in documents:
            positions = {r['name']: r.get('position', '') for r in doc['respondees']}
            for report in doc['reports']:
                for q in report['questions']:
                    number = q['question_number']
                    for resp in q['responses']:
                        w.writerow([
                            doc['client_name'], doc['created_date'], report['report_name'],
                            '' if number is None else number,
                            q['question_text'], q.get('sub_question_text', ''),
                            resp['respondent'], positions.get(resp['respondent'], ''),
                            resp.get('score', ''), resp.get('response', ''),
                            resp.get('comment', ''), resp.get('skip_reason', ''),
                        ])

    return [respondees_path, responses_path]
