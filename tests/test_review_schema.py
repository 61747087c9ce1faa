import copy

import pytest

from review_schema import SchemaError, validate_document

VALID = {
    'client_name': 'Acme',
    'created_date': '2023-01-01',
    'reports': [
        {
            'report_name': 'Board Review',
            'questions': [
                {
                    'question_number': 1,
                    'question_text': 'How effective is the board?',
                    'sub_question_text': 'Strategy',
                    'responses': [
                        {'respondent': 'A', 'score': 4, 'comment': 'Fine'},
                        {'respondent': 'B', 'response': 'N/A', 'skip_reason': 'New member'},
                    ],
                },
                {'question_number': None, 'question_text': '', 'responses': []},
            ],
        }
    ],
    'respondees': [{'name': 'A', 'position': 'CFO'}, {'name': 'B'}],
    'unmatched_headers': ['Notes'],
}


def _doc():
    return copy.deepcopy(VALID)


def test_valid_document_is_returned_unchanged():
    doc = _doc()
    assert validate_document(doc) is doc
    assert doc == VALID


def test_schema_error_is_a_value_error():
    doc = _doc()
    del doc['client_name']
    with pytest.raises(ValueError):
        validate_document(doc)


def test_blank_client_name_rejected():
    doc = _doc()
    doc['client_name'] = '  '
    with pytest.raises(SchemaError, match='client_name'):
        validate_document(doc)


def test_score_must_be_an_integer():
    doc = _doc()
    doc['reports'][0]['questions'][0]['responses'][0]['score'] = '4'
    with pytest.raises(SchemaError) as exc:
        validate_document(doc)
    assert 'reports.0.questions.0.responses.0.score' in str(exc.value)
    assert exc.value.errors


def test_question_number_is_required_but_nullable():
    doc = _doc()
    del doc['reports'][0]['questions'][1]['question_number']
    with pytest.raises(SchemaError, match='question_number'):
        validate_document(doc)


def test_empty_optional_field_placeholders_rejected():
    doc = _doc()
    doc['reports'][0]['questions'][0]['responses'][0]['comment'] = ''
    with pytest.raises(SchemaError):
        validate_document(doc)

    doc = _doc()
    doc['respondees'][1]['position'] = None
    with pytest.raises(SchemaError):
        validate_document(doc)

    doc = _doc()
    doc['unmatched_headers'] = []
    with pytest.raises(SchemaError):
        validate_document(doc)


def test_respondent_must_be_non_empty():
    doc = _doc()
    doc['reports'][0]['questions'][0]['responses'][0]['respondent'] = ''
    with pytest.raises(SchemaError):
        validate_document(doc)


def test_duplicate_respondees_rejected():
    doc = _doc()
    doc['respondees'].append({'name': 'A', 'position': 'CEO'})
    with pytest.raises(SchemaError, match='duplicate respondee'):
        validate_document(doc)


def test_unknown_keys_rejected():
    doc = _doc()
    doc['reports'][0]['questions'][0]['category'] = 'Governance'
    with pytest.raises(SchemaError):
        validate_document(doc)


def test_reports_must_be_a_list():
    doc = _doc()
    doc['reports'] = {'Board Review': []}
    with pytest.raises(SchemaError, match='reports'):
        validate_document(doc)
