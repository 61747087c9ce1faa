import copy

from review_summary import compile_client_summary, compile_question_summary, filter_questions


def make_doc(client, created, respondents, questions=()):
    return {
        'client_name': client,
        'created_date': created,
        'reports': [
            {
                'report_name': 'Board Review',
                'questions': [dict(q, responses=[]) for q in questions],
            }
        ],
        'respondees': [{'name': n} for n in respondents],
    }


def test_client_summary_merges_respondents_and_years():
    docs = [
        make_doc('Acme', '2024-06-01', ['B', 'C']),
        make_doc('Acme', '2023-01-01', ['A', 'B']),
    ]
    assert compile_client_summary(docs) == [
        {'name': 'Acme', 'respondents': ['A', 'B', 'C'], 'years': ['2023', '2024']},
    ]


def test_client_summary_is_independent_of_input_order():
    docs = [
        make_doc('Zenith', '2022-03-01', ['Q']),
        make_doc('Acme', '2023-01-01', ['A']),
        make_doc('Acme', 'undated', ['B']),
    ]
    assert compile_client_summary(docs) == compile_client_summary(list(reversed(docs)))
    assert [c['name'] for c in compile_client_summary(docs)] == ['Acme', 'Zenith']
    assert compile_client_summary(docs)[0]['years'] == ['2023', 'unda']


def test_client_summary_skips_documents_without_client():
    docs = [make_doc('', '2023-01-01', ['A']), make_doc('Acme', '2023-01-01', [])]
    assert compile_client_summary(docs) == [{'name': 'Acme', 'respondents': [], 'years': ['2023']}]


def test_question_summary_tracks_subquestion_years():
    docs = [
        make_doc('Acme', '2023-01-01', [], [
            {'question_number': 1, 'question_text': 'Board size', 'sub_question_text': 'Independence'},
            {'question_number': 2, 'question_text': 'Culture'},
        ]),
        make_doc('Beta', '2024-05-05', [], [
            {'question_number': 7, 'question_text': 'Board size', 'sub_question_text': 'Diversity'},
            {'question_number': 7, 'question_text': 'Board size', 'sub_question_text': 'Independence'},
            {'question_number': None, 'question_text': ''},
        ]),
    ]
    assert compile_question_summary(docs) == [
        {
            'question': 'Board size',
            'years': ['2023', '2024'],
            'subquestions': [
                {'subquestion': 'Diversity', 'years': ['2024']},
                {'subquestion': 'Independence', 'years': ['2023', '2024']},
            ],
        },
        {'question': 'Culture', 'years': ['2023'], 'subquestions': []},
    ]
    assert compile_question_summary(docs) == compile_question_summary(list(reversed(docs)))


def test_filter_questions_drops_empty_reports_without_mutating():
    doc = make_doc('Acme', '2023-01-01', ['A'], [
        {'question_number': 1, 'question_text': 'One'},
        {'question_number': 2, 'question_text': 'Two'},
    ])
    doc['reports'].append({
        'report_name': 'Other',
        'questions': [{'question_number': 2, 'question_text': 'Two', 'responses': []}],
    })
    original = copy.deepcopy(doc)

    filtered = filter_questions(doc, 1)

    assert [r['report_name'] for r in filtered['reports']] == ['Board Review']
    assert [q['question_text'] for q in filtered['reports'][0]['questions']] == ['One']
    assert filtered['respondees'] == doc['respondees']
    assert doc == original


def test_filter_questions_with_no_match_keeps_document_shell():
    doc = make_doc('Acme', '2023-01-01', ['A'], [{'question_number': 1, 'question_text': 'One'}])
    assert filter_questions(doc, 99)['reports'] == []
