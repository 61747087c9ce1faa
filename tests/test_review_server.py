from io import BytesIO

import pytest

from review_server import create_app
from test_review_io import build_workbook


@pytest.fixture
def client():
    app = create_app()
    app.config['TESTING'] = True
    return app.test_client()


def upload(client, data, filename='review.xlsx', **form):
    payload = {'file': (BytesIO(data), filename)}
    payload.update(form)
    return client.post('/api/upload', data=payload, content_type='multipart/form-data')


def test_upload_parses_and_stores_document(client):
    resp = upload(client, build_workbook())
    assert resp.status_code == 200
    assert resp.get_json()['client_name'] == 'Acme'

    listing = client.get('/api/documents').get_json()
    assert list(listing) == ['review.xlsx']
    assert client.get('/api/documents/review.xlsx').get_json()['created_date'] == '2023-01-01'


def test_upload_with_question_filter(client):
    resp = upload(client, build_workbook(), question='2')
    questions = resp.get_json()['reports'][0]['questions']
    assert [q['question_number'] for q in questions] == [2]


def test_upload_rejects_bad_question(client):
    resp = upload(client, build_workbook(), question='two')
    assert resp.status_code == 400


def test_upload_without_file(client):
    resp = client.post('/api/upload', data={}, content_type='multipart/form-data')
    assert resp.status_code == 400
    assert resp.get_json() == {'error': 'No file provided'}


def test_upload_structural_error_is_unprocessable(client):
    resp = upload(client, build_workbook(data_sheets={}))
    assert resp.status_code == 422
    assert 'details sheet' in resp.get_json()['error']
    assert client.get('/api/documents').get_json() == {}


def test_upload_unsupported_extension(client):
    resp = upload(client, b'a,b\n', filename='review.csv')
    assert resp.status_code == 422


def test_upload_corrupt_workbook(client):
    resp = upload(client, b'not a zip file', filename='review.xlsx')
    assert resp.status_code == 500


def test_unknown_document_is_404(client):
    resp = client.get('/api/documents/missing.xlsx')
    assert resp.status_code == 404


def test_summaries_cover_all_uploads():
    app = create_app(initial_documents={
        'old.xlsx': {
            'client_name': 'Acme',
            'created_date': '2022-04-01',
            'reports': [],
            'respondees': [{'name': 'Ann'}],
        },
    })
    client = app.test_client()
    upload(client, build_workbook())

    clients = client.get('/api/summary/clients').get_json()
    assert clients == [{'name': 'Acme', 'respondents': ['Ann', 'Jane Doe', 'John Roe'], 'years': ['2022', '2023']}]

    questions = client.get('/api/summary/questions').get_json()
    assert [q['question'] for q in questions] == ['How effective is the board?', 'Is the agenda clear?']
