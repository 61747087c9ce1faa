"""
Flask server — accepts workbook uploads and serves parsed documents and summaries.
"""

import json
import logging

from flask import Flask, Response, request

from review_parser import SUPPORTED_EXTENSIONS, parse_bytes
from review_summary import compile_client_summary, compile_question_summary, filter_questions

log = logging.getLogger(__name__)


def _json_response(payload, status=200):
    return Response(
        json.dumps(payload, ensure_ascii=False),
        status=status,
        mimetype='application/json'
    )


def _error(message, status):
    return _json_response({'error': message}, status=status)


def create_app(initial_documents=None):
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = 50 * 1024 * 1024  # 50 MB max upload

    # name -> document, insertion order kept for listing
    app.review_documents = dict(initial_documents or {})

    @app.route('/api/documents')
    def list_documents():
        return _json_response(app.review_documents)

    @app.route('/api/documents/<path:name>')
    def get_document(name):
        document = app.review_documents.get(name)
        if document is None:
            return _error(f'No document named {name!r}', 404)
        return _json_response(document)

    @app.route('/api/upload', methods=['POST'])
    def upload():
        if 'file' not in request.files:
            return _error('No file provided', 400)
        f = request.files['file']
        if not f.filename:
            return _error('No file selected', 400)
        if not f.filename.lower().endswith(SUPPORTED_EXTENSIONS):
            return _error('Unsupported file format. Use .xlsx or .xlsm', 422)

        question = request.form.get('question') or None
        if question is not None:
            try:
                question = int(question)
            except ValueError:
                return _error(f'Invalid question number: {question!r}', 400)

        try:
            document = parse_bytes(f.read())
        except ValueError as e:
            return _error(str(e), 422)
        except Exception as e:
            log.exception('Failed to parse upload %s', f.filename)
            return _error(f'Failed to parse file: {e}', 500)

        if question is not None:
            document = filter_questions(document, question)
        app.review_documents[f.filename] = document
        return _json_response(document)

    @app.route('/api/summary/clients')
    def client_summary():
        return _json_response(compile_client_summary(app.review_documents.values()))

    @app.route('/api/summary/questions')
    def question_summary():
        return _json_response(compile_question_summary(app.review_documents.values()))

    return app


def run_server(documents, host='127.0.0.1', port=8080):
    app = create_app(initial_documents=documents)
    app.run(host=host, port=port, debug=False)
