"""
Cross-document rollups and post-processing for parsed board-review documents.

Everything here reads already-validated documents and returns new data;
nothing is mutated.
"""


def _year(created_date):
    return str(created_date)[:4] if created_date else None


def compile_client_summary(documents):
    """
    One entry per client: distinct respondents and report years.

    Returns [{'name', 'respondents', 'years'}] sorted by client name.
    """
    clients = {}
    for doc in documents:
        client_name = doc.get('client_name')
        if not client_name:
            continue
        entry = clients.setdefault(client_name, {'respondents': set(), 'years': set()})
        for respondee in doc.get('respondees') or []:
            if respondee.get('name'):
                entry['respondents'].add(respondee['name'])
        year = _year(doc.get('created_date'))
        if year:
            entry['years'].add(year)

    return [
        {
            'name': name,
            'respondents': sorted(entry['respondents']),
            'years': sorted(entry['years']),
        }
        for name, entry in sorted(clients.items())
    ]


def compile_question_summary(documents):
    """
    One entry per question text: the years it was asked and, per
    sub-question, the years that sub-question was asked.

    Returns [{'question', 'years', 'subquestions': [{'subquestion', 'years'}]}]
    sorted by question text, sub-questions sorted within each entry.
    """
    questions = {}
    for doc in documents:
        year = _year(doc.get('created_date'))
        for report in doc.get('reports') or []:
            for q in report.get('questions') or []:
                text = q.get('question_text') or ''
                if not text:
                    continue
                entry = questions.setdefault(text, {'years': set(), 'subquestions': {}})
                if year:
                    entry['years'].add(year)
                sub_text = q.get('sub_question_text')
                if sub_text:
                    sub_years = entry['subquestions'].setdefault(sub_text, set())
                    if year:
                        sub_years.add(year)

    return [
        {
            'question': text,
            'years': sorted(entry['years']),
            'subquestions': [
                {'subquestion': sub, 'years': sorted(years)}
                for sub, years in sorted(entry['subquestions'].items())
            ],
        }
        for text, entry in sorted(questions.items())
    ]


def filter_questions(document, question_number):
    """
    Keep only the questions numbered `question_number`.

    Reports left without questions are dropped. Returns a new document.
    """
    reports = []
    for report in document.get('reports') or []:
        kept = [q for q in report['questions'] if q.get('question_number') == question_number]
        if kept:
            reports.append({**report, 'questions': kept})
    return {**document, 'reports': reports}
