"""
Output contract for parsed board-review documents.

The parser builds plain dicts; validate_document checks them against these
models before anything leaves the parser. Optional fields must be omitted
when empty, never sent as null, "" or [].
"""

from typing import List, Optional

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError, field_validator, model_validator


class SchemaError(ValueError):
    """An assembled document does not satisfy the output contract."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or []


class _Record(BaseModel):
    model_config = {'extra': 'forbid'}

    @model_validator(mode='before')
    @classmethod
    def reject_empty_optionals(cls, data):
        if isinstance(data, dict):
            for name, info in cls.model_fields.items():
                if info.is_required() or name not in data:
                    continue
                if data[name] is None or data[name] == '' or data[name] == []:
                    raise ValueError(f'{name} must be omitted when empty')
        return data


class Response(_Record):
    respondent: StrictStr = Field(..., min_length=1)
    score: Optional[StrictInt] = None
    response: Optional[StrictStr] = None
    comment: Optional[StrictStr] = None
    skip_reason: Optional[StrictStr] = None


class Question(_Record):
    question_number: Optional[StrictInt] = Field(...)
    question_text: StrictStr
    sub_question_text: Optional[StrictStr] = None
    responses: List[Response]


class Report(_Record):
    report_name: StrictStr
    questions: List[Question]


class Respondee(_Record):
    name: StrictStr = Field(..., min_length=1)
    position: Optional[StrictStr] = None


class Document(_Record):
    """Root of one parsed spreadsheet."""

    client_name: StrictStr
    created_date: StrictStr
    reports: List[Report]
    respondees: List[Respondee]
    unmatched_headers: Optional[List[StrictStr]] = None

    @field_validator('client_name', 'created_date')
    @classmethod
    def validate_non_blank(cls, v):
        if not v.strip():
            raise ValueError('must be non-empty')
        return v

    @model_validator(mode='after')
    def validate_unique_respondees(self):
        seen = set()
        for respondee in self.respondees:
            if respondee.name in seen:
                raise ValueError(f'duplicate respondee {respondee.name!r}')
            seen.add(respondee.name)
        return self


def _describe(error):
    loc = '.'.join(str(part) for part in error.get('loc', ())) or '(document)'
    return f"{loc}: {error.get('msg', 'invalid')}"


def validate_document(document):
    """
    Check a document against the output contract.

    Returns the document unchanged; raises SchemaError naming the first
    violated constraint otherwise.
    """
    try:
        Document.model_validate(document)
    except ValidationError as e:
        errors = e.errors()
        message = f'Invalid document: {_describe(errors[0])}'
        if len(errors) > 1:
            message += f' (+{len(errors) - 1} more)'
        raise SchemaError(message, errors) from e
    return document
