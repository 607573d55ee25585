# /mediconnect/utils/request_util.py
from flask import request

from mediconnect.errors import ValidationError


def json_object(required=True):
    """The request's JSON body, which must be an object. Optional bodies default to {}."""
    data = request.get_json(silent=True)
    if data is None and not required:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
