import base64
import binascii
from datetime import timezone

from flask import request
from marshmallow import Schema, ValidationError, fields, pre_load

from .errors import InvalidPayloadError


class Base64Bytes(fields.Field):
    """Binary column exposed to JSON clients as a base64 string."""

    default_error_messages = {'invalid': 'Not a valid base64 string.'}

    def _serialize(self, value, attr, obj, **kwargs):
        return encode_blob(value)

    def _deserialize(self, value, attr, data, **kwargs):
        if not isinstance(value, str):
            raise self.make_error('invalid')
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as error:
            raise self.make_error('invalid') from error


class NaiveUTCDateTime(fields.DateTime):
    """ISO-8601 input stored as naive UTC, like every timestamp column."""

    def _deserialize(self, value, attr, data, **kwargs):
        result = super()._deserialize(value, attr, data, **kwargs)
        if result.tzinfo is not None:
            result = result.astimezone(timezone.utc).replace(tzinfo=None)
        return result


def encode_blob(value):
    """Binary column to the base64 text sent in responses."""
    if value is None:
        return None
    return base64.b64encode(value).decode('ascii')


class CaseInsensitiveSchema(Schema):
    """Accepts `Login` as well as `login`; some clients send PascalCase keys."""

    @pre_load
    def lower_keys(self, data, **kwargs):
        if isinstance(data, dict):
            return {key.lower() if isinstance(key, str) else key: value
                    for key, value in data.items()}
        return data


def get_json_body():
    """
    Return the JSON body of the current request

    Raises InvalidPayloadError when the body is missing or not JSON, so the
    API answers 400 instead of Flask's 415.
    """
    data = request.get_json(silent=True)
    if data is None:
        raise InvalidPayloadError('Request body must be JSON')
    return data


def validate_request_data(schema_class, data, many=False):
    """
    Run a marshmallow schema over incoming data

    Returns:
        tuple: (is_valid, data_or_errors)
    """
    schema = schema_class(many=many)
    try:
        validated_data = schema.load(data)
        return True, validated_data
    except ValidationError as err:
        return False, err.messages
