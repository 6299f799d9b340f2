"""
Convert a decrypted YAML or JSON document into environment variables.

Each top-level value is parsed into one of three variants, and each variant has a single
string representation in the environment.
"""

import datetime
import json
import logging
import typing

import attr
import yaml

from .utils import UnsupportedFormat

log = logging.getLogger(__name__)


@attr.s(frozen=True)
class Scalar:
    value: str = attr.ib()


@attr.s(frozen=True)
class Sequence:
    values: typing.List[str] = attr.ib(converter=list)


@attr.s(frozen=True)
class Other:
    value: str = attr.ib()


Value = typing.Union[Scalar, Sequence, Other]
Document = typing.Dict[str, Value]


def _text(value: typing.Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if value is None:
        return ''
    return yaml.safe_dump(value, default_flow_style=True, width=float('inf')).strip()


def parse_value(value: typing.Any) -> Value:
    if isinstance(value, (str, int, float)):
        return Scalar(_text(value))
    if isinstance(value, list):
        return Sequence(_text(item) for item in value)
    return Other(_text(value))


def parse_document(data: bytes, suffix: str = '.yml') -> Document:
    """Parse a document, using the JSON parser for .json files and YAML otherwise."""
    try:
        if suffix == '.json':
            parsed = json.loads(data)
        else:
            parsed = yaml.safe_load(data)
    except (ValueError, yaml.YAMLError) as error:
        raise UnsupportedFormat(f"Could not parse document: {error}") from error

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise UnsupportedFormat("Only documents with a top-level mapping can be exported")

    return {str(key): parse_value(value) for key, value in parsed.items()}


def render(value: Value) -> str:
    if isinstance(value, Scalar):
        return value.value
    if isinstance(value, Sequence):
        return ','.join(value.values)
    if isinstance(value, Other):
        return value.value
    raise TypeError(f"Unknown value {value!r}")


def overlay(document: Document) -> typing.Dict[str, str]:
    """Environment variables for a document, with upper-cased names."""
    env = {key.upper(): render(value) for key, value in document.items()}

    for name, value in env.items():
        if not name or '=' in name or '\0' in name:
            raise UnsupportedFormat(f"{name!r} can't be used as an environment variable name")
        if '\0' in value:
            raise UnsupportedFormat(f"The value of {name} contains a null character")

    log.debug(f"Exporting environment variables {', '.join(sorted(env))}")
    return env
