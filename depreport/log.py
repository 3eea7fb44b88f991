"""Logging setup for the command line tool."""

import json
import logging
from typing import Optional

TEXT_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'
LOG_FORMATS = ('text', 'json')

_RESERVED = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record with time, level, logger and message.

    Fields passed through ``extra`` are included as-is, and the exception
    message (if any) goes in ``error``.
    """

    def format(self, record: logging.LogRecord) -> str:
        data = {
            'time': self.formatTime(record, '%Y-%m-%dT%H:%M:%S%z'),
            'level': record.levelname.lower(),
            'logger': record.name,
            'message': record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith('_'):
                data[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            data['error'] = str(record.exc_info[1])

        return json.dumps(data, default=str)


def setup_logging(verbose: bool = False, log_format: str = 'text', stream: Optional[object] = None):
    """Configure the root logger on stderr according to verbosity and format."""
    level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler(stream)
    if log_format == 'json':
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logging.basicConfig(level=level, handlers=[handler], force=True)
    logging.getLogger(__name__).debug(f"verbose on, log format {log_format}")
