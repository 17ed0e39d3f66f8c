"""
Worker Wire Protocol
====================

Envelope builders for the messages exchanged with the worker.

Outbound: ``{id, type: encode|decode|detect-mime|cancel, data?, options?}``
Inbound:  ``{id, type: progress|success|error, progress?, result?, error?, errorType?}``
"""

from typing import Any, Dict

# Outbound types
ENCODE = 'encode'
DECODE = 'decode'
DETECT_MIME = 'detect-mime'
CANCEL = 'cancel'

# Inbound types
PROGRESS = 'progress'
SUCCESS = 'success'
ERROR = 'error'

TERMINAL_TYPES = frozenset({SUCCESS, ERROR})


def progress_message(request_id: str, progress: float) -> Dict[str, Any]:
    return {'id': request_id, 'type': PROGRESS, 'progress': progress}


def success_message(request_id: str, result: Dict[str, Any]) -> Dict[str, Any]:
    return {'id': request_id, 'type': SUCCESS, 'result': result}


def error_message(request_id: str, error: BaseException) -> Dict[str, Any]:
    return {
        'id': request_id,
        'type': ERROR,
        'error': str(error) or type(error).__name__,
        'errorType': type(error).__name__,
    }


def cancel_message(request_id: str) -> Dict[str, Any]:
    return {'id': request_id, 'type': CANCEL}
