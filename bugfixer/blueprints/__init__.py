"""
BugFixer Backend
Blueprint registry.
"""

from flask import request


def json_body():
    """Parsed JSON body, or None when the request carries none.

    Validators turn None into a 400 "Expected a JSON object".
    """
    return request.get_json(silent=True)
