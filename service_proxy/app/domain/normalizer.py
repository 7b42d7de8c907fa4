"""
JSON body normalization.
"""

import json

from shared.errors import NormalizeError


def normalize(body: bytes) -> bytes:
    """
    Re-serialize a JSON object body compactly with sorted keys.

    Raises NormalizeError when ``body`` is not well-formed UTF-8 JSON or its
    top-level value is not an object; callers keep such bodies as they are.
    The output is a fixed point: normalizing it again returns the same bytes.
    """
    try:
        document = json.loads(body.decode("utf-8"))
        if not isinstance(document, dict):
            raise NormalizeError(details={"error": f"top-level value is {type(document).__name__}, not an object"})
        return json.dumps(
            document,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False,
        ).encode("utf-8")
    except ValueError as exc:
        # Covers JSONDecodeError and Unicode errors (e.g. lone surrogates)
        raise NormalizeError(details={"error": str(exc)}) from exc
