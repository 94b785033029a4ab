"""
Shared contract for recovery transforms.

A transform takes the current buffer (plus optional keyword limits) and
returns a new buffer plus a success flag. It never mutates its input and
never raises: failures degrade to the unmodified input with
success=False.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformOutcome:
    recovered_data: bytes
    success: bool


Transform = Callable[..., TransformOutcome]


def never_raises(func: Transform) -> Transform:
    """
    Degrade any exception inside ``func`` to a failed outcome carrying
    the original buffer.
    """

    @functools.wraps(func)
    def wrapper(data: bytes, **options) -> TransformOutcome:
        try:
            return func(data, **options)
        except Exception as exc:
            logger.warning("%s failed: %s", func.__name__, exc)
            return TransformOutcome(recovered_data=data, success=False)

    return wrapper
