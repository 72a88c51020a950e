"""
Transaction log decoding

Walks runtime log lines, tracks which program is executing and decodes the
"Program data:" payloads the CLMM program emits. A bad line never aborts the
walk; it comes back as a LogEntry carrying the error.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Union

from solders.pubkey import Pubkey

from . import events  # noqa: F401  (registers event records)
from . import instructions  # noqa: F401  (registers instruction records)
from .codec import decode_any
from .constants import PROGRAM_DATA_PREFIX
from ..errors import ClmmClientError, DecodeError


logger = logging.getLogger(__name__)

_INVOKE = re.compile(r"^Program (\w+) invoke \[(\d+)\]$")
_SUCCESS = re.compile(r"^Program (\w+) success$")
_FAILED = re.compile(r"^Program (\w+) failed: (.*)$")


@dataclass(frozen=True)
class LogEntry:
    """One "Program data:" line: a decoded event or the error it raised"""
    index: int
    program_id: str
    depth: int
    line: str
    event: Optional[Any] = None
    error: Optional[ClmmClientError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def decode_event(payload: str) -> Any:
    """
    Decode one base64 event payload (the text after "Program data: ").

    Raises:
        DecodeError: If the payload is not valid base64
        UnknownDiscriminatorError: If no event is registered for the tag
        TruncatedDataError: If the payload is shorter than the event layout
    """
    try:
        raw = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError.invalid(f"Invalid base64 event payload: {e}", "event")
    return decode_any(raw, "event")


def decode_instruction(data: Union[bytes, str]) -> Any:
    """
    Decode raw instruction data (bytes, or a hex string as printed by explorers).

    Raises:
        DecodeError: If a hex string is malformed
        UnknownDiscriminatorError: If no instruction is registered for the tag
    """
    if isinstance(data, str):
        text = data.strip()
        if text.startswith("0x"):
            text = text[2:]
        try:
            data = bytes.fromhex(text)
        except ValueError as e:
            raise DecodeError.invalid(f"Invalid hex instruction data: {e}", "instruction")
    return decode_any(data, "instruction")


def decode_logs(lines: Iterable[str], program_id: Union[Pubkey, str]) -> List[LogEntry]:
    """
    Decode the events the given program emitted in a transaction's logs.

    Only "Program data:" lines written while program_id is the innermost
    running program are decoded; data from other programs (including CPIs
    made by program_id) is skipped.
    """
    target = str(program_id)
    stack: List[str] = []
    entries: List[LogEntry] = []

    for index, line in enumerate(lines):
        match = _INVOKE.match(line)
        if match:
            stack.append(match.group(1))
            continue

        match = _SUCCESS.match(line) or _FAILED.match(line)
        if match:
            if stack and stack[-1] == match.group(1):
                stack.pop()
            else:
                logger.debug(f"Log line {index}: unbalanced exit for {match.group(1)}")
            continue

        if not line.startswith(PROGRAM_DATA_PREFIX) or not stack or stack[-1] != target:
            continue

        payload = line[len(PROGRAM_DATA_PREFIX):]
        try:
            entries.append(LogEntry(index, target, len(stack), line, event=decode_event(payload)))
        except ClmmClientError as e:
            logger.debug(f"Log line {index}: {e}")
            entries.append(LogEntry(index, target, len(stack), line, error=e))

    return entries
