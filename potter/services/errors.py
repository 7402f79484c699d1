"""Error taxonomy for the token factory program and failure-signal translation.

Every failure that can reach a caller resolves to exactly one ``ErrorKind``:

- on-chain program errors, identified by their ordinal in the program's
  custom-error range (raw code minus ``CUSTOM_ERROR_BASE``)
- transport / signing failures, recognized by fixed substrings
- client-side validation failures raised before anything is sent

``translate`` accepts whatever the submission path produced (an exception from
solana-py, a plain message, or a ``FailureSignal`` carrying program logs) and
never raises.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import structlog

logger = structlog.get_logger()

# Anchor places #[error_code] variants at 6000 onwards
CUSTOM_ERROR_BASE = 0x1770

_DETAIL_LIMIT = 500


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to callers"""
    # Program errors (ordinal order matters, see PROGRAM_ERROR_KINDS)
    TOKEN_PAUSED = "TokenPaused"
    INVALID_AMOUNT = "InvalidAmount"
    UNAUTHORIZED = "Unauthorized"
    MAX_SUPPLY_EXCEEDED = "MaxSupplyExceeded"
    SYMBOL_TOO_LONG = "SymbolTooLong"
    NAME_TOO_LONG = "NameTooLong"
    ADDRESS_NOT_WHITELISTED = "AddressNotWhitelisted"
    MINTING_PAUSED = "MintingPaused"
    INVALID_METADATA_ACCOUNT = "InvalidMetadataAccount"
    URI_TOO_LONG = "UriTooLong"
    NOT_CURRENTLY_TRANSFERRING = "NotCurrentlyTransferring"

    # Transport / signing
    USER_DECLINED = "UserDeclined"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    SIMULATION_FAILED = "SimulationFailed"
    ACCOUNT_ALREADY_EXISTS = "AccountAlreadyExists"
    UNKNOWN_PROGRAM_ERROR = "UnknownProgramError"
    UNKNOWN_FAILURE = "UnknownFailure"

    # Client-side
    AMOUNT_OVERFLOW = "AmountOverflow"
    SEED_TOO_LONG = "SeedTooLong"
    ACCOUNT_NOT_FOUND = "AccountNotFound"


PROGRAM_ERROR_KINDS = (
    ErrorKind.TOKEN_PAUSED,
    ErrorKind.INVALID_AMOUNT,
    ErrorKind.UNAUTHORIZED,
    ErrorKind.MAX_SUPPLY_EXCEEDED,
    ErrorKind.SYMBOL_TOO_LONG,
    ErrorKind.NAME_TOO_LONG,
    ErrorKind.ADDRESS_NOT_WHITELISTED,
    ErrorKind.MINTING_PAUSED,
    ErrorKind.INVALID_METADATA_ACCOUNT,
    ErrorKind.URI_TOO_LONG,
    ErrorKind.NOT_CURRENTLY_TRANSFERRING,
)

ERROR_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.TOKEN_PAUSED: "Token transfers are currently paused.",
    ErrorKind.INVALID_AMOUNT: "Invalid amount specified.",
    ErrorKind.UNAUTHORIZED: "Unauthorized: only the token authority can perform this action.",
    ErrorKind.MAX_SUPPLY_EXCEEDED: "Maximum supply exceeded.",
    ErrorKind.SYMBOL_TOO_LONG: "Symbol too long (max 10 characters).",
    ErrorKind.NAME_TOO_LONG: "Name too long (max 32 characters).",
    ErrorKind.ADDRESS_NOT_WHITELISTED: "Address not whitelisted for transfers.",
    ErrorKind.MINTING_PAUSED: "Minting is currently paused.",
    ErrorKind.INVALID_METADATA_ACCOUNT: "Invalid metadata account.",
    ErrorKind.URI_TOO_LONG: "URI too long (max 200 characters).",
    ErrorKind.NOT_CURRENTLY_TRANSFERRING: "Transfer hook invoked outside of a transfer.",
    ErrorKind.USER_DECLINED: "Transaction cancelled by user.",
    ErrorKind.INSUFFICIENT_FUNDS: "Insufficient SOL balance for transaction fees.",
    ErrorKind.SIMULATION_FAILED: "Transaction simulation failed.",
    ErrorKind.ACCOUNT_ALREADY_EXISTS: "Account already exists.",
    ErrorKind.UNKNOWN_PROGRAM_ERROR: "The program rejected the transaction with an unrecognized error code.",
    ErrorKind.UNKNOWN_FAILURE: "The transaction failed for an unrecognized reason.",
    ErrorKind.AMOUNT_OVERFLOW: "Amount does not fit in an unsigned 64-bit integer.",
    ErrorKind.SEED_TOO_LONG: "Address seeds exceed the ledger's limits.",
    ErrorKind.ACCOUNT_NOT_FOUND: "Account not found on the ledger.",
}

# Checked in this order, before any numeric code parsing
_TRANSPORT_MATCHERS = (
    (ErrorKind.USER_DECLINED, ("user rejected", "user declined", "rejected the request")),
    (ErrorKind.INSUFFICIENT_FUNDS, (
        "insufficient funds",
        "insufficient lamports",
        "attempt to debit an account but found no record of a prior credit",
    )),
    (ErrorKind.ACCOUNT_ALREADY_EXISTS, ("already in use",)),
)

# The SPL Token program reports its own failures this way (e.g. "Error: insufficient
# funds" for a token balance shortfall); those are program codes, not transport
_PROGRAM_ERROR_LOG_PREFIX = "program log: error:"

_SIMULATION_MARKERS = ("transaction simulation failed", "simulation failed")

_ANCHOR_ERROR_RE = re.compile(
    r"AnchorError.*?Error Code: (\w+)\. Error Number: (\d+)\. Error Message: (.*)"
)
_CUSTOM_ERROR_RE = re.compile(r"custom program error: 0x([0-9a-fA-F]+)")
# solders repr of a confirmed-but-failed transaction, or its RPC JSON form
_INSTRUCTION_ERROR_RE = re.compile(
    r"InstructionErrorCustom\((?:code=)?(\d+)\)|[\"']Custom[\"']\s*:\s*(\d+)"
)


class OperationError(Exception):
    """A classified failure. ``remote`` is False for client-side validation."""

    def __init__(
        self,
        kind: ErrorKind,
        detail: Optional[str] = None,
        code: Optional[int] = None,
        raw_code: Optional[int] = None,
        remote: bool = False,
    ):
        self.kind = kind
        self.detail = detail
        self.code = code
        self.raw_code = raw_code
        self.remote = remote
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return ERROR_MESSAGES[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "error_kind": self.kind.value,
            "message": self.message,
            "detail": self.detail,
        }
        if self.code is not None:
            data["code"] = self.code
        if self.raw_code is not None:
            data["raw_code"] = self.raw_code
        return data

    def __repr__(self) -> str:
        return f"OperationError({self.kind.value}, code={self.code}, detail={self.detail!r})"


@dataclass
class FailureSignal:
    """Raw failure as reported by the submission path"""
    message: str
    logs: List[str] = field(default_factory=list)

    def lines(self) -> List[str]:
        return [*self.logs, *self.message.splitlines()]


def kind_for_ordinal(ordinal: int) -> Optional[ErrorKind]:
    """Map a custom-error ordinal to its kind, None when outside the table"""
    if 0 <= ordinal < len(PROGRAM_ERROR_KINDS):
        return PROGRAM_ERROR_KINDS[ordinal]
    return None


def translate_program_code(raw_code: int, detail: Optional[str] = None) -> OperationError:
    """Classify a raw program error code (e.g. 0x1776)"""
    ordinal = raw_code - CUSTOM_ERROR_BASE
    kind = kind_for_ordinal(ordinal)
    return OperationError(
        kind or ErrorKind.UNKNOWN_PROGRAM_ERROR,
        detail=detail,
        code=ordinal if ordinal >= 0 else None,
        raw_code=raw_code,
        remote=True,
    )


def extract_failure_signal(failure: Any) -> FailureSignal:
    """Normalize an exception, message or mapping into a FailureSignal.

    solana-py raises ``RPCException`` whose first argument is a solders RPC
    error object (``.message`` and ``.data.logs`` for preflight failures) or,
    in older releases, a plain dict with the same shape.
    """
    if isinstance(failure, FailureSignal):
        return failure
    if isinstance(failure, str):
        return FailureSignal(message=failure)
    if isinstance(failure, Mapping):
        return _signal_from_mapping(failure)

    message = str(failure)
    logs: List[str] = list(getattr(failure, "logs", None) or [])
    for arg in getattr(failure, "args", ()):
        if isinstance(arg, Mapping):
            inner = _signal_from_mapping(arg)
            message = f"{message}\n{inner.message}" if inner.message not in message else message
            logs.extend(inner.logs)
            continue
        inner_message = getattr(arg, "message", None)
        if isinstance(inner_message, str) and inner_message not in message:
            message = f"{message}\n{inner_message}"
        inner_logs = getattr(getattr(arg, "data", None), "logs", None)
        if inner_logs:
            logs.extend(str(line) for line in inner_logs)
    return FailureSignal(message=message, logs=logs)


def _signal_from_mapping(data: Mapping) -> FailureSignal:
    message = str(data.get("message", data))
    logs = data.get("logs")
    inner = data.get("data")
    if not logs and isinstance(inner, Mapping):
        logs = inner.get("logs")
    return FailureSignal(message=message, logs=[str(line) for line in (logs or [])])


def translate(failure: Any) -> OperationError:
    """Resolve any failure signal to an OperationError. Never raises."""
    if isinstance(failure, OperationError):
        return failure
    try:
        return _translate(extract_failure_signal(failure))
    except Exception as e:
        logger.warning("Failed to translate failure signal", error=str(e))
        return OperationError(
            ErrorKind.UNKNOWN_FAILURE,
            detail=_truncate(repr(failure)),
            remote=True,
        )


def _translate(signal: FailureSignal) -> OperationError:
    lines = signal.lines()
    haystack = "\n".join(lines).lower()
    transport_lines = [
        line for line in lines
        if not line.lower().startswith(_PROGRAM_ERROR_LOG_PREFIX)
    ]
    transport_haystack = "\n".join(transport_lines).lower()

    for kind, patterns in _TRANSPORT_MATCHERS:
        for pattern in patterns:
            if pattern in transport_haystack:
                return OperationError(kind, detail=_matching_line(transport_lines, pattern), remote=True)

    for line in lines:
        anchor_match = _ANCHOR_ERROR_RE.search(line)
        if anchor_match:
            error = translate_program_code(int(anchor_match.group(2)), detail=_truncate(line))
            if error.kind == ErrorKind.UNKNOWN_PROGRAM_ERROR:
                error.detail = f"{anchor_match.group(1)}: {anchor_match.group(3)}"
            return error

        custom_match = _CUSTOM_ERROR_RE.search(line)
        if custom_match:
            return translate_program_code(int(custom_match.group(1), 16), detail=_truncate(line))

        instruction_match = _INSTRUCTION_ERROR_RE.search(line)
        if instruction_match:
            raw_code = instruction_match.group(1) or instruction_match.group(2)
            return translate_program_code(int(raw_code), detail=_truncate(line))

    for marker in _SIMULATION_MARKERS:
        if marker in haystack:
            return OperationError(
                ErrorKind.SIMULATION_FAILED,
                detail=_truncate(signal.message),
                remote=True,
            )

    return OperationError(
        ErrorKind.UNKNOWN_FAILURE,
        detail=_truncate(signal.message),
        remote=True,
    )


def _matching_line(lines: List[str], pattern: str) -> str:
    for line in lines:
        if pattern in line.lower():
            return _truncate(line)
    return ""


def _truncate(text: str) -> str:
    if len(text) <= _DETAIL_LIMIT:
        return text
    return text[:_DETAIL_LIMIT] + "..."
