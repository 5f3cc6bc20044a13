"""Memo payloads and the transaction shapes they arrive in.

Depending on the requested encoding and the node/client version, a
``getTransaction`` result describes its message in one of three shapes:

- ``json``: ``accountKeys`` is a list of base58 strings and each instruction
  points at its program through ``programIdIndex``; ``data`` is base58.
- ``jsonParsed``: ``accountKeys`` is a list of ``{"pubkey": ...}`` objects and
  instructions carry ``programId`` directly, with the memo text already in
  ``parsed`` (or raw ``data`` for programs the node cannot parse).
- compiled (v0 message objects as serialized by some clients):
  ``staticAccountKeys`` plus ``compiledInstructions`` whose ``data`` may be a
  list of byte values.

parse_message() turns the raw dict into one of these dataclasses and
normalize() reduces any of them to a NormalizedMessage so extraction runs
against a single representation.
"""

from __future__ import annotations

import base64
import binascii
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Union

import base58

logger = logging.getLogger(__name__)

MEMO_PROGRAM_ID = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"


class MemoShapeError(ValueError):
    """Transaction message matches none of the known shapes."""


@dataclass(frozen=True)
class IndexedInstruction:
    program_index: int
    data: str | bytes


@dataclass(frozen=True)
class JsonMessage:
    account_keys: list[str]
    instructions: list[IndexedInstruction]


@dataclass(frozen=True)
class ParsedInstruction:
    program_id: str
    parsed_text: str | None = None
    data: str | None = None


@dataclass(frozen=True)
class ParsedMessage:
    account_keys: list[str]
    instructions: list[ParsedInstruction]


@dataclass(frozen=True)
class CompiledMessage:
    account_keys: list[str]
    instructions: list[IndexedInstruction]


TransactionMessage = Union[JsonMessage, ParsedMessage, CompiledMessage]


@dataclass(frozen=True)
class NormalizedInstruction:
    program_id: str | None
    # Candidate payloads in the order they should be tried.
    payloads: tuple[str | bytes, ...] = field(default_factory=tuple)
    already_text: bool = False


@dataclass(frozen=True)
class NormalizedMessage:
    account_keys: list[str]
    instructions: list[NormalizedInstruction]


class VerifyError(str, enum.Enum):
    NONE = "none"
    NOT_FOUND = "not_found"
    UNDECODABLE = "undecodable"
    FAILED = "failed"


def _key_str(key: Any) -> str:
    if isinstance(key, dict):
        return str(key.get("pubkey", ""))
    return str(key)


def _coerce_data(raw: Any) -> str | bytes:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw)
    if isinstance(raw, list):
        return bytes(raw)
    if isinstance(raw, dict) and raw.get("type") == "Buffer":
        return bytes(raw.get("data", []))
    raise MemoShapeError(f"Unsupported instruction data type: {type(raw).__name__}")


def _program_index(ix: dict) -> int | None:
    for name in ("programIdIndex", "programIndex"):
        value = ix.get(name)
        if isinstance(value, int):
            return value
    return None


def parse_message(message: dict) -> TransactionMessage:
    """Classify a raw RPC message dict into one of the known shapes."""
    if "compiledInstructions" in message or "staticAccountKeys" in message:
        keys = [_key_str(k) for k in message.get("staticAccountKeys") or message.get("accountKeys") or []]
        instructions = []
        for ix in message.get("compiledInstructions") or message.get("instructions") or []:
            index = _program_index(ix)
            if index is None or "data" not in ix:
                continue
            instructions.append(IndexedInstruction(index, _coerce_data(ix["data"])))
        return CompiledMessage(keys, instructions)

    raw_keys = message.get("accountKeys")
    raw_instructions = message.get("instructions")
    if not isinstance(raw_keys, list) or not isinstance(raw_instructions, list):
        raise MemoShapeError("Message has no accountKeys/instructions lists")

    if any(isinstance(ix, dict) and "programId" in ix for ix in raw_instructions):
        parsed = []
        for ix in raw_instructions:
            if "programId" not in ix:
                continue
            text = ix.get("parsed")
            parsed.append(
                ParsedInstruction(
                    program_id=str(ix["programId"]),
                    parsed_text=text if isinstance(text, str) else None,
                    data=ix.get("data") if isinstance(ix.get("data"), str) else None,
                )
            )
        return ParsedMessage([_key_str(k) for k in raw_keys], parsed)

    indexed = []
    for ix in raw_instructions:
        index = _program_index(ix)
        if index is None or "data" not in ix:
            continue
        indexed.append(IndexedInstruction(index, _coerce_data(ix["data"])))
    return JsonMessage([_key_str(k) for k in raw_keys], indexed)


def _resolve(keys: list[str], index: int) -> str | None:
    if 0 <= index < len(keys):
        return keys[index]
    return None


def normalize(message: TransactionMessage) -> NormalizedMessage:
    if isinstance(message, ParsedMessage):
        instructions = []
        for ix in message.instructions:
            if ix.parsed_text is not None:
                instructions.append(NormalizedInstruction(ix.program_id, (ix.parsed_text,), True))
            elif ix.data is not None:
                instructions.append(NormalizedInstruction(ix.program_id, (ix.data,)))
        return NormalizedMessage(message.account_keys, instructions)

    return NormalizedMessage(
        message.account_keys,
        [
            NormalizedInstruction(_resolve(message.account_keys, ix.program_index), (ix.data,))
            for ix in message.instructions
        ],
    )


def build_memo(tag: str, digest: str) -> bytes:
    return f"{tag}:{digest}".encode("ascii")


def _accept(text: str, prefix: str) -> bool:
    return text.isprintable() and text.startswith(prefix)


def decode_memo(data: str | bytes, tag: str, *, already_text: bool = False) -> str | None:
    """Decode one instruction payload into memo text carrying ``tag``.

    String payloads are tried as base58 (the RPC default), then base64, then
    as raw text. The first candidate that is printable and starts with
    ``"<tag>:"`` wins; None if nothing qualifies.
    """
    prefix = f"{tag}:"
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            return None
        return text if _accept(text, prefix) else None

    if already_text:
        return data if _accept(data, prefix) else None

    decoders = (
        ("base58", base58.b58decode),
        ("base64", lambda s: base64.b64decode(s, validate=True)),
    )
    for name, decoder in decoders:
        try:
            text = decoder(data).decode("utf-8")
        except (ValueError, binascii.Error):
            continue
        if _accept(text, prefix):
            logger.debug("Memo decoded as %s", name)
            return text

    return data if _accept(data, prefix) else None


def extract_memo_hash(
    message: dict, tag: str, memo_program_id: str = MEMO_PROGRAM_ID
) -> tuple[str | None, VerifyError]:
    """Pull the anchored digest out of a transaction message dict."""
    try:
        normalized = normalize(parse_message(message))
    except MemoShapeError as exc:
        logger.warning("Unrecognized transaction message shape: %s", exc)
        return None, VerifyError.UNDECODABLE

    if memo_program_id not in normalized.account_keys:
        logger.warning("Memo program %s not referenced by transaction", memo_program_id)
        return None, VerifyError.UNDECODABLE

    prefix = f"{tag}:"
    for ix in normalized.instructions:
        if ix.program_id != memo_program_id:
            continue
        for payload in ix.payloads:
            text = decode_memo(payload, tag, already_text=ix.already_text)
            if text is not None:
                return text[len(prefix):], VerifyError.NONE

    logger.warning("No memo instruction carried a %r payload", tag)
    return None, VerifyError.UNDECODABLE
