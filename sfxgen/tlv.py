from __future__ import annotations

"""
Minimal TLV encoder/decoder for bundle metadata.

Encoding
- TLV: varint(tag) || varint(length) || payload
- Integers: unsigned LEB128 varint
- Strings: UTF-8 bytes (length provided by TLV len)

Metadata tags
- 1: artifact_name (utf8)
- 2: payload_size (varint)
- 3: timestamp (varint, 100 ns ticks)
- 4: challenge_scheme (varint; 0=none, 1=plain, 2=argon2id)
- 5: challenge (utf8, omitted when scheme is none)

Unknown tags are skipped so later minor versions can add fields.
"""

from typing import Dict, List, Tuple


def _varint_encode(n: int) -> bytes:
    if n < 0:
        raise ValueError("varint: negative not supported")
    out = bytearray()
    while True:
        b = n & 0x7F
        n >>= 7
        if n:
            out.append(b | 0x80)
        else:
            out.append(b)
            break
    return bytes(out)


def _varint_decode(data: bytes, pos: int) -> Tuple[int, int]:
    shift = 0
    result = 0
    while True:
        if pos >= len(data):
            raise ValueError("varint: truncated")
        b = data[pos]
        pos += 1
        result |= (b & 0x7F) << shift
        if not (b & 0x80):
            return result, pos
        shift += 7
        if shift > 63:
            raise ValueError("varint: too large")


def _tlv(tag: int, payload: bytes) -> bytes:
    return _varint_encode(tag) + _varint_encode(len(payload)) + payload


def _iter_tlvs(data: bytes) -> List[Tuple[int, bytes]]:
    items: List[Tuple[int, bytes]] = []
    pos = 0
    n = len(data)
    while pos < n:
        tag, pos = _varint_decode(data, pos)
        ln, pos = _varint_decode(data, pos)
        if pos + ln > n:
            raise ValueError("TLV length out of range")
        items.append((tag, data[pos : pos + ln]))
        pos += ln
    return items


def _decode_varint_field(payload: bytes) -> int:
    value, end = _varint_decode(payload, 0)
    if end != len(payload):
        raise ValueError("varint: trailing bytes")
    return value


def dumps_metadata(meta: Dict) -> bytes:
    out = bytearray()
    out += _tlv(1, str(meta["artifact_name"]).encode("utf-8"))
    out += _tlv(2, _varint_encode(int(meta["payload_size"])))
    out += _tlv(3, _varint_encode(int(meta["timestamp"])))
    scheme = int(meta.get("challenge_scheme", 0))
    out += _tlv(4, _varint_encode(scheme))
    if scheme:
        out += _tlv(5, str(meta.get("challenge", "")).encode("utf-8"))
    return bytes(out)


def loads_metadata(data: bytes) -> Dict:
    meta: Dict = {"challenge_scheme": 0, "challenge": ""}
    for tag, payload in _iter_tlvs(data):
        if tag == 1:
            meta["artifact_name"] = payload.decode("utf-8")
        elif tag == 2:
            meta["payload_size"] = _decode_varint_field(payload)
        elif tag == 3:
            meta["timestamp"] = _decode_varint_field(payload)
        elif tag == 4:
            meta["challenge_scheme"] = _decode_varint_field(payload)
        elif tag == 5:
            meta["challenge"] = payload.decode("utf-8")
    for required in ("artifact_name", "payload_size", "timestamp"):
        if required not in meta:
            raise ValueError(f"metadata missing field: {required}")
    return meta
