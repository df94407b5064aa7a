"""Minimal contract ABI encoding for the guard contract calls."""

from Crypto.Hash import keccak

WORD = 32


def function_selector(signature: str) -> str:
    """First 4 bytes of keccak256 of the canonical signature, hex encoded."""
    digest = keccak.new(digest_bits=256, data=signature.encode("ascii")).hexdigest()
    return digest[:8]


def _encode_uint(value: int) -> bytes:
    if value < 0 or value >= 2**256:
        raise ValueError(f"uint out of range: {value}")
    return value.to_bytes(WORD, "big")


def _encode_address(address: str) -> bytes:
    raw = bytes.fromhex(address[2:] if address.startswith("0x") else address)
    if len(raw) != 20:
        raise ValueError(f"invalid address: {address}")
    return raw.rjust(WORD, b"\x00")


def _encode_bytes(data: bytes) -> bytes:
    padded_len = -(-len(data) // WORD) * WORD
    return _encode_uint(len(data)) + data.ljust(padded_len, b"\x00")


def encode_arguments(types: list[str], values: list) -> bytes:
    """Head/tail encode static (address, uintN, bool) and string arguments."""
    heads, tails = [], []
    head_size = WORD * len(types)

    for abi_type, value in zip(types, values):
        if abi_type == "string":
            offset = head_size + sum(len(t) for t in tails)
            heads.append(_encode_uint(offset))
            tails.append(_encode_bytes(value.encode("utf-8")))
        elif abi_type == "address":
            heads.append(_encode_address(value))
        elif abi_type == "bool":
            heads.append(_encode_uint(1 if value else 0))
        elif abi_type.startswith("uint"):
            bits = int(abi_type[4:] or 256)
            if value >= 2**bits:
                raise ValueError(f"{abi_type} out of range: {value}")
            heads.append(_encode_uint(value))
        else:
            raise ValueError(f"unsupported ABI type: {abi_type}")

    return b"".join(heads) + b"".join(tails)


def encode_call(name: str, types: list[str], values: list) -> str:
    """Calldata for `name(types...)` as a 0x-prefixed hex string."""
    selector = function_selector(f"{name}({','.join(types)})")
    return "0x" + selector + encode_arguments(types, values).hex()


def decode_words(data: str) -> list[bytes]:
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    return [raw[i:i + WORD] for i in range(0, len(raw), WORD)]
