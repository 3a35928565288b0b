"""Static scan of EVM bytecode for function selectors and event topics.

Walks the instruction stream (skipping PUSH immediates) and picks out:
  - 4-byte selectors compared in the dispatcher (PUSH4 followed by EQ
    within the next two instructions)
  - 32-byte constants (PUSH32), which include the topic hashes of the
    events the contract can emit

No decompilation; results are candidates to be resolved against a
signature database.
"""

from __future__ import annotations

from collections.abc import Iterator

PUSH1 = 0x60
PUSH4 = 0x63
PUSH32 = 0x7F
EQ = 0x14

_DISPATCH_WINDOW = 2


def iter_instructions(code: str) -> Iterator[tuple[int, int, bytes]]:
    """Yield (pc, opcode, immediate) for each instruction."""
    raw = bytes.fromhex(code[2:] if code.startswith("0x") else code)
    pc = 0
    while pc < len(raw):
        op = raw[pc]
        size = op - PUSH1 + 1 if PUSH1 <= op <= PUSH32 else 0
        yield pc, op, raw[pc + 1 : pc + 1 + size]
        pc += 1 + size


def function_selectors(code: str) -> list[str]:
    instructions = list(iter_instructions(code))
    selectors: list[str] = []
    for i, (_, op, imm) in enumerate(instructions):
        if op != PUSH4 or len(imm) != 4:
            continue
        following = instructions[i + 1 : i + 1 + _DISPATCH_WINDOW]
        if any(next_op == EQ for _, next_op, _ in following):
            selector = "0x" + imm.hex()
            if selector not in selectors:
                selectors.append(selector)
    return selectors


def event_topics(code: str) -> list[str]:
    topics: list[str] = []
    for _, op, imm in iter_instructions(code):
        if op == PUSH32 and len(imm) == 32:
            topic = "0x" + imm.hex()
            if topic not in topics:
                topics.append(topic)
    return topics
