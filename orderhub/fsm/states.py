from __future__ import annotations

PENDING = "pending"
PREPARING = "preparing"
READY = "ready"
COMPLETED = "completed"
BILLED = "billed"
DELIVERED = "delivered"

FORWARD_CHAIN = (PENDING, PREPARING, READY, COMPLETED, BILLED)
ALL_STATUSES = FORWARD_CHAIN + (DELIVERED,)

DELETABLE = frozenset({PENDING, PREPARING})
ITEMS_MUTABLE = frozenset({PENDING, PREPARING})

DELIVERY_CHANNEL = "delivery-platform"
ORIGIN_CHANNELS = frozenset({"voice", "chat", "ui", "phone", DELIVERY_CHANNEL})

# statuses the kitchen token copies from its order
TOKEN_MIRRORED = frozenset({PREPARING, READY, COMPLETED})


# words the voice and chat channels use for a status
STATUS_ALIASES = {
    "prepare": PREPARING,
    "prep": PREPARING,
    "cooking": PREPARING,
    "complete": COMPLETED,
    "done": COMPLETED,
    "served": COMPLETED,
    "bill": BILLED,
    "paid": BILLED,
}


def normalize_status(status: str | None) -> str:
    value = (status or "").strip().lower()
    return STATUS_ALIASES.get(value, value)


def next_status(current: str) -> str | None:
    """Immediate successor along the forward chain, None at the end of it."""
    current = normalize_status(current)
    if current not in FORWARD_CHAIN:
        return None
    index = FORWARD_CHAIN.index(current)
    if index + 1 >= len(FORWARD_CHAIN):
        return None
    return FORWARD_CHAIN[index + 1]


def is_forward_step(current: str, requested: str, *, origin_channel: str | None = None) -> bool:
    current = normalize_status(current)
    requested = normalize_status(requested)
    if requested == DELIVERED:
        return origin_channel == DELIVERY_CHANNEL and current in {READY, COMPLETED}
    return next_status(current) == requested


def path_to(current: str, target: str) -> list[str]:
    """Steps needed to walk from current to target, empty when target is not ahead."""
    current = normalize_status(current)
    target = normalize_status(target)
    if current not in FORWARD_CHAIN or target not in FORWARD_CHAIN:
        return []
    start = FORWARD_CHAIN.index(current)
    end = FORWARD_CHAIN.index(target)
    if end <= start:
        return []
    return list(FORWARD_CHAIN[start + 1 : end + 1])
