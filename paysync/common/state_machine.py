"""Transaction state ordering enforced when applying provider outcomes."""

# Success and Failure are both final; neither may replace the other.
TRANSACTION_STATE_RANK: dict[str, int] = {
    "Initial": 0,
    "Pending": 1,
    "Success": 2,
    "Failure": 2,
}


def compare_transaction_states(current: str, new: str) -> int:
    """Return a positive number when `new` is further along than `current`.

    Unknown states on either side compare as -1 so they never trigger a change.
    """

    if current not in TRANSACTION_STATE_RANK or new not in TRANSACTION_STATE_RANK:
        return -1
    return TRANSACTION_STATE_RANK[new] - TRANSACTION_STATE_RANK[current]


def is_more_final(current: str, new: str) -> bool:
    return compare_transaction_states(current, new) > 0
