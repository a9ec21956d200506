"""Size checks shared by the Swiss validator and the knockout bracket."""


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0
