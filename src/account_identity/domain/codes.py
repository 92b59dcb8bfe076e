"""One-time numeric code generation."""

import secrets

CODE_LENGTH = 4


def generate_code(length: int = CODE_LENGTH) -> str:
    """
    Generate a decimal code of exactly ``length`` digits.

    Draws uniformly from [10^(length-1), 10^length - 1] using the secrets
    module, so the first digit is never zero and no padding is needed.
    """
    if length < 1:
        raise ValueError(f"code length must be positive, got {length}")
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))
