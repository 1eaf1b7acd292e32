import hmac
from typing import Iterable, Union


def verify_api_key(api_key: str, valid_keys: Union[str, Iterable[str]]) -> bool:
    """
    Verify API key against configured valid keys
    """
    if not api_key or not valid_keys:
        return False

    if isinstance(valid_keys, str):
        valid_keys = [valid_keys]

    return any(hmac.compare_digest(api_key, key) for key in valid_keys)
