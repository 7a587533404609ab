import hashlib
from unittest.mock import MagicMock

# RFC 7636 Appendix B example values
RFC_VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
RFC_CHALLENGE = "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingCrypto:
    """Deterministic crypto provider: each draw is a distinct repeated byte."""

    def __init__(self):
        self.draws = 0

    def random_bytes(self, n: int) -> bytes:
        self.draws += 1
        return bytes([self.draws % 256]) * n

    def sha256(self, data: bytes) -> bytes:
        return hashlib.sha256(data).digest()


def make_response(
    status_code: int, json_data: object = None, text: str = ""
) -> MagicMock:
    """Build a stand-in for httpx.Response."""
    response = MagicMock()
    response.status_code = status_code
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    response.text = text
    return response
