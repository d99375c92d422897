import re
from typing import Any, List

from .errors import TargetValidationError

# Four octets of 1-3 digits, each <= 255, nothing before or after
IPV4_PATTERN = re.compile(
    r'(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}'
    r'(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)'
)


def is_valid_ipv4(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return IPV4_PATTERN.fullmatch(value) is not None


def validate_ipv4(value: Any) -> str:
    """
    Returns the address unchanged or raises TargetValidationError.
    Missing and malformed input are reported with different messages.
    """
    if value is None or value == "":
        raise TargetValidationError("Missing IP address in request body")
    if not is_valid_ipv4(value):
        raise TargetValidationError("Invalid IP address format")
    return value


def parse_ports(port_input: str) -> List[int]:
    """
    Parses a string of ports (spaces, commas, ranges) into an ordered list of integers.
    Order of first appearance is kept, since ports are tried in sequence.
    Example: "443, 80 8000-8002" -> [443, 80, 8000, 8001, 8002]
    """
    ports = []
    # Replace commas with spaces to handle both formats
    tokens = port_input.replace(',', ' ').split()

    for token in tokens:
        if '-' in token:
            try:
                start, end = map(int, token.split('-'))
            except ValueError:
                continue
            # Clamp to valid range 1-65535
            candidates = range(max(1, start), min(65535, end) + 1)
        else:
            try:
                candidates = [int(token)]
            except ValueError:
                continue

        for p in candidates:
            if 1 <= p <= 65535 and p not in ports:
                ports.append(p)
    return ports
