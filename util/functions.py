from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_amount(value: object) -> float:
    """
    - Parse an upstream money field ("1234.56", "1.234,56", 1234.56) into a float.
    - Unparseable or missing values count as 0.0.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        pass
    try:
        return float(text.replace(".", "").replace(",", "."))
    except ValueError:
        return 0.0


def parse_int(value: object, default: int = 0) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def short_id(job_id: str) -> str:
    # Last 8 chars are enough to tell jobs apart in log lines.
    return job_id[-8:]
