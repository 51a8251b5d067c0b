from models.account import normalize_email


def normalize_email_field(data: dict, key: str = "email") -> dict:
    """Lower-case and trim an email in an incoming payload before validation."""
    if isinstance(data, dict) and key in data:
        data = dict(data)
        data[key] = normalize_email(data[key])
    return data
