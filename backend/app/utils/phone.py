from app.core.errors import ValidationError


def normalize_phone(raw: str | None) -> str:
    """
    Normalize a Ghanaian mobile number to MSISDN form.
    Returns format: 233XXXXXXXXX (e.g. 233241234567)

    Accepts 0241234567, 233241234567, +233241234567, with spaces, dashes
    or parentheses. Raises ValidationError for anything else.
    """
    if not raw:
        raise ValidationError("Phone number is required")

    num = raw.strip().replace(" ", "").replace("-", "").replace("(", "").replace(")", "")
    if num.startswith("+"):
        num = num[1:]

    if not num.isdigit():
        raise ValidationError(f"Invalid phone number: {raw}")

    # Local format
    if num.startswith("0") and len(num) == 10:
        return "233" + num[1:]

    # Country code without +
    if num.startswith("233") and len(num) == 12:
        return num

    raise ValidationError(f"Invalid phone number: {raw}")

