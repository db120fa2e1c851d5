import re

from .constants import EXPIRATION_CHOICES, SECONDS_PER_YEAR

ALGORITHM_LABELS = {
    "ecc": "ECC (Curve25519)",
    "rsa2048": "RSA 2048-bit",
    "rsa4096": "RSA 4096-bit",
    "rsa": "RSA",
}


def format_fingerprint(fingerprint):
    if not fingerprint:
        return ""
    return re.sub(r"(.{4})", r"\1 ", fingerprint.replace(" ", "")).strip().upper()


def format_date(value):
    if not value:
        return ""
    return value.strftime("%b %d, %Y, %H:%M")


def format_algorithm(algorithm):
    if not algorithm:
        return "Unknown"
    name = getattr(algorithm, "value", algorithm)
    return ALGORITHM_LABELS.get(name.lower(), name.upper())


def format_expiration(seconds):
    if not seconds:
        return "Never expires"
    if seconds in EXPIRATION_CHOICES:
        return EXPIRATION_CHOICES[seconds]
    years = round(seconds / SECONDS_PER_YEAR)
    return f"{years} year{'' if years == 1 else 's'}"


def format_usage(usage):
    if usage is None:
        return "None"
    # Certify is always set on the primary key
    names = ["Certify"] + [label for label, enabled in (("Sign", usage.sign), ("Encrypt", usage.encrypt)) if enabled]
    return ", ".join(names)


def format_file_size(size):
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    exponent = 0
    while size >= 1024 and exponent < len(units) - 1:
        size /= 1024
        exponent += 1
    return f"{round(size, 2):g} {units[exponent]}"


def truncate_text(text, max_length=50):
    if not text or len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def format_message_preview(message, max_lines=5):
    if not message:
        return ""
    lines = message.split("\n")
    if len(lines) <= max_lines:
        return message
    return "\n".join(lines[:max_lines]) + "\n... (truncated)"


def sanitize_filename(filename):
    return re.sub(r"-+", "-", re.sub(r"[^a-z0-9.-]", "-", filename, flags=re.I)).lower()


def _owner_name(record):
    if record.metadata.user_ids:
        return record.metadata.user_ids[0].split("<")[0].split("(")[0].strip()
    return ""


def key_backup_filename(name, now):
    return f"pgp-keys-{sanitize_filename(name or 'user')}-{int(now.timestamp() * 1000)}.json"


def public_key_filename(record):
    return f"{sanitize_filename(_owner_name(record) or 'user')}-{record.metadata.key_id.lower()}-public.asc"


def text_bundle_filename(record, now):
    return f"keypair_{record.metadata.key_id}_{now.strftime('%Y-%m-%dT%H-%M-%S')}.txt"


def backup_filename_for(record, now):
    return key_backup_filename(_owner_name(record), now)


def key_info(record):
    """Display-ready summary of a key pair, or None when there is none."""
    if record is None:
        return None
    metadata = record.metadata
    return {
        "key_id": metadata.key_id,
        "fingerprint": format_fingerprint(metadata.fingerprint),
        "algorithm": format_algorithm(metadata.algorithm),
        "created": format_date(metadata.created_at),
        "user_ids": list(metadata.user_ids),
        "has_private_key": record.has_private_key,
    }


def describe_verification(result):
    if result.valid:
        return (f"Signature is VALID\n\nOriginal message:\n{result.recovered_message}"
                f"\n\nSigned by: {result.signer_key_id or 'Unknown'}")
    return ("Signature is INVALID\n\nReason: Signature verification failed - the message may have "
            "been tampered with or signed by a different key")
