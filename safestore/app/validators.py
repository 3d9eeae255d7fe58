HEX_DIGITS = frozenset("0123456789abcdef")
BACKUP_ID_LENGTH = 64


def is_valid_backup_id(backup_id) -> bool:
    """Return whether this backup id is valid.

    A backup id must be a 64 character lowercase hex string.
    """
    if not isinstance(backup_id, str) or len(backup_id) != BACKUP_ID_LENGTH:
        return False
    return all(c in HEX_DIGITS for c in backup_id)
