import logging

logger = logging.getLogger("app.audit")


def log_action(
    action: str,
    entity_type: str,
    entity_id: str | int | None = None,
    description: str | None = None,
    **fields,
) -> None:
    """
    Emit an audit log line. Nothing is persisted; shipping these lines
    somewhere durable is the log pipeline's job.

    Args:
        action:      Verb: REGISTER, LOGIN, LOGIN_FAILED, LOCKOUT, OTP_ISSUED, etc.
        entity_type: Model name: "Account", "OtpRecord"
        entity_id:   Identifier of the affected record
        description: Human-readable description
        **fields:    Extra key=value pairs appended to the line

    Usage:
        log_action("LOCKOUT", "Account", account.accountId,
                   f"Locked until {account.lockedUntil}")
    """
    chunks = [f"action={action}", f"entity={entity_type}", f"id={entity_id if entity_id is not None else '-'}"]
    for key, value in fields.items():
        chunks.append(f"{key}={value}")
    if description:
        chunks.append(f"description={description!r}")
    logger.info("audit %s", " ".join(chunks))
