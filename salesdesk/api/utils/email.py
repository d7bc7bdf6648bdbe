from flask_mail import Message

from salesdesk.extensions import mail

DEFAULT_ATTACHMENT_TYPE = "application/octet-stream"


def _attachment_parts(att: dict):
    """(filename, content_type, data) from an attachment dict, or None when empty."""
    data = att.get("content")
    if data is None:
        data = att.get("data")
    if data is None:
        return None
    return (
        att.get("filename") or "attachment",
        att.get("mimetype") or att.get("content_type") or DEFAULT_ATTACHMENT_TYPE,
        data,
    )


def send_email(subject, recipients, body, attachments=None, sender=None):
    """Plain-text UTF-8 mail; ``attachments`` are dicts with filename, content and mimetype."""
    to = [recipients] if isinstance(recipients, str) else list(recipients or [])
    msg = Message(subject=subject or "", recipients=to, body=body or "", sender=sender, charset="utf-8")

    for parts in filter(None, (_attachment_parts(a) for a in attachments or [] if isinstance(a, dict))):
        filename, content_type, data = parts
        msg.attach(filename=filename, content_type=content_type, data=data)

    mail.send(msg)
    return msg
