import smtplib
from email.message import EmailMessage
from html import escape

from app.config import settings


def _frontend_link(path: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/{path.lstrip('/')}"


def _send_email(to_email: str, subject: str, text_body: str, html_body: str | None = None) -> None:
    if not settings.SMTP_HOST or not settings.SMTP_FROM_EMAIL:
        raise RuntimeError("SMTP is not configured (SMTP_HOST and SMTP_FROM_EMAIL are required).")

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    message["To"] = to_email
    message.set_content(text_body)
    if html_body:
        message.add_alternative(html_body, subtype="html")

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as smtp:
        smtp.ehlo()
        if settings.SMTP_USE_TLS:
            smtp.starttls()
            smtp.ehlo()
        if settings.SMTP_USER:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(message)


def send_offer_review_email(
    to_email: str,
    organization_name: str,
    offer_title: str,
    approved: bool,
    comments: str,
) -> None:
    decision = "Approved" if approved else "Rejected"
    link = _frontend_link("/service-offers/track")
    if approved:
        next_steps = "Your service offer is now live and visible to candidates on the platform."
    else:
        next_steps = "Please review the comments and create a new service offer that addresses the feedback."
    text = (
        f"Dear {organization_name},\n\n"
        f'Your service offer "{offer_title}" has been {decision.lower()} by our admin team.\n\n'
        f"Admin comments:\n{comments}\n\n"
        f"{next_steps}\n"
        f"Track your offers: {link}"
    )
    html = (
        f"<p>Dear {escape(organization_name)},</p>"
        f"<p>Your service offer <strong>{escape(offer_title)}</strong> has been "
        f"<strong>{decision.lower()}</strong> by our admin team.</p>"
        f"<h3>Admin comments</h3><p>{escape(comments)}</p>"
        f"<p>{next_steps}</p>"
        f'<p><a href="{link}">Track your offers</a></p>'
    )
    _send_email(
        to_email=to_email,
        subject=f"Service Offer {decision} - {offer_title}",
        text_body=text,
        html_body=html,
    )


def send_offer_auto_rejected_email(
    to_email: str,
    organization_name: str,
    offer_title: str,
    sla_days: int,
) -> None:
    link = _frontend_link("/service-offers/track")
    text = (
        f"Dear {organization_name},\n\n"
        f'Your service offer "{offer_title}" was automatically rejected because it was not '
        f"reviewed within {sla_days} days.\n"
        "You may create a new offer if it is still needed.\n"
        f"Track your offers: {link}"
    )
    html = (
        f"<p>Dear {escape(organization_name)},</p>"
        f"<p>Your service offer <strong>{escape(offer_title)}</strong> was automatically rejected "
        f"because it was not reviewed within {sla_days} days.</p>"
        "<p>You may create a new offer if it is still needed.</p>"
        f'<p><a href="{link}">Track your offers</a></p>'
    )
    _send_email(
        to_email=to_email,
        subject="Service Offer Auto-Rejected - Review Deadline Exceeded",
        text_body=text,
        html_body=html,
    )
