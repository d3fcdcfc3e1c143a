"""Notification service: Mailgun/SendGrid email and Twilio SMS for signup codes and welcome messages."""
from wellbank.config import get_settings

MAILGUN_US_BASE = "https://api.mailgun.net"
MAILGUN_EU_BASE = "https://api.eu.mailgun.net"


def email_configured() -> bool:
    s = get_settings()
    return bool((s.mailgun_api_key and s.mailgun_domain) or s.sendgrid_api_key)


def sms_configured() -> bool:
    s = get_settings()
    return bool(s.twilio_account_sid and s.twilio_auth_token and s.twilio_from_phone_number)


def send_email(to_email: str, subject: str, html_content: str, text_content: str | None = None) -> bool:
    """Send email via Mailgun (preferred) or SendGrid. Returns False when unconfigured or the provider fails."""
    if not email_configured():
        print(f"[Email] NOT SENT: to={to_email} subject={subject!r}. Set MAILGUN_API_KEY+MAILGUN_DOMAIN or SENDGRID_API_KEY.", flush=True)
        return False
    settings = get_settings()
    if settings.mailgun_api_key and settings.mailgun_domain:
        return _send_email_mailgun(to_email, subject, html_content, text_content=text_content, settings=settings)
    return _send_email_sendgrid(to_email, subject, html_content, text_content=text_content, settings=settings)


def _mailgun_sender(settings) -> str:
    """Mailgun drops mail whose From domain differs from the sending domain, so fall back to noreply@<domain>."""
    domain = (settings.mailgun_domain or "").strip().lower()
    address = (settings.mailgun_from_email or "").strip()
    if address.rpartition("@")[2].lower() != domain:
        address = f"noreply@{domain}"
    return f"{settings.mailgun_from_name} <{address}>"


def _mailgun_regions(settings) -> list[str]:
    # Keys issued for an EU account answer 401 on the US host
    base = (settings.mailgun_base_url or MAILGUN_US_BASE).strip().rstrip("/")
    return [base, MAILGUN_EU_BASE] if base == MAILGUN_US_BASE else [base]


def _send_email_mailgun(to_email: str, subject: str, html_content: str, text_content: str | None = None, settings=None) -> bool:
    settings = settings or get_settings()
    domain = (settings.mailgun_domain or "").strip().lower()
    payload = {
        "from": _mailgun_sender(settings),
        "to": to_email,
        "subject": subject,
        "text": text_content or "",
        "html": html_content or "",
    }
    try:
        import httpx

        with httpx.Client(timeout=10.0) as client:
            for base in _mailgun_regions(settings):
                r = client.post(f"{base}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=payload)
                if r.is_success:
                    print(f"[Email/Mailgun] sent subject={subject!r} to={to_email} via={base}", flush=True)
                    return True
                print(f"[Email/Mailgun] rejected by {base}: status={r.status_code} to={to_email} body={r.text[:300]}", flush=True)
                if r.status_code != 401:
                    break
        return False
    except Exception as e:
        print(f"[Email/Mailgun] delivery error subject={subject!r} to={to_email}: {type(e).__name__}: {e}", flush=True)
        return False


def _send_email_sendgrid(to_email: str, subject: str, html_content: str, text_content: str | None = None, settings=None) -> bool:
    if settings is None:
        settings = get_settings()
    try:
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail

        message = Mail(
            from_email=(settings.sendgrid_from_email, settings.sendgrid_from_name),
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
            plain_text_content=text_content or "",
        )
        SendGridAPIClient(settings.sendgrid_api_key).send(message)
        return True
    except Exception as e:
        print(f"[SendGrid] Exception: to={to_email} error={type(e).__name__}: {e}", flush=True)
        return False


def send_sms(to_phone: str, body: str) -> bool:
    """SMS via Twilio. Returns False when unconfigured or the API call fails."""
    settings = get_settings()
    if not sms_configured():
        print(f"[SMS] NOT SENT: to={to_phone}. TWILIO_* not configured.", flush=True)
        return False
    try:
        from twilio.rest import Client

        client = Client(settings.twilio_account_sid, settings.twilio_auth_token)
        client.messages.create(body=body, from_=settings.twilio_from_phone_number, to=to_phone)
        return True
    except Exception as e:
        print(f"[Twilio] Exception: to={to_phone} error={type(e).__name__}: {e}", flush=True)
        return False


def send_otp_email(to_email: str, code: str, expire_minutes: int) -> bool:
    """Send the 6-digit signup code by email."""
    subject = "[WellBank] Your verification code"
    text_content = f"Your WellBank verification code is: {code}. It expires in {expire_minutes} minutes."
    html_content = f"""
    <p>Hello,</p>
    <p>Your WellBank verification code is: <strong style="font-size:1.2em;letter-spacing:0.2em;">{code}</strong></p>
    <p>This code expires in {expire_minutes} minutes. If you did not request this, you can ignore this email.</p>
    <p>— WellBank</p>
    """
    return send_email(to_email, subject, html_content, text_content=text_content)


def send_otp_sms(to_phone: str, code: str, expire_minutes: int) -> bool:
    return send_sms(to_phone, f"Your WellBank verification code is {code}. It expires in {expire_minutes} minutes.")


def send_welcome_email(to_email: str, first_name: str | None = None) -> bool:
    """Sent once registration completes and the account can sign in."""
    name = (first_name or "").strip() or "there"
    subject = "[WellBank] Welcome – your account is ready"
    text = f"Hi {name}, welcome to WellBank. Your account is ready; sign in to finish setting up your profile."
    html = f"""
    <p>Hi {name},</p>
    <p>Welcome to <strong>WellBank</strong>. Your account is ready.</p>
    <p>Sign in to finish setting up your profile and start booking consultations.</p>
    <p>— WellBank</p>
    """
    return send_email(to_email, subject, html, text_content=text)
