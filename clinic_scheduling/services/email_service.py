import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from clinic_scheduling.core.config import settings
from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.services.intervals import Interval, format_hhmm

logger = logging.getLogger(__name__)


def _send_email_sync(to_email: str, subject: str, html_body: str) -> None:
    """Send email via SMTP (blocking). Use from background task."""
    if not settings.email_enabled:
        logger.debug("Email disabled (SMTP not configured), skipping send")
        return
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.from_email, [to_email], msg.as_string())
        logger.info("Email sent to %s", to_email)
    except Exception as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)


def build_booking_notification_html(appointment: Appointment) -> str:
    slot = Interval.starting_at(appointment.appointment_time, appointment.duration_minutes)
    date_str = appointment.appointment_date.strftime("%A, %B %d, %Y")
    reason_row = ""
    if appointment.reason:
        reason_row = f"<p style=\"margin:8px 0 0 0;color:#6b7280;\">Reason: {escape(appointment.reason)}</p>"
    return f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>New appointment</title></head>
<body style="margin:0;padding:24px;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;background-color:#f3f4f6;">
  <div style="max-width:560px;margin:0 auto;background:#ffffff;border-radius:12px;padding:32px;">
    <h1 style="margin:0 0 8px 0;font-size:20px;color:#111827;">New {escape(appointment.source.value.lower())} booking</h1>
    <p style="margin:0 0 16px 0;color:#374151;">{date_str}, {slot} ({appointment.duration_minutes} min)</p>
    <p style="margin:0;color:#374151;">Practitioner #{appointment.practitioner_id} &nbsp;·&nbsp; Pet #{appointment.pet_id}</p>
    <p style="margin:8px 0 0 0;color:#374151;">Visit type: {escape(appointment.visit_type)}</p>
    {reason_row}
    <p style="margin:24px 0 0 0;font-size:13px;color:#6b7280;">{escape(settings.site_name)}</p>
  </div>
</body>
</html>
"""


def send_booking_notification_email(appointment: Appointment) -> None:
    """Tell the clinic about a committed booking (call from background task)."""
    if not settings.clinic_notification_email:
        logger.debug("No clinic notification address configured, skipping")
        return
    subject = (
        f"{settings.site_name} – Appointment {appointment.appointment_date} "
        f"{format_hhmm(appointment.appointment_time)}"
    )
    _send_email_sync(settings.clinic_notification_email, subject, build_booking_notification_html(appointment))
