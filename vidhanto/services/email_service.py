"""
Transactional email over SMTP.

Messages are queued from route handlers through ``BackgroundTasks`` so a
slow or failing mail server never holds up (or fails) the API response.
"""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from vidhanto.config import (
    SMTP_HOST,
    SMTP_PORT,
    SMTP_USER,
    SMTP_PASSWORD,
    SMTP_USE_TLS,
    EMAIL_FROM,
    FRONTEND_URL,
)

logger = logging.getLogger(__name__)


def _layout(title: str, body: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <div style="background: #1e3a8a; color: #ffffff; padding: 20px; text-align: center;">
        <h1 style="margin: 0;">Vidhanto</h1>
      </div>
      <div style="padding: 24px;">
        <h2>{title}</h2>
        {body}
      </div>
      <div style="color: #6b7280; font-size: 12px; padding: 16px; text-align: center;">
        This is an automated message from Vidhanto Legal Services.
      </div>
    </div>
    """


def _button(url: str, label: str) -> str:
    return (
        f'<p><a href="{url}" style="background: #1e3a8a; color: #ffffff; padding: 12px 24px; '
        f'text-decoration: none; border-radius: 4px;">{label}</a></p>'
    )


class EmailService:
    """SMTP mailer with one method per notification the platform sends."""

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        username: str = SMTP_USER,
        password: str = SMTP_PASSWORD,
        use_tls: bool = SMTP_USE_TLS,
        from_address: str = EMAIL_FROM,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address

        if not self.username or not self.password:
            logger.warning("SMTP credentials not set; emails will be logged and skipped")

    def is_available(self) -> bool:
        return bool(self.username and self.password)

    def send_email(self, to: str, subject: str, html_content: str, text_content: Optional[str] = None) -> bool:
        if not self.is_available():
            logger.info("Email skipped, SMTP not configured", extra={"to": to, "subject": subject})
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to
        if text_content:
            msg.attach(MIMEText(text_content, "plain"))
        msg.attach(MIMEText(html_content, "html"))

        sender = self.from_address.split("<")[-1].rstrip(">")
        try:
            if self.port == 465:
                context = ssl.create_default_context()
                server = smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=30)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=30)
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
            with server:
                server.login(self.username, self.password)
                server.sendmail(sender, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email send failed: {e}", extra={"to": to, "subject": subject})
            return False

        logger.info("Email sent", extra={"to": to, "subject": subject})
        return True

    # -------------------------------------------------
    # Account
    # -------------------------------------------------

    def send_verification_email(self, to: str, name: str, token: str) -> bool:
        url = f"{FRONTEND_URL}/verify-email?token={token}"
        body = (
            f"<p>Hello {name},</p>"
            "<p>Welcome to Vidhanto. Please confirm your email address to activate your account.</p>"
            f"{_button(url, 'Verify Email')}"
        )
        return self.send_email(to, "Verify your Vidhanto account", _layout("Verify your email", body))

    def send_password_reset_email(self, to: str, name: str, token: str) -> bool:
        url = f"{FRONTEND_URL}/reset-password?token={token}"
        body = (
            f"<p>Hello {name},</p>"
            "<p>We received a request to reset your password. This link expires in 10 minutes.</p>"
            f"{_button(url, 'Reset Password')}"
            "<p>If you did not request this, you can ignore this email.</p>"
        )
        return self.send_email(to, "Reset your Vidhanto password", _layout("Password reset", body))

    # -------------------------------------------------
    # Appointments & payments
    # -------------------------------------------------

    def send_appointment_confirmation(self, to: str, name: str, lawyer_name: str,
                                      scheduled_date, consultation_type: str, meeting_link: str) -> bool:
        body = (
            f"<p>Hello {name},</p>"
            f"<p>Your {consultation_type} consultation with {lawyer_name} is confirmed for "
            f"{scheduled_date:%d %b %Y %H:%M} UTC.</p>"
            f"{_button(meeting_link, 'Join Consultation')}"
        )
        return self.send_email(to, "Appointment confirmed", _layout("Appointment confirmed", body))

    def send_payment_confirmation(self, to: str, name: str, amount: int, payment_id: str, description: str) -> bool:
        body = (
            f"<p>Hello {name},</p>"
            f"<p>We received your payment of &#8377;{amount} for {description}.</p>"
            f"<p>Payment reference: <strong>{payment_id}</strong></p>"
        )
        return self.send_email(to, "Payment received", _layout("Payment confirmation", body))

    # -------------------------------------------------
    # Signing & stamps
    # -------------------------------------------------

    def send_otp_email(self, to: str, name: str, otp: str, purpose: str) -> bool:
        body = (
            f"<p>Hello {name},</p>"
            f"<p>Your one-time password to {purpose} is:</p>"
            f'<p style="font-size: 28px; letter-spacing: 4px;"><strong>{otp}</strong></p>'
            "<p>Do not share this code with anyone.</p>"
        )
        return self.send_email(to, "Your Vidhanto verification code", _layout("Verification code", body))

    def send_signing_request(self, to: str, name: str, title: str, otp: str,
                             esignature_id: str, message: Optional[str] = None) -> bool:
        url = f"{FRONTEND_URL}/esign/{esignature_id}"
        body = (
            f"<p>Hello {name},</p>"
            f"<p>You have been asked to sign <strong>{title}</strong>.</p>"
            + (f"<p>{message}</p>" if message else "")
            + f"<p>Your signing code: <strong>{otp}</strong></p>"
            + _button(url, "Review & Sign")
        )
        return self.send_email(to, f"Signature requested: {title}", _layout("Signature request", body))

    def send_estamp_confirmation(self, to: str, name: str, certificate_number: str,
                                 stamp_value: float, verification_url: str) -> bool:
        body = (
            f"<p>Hello {name},</p>"
            f"<p>Your e-stamp has been issued. Certificate number: <strong>{certificate_number}</strong></p>"
            f"<p>Stamp value: &#8377;{stamp_value:.2f}</p>"
            f"{_button(verification_url, 'Verify Certificate')}"
        )
        return self.send_email(to, "E-stamp certificate issued", _layout("E-stamp issued", body))


email_service = EmailService()


def get_email_service() -> EmailService:
    return email_service
