"""Email notification module for new voicenote submissions."""

import logging
import os
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

logger = logging.getLogger(__name__)


class EmailNotifier:
    """
    Email notifier for the podcast host.

    Sends an SMTP (Gmail compatible) message whenever a listener
    submits a new voicenote.
    """

    def __init__(
        self,
        smtp_host: str | None = None,
        smtp_port: int | None = None,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        notification_email: str | None = None,
    ):
        """
        Initialize the email notifier.

        Args:
            smtp_host: SMTP server host (defaults to env var)
            smtp_port: SMTP server port (defaults to env var)
            smtp_user: SMTP username (defaults to env var)
            smtp_password: SMTP password (defaults to env var)
            notification_email: Email address to send notifications to
        """
        self.smtp_host = smtp_host or os.getenv("SMTP_HOST", "smtp.gmail.com")
        self.smtp_port = smtp_port or int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = smtp_user or os.getenv("SMTP_USER", "")
        self.smtp_password = smtp_password or os.getenv("SMTP_PASSWORD", "")
        self.notification_email = notification_email or os.getenv("NOTIFICATION_EMAIL", "")

        if not self.smtp_user or not self.smtp_password:
            logger.warning("SMTP credentials not configured, email notifications disabled")

    @property
    def configured(self) -> bool:
        """Whether all settings needed to send mail are present."""
        return bool(self.smtp_user and self.smtp_password and self.notification_email)

    def _send_email(self, subject: str, body_html: str, body_text: str) -> bool:
        """
        Send an email.

        Args:
            subject: Email subject
            body_html: HTML body content
            body_text: Plain text body content

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.configured:
            logger.warning("Email not sent: missing configuration")
            return False

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = self.smtp_user
            msg["To"] = self.notification_email

            msg.attach(MIMEText(body_text, "plain"))
            msg.attach(MIMEText(body_html, "html"))

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.smtp_user, self.notification_email, msg.as_string())

            logger.info(f"Email sent successfully: {subject}")
            return True

        except Exception as e:
            logger.error(f"Failed to send email: {e}")
            return False

    def send_voicenote_notification(
        self,
        filename: str,
        submitted_at: datetime,
        file_url: str,
        admin_url: str,
    ) -> bool:
        """
        Tell the host that a listener submitted a voicenote.

        Args:
            filename: Generated filename of the stored voicenote
            submitted_at: Time the submission was stored (server time)
            file_url: Public URL of the voicenote
            admin_url: URL of the admin listing page

        Returns:
            True if sent successfully, False otherwise
        """
        subject = "New Podcast Voicenote Submission Received"
        timestamp = submitted_at.strftime("%Y-%m-%d %H:%M:%S")

        body_html = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background: #102a43; color: #f7f4eb; padding: 15px; border-radius: 5px 5px 0 0; }}
                .content {{ background: #f9f9f9; padding: 20px; border: 1px solid #ddd; }}
                .footer {{ background: #333; color: #aaa; padding: 10px; font-size: 12px; border-radius: 0 0 5px 5px; }}
                .label {{ font-weight: bold; color: #666; }}
                .value {{ margin-left: 10px; }}
                .action {{ background: #4CAF50; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px; display: inline-block; margin-top: 15px; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header">
                    <h2>New Voicenote Submission</h2>
                </div>
                <div class="content">
                    <p>A new voice message has been submitted by a listener.</p>
                    <p><span class="label">File Name:</span><span class="value">{escape(filename)}</span></p>
                    <p><span class="label">Timestamp:</span><span class="value">{timestamp} (Server Time)</span></p>
                    <p><span class="label">File URL:</span><span class="value"><a href="{escape(file_url)}">{escape(file_url)}</a></span></p>

                    <a href="{escape(admin_url)}" class="action">
                        Review Submissions
                    </a>
                </div>
                <div class="footer">
                    <p>Podcast Voicenotes | Automated notification</p>
                </div>
            </div>
        </body>
        </html>
        """

        body_text = f"""
A new voice message has been submitted by a listener.

File Name: {filename}
Timestamp: {timestamp} (Server Time)

You can review and manage this submission in the admin dashboard:
{admin_url}

File URL:
{file_url}

---
        """

        return self._send_email(subject, body_html, body_text)
