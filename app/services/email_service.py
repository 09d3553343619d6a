# Staff notifications
import os
import resend
from typing import Dict
from dotenv import load_dotenv

load_dotenv()


class EmailService:
    """
    Centralized email service using Resend
    """

    def __init__(self):
        """Initialize Resend with API key"""
        if os.getenv("TESTING") in ("1", "True"):
            self.disabled = True
            self.api_key = None
            self.from_email = "test@example.com"
            self.frontend_url = "http://localhost:3000"
            print("⚠️ EmailService running in TEST MODE, no API key required")
            return
        self.disabled = False
        self.api_key = os.getenv("RESEND_API_KEY")
        if self.api_key:
            resend.api_key = self.api_key
        self.from_email = os.getenv("RESEND_FROM_EMAIL", "onboarding@resend.dev")
        self.frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000")

    def _send(self, to_email: str, subject: str, html: str) -> Dict:
        if self.disabled:
            return {"success": True, "message": "Email skipped in test mode"}
        if not self.api_key:
            return {"success": False, "error": "RESEND_API_KEY is not set"}
        try:
            email_response = resend.Emails.send(
                {
                    "from": self.from_email,
                    "to": [to_email],
                    "subject": subject,
                    "html": html,
                }
            )
            return {
                "success": True,
                "message": "Email sent successfully",
                "email_id": email_response.get("id"),
            }
        except Exception as e:
            return {"success": False, "error": str(e)}

    def send_temporary_password(self, to_email, name, temporary_password, role_label="Car Washer") -> Dict:
        """
        Welcome a newly provisioned staff member and hand over the generated password.

        Args:
            to_email: Recipient email address
            name: Display name used in the greeting
            temporary_password: Plain-text password generated at provisioning time
            role_label: Human readable role shown in the body

        Returns:
            Dict with 'success' boolean and 'message' or 'error'
        """
        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="margin: 0; padding: 0; font-family: 'Segoe UI', Arial, sans-serif; background-color: #e6eef6;">
            <table width="100%" cellpadding="0" cellspacing="0" style="padding: 30px 20px;">
                <tr>
                    <td align="center">
                        <table width="600" cellpadding="0" cellspacing="0" style="background-color: #ffffff; border-radius: 16px;">
                            <tr>
                                <td style="background-color: #1f4e79; padding: 35px 40px; text-align: center;">
                                    <h1 style="color: #ffffff; margin: 0; font-size: 28px;">Welcome aboard</h1>
                                </td>
                            </tr>
                            <tr>
                                <td style="padding: 35px 40px;">
                                    <p style="color: #2d3748; font-size: 17px;">Hi <strong>{name}</strong>,</p>
                                    <p style="color: #4a5568; font-size: 16px; line-height: 1.7;">
                                        Your {role_label} account has been created. Use the temporary password
                                        below to sign in, then change it from your profile page.
                                    </p>
                                    <p style="text-align: center; font-size: 22px; font-weight: 700; letter-spacing: 2px; color: #1f4e79;">
                                        {temporary_password}
                                    </p>
                                    <p style="text-align: center;">
                                        <a href="{self.frontend_url}/login"
                                           style="display: inline-block; padding: 14px 40px; background-color: #1f4e79; color: #ffffff; text-decoration: none; border-radius: 8px; font-weight: 700;">
                                            Sign in
                                        </a>
                                    </p>
                                </td>
                            </tr>
                        </table>
                    </td>
                </tr>
            </table>
        </body>
        </html>
        """
        return self._send(to_email, "Your car wash staff account", html_content)

    def send_payment_request_update(self, to_email, name, amount, status, admin_notes=None) -> Dict:
        """Tell a washer that an admin reviewed their payment request."""
        notes_html = f"<p style='color: #4a5568;'>Notes: {admin_notes}</p>" if admin_notes else ""
        html_content = f"""
        <html>
            <body style="font-family: 'Segoe UI', Arial, sans-serif;">
                <p>Hi <strong>{name}</strong>,</p>
                <p>Your payment request for <strong>{amount:,.2f}</strong> is now <strong>{status}</strong>.</p>
                {notes_html}
                <p><a href="{self.frontend_url}/worker/payments">View your payment requests</a></p>
            </body>
        </html>
        """
        return self._send(to_email, f"Payment request {status}", html_content)
