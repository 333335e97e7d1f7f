"""
Email Service using Resend

Handles notification emails for the KYS registration workflow.
"""

import asyncio
import logging
import os
from html import escape

import resend

logger = logging.getLogger(__name__)

# Initialize Resend with API key
resend.api_key = os.getenv("RESEND_API_KEY")

# Configurations
EMAIL_FROM = os.getenv("EMAIL_FROM", "KYS Portal <noreply@kys-portal.dev>")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

STAGE_LABELS = {
    "country": "Country approval",
    "state": "State approval",
    "local": "Local verification",
}


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was sent successfully
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": EMAIL_FROM,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def _render(title: str, body: str, accent: str = "#166534") -> str:
    """Wrap an HTML body fragment in the portal's email layout."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 40px 20px; }}
            .header {{ color: {accent}; margin-bottom: 24px; }}
            .box {{ background-color: #f9fafb; border-left: 4px solid {accent}; padding: 16px 20px; margin: 24px 0; }}
            .button {{ display: inline-block; background-color: {accent}; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }}
            .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body}
            <div class="footer">
                <p>KYS Portal - Know Your School</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_application_received(
    to_email: str,
    principal_name: str,
    school_name: str,
    application_id: str,
) -> bool:
    """Confirm to the school that its application was submitted."""
    safe_principal_name = escape(principal_name)
    safe_school_name = escape(school_name)

    status_url = f"{FRONTEND_URL}/kys/applications/{application_id}"
    body = f"""
            <p>Hello {safe_principal_name},</p>

            <p>The KYS registration application for <strong>{safe_school_name}</strong> has been submitted.</p>

            <div class="box">
                <p style="margin: 0;">It will now be reviewed in three stages:</p>
                <ol style="margin: 8px 0 0 0;">
                    <li>Country approval</li>
                    <li>State approval</li>
                    <li>Local verification</li>
                </ol>
            </div>

            <a href="{status_url}" class="button">Track Application</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"KYS application received - {safe_school_name}",
        html_content=_render("Application Received", body),
    )


async def send_stage_approved(
    to_email: str,
    principal_name: str,
    school_name: str,
    stage: str,
    progress: int,
) -> bool:
    """Tell the school a stage was approved and the next one has started."""
    safe_principal_name = escape(principal_name)
    safe_school_name = escape(school_name)
    stage_label = STAGE_LABELS.get(stage, stage)

    body = f"""
            <p>Hello {safe_principal_name},</p>

            <p><strong>{stage_label}</strong> for <strong>{safe_school_name}</strong> has been granted.</p>

            <div class="box">
                <p style="margin: 0;">Verification progress: <strong>{progress}%</strong></p>
            </div>

            <p>The application has moved on to the next review stage. No action is needed from you.</p>
    """
    return await send_email(
        to_email=to_email,
        subject=f"{stage_label} granted - {safe_school_name}",
        html_content=_render("Stage Approved", body),
    )


async def send_application_approved(
    to_email: str,
    principal_name: str,
    school_name: str,
) -> bool:
    """Notify the school that all three stages were approved."""
    safe_principal_name = escape(principal_name)
    safe_school_name = escape(school_name)

    body = f"""
            <p>Hello {safe_principal_name},</p>

            <p>Congratulations! <strong>{safe_school_name}</strong> has completed country approval,
            state approval and local verification, and is now a registered KYS school.</p>

            <a href="{FRONTEND_URL}/kys" class="button">Open KYS Portal</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"{safe_school_name} is now KYS approved",
        html_content=_render("Application Approved", body),
    )


async def send_application_rejected(
    to_email: str,
    principal_name: str,
    school_name: str,
    stage: str,
    comments: str | None = None,
) -> bool:
    """Notify the school that a stage rejected the application."""
    safe_principal_name = escape(principal_name)
    safe_school_name = escape(school_name)
    stage_label = STAGE_LABELS.get(stage, stage)
    reason = (
        f"<p style=\"margin: 0;\"><strong>Reviewer comments:</strong> {escape(comments)}</p>"
        if comments
        else "<p style=\"margin: 0;\">No comments were provided.</p>"
    )

    body = f"""
            <p>Hello {safe_principal_name},</p>

            <p>We regret to inform you that the KYS application for <strong>{safe_school_name}</strong>
            was not approved at the <strong>{stage_label}</strong> stage.</p>

            <div class="box">
                {reason}
            </div>

            <p>You may start a new application once the issues above have been addressed.</p>
    """
    return await send_email(
        to_email=to_email,
        subject=f"KYS application update - {safe_school_name}",
        html_content=_render("Application Not Approved", body, accent="#b91c1c"),
    )
