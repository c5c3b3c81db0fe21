"""
Email templates.

Inline CSS only, for email client compatibility. Each template function
returns (subject, html_body, text_body). Interpolated values are HTML-escaped.
"""

from __future__ import annotations

from html import escape

BG_PAGE = "#F4F6FA"
BG_CARD = "#FFFFFF"
ACCENT = "#2563EB"
TEXT_PRIMARY = "#111827"
TEXT_SECONDARY = "#4B5563"
BORDER = "#E5E7EB"

APP_NAME = "Campus"


def _base_layout(content: str, campus_name: str | None = None) -> str:
    header = escape(campus_name) if campus_name else APP_NAME
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{header}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%">
        <tr>
            <td align="center" style="padding: 40px 20px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px; font-size: 22px; font-weight: 700; color: {ACCENT};">{header}</td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 12px; padding: 36px 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px; color: {TEXT_SECONDARY}; font-size: 12px;">
                            Sent by {APP_NAME} on behalf of {header}.
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    return f"""\
<table role="presentation" cellspacing="0" cellpadding="0" border="0" style="margin: 24px auto;">
    <tr>
        <td align="center" style="background-color: {ACCENT}; border-radius: 8px;">
            <a href="{escape(url)}" target="_blank" style="display: inline-block; padding: 12px 28px; color: #FFFFFF; font-size: 15px; font-weight: 600; text-decoration: none;">{label}</a>
        </td>
    </tr>
</table>"""


def campus_welcome(campus_name: str, admin_name: str, admin_email: str, login_url: str) -> tuple[str, str, str]:
    """Sent to the first admin when a super admin onboards a new campus."""
    subject = f"{campus_name} is ready on {APP_NAME}"
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; margin: 0 0 16px 0;">Welcome aboard, {escape(admin_name)}</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 15px; line-height: 1.6;">
    <strong>{escape(campus_name)}</strong> has been set up and you are its first administrator.
    Sign in with <strong>{escape(admin_email)}</strong> and the password you were given.
</p>
{_button(login_url, "Sign in")}
<p style="color: {TEXT_SECONDARY}; font-size: 13px; line-height: 1.5;">
    Please change your password after the first sign-in.
</p>"""
    text_body = (
        f"Hi {admin_name},\n\n"
        f"{campus_name} has been set up and you are its first administrator.\n"
        f"Sign in at {login_url} with {admin_email}.\n\n"
        f"Please change your password after the first sign-in.\n\n"
        f"-- The {APP_NAME} Team"
    )
    return subject, _base_layout(content, campus_name), text_body


def account_created(campus_name: str, full_name: str, user_type: str, login_url: str) -> tuple[str, str, str]:
    """Sent when a campus admin creates an account for someone."""
    subject = f"Your {campus_name} account"
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; margin: 0 0 16px 0;">Hi {escape(full_name)}</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 15px; line-height: 1.6;">
    An account with the role <strong>{escape(user_type)}</strong> was created for you at {escape(campus_name)}.
</p>
{_button(login_url, "Sign in")}"""
    text_body = (
        f"Hi {full_name},\n\n"
        f"An account with the role {user_type} was created for you at {campus_name}.\n"
        f"Sign in at {login_url}.\n\n"
        f"-- The {APP_NAME} Team"
    )
    return subject, _base_layout(content, campus_name), text_body
