"""
Transactional email templates for Vapor.

Inline CSS only, since most mail clients strip stylesheets. Each template
function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from html import escape
from typing import Any

BG_PAGE = "#1B2838"
BG_CARD = "#171A21"
ACCENT = "#66C0F4"
TEXT_PRIMARY = "#FFFFFF"
TEXT_MUTED = "#8F98A0"
BORDER = "#2A475E"

_SIGNATURE = "-- The Vapor Team"


def _layout(content: str, title: str = "Vapor") -> str:
    """Wrap content in the shared branded frame."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: Arial, Helvetica, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 32px 16px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td align="left" style="padding-bottom: 24px;">
                            <span style="font-size: 26px; font-weight: 700; letter-spacing: 2px; color: {TEXT_PRIMARY};">VAPOR</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 4px; padding: 32px 28px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px;">
                            <p style="color: {TEXT_MUTED}; font-size: 12px; line-height: 1.5; margin: 0;">
                                You are receiving this because of activity on your Vapor account.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _link_button(url: str, label: str) -> str:
    return f"""\
<p style="margin: 24px 0;">
    <a href="{url}" target="_blank" style="display: inline-block; padding: 12px 28px; background-color: {ACCENT}; color: {BG_CARD}; font-size: 15px; font-weight: 700; text-decoration: none; border-radius: 2px;">{label}</a>
</p>
<p style="color: {TEXT_MUTED}; font-size: 12px; line-height: 1.5; margin: 0;">
    Or paste this address into your browser:<br>
    <a href="{url}" style="color: {ACCENT}; word-break: break-all;">{url}</a>
</p>"""


def _heading(text: str) -> str:
    return f'<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; margin: 0 0 16px 0;">{text}</h1>'


def _paragraph(text: str) -> str:
    return f'<p style="color: {TEXT_MUTED}; font-size: 15px; line-height: 1.6; margin: 0 0 12px 0;">{text}</p>'


def verify_email(display_name: str | None, verify_url: str, expires_minutes: int = 10) -> tuple[str, str, str]:
    """Registration and resend verification email."""
    name = escape(display_name or "there")
    subject = "Verify your Vapor account"
    content = (
        _heading("Confirm your email address")
        + _paragraph(f"Hi {name},")
        + _paragraph("Thanks for signing up. Confirm your email to start building your library.")
        + _link_button(verify_url, "Verify Email")
        + _paragraph(f"The link is valid for {expires_minutes} minutes.")
    )
    text_body = (
        f"Hi {display_name or 'there'},\n\n"
        f"Confirm your email address by opening this link:\n\n{verify_url}\n\n"
        f"The link is valid for {expires_minutes} minutes.\n\n{_SIGNATURE}"
    )
    return subject, _layout(content, subject), text_body


def password_reset(reset_url: str, expires_minutes: int = 10) -> tuple[str, str, str]:
    """Password reset link."""
    subject = "Reset your Vapor password"
    content = (
        _heading("Password reset requested")
        + _paragraph("Someone asked to reset the password on your account. If it was you, choose a new one below.")
        + _link_button(reset_url, "Choose New Password")
        + _paragraph(f"The link is valid for {expires_minutes} minutes. Ignore this email to keep your password.")
    )
    text_body = (
        "Password reset requested\n\n"
        f"Choose a new password here:\n\n{reset_url}\n\n"
        f"The link is valid for {expires_minutes} minutes. "
        f"Ignore this email to keep your current password.\n\n{_SIGNATURE}"
    )
    return subject, _layout(content, subject), text_body


def email_change(display_name: str | None, confirm_url: str, new_email: str, expires_minutes: int = 10) -> tuple[str, str, str]:
    """Confirmation sent to the new address of a pending email change."""
    name = escape(display_name or "there")
    subject = "Confirm your new Vapor email"
    content = (
        _heading("Confirm your new email")
        + _paragraph(f"Hi {name},")
        + _paragraph(f"Your account email is about to change to <strong>{escape(new_email)}</strong>.")
        + _link_button(confirm_url, "Confirm Email Change")
        + _paragraph(f"The link is valid for {expires_minutes} minutes.")
    )
    text_body = (
        f"Hi {display_name or 'there'},\n\n"
        f"Your account email is about to change to {new_email}.\n"
        f"Confirm the change here:\n\n{confirm_url}\n\n"
        f"The link is valid for {expires_minutes} minutes.\n\n{_SIGNATURE}"
    )
    return subject, _layout(content, subject), text_body


def password_changed(display_name: str | None) -> tuple[str, str, str]:
    """Security notice after a password change."""
    name = escape(display_name or "there")
    subject = "Your Vapor password was changed"
    content = (
        _heading("Password changed")
        + _paragraph(f"Hi {name},")
        + _paragraph("The password on your account was just changed and all other sessions were signed out.")
        + _paragraph("If this was not you, reset your password immediately and contact support.")
    )
    text_body = (
        f"Hi {display_name or 'there'},\n\n"
        "The password on your account was just changed and all other sessions were signed out.\n"
        f"If this was not you, reset your password immediately and contact support.\n\n{_SIGNATURE}"
    )
    return subject, _layout(content, subject), text_body


def account_deleted(display_name: str | None) -> tuple[str, str, str]:
    """Goodbye email after account deletion."""
    name = escape(display_name or "there")
    subject = "Your Vapor account was deleted"
    content = (
        _heading("Account deleted")
        + _paragraph(f"Hi {name},")
        + _paragraph("Your account and library have been removed. Posts and reviews you wrote remain without a link to you.")
    )
    text_body = (
        f"Hi {display_name or 'there'},\n\n"
        "Your account and library have been removed. "
        f"Posts and reviews you wrote remain without a link to you.\n\n{_SIGNATURE}"
    )
    return subject, _layout(content, subject), text_body


def google_linked(display_name: str | None) -> tuple[str, str, str]:
    """Notice that a Google account was attached to an existing Vapor account."""
    name = escape(display_name or "there")
    subject = "Your Vapor account is now linked with Google"
    content = (
        _heading("Google account linked")
        + _paragraph(f"Hi {name},")
        + _paragraph("You can now sign in to Vapor with Google. Your password, if you set one, keeps working.")
        + _paragraph("If this was not you, unlink Google from your profile and reset your password.")
    )
    text_body = (
        f"Hi {display_name or 'there'},\n\n"
        "You can now sign in to Vapor with Google. Your password, if you set one, keeps working.\n"
        f"If this was not you, unlink Google from your profile and reset your password.\n\n{_SIGNATURE}"
    )
    return subject, _layout(content, subject), text_body


def google_welcome(display_name: str | None, username: str) -> tuple[str, str, str]:
    """Welcome email for an account created through Google sign-in."""
    name = escape(display_name or "there")
    subject = "Welcome to Vapor"
    content = (
        _heading("Your account is ready")
        + _paragraph(f"Hi {name},")
        + _paragraph(f"We created the account <strong>{escape(username)}</strong> from your Google sign-in.")
        + _paragraph("Set a password from your profile if you also want to sign in without Google.")
    )
    text_body = (
        f"Hi {display_name or 'there'},\n\n"
        f"We created the account {username} from your Google sign-in.\n"
        f"Set a password from your profile if you also want to sign in without Google.\n\n{_SIGNATURE}"
    )
    return subject, _layout(content, subject), text_body


def purchase_invoice(
    display_name: str | None,
    items: Sequence[dict[str, Any]],
    total: Decimal,
    wallet_after: Decimal,
    points_used: int = 0,
) -> tuple[str, str, str]:
    """
    Receipt for a wallet purchase.

    ``items`` holds dicts with ``app_name`` and ``price`` (already discounted).
    """
    name = escape(display_name or "there")
    subject = "Your Vapor purchase receipt"
    rows = "".join(
        f'<tr><td style="color: {TEXT_PRIMARY}; padding: 6px 0;">{escape(item["app_name"])}</td>'
        f'<td align="right" style="color: {TEXT_PRIMARY}; padding: 6px 0;">{item["price"]:.2f} EUR</td></tr>'
        for item in items
    )
    discount_line = _paragraph(f"Points redeemed: {points_used}") if points_used else ""
    content = (
        _heading("Thank you for your purchase")
        + _paragraph(f"Hi {name}, the following items were added to your library:")
        + f'<table role="presentation" width="100%" style="border-top: 1px solid {BORDER}; margin: 12px 0;">{rows}</table>'
        + discount_line
        + _paragraph(f"<strong>Total: {total:.2f} EUR</strong>")
        + _paragraph(f"Remaining wallet balance: {wallet_after:.2f} EUR")
    )
    lines = "\n".join(f"  {item['app_name']}: {item['price']:.2f} EUR" for item in items)
    text_body = (
        f"Hi {display_name or 'there'},\n\n"
        f"The following items were added to your library:\n{lines}\n\n"
        + (f"Points redeemed: {points_used}\n" if points_used else "")
        + f"Total: {total:.2f} EUR\n"
        f"Remaining wallet balance: {wallet_after:.2f} EUR\n\n{_SIGNATURE}"
    )
    return subject, _layout(content, subject), text_body
