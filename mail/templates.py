"""
mail/templates.py -- HTML bodies for account emails.

Links point at the client application (Settings.client_url), which reads the
token from the path and calls the matching API endpoint.
"""

from __future__ import annotations

import html

ACTIVATION_SUBJECT = "Activate your account"
RESET_SUBJECT = "Reset your password"

_LAYOUT = """\
<html>
  <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2 style="color: #1e293b;">{heading}</h2>
    <p style="color: #475569; line-height: 1.6;">{intro}</p>
    <p style="text-align: center; margin: 30px 0;">
      <a href="{link}"
         style="background-color: #3b82f6; color: white; padding: 15px 30px;
                text-decoration: none; border-radius: 5px; display: inline-block;">
        {button}
      </a>
    </p>
    <p style="color: #64748b; font-size: 14px;">Or paste this link into your browser:<br>{link}</p>
    <p style="color: #64748b; font-size: 14px;">This link expires in {minutes} minutes.
       If you did not request this, you can ignore this email.</p>
  </body>
</html>
"""


def activation_link(client_url: str, token: str) -> str:
    return f"{client_url.rstrip('/')}/users/activate/{token}"


def reset_link(client_url: str, token: str) -> str:
    return f"{client_url.rstrip('/')}/users/password/reset/{token}"


def activation_email(first_name: str, link: str, ttl_seconds: int) -> str:
    return _LAYOUT.format(
        heading=f"Welcome, {html.escape(first_name)}!",
        intro="Thanks for registering. Please confirm your email address to activate your account.",
        link=html.escape(link, quote=True),
        button="Activate account",
        minutes=max(1, ttl_seconds // 60),
    )


def reset_email(first_name: str, link: str, ttl_seconds: int) -> str:
    return _LAYOUT.format(
        heading=f"Hello {html.escape(first_name)},",
        intro="We received a request to reset your password. Use the button below to choose a new one.",
        link=html.escape(link, quote=True),
        button="Reset password",
        minutes=max(1, ttl_seconds // 60),
    )
