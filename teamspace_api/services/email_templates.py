"""Email templates for notification delivery.

Each template has a pydantic model for its data; ``render`` validates the
raw template data against it before building the subject, plain-text and
HTML bodies.
"""

from dataclasses import dataclass
from html import escape
from typing import Any, Callable, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from teamspace.db.models import EmailTemplate
from teamspace_api.exceptions import ValidationError


@dataclass
class RenderedTemplate:
    subject: str
    text: str
    html: str


# =============================================================================
# Template data models
# =============================================================================


class WorkspaceInvitationData(BaseModel):
    inviter_name: str
    workspace_name: str
    invite_url: str
    recipient_email: str
    expires_in_days: int = 7


class ProjectInvitationData(BaseModel):
    inviter_name: str
    project_name: str
    workspace_name: str
    invite_url: str
    recipient_email: str


class WelcomeData(BaseModel):
    user_name: str
    login_url: str
    workspace_name: Optional[str] = None


class ProjectSharedData(BaseModel):
    shared_by: str
    project_name: str
    project_url: str
    recipient_name: str


class PasswordResetData(BaseModel):
    user_name: str
    reset_url: str
    expiry_time: str = "1 hour"


class EmailVerificationData(BaseModel):
    user_name: str
    verification_url: str
    expiry_time: str = "24 hours"


TEMPLATE_MODELS: dict[EmailTemplate, type[BaseModel]] = {
    EmailTemplate.WORKSPACE_INVITATION: WorkspaceInvitationData,
    EmailTemplate.PROJECT_INVITATION: ProjectInvitationData,
    EmailTemplate.WELCOME: WelcomeData,
    EmailTemplate.PROJECT_SHARED: ProjectSharedData,
    EmailTemplate.PASSWORD_RESET: PasswordResetData,
    EmailTemplate.EMAIL_VERIFICATION: EmailVerificationData,
}


# =============================================================================
# Layout
# =============================================================================


def _html_page(title: str, paragraphs: list[str], button_text: str, button_url: str, footer: str) -> str:
    body = "\n".join(f"    <p>{p}</p>" for p in paragraphs)
    url = escape(button_url, quote=True)
    return f"""<!DOCTYPE html>
<html>
<head>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; }}
    .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
    .button {{ display: inline-block; padding: 12px 24px; background: #2563eb; color: #fff; text-decoration: none; border-radius: 6px; font-weight: 600; }}
    .footer {{ margin-top: 32px; color: #666; font-size: 14px; }}
  </style>
</head>
<body>
  <div class="container">
    <h2>{escape(title)}</h2>
{body}
    <p style="margin: 24px 0;">
      <a href="{url}" class="button">{escape(button_text)}</a>
    </p>
    <p>Or copy and paste this link: <a href="{url}">{url}</a></p>
    <div class="footer">
      <p>{escape(footer)}</p>
    </div>
  </div>
</body>
</html>
"""


# =============================================================================
# Renderers
# =============================================================================


def _workspace_invitation(data: WorkspaceInvitationData) -> RenderedTemplate:
    subject = f"You've been invited to join {data.workspace_name}"
    text = f"""
{data.inviter_name} invited you to join the workspace "{data.workspace_name}".

Accept the invitation:
{data.invite_url}

This invitation was sent to {data.recipient_email} and expires in {data.expires_in_days} days.

---
If you didn't expect this invitation, you can ignore this email.
"""
    html = _html_page(
        f"You've been invited to {data.workspace_name}",
        [
            f"{escape(data.inviter_name)} invited you to collaborate on the workspace "
            f"<strong>{escape(data.workspace_name)}</strong>.",
            f"This invitation expires in {data.expires_in_days} days.",
        ],
        "Accept Invitation",
        data.invite_url,
        "If you didn't expect this invitation, you can ignore this email.",
    )
    return RenderedTemplate(subject, text, html)


def _project_invitation(data: ProjectInvitationData) -> RenderedTemplate:
    subject = f"You've been invited to the project {data.project_name}"
    text = f"""
{data.inviter_name} invited you to the project "{data.project_name}" in {data.workspace_name}.

Accept the invitation:
{data.invite_url}

---
This invitation was sent to {data.recipient_email}.
"""
    html = _html_page(
        f"Join {data.project_name}",
        [
            f"{escape(data.inviter_name)} invited you to the project "
            f"<strong>{escape(data.project_name)}</strong> in {escape(data.workspace_name)}.",
        ],
        "Open Invitation",
        data.invite_url,
        f"This invitation was sent to {data.recipient_email}.",
    )
    return RenderedTemplate(subject, text, html)


def _welcome(data: WelcomeData) -> RenderedTemplate:
    subject = f"Welcome, {data.user_name}!"
    joined = f" You're now part of {data.workspace_name}." if data.workspace_name else ""
    text = f"""
Hi {data.user_name}, welcome aboard!{joined}

Sign in: {data.login_url}
"""
    html = _html_page(
        subject,
        [f"Hi {escape(data.user_name)}, welcome aboard!{escape(joined)}"],
        "Sign In",
        data.login_url,
        "You're receiving this email because you created an account.",
    )
    return RenderedTemplate(subject, text, html)


def _project_shared(data: ProjectSharedData) -> RenderedTemplate:
    subject = f'{data.shared_by} shared the project "{data.project_name}" with you'
    text = f"""
Hi {data.recipient_name}!

{data.shared_by} shared the project {data.project_name} with you.

Open it: {data.project_url}
"""
    html = _html_page(
        f"{data.project_name} was shared with you",
        [
            f"Hi {escape(data.recipient_name)}!",
            f"{escape(data.shared_by)} shared the project "
            f"<strong>{escape(data.project_name)}</strong> with you.",
        ],
        "Open Project",
        data.project_url,
        "You're receiving this email because a project was shared with you.",
    )
    return RenderedTemplate(subject, text, html)


def _password_reset(data: PasswordResetData) -> RenderedTemplate:
    subject = "Reset your password"
    text = f"""
Hi {data.user_name}, you requested a password reset.

Reset your password:
{data.reset_url}

This link will expire in {data.expiry_time}.

If you didn't request this, you can ignore this email. Your password will not be changed.
"""
    html = _html_page(
        subject,
        [
            f"Hi {escape(data.user_name)}, you requested a password reset.",
            f"This link will expire in {escape(data.expiry_time)}.",
        ],
        "Reset Password",
        data.reset_url,
        "If you didn't request this password reset, you can ignore this email.",
    )
    return RenderedTemplate(subject, text, html)


def _email_verification(data: EmailVerificationData) -> RenderedTemplate:
    subject = "Verify your email address"
    text = f"""
Hi {data.user_name}, please confirm your email address:
{data.verification_url}

This link will expire in {data.expiry_time}.
"""
    html = _html_page(
        subject,
        [
            f"Hi {escape(data.user_name)}, please confirm your email address.",
            f"This link will expire in {escape(data.expiry_time)}.",
        ],
        "Verify Email",
        data.verification_url,
        "If you didn't create an account, you can ignore this email.",
    )
    return RenderedTemplate(subject, text, html)


_RENDERERS: dict[EmailTemplate, Callable[[Any], RenderedTemplate]] = {
    EmailTemplate.WORKSPACE_INVITATION: _workspace_invitation,
    EmailTemplate.PROJECT_INVITATION: _project_invitation,
    EmailTemplate.WELCOME: _welcome,
    EmailTemplate.PROJECT_SHARED: _project_shared,
    EmailTemplate.PASSWORD_RESET: _password_reset,
    EmailTemplate.EMAIL_VERIFICATION: _email_verification,
}


def validate_template_data(template: EmailTemplate, data: dict[str, Any]) -> BaseModel:
    """Validate raw template data against the template's model.

    Raises:
        ValidationError: If the data does not fit the template
    """
    model = TEMPLATE_MODELS[EmailTemplate(template)]
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        fields = [".".join(str(x) for x in err["loc"]) for err in e.errors()]
        raise ValidationError(
            "Invalid template data",
            details={"template": EmailTemplate(template).value, "fields": fields},
        ) from e


def render(template: EmailTemplate, data: dict[str, Any]) -> RenderedTemplate:
    """Render a template to subject, text and HTML."""
    validated = validate_template_data(template, data)
    return _RENDERERS[EmailTemplate(template)](validated)
