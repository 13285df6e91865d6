from storefront.services.email_retry import send_email_with_retry
from storefront.utils.template import render_template
from storefront.config import settings


def send_user_email(template, subject, to_email, **ctx):
    html = render_template(template, **ctx)
    return send_email_with_retry(to_email=to_email, subject=subject, html=html)


def send_admin_email(template, subject, **ctx):
    if not settings.ADMIN_EMAILS:
        return False
    html = render_template(template, **ctx)
    return send_email_with_retry(to_email=settings.ADMIN_EMAILS, subject=subject, html=html)
