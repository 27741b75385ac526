from flask_mail import Message
from flask import current_app, render_template
from email.utils import parseaddr
from academy.extensions import mail


def mail_enabled():
    return bool(current_app.config.get("MAIL_ENABLED"))


def send_email(to, subject, body, html=None, sender=None):
    """Generic email sender; never mails the sender address itself.

    Raises whatever the SMTP layer raises so the caller can decide whether a
    failed send should fail the request.
    """
    sender = sender or current_app.config.get("MAIL_DEFAULT_SENDER")
    recipients = [to] if isinstance(to, str) else list(to)

    sender_address = parseaddr(sender)[1] if isinstance(sender, str) else sender[1]
    recipients = [r for r in recipients if r and r.lower() != sender_address.lower()]
    if not recipients:
        current_app.logger.info(f"Skipped sending email to sender address: {sender_address}")
        return False

    msg = Message(subject=subject, recipients=recipients, sender=sender)
    msg.body = body
    if html:
        msg.html = html

    mail.send(msg)
    current_app.logger.info(f"Email sent successfully to {', '.join(recipients)}")
    return True


def send_template_email(to, subject, template, sender=None, **context):
    """Render ``emails/<template>.txt`` and ``.html`` and send them."""
    text_body = render_template(f"emails/{template}.txt", **context)
    html_body = render_template(f"emails/{template}.html", **context)
    return send_email(to=to, subject=subject, body=text_body, html=html_body, sender=sender)


def send_welcome_email(user, course):
    student_name = user.full_name or user.email.split("@")[0] or "Student"
    course_url = f"{current_app.config['SITE_URL']}/learn/{course.id}"
    return send_template_email(
        user.email,
        f"Welcome to {course.title}!",
        "welcome",
        student_name=student_name,
        course_title=course.title,
        course_url=course_url,
    )


def send_invite_email(email, course_title, action_link, is_new_user,
                      user_name=None, temp_password=None, subject=None):
    if subject is None:
        subject = (
            f"Your account for {course_title}" if is_new_user
            else f"Course Enrollment: {course_title}"
        )
    return send_template_email(
        email,
        subject,
        "invite",
        sender=current_app.config.get("MAIL_ADMIN_SENDER"),
        course_title=course_title,
        action_link=action_link,
        is_new_user=is_new_user,
        user_email=email,
        user_name=user_name,
        temp_password=temp_password,
    )


def send_custom_email(to, subject, content):
    return send_template_email(
        to,
        subject,
        "custom",
        sender=current_app.config.get("MAIL_ADMIN_SENDER"),
        heading=subject,
        lines=content.split("\n"),
    )
