from __future__ import annotations

import io
import logging
import smtplib
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from email.message import EmailMessage
from typing import Protocol

from jinja2 import Environment, StrictUndefined
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from daycare.config import settings
from daycare.core.money import format_price
from daycare.metrics import record_provisioning_event


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceLine:
    description: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    service_name: str | None = None


@dataclass(frozen=True)
class InvoiceDocument:
    invoice_number: str
    invoice_type: str
    billing_month: int
    billing_year: int
    due_date: date
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    payment_status: str
    issued_at: datetime
    customer_name: str
    customer_email: str
    customer_phone: str
    subscription_code: str
    child_name: str
    service_name: str
    items: tuple[InvoiceLine, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SubscriptionNotice:
    subscription_code: str
    service_name: str
    child_name: str
    child_age: int
    parent_name: str
    parent_email: str
    start_month: int
    start_year: int
    sessions_per_month: int
    weekly_days: tuple[str, ...]
    base_monthly_price: Decimal
    discount_amount: Decimal
    final_monthly_price: Decimal
    promotion_code: str | None
    status: str


@dataclass(frozen=True)
class NotificationJob:
    """Everything the post-commit notifications need, detached from the database session."""

    invoice: InvoiceDocument
    subscription: SubscriptionNotice


class InvoicePdfRenderer(Protocol):
    def render(self, invoice: InvoiceDocument) -> bytes:
        ...


class EmailSender(Protocol):
    def send_invoice_email(
        self,
        to: str,
        first_name: str,
        invoice_number: str,
        formatted_amount: str,
        formatted_due_date: str,
        pdf_bytes: bytes,
    ) -> None:
        ...

    def send_subscription_confirmation(self, subscription: SubscriptionNotice) -> None:
        ...


class ReportlabInvoiceRenderer:
    def __init__(self, center_name: str | None = None):
        self.center_name = center_name or settings.center_name
        self.styles = getSampleStyleSheet()

    def render(self, invoice: InvoiceDocument) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            topMargin=2 * cm,
            bottomMargin=2 * cm,
            leftMargin=2 * cm,
            rightMargin=2 * cm,
            title=f'Invoice {invoice.invoice_number}',
        )
        story = [
            Paragraph(self.center_name, self.styles['Title']),
            Paragraph(f'Invoice {invoice.invoice_number}', self.styles['Heading2']),
            Paragraph(f'Billing period: {invoice.billing_month:02d}/{invoice.billing_year}', self.styles['Normal']),
            Paragraph(f'Due date: {invoice.due_date.isoformat()}', self.styles['Normal']),
            Paragraph(f'Customer: {invoice.customer_name} ({invoice.customer_email})', self.styles['Normal']),
            Paragraph(f'Subscription: {invoice.subscription_code} - {invoice.child_name}', self.styles['Normal']),
            Spacer(1, 0.6 * cm),
        ]
        rows = [['Description', 'Qty', 'Unit price', 'Total']]
        for item in invoice.items:
            rows.append([item.description, str(item.quantity), format_price(item.unit_price), format_price(item.total_price)])
        rows.append(['', '', 'Subtotal', format_price(invoice.subtotal)])
        rows.append(['', '', 'Tax', format_price(invoice.tax_amount)])
        rows.append(['', '', 'Total', format_price(invoice.total_amount)])
        table = Table(rows, colWidths=[9 * cm, 1.5 * cm, 3 * cm, 3 * cm])
        table.setStyle(
            TableStyle(
                [
                    ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#2f7bf6')),
                    ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
                    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                    ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
                    ('LINEBELOW', (0, 0), (-1, len(invoice.items)), 0.5, colors.grey),
                    ('FONTNAME', (2, -1), (-1, -1), 'Helvetica-Bold'),
                ]
            )
        )
        story.append(table)
        doc.build(story)
        return buffer.getvalue()


_INVOICE_EMAIL_TEMPLATE = """Hello {{ first_name }},

Your invoice {{ invoice_number }} for {{ formatted_amount }} is attached.
Please complete the payment before {{ formatted_due_date }}.

{{ center_name }}
"""

_CONFIRMATION_EMAIL_TEMPLATE = """Hello {{ s.parent_name }},

We received the subscription {{ s.subscription_code }} for {{ s.child_name }}.

Service: {{ s.service_name }}
Start: {{ '%02d'|format(s.start_month) }}/{{ s.start_year }}
Sessions per month: {{ s.sessions_per_month }}
Days: {{ s.weekly_days | join(', ') }}
Monthly price: {{ base_price }}
{%- if s.promotion_code %}
Promotion {{ s.promotion_code }}: -{{ discount }}
{%- endif %}
Total per month: {{ final_price }}

Status: {{ s.status }}. We will contact you to confirm the schedule.

{{ center_name }}
"""


class SmtpEmailSender:
    def __init__(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool | None = None,
        sender: str | None = None,
    ):
        self.host = host or settings.smtp_host
        self.port = int(port or settings.smtp_port)
        self.username = settings.smtp_username if username is None else username
        self.password = settings.smtp_password if password is None else password
        self.use_tls = settings.smtp_use_tls if use_tls is None else use_tls
        self.sender = sender or settings.email_from
        self.env = Environment(undefined=StrictUndefined, autoescape=False)

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=settings.smtp_timeout_seconds) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(message)

    def _message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message['From'] = self.sender
        message['To'] = to
        message['Subject'] = subject
        message.set_content(body)
        return message

    def send_invoice_email(
        self,
        to: str,
        first_name: str,
        invoice_number: str,
        formatted_amount: str,
        formatted_due_date: str,
        pdf_bytes: bytes,
    ) -> None:
        body = self.env.from_string(_INVOICE_EMAIL_TEMPLATE).render(
            first_name=first_name,
            invoice_number=invoice_number,
            formatted_amount=formatted_amount,
            formatted_due_date=formatted_due_date,
            center_name=settings.center_name,
        )
        message = self._message(to, f'Invoice {invoice_number}', body)
        message.add_attachment(pdf_bytes, maintype='application', subtype='pdf', filename=f'{invoice_number}.pdf')
        self._deliver(message)

    def send_subscription_confirmation(self, subscription: SubscriptionNotice) -> None:
        body = self.env.from_string(_CONFIRMATION_EMAIL_TEMPLATE).render(
            s=subscription,
            base_price=format_price(subscription.base_monthly_price),
            discount=format_price(subscription.discount_amount),
            final_price=format_price(subscription.final_monthly_price),
            center_name=settings.center_name,
        )
        self._deliver(self._message(subscription.parent_email, f'Subscription {subscription.subscription_code} received', body))


class LogEmailSender:
    """Used when outbound email is disabled; keeps a trace of what would have been sent."""

    def send_invoice_email(
        self,
        to: str,
        first_name: str,
        invoice_number: str,
        formatted_amount: str,
        formatted_due_date: str,
        pdf_bytes: bytes,
    ) -> None:
        logger.info(
            'email_skipped kind=invoice to=%s invoice_number=%s amount=%s pdf_bytes=%s',
            to,
            invoice_number,
            formatted_amount,
            len(pdf_bytes or b''),
        )

    def send_subscription_confirmation(self, subscription: SubscriptionNotice) -> None:
        logger.info(
            'email_skipped kind=subscription_confirmation to=%s code=%s',
            subscription.parent_email,
            subscription.subscription_code,
        )


def first_name_of(full_name: str) -> str:
    parts = (full_name or '').split()
    return parts[0] if parts else ''


def format_due_date(value: date) -> str:
    return f'{value.day} {value.strftime("%B %Y")}'


class SubscriptionNotifier:
    """Runs the post-commit notifications. Each step is isolated and never raises."""

    def __init__(self, *, pdf_renderer: InvoicePdfRenderer | None = None, email_sender: EmailSender | None = None):
        self.pdf_renderer = pdf_renderer or ReportlabInvoiceRenderer()
        self.email_sender = email_sender or (SmtpEmailSender() if settings.enable_email_notifications else LogEmailSender())

    def _send_invoice(self, job: NotificationJob) -> None:
        invoice = job.invoice
        pdf_bytes = self.pdf_renderer.render(invoice)
        self.email_sender.send_invoice_email(
            invoice.customer_email,
            first_name_of(invoice.customer_name),
            invoice.invoice_number,
            format_price(invoice.total_amount),
            format_due_date(invoice.due_date),
            pdf_bytes,
        )

    def dispatch(self, job: NotificationJob) -> list[str]:
        warnings: list[str] = []
        code = job.subscription.subscription_code

        try:
            self._send_invoice(job)
            logger.info('notification_sent step=invoice_email code=%s invoice=%s', code, job.invoice.invoice_number)
        except Exception:
            logger.exception('notification_failed step=invoice_email code=%s invoice=%s', code, job.invoice.invoice_number)
            record_provisioning_event('notification_failed')
            warnings.append('Invoice email could not be sent')

        try:
            self.email_sender.send_subscription_confirmation(job.subscription)
            logger.info('notification_sent step=subscription_confirmation code=%s', code)
        except Exception:
            logger.exception('notification_failed step=subscription_confirmation code=%s', code)
            record_provisioning_event('notification_failed')
            warnings.append('Subscription confirmation email could not be sent')

        return warnings
