import unittest
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

from daycare.services.notification_service import (
    InvoiceDocument,
    InvoiceLine,
    LogEmailSender,
    NotificationJob,
    ReportlabInvoiceRenderer,
    SmtpEmailSender,
    SubscriptionNotice,
    SubscriptionNotifier,
    first_name_of,
    format_due_date,
)


def _job() -> NotificationJob:
    invoice = InvoiceDocument(
        invoice_number='INV123456ABCD',
        invoice_type='registration',
        billing_month=4,
        billing_year=2026,
        due_date=date(2026, 3, 22),
        subtotal=Decimal('150.00'),
        tax_amount=Decimal('0.00'),
        total_amount=Decimal('150.00'),
        payment_status='pending',
        issued_at=datetime(2026, 3, 15, 15, 0),
        customer_name='Ana Perez',
        customer_email='ana@example.com',
        customer_phone='999111222',
        subscription_code='SUBS123456ABCD',
        child_name='Mia',
        service_name='Early Stimulation',
        items=(
            InvoiceLine(
                description='Monthly subscription - Early Stimulation (4/2026)',
                quantity=1,
                unit_price=Decimal('150.00'),
                total_price=Decimal('150.00'),
                service_name='Early Stimulation',
            ),
        ),
    )
    notice = SubscriptionNotice(
        subscription_code='SUBS123456ABCD',
        service_name='Early Stimulation',
        child_name='Mia',
        child_age=18,
        parent_name='Ana Perez',
        parent_email='ana@example.com',
        start_month=4,
        start_year=2026,
        sessions_per_month=10,
        weekly_days=('monday', 'thursday'),
        base_monthly_price=Decimal('187.50'),
        discount_amount=Decimal('37.50'),
        final_monthly_price=Decimal('150.00'),
        promotion_code='SPRING20',
        status='pending',
    )
    return NotificationJob(invoice=invoice, subscription=notice)


class NotificationFormattingTests(unittest.TestCase):
    def test_helpers(self):
        self.assertEqual(first_name_of('Ana Maria Perez'), 'Ana')
        self.assertEqual(first_name_of(''), '')
        self.assertEqual(format_due_date(date(2026, 3, 2)), '2 March 2026')

    def test_reportlab_renders_a_pdf(self):
        pdf = ReportlabInvoiceRenderer(center_name='Little Steps').render(_job().invoice)
        self.assertTrue(pdf.startswith(b'%PDF'))


class SmtpEmailSenderTests(unittest.TestCase):
    def _sender(self):
        return SmtpEmailSender(
            host='smtp.test',
            port=2525,
            username='mailer',
            password='secret',
            use_tls=True,
            sender='billing@daycare.test',
        )

    def test_invoice_email_attaches_pdf(self):
        with patch('daycare.services.notification_service.smtplib.SMTP') as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            self._sender().send_invoice_email(
                'ana@example.com', 'Ana', 'INV1', 'S/ 150.00', '22 March 2026', b'%PDF-1.4'
            )

        smtp_cls.assert_called_once_with('smtp.test', 2525, timeout=10)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with('mailer', 'secret')
        message = server.send_message.call_args.args[0]
        self.assertEqual(message['To'], 'ana@example.com')
        self.assertEqual(message['Subject'], 'Invoice INV1')
        attachments = list(message.iter_attachments())
        self.assertEqual(len(attachments), 1)
        self.assertEqual(attachments[0].get_filename(), 'INV1.pdf')
        body = message.get_body(preferencelist=('plain',)).get_content()
        self.assertIn('Hello Ana', body)
        self.assertIn('S/ 150.00', body)

    def test_confirmation_email_lists_schedule_and_discount(self):
        with patch('daycare.services.notification_service.smtplib.SMTP') as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            self._sender().send_subscription_confirmation(_job().subscription)

        message = server.send_message.call_args.args[0]
        body = message.get_content()
        self.assertIn('Start: 04/2026', body)
        self.assertIn('Days: monday, thursday', body)
        self.assertIn('Promotion SPRING20: -S/ 37.50', body)
        self.assertIn('Total per month: S/ 150.00', body)


class SubscriptionNotifierTests(unittest.TestCase):
    def test_each_step_is_isolated(self):
        renderer = MagicMock()
        renderer.render.return_value = b'%PDF'
        sender = MagicMock()
        sender.send_subscription_confirmation.side_effect = ConnectionError('smtp down')
        with patch('daycare.services.notification_service.record_provisioning_event') as record:
            warnings = SubscriptionNotifier(pdf_renderer=renderer, email_sender=sender).dispatch(_job())

        self.assertEqual(warnings, ['Subscription confirmation email could not be sent'])
        sender.send_invoice_email.assert_called_once_with(
            'ana@example.com', 'Ana', 'INV123456ABCD', 'S/ 150.00', '22 March 2026', b'%PDF'
        )
        record.assert_called_once_with('notification_failed')

    def test_everything_failing_still_returns(self):
        renderer = MagicMock()
        renderer.render.side_effect = RuntimeError('no fonts')
        sender = MagicMock()
        sender.send_subscription_confirmation.side_effect = RuntimeError('smtp down')

        warnings = SubscriptionNotifier(pdf_renderer=renderer, email_sender=sender).dispatch(_job())

        self.assertEqual(
            warnings,
            ['Invoice email could not be sent', 'Subscription confirmation email could not be sent'],
        )
        sender.send_invoice_email.assert_not_called()

    def test_log_sender_is_used_when_email_disabled(self):
        with self.assertLogs('daycare.services.notification_service', level='INFO') as logs:
            SubscriptionNotifier(pdf_renderer=MagicMock(render=MagicMock(return_value=b'x'))).dispatch(_job())
        self.assertTrue(any('email_skipped kind=invoice' in line for line in logs.output))
        self.assertTrue(any('email_skipped kind=subscription_confirmation' in line for line in logs.output))


if __name__ == '__main__':
    unittest.main()
