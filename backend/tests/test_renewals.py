"""
Tests for notifications, the daily renewal scan and the renewal e-mail.
"""
from datetime import date, timedelta
from decimal import Decimal
import uuid

import pytest

from assurpro.models import Client, Contrat, ContractStatus, Notification, NotificationType, Vehicule
from assurpro.schemas.notifications import NotificationCreate
from assurpro.services import notifications
from assurpro.services.errors import NotFoundError
from assurpro.services.mailer import Mailer, RenewalReminderItem, render_renewal_reminder
from assurpro.services import mailer as mailer_module
from assurpro.services.renewals import _already_notified, run_renewal_scan

TODAY = date(2026, 3, 10)


class FakeMailer:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    def send_renewal_reminder(self, to, entreprise_nom, items):
        self.sent.append((to, entreprise_nom, list(items)))
        return self.succeed


@pytest.fixture
def portfolio(db_session, entreprise):
    """One client with contracts ending at various distances from TODAY."""
    client = Client(entreprise_id=entreprise.id, nom="Awa Diallo", telephone="0700000001")
    db_session.add(client)
    db_session.flush()
    vehicule = Vehicule(client_id=client.id, immatriculation="AB-123-CD")
    db_session.add(vehicule)
    db_session.flush()

    def _contract(numero, days_left, statut=ContractStatus.ACTIF.value):
        fin = TODAY + timedelta(days=days_left)
        c = Contrat(
            client_id=client.id,
            vehicule_id=vehicule.id,
            entreprise_id=entreprise.id,
            numero_contrat=numero,
            type_contrat="Tiers",
            duree_mois=12,
            date_debut=fin - timedelta(days=365),
            date_fin=fin,
            montant=Decimal("50000"),
            statut=statut,
        )
        db_session.add(c)
        return c

    contracts = {
        "lapsed": _contract("LAPSED", -1),
        "today": _contract("TODAY", 0),
        "soon": _contract("SOON", 7),
        "later": _contract("LATER", 8),
        "cancelled": _contract("CANCELLED", 3, ContractStatus.ANNULE.value),
    }
    db_session.commit()
    return contracts


class TestRenewalScan:
    def test_expires_and_notifies(self, db_session, entreprise, portfolio):
        mailer = FakeMailer()

        result = run_renewal_scan(db_session, today=TODAY, mailer=mailer, alert_days=7)

        db_session.expire_all()
        assert portfolio["lapsed"].statut == ContractStatus.EXPIRE.value
        assert portfolio["later"].statut == ContractStatus.ACTIF.value
        assert result.expired == 1
        assert result.notifications == 2

        notified = {n.contrat_id for n in db_session.query(Notification).all()}
        assert notified == {portfolio["today"].id, portfolio["soon"].id}

        assert result.emails_sent == 1
        to, nom, items = mailer.sent[0]
        assert to == entreprise.email
        assert [i.numero_contrat for i in items] == ["TODAY", "SOON"]

    def test_no_duplicate_notifications(self, db_session, entreprise, portfolio):
        run_renewal_scan(db_session, today=TODAY, mailer=FakeMailer(), alert_days=7)
        mailer = FakeMailer()

        second = run_renewal_scan(db_session, today=TODAY, mailer=mailer, alert_days=7)

        assert second.notifications == 0
        assert mailer.sent == []
        assert db_session.query(Notification).count() == 2

    def test_lookup_limited_to_requested_contracts(self, db_session, entreprise, portfolio):
        for key in ("soon", "later"):
            db_session.add(
                Notification(
                    entreprise_id=entreprise.id,
                    contrat_id=portfolio[key].id,
                    type=NotificationType.RENOUVELLEMENT,
                    titre="t",
                    message="m",
                )
            )
        db_session.commit()

        assert _already_notified(db_session, [portfolio["soon"].id, portfolio["today"].id]) == {portfolio["soon"].id}
        assert _already_notified(db_session, []) == set()

        result = run_renewal_scan(db_session, today=TODAY, mailer=None, alert_days=7)
        assert result.notifications == 1

    def test_mail_failure_keeps_notifications(self, db_session, entreprise, portfolio):
        result = run_renewal_scan(db_session, today=TODAY, mailer=FakeMailer(succeed=False), alert_days=7)

        assert result.notifications == 2
        assert result.emails_sent == 0
        assert db_session.query(Notification).count() == 2

    def test_without_mailer(self, db_session, entreprise, portfolio):
        result = run_renewal_scan(db_session, today=TODAY, mailer=None, alert_days=7)
        assert result.notifications == 2
        assert result.emails_sent == 0


class TestNotifications:
    def _create(self, db_session, entreprise, **kwargs):
        payload = NotificationCreate(type=NotificationType.INFO, titre="Info", message="Bonjour", **kwargs)
        return notifications.create_notification(db_session, entreprise.id, payload)

    def test_list_filter_and_mark_read(self, db_session, entreprise):
        first = self._create(db_session, entreprise)
        self._create(db_session, entreprise)

        notifications.mark_read(db_session, entreprise.id, first.id)

        assert len(notifications.list_notifications(db_session, entreprise.id)) == 2
        unread = notifications.list_notifications(db_session, entreprise.id, lu=False)
        assert len(unread) == 1
        assert [n.id for n in notifications.list_notifications(db_session, entreprise.id, lu=True)] == [first.id]

    def test_mark_read_other_company(self, db_session, entreprise):
        n = self._create(db_session, entreprise)
        with pytest.raises(NotFoundError):
            notifications.mark_read(db_session, uuid.uuid4(), n.id)

    def test_numero_contrat_is_attached(self, db_session, entreprise, portfolio):
        n = self._create(db_session, entreprise, contrat_id=portfolio["soon"].id)
        out = notifications.to_notification_out(n)
        assert out.numero_contrat == "SOON"

    def test_contract_of_other_company_rejected(self, db_session, entreprise, portfolio):
        payload = NotificationCreate(
            type=NotificationType.INFO, titre="x", message="y", contrat_id=portfolio["soon"].id
        )
        with pytest.raises(NotFoundError):
            notifications.create_notification(db_session, uuid.uuid4(), payload)

    def test_list_is_capped(self, db_session, entreprise):
        for _ in range(notifications.LIST_LIMIT + 5):
            db_session.add(
                Notification(entreprise_id=entreprise.id, type="info", titre="t", message="m")
            )
        db_session.commit()
        assert len(notifications.list_notifications(db_session, entreprise.id)) == notifications.LIST_LIMIT


class TestMailer:
    def test_unconfigured_does_not_send(self):
        mailer = Mailer(host="smtp.test", port=587, user=None, password=None, from_name="OptimumAssurPro")
        assert mailer.configured is False
        assert mailer.send("x@example.com", "s", "t") is False

    def test_message_headers(self):
        mailer = Mailer(host="smtp.test", port=587, user="noreply@example.com", password="pw", from_name="OptimumAssurPro")
        msg = mailer.build_message("x@example.com", "Sujet", "texte", "<p>html</p>")
        assert msg["From"] == "OptimumAssurPro <noreply@example.com>"
        assert msg["To"] == "x@example.com"
        assert msg.is_multipart()

    def test_reminder_template(self):
        items = [
            RenewalReminderItem("POL-1", "Awa <Diallo>", "AB-123-CD", date(2026, 3, 17), 7),
            RenewalReminderItem("POL-2", "Moussa", None, date(2026, 3, 12), 2),
        ]
        subject, text, html_body = render_renewal_reminder("Agence", items)

        assert subject.startswith("2 contrats")
        assert "POL-1" in text and "17/03/2026" in text
        assert "Awa &lt;Diallo&gt;" in html_body

    def test_connection_closed_when_starttls_fails(self, monkeypatch):
        opened = []

        class FailingSMTP:
            def __init__(self, host, port, timeout=None):
                self.closed = False
                opened.append(self)

            def starttls(self, context=None):
                raise mailer_module.smtplib.SMTPNotSupportedError("STARTTLS extension not supported")

            def close(self):
                self.closed = True

        monkeypatch.setattr(mailer_module.smtplib, "SMTP", FailingSMTP)
        mailer = Mailer(host="smtp.test", port=587, user="noreply@example.com", password="pw", from_name="OptimumAssurPro")

        assert mailer.send("x@example.com", "Sujet", "texte") is False
        assert len(opened) == 1
        assert opened[0].closed is True
