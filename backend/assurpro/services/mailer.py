# backend/assurpro/services/mailer.py
"""
Transactional e-mail over SMTP.

Sending is best-effort: callers get a boolean and failures are logged,
never raised. Without SMTP credentials nothing is sent.
"""
from __future__ import annotations

import html
import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import date
from email.message import EmailMessage
from email.utils import formataddr
from typing import Iterable

from ..core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenewalReminderItem:
    numero_contrat: str
    client_nom: str
    immatriculation: str | None
    date_fin: date
    jours_restants: int


class Mailer:
    def __init__(
        self,
        host: str,
        port: int,
        user: str | None,
        password: str | None,
        from_name: str,
        use_ssl: bool = False,
        timeout: float = 60.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_name = from_name
        self.use_ssl = use_ssl
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "Mailer":
        settings = get_settings()
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            from_name=settings.SMTP_FROM_NAME,
            use_ssl=settings.SMTP_SECURE,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        return bool(self.user and self.password)

    def build_message(self, to: str, subject: str, text: str, html_body: str | None = None) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.from_name, self.user or ""))
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text)
        if html_body:
            msg.add_alternative(html_body, subtype="html")
        return msg

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            return smtplib.SMTP_SSL(
                self.host, self.port, timeout=self.timeout, context=ssl.create_default_context()
            )
        smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            smtp.starttls(context=ssl.create_default_context())
        except BaseException:
            smtp.close()
            raise
        return smtp

    def send(self, to: str, subject: str, text: str, html_body: str | None = None) -> bool:
        if not self.configured:
            logger.warning(
                "SMTP credentials missing; e-mail to %s not sent", to,
                extra={"step": "send_email"},
            )
            return False

        msg = self.build_message(to, subject, text, html_body)
        try:
            with self._connect() as smtp:
                smtp.login(self.user, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "SMTP delivery to %s failed: %s", to, exc,
                extra={"step": "send_email", "error_kind": type(exc).__name__},
            )
            return False

        logger.info("E-mail sent to %s", to, extra={"step": "send_email"})
        return True

    def send_renewal_reminder(
        self,
        to: str,
        entreprise_nom: str,
        items: Iterable[RenewalReminderItem],
    ) -> bool:
        subject, text, html_body = render_renewal_reminder(entreprise_nom, list(items))
        return self.send(to, subject, text, html_body)


def render_renewal_reminder(entreprise_nom: str, items: list[RenewalReminderItem]) -> tuple[str, str, str]:
    """Subject, plain-text and HTML bodies of the renewal reminder."""
    count = len(items)
    plural = "s" if count > 1 else ""
    subject = f"{count} contrat{plural} à renouveler - OptimumAssurPro"

    lines = [
        f"- {i.numero_contrat} | {i.client_nom} | {i.immatriculation or '-'} | "
        f"échéance {i.date_fin:%d/%m/%Y} ({i.jours_restants} j)"
        for i in items
    ]
    text = "\n".join(
        [
            f"Bonjour {entreprise_nom},",
            "",
            f"{count} contrat{plural} arrive{'nt' if count > 1 else ''} à échéance prochainement :",
            "",
            *lines,
            "",
            "Connectez-vous à OptimumAssurPro pour les renouveler.",
        ]
    )

    rows = "".join(
        "<tr>"
        f"<td>{html.escape(i.numero_contrat)}</td>"
        f"<td>{html.escape(i.client_nom)}</td>"
        f"<td>{html.escape(i.immatriculation or '-')}</td>"
        f"<td>{i.date_fin:%d/%m/%Y}</td>"
        f"<td>{i.jours_restants}</td>"
        "</tr>"
        for i in items
    )
    html_body = (
        f"<p>Bonjour {html.escape(entreprise_nom)},</p>"
        f"<p>{count} contrat{plural} arrive{'nt' if count > 1 else ''} à échéance prochainement :</p>"
        "<table><thead><tr><th>Police</th><th>Client</th><th>Immatriculation</th>"
        "<th>Échéance</th><th>Jours restants</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        "<p>Connectez-vous à OptimumAssurPro pour les renouveler.</p>"
    )
    return subject, text, html_body
