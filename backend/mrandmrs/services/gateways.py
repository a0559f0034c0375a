"""Clients for the collaborators the game core depends on.

The core never charges cards, sends e-mail or stores files itself. It asks
a payment gateway for a yes/no charge outcome, hands invitations to a
notifier, and asks the media store whether an upload has completed. Each
collaborator has a local implementation for development and tests and an
HTTP implementation selected through configuration.
"""
from dataclasses import dataclass
from typing import Optional

import requests
from flask import current_app

from mrandmrs.errors import UpstreamFailure


@dataclass
class ChargeResult:
    success: bool
    message: Optional[str] = None
    reference: Optional[str] = None


@dataclass
class Invitation:
    game_id: str
    access_code: str
    email: str
    name: Optional[str]
    game_name: str
    creator_name: str
    link: str


class PaymentGateway:
    def charge(self, tier: str, amount_cents: int, game_id: str) -> ChargeResult:
        raise NotImplementedError


class LocalPaymentGateway(PaymentGateway):
    """Approves every charge. For development only."""

    def charge(self, tier, amount_cents, game_id):
        current_app.logger.info(f"[payment-local] game={game_id} tier={tier} amount={amount_cents} approved")
        return ChargeResult(success=True, reference=f"local-{game_id}")


class HttpPaymentGateway(PaymentGateway):
    def __init__(self, url, token='', currency='usd', timeout=15):
        self.url = url
        self.token = token
        self.currency = currency
        self.timeout = timeout

    def charge(self, tier, amount_cents, game_id):
        headers = {'Content-Type': 'application/json'}
        if self.token:
            headers['Authorization'] = f"Bearer {self.token}"
        payload = {
            'amount': amount_cents,
            'currency': self.currency,
            'tier': tier,
            'game_id': game_id,
        }
        try:
            resp = requests.post(self.url, headers=headers, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise UpstreamFailure('payment', str(exc)) from exc
        if data.get('success'):
            return ChargeResult(success=True, reference=data.get('reference'))
        error = data.get('error') or {}
        if isinstance(error, dict):
            return ChargeResult(success=False, message=error.get('message') or 'Payment declined',
                                reference=error.get('code'))
        return ChargeResult(success=False, message=str(error) or 'Payment declined')


class Notifier:
    def send_invite(self, invitation: Invitation) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Writes the invitation to the application log instead of sending it."""

    def send_invite(self, invitation):
        current_app.logger.info(
            f"[invite-log] game={invitation.game_id} to={invitation.email} code={invitation.access_code} link={invitation.link}"
        )


class ResendNotifier(Notifier):
    def __init__(self, api_url, api_key, from_email, timeout=15):
        self.api_url = api_url
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout

    def _render(self, invitation):
        greeting = f"Hi {invitation.name}," if invitation.name else "Hi,"
        return (
            f"<p>{greeting}</p>"
            f"<p><strong>{invitation.creator_name}</strong> has invited you to play "
            f"<strong>\"{invitation.game_name}\"</strong>.</p>"
            f"<p><a href=\"{invitation.link}\">Play now</a></p>"
            f"<p>Or open the app and enter this code: <strong>{invitation.access_code}</strong></p>"
        )

    def send_invite(self, invitation):
        if not self.api_key:
            raise UpstreamFailure('notifier', 'RESEND_API_KEY is not configured')
        payload = {
            'from': self.from_email,
            'to': invitation.email,
            'subject': f"{invitation.creator_name} invited you to play \"{invitation.game_name}\"!",
            'html': self._render(invitation),
        }
        headers = {
            'Authorization': f"Bearer {self.api_key}",
            'Content-Type': 'application/json',
        }
        try:
            resp = requests.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamFailure('notifier', str(exc)) from exc
        if not resp.ok:
            try:
                message = resp.json().get('message') or resp.reason
            except ValueError:
                message = resp.reason
            raise UpstreamFailure('notifier', f"Error sending email: {message}")


class MediaStore:
    def upload_completed(self, url: str, kind: str) -> bool:
        raise NotImplementedError


class LocalMediaStore(MediaStore):
    """Accepts http(s) URLs, optionally restricted to one base URL."""

    def __init__(self, base_url=''):
        self.base_url = base_url

    def upload_completed(self, url, kind):
        if self.base_url:
            return url.startswith(self.base_url)
        return url.startswith('http://') or url.startswith('https://')


class HttpMediaStore(MediaStore):
    def __init__(self, base_url='', timeout=15):
        self.base_url = base_url
        self.timeout = timeout

    def upload_completed(self, url, kind):
        if self.base_url and not url.startswith(self.base_url):
            return False
        try:
            resp = requests.head(url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as exc:
            raise UpstreamFailure('media_store', str(exc)) from exc
        return resp.ok


class Gateways:
    def __init__(self, payment, notifier, media):
        self.payment = payment
        self.notifier = notifier
        self.media = media


def build_gateways(config):
    timeout = int(config.get('GATEWAY_TIMEOUT_SEC', 15))

    if config.get('PAYMENT_GATEWAY') == 'http':
        payment = HttpPaymentGateway(
            config.get('PAYMENT_GATEWAY_URL'),
            token=config.get('PAYMENT_GATEWAY_TOKEN', ''),
            currency=config.get('PAYMENT_CURRENCY', 'usd'),
            timeout=timeout,
        )
    else:
        payment = LocalPaymentGateway()

    if config.get('NOTIFIER') == 'resend':
        notifier = ResendNotifier(
            config.get('RESEND_API_URL'),
            config.get('RESEND_API_KEY'),
            config.get('FROM_EMAIL'),
            timeout=timeout,
        )
    else:
        notifier = LogNotifier()

    if config.get('MEDIA_STORE') == 'http':
        media = HttpMediaStore(config.get('MEDIA_BASE_URL', ''), timeout=timeout)
    else:
        media = LocalMediaStore(config.get('MEDIA_BASE_URL', ''))

    return Gateways(payment, notifier, media)


def init_app(app):
    app.extensions['gateways'] = build_gateways(app.config)


def get_gateways() -> Gateways:
    return current_app.extensions['gateways']
