"""Outbound email through the Mailgun HTTP API."""
import logging
import requests

logger = logging.getLogger(__name__)


class MailgunError(Exception):
    """Raised when Mailgun rejects a message or cannot be reached."""
    pass


class MailgunClient:
    base_url = 'https://api.mailgun.net/v3'
    timeout = 20

    def __init__(self, api_key, domain, from_email):
        self.api_key = api_key
        self.domain = domain
        self.from_email = from_email

    @classmethod
    def from_config(cls, config):
        api_key = config.get('MAILGUN_API_KEY')
        if not api_key:
            logger.warning("MAILGUN_API_KEY not configured; email notifications disabled")
            return None
        return cls(api_key, config['MAILGUN_DOMAIN'], config['FROM_EMAIL'])

    def send(self, to, subject, html, cc=None, project_id=None, tracking=False):
        """
        Post one message.

        Args:
            to: Recipient address
            subject: Subject line
            html: Rendered HTML body
            cc: Comma-separated CC list
            project_id: Attached as the v:project_id user variable so
                tracking webhooks can be correlated back to the project
            tracking: Enable open and click tracking

        Raises:
            MailgunError: If the API call fails
        """
        data = {
            'from': self.from_email,
            'to': to,
            'subject': subject,
            'html': html,
        }
        if cc:
            data['cc'] = cc
        if tracking:
            data['o:tracking'] = 'yes'
            data['o:tracking-clicks'] = 'yes'
            data['o:tracking-opens'] = 'yes'
        if project_id:
            data['v:project_id'] = project_id

        url = f"{self.base_url}/{self.domain}/messages"
        try:
            response = requests.post(url, auth=('api', self.api_key), data=data, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Mailgun request failed for {to}: {e}")
            raise MailgunError(f"Mailgun error: {e}") from e

        if not response.ok:
            logger.error(f"Mailgun error [{response.status_code}]: {response.text} Domain: {self.domain}, To: {to}")
            raise MailgunError(f"Mailgun error: {response.reason or response.status_code}")

        logger.info(f"Sent '{subject}' to {to}")
        try:
            return response.json()
        except ValueError:
            return {}
