"""HighLevel (LeadConnector) CRM client for contact sync and SMS."""
import logging
import requests
from shared.validation import Validator

logger = logging.getLogger(__name__)

PORTAL_SMS_TEMPLATE = 'View your Raptor Vending installation progress on your phone: {url}'


class HighLevelError(Exception):
    """Raised when a CRM call fails or returns an unusable response."""
    pass


class HighLevelClient:
    base_url = 'https://services.leadconnectorhq.com'
    api_version = '2021-07-28'

    def __init__(self, api_key, location_id):
        self.api_key = api_key
        self.location_id = location_id

    @classmethod
    def from_config(cls, config):
        api_key = config.get('HIGHLEVEL_API_KEY')
        location_id = config.get('HIGHLEVEL_LOCATION_ID')
        if not (api_key and location_id):
            logger.warning("HighLevel credentials not configured; SMS and contact sync disabled")
            return None
        return cls(api_key, location_id)

    def _get_headers(self):
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
            'Version': self.api_version,
        }

    def _get(self, path, params):
        try:
            return requests.get(f"{self.base_url}{path}", params=params, headers=self._get_headers())
        except requests.RequestException as e:
            raise HighLevelError(f"HighLevel request failed: {e}") from e

    def _send(self, method, path, payload, failure_message):
        try:
            response = requests.request(method, f"{self.base_url}{path}", json=payload,
                                        headers=self._get_headers())
        except requests.RequestException as e:
            raise HighLevelError(f"HighLevel request failed: {e}") from e

        try:
            result = response.json()
        except ValueError:
            result = {}
        if not response.ok:
            logger.error(f"HighLevel {method} {path} returned {response.status_code}: {result}")
            raise HighLevelError(result.get('message') or failure_message)
        return result

    def lookup_contact_by_phone(self, phone):
        """Return a contact id from the lookup endpoint, or None."""
        response = self._get('/contacts/lookup', {'locationId': self.location_id, 'phone': phone})
        if not response.ok:
            return None
        try:
            contact = response.json().get('contact') or {}
        except ValueError:
            return None
        return contact.get('id')

    def search_contacts(self, query, path='/contacts/'):
        response = self._get(path, {'locationId': self.location_id, 'query': query})
        if not response.ok:
            return []
        try:
            return response.json().get('contacts') or []
        except ValueError:
            return []

    def create_contact(self, **fields):
        payload = {k: v for k, v in fields.items() if v is not None}
        payload['locationId'] = self.location_id
        result = self._send('POST', '/contacts/', payload, 'Failed to create contact')
        contact_id = (result.get('contact') or {}).get('id')
        if not contact_id:
            raise HighLevelError('Could not find or create contact')
        return contact_id

    def update_contact(self, contact_id, **fields):
        payload = {k: v for k, v in fields.items() if v is not None}
        payload['locationId'] = self.location_id
        return self._send('PUT', f'/contacts/{contact_id}', payload, 'Failed to update contact')

    def find_or_create_contact_by_phone(self, phone):
        """
        Resolve a contact for a normalized 10-digit phone.

        Tries the lookup endpoint with the bare and country-prefixed forms,
        then a digit search, and only then creates a "Portal Visitor" contact.
        """
        digits = Validator.phone_digits(phone)
        for candidate in (phone, digits, f"1{digits}"):
            contact_id = self.lookup_contact_by_phone(candidate)
            if contact_id:
                logger.debug(f"Matched contact {contact_id} by phone lookup")
                return contact_id

        for contact in self.search_contacts(digits):
            if digits in Validator.phone_digits(contact.get('phone') or ''):
                logger.debug(f"Matched contact {contact.get('id')} by search")
                return contact.get('id')

        logger.info("No existing contact for phone; creating Portal Visitor")
        return self.create_contact(phone=phone, name='Portal Visitor')

    def sync_contact(self, name, email, phone=None):
        """Update the first contact matching email, or create one. Returns the contact id."""
        formatted_phone = f"+1{Validator.phone_digits(phone)}" if phone else None
        matches = self.search_contacts(email, path='/contacts/search')
        if matches:
            contact_id = matches[0].get('id')
            self.update_contact(contact_id, name=name, email=email, phone=formatted_phone)
            logger.info(f"Updated HighLevel contact {contact_id}")
            return contact_id

        contact_id = self.create_contact(name=name, email=email, phone=formatted_phone, source='Raptor Portal')
        logger.info(f"Created HighLevel contact {contact_id}")
        return contact_id

    def send_sms(self, contact_id, message):
        result = self._send('POST', '/conversations/messages',
                            {'type': 'SMS', 'contactId': contact_id, 'message': message},
                            'Failed to send SMS')
        return result.get('messageId') or result.get('id')

    def send_portal_link(self, phone, url):
        """Find or create the contact for phone and text them the portal link."""
        contact_id = self.find_or_create_contact_by_phone(phone)
        return self.send_sms(contact_id, PORTAL_SMS_TEMPLATE.format(url=url))
