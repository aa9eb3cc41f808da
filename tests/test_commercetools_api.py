"""
commercetools APIクライアントのテスト
"""

from datetime import datetime, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from api.commercetools_api import DISCOUNT_EXPANSION, CommercetoolsAPI
from core.config import Config
from core.exceptions import CommerceAPIError, UpstreamUnavailableError

AUTH_URL = 'https://auth.example.test'
API_URL = 'https://api.example.test'


class Recorder:
    """Mock transport handler that records requests and replays canned responses"""

    def __init__(self, api_responses=None, token_status=200):
        self.requests = []
        self.token_requests = 0
        self.api_responses = list(api_responses or [])
        self.token_status = token_status

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == '/oauth/token':
            self.token_requests += 1
            if self.token_status != 200:
                return httpx.Response(self.token_status, text='invalid_client')
            return httpx.Response(200, json={'access_token': f"token-{self.token_requests}", 'expires_in': 3600})
        if self.api_responses:
            return self.api_responses.pop(0)
        return httpx.Response(200, json={'results': [], 'count': 0})

    @property
    def api_requests(self):
        return [r for r in self.requests if r.url.path != '/oauth/token']


def _client(handler) -> CommercetoolsAPI:
    return CommercetoolsAPI(
        project_key='demo-shop',
        client_id='client',
        client_secret='secret',
        auth_url=AUTH_URL,
        api_url=API_URL,
        scope='view_orders:demo-shop',
        transport=httpx.MockTransport(handler),
    )


def test_missing_credentials_are_rejected(monkeypatch):
    monkeypatch.setattr(Config, 'CTP_PROJECT_KEY', '')
    monkeypatch.setattr(Config, 'CTP_CLIENT_ID', '')
    monkeypatch.setattr(Config, 'CTP_CLIENT_SECRET', '')

    with pytest.raises(ValueError):
        CommercetoolsAPI()


def test_token_request_uses_client_credentials():
    handler = Recorder()
    with _client(handler) as client:
        client.get_discounts()

    token_request = handler.requests[0]
    form = parse_qs(token_request.content.decode())
    assert token_request.method == 'POST'
    assert form['grant_type'] == ['client_credentials']
    assert form['scope'] == ['view_orders:demo-shop']
    assert token_request.headers['authorization'].startswith('Basic ')
    assert handler.api_requests[0].headers['authorization'] == 'Bearer token-1'


def test_token_is_reused_until_it_expires():
    handler = Recorder()
    with _client(handler) as client:
        client.get_discounts()
        client.get_orders()
        client.get_order('o1')

    assert handler.token_requests == 1
    assert len(handler.api_requests) == 3


def test_unauthorized_response_drops_the_cached_token():
    handler = Recorder(api_responses=[httpx.Response(401, json={'message': 'expired'})])
    with _client(handler) as client:
        with pytest.raises(CommerceAPIError) as excinfo:
            client.get_discounts()
        client.get_discounts()

    assert excinfo.value.status_code == 401
    assert handler.token_requests == 2


def test_failed_authentication_raises():
    handler = Recorder(token_status=401)
    with _client(handler) as client:
        with pytest.raises(CommerceAPIError) as excinfo:
            client.get_discounts()

    assert excinfo.value.status_code == 401
    assert not handler.api_requests


def test_discount_query_parameters():
    handler = Recorder()
    with _client(handler) as client:
        client.get_discounts(active=True, limit=500, expand=['custom.type'], sort=['lastModifiedAt desc'])

    request = handler.api_requests[0]
    assert request.url.path == '/demo-shop/cart-discounts'
    assert request.url.params['limit'] == '100'
    assert request.url.params['where'] == 'isActive=true'
    assert request.url.params['expand'] == 'custom.type'
    assert request.url.params['sort'] == 'lastModifiedAt desc'


def test_inactive_discount_filter():
    handler = Recorder()
    with _client(handler) as client:
        client.get_discounts(active=False)

    assert handler.api_requests[0].url.params['where'] == 'isActive=false'


def test_order_query_builds_window_predicate():
    handler = Recorder()
    start = datetime(2025, 1, 13, 13, 0, tzinfo=timezone.utc)
    end = datetime(2025, 1, 15, 13, 0, tzinfo=timezone.utc)

    with _client(handler) as client:
        client.get_orders(start=start, end=end, with_discounts=True, expand_discounts=True)

    params = handler.api_requests[0].url.params
    assert params['where'] == (
        'lineItems(discountedPricePerQuantity is defined) and '
        'createdAt >= "2025-01-13T13:00:00.000Z" and '
        'createdAt < "2025-01-15T13:00:00.000Z"'
    )
    assert params['sort'] == 'createdAt desc'
    assert params['limit'] == '500'
    assert params['expand'] == DISCOUNT_EXPANSION


def test_unfiltered_order_query_has_no_predicate():
    handler = Recorder()
    with _client(handler) as client:
        client.get_orders(limit=0)

    params = handler.api_requests[0].url.params
    assert 'where' not in params
    assert params['limit'] == '1'


def test_server_errors_carry_the_status_code():
    handler = Recorder(api_responses=[httpx.Response(503, text='maintenance')])
    with _client(handler) as client:
        with pytest.raises(CommerceAPIError) as excinfo:
            client.get_orders()

    assert excinfo.value.status_code == 503
    assert isinstance(excinfo.value, UpstreamUnavailableError)


def test_transport_errors_are_wrapped():
    def handler(request):
        if request.url.path == '/oauth/token':
            return httpx.Response(200, json={'access_token': 't', 'expires_in': 3600})
        raise httpx.ConnectError('connection refused', request=request)

    with _client(handler) as client:
        with pytest.raises(CommerceAPIError):
            client.get_discounts()


def test_body_is_returned_as_is():
    body = {'limit': 20, 'offset': 0, 'count': 1, 'total': 1, 'results': [{'id': 'd1'}]}
    handler = Recorder(api_responses=[httpx.Response(200, json=body)])

    with _client(handler) as client:
        assert client.get_discounts() == body


@pytest.mark.parametrize('token_response', [
    httpx.Response(200, text='<html>gateway</html>'),
    httpx.Response(200, json={'token_type': 'Bearer'}),
    httpx.Response(200, json={'access_token': 't', 'expires_in': 'soon'}),
])
def test_unreadable_token_response_raises_commerce_error(token_response):
    def handler(request):
        if request.url.path == '/oauth/token':
            return token_response
        return httpx.Response(200, json={'results': []})

    with _client(handler) as client:
        with pytest.raises(CommerceAPIError, match='Invalid token response'):
            client.get_discounts()
