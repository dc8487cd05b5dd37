"""Tests for status, landing page and CORS handling."""

import logging
from datetime import datetime

from common.logging_config import RequestIdFilter


def test_status_endpoint(client):
    response = client.get('/status')

    assert response.status_code == 200
    data = response.json()
    assert data['status'] == 'running'
    assert isinstance(data['uptime'], (int, float))
    assert data['uptime'] >= 0
    datetime.fromisoformat(data['timestamp'].replace('Z', '+00:00'))


def test_status_uptime_non_decreasing(client):
    uptimes = [client.get('/status').json()['uptime'] for _ in range(5)]

    assert uptimes == sorted(uptimes)


def test_landing_page(client):
    response = client.get('/')

    assert response.status_code == 200
    assert response.headers['content-type'].startswith('text/html')
    assert 'Photo Backup Server' in response.text
    assert 'Server is running' in response.text


def test_request_id_header(client):
    response = client.get('/status')

    assert response.headers.get('X-Request-ID')


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_completion_log_carries_request_id(client):
    handler = _ListHandler()
    handler.addFilter(RequestIdFilter())
    app_logger = logging.getLogger('photobackup.app')
    app_logger.addHandler(handler)
    previous_level = app_logger.level
    app_logger.setLevel(logging.INFO)
    try:
        response = client.get('/status')
    finally:
        app_logger.removeHandler(handler)
        app_logger.setLevel(previous_level)

    request_id = response.headers['X-Request-ID']
    completed = [r for r in handler.records if r.getMessage().startswith('Request completed')]
    assert len(completed) == 1
    assert completed[0].request_id == request_id
    assert 'request_id=' not in completed[0].getMessage()


def test_cors_preflight(client):
    response = client.options('/upload', headers={
        'Origin': 'http://iphone.local',
        'Access-Control-Request-Method': 'POST',
        'Access-Control-Request-Headers': 'x-file-name',
    })

    assert response.status_code == 200
    assert response.headers['access-control-allow-origin'] == 'http://iphone.local'
    assert response.headers['access-control-allow-credentials'] == 'true'
    assert 'POST' in response.headers['access-control-allow-methods']
    assert 'x-file-name' in response.headers['access-control-allow-headers'].lower()


def test_plain_options_request(client):
    response = client.options('/anything')

    assert response.status_code == 204


def test_simple_request_carries_cors_headers(client):
    response = client.get('/status', headers={'Origin': 'http://iphone.local'})

    assert 'access-control-allow-origin' in response.headers
