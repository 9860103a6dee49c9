#!/usr/bin/env python3
"""
Tests for the demo HTTP host using the Flask test client
"""
import pytest

from captcha_server import create_app
from image_encoder import decode_image


@pytest.fixture
def client(manager, config):
    app = create_app(manager, config)
    app.testing = True
    return app.test_client()


def test_generate_and_fetch_image(client):
    response = client.post('/api/captcha/player-7', json={'zoom': 2})
    assert response.status_code == 201
    assert response.get_json() == {'session_id': 'player-7', 'zoom': 2}

    response = client.get('/api/captcha/player-7/image')
    assert response.status_code == 200
    assert response.headers['Content-Type'] == 'image/png'
    assert decode_image(response.data).shape == (70, 360, 3)

    assert client.get('/api/captcha/player-7').get_json()['active'] is True


def test_solve_over_http(client, manager):
    client.post('/api/captcha/p', json={'zoom': 1})
    answer = manager.store.get('p').correct_sequence
    outcomes = [
        client.post('/api/captcha/p/input', json={'symbol': s}).get_json()['outcome']
        for s in answer
    ]
    assert outcomes == ['pending'] * 5 + ['solved']
    assert client.get('/api/captcha/p/image').status_code == 404


def test_input_for_missing_session(client):
    response = client.post('/api/captcha/ghost/input', json={'symbol': 1})
    assert response.get_json()['outcome'] == 'absent'


@pytest.mark.parametrize("body", [{'zoom': 0}, {'zoom': 5}, {'zoom': 'big'}, {'zoom': True}, {}])
def test_invalid_zoom_is_bad_request(client, body):
    response = client.post('/api/captcha/p', json=body)
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Invalid argument'


def test_invalid_symbol_type_is_bad_request(client):
    client.post('/api/captcha/p', json={'zoom': 1})
    response = client.post('/api/captcha/p/input', json={'symbol': '1'})
    assert response.status_code == 400


def test_delete(client):
    client.post('/api/captcha/p', json={'zoom': 1})
    assert client.delete('/api/captcha/p').status_code == 204
    assert client.get('/api/captcha/p').get_json()['active'] is False
    assert client.delete('/api/captcha/p').status_code == 204


def test_admin_endpoints(client):
    client.post('/api/captcha/p', json={'zoom': 1})

    health = client.get('/admin/health').get_json()
    assert health['encoder']['status'] == 'healthy'
    assert health['sessions']['active_sessions'] == 1
    assert health['overall_status'] in ('healthy', 'degraded')

    metrics = client.get('/admin/metrics').get_json()
    assert metrics['operations']['captcha_generation']['count'] == 1
    assert metrics['captcha']['generated'] == 1
