"""Tests for sozu_acme.messages."""
import json
import sys
import unittest

import josepy as jose
import pytest

from sozu_acme import messages


class AnswerStatusTest(unittest.TestCase):
    """Tests for sozu_acme.messages.AnswerStatus."""

    def test_from_json(self):
        assert messages.AnswerStatus.from_json('OK') is messages.STATUS_OK
        assert messages.AnswerStatus.from_json('PROCESSING') is messages.STATUS_PROCESSING
        assert messages.AnswerStatus.from_json('ERROR') is messages.STATUS_ERROR

    def test_from_json_unknown(self):
        with pytest.raises(jose.DeserializationError):
            messages.AnswerStatus.from_json('MAYBE')

    def test_repr(self):
        assert repr(messages.STATUS_OK) == 'AnswerStatus(OK)'


class OrderTest(unittest.TestCase):
    """Tests for sozu_acme.messages.Order."""

    def test_registered_types(self):
        assert set(messages.Order.TYPES) == {
            'ADD_HTTP_FRONT', 'REMOVE_HTTP_FRONT', 'ADD_HTTPS_FRONT',
            'ADD_BACKEND', 'REMOVE_BACKEND', 'ADD_CERTIFICATE', 'REMOVE_CERTIFICATE',
        }

    def test_every_type_has_done_msg(self):
        for order_cls in messages.Order.TYPES.values():
            assert isinstance(order_cls.done_msg, str)

    def test_register_without_done_msg(self):
        class Incomplete(messages.Order):
            typ = 'INCOMPLETE'

        with pytest.raises(TypeError):
            messages.Order.register(Incomplete)
        assert 'INCOMPLETE' not in messages.Order.TYPES

    def test_to_partial_json(self):
        order = messages.AddHttpFront(
            app_id='ID-abc123', hostname='example.test',
            path_begin='/.well-known/acme-challenge/tok1')
        assert order.to_partial_json() == {
            'type': 'ADD_HTTP_FRONT',
            'data': {
                'app_id': 'ID-abc123',
                'hostname': 'example.test',
                'path_begin': '/.well-known/acme-challenge/tok1',
            },
        }

    def test_from_json(self):
        order = messages.Order.from_json({
            'type': 'REMOVE_BACKEND',
            'data': {'app_id': 'app', 'backend_id': 'app-0',
                     'ip_address': '127.0.0.1', 'port': 8080},
        })
        assert order == messages.RemoveBackend(
            app_id='app', backend_id='app-0', ip_address='127.0.0.1', port=8080)

    def test_from_json_unknown_type(self):
        with pytest.raises(jose.DeserializationError):
            messages.Order.from_json({'type': 'UPGRADE_MASTER', 'data': {}})

    def test_from_json_without_data(self):
        with pytest.raises(jose.DeserializationError):
            messages.Order.from_json({'type': 'ADD_HTTP_FRONT'})


class BackendTest(unittest.TestCase):
    """Tests for sozu_acme.messages.AddBackend and RemoveBackend."""

    def test_backend_id_for(self):
        assert messages.backend_id_for('ID-abc123') == 'ID-abc123-0'

    def test_for_app(self):
        add = messages.AddBackend.for_app('app', ('127.0.0.1', 51000))
        remove = messages.RemoveBackend.for_app('app', ('127.0.0.1', 51000))
        assert isinstance(add, messages.AddBackend)
        assert add.backend_id == remove.backend_id == 'app-0'
        assert add.ip_address == '127.0.0.1'
        assert add.port == 51000

    def test_address(self):
        assert messages.AddBackend.for_app('app', ('127.0.0.1', 51000)).address == \
            '127.0.0.1:51000'
        assert messages.AddBackend.for_app('app', ('::1', 51000)).address == '[::1]:51000'


class AddCertificateTest(unittest.TestCase):
    """Tests for sozu_acme.messages.AddCertificate."""

    def setUp(self):
        self.order = messages.AddCertificate(
            certificate=messages.CertificateAndKey(
                certificate='CERT', certificate_chain=('INTERMEDIATE', 'ROOT'), key='KEY'),
            fingerprint='ab12',
            names=('example.test',),
        )

    def test_json_dumps(self):
        jobj = json.loads(self.order.json_dumps())
        assert jobj == {
            'type': 'ADD_CERTIFICATE',
            'data': {
                'certificate': {
                    'certificate': 'CERT',
                    'certificate_chain': ['INTERMEDIATE', 'ROOT'],
                    'key': 'KEY',
                },
                'fingerprint': 'ab12',
                'names': ['example.test'],
            },
        }

    def test_json_loads(self):
        assert messages.Order.json_loads(self.order.json_dumps()) == self.order


class ConfigMessageTest(unittest.TestCase):
    """Tests for sozu_acme.messages.ConfigMessage."""

    def test_envelope(self):
        message = messages.ConfigMessage(
            id='ID-abc123-1',
            data=messages.RemoveCertificate(fingerprint='ab12', names=('example.test',)))
        assert message.to_partial_json()['type'] == 'PROXY'
        assert message.to_partial_json()['version'] == 0
        jobj = message.to_json()
        assert jobj == {
            'id': 'ID-abc123-1',
            'version': 0,
            'type': 'PROXY',
            'data': {
                'type': 'REMOVE_CERTIFICATE',
                'data': {'fingerprint': 'ab12', 'names': ['example.test']},
            },
        }
        assert messages.ConfigMessage.from_json(jobj) == message


class ConfigMessageAnswerTest(unittest.TestCase):
    """Tests for sozu_acme.messages.ConfigMessageAnswer."""

    def test_json_loads(self):
        answer = messages.ConfigMessageAnswer.json_loads(
            '{"id": "ID-abc123-1", "version": 0, "status": "ERROR", '
            '"message": "duplicate", "data": null}')
        assert answer.id == 'ID-abc123-1'
        assert answer.status == messages.STATUS_ERROR
        assert answer.message == 'duplicate'

    def test_json_loads_minimal(self):
        answer = messages.ConfigMessageAnswer.json_loads(
            '{"id": "ID-abc123-1", "status": "PROCESSING"}')
        assert answer.status == messages.STATUS_PROCESSING
        assert answer.message == ''
        assert answer.data is None

    def test_json_loads_unknown_status(self):
        with pytest.raises(jose.DeserializationError):
            messages.ConfigMessageAnswer.json_loads('{"id": "x", "status": "DONE"}')


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
