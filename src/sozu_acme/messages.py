"""sozu command socket messages.

Orders are proxy configuration changes. Each one travels inside a
`ConfigMessage` envelope and is acknowledged by one or more
`ConfigMessageAnswer` messages carrying the envelope's id.

"""
from collections.abc import Hashable
from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Type
from typing import TypeVar

import josepy as jose

PROXY_MESSAGE_TYPE = 'PROXY'
"""Envelope type for proxy configuration orders."""

PROTOCOL_VERSION = 0

GenericOrder = TypeVar('GenericOrder', bound='Order')


def backend_id_for(app_id: str) -> str:
    """Backend id used for the single backend of an application."""
    return '{0}-0'.format(app_id)


class _Constant(jose.JSONDeSerializable, Hashable):
    """Command socket constant."""
    __slots__ = ('name',)
    POSSIBLE_NAMES: Dict[str, '_Constant'] = NotImplemented

    def __init__(self, name: str) -> None:
        super().__init__()
        self.POSSIBLE_NAMES[name] = self  # pylint: disable=unsupported-assignment-operation
        self.name = name

    def to_partial_json(self) -> str:
        return self.name

    @classmethod
    def from_json(cls, jobj: str) -> '_Constant':
        if jobj not in cls.POSSIBLE_NAMES:  # pylint: disable=unsupported-membership-test
            raise jose.DeserializationError(
                '{0} not recognized'.format(cls.__name__))
        return cls.POSSIBLE_NAMES[jobj]

    def __repr__(self) -> str:
        return '{0}({1})'.format(self.__class__.__name__, self.name)

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, type(self)) and other.name == self.name

    def __hash__(self) -> int:
        return hash((self.__class__, self.name))


class AnswerStatus(_Constant):
    """Answer "status" field."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}


STATUS_OK = AnswerStatus('OK')
STATUS_PROCESSING = AnswerStatus('PROCESSING')
STATUS_ERROR = AnswerStatus('ERROR')


class Order(jose.TypedJSONObjectWithFields):
    """Proxy configuration order.

    Serialized as ``{"type": <typ>, "data": {<fields>}}``. Every
    registered order declares `done_msg`, the message logged when the
    proxy acknowledges it, so that adding an order type without one
    fails as soon as the class is registered.

    """
    TYPES: Dict[str, Type['Order']] = {}
    done_msg: str = NotImplemented

    @classmethod
    def register(cls, type_cls: Type[GenericOrder],  # type: ignore[override]
                 typ: Optional[str] = None) -> Type[GenericOrder]:
        if not isinstance(type_cls.done_msg, str):
            raise TypeError('{0} does not define done_msg'.format(type_cls.__name__))
        return super().register(type_cls, typ)

    def to_partial_json(self) -> Dict[str, Any]:
        return {
            self.type_field_name: self.typ,
            'data': self.fields_to_partial_json(),
        }

    @classmethod
    def from_json(cls, jobj: Mapping[str, Any]) -> 'Order':
        type_cls = cls.get_type_cls(jobj)
        data = jobj.get('data')
        if not isinstance(data, Mapping):
            raise jose.DeserializationError(
                '{0} order without data'.format(jobj[cls.type_field_name]))
        return type_cls(**type_cls.fields_from_json(data))


class _HttpFront(Order):
    """HTTP frontend: routes a hostname and path prefix to an application.

    :ivar str app_id:
    :ivar str hostname:
    :ivar str path_begin:

    """
    app_id: str = jose.field('app_id')
    hostname: str = jose.field('hostname')
    path_begin: str = jose.field('path_begin')


@Order.register
class AddHttpFront(_HttpFront):
    """Add an HTTP frontend."""
    typ = 'ADD_HTTP_FRONT'
    done_msg = 'front added'


@Order.register
class RemoveHttpFront(_HttpFront):
    """Remove an HTTP frontend."""
    typ = 'REMOVE_HTTP_FRONT'
    done_msg = 'front removed'


@Order.register
class AddHttpsFront(Order):
    """Add an HTTPS frontend served with the certificate `fingerprint`."""
    typ = 'ADD_HTTPS_FRONT'
    done_msg = 'https front added'

    app_id: str = jose.field('app_id')
    hostname: str = jose.field('hostname')
    path_begin: str = jose.field('path_begin')
    fingerprint: str = jose.field('fingerprint')


class _Backend(Order):
    """Backend of an application.

    :ivar str app_id:
    :ivar str backend_id:
    :ivar str ip_address:
    :ivar int port:

    """
    app_id: str = jose.field('app_id')
    backend_id: str = jose.field('backend_id')
    ip_address: str = jose.field('ip_address')
    port: int = jose.field('port')

    @classmethod
    def for_app(cls: Type[GenericOrder], app_id: str,
                address: Tuple[str, int]) -> GenericOrder:
        """Backend of `app_id` forwarding to ``(host, port)`` `address`."""
        return cls(app_id=app_id, backend_id=backend_id_for(app_id),
                   ip_address=address[0], port=address[1])

    @property
    def address(self) -> str:
        """Backend address as ``ip:port``."""
        if ':' in self.ip_address:
            return '[{0}]:{1}'.format(self.ip_address, self.port)
        return '{0}:{1}'.format(self.ip_address, self.port)


@Order.register
class AddBackend(_Backend):
    """Add a backend."""
    typ = 'ADD_BACKEND'
    done_msg = 'backend added'


@Order.register
class RemoveBackend(_Backend):
    """Remove a backend."""
    typ = 'REMOVE_BACKEND'
    done_msg = 'backend removed'


class CertificateAndKey(jose.JSONObjectWithFields):
    """Certificate, its intermediate chain and private key, all PEM.

    :ivar str certificate:
    :ivar tuple certificate_chain: one PEM string per certificate
    :ivar str key:

    """
    certificate: str = jose.field('certificate')
    certificate_chain: Tuple[str, ...] = jose.field('certificate_chain', default=())
    key: str = jose.field('key')


@Order.register
class AddCertificate(Order):
    """Add a certificate for `names`."""
    typ = 'ADD_CERTIFICATE'
    done_msg = 'certificate added'

    certificate: CertificateAndKey = jose.field(
        'certificate', decoder=CertificateAndKey.from_json)
    fingerprint: str = jose.field('fingerprint')
    names: Tuple[str, ...] = jose.field('names', default=())


@Order.register
class RemoveCertificate(Order):
    """Remove the certificate identified by `fingerprint`."""
    typ = 'REMOVE_CERTIFICATE'
    done_msg = 'certificate removed'

    fingerprint: str = jose.field('fingerprint')
    names: Tuple[str, ...] = jose.field('names', default=())


class ConfigMessage(jose.JSONObjectWithFields):
    """Envelope for an order sent to the proxy.

    :ivar str id: request id, echoed by every answer
    :ivar int version: protocol version
    :ivar str typ: envelope type
    :ivar Order data: the order

    """
    id: str = jose.field('id')
    version: int = jose.field('version', default=PROTOCOL_VERSION)
    typ: str = jose.field('type', default=PROXY_MESSAGE_TYPE)
    data: Order = jose.field('data', decoder=Order.from_json)


class ConfigMessageAnswer(jose.JSONObjectWithFields):
    """Answer from the proxy to a `ConfigMessage`.

    :ivar str id: id of the request this answers
    :ivar AnswerStatus status:
    :ivar str message: human readable details

    """
    id: str = jose.field('id')
    version: int = jose.field('version', omitempty=True, default=PROTOCOL_VERSION)
    status: AnswerStatus = jose.field('status', decoder=AnswerStatus.from_json)
    message: str = jose.field('message', omitempty=True, default='')
    data: Any = jose.field('data', omitempty=True)
