"""
Request API clients

RemoteStore is the contract the client editing engine writes through.
HttpRemoteStore talks to a running server over HTTP; InProcessRemoteStore
(in ``local_store``) calls the server's RequestStore directly inside a Flask
application context.
"""
from .remote_store import RemoteStore, RemoteError, RemoteErrorKind, classify_remote_error
from .http_store import HttpRemoteStore

__all__ = [
    'RemoteStore',
    'RemoteError',
    'RemoteErrorKind',
    'classify_remote_error',
    'HttpRemoteStore',
]
