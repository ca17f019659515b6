from chatwire.dispatch.dispatcher import Dispatcher, once
from chatwire.dispatch.request import TransportCommand, build_command
from chatwire.dispatch.transport import HttpxTransport, Transport
from chatwire.dispatch.vault import CredentialVault, InMemoryVault

__all__ = ['CredentialVault', 'Dispatcher', 'HttpxTransport', 'InMemoryVault', 'Transport', 'TransportCommand', 'build_command', 'once']
