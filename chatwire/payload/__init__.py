from chatwire.payload.builder import prepare_payload
from chatwire.payload.models import Message, SessionState

__all__ = ['Message', 'SessionState', 'prepare_payload']
