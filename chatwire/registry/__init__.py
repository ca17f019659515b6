from chatwire.registry.queries import QueryEntry, QueryRegistry

__all__ = ['QueryEntry', 'QueryRegistry']
