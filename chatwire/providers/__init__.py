from chatwire.providers.types import PROVIDER_FAMILIES, ProviderFamily, family_for

__all__ = ['PROVIDER_FAMILIES', 'ProviderFamily', 'family_for']
