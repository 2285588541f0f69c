"""CRM integrations: Composio connections and contact adapters."""

from cellsync.integrations.domain import CRM_CONFIGS, CRMConfig, CRMType, Integration, IntegrationScope

__all__ = ["CRM_CONFIGS", "CRMConfig", "CRMType", "Integration", "IntegrationScope"]
