"""Per-tenant AI backend configuration and API key resolution."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from relay.config import get_settings
from relay.core.credentials import decrypt_secret
from relay.core.errors import ConfigurationError
from relay.models.agent_config import AgentConfig


class AgentConfigService:
    def __init__(self, db: Session, default_api_key: Optional[str] = None) -> None:
        self.db = db
        self._default_api_key = default_api_key or get_settings().voiceflow_api_key

    def get_agent_config(self, tenant_id: str) -> Optional[AgentConfig]:
        return (
            self.db.query(AgentConfig)
            .filter(AgentConfig.tenant_id == tenant_id)
            .first()
        )

    def require_agent_config(self, tenant_id: str) -> AgentConfig:
        agent = self.get_agent_config(tenant_id)
        if agent is None:
            raise ConfigurationError(f"No AI agent configured for tenant {tenant_id}")
        return agent

    def resolve_api_key(self, agent: AgentConfig) -> str:
        """Tenant key when stored, else the environment default."""
        api_key = decrypt_secret(agent.encrypted_api_key) or self._default_api_key
        if not api_key:
            raise ConfigurationError(
                f"No AI backend API key found for tenant {agent.tenant_id}"
            )
        return api_key
