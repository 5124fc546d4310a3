"""Bootstrap workflow for disposable identity-provider instances."""

from authservices.provisioning.orchestrator import (
    ProvisioningContext,
    ProvisioningOrchestrator,
    ProvisioningStep,
)

__all__ = ["ProvisioningContext", "ProvisioningOrchestrator", "ProvisioningStep"]
