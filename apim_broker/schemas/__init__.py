from .service_schemas import APIReference, ProvisionContext, ServiceParameters

__all__ = ["APIReference", "ProvisionContext", "ServiceParameters"]
