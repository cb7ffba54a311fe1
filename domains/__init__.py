"""Business domains: one package per module, each with models, repository, service and router."""
