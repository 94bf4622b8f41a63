"""Weather dashboard core: gateways, suggestions, charts, orchestration."""
