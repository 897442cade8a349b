"""Pure merge-engine domain: model, ports, and merge workflow."""
