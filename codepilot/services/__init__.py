"""Assistant services: project context assembly, LLM access and completion."""
