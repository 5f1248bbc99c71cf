"""
Pipeline stages.

Each stage is a plain class driven by the orchestrator; external tools are
injected as ExternalTool instances so tests can script their results.
"""
