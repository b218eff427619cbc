"""Game domain services: progression, scoring and room lifecycle.

``state_machine`` decides, the orchestrator and the scoring coordinator
write. HTTP routes and socket handlers import from here and stay free of
game rules.
"""
