"""Game panel domain services: timer derivation, round engine and roster.

HTTP routes and socket handlers import from here, keeping transport
concerns separated from the round/timer state machine.
"""
