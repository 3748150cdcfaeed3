"""Authentication primitives.

Learn: The building blocks the services layer composes:
- password.py  — bcrypt hashing / verification
- claims.py    — purpose-tagged token claims
- jwt.py       — TokenCodec (sign / verify with an injected secret)
- errors.py    — one exception class per auth failure kind
- dependencies.py — FastAPI wiring (codec, store, current identity)
"""
