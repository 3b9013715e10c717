"""Services Layer — one operation caller per gateway endpoint.

Invariants:
    - Field validation runs before RequestCore is invoked (ValidationError never hits the wire)
    - Every network call goes through RequestCore.execute (quota, token, retries)
    - Each service raises only its own failure variant plus the core kinds

Design Decisions:
    - One service file per endpoint for locality; shared decoding in gateway_responses.py
"""
