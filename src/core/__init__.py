"""
Core mothership kernels.

Pure, deterministic, integer-only building blocks:
- `derivation`: program-derived addresses (off-curve sha256 search over bumps)
- `vanity`: bounded suffix search over derived addresses
- `rate_tiers`: Fibonacci-weighted velocity limits and size caps
- `fees`: conserved fee splitting (running-remainder allocation)
- `rotation`: dwell-time eligibility guard for rotator keys
- `errors`: exception hierarchy shared by every layer
"""
